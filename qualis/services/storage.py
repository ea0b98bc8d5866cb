import logging

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from qualis.config import settings

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class StorageService:
    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():  # type: ignore[return]
        if not StorageService.is_configured():
            raise RuntimeError(
                "S3 storage is not configured. "
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY, and S3_SECRET_KEY."
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def is_missing(exc: ClientError) -> bool:
        return exc.response.get("Error", {}).get("Code") in _MISSING_CODES

    @staticmethod
    def list_prefix(prefix: str, max_keys: int = 1000) -> tuple[list[str], list[dict]]:
        """Immediate children of ``prefix``: (sub-prefixes, objects)."""
        client = StorageService._get_client()
        response = client.list_objects_v2(
            Bucket=settings.s3_bucket_name,
            Prefix=prefix,
            Delimiter="/",
            MaxKeys=max_keys,
        )
        prefixes = [item["Prefix"] for item in response.get("CommonPrefixes", [])]
        objects = list(response.get("Contents", []))
        return prefixes, objects

    @staticmethod
    def object_exists(key: str) -> bool:
        client = StorageService._get_client()
        try:
            client.head_object(Bucket=settings.s3_bucket_name, Key=key)
        except ClientError as exc:
            if StorageService.is_missing(exc):
                return False
            raise
        return True

    @staticmethod
    def put_object(key: str, body: bytes, content_type: str | None = None) -> None:
        client = StorageService._get_client()
        params = {"Bucket": settings.s3_bucket_name, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        client.put_object(**params)
        logger.info("Stored object %s (%d bytes)", key, len(body))

    @staticmethod
    def get_object(key: str) -> tuple[bytes, str | None]:
        """Object bytes and the content type storage reports, if any."""
        client = StorageService._get_client()
        response = client.get_object(Bucket=settings.s3_bucket_name, Key=key)
        body = response["Body"].read()
        return body, response.get("ContentType")

    @staticmethod
    def generate_download_url(storage_key: str) -> str:
        client = StorageService._get_client()
        url: str = client.generate_presigned_url(
            "get_object",
            Params={
                "Bucket": settings.s3_bucket_name,
                "Key": storage_key,
            },
            ExpiresIn=settings.s3_presigned_url_expiry,
        )
        return url


storage = StorageService()
