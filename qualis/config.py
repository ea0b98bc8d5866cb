import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/qualis"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Bearer tokens issued by the hosted auth provider
    jwt_secret: str = os.getenv("JWT_SECRET", "")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_audience: str | None = os.getenv("JWT_AUDIENCE") or None

    # S3 / MinIO settings
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "")
    s3_bucket_name: str = os.getenv("S3_BUCKET_NAME", "documents")
    s3_region: str = os.getenv("S3_REGION", "eu-west-2")
    s3_presigned_url_expiry: int = int(os.getenv("S3_PRESIGNED_URL_EXPIRY", "3600"))

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )

    # Outbound e-mail (Resend)
    resend_api_key: str = os.getenv("RESEND_API_KEY", "")
    resend_api_url: str = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
    notification_email_from: str = os.getenv(
        "NOTIFICATION_EMAIL_FROM", "Qualis Digital <notifications@qualis.digital>"
    )
    notification_batch_size: int = int(os.getenv("NOTIFICATION_BATCH_SIZE", "25"))

    # Branding
    brand_name: str = os.getenv("BRAND_NAME", "Qualis Care")


settings = Settings()
