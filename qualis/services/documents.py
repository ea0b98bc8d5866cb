"""Per-entity document folders on top of object storage.

Every client and care home owns a folder tree rooted at
``{entity_type}/{entity_id}`` in the documents bucket. Folders exist only as
key prefixes, so an empty folder is kept alive by a ``.keep`` marker object.
"""

import base64
import logging
import posixpath
from urllib.parse import quote

from botocore.exceptions import ClientError
from fastapi import HTTPException
from sqlalchemy.orm import Session

from qualis.services.access import AccessScope
from qualis.services.care_homes import load_care_home
from qualis.services.clients import load_client
from qualis.services.storage import storage

logger = logging.getLogger(__name__)

ENTITY_LOADERS = {
    "clients": load_client,
    "care-homes": load_care_home,
}
FOLDER_MARKER = ".keep"
OFFICE_VIEWER_URL = "https://view.officeapps.live.com/op/embed.aspx?src="

EXTENSION_MEDIA_TYPES = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "txt": "text/plain",
    "log": "text/plain",
    "csv": "text/plain",
    "md": "text/markdown",
    "json": "application/json",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
GENERIC_MEDIA_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

OFFICE_MEDIA_TYPES = frozenset(
    {
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }
)


def normalize_path(path: str | None) -> str:
    """Relative, slash-free-at-the-ends form of ``path``; rejects traversal."""
    if not path:
        return ""
    parts = []
    for part in path.replace("\\", "/").split("/"):
        part = part.strip()
        if part in ("", "."):
            continue
        if part == "..":
            raise HTTPException(status_code=400, detail="Invalid document path")
        parts.append(part)
    return "/".join(parts)


def build_path(*parts: str) -> str:
    return "/".join(p for p in (normalize_path(part) for part in parts) if p)


def media_type_for(name: str, reported: str | None = None) -> str:
    if reported and reported.split(";")[0].strip().lower() not in GENERIC_MEDIA_TYPES:
        return reported
    extension = posixpath.splitext(name)[1].lstrip(".").lower()
    return EXTENSION_MEDIA_TYPES.get(extension, "application/octet-stream")


def classify_viewer_kind(media_type: str | None, has_download_url: bool = True) -> str:
    """Pick the in-browser viewer for a MIME type.

    Office formats are only viewable through the online viewer, which needs
    a URL it can fetch, so without one they fall back to ``binary``.
    """
    mime = (media_type or "").split(";")[0].strip().lower()
    if mime.startswith("text/") or mime == "application/json":
        return "text"
    if mime.startswith("image/"):
        return "image"
    if mime == "application/pdf":
        return "pdf"
    if mime in OFFICE_MEDIA_TYPES and has_download_url:
        return "office"
    return "binary"


def office_viewer_url(signed_url: str) -> str:
    return OFFICE_VIEWER_URL + quote(signed_url, safe="-_.!~*'()")


class DocumentStore:
    @staticmethod
    def _base_path(
        db: Session, scope: AccessScope, entity_type: str, entity_id: str
    ) -> str:
        loader = ENTITY_LOADERS.get(entity_type)
        if loader is None:
            raise HTTPException(status_code=404, detail="Unknown document owner type")
        entity = loader(db, scope, entity_id)
        return f"{entity_type}/{entity.id}"

    @staticmethod
    def _ensure_configured() -> None:
        if not storage.is_configured():
            raise HTTPException(
                status_code=503,
                detail={
                    "code": "storage_unavailable",
                    "message": "Document storage is not configured",
                    "details": {"retryable": False},
                },
            )

    @staticmethod
    def list(
        db: Session,
        scope: AccessScope,
        entity_type: str,
        entity_id: str,
        path: str | None = None,
    ) -> dict:
        scope.require("documents:read")
        base = DocumentStore._base_path(db, scope, entity_type, entity_id)
        DocumentStore._ensure_configured()
        relative = normalize_path(path)
        prefix = build_path(base, relative) + "/"
        prefixes, objects = storage.list_prefix(prefix)

        items = []
        for child in prefixes:
            name = child[len(prefix):].rstrip("/")
            items.append(
                {"name": name, "path": build_path(relative, name), "type": "dir"}
            )
        for obj in objects:
            name = obj["Key"][len(prefix):]
            if not name or name == FOLDER_MARKER:
                continue
            items.append(
                {
                    "name": name,
                    "path": build_path(relative, name),
                    "type": "file",
                    "size": obj.get("Size"),
                    "mime_type": media_type_for(name),
                    "updated_at": obj.get("LastModified"),
                }
            )
        items.sort(key=lambda item: item["name"])
        return {
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "path": relative,
            "items": items,
        }

    @staticmethod
    def create_folder(
        db: Session,
        scope: AccessScope,
        entity_type: str,
        entity_id: str,
        parent_path: str | None,
        name: str,
    ) -> dict:
        scope.require("documents:write")
        base = DocumentStore._base_path(db, scope, entity_type, entity_id)
        DocumentStore._ensure_configured()
        folder_name = normalize_path(name)
        if not folder_name or "/" in folder_name:
            raise HTTPException(status_code=400, detail="Invalid folder name")
        relative = build_path(parent_path or "", folder_name)
        marker = build_path(base, relative, FOLDER_MARKER)
        if storage.object_exists(marker):
            logger.debug("Folder %s already exists", marker)
        else:
            storage.put_object(marker, b"", "text/plain")
            logger.info("Created folder %s", build_path(base, relative))
        return {"name": folder_name, "path": relative, "type": "dir"}

    @staticmethod
    def upload(
        db: Session,
        scope: AccessScope,
        entity_type: str,
        entity_id: str,
        destination: str | None,
        filename: str,
        content: bytes,
        content_type: str | None = None,
    ) -> dict:
        scope.require("documents:write")
        base = DocumentStore._base_path(db, scope, entity_type, entity_id)
        DocumentStore._ensure_configured()
        name = posixpath.basename(normalize_path(filename))
        if not name or name == FOLDER_MARKER:
            raise HTTPException(status_code=400, detail="Invalid file name")
        relative = build_path(destination or "", name)
        media_type = media_type_for(name, content_type)
        storage.put_object(build_path(base, relative), content, media_type)
        return {
            "name": name,
            "path": relative,
            "type": "file",
            "size": len(content),
            "mime_type": media_type,
        }

    @staticmethod
    def read(
        db: Session,
        scope: AccessScope,
        entity_type: str,
        entity_id: str,
        file_path: str,
    ) -> dict:
        """Fetch a file with everything a viewer needs to render it."""
        scope.require("documents:read")
        base = DocumentStore._base_path(db, scope, entity_type, entity_id)
        DocumentStore._ensure_configured()
        relative = normalize_path(file_path)
        if not relative:
            raise HTTPException(status_code=400, detail="filePath is required")
        key = build_path(base, relative)
        try:
            body, reported_type = storage.get_object(key)
        except ClientError as exc:
            if storage.is_missing(exc):
                raise HTTPException(status_code=404, detail="Document not found")
            raise
        name = posixpath.basename(relative)
        media_type = media_type_for(name, reported_type)
        signed_url = storage.generate_download_url(key)
        kind = classify_viewer_kind(media_type, has_download_url=bool(signed_url))
        return {
            "name": name,
            "path": key,
            "relative_path": relative,
            "media_type": media_type,
            "size": len(body),
            "content": base64.b64encode(body).decode("ascii"),
            "signed_url": signed_url,
            "kind": kind,
            "viewer_url": office_viewer_url(signed_url) if kind == "office" else None,
        }


documents = DocumentStore()
