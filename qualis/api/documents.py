from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from qualis.api.deps import get_db, get_scope
from qualis.schemas.documents import (
    DocumentContent,
    DocumentItem,
    DocumentListResponse,
    FolderCreateRequest,
)
from qualis.services.access import AccessScope
from qualis.services.documents import documents

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get(
    "/{entity_type}/{entity_id}",
    response_model=DocumentListResponse | DocumentContent,
)
def get_documents(
    entity_type: str,
    entity_id: str,
    path: str | None = None,
    file_path: str | None = Query(default=None, alias="filePath"),
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    """List a folder, or read one file when ``filePath`` is given."""
    if file_path:
        return documents.read(db, scope, entity_type, entity_id, file_path)
    return documents.list(db, scope, entity_type, entity_id, path)


@router.post(
    "/{entity_type}/{entity_id}",
    response_model=DocumentItem,
    status_code=status.HTTP_201_CREATED,
)
def upload_document(
    entity_type: str,
    entity_id: str,
    file: UploadFile = File(...),
    destination: str | None = Form(default=None),
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return documents.upload(
        db,
        scope,
        entity_type,
        entity_id,
        destination,
        file.filename or "",
        file.file.read(),
        file.content_type,
    )


@router.post(
    "/{entity_type}/{entity_id}/folders",
    response_model=DocumentItem,
    status_code=status.HTTP_201_CREATED,
)
def create_document_folder(
    entity_type: str,
    entity_id: str,
    payload: FolderCreateRequest,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return documents.create_folder(
        db, scope, entity_type, entity_id, payload.parent_path, payload.name
    )
