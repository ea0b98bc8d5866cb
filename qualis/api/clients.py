from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from qualis.api.deps import get_db, get_scope
from qualis.schemas.care_home import ClientCreate, ClientRead, ClientUpdate
from qualis.schemas.common import ListResponse
from qualis.services import clients as client_service
from qualis.services.access import AccessScope
from qualis.services.inflight import mutation_guard

router = APIRouter(prefix="/clients", tags=["clients"])


@router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> ClientRead:
    with mutation_guard.hold(scope.actor_id, "clients.create", payload.care_home_id):
        client = client_service.clients.create(db, scope, payload)
        db.commit()
    return client


@router.get("/{client_id}", response_model=ClientRead)
def get_client(
    client_id: str, scope: AccessScope = Depends(get_scope), db: Session = Depends(get_db)
) -> ClientRead:
    return client_service.clients.get(db, scope, client_id)


@router.get("", response_model=ListResponse[ClientRead])
def list_clients(
    search: str | None = None,
    status: str = Query(default="active", pattern="^(active|inactive|all)$"),
    care_home_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=200),
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return client_service.clients.list(
        db, scope, search, status, care_home_id, page, limit
    )


@router.patch("/{client_id}", response_model=ClientRead)
def update_client(
    client_id: str,
    payload: ClientUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> ClientRead:
    return client_service.clients.update(db, scope, client_id, payload)
