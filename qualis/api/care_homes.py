from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from qualis.api.deps import get_db, get_scope
from qualis.schemas.care_home import CareHomeCreate, CareHomeRead, CareHomeUpdate
from qualis.schemas.common import ListResponse
from qualis.services import care_homes as care_home_service
from qualis.services.access import AccessScope
from qualis.services.inflight import mutation_guard

router = APIRouter(prefix="/care-homes", tags=["care-homes"])


@router.post("", response_model=CareHomeRead, status_code=status.HTTP_201_CREATED)
def create_care_home(
    payload: CareHomeCreate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> CareHomeRead:
    with mutation_guard.hold(scope.actor_id, "care_homes.create", payload.name):
        home = care_home_service.care_homes.create(db, scope, payload)
        db.commit()
    return home


@router.get("/{care_home_id}", response_model=CareHomeRead)
def get_care_home(
    care_home_id: str,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> CareHomeRead:
    return care_home_service.care_homes.get(db, scope, care_home_id)


@router.get("", response_model=ListResponse[CareHomeRead])
def list_care_homes(
    search: str | None = None,
    is_active: bool | None = True,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=200),
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return care_home_service.care_homes.list(db, scope, search, is_active, page, limit)


@router.patch("/{care_home_id}", response_model=CareHomeRead)
def update_care_home(
    care_home_id: str,
    payload: CareHomeUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> CareHomeRead:
    return care_home_service.care_homes.update(db, scope, care_home_id, payload)
