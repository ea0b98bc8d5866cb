from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from qualis.api.deps import get_db, get_scope
from qualis.schemas.common import ListResponse
from qualis.schemas.profile import CareHomeAssignmentUpdate, UserAdminUpdate, UserRead
from qualis.services import profiles as profile_service
from qualis.services.access import AccessScope

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=ListResponse[UserRead])
def list_users(
    role: str | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=25, ge=1, le=200),
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return profile_service.users.list(db, scope, role, search, page, limit)


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: str, scope: AccessScope = Depends(get_scope), db: Session = Depends(get_db)
) -> dict:
    user = profile_service.users.get(db, scope, user_id)
    return profile_service.user_view(db, user)


@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: str,
    payload: UserAdminUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    user = profile_service.users.update(db, scope, user_id, payload)
    return profile_service.user_view(db, user)


@router.put("/{user_id}/care-homes", response_model=UserRead)
def set_user_care_homes(
    user_id: str,
    payload: CareHomeAssignmentUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    user = profile_service.users.set_care_homes(db, scope, user_id, payload)
    return profile_service.user_view(db, user)
