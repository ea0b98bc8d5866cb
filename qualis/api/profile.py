from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from qualis.api.deps import get_db, get_scope
from qualis.schemas.profile import ProfileRead, ProfileSelfUpdate
from qualis.services import profiles as profile_service
from qualis.services.access import AccessScope

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("/me", response_model=ProfileRead)
def get_my_profile(
    scope: AccessScope = Depends(get_scope), db: Session = Depends(get_db)
) -> ProfileRead:
    return profile_service.profiles.me(db, scope)


@router.patch("/me", response_model=ProfileRead)
def update_my_profile(
    payload: ProfileSelfUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> ProfileRead:
    return profile_service.profiles.update_me(db, scope, payload)
