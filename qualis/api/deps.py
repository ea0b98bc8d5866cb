import logging
from collections.abc import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from qualis.config import settings
from qualis.db import SessionLocal
from qualis.models.profile import Profile
from qualis.services.access import AccessScope, resolve_scope
from qualis.services.common import coerce_uuid

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> dict:
    """Verify an access token issued by the hosted auth provider."""
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is not configured",
        )
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as e:
        logger.info("Rejected bearer token: %s", e)
        raise _unauthorized("Invalid or expired token")


def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    if credentials is None:
        raise _unauthorized("Not authenticated")
    claims = decode_token(credentials.credentials)
    subject = claims.get("sub")
    if not subject:
        raise _unauthorized("Invalid token: missing subject")
    try:
        profile_id = coerce_uuid(subject)
    except HTTPException:
        raise _unauthorized("Invalid token: malformed subject")
    profile = db.get(Profile, profile_id)
    if not profile:
        raise _unauthorized("No profile for this account")
    if not profile.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")
    return profile


def get_scope(
    actor: Profile = Depends(get_current_actor), db: Session = Depends(get_db)
) -> AccessScope:
    return resolve_scope(db, actor)
