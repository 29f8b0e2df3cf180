"""Bearer-token identity and role guards."""
from collections.abc import Callable
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session as DbSession

from exam_api.database import get_db
from exam_api.errors import Forbidden, Unauthorized
from exam_api.models.db.user import User, UserRole
from exam_api.services.auth_service import resolve_token

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[DbSession, Depends(get_db)],
) -> User:
    """The account behind the request's bearer token.

    Raises:
        Unauthorized: no token, or the token no longer resolves to a live session.
    """
    if credentials is None:
        raise Unauthorized()
    return resolve_token(db, credentials.credentials)


def require_role(*roles: UserRole) -> Callable[..., User]:
    """Dependency admitting only accounts holding one of ``roles``."""

    async def dependency(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if not current_user.has_role(*roles):
            raise Forbidden()
        return current_user

    return dependency


# Attempts belong to students only
require_student = require_role(UserRole.STUDENT)
require_manager = require_role(UserRole.CREATOR, UserRole.ADMIN)
