"""Account registration, login, logout and identity."""
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session as DbSession

from exam_api.database import get_db
from exam_api.dependencies.auth import get_current_user, security
from exam_api.models.auth import AuthResponse, LogoutResponse, UserLogin, UserRegister, UserResponse
from exam_api.models.db.user import User
from exam_api.services import auth_service

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _auth_response(issued: auth_service.IssuedToken) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(issued.user),
        access_token=issued.access_token,
        expires_in=issued.expires_in,
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: UserRegister,
    db: Annotated[DbSession, Depends(get_db)],
) -> AuthResponse:
    """Create a student account and sign it in."""
    user = auth_service.register_user(
        db, data.username, data.email, data.password, display_name=data.display_name
    )
    return _auth_response(auth_service.issue_token(db, user))


@router.post("/login", response_model=AuthResponse)
def login(
    data: UserLogin,
    db: Annotated[DbSession, Depends(get_db)],
) -> AuthResponse:
    user = auth_service.authenticate(db, data.login, data.password)
    return _auth_response(auth_service.issue_token(db, user))


@router.post("/logout", response_model=LogoutResponse)
def logout(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[DbSession, Depends(get_db)],
) -> LogoutResponse:
    revoked = credentials is not None and auth_service.revoke_token(db, credentials.credentials)
    return LogoutResponse(revoked=revoked)


@router.get("/me", response_model=UserResponse)
def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    return current_user
