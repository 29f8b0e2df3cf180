"""
Accounts and bearer tokens.

A token is a JWT carrying the user id (``sub``), the role it was issued for
(``role``) and a session id (``jti``). Every request re-checks the session
row, so logout and role changes take effect before the JWT itself expires.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session as DbSession

from exam_api.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
    SECRET_KEY,
    SESSION_EXTEND_MINUTES,
)
from exam_api.errors import Conflict, Unauthorized
from exam_api.models.db.user import AuthSession, User, UserRole
from exam_api.utils.time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedToken:
    user: User
    access_token: str
    expires_in: int  # seconds


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def register_user(
    db: DbSession,
    username: str,
    email: str,
    password: str,
    role: UserRole = UserRole.STUDENT,
    display_name: str | None = None,
) -> User:
    """
    Create an account.

    Raises:
        Conflict: USERNAME_TAKEN or EMAIL_TAKEN.
    """
    email = email.strip().lower()
    taken = db.execute(
        select(User.username, User.email).where(
            or_(User.username == username, User.email == email)
        )
    ).first()
    if taken is not None:
        raise Conflict("USERNAME_TAKEN" if taken.username == username else "EMAIL_TAKEN")

    user = User(
        username=username,
        email=email,
        hashed_password=hash_password(password),
        role=role.value,
        display_name=display_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered %s %s", user.role, user.username)
    return user


def authenticate(db: DbSession, login: str, password: str) -> User:
    """
    Look up an active account by username or email and check its password.

    Raises:
        Unauthorized: INVALID_CREDENTIALS.
    """
    user = db.execute(
        select(User).where(or_(User.username == login, User.email == login.strip().lower()))
    ).scalars().first()
    if user is None or not user.is_active or not verify_password(password, user.hashed_password):
        raise Unauthorized("INVALID_CREDENTIALS")
    return user


def issue_token(db: DbSession, user: User) -> IssuedToken:
    """Open a session for the user and sign a token bound to it."""
    now = utc_now()
    jti = uuid.uuid4().hex
    expires_at = now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    db.add(AuthSession(user_id=user.id, token_jti=jti, expires_at=expires_at, last_seen_at=now))
    db.commit()

    claims = {"sub": user.id, "role": user.role, "jti": jti, "exp": expires_at}
    token = jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)
    return IssuedToken(user=user, access_token=token, expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60)


def _decode(token: str) -> dict:
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise Unauthorized("INVALID_TOKEN")
    if not claims.get("sub") or not claims.get("jti"):
        raise Unauthorized("INVALID_TOKEN")
    return claims


def resolve_token(db: DbSession, token: str) -> User:
    """
    Return the user behind a bearer token and slide its session forward.

    Raises:
        Unauthorized: the token is malformed, its session is revoked or
            expired, the account is inactive, or the account's role changed
            since the token was issued.
    """
    claims = _decode(token)
    now = utc_now()
    session = db.execute(
        select(AuthSession).where(AuthSession.token_jti == claims["jti"])
    ).scalar_one_or_none()
    if (
        session is None
        or session.user_id != claims["sub"]
        or session.revoked_at is not None
        or ensure_utc(session.expires_at) <= now
    ):
        raise Unauthorized("SESSION_EXPIRED")

    user = session.user
    if not user.is_active:
        raise Unauthorized("SESSION_EXPIRED")
    if user.role != claims.get("role"):
        raise Unauthorized("ROLE_CHANGED")

    session.last_seen_at = now
    session.expires_at = max(
        ensure_utc(session.expires_at), now + timedelta(minutes=SESSION_EXTEND_MINUTES)
    )
    db.commit()
    return user


def revoke_token(db: DbSession, token: str) -> bool:
    """Revoke the session behind a token. False if it was not live."""
    try:
        claims = _decode(token)
    except Unauthorized:
        return False
    result = db.execute(
        update(AuthSession)
        .where(AuthSession.token_jti == claims["jti"], AuthSession.revoked_at.is_(None))
        .values(revoked_at=utc_now())
    )
    db.commit()
    return result.rowcount == 1
