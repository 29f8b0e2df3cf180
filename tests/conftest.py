import os
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite://")

import bcrypt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import exam_api.models.db  # noqa: F401
from exam_api.database import Base
from exam_api.models.catalog import CatalogImport
from exam_api.models.db.user import User, UserRole
from exam_api.services.auth_service import issue_token
from exam_api.services.catalog_service import SqlCatalog, import_catalog

PASSWORD = "secret123"
# Low cost factor keeps fixtures fast; verify_password reads rounds from the hash
PASSWORD_HASH = bcrypt.hashpw(PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")

CATALOG = {
    "tests": [
        {
            "id": "physics-1",
            "title": "Physics mock",
            "creator": "dave",
            "durationSec": 600,
            "sections": ["Mechanics"],
            "questions": [
                {
                    "id": "q-mcq",
                    "type": "MCQ",
                    "prompt": "Pick the vector quantity",
                    "options": ["mass", "velocity", "time", "energy"],
                    "answerKey": {"correctOption": 1},
                    "marks": 4,
                    "negativeMarks": -1,
                    "subject": "Physics",
                    "section": "Mechanics",
                },
                {
                    "id": "q-msq",
                    "type": "MSQ",
                    "prompt": "Pick the noble gases",
                    "options": ["He", "O", "Ne", "N"],
                    "answerKey": {"correctOptions": [0, 2]},
                    "marks": 4,
                    "negativeMarks": -2,
                    "subject": "Chemistry",
                },
                {
                    "id": "q-num",
                    "type": "NUMERICAL",
                    "prompt": "g in m/s^2",
                    "answerKey": {"value": 9.8, "tolerance": 0.05},
                    "marks": 3,
                    "marksOverride": 5,
                    "subject": "Physics",
                    "section": "Mechanics",
                    "solution": "Standard gravity",
                },
            ],
        },
        {
            "id": "draft-1",
            "title": "Unpublished",
            "durationSec": 600,
            "status": "draft",
            "questions": [
                {"id": "q-draft", "type": "MCQ", "answerKey": {"correctOption": 0}},
            ],
        },
        {
            "id": "group-1",
            "title": "Group only",
            "creator": "dave",
            "durationSec": 300,
            "visibility": "group_only",
            "questions": [
                {"id": "q-g1", "type": "MCQ", "answerKey": {"correctOption": 2}, "marks": 2},
            ],
        },
        {
            "id": "private-1",
            "title": "Private",
            "durationSec": 300,
            "visibility": "private",
            "questions": [
                {"id": "q-p1", "type": "MCQ", "answerKey": {"correctOption": 0}},
            ],
        },
    ],
    "groups": [
        {
            "id": "g1",
            "name": "Batch A",
            "owner": "dave",
            "members": ["alice", "bob"],
            "tests": ["group-1", "physics-1"],
        },
    ],
}


def make_user(db: Session, username: str, role: UserRole = UserRole.STUDENT) -> User:
    user = User(
        id=f"u-{username}",
        username=username,
        email=f"{username}@example.com",
        hashed_password=PASSWORD_HASH,
        role=role.value,
        display_name=username.title(),
    )
    db.add(user)
    db.commit()
    return user


def auth_headers(db: Session, user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(db, user).access_token}"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def users(db: Session) -> dict[str, User]:
    return {
        "alice": make_user(db, "alice"),
        "bob": make_user(db, "bob"),
        "carol": make_user(db, "carol"),
        "dave": make_user(db, "dave", UserRole.CREATOR),
    }


@pytest.fixture
def seeded(db: Session, users: dict[str, User]) -> dict[str, User]:
    import_catalog(db, CatalogImport.model_validate(CATALOG))
    return users


@pytest.fixture
def catalog(db: Session) -> SqlCatalog:
    return SqlCatalog(db)


class Clock:
    """Settable replacement for utc_now."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> Clock:
    from exam_api.services import attempt_service

    fake = Clock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))
    monkeypatch.setattr(attempt_service, "utc_now", fake)
    return fake
