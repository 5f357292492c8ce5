"""Shared fixtures: in-memory database, API client and bearer tokens."""
from datetime import date
from uuid import UUID, uuid4

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event

from backoffice_core import crud, schemas
from backoffice_core.api.main import create_app
from backoffice_core.config import get_settings
from backoffice_core.database import Database
from backoffice_core.permissions import Actor


@pytest.fixture
def database():
    """Fresh in-memory SQLite database with every table created."""
    db_handle = Database("sqlite://").init(create_tables=True)
    yield db_handle
    db_handle.shutdown()


@pytest.fixture
def db(database):
    """Session on the test database."""
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def fail_commits(db):
    """
    Make commits on the test session fail.

    ``fail_commits()`` refuses every later commit with ``RuntimeError``;
    ``fail_commits(skip=n)`` lets the next n commits through first.
    """
    listeners = []

    def _arm(skip: int = 0):
        remaining = [skip]

        def _before_commit(session):
            if remaining[0] > 0:
                remaining[0] -= 1
                return
            raise RuntimeError("commit refused")

        event.listen(db, "before_commit", _before_commit)
        listeners.append(_before_commit)

    yield _arm
    for listener in listeners:
        event.remove(db, "before_commit", listener)


@pytest.fixture
def client(database):
    """API client bound to the test database."""
    app = create_app(database=database)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_token():
    """Build signed bearer tokens for a user id and roles."""
    settings = get_settings()

    def _make(user_id: UUID, *roles: str) -> str:
        return jwt.encode(
            {"userId": str(user_id), "roles": list(roles)},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )

    return _make


@pytest.fixture
def auth_headers(make_token):
    """Authorization headers for a user id and roles."""

    def _headers(user_id: UUID, *roles: str) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id, *roles)}"}

    return _headers


@pytest.fixture
def admin():
    return Actor(user_id=uuid4(), roles=["Admin"])


@pytest.fixture
def manager():
    return Actor(user_id=uuid4(), roles=["Manager"])


@pytest.fixture
def consultant_actor():
    return Actor(user_id=uuid4(), roles=["Consultant"])


@pytest.fixture
def consultant(db):
    return crud.create_consultant(db, schemas.ConsultantCreate(
        first_name="Alice",
        last_name="Rivera",
        job_title="Controller",
        pay_type="Hourly",
        pay_rate=55.0,
        hourly_rate=55.0,
    ))


@pytest.fixture
def acme(db):
    return crud.create_client(db, schemas.ClientCreate(client_name="Acme Corp"))


@pytest.fixture
def add_line(db):
    """Create a timecard line with sensible defaults."""

    def _add(consultant_id, timesheet_date=date(2024, 1, 3), **fields):
        return crud.create_timecard_line(db, schemas.TimecardLineCreate(
            consultant_id=consultant_id,
            timesheet_date=timesheet_date,
            **fields,
        ))

    return _add
