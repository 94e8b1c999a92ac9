from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import agency_billing.models  # noqa: F401
from agency_billing.core.deps import RequestUser, get_current_user
from agency_billing.db.base import Base
from agency_billing.db.session import get_db
from agency_billing.main import app
from agency_billing.models.client import Client
from agency_billing.models.enums import Role, TaskStatus
from agency_billing.models.project import Project
from agency_billing.models.task import Task

NOW = datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)


def at(year: int, month: int, day: int, hour: int = 10) -> datetime:
    return datetime(year, month, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def make_client(db):
    counter = {"n": 0}

    def _make(name: str = "Acme", email: Optional[str] = None, **prices) -> Client:
        counter["n"] += 1
        client = Client(name=name, email=email or f"client{counter['n']}@example.com", **prices)
        db.add(client)
        db.commit()
        return client

    return _make


@pytest.fixture()
def make_project(db):
    def _make(client: Optional[Client], name: str = "Retainer") -> Project:
        project = Project(name=name, client_id=client.id if client else None)
        db.add(project)
        db.commit()
        return project

    return _make


@pytest.fixture()
def make_task(db):
    def _make(
        *,
        client: Optional[Client] = None,
        project: Optional[Project] = None,
        service_type: Optional[str] = "Poster Design",
        scheduled_date: Optional[datetime] = None,
        status: TaskStatus = TaskStatus.DONE,
        title: str = "Launch poster",
    ) -> Task:
        task = Task(
            title=title,
            status=status,
            service_type=service_type,
            scheduled_date=scheduled_date,
            client_id=client.id if client else None,
            project_id=project.id if project else None,
        )
        db.add(task)
        db.commit()
        return task

    return _make


@pytest.fixture()
def poster_client(make_client):
    return make_client(name="Acme Studio", email="billing@acme.test", poster_design_price=Decimal("500.00"))


@pytest.fixture()
def acting_user():
    return {"user": RequestUser(id="u-admin", email="admin@agency.test", role=Role.ADMIN)}


@pytest.fixture()
def api(db, acting_user):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    def override_get_current_user():
        return acting_user["user"]

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    client_instance = TestClient(app)
    try:
        yield client_instance
    finally:
        client_instance.close()
        app.dependency_overrides.clear()


def act_as(acting_user: dict, role: Role, email: str = "someone@example.com") -> None:
    acting_user["user"] = RequestUser(id=f"u-{role.value.lower()}", email=email, role=role)
