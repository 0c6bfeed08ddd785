"""
Pytest fixtures: a fresh SQLite file per test, the seeded catalog and
staff accounts, small factories for clients/pets/appointments, and a
FastAPI TestClient bound to the same database.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from vetclinic import config
from vetclinic.auth_models import User, UserRole
from vetclinic.auth_service import register_client
from vetclinic.db import configure_engine, db_session, init_db
from vetclinic.seed import seed_base
from vetclinic.services import appointments, pets
from vetclinic.services.access import Actor

CLIENT_PASSWORD = "Client#2024"


def next_clinic_day(days_ahead: int = 7) -> date:
    """A future Monday-Saturday."""
    d = date.today() + timedelta(days=days_ahead)
    while d.weekday() == 6:
        d += timedelta(days=1)
    return d


def at(day: date, hh: int, mm: int = 0) -> datetime:
    return datetime.combine(day, time(hh, mm))


@pytest.fixture(autouse=True)
def database(tmp_path):
    configure_engine(f"sqlite:///{tmp_path / 'test.sqlite'}")
    init_db()
    seed_base()
    yield


def _actor_for(email: str) -> Actor:
    with db_session() as s:
        u = s.execute(select(User).where(User.email == email)).scalar_one()
        return Actor(user_id=u.id, role=u.role)


@pytest.fixture
def admin() -> Actor:
    return _actor_for(config.SEED_ADMIN_EMAIL)


@pytest.fixture
def vet() -> Actor:
    return _actor_for(config.SEED_VET_EMAIL)


@pytest.fixture
def make_client():
    counter = iter(range(1, 1000))

    def _make(email: str | None = None, first_name: str = "Juan", last_name: str = "Dela Cruz") -> tuple[Actor, dict]:
        email = email or f"owner{next(counter)}@example.com"
        res = register_client(email, CLIENT_PASSWORD, first_name, last_name, "09171112222", city="Quezon City")
        return Actor(user_id=res["user_id"], role=UserRole.CLIENT), res

    return _make


@pytest.fixture
def client_actor(make_client) -> Actor:
    actor, _ = make_client("owner@example.com")
    return actor


@pytest.fixture
def make_pet():
    def _make(owner: Actor, name: str = "Bantay", species: str = "Dog", **extra) -> dict:
        fields = {"name": name, "species": species, "date_of_birth": "2020-05-01", **extra}
        return pets.create_pet(owner, fields)

    return _make


@pytest.fixture
def pet(client_actor, make_pet) -> dict:
    return make_pet(client_actor)


@pytest.fixture
def book():
    def _book(actor: Actor, pet_id: str, start: datetime, service: str = "consultation", **kw) -> dict:
        return appointments.book_appointment(actor, pet_id, service, start, **kw)

    return _book


@pytest.fixture
def api() -> TestClient:
    from vetclinic.api_main import app

    return TestClient(app)


@pytest.fixture
def login(api):
    def _login(email: str, password: str) -> dict[str, str]:
        r = api.post("/api/auth/login", data={"username": email, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login
