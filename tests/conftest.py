import pytest
from sqlalchemy.exc import OperationalError

import security.password
from app import create_app
from config import TestConfig
from models import db
from models.department import Department
from models.user import User, avatar_initials
from security.password import hash_password
from security.rbac import Role

PASSWORD = "Secret123"


class BrokenQuery:
    """Stands in for a model query whose database is unreachable."""

    def filter(self, *criteria):
        return self

    def all(self):
        raise OperationalError("SELECT", {}, Exception("no such table"))


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(security.password, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role=Role.EMPLOYEE, name=None, username=None, password=PASSWORD,
              department=None, is_active=True):
        counter["n"] += 1
        n = counter["n"]
        username = username or f"user{n}"
        name = name or f"Test User {n}"
        user = User(
            username=username,
            email=f"{username}@example.com",
            name=name,
            role=Role(role).value,
            password_hash=hash_password(password),
            department=department,
            avatar=avatar_initials(name),
            is_active=is_active,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_department(app):
    def _make(name="Engineering", sort_order=0):
        dept = Department(name=name, sort_order=sort_order)
        db.session.add(dept)
        db.session.commit()
        return dept

    return _make


def csrf_headers(client):
    cookie = client.get_cookie("csrf_token")
    return {"X-CSRF-Token": cookie.value} if cookie else {}


@pytest.fixture
def login(client):
    def _login(user, password=PASSWORD):
        resp = client.post("/auth/login", json={"username": user.username, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return csrf_headers(client)

    return _login


@pytest.fixture
def client_for(app, make_user):
    """A logged-in test client of its own, with CSRF headers, for the given role."""
    def _client(role=Role.EMPLOYEE, **kwargs):
        user = make_user(role=role, **kwargs)
        c = app.test_client()
        resp = c.post("/auth/login", json={"username": user.username, "password": PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return c, user, csrf_headers(c)

    return _client
