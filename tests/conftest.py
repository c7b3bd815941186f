"""
Pytest fixtures for the auth session tests.

Every test gets a fresh app on its own SQLite file so rows never leak
between tests.
"""
import pytest

from api import create_app
from models import storage
from models.user import User
from utils.security import hash_password

PASSWORD = "correct horse battery"


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", DATABASE_URL=f"sqlite:///{tmp_path / 'auth.db'}")
    yield app
    with app.app_context():
        storage.drop_all()


@pytest.fixture
def ctx(app):
    """Run the test body inside an application context."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email: str, role: str | None = "patient", password: str = PASSWORD) -> User:
    user = User(email=email, password_hash=hash_password(password), role=role)
    storage.new(user)
    storage.save()
    return user


@pytest.fixture
def user(ctx):
    return make_user("alice@example.com")


@pytest.fixture
def other_user(ctx):
    return make_user("bob@example.com", role="doctor")
