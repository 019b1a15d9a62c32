import pytest
from fastapi.testclient import TestClient

from shortener.config import Settings
from shortener.main import create_app

ADMIN_KEY = "test-admin-key"


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        base_url="http://sho.rt/",
        admin_api_key=ADMIN_KEY,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def admin_headers():
    return {"x-admin-key": ADMIN_KEY}
