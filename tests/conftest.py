import pytest
from fastapi.testclient import TestClient

from pizzaboard.database.supabase_client import get_supabase
from pizzaboard.main import app
from pizzaboard.modules.auth.service import clear_auth_cache
from tests.fakes import FakeSupabase

ALICE = "11111111-aaaa-4000-8000-000000000001"
BOB = "22222222-bbbb-4000-8000-000000000002"
CAROL = "33333333-cccc-4000-8000-000000000003"
DAVE = "44444444-dddd-4000-8000-000000000004"


@pytest.fixture
def db():
    fake = FakeSupabase()
    fake.add_profile(ALICE, "alice", "Alice")
    fake.add_profile(BOB, "bob", "Bob")
    fake.add_profile(CAROL, "carol", "Carol")
    fake.add_profile(DAVE, "dave", "Dave")
    return fake


@pytest.fixture(autouse=True)
def reset_auth_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_supabase] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(db):
    """Bearer headers for a seeded user, registering the token with the fake auth API."""
    def _headers(user_id: str) -> dict:
        token = db.auth.add_user(user_id, f"{user_id[:8]}@example.com")
        return {"Authorization": f"Bearer {token}"}
    return _headers
