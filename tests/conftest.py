# tests/conftest.py

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ["NOTIFY_URL"] = ""

import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from app.accounts.model import ROLE_ADMIN, ROLE_USER
from app.payouts.memory import MemoryStore
from app.storage import set_store
from app.wallets.store import open_wallet
from deps.store import get_dispatcher, get_store
from main import create_app
from security import create_access_token
from services import metrics


class RecordingDispatcher:
    """Stands in for the notification webhook; keeps what would have been sent."""

    enabled = True

    def __init__(self):
        self.sent: List[Tuple[str, Dict[str, Any]]] = []

    def send(self, event_type: str, payload: Dict[str, Any]) -> bool:
        self.sent.append((event_type, dict(payload)))
        return True

    def types(self) -> List[str]:
        return [t for t, _ in self.sent]


# ---------------------------
# Store + collaborators
# ---------------------------

@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def store() -> MemoryStore:
    s = MemoryStore(lock_timeout_s=2.0)
    set_store(s)
    yield s
    set_store(None)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def make_user(store):
    def _make(
        balance: Any = "100",
        *,
        name: Optional[str] = "Affiliate",
        email: Optional[str] = "affiliate@example.com",
        role: str = ROLE_USER,
        wallet: bool = True,
        kyc_status: Optional[str] = None,
        user_status: str = "approved",
    ) -> uuid.UUID:
        user_id = uuid.uuid4()
        store.add_profile(
            user_id,
            name=name,
            email=email,
            role=role,
            user_status=user_status,
            kyc_status=kyc_status,
        )
        if wallet:
            open_wallet(store, user_id, Decimal(str(balance)))
        return user_id

    return _make


@pytest.fixture
def admin_id(make_user) -> uuid.UUID:
    return make_user(name="Ops Admin", email="ops@example.com", role=ROLE_ADMIN, wallet=False)


# ---------------------------
# Client + Auth Helpers
# ---------------------------

def auth_headers(user_id: uuid.UUID) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user_id))}"}


@pytest.fixture
def app(store, dispatcher):
    application = create_app()
    application.dependency_overrides[get_store] = lambda: store
    application.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return application


@pytest.fixture
def client(app) -> TestClient:
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth():
    return auth_headers
