"""
Test configuration and fixtures for Nutrinea Billing.

Provides in-memory stores, a mocked gateway client and an app wired to them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

import pytest
from unittest.mock import MagicMock, AsyncMock

from fastapi.testclient import TestClient

from app.domain.subscription import (
    SubscriptionRecord,
    SubscriptionStatus,
    WebhookLogStatus,
)


FIXED_NOW = datetime(2024, 1, 31, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# In-memory Stores
# =============================================================================

@dataclass
class FakeUser:
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    tax_id: Optional[str] = None
    subscription_status: str = SubscriptionStatus.FREE.value
    subscription_expires_at: Optional[datetime] = None
    external_subscription_id: Optional[str] = None
    external_customer_id: Optional[str] = None


class FakeUserStore:
    """Dict-backed stand-in for UserRepository."""

    def __init__(self):
        self.users: Dict[str, FakeUser] = {}
        self.updates: List[tuple] = []
        self.fail_updates = False
        self.fail_reads = False

    def add_user(self, user_id: str, **fields) -> FakeUser:
        user = FakeUser(id=user_id, **fields)
        self.users[user_id] = user
        return user

    def _check_reads(self) -> None:
        if self.fail_reads:
            from app.infrastructure.exceptions import DatabaseError
            raise DatabaseError("connection lost", operation="select", table="users")

    async def get_by_id(self, user_id: str) -> Optional[FakeUser]:
        self._check_reads()
        return self.users.get(user_id)

    async def get_subscription(self, user_id: str) -> Optional[SubscriptionRecord]:
        self._check_reads()
        user = self.users.get(user_id)
        if user is None:
            return None
        return SubscriptionRecord(
            status=user.subscription_status,
            expires_at=user.subscription_expires_at,
            external_subscription_id=user.external_subscription_id,
            external_customer_id=user.external_customer_id,
        )

    async def find_by_external_customer_id(self, external_customer_id: str) -> Optional[FakeUser]:
        for user in self.users.values():
            if user.external_customer_id == external_customer_id:
                return user
        return None

    async def update_fields(self, user_id: str, fields: Dict[str, Any]) -> bool:
        if self.fail_updates:
            from app.infrastructure.exceptions import DatabaseError
            raise DatabaseError("connection lost", operation="update", table="users")

        self.updates.append((user_id, dict(fields)))
        user = self.users.get(user_id)
        if user is None:
            return False
        for key, value in fields.items():
            setattr(user, key, value)
        return True


@dataclass
class FakeLogEntry:
    payload: Any
    status: str
    details: str
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class FakeWebhookLogStore:
    """List-backed stand-in for WebhookLogRepository."""

    def __init__(self):
        self.entries: List[FakeLogEntry] = []

    async def add(self, payload: Any, status: WebhookLogStatus, details: str) -> FakeLogEntry:
        entry = FakeLogEntry(
            payload=payload,
            status=WebhookLogStatus(status).value,
            details=details,
        )
        self.entries.append(entry)
        return entry

    async def list_recent(self, limit: int = 50, status: Optional[str] = None) -> List[FakeLogEntry]:
        entries = [e for e in reversed(self.entries) if status is None or e.status == status]
        return entries[:limit]

    def with_status(self, status: WebhookLogStatus) -> List[FakeLogEntry]:
        return [e for e in self.entries if e.status == status.value]


# =============================================================================
# Store / Mock Fixtures
# =============================================================================

@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def user_store():
    return FakeUserStore()


@pytest.fixture
def log_store():
    return FakeWebhookLogStore()


@pytest.fixture
def mock_gateway():
    """Mock for AsaasClient."""
    mock = MagicMock()
    mock.get_customer_external_reference = AsyncMock(return_value=None)
    mock.cancel_subscription = AsyncMock(return_value={"deleted": True})
    mock.find_customer_by_tax_id = AsyncMock(return_value=None)
    mock.create_customer = AsyncMock(return_value={"id": "cus_new"})
    mock.create_payment = AsyncMock()
    mock.get_payment = AsyncMock()
    mock.get_pix_qr_code = AsyncMock(
        return_value={"encodedImage": "iVBORw0KGgo=", "payload": "00020126pix"}
    )
    mock.create_subscription = AsyncMock()
    return mock


@pytest.fixture
def current_user_id():
    return "user-1"


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app(user_store, log_store, mock_gateway, current_user_id):
    """FastAPI application with stores, gateway and auth overridden."""
    from app.main import app
    from app.api.dependencies import (
        get_current_user_id,
        get_gateway,
        get_optional_gateway,
        get_user_repository,
        get_webhook_log_repository,
    )

    app.dependency_overrides[get_user_repository] = lambda: user_store
    app.dependency_overrides[get_webhook_log_repository] = lambda: log_store
    app.dependency_overrides[get_gateway] = lambda: mock_gateway
    app.dependency_overrides[get_optional_gateway] = lambda: mock_gateway
    app.dependency_overrides[get_current_user_id] = lambda: current_user_id
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Get synchronous test client."""
    return TestClient(app)


@pytest.fixture
def admin_key(monkeypatch):
    """Configure and return the admin API key."""
    from app.config.settings import get_settings

    monkeypatch.setattr(get_settings(), "admin_api_key", "test-admin-key")
    return "test-admin-key"
