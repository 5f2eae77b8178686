"""Global test fixtures and shared test infrastructure.

Provides:
- Environment variable defaults (must be set before any app import)
- RecordingNotifier / FailingNotifier implementing the Notifier contract
- BrokenStore: an InMemoryLoanStore whose writes can be made to fail
- FrozenClock and SequentialIds for deterministic timestamps and ids
- Shared pytest fixtures: store, notifier, engine, app, client
"""

from __future__ import annotations

import os

# Environment defaults — must be set before importing the app, which triggers
# pydantic Settings validation on import.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.exceptions import NotificationError
from app.main import create_app
from app.models.loan import Loan, LoanState
from app.services.loan_engine import LoanEngine
from app.services.loan_store import InMemoryLoanStore
from app.services.notifier import Notifier


# ---------------------------------------------------------------------------
# Notifier fakes
# ---------------------------------------------------------------------------


class RecordingNotifier(Notifier):
    """Records every ``notify`` call in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str | None]] = []

    def notify(self, email: str, loan_id: str, agreement_url: str | None) -> None:
        self.calls.append((email, loan_id, agreement_url))

    @property
    def recipients(self) -> list[str]:
        return [email for email, _, _ in self.calls]


class FailingNotifier(RecordingNotifier):
    """Fails for the listed addresses; records every attempt, failed or not."""

    def __init__(self, fail_for: set[str] | None = None, exc: Exception | None = None) -> None:
        super().__init__()
        self.fail_for = fail_for
        self.exc = exc

    def notify(self, email: str, loan_id: str, agreement_url: str | None) -> None:
        super().notify(email, loan_id, agreement_url)
        if self.fail_for is None or email in self.fail_for:
            raise self.exc or NotificationError(f"smtp rejected {email}")


# ---------------------------------------------------------------------------
# Store fakes
# ---------------------------------------------------------------------------


class BrokenStore(InMemoryLoanStore):
    """In-memory store whose ``save`` / ``update`` / scans can be told to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_save: Exception | None = None
        self.fail_update: Exception | None = None
        self.fail_scan: Exception | None = None
        self.update_calls = 0

    def save(self, loan: Loan) -> None:
        if self.fail_save is not None:
            raise self.fail_save
        super().save(loan)

    def update(self, loan: Loan) -> None:
        self.update_calls += 1
        if self.fail_update is not None:
            raise self.fail_update
        super().update(loan)

    def find_all(self, page: int, limit: int) -> list[Loan]:
        if self.fail_scan is not None:
            raise self.fail_scan
        return super().find_all(page, limit)

    def find_by_state(self, state: LoanState) -> list[Loan]:
        if self.fail_scan is not None:
            raise self.fail_scan
        return super().find_by_state(state)


# ---------------------------------------------------------------------------
# Deterministic clock / ids
# ---------------------------------------------------------------------------


class FrozenClock:
    """Returns ``start`` then advances one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


class SequentialIds:
    def __init__(self, prefix: str = "loan") -> None:
        self.prefix = prefix
        self.counter = 0

    def __call__(self) -> str:
        self.counter += 1
        return f"{self.prefix}-{self.counter}"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_approved_loan(engine: LoanEngine, principal="1000", borrower_id: str = "B001") -> Loan:
    loan = engine.create_loan(borrower_id, Decimal(principal), Decimal("10"), Decimal("15"))
    engine.approve_loan(loan.id, "VALID-001", "https://storage.example.com/proof.jpeg")
    return engine.get_loan(loan.id)


def make_invested_loan(engine: LoanEngine, principal="1000") -> Loan:
    loan = make_approved_loan(engine, principal)
    engine.add_investment(loan.id, "INV-001", "inv1@example.com", Decimal(principal))
    return engine.get_loan(loan.id)


# ---------------------------------------------------------------------------
# Shared pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> BrokenStore:
    return BrokenStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def engine(store, notifier, clock) -> LoanEngine:
    return LoanEngine(store, notifier, clock=clock, id_factory=SequentialIds())


@pytest.fixture
def app(engine):
    application = create_app(engine)
    # Fresh limiter per app so request counts never leak between tests.
    application.state.limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
