"""
Shared pytest fixtures for Academy Portal tests.

Sets required environment variables BEFORE any portal module is imported so that
pydantic-settings and SQLAlchemy engine initialisation use safe test values.
"""
from __future__ import annotations

import asyncio
import os
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, List, Optional

# ── Set env vars before any portal import ─────────────────────────────────────
os.environ.setdefault("BOT_TOKEN", "test-token-for-pytest")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# ── Third-party ───────────────────────────────────────────────────────────────
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# ── Portal imports (safe after env vars are set) ──────────────────────────────
from portal.enrollment import (
    EnrollmentRejected,
    EnrollmentRequest,
    EnrollmentResponse,
    EnrollmentWizard,
    TrainingSession,
)
from portal.models.base import Base

TODAY = date(2026, 10, 19)


# ── DB fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a fresh AsyncSession backed by an isolated in-memory SQLite database.
    Schema is created fresh for every test function; engine is always disposed
    on teardown, even if the test raises an exception.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with factory() as session:
            yield session
    finally:
        await engine.dispose()


# ── Catalog / wizard fixtures ─────────────────────────────────────────────────

def make_session(
    id: str = "bb-u12",
    sport: str = "Basketball",
    level: str = "U12",
    gender: str = "Male",
    min_age: int = 9,
    max_age: int = 12,
    price: str = "90.00",
    **kwargs,
) -> TrainingSession:
    return TrainingSession(
        id=id, sport=sport, level=level, gender=gender,
        min_age=min_age, max_age=max_age, price=Decimal(price), **kwargs,
    )


@pytest.fixture
def catalog() -> List[TrainingSession]:
    return [
        make_session("bb-u12", level="U12", min_age=9,  max_age=12, price="90.00"),
        make_session("bb-u16", level="U16", min_age=13, max_age=16, price="120.00"),
        make_session("vb-u12", sport="Volleyball", level="U12", gender="Female",
                     min_age=8, max_age=12, price="90.00"),
    ]


@pytest.fixture
def wizard(catalog) -> EnrollmentWizard:
    """Fresh wizard whose clock always reads TODAY."""
    return EnrollmentWizard(catalog, clock=lambda: TODAY)


def fill_athlete(wizard: EnrollmentWizard, index: int = 0, name: str = "Jordan Smith",
                 dob: date = date(2015, 3, 1), gender: str = "Male",
                 session_id: Optional[str] = "bb-u12") -> None:
    wizard.update_athlete(index, "name", name)
    wizard.update_athlete(index, "dob", dob)
    wizard.update_athlete(index, "gender", gender)
    if session_id:
        assert wizard.select_session(index, session_id)


def fill_to_payment(wizard: EnrollmentWizard) -> None:
    """Drive a one-athlete wizard from ATHLETE_INFO to PAYMENT with valid data."""
    fill_athlete(wizard)
    assert wizard.advance()
    wizard.update_field("parent_name", "Jane Doe")
    wizard.update_field("email", "jane@example.com")
    wizard.update_field("phone", "5551234567")
    assert wizard.advance()
    wizard.set_waiver_agreed(True)
    wizard.update_field("waiver_signature", "jane doe")
    assert wizard.advance()


def fill_card(wizard: EnrollmentWizard) -> None:
    wizard.update_field("card_number", "4242424242424242")
    wizard.update_field("expiry", "1229")
    wizard.update_field("cvc", "123")


# ── Gateway doubles ───────────────────────────────────────────────────────────

class FakeGateway:
    """
    Records every request. Optionally blocks on ``release`` so tests can
    observe the in-flight state, and raises ``error`` instead of answering.
    """

    def __init__(
        self,
        response: Optional[EnrollmentResponse] = None,
        error: Optional[Exception] = None,
        block: bool = False,
    ) -> None:
        self.response = response or EnrollmentResponse(is_new_account=True, parent_id=1)
        self.error = error
        self.calls: List[EnrollmentRequest] = []
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        if not block:
            self.release.set()

    async def enroll(self, request: EnrollmentRequest) -> EnrollmentResponse:
        self.calls.append(request)
        self.started.set()
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def rejecting_gateway() -> FakeGateway:
    return FakeGateway(error=EnrollmentRejected("Basketball U12 is full"))


# ── Factory fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def session_factory():
    """Factory fixture — returns a callable that builds a TrainingSession."""
    return make_session


@pytest.fixture
def athlete_filler():
    return fill_athlete


@pytest.fixture
def to_payment():
    return fill_to_payment


@pytest.fixture
def card_filler():
    return fill_card


@pytest.fixture
def gateway_factory():
    """Factory fixture — returns the FakeGateway class for custom setups."""
    return FakeGateway


@pytest.fixture
def today() -> date:
    return TODAY
