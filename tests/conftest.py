"""Pytest fixtures for settlement tests."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from quotepay.contracts import Customer, ProductSnapshot, QuoteItem
from quotepay.database import InMemoryQuoteStore
from quotepay.integrations import MockPaymentGateway
from quotepay.settlement import PaymentOrchestrator


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def item(unit_price, quantity, name="Widget"):
    return QuoteItem(ProductSnapshot(name=name, unit_price=unit_price), quantity)


@pytest.fixture
def instant_sleep():
    async def _sleep(_seconds):
        # Yield to the loop without waiting for real time.
        await asyncio.sleep(0)

    return _sleep


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def quote_store(clock):
    """In-memory quote store driven by the fake clock."""
    return InMemoryQuoteStore(clock=clock)


@pytest.fixture
def gateway(quote_store, clock):
    return MockPaymentGateway(quote_store, clock=clock)


@pytest.fixture
def orchestrator(gateway, quote_store, clock):
    return PaymentOrchestrator(gateway, quote_store, clock=clock)


@pytest.fixture
def make_quote(quote_store):
    def _make(items=None, discount_pct=0, tax_pct=0, **kwargs):
        return quote_store.create_quote(
            Customer(name="Ana Customer", email="ana@example.com"),
            items or [item(1000, 2), item(500, 1)],
            discount_pct,
            tax_pct,
            **kwargs,
        )

    return _make
