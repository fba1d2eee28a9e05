"""Pytest fixtures for the supermarket core tests."""

import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

from core.models.product import Product
from core.services.catalog_service import CatalogService
from core.services.invoice_builder import InvoiceBuilder
from core.services.invoice_service import InvoiceService
from core.services.state import ShopState
from core.settings import Settings
from core.storage.json_store import JsonStore

FIXED_NOW = datetime(2024, 3, 10, 14, 30, 0)


class FakeTimer:
    """Timer that only fires when the test says so."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if not t.cancelled]


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_dir):
    return Settings(data_dir=temp_dir, autosave_delay=0.5)


@pytest.fixture
def store(temp_dir):
    return JsonStore(temp_dir, backup_keep=2)


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def state():
    return ShopState(
        products=[
            Product(id="A", name="Rice", price=Decimal("25.50"), quantity=5, category="Grains", barcode="111"),
            Product(id="B", name="Oil", price=Decimal("45.00"), quantity=10, category="Oils", barcode="222"),
            Product(id="C", name="Sugar", price=Decimal("18.75"), quantity=0, category="Grains"),
        ]
    )


@pytest.fixture
def catalog(state):
    return CatalogService(state)


@pytest.fixture
def invoices(state, settings):
    return InvoiceService(state, settings)


@pytest.fixture
def builder(catalog, invoices):
    return InvoiceBuilder(catalog, invoices, clock=lambda: FIXED_NOW)


@pytest.fixture
def now():
    return FIXED_NOW
