"""Shared fixtures for integration tests.

Integration tests run the ORM against an in-memory SQLite database through a
synchronous engine, so they need no running PostgreSQL server.
"""

from collections.abc import Generator
from datetime import UTC, datetime
from decimal import Decimal

import pytest
from sqlalchemy import Engine, create_engine

from invoicing.core.config import get_settings
from invoicing.countries import VAT
from invoicing.infrastructure.database.base import Base
from invoicing.infrastructure.database.models import LineItemModel, TaxRateModel
from invoicing.infrastructure.database.taxable import TaxableSession
from invoicing.rates import RateRegistry, RateTable, TaxRate


def utc(*args: int) -> datetime:
    """Build an aware UTC datetime."""
    return datetime(*args, tzinfo=UTC)


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch: pytest.MonkeyPatch) -> Generator[None]:
    """Run every test with default currency settings."""
    monkeypatch.delenv("CURRENCY_CONFIG__PRECISION", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def standard_vat_rates() -> list[TaxRate]:
    """UK standard VAT across the 2009 reduction.

    Returns:
        list[TaxRate]: Rates chained 1 -> 2 -> 3.
    """
    return [
        TaxRate(
            id=1,
            description="Standard VAT",
            rate=Decimal("0.175"),
            valid_from=utc(1991, 4, 1),
            valid_until=utc(2008, 12, 1),
            replaced_by_id=2,
            is_default=True,
            category="standard",
        ),
        TaxRate(
            id=2,
            description="Standard VAT (temporary reduction)",
            rate=Decimal("0.15"),
            valid_from=utc(2008, 12, 1),
            valid_until=utc(2010, 1, 1),
            replaced_by_id=3,
            is_default=True,
            category="standard",
        ),
        TaxRate(
            id=3,
            description="Standard VAT",
            rate=Decimal("0.175"),
            valid_from=utc(2010, 1, 1),
            is_default=True,
            category="standard",
        ),
    ]


@pytest.fixture
def db_engine() -> Generator[Engine]:
    """In-memory SQLite engine with all tables created."""
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(
    db_engine: Engine, standard_vat_rates: list[TaxRate]
) -> Generator[TaxableSession]:
    """Session on a database seeded with the standard VAT rates."""
    with TaxableSession(db_engine) as session:
        session.add_all(TaxRateModel.from_domain(rate) for rate in standard_vat_rates)
        session.commit()
        yield session


@pytest.fixture
def vat_line_items(
    monkeypatch: pytest.MonkeyPatch, standard_vat_rates: list[TaxRate]
) -> type[LineItemModel]:
    """LineItemModel charged UK VAT, unbound again after the test."""
    monkeypatch.setattr(LineItemModel, "_tax_rule", None)
    registry = RateRegistry(RateTable.from_rates(standard_vat_rates))
    LineItemModel.bind_tax_rule(VAT(registry))
    return LineItemModel
