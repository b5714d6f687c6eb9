"""Shared fixtures for unit tests."""

import os
from collections.abc import Generator
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from invoicing.core.config import get_settings
from invoicing.rates import RateTable, TaxRate


def utc(*args: int) -> datetime:
    """Build an aware UTC datetime."""
    return datetime(*args, tzinfo=UTC)


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_env(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[pytest.MonkeyPatch]:
    """Remove invoicing environment variables for the duration of a test.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    original_env = os.environ.copy()

    env_prefixes = [
        "ENVIRONMENT",
        "DEBUG",
        "LOG_CONFIG__",
        "CURRENCY_CONFIG__",
        "DATABASE_CONFIG__",
    ]
    for key in list(os.environ.keys()):
        if any(key.startswith(prefix) for prefix in env_prefixes):
            monkeypatch.delenv(key, raising=False)

    yield monkeypatch

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def uk_vat_rates() -> list[TaxRate]:
    """UK standard VAT from 1991, including the 2009 reduction to 15%.

    Returns:
        list[TaxRate]: Standard rates chained 1 -> 2 -> 3, plus a zero rate.
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
        TaxRate(
            id=4,
            description="Zero rate",
            rate=Decimal(0),
            valid_from=utc(1991, 4, 1),
            category="zero",
        ),
    ]


@pytest.fixture
def uk_vat_table(uk_vat_rates: list[TaxRate]) -> RateTable:
    """Table holding the UK VAT rates."""
    return RateTable.from_rates(uk_vat_rates)


@pytest.fixture
def time_dependent_table() -> RateTable:
    """Ten rates exercising replacement chains between 2008 and 2011.

    Chains (``*`` marks default rates)::

        2008 -> 2009 -> 2010 -> 2011
        1    -> none
        2    -> 3    -> 4
        5    -> 3
        none -> 6*   -> 7*   -> none
        8                    -> 9*
        10

    Returns:
        RateTable: The populated table.
    """
    rows = [
        (1, "2008-01-01", "2009-01-01", None, "One", False),
        (2, "2008-01-01", "2009-01-01", 3, "Two", False),
        (3, "2009-01-01", "2010-01-01", 4, "Three", False),
        (4, "2010-01-01", None, None, "Four", False),
        (5, "2008-01-01", "2009-01-01", 3, "Five", False),
        (6, "2009-01-01", "2010-01-01", 7, "Six", True),
        (7, "2010-01-01", "2011-01-01", None, "Seven", True),
        (8, "2008-01-01", "2011-01-01", 9, "Eight", False),
        (9, "2011-01-01", None, None, "Nine", True),
        (10, "2008-01-01", None, None, "Ten", False),
    ]
    return RateTable.from_rates(
        TaxRate(
            id=rate_id,
            description=description,
            rate=Decimal("0.1"),
            valid_from=valid_from,
            valid_until=valid_until,
            replaced_by_id=replaced_by_id,
            is_default=is_default,
        )
        for rate_id, valid_from, valid_until, replaced_by_id, description, is_default in rows
    )
