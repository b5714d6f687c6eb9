"""Tax rules: strategies converting between net and taxed amounts.

A tax rule decides how a net amount stored on a record is shown to users
(``display_price``) and how an amount typed by a user is turned back into a
net amount (``input_price``). Rules receive the owning record as ``subject``
so that they can look at its effective date or its own tax classification.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable

from loguru import logger

from invoicing.core.exceptions import NoApplicableRateError
from invoicing.core.types import RateId
from invoicing.rates import RateSource, RateTable, TaxRate, as_instant, resolve_table


class TaxSubject(Protocol):
    """The record a taxable amount belongs to."""

    @property
    def tax_point(self) -> datetime | None:
        """The date at which the sale or service is taxed. None means now."""
        ...

    @property
    def tax_rate_id(self) -> RateId | None:
        """The tax rate the record is classified under, if any."""
        ...


@runtime_checkable
class TaxRule(Protocol):
    """Conversion between net amounts and the amounts users see and type."""

    def display_price(self, value: Decimal, subject: TaxSubject | None = None) -> Decimal:
        """Return the amount shown to users for the net amount ``value``."""
        ...

    def input_price(self, value: Decimal, subject: TaxSubject | None = None) -> Decimal:
        """Return the net amount for the amount ``value`` entered by a user."""
        ...

    def tax_info(self, subject: TaxSubject | None = None) -> str:
        """Return a short note shown next to taxed amounts."""
        ...

    def tax_details(self, subject: TaxSubject | None = None) -> str:
        """Return a longer note naming the tax applied."""
        ...


def effective_date(subject: TaxSubject | None) -> datetime:
    """Return the instant at which a subject's amounts are taxed."""
    tax_point = subject.tax_point if subject is not None else None
    if tax_point is None:
        return datetime.now(UTC)
    return as_instant(tax_point)


class NoTax:
    """Rule for amounts which carry no tax: displayed and entered as stored."""

    def display_price(self, value: Decimal, subject: TaxSubject | None = None) -> Decimal:
        return value

    def input_price(self, value: Decimal, subject: TaxSubject | None = None) -> Decimal:
        return value

    def tax_info(self, subject: TaxSubject | None = None) -> str:
        return ""

    def tax_details(self, subject: TaxSubject | None = None) -> str:
        return ""


class RateBasedTax:
    """Shared arithmetic of rules applying a single percentage rate."""

    label = "tax"

    def rate_for(self, subject: TaxSubject | None) -> Decimal:
        raise NotImplementedError

    def tax_factor(self, subject: TaxSubject | None = None) -> Decimal:
        """Return ``1 + rate`` for the subject."""
        return Decimal(1) + self.rate_for(subject)

    def tax_percent(self, subject: TaxSubject | None = None) -> Decimal:
        """Return the rate for the subject as a percentage."""
        return Decimal(100) * self.rate_for(subject)

    def display_price(self, value: Decimal, subject: TaxSubject | None = None) -> Decimal:
        return value * self.tax_factor(subject)

    def input_price(self, value: Decimal, subject: TaxSubject | None = None) -> Decimal:
        return value / self.tax_factor(subject)

    def tax_info(self, subject: TaxSubject | None = None) -> str:
        return f"(inc. {self.label})"

    def tax_details(self, subject: TaxSubject | None = None) -> str:
        """Return a note naming the percentage, e.g. "(including tax at 20%)"."""
        percent = self.tax_percent(subject).normalize()
        return f"(including {self.label} at {percent:f}%)"


class FixedRateTax(RateBasedTax):
    """Rule applying one constant rate regardless of date.

    Args:
        rate: The tax fraction, e.g. ``Decimal("0.2")``.
        label: Name of the tax used in notes.
    """

    def __init__(self, rate: Decimal, label: str = "tax") -> None:
        self.rate = rate
        self.label = label

    def rate_for(self, subject: TaxSubject | None) -> Decimal:
        return self.rate


class FlatRateTax(RateBasedTax):
    """Rule applying the rate in effect at the subject's tax point.

    The rate is looked up every time, so a record dated before a rate change
    keeps the old rate.

    Args:
        rates: The table to resolve rates from, or a registry publishing it.
        category: Only use rates of this category, e.g. ``"standard"``.
        label: Name of the tax used in notes.
    """

    def __init__(
        self, rates: RateSource, category: str | None = None, label: str = "tax"
    ) -> None:
        self.rates = rates
        self.category = category
        self.label = label

    @property
    def rate_table(self) -> RateTable:
        """The table currently used for lookups."""
        return resolve_table(self.rates)

    def applicable_rate(self, subject: TaxSubject | None = None) -> TaxRate:
        """Return the rate in effect at the subject's tax point.

        Raises:
            NoApplicableRateError: If no rate of the category covers the date.
        """
        when = effective_date(subject)
        rate = self.rate_table.rate_at(when, self.category)
        if rate is None:
            logger.warning(
                "No tax rate applies at {}", when.isoformat(), category=self.category
            )
            msg = f"No tax rate applies at {when.isoformat()}"
            raise NoApplicableRateError(
                msg, {"date": when.isoformat(), "category": self.category}
            )
        return rate

    def rate_for(self, subject: TaxSubject | None) -> Decimal:
        return self.applicable_rate(subject).rate
