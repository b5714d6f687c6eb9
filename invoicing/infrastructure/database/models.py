"""Database models for tax rates and invoice line items."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, false
from sqlalchemy.orm import Mapped, mapped_column

from invoicing.infrastructure.constants import (
    NUMERIC_PRECISION,
    NUMERIC_SCALE,
    RATE_SCALE,
)
from invoicing.infrastructure.database.base import BaseModel, PrimaryKeyType
from invoicing.infrastructure.database.taxable import TaxableMixin
from invoicing.money import round_to_currency_precision
from invoicing.rates import TaxRate
from invoicing.tax.taxable import RoundingError


class TaxRateModel(BaseModel):
    """A persisted tax rate.

    Rows are never edited once a rate is in use. A rate change is stored as
    a new row, with ``replaced_by_id`` of the expiring row pointing at it.
    """

    __tablename__ = "tax_rates"

    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    rate: Mapped[Decimal] = mapped_column(
        Numeric(NUMERIC_PRECISION, RATE_SCALE), nullable=False
    )
    valid_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    valid_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    replaced_by_id: Mapped[int | None] = mapped_column(
        PrimaryKeyType, ForeignKey("tax_rates.id"), nullable=True
    )
    is_default: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    category: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    def to_domain(self) -> TaxRate:
        """Return the immutable rate used by ``RateTable``."""
        return TaxRate(
            id=self.id,
            description=self.description or "",
            rate=self.rate,
            valid_from=self.valid_from,
            valid_until=self.valid_until,
            replaced_by_id=self.replaced_by_id,
            is_default=self.is_default,
            category=self.category,
        )

    @classmethod
    def from_domain(cls, rate: TaxRate) -> "TaxRateModel":
        """Create a row for a rate, keeping its id."""
        return cls(
            id=rate.id,
            description=rate.description,
            rate=rate.rate,
            valid_from=rate.valid_from,
            valid_until=rate.valid_until,
            replaced_by_id=rate.replaced_by_id,
            is_default=rate.is_default,
            category=rate.category,
        )


class LineItemModel(TaxableMixin, BaseModel):
    """An invoice line whose amount is entered and shown including tax.

    ``net_amount`` is stored net of tax; ``tax_amount`` is derived from it on
    every flush.
    """

    __tablename__ = "line_items"
    __taxable_attributes__ = ("net_amount",)

    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    net_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(NUMERIC_PRECISION, NUMERIC_SCALE), nullable=True
    )
    tax_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(NUMERIC_PRECISION, NUMERIC_SCALE), nullable=True
    )
    tax_point: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    tax_rate_id: Mapped[int | None] = mapped_column(
        PrimaryKeyType, ForeignKey("tax_rates.id"), nullable=True
    )

    def convert_taxed_attributes(self) -> dict[str, RoundingError]:
        results = super().convert_taxed_attributes()
        if self.net_amount is None:
            self.tax_amount = None
        elif self._tax_rule is not None:
            gross = self.taxed("net_amount")
            if gross is not None:
                net = round_to_currency_precision(
                    self.net_amount, self.currency_precision()
                )
                self.tax_amount = gross - net
        return results
