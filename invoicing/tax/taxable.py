"""Taxable attributes: net amounts shown and entered including tax.

A taxable attribute stores its amount net of tax (the internal value) but
users see and type it including tax (the external value). Converting a
taxed amount back to a net amount and rounding both to currency precision
does not always round-trip: with a tax rate of 17.5%, no net amount in whole
pennies displays as 0.03, so a user typing 0.03 gets 0.03 stored and sees
0.04 next time. ``from_taxed`` reports that discrepancy instead of hiding it.

Setting a taxed value only stages it. The conversion happens when the
attribute is committed, so the rule sees the record as it is at that point
(for example after its tax point has been changed in the same edit).
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from decimal import Decimal
from enum import Enum

from loguru import logger

from invoicing.core.constants import CURRENCY_PRECISION
from invoicing.core.types import AmountInput
from invoicing.money import round_to_currency_precision, to_decimal
from invoicing.tax.rules import TaxRule, TaxSubject


class RoundingError(Enum):
    """How a taxed amount entered by a user compares to what will be shown."""

    NONE = "none"
    """The amount round-trips exactly."""

    HIGH = "high"
    """The amount shown will be higher than the amount entered."""

    LOW = "low"
    """The amount shown will be lower than the amount entered."""


def to_taxed(
    internal_value: AmountInput | None,
    rule: TaxRule,
    subject: TaxSubject | None = None,
    precision: int = CURRENCY_PRECISION,
) -> Decimal | None:
    """Return the amount including tax for a net amount.

    Args:
        internal_value: The stored net amount, or None.
        rule: The tax rule to apply.
        subject: The record the amount belongs to.
        precision: Number of fractional digits of the currency.

    Returns:
        Decimal | None: The taxed amount rounded to currency precision, or
            None if ``internal_value`` is None.
    """
    if internal_value is None:
        return None
    taxed = rule.display_price(to_decimal(internal_value), subject)
    return round_to_currency_precision(taxed, precision)


def from_taxed(
    external_value: AmountInput | None,
    rule: TaxRule,
    subject: TaxSubject | None = None,
    precision: int = CURRENCY_PRECISION,
) -> tuple[Decimal | None, RoundingError]:
    """Convert an amount including tax back to a net amount.

    Args:
        external_value: The taxed amount entered by a user, or None.
        rule: The tax rule to apply.
        subject: The record the amount belongs to.
        precision: Number of fractional digits of the currency.

    Returns:
        tuple[Decimal | None, RoundingError]: The net amount and how the
            amount displayed for it compares to ``external_value``.

    Example:
        >>> from_taxed("0.03", FixedRateTax(Decimal("0.175")))
        (Decimal('0.03'), <RoundingError.HIGH: 'high'>)
    """
    if external_value is None:
        return None, RoundingError.NONE

    external = round_to_currency_precision(external_value, precision)
    internal = round_to_currency_precision(rule.input_price(external, subject), precision)
    roundtrip = round_to_currency_precision(
        rule.display_price(internal, subject), precision
    )

    if roundtrip > external:
        error = RoundingError.HIGH
    elif roundtrip < external:
        error = RoundingError.LOW
    else:
        error = RoundingError.NONE

    if error is not RoundingError.NONE:
        logger.debug(
            "Taxed amount {} will display as {}",
            external,
            roundtrip,
            rounding_error=error.value,
        )
    return internal, error


class TaxableAttribute:
    """One net amount of a record, viewed and edited including tax.

    Args:
        name: Name of the attribute on the record, e.g. ``"net_amount"``.
        rule: The tax rule converting the amount.
        subject: The record the amount belongs to.
        internal_value: The stored net amount.
        precision: Number of fractional digits of the currency.

    Example:
        price = TaxableAttribute("price", vat, subject=item, internal_value="100")
        price.taxed  # Decimal("117.50")
        price.set_taxed("0.03")
        price.commit()
        price.rounding_error  # RoundingError.HIGH
    """

    def __init__(
        self,
        name: str,
        rule: TaxRule,
        subject: TaxSubject | None = None,
        internal_value: AmountInput | None = None,
        precision: int = CURRENCY_PRECISION,
    ) -> None:
        self.name = name
        self.rule = rule
        self.subject = subject
        self.precision = precision
        self._internal = None if internal_value is None else to_decimal(internal_value)
        self._external: Decimal | None = None
        self._staged = False
        self.rounding_error = RoundingError.NONE

    @property
    def internal_value(self) -> Decimal | None:
        """The stored net amount."""
        return self._internal

    @internal_value.setter
    def internal_value(self, value: AmountInput | None) -> None:
        self._internal = None if value is None else to_decimal(value)
        self._external = None
        self._staged = False
        self.rounding_error = RoundingError.NONE

    @property
    def is_staged(self) -> bool:
        """Whether a taxed value is waiting to be committed."""
        return self._staged

    @property
    def taxed(self) -> Decimal | None:
        """The amount including tax.

        A staged value is returned as entered; otherwise the amount is
        computed from the net amount.
        """
        if self._staged:
            return self._external
        return to_taxed(self._internal, self.rule, self.subject, self.precision)

    def set_taxed(self, value: AmountInput | None) -> None:
        """Stage an amount including tax, to be converted on ``commit``."""
        self._external = (
            None
            if value is None
            else round_to_currency_precision(value, self.precision)
        )
        self._staged = True

    def commit(self) -> RoundingError:
        """Convert a staged taxed value into the net amount.

        Returns:
            RoundingError: The discrepancy of the committed value. Without a
                staged value the previous result is kept.
        """
        if not self._staged:
            return self.rounding_error

        self._internal, self.rounding_error = from_taxed(
            self._external, self.rule, self.subject, self.precision
        )
        self._external = None
        self._staged = False
        return self.rounding_error

    @property
    def tax_info(self) -> str:
        """Note shown next to the taxed amount, e.g. "(inc. VAT)"."""
        return self.rule.tax_info(self.subject)

    @property
    def tax_details(self) -> str:
        return self.rule.tax_details(self.subject)

    def __repr__(self) -> str:
        return (
            f"TaxableAttribute(name={self.name!r}, internal_value={self._internal!r}, "
            f"staged={self._staged}, rounding_error={self.rounding_error.name})"
        )


class TaxableAttributes(Mapping[str, TaxableAttribute]):
    """The taxable attributes of one record, keyed by name."""

    def __init__(self, attributes: Mapping[str, TaxableAttribute] | None = None) -> None:
        self._attributes: dict[str, TaxableAttribute] = dict(attributes or {})

    @classmethod
    def for_subject(
        cls,
        subject: TaxSubject,
        names: Mapping[str, AmountInput | None],
        rule: TaxRule,
        precision: int = CURRENCY_PRECISION,
    ) -> TaxableAttributes:
        """Create attributes for ``subject`` from a map of name to net amount."""
        return cls(
            {
                name: TaxableAttribute(name, rule, subject, value, precision)
                for name, value in names.items()
            }
        )

    def __getitem__(self, name: str) -> TaxableAttribute:
        return self._attributes[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def add(self, attribute: TaxableAttribute) -> None:
        """Register an attribute under its name."""
        self._attributes[attribute.name] = attribute

    def staged(self) -> list[TaxableAttribute]:
        """Return the attributes holding an uncommitted taxed value."""
        return [attr for attr in self._attributes.values() if attr.is_staged]

    def commit(self) -> dict[str, RoundingError]:
        """Commit every staged attribute.

        Returns:
            dict[str, RoundingError]: The rounding error of each attribute.
        """
        return {name: attr.commit() for name, attr in self._attributes.items()}
