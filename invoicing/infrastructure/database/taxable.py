"""Taxable attributes on SQLAlchemy models.

Models opt in by inheriting ``TaxableMixin``, listing their net amount
columns in ``__taxable_attributes__`` and binding a tax rule at start-up::

    class LineItemModel(TaxableMixin, BaseModel):
        __taxable_attributes__ = ("net_amount",)
        ...

    LineItemModel.bind_tax_rule(VAT(registry))

Taxed values set through ``set_taxed`` are staged on the instance and
converted into the net column when the session flushes. ``TaxableSession``
carries the ``before_flush`` hook doing that conversion, so the tax rule sees
the record as it is about to be written.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Any, ClassVar, Self

from loguru import logger
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, UOWTransaction
from sqlalchemy.orm.attributes import flag_dirty

from invoicing.core.config import get_settings
from invoicing.core.exceptions import ErrorCode, InvoicingError, Severity, ValidationError
from invoicing.core.types import AmountInput
from invoicing.money import format_value, round_to_currency_precision
from invoicing.tax.rules import TaxRule
from invoicing.tax.taxable import RoundingError, TaxableAttribute


class TaxableMixin:
    """Mixin giving a model taxed views of its net amount columns."""

    __taxable_attributes__: ClassVar[tuple[str, ...]] = ()
    _tax_rule: ClassVar[TaxRule | None] = None

    # Per-instance map of attribute name to TaxableAttribute, created lazily
    # because SQLAlchemy does not call __init__ for loaded instances
    _taxable_state = None

    @classmethod
    def bind_tax_rule(cls, rule: TaxRule) -> None:
        """Set the tax rule used by all instances of this model."""
        cls._tax_rule = rule
        logger.info(
            "Bound tax rule {} to {}", type(rule).__name__, cls.__name__
        )

    @classmethod
    def tax_rule(cls) -> TaxRule:
        """Return the bound tax rule.

        Raises:
            InvoicingError: If no rule has been bound to the model.
        """
        if cls._tax_rule is None:
            msg = f"No tax rule bound to {cls.__name__}"
            raise InvoicingError(
                ErrorCode.INTERNAL_ERROR, msg, Severity.HIGH, {"model": cls.__name__}
            )
        return cls._tax_rule

    @classmethod
    def currency_precision(cls) -> int:
        """Fractional digits the amounts of this model are rounded to."""
        return get_settings().currency_config.precision

    def _taxable(self, name: str) -> TaxableAttribute:
        if name not in self.__taxable_attributes__:
            msg = f"{type(self).__name__}.{name} is not a taxable attribute"
            raise ValidationError(msg, context={"attribute": name})

        if self._taxable_state is None:
            self._taxable_state = {}
        attribute = self._taxable_state.get(name)
        if attribute is None:
            attribute = TaxableAttribute(
                name,
                self.tax_rule(),
                subject=self,
                internal_value=getattr(self, name),
                precision=self.currency_precision(),
            )
            self._taxable_state[name] = attribute
        else:
            self._sync(attribute)
        return attribute

    def _sync(self, attribute: TaxableAttribute) -> None:
        """Pick up a net amount written to the column directly."""
        stored = getattr(self, attribute.name)
        if stored != attribute.internal_value:
            attribute.internal_value = stored

    def taxed(self, name: str) -> Decimal | None:
        """Return the amount of ``name`` including tax."""
        return self._taxable(name).taxed

    def set_taxed(self, name: str, value: AmountInput | None) -> None:
        """Stage an amount including tax for ``name``, converted on flush."""
        self._taxable(name).set_taxed(value)
        state = inspect(self)
        if state.persistent:
            # Make sure the session picks the instance up as dirty
            flag_dirty(self)

    def tax_rounding_error(self, name: str) -> RoundingError:
        """Return the rounding error of the last conversion of ``name``."""
        return self._taxable(name).rounding_error

    def tax_info(self, name: str) -> str:
        """Return the note shown next to the taxed amount of ``name``."""
        return self._taxable(name).tax_info

    def tax_details(self, name: str) -> str:
        """Return the note naming the tax applied to ``name``."""
        return self._taxable(name).tax_details

    def formatted(self, name: str, code: str | None = None) -> str | None:
        """Return the net amount of ``name`` formatted in a currency.

        Args:
            name: The taxable attribute.
            code: ISO 4217 code. Defaults to the configured default currency.
        """
        value = self._taxable(name).internal_value
        return None if value is None else format_value(value, code)

    def taxed_formatted(self, name: str, code: str | None = None) -> str | None:
        """Return the amount of ``name`` including tax, formatted in a currency."""
        value = self.taxed(name)
        return None if value is None else format_value(value, code)

    def has_staged_taxed_values(self) -> bool:
        """Whether any taxed value is waiting to be converted."""
        return any(attr.is_staged for attr in (self._taxable_state or {}).values())

    def _round_column(self, name: str) -> None:
        stored = getattr(self, name)
        if stored is None:
            return
        rounded = round_to_currency_precision(stored, self.currency_precision())
        if rounded != stored:
            setattr(self, name, rounded)

    def convert_taxed_attributes(self) -> dict[str, RoundingError]:
        """Convert staged taxed values into their net amount columns.

        Net amounts written to the columns directly win over any staged taxed
        value and are rounded to currency precision.

        Returns:
            dict[str, RoundingError]: The rounding error of each converted
                attribute.
        """
        results: dict[str, RoundingError] = {}
        for name in self.__taxable_attributes__:
            attribute = (self._taxable_state or {}).get(name)
            if attribute is not None:
                self._sync(attribute)
            if attribute is None or not attribute.is_staged:
                self._round_column(name)
                continue

            results[name] = attribute.commit()
            setattr(self, name, attribute.internal_value)
            logger.debug(
                "Converted taxed value of {}.{}",
                type(self).__name__,
                name,
                attribute=name,
                rounding_error=attribute.rounding_error.value,
            )
        return results

    @classmethod
    def with_taxed(cls, **values: Any) -> Self:
        """Create an instance, staging taxed values given as ``<name>_taxed``."""
        taxed = {
            key.removesuffix("_taxed"): values.pop(key)
            for key in list(values)
            if key.endswith("_taxed")
        }
        instance = cls(**values)
        for name, value in taxed.items():
            instance.set_taxed(name, value)
        return instance


class TaxableSession(Session):
    """Session converting staged taxed values before every flush."""


def _taxable_instances(session: Session) -> Iterable[TaxableMixin]:
    for instance in (*session.new, *session.dirty):
        if isinstance(instance, TaxableMixin):
            yield instance


@event.listens_for(TaxableSession, "before_flush")
def _convert_before_flush(
    session: Session, _flush_context: UOWTransaction, _instances: object
) -> None:
    converted = 0
    for instance in _taxable_instances(session):
        if instance.convert_taxed_attributes():
            converted += 1
    if converted:
        logger.debug("Converted taxed values on {} instances before flush", converted)
