"""Currency rounding and formatting of monetary values.

Amounts are ``decimal.Decimal`` throughout. Never store currency amounts as
binary floats: if the figures do not add up exactly, someone will spend
expensive hours looking for the missing pennies. Floats handed in by callers
are read through their shortest ``repr`` (``0.175`` becomes ``Decimal("0.175")``,
not ``0.17499999999999998889...``) before any rounding happens.

Amounts are rounded to the precision conventional for their currency before
they are stored. Storing more digits than are displayed makes totals appear
not to add up when shown to users.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import NamedTuple

from invoicing.core.config import get_settings
from invoicing.core.constants import (
    CURRENCY_PRECISION,
    CURRENCY_ROUNDING,
    DEFAULT_ROUNDING_UNIT,
)
from invoicing.core.exceptions import ValidationError
from invoicing.core.types import AmountInput


class CurrencyInfo(NamedTuple):
    """Display and rounding conventions for one currency."""

    code: str
    symbol: str
    round: Decimal
    suffix: bool
    space: bool
    digits: int


# Known currencies by ISO 4217 code. Missing keys fall back to the defaults
# in currency_info(): the code as symbol, rounding to 0.01, symbol as prefix.
CURRENCIES: dict[str, dict[str, object]] = {
    "EUR": {"symbol": "€"},  # Euro
    "GBP": {"symbol": "£"},  # Pound Sterling
    "USD": {"symbol": "$"},  # United States Dollar
    "CAD": {"symbol": "$"},  # Canadian Dollar
    "AUD": {"symbol": "$"},  # Australian Dollar
    "CNY": {"symbol": "元", "suffix": True},  # Chinese Yuan (RMB)
    "INR": {"symbol": "₨"},  # Indian Rupee
    "JPY": {"symbol": "¥", "round": 1},  # Japanese Yen
}


def to_decimal(value: AmountInput) -> Decimal:
    """Convert a monetary input to ``Decimal`` without binary float error.

    Args:
        value: A Decimal, integer, float or numeric string.

    Returns:
        Decimal: The exact decimal value.

    Raises:
        ValidationError: If the value is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        msg = f"Boolean {value!r} is not a monetary amount"
        raise ValidationError(msg, context={"value": repr(value)})
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            msg = f"{value!r} is not a valid monetary amount"
            raise ValidationError(msg, context={"value": repr(value)}, cause=e) from e

    if not result.is_finite():
        msg = f"{value!r} is not a finite monetary amount"
        raise ValidationError(msg, context={"value": repr(value)})
    return result


def _quantize(value: Decimal, quantum: Decimal) -> Decimal:
    try:
        return value.quantize(quantum, rounding=CURRENCY_ROUNDING)
    except InvalidOperation as e:
        # The result needs more digits than the decimal context allows
        msg = f"{value} cannot be rounded to {quantum}"
        raise ValidationError(
            msg, context={"value": str(value), "quantum": str(quantum)}, cause=e
        ) from e


def round_to_currency_precision(
    value: AmountInput, precision: int = CURRENCY_PRECISION
) -> Decimal:
    """Round an amount to ``precision`` fractional digits, ties away from zero.

    Args:
        value: The amount to round.
        precision: Number of fractional digits to keep.

    Returns:
        Decimal: The rounded amount, with exactly ``precision`` digits.

    Raises:
        ValidationError: If the value is not a finite number or too large to
            be held with ``precision`` digits.

    Examples:
        >>> round_to_currency_precision("2.345")
        Decimal('2.35')
        >>> round_to_currency_precision(-2.345)
        Decimal('-2.35')
    """
    quantum = Decimal(1).scaleb(-precision)
    return _quantize(to_decimal(value), quantum)


def round_to_unit(value: AmountInput, unit: AmountInput) -> Decimal:
    """Round an amount to a multiple of a currency's smallest unit.

    Args:
        value: The amount to round.
        unit: The smallest unit in use, e.g. ``0.05`` or ``1``.

    Returns:
        Decimal: The nearest multiple of ``unit``, ties away from zero.

    Raises:
        ValidationError: If ``unit`` is not positive or the amount is too large
            to be rounded.
    """
    unit_value = to_decimal(unit)
    if unit_value <= 0:
        msg = f"Rounding unit must be positive, got {unit_value}"
        raise ValidationError(msg, context={"unit": str(unit_value)})

    steps = _quantize(to_decimal(value) / unit_value, Decimal(1))
    return steps * unit_value


def currency_info(
    code: str | None,
    *,
    symbol: str | None = None,
    round: AmountInput | None = None,  # noqa: A002
    suffix: bool | None = None,
    space: bool | None = None,
    digits: int | None = None,
) -> CurrencyInfo:
    """Resolve the display conventions for a currency.

    Explicit keyword arguments override the defaults, and the entries of
    ``CURRENCIES`` override both.

    Args:
        code: ISO 4217 currency code.
        symbol: Symbol shown with amounts. Defaults to the code.
        round: Smallest unit amounts are rounded to. Defaults to 0.01.
        suffix: Whether the symbol follows the number.
        space: Whether a space separates number and symbol.
        digits: Fractional digits displayed.

    Returns:
        CurrencyInfo: The resolved conventions.
    """
    code = code.upper() if code else None
    info: dict[str, object] = {
        "symbol": symbol if symbol is not None else code,
        "round": round if round is not None else DEFAULT_ROUNDING_UNIT,
        "suffix": suffix,
        "space": space,
        "digits": digits,
    }
    if code in CURRENCIES:
        info.update(CURRENCIES[code])

    unit = to_decimal(info["round"])  # type: ignore[arg-type]
    resolved_symbol = str(info["symbol"]) if info["symbol"] is not None else ""

    resolved_suffix = info["suffix"]
    if resolved_suffix is None:
        # Unknown currencies show their code after the number
        resolved_suffix = code is not None and resolved_symbol == code
    resolved_space = info["space"]
    if resolved_space is None:
        resolved_space = bool(resolved_suffix)
    resolved_digits = info["digits"]
    if resolved_digits is None:
        resolved_digits = max(0, -unit.adjusted())

    return CurrencyInfo(
        code=code or "",
        symbol=resolved_symbol,
        round=unit,
        suffix=bool(resolved_suffix),
        space=bool(resolved_space),
        digits=int(resolved_digits),  # type: ignore[call-overload]
    )


def format_value(
    value: AmountInput,
    code: str | None = None,
    **overrides: object,
) -> str:
    """Format an amount as a currency string with thousands separators.

    Args:
        value: The amount to format.
        code: ISO 4217 code. Defaults to the configured default currency.
        **overrides: Keyword overrides accepted by ``currency_info``.

    Returns:
        str: The formatted amount, e.g. ``"£1,234.50"`` or ``"5,432.00 元"``.
    """
    if code is None:
        code = get_settings().currency_config.default_currency
    info = currency_info(code, **overrides)  # type: ignore[arg-type]

    rounded = round_to_unit(value, info.round)
    number = f"{rounded:,.{info.digits}f}"
    separator = " " if info.space else ""
    if info.suffix:
        return f"{number}{separator}{info.symbol}"
    return f"{info.symbol}{separator}{number}"
