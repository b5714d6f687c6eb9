"""Invoicing - tax-aware monetary attributes for SQLAlchemy models.

The library stores amounts net of tax and presents them including tax,
looking up the tax rate that applied on the date of each sale.

Architecture Overview:
- **rates**: Time-dependent tax rates with replacement chains
- **tax**: Tax rules and rounding-safe taxable attributes
- **money**: Currency rounding and formatting
- **countries**: Country specific tax rules (UK VAT)
- **core**: Configuration, logging and the exception hierarchy
- **infrastructure**: Async SQLAlchemy persistence and the flush hook

Only exact ``decimal.Decimal`` arithmetic is used for amounts.
"""

from invoicing.money import format_value, round_to_currency_precision, round_to_unit
from invoicing.rates import RateRegistry, RateTable, TaxRate
from invoicing.tax import (
    FlatRateTax,
    NoTax,
    RoundingError,
    TaxableAttribute,
    TaxRule,
    from_taxed,
    to_taxed,
)

__all__ = [
    "FlatRateTax",
    "NoTax",
    "RateRegistry",
    "RateTable",
    "RoundingError",
    "TaxRate",
    "TaxRule",
    "TaxableAttribute",
    "format_value",
    "from_taxed",
    "round_to_currency_precision",
    "round_to_unit",
    "to_taxed",
]
