"""Tax rules and taxable attributes.

- **rules**: ``TaxRule`` protocol with flat-rate, fixed-rate and no-tax rules
- **taxable**: Conversion between net and taxed amounts with rounding checks
"""

from invoicing.tax.rules import (
    FixedRateTax,
    FlatRateTax,
    NoTax,
    RateBasedTax,
    TaxRule,
    TaxSubject,
    effective_date,
)
from invoicing.tax.taxable import (
    RoundingError,
    TaxableAttribute,
    TaxableAttributes,
    from_taxed,
    to_taxed,
)

__all__ = [
    "FixedRateTax",
    "FlatRateTax",
    "NoTax",
    "RateBasedTax",
    "RoundingError",
    "TaxRule",
    "TaxSubject",
    "TaxableAttribute",
    "TaxableAttributes",
    "effective_date",
    "from_taxed",
    "to_taxed",
]
