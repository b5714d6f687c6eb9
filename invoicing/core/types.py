"""Type aliases shared across the invoicing library.

Monetary amounts and tax rates are always ``decimal.Decimal``; the input
aliases name what callers may hand in before it is converted.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TypeAlias

# Values accepted where an amount is expected; floats are read via repr
AmountInput: TypeAlias = Decimal | int | float | str

# Points in time accepted by rate lookups; dates mean midnight UTC
InstantInput: TypeAlias = datetime | date

# Primary key of a tax rate record
RateId: TypeAlias = int
