"""Core invoicing constants."""

from decimal import ROUND_HALF_UP

# Number of fractional digits monetary amounts are rounded to
CURRENCY_PRECISION = 2

# decimal's ROUND_HALF_UP rounds ties away from zero, including for negatives
CURRENCY_ROUNDING = ROUND_HALF_UP

# Smallest unit used for currencies missing from the currency table
DEFAULT_ROUNDING_UNIT = "0.01"
