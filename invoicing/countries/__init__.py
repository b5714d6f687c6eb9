"""Country specific tax rules."""

from invoicing.countries.uk import VAT

__all__ = ["VAT"]
