"""UK Value Added Tax.

Records carry their own VAT classification (standard, reduced or zero rate)
in ``tax_rate_id``. The classification is followed along its replacement
chain to the record's tax point, so an item classified as standard-rated in
2008 is charged 15% during the 2009 reduction and 17.5% again from 2010.
"""

from __future__ import annotations

from decimal import Decimal

from invoicing.core.exceptions import NoApplicableRateError, NotFoundError
from invoicing.rates import RateSource, RateTable, TaxRate, resolve_table
from invoicing.tax.rules import RateBasedTax, TaxSubject, effective_date


class VAT(RateBasedTax):
    """UK VAT based on each record's own tax rate classification.

    Args:
        rates: The table holding the VAT rates, or a registry publishing it.
    """

    label = "VAT"

    def __init__(self, rates: RateSource) -> None:
        self.rates = rates

    @property
    def rate_table(self) -> RateTable:
        return resolve_table(self.rates)

    def tax_rate(self, subject: TaxSubject | None) -> TaxRate:
        """Return the VAT rate in effect for the subject at its tax point.

        A tax point before the classified rate starts is resolved through the
        rate's unique predecessors.

        Raises:
            NoApplicableRateError: If the subject has no VAT classification, or
                a backdated tax point has no unambiguous earlier rate.
            NotFoundError: If the classification refers to an unknown rate.
            BrokenChainError: If the classification cannot be followed to the
                subject's tax point.
        """
        rate_id = subject.tax_rate_id if subject is not None else None
        if rate_id is None:
            msg = "Record has no VAT rate classification"
            raise NoApplicableRateError(msg)

        # One snapshot for both lookups so a concurrent refresh cannot mix tables
        table = self.rate_table
        classified = table.get(rate_id)
        if classified is None:
            msg = f"VAT rate {rate_id} does not exist"
            raise NotFoundError(msg, context={"rate_id": rate_id})

        when = effective_date(subject)
        if when >= classified.valid_from:
            return table.chain_from(classified, when)

        # Backdated tax point: walk back to the rate the classification replaced
        rate = table.rate_for(classified, when)
        if rate is None:
            msg = (
                f"VAT rate {rate_id} has no unambiguous equivalent at "
                f"{when.isoformat()}"
            )
            raise NoApplicableRateError(
                msg, {"rate_id": rate_id, "date": when.isoformat()}
            )
        return rate

    def rate_for(self, subject: TaxSubject | None) -> Decimal:
        return self.tax_rate(subject).rate
