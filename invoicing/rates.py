"""Time-dependent tax rates.

A tax rate is valid over a half-open interval ``[valid_from, valid_until)``.
When a rate change is announced the existing rows are never edited; instead
a new rate is added and the expiring rate points at it through
``replaced_by_id``. Records that refer to the old rate can then be moved to
the new one by following the replacement chain, without reclassifying them.

Taking UK VAT as an example::

                 1991-04-01             2008-12-01             2010-01-01
                          :                      :                      :
    Standard rate: 17.5% -----------------> 15% ---------------> 17.5% ------->
    Reduced rate:     5% ------------------------------------------------------->
    Zero rate:        0% ------------------------------------------------------->

A rate references its successor rather than its predecessor so that a record
classified under today's rate always has an unambiguous replacement. Several
old rates may be replaced by the same new one.

``RateTable`` answers lookups over an in-memory set of rates. Tables are
built once (usually from the database, see ``TaxRateRepository``) and then
only read; ``RateRegistry`` publishes a refreshed table by swapping the whole
object.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any, TypeAlias

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from invoicing.core.exceptions import (
    BrokenChainError,
    DefaultRateConflictError,
    DuplicateIdError,
)
from invoicing.core.types import InstantInput, RateId

if TYPE_CHECKING:
    from invoicing.infrastructure.database.repository import TaxRateRepository


def as_instant(value: InstantInput) -> datetime:
    """Normalize a date or datetime to an aware UTC datetime.

    Naive datetimes are taken to be UTC and plain dates mean midnight UTC.

    Args:
        value: The point in time.

    Returns:
        datetime: The instant in UTC.
    """
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=UTC)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TaxRate(BaseModel):
    """A tax rate valid over a half-open period of time."""

    model_config = ConfigDict(frozen=True)

    id: RateId
    description: str = ""
    rate: Decimal = Field(ge=0)
    valid_from: datetime
    valid_until: datetime | None = None
    replaced_by_id: RateId | None = None
    is_default: bool = False
    category: str | None = None

    @field_validator("rate", mode="before")
    @classmethod
    def float_through_repr(cls, v: Any) -> Any:
        """Read floats through their repr so 0.175 stays exactly 0.175."""
        if isinstance(v, float):
            return Decimal(repr(v))
        return v

    @field_validator("valid_from", "valid_until", mode="before")
    @classmethod
    def normalize_instant(cls, v: Any) -> Any:
        """Store all instants as aware UTC datetimes."""
        if isinstance(v, date):
            return as_instant(v)
        return v

    @field_validator("valid_from", "valid_until", mode="after")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        """Normalize instants parsed from strings as well."""
        return None if v is None else as_instant(v)

    @model_validator(mode="after")
    def check_period(self) -> TaxRate:
        """Reject periods that end before they start."""
        if self.valid_until is not None and self.valid_until <= self.valid_from:
            msg = (
                f"valid_from ({self.valid_from.isoformat()}) must precede "
                f"valid_until ({self.valid_until.isoformat()})"
            )
            raise ValueError(msg)
        return self

    def covers(self, when: InstantInput) -> bool:
        """Whether ``when`` falls within ``[valid_from, valid_until)``."""
        instant = as_instant(when)
        return self.valid_from <= instant and (
            self.valid_until is None or instant < self.valid_until
        )

    def overlaps(self, other: TaxRate) -> bool:
        """Whether the validity periods of two rates share any instant."""
        starts_before_other_ends = (
            other.valid_until is None or self.valid_from < other.valid_until
        )
        other_starts_before_self_ends = (
            self.valid_until is None or other.valid_from < self.valid_until
        )
        return starts_before_other_ends and other_starts_before_self_ends

    @property
    def percent(self) -> Decimal:
        """The rate as a percentage, e.g. ``Decimal("17.5")`` for 0.175."""
        return self.rate * 100


class RateTable:
    """An in-memory set of tax rates supporting lookups by date.

    Rates are kept in insertion order. Where several rates start at the same
    instant and all cover a date, the one inserted last wins; load rates in
    ascending id order to make the highest id win.

    Example:
        table = RateTable.from_rates(rates)
        rate = table.rate_at(datetime(2009, 1, 1, tzinfo=UTC))
        if rate is None:
            ...  # refuse to price the item
    """

    def __init__(self) -> None:
        self._rates: dict[RateId, TaxRate] = {}

    @classmethod
    def from_rates(cls, rates: Iterable[TaxRate]) -> RateTable:
        """Build a table by adding each rate in turn.

        Args:
            rates: The rates to add, in insertion order.

        Returns:
            RateTable: The populated table.

        Raises:
            DuplicateIdError: If two rates share an id.
            DefaultRateConflictError: If overlapping defaults share a category.
        """
        table = cls()
        for rate in rates:
            table.add(rate)
        logger.debug("Built tax rate table with {} rates", len(table))
        return table

    def add(self, rate: TaxRate) -> None:
        """Insert a rate into the table.

        Args:
            rate: The rate to insert.

        Raises:
            DuplicateIdError: If a rate with the same id is present.
            DefaultRateConflictError: If the rate is default and overlaps another
                default rate of the same category.
        """
        if rate.id in self._rates:
            raise DuplicateIdError(rate.id)

        if rate.is_default:
            for other in self._rates.values():
                if (
                    other.is_default
                    and other.category == rate.category
                    and other.overlaps(rate)
                ):
                    raise DefaultRateConflictError(rate.id, other.id, rate.category)

        self._rates[rate.id] = rate

    def get(self, rate_id: RateId) -> TaxRate | None:
        """Return the rate with the given id, or None."""
        return self._rates.get(rate_id)

    def __contains__(self, rate_id: object) -> bool:
        return rate_id in self._rates

    def __iter__(self) -> Iterator[TaxRate]:
        return iter(self._rates.values())

    def __len__(self) -> int:
        return len(self._rates)

    def _in_category(self, category: str | None) -> Iterator[TaxRate]:
        if category is None:
            return iter(self._rates.values())
        return (rate for rate in self._rates.values() if rate.category == category)

    @staticmethod
    def _latest(candidates: Iterable[TaxRate]) -> TaxRate | None:
        """Pick the latest ``valid_from``; later insertions win ties."""
        best: TaxRate | None = None
        for rate in candidates:
            if best is None or rate.valid_from >= best.valid_from:
                best = rate
        return best

    def rate_at(self, when: InstantInput, category: str | None = None) -> TaxRate | None:
        """Return the rate applicable at ``when``.

        Among the rates whose period contains ``when`` the one with the latest
        ``valid_from`` is returned; ties go to the rate inserted last.

        Args:
            when: The point in time.
            category: Only consider rates of this category.

        Returns:
            TaxRate | None: The applicable rate, or None if no period contains
                ``when``.
        """
        return self._latest(self.valid_at(when, category))

    def valid_at(self, when: InstantInput, category: str | None = None) -> list[TaxRate]:
        """Return all rates whose period contains ``when``, in insertion order."""
        instant = as_instant(when)
        return [rate for rate in self._in_category(category) if rate.covers(instant)]

    def valid_during(
        self,
        not_before: InstantInput,
        not_after: InstantInput,
        category: str | None = None,
    ) -> list[TaxRate]:
        """Return the rates which may apply at some point of a period.

        A rate qualifies if it has not expired at ``not_before`` and comes into
        effect before ``not_after``.

        Args:
            not_before: Start of the period.
            not_after: End of the period (exclusive).
            category: Only consider rates of this category.

        Returns:
            list[TaxRate]: Qualifying rates in insertion order.
        """
        start, end = as_instant(not_before), as_instant(not_after)
        return [
            rate
            for rate in self._in_category(category)
            if (rate.valid_until is None or rate.valid_until > start)
            and rate.valid_from < end
        ]

    def predecessors(self, rate: TaxRate) -> list[TaxRate]:
        """Return the rates which name ``rate`` as their replacement."""
        return [other for other in self._rates.values() if other.replaced_by_id == rate.id]

    def selectable(
        self,
        not_before: InstantInput,
        not_after: InstantInput,
        category: str | None = None,
    ) -> list[TaxRate]:
        """Return the rates a record may be classified under during a period.

        If one rate replaces another within the period, only the earlier one is
        returned: an earlier rate can be converted into its replacement, but
        not necessarily the other way round.
        """
        candidates = self.valid_during(not_before, not_after, category)
        ids = {rate.id for rate in candidates}
        return [
            rate
            for rate in candidates
            if not any(pred.id in ids for pred in self.predecessors(rate))
        ]

    def default_rate(
        self,
        not_before: InstantInput,
        not_after: InstantInput,
        category: str | None = None,
    ) -> TaxRate | None:
        """Return the first default rate selectable during a period, or None."""
        for rate in self.selectable(not_before, not_after, category):
            if rate.is_default:
                return rate
        return None

    def default_rate_at(
        self, when: InstantInput, category: str | None = None
    ) -> TaxRate | None:
        """Return the default rate in effect at ``when``, or None."""
        return self._latest(
            rate for rate in self.valid_at(when, category) if rate.is_default
        )

    def _successor(self, rate: TaxRate) -> TaxRate:
        """Return the replacement of an expired rate or raise BrokenChainError."""
        if rate.replaced_by_id is None:
            msg = f"Tax rate {rate.id} expired without a replacement"
            raise BrokenChainError(msg, {"rate_id": rate.id})
        successor = self._rates.get(rate.replaced_by_id)
        if successor is None:
            msg = (
                f"Tax rate {rate.id} is replaced by unknown rate {rate.replaced_by_id}"
            )
            raise BrokenChainError(
                msg, {"rate_id": rate.id, "replaced_by_id": rate.replaced_by_id}
            )
        return successor

    def chain_from(self, rate: TaxRate, when: InstantInput) -> TaxRate:
        """Follow the replacement chain from ``rate`` to the rate valid at ``when``.

        Args:
            rate: The rate a record was classified under.
            when: The point in time.

        Returns:
            TaxRate: ``rate`` itself if it covers ``when``, otherwise the first
                replacement in the chain that does.

        Raises:
            BrokenChainError: If the chain ends, names an unknown rate, loops or
                reaches a rate starting after ``when`` before finding one
                covering ``when``.
        """
        instant = as_instant(when)
        visited: set[RateId] = set()
        current = rate
        while not current.covers(instant):
            if instant < current.valid_from:
                msg = (
                    f"Tax rate {current.id} is not yet in effect at "
                    f"{instant.isoformat()}"
                )
                raise BrokenChainError(
                    msg,
                    {
                        "rate_id": current.id,
                        "valid_from": current.valid_from.isoformat(),
                    },
                )
            visited.add(current.id)
            current = self._successor(current)
            if current.id in visited:
                msg = f"Replacement chain from tax rate {rate.id} loops at {current.id}"
                raise BrokenChainError(msg, {"rate_id": rate.id, "loop_id": current.id})
            logger.debug(
                "Following replacement chain to rate {}",
                current.id,
                rate_id=rate.id,
            )
        return current

    def rate_for(self, rate: TaxRate, when: InstantInput) -> TaxRate | None:
        """Find the equivalent of ``rate`` at ``when``, in the past or future.

        Moves forward through replacements while ``when`` is after the current
        period, and backward through predecessors while it is before. Going
        backward is only possible while a rate has exactly one predecessor.

        Args:
            rate: The rate a record was classified under.
            when: The point in time.

        Returns:
            TaxRate | None: The equivalent rate, or None if the chain ends or a
                predecessor is ambiguous.
        """
        instant = as_instant(when)
        visited: set[RateId] = set()
        current: TaxRate | None = rate
        while current is not None and not current.covers(instant):
            if current.id in visited:
                return None
            visited.add(current.id)

            if instant < current.valid_from:
                predecessors = self.predecessors(current)
                current = predecessors[0] if len(predecessors) == 1 else None
            elif current.replaced_by_id is None:
                current = None
            else:
                current = self._rates.get(current.replaced_by_id)
        return current

    def changes_until(self, rate: TaxRate, when: InstantInput) -> list[TaxRate | None]:
        """List the replacements of ``rate`` taking effect up to ``when``.

        Args:
            rate: The rate to start from.
            when: The last instant of interest (inclusive).

        Returns:
            list[TaxRate | None]: Successive replacements in chain order. A
                trailing None means the chain expires without a replacement.
                Empty if the rate stays in effect until after ``when``.
        """
        instant = as_instant(when)
        changes: list[TaxRate | None] = []
        visited: set[RateId] = set()
        current: TaxRate | None = rate
        while (
            current is not None
            and current.id not in visited
            and current.valid_until is not None
            and current.valid_until <= instant
        ):
            visited.add(current.id)
            successor = (
                None
                if current.replaced_by_id is None
                else self._rates.get(current.replaced_by_id)
            )
            changes.append(successor)
            current = successor
        return changes


class RateRegistry:
    """Holder publishing the current rate table.

    Readers take ``registry.table`` once per operation and keep using that
    table; a refresh builds a complete new table and swaps the reference, so
    a reader never sees a partially loaded table.
    """

    def __init__(self, table: RateTable | None = None) -> None:
        self._table = table if table is not None else RateTable()

    @property
    def table(self) -> RateTable:
        """The currently published table."""
        return self._table

    def replace(self, table: RateTable) -> RateTable:
        """Publish a new table and return the previous one."""
        previous, self._table = self._table, table
        logger.info(
            "Published tax rate table with {} rates (previously {})",
            len(table),
            len(previous),
        )
        return previous

    async def refresh(self, repository: TaxRateRepository) -> RateTable:
        """Reload all rates through ``repository`` and publish them.

        Args:
            repository: Repository bound to an open session.

        Returns:
            RateTable: The newly published table.
        """
        table = await repository.load_table()
        self.replace(table)
        return table


RateSource: TypeAlias = RateTable | RateRegistry


def resolve_table(source: RateSource) -> RateTable:
    """Return the table to use for one operation.

    Rules hold a ``RateRegistry`` to pick up refreshed tables; each lookup
    takes the table published at that moment.
    """
    if isinstance(source, RateRegistry):
        return source.table
    return source
