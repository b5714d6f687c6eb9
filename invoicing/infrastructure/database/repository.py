"""Repositories for database access.

``BaseRepository`` implements the common async CRUD operations;
``TaxRateRepository`` adds loading of rate tables from the ``tax_rates``
table.
"""

from datetime import datetime
from typing import Generic, TypeVar

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.types import InstantInput
from invoicing.infrastructure.database.base import BaseModel
from invoicing.infrastructure.database.models import LineItemModel, TaxRateModel
from invoicing.rates import RateTable, TaxRate, as_instant

DEFAULT_PAGINATION_LIMIT = 100

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """Base repository class providing common CRUD operations.

    Args:
        session: The async SQLAlchemy session to use for operations.
        model_class: The SQLAlchemy model class this repository manages.

    Example:
        class LineItemRepository(BaseRepository[LineItemModel]):
            def __init__(self, session: AsyncSession) -> None:
                super().__init__(session, LineItemModel)
    """

    def __init__(self, session: AsyncSession, model_class: type[T]) -> None:
        self.session = session
        self.model_class = model_class
        logger.debug("Initialized repository for {}", model_class.__name__)

    async def get_by_id(self, entity_id: int) -> T | None:
        """Retrieve a model instance by its ID.

        Args:
            entity_id: The primary key ID of the model to retrieve.

        Returns:
            T | None: The model instance if found, None otherwise.
        """
        logger.debug("Fetching {} by ID: {}", self.model_class.__name__, entity_id)

        stmt = select(self.model_class).where(self.model_class.id == entity_id)
        result = await self.session.execute(stmt)
        instance = result.scalar_one_or_none()

        if instance is None:
            logger.debug(
                "{} instance not found with ID: {}",
                self.model_class.__name__,
                entity_id,
            )
        return instance

    async def get_all(
        self, skip: int = 0, limit: int = DEFAULT_PAGINATION_LIMIT
    ) -> list[T]:
        """Retrieve model instances ordered by ID, with pagination.

        Args:
            skip: Number of records to skip.
            limit: Maximum number of records to return.

        Returns:
            list[T]: List of model instances.
        """
        stmt = (
            select(self.model_class)
            .offset(skip)
            .limit(limit)
            .order_by(self.model_class.id)
        )
        result = await self.session.execute(stmt)
        instances = list(result.scalars().all())

        logger.debug(
            "Retrieved {} {} instances", len(instances), self.model_class.__name__
        )
        return instances

    async def create(self, obj: T) -> T:
        """Add a model instance and flush it to obtain its ID.

        Taxed values staged on the instance are converted by the flush.

        Args:
            obj: The model instance to create.

        Returns:
            T: The created model instance with populated ID and timestamps.
        """
        self.session.add(obj)
        await self.session.flush()
        await self.session.refresh(obj)

        logger.info(
            "Created {} instance with ID: {}", self.model_class.__name__, obj.id
        )
        return obj

    async def count(self) -> int:
        """Count all instances of the model."""
        stmt = select(func.count()).select_from(self.model_class)
        result = await self.session.execute(stmt)
        return result.scalar() or 0


class TaxRateRepository(BaseRepository[TaxRateModel]):
    """Repository reading tax rates into ``RateTable`` snapshots."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, TaxRateModel)

    async def load_table(self) -> RateTable:
        """Load every tax rate into a new table.

        Rates are added in ascending ID order, so among rates starting at the
        same instant the highest ID wins lookups.

        Returns:
            RateTable: The populated table.

        Raises:
            DuplicateIdError: If the data holds duplicate IDs.
            DefaultRateConflictError: If overlapping defaults share a category.
        """
        stmt = select(TaxRateModel).order_by(TaxRateModel.id)
        result = await self.session.execute(stmt)
        table = RateTable.from_rates(row.to_domain() for row in result.scalars().all())

        logger.info("Loaded {} tax rates", len(table))
        return table

    async def valid_during(
        self,
        not_before: InstantInput,
        not_after: InstantInput,
        category: str | None = None,
    ) -> list[TaxRate]:
        """Query the rates which may apply at some point of a period.

        Same selection as ``RateTable.valid_during``, evaluated in the
        database.
        """
        start: datetime = as_instant(not_before)
        end: datetime = as_instant(not_after)
        stmt = (
            select(TaxRateModel)
            .where(
                or_(TaxRateModel.valid_until.is_(None), TaxRateModel.valid_until > start)
            )
            .where(TaxRateModel.valid_from < end)
            .order_by(TaxRateModel.id)
        )
        if category is not None:
            stmt = stmt.where(TaxRateModel.category == category)

        result = await self.session.execute(stmt)
        rates = [row.to_domain() for row in result.scalars().all()]

        logger.debug(
            "Found {} tax rates valid between {} and {}",
            len(rates),
            start.isoformat(),
            end.isoformat(),
            category=category,
        )
        return rates


class LineItemRepository(BaseRepository[LineItemModel]):
    """Repository for invoice line items."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, LineItemModel)

    async def list_for_rate(self, tax_rate_id: int) -> list[LineItemModel]:
        """Return the line items classified under a tax rate."""
        stmt = (
            select(LineItemModel)
            .where(LineItemModel.tax_rate_id == tax_rate_id)
            .order_by(LineItemModel.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
