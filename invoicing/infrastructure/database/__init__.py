"""Database access with async SQLAlchemy and the repository pattern.

Core components:
- **base**: Declarative base and common model fields
- **models**: Tax rate and line item tables
- **taxable**: Model mixin and session hook converting taxed values on flush
- **repository**: Generic CRUD repository and rate table loading
- **session**: Async engine and session management
"""

from invoicing.infrastructure.database.base import Base, BaseModel
from invoicing.infrastructure.database.models import LineItemModel, TaxRateModel
from invoicing.infrastructure.database.repository import (
    BaseRepository,
    LineItemRepository,
    TaxRateRepository,
)
from invoicing.infrastructure.database.session import (
    check_database_connection,
    close_database,
    create_database_engine,
    create_session_factory,
    get_async_session,
    get_engine,
    get_session_factory,
)
from invoicing.infrastructure.database.taxable import TaxableMixin, TaxableSession

__all__ = [
    "Base",
    "BaseModel",
    "BaseRepository",
    "LineItemModel",
    "LineItemRepository",
    "TaxRateModel",
    "TaxRateRepository",
    "TaxableMixin",
    "TaxableSession",
    "check_database_connection",
    "close_database",
    "create_database_engine",
    "create_session_factory",
    "get_async_session",
    "get_engine",
    "get_session_factory",
]
