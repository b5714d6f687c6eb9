"""Fixtures for database infrastructure unit tests."""

from collections.abc import Generator
from typing import cast

import pytest
from pytest_mock import MockerFixture, MockType
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from invoicing.infrastructure.database.models import LineItemModel
from invoicing.infrastructure.database.session import _DatabaseManager


@pytest.fixture
def mock_async_engine(mocker: MockerFixture) -> MockType:
    """Mock AsyncEngine with connect and dispose methods.

    Args:
        mocker: Pytest mocker fixture.

    Returns:
        MockType: Mock AsyncEngine.
    """
    engine = mocker.Mock(spec=AsyncEngine)
    engine.dispose = mocker.AsyncMock()

    mock_connection = mocker.AsyncMock()
    mock_connection.__aenter__ = mocker.AsyncMock(return_value=mock_connection)
    mock_connection.__aexit__ = mocker.AsyncMock(return_value=None)

    mock_result = mocker.Mock()
    mock_result.scalar = mocker.Mock(return_value=1)
    mock_connection.execute = mocker.AsyncMock(return_value=mock_result)

    engine.connect = mocker.Mock(return_value=mock_connection)

    return cast("MockType", engine)


@pytest.fixture
def mock_async_session(mocker: MockerFixture) -> MockType:
    """Mock AsyncSession with lifecycle methods and context manager protocol.

    Args:
        mocker: Pytest mocker fixture.

    Returns:
        MockType: Mock AsyncSession.
    """
    session = mocker.Mock(spec=AsyncSession)
    session.commit = mocker.AsyncMock()
    session.rollback = mocker.AsyncMock()
    session.close = mocker.AsyncMock()
    session.execute = mocker.AsyncMock()
    session.flush = mocker.AsyncMock()
    session.refresh = mocker.AsyncMock()

    session.__aenter__ = mocker.AsyncMock(return_value=session)
    session.__aexit__ = mocker.AsyncMock(return_value=None)

    return cast("MockType", session)


@pytest.fixture
def mock_query_result(mocker: MockerFixture) -> MockType:
    """Mock query result whose ``scalars().all()`` is configurable.

    Args:
        mocker: Pytest mocker fixture.

    Returns:
        MockType: Mock result.
    """
    result = mocker.Mock()
    result.scalar = mocker.Mock(return_value=0)
    result.scalar_one_or_none = mocker.Mock(return_value=None)
    result.scalars.return_value.all.return_value = []
    return cast("MockType", result)


@pytest.fixture
def database_manager_fixture() -> Generator[_DatabaseManager]:
    """Clean database manager instance, reset after the test."""
    manager = _DatabaseManager()
    yield manager
    manager.reset()


@pytest.fixture
def unbound_line_items(monkeypatch: pytest.MonkeyPatch) -> type[LineItemModel]:
    """LineItemModel with its tax rule restored after the test."""
    monkeypatch.setattr(LineItemModel, "_tax_rule", None)
    return LineItemModel
