"""Unit test fixtures with mocked dependencies."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import SecretStr

from infrastructure.settings import OutboxSettings


@pytest.fixture
def mock_db_settings():
    """Provide test database settings."""
    from infrastructure.settings import DatabaseSettings

    return DatabaseSettings(
        host="testhost",
        port=5432,
        database="testdb",
        username="testuser",
        password=SecretStr("testpass"),
    )


@pytest.fixture
def outbox_settings() -> OutboxSettings:
    """Outbox settings with small, test-friendly numbers."""
    return OutboxSettings(
        max_retries=3,
        base_backoff_ms=1000,
        max_backoff_ms=60000,
        batch_size=10,
        processing_interval_ms=50,
        enable_logging=False,
    )


@pytest.fixture
def mock_session() -> MagicMock:
    """An AsyncSession stand-in whose begin() works as an async context manager."""
    session = MagicMock()
    transaction = MagicMock()
    transaction.__aenter__ = AsyncMock(return_value=transaction)
    transaction.__aexit__ = AsyncMock(return_value=False)
    session.begin.return_value = transaction
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.get = AsyncMock()
    return session
