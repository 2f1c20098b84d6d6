"""
Test configuration for ordwallet tests.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from ordwallet.backends.base import BlockchainBackend


@pytest.fixture
def sample_mnemonic() -> str:
    """Test mnemonic (not for production use!)."""
    return (
        "abandon abandon abandon abandon abandon abandon "
        "abandon abandon abandon abandon abandon about"
    )


@pytest.fixture
def mock_backend() -> MagicMock:
    backend = MagicMock(spec=BlockchainBackend)
    backend.get_utxos = AsyncMock(return_value=[])
    backend.close = AsyncMock()
    return backend
