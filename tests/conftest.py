"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for tests: no contracts, in-memory store, no log file
os.environ.setdefault("RPC_URL", "http://localhost:8545")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LOG_FILE", "")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from unittest.mock import MagicMock

from indexer.store import MemoryAggregateStore


@pytest.fixture
def store():
    """In-memory aggregate store with default settings."""
    return MemoryAggregateStore()


@pytest.fixture
def mock_web3():
    """Mock synchronous Web3 instance."""
    w3 = MagicMock()
    w3.eth.chain_id = 10143
    w3.eth.block_number = 100
    w3.eth.get_logs.return_value = []
    return w3
