# tests/conftest.py
"""
Pytest configuration and fixtures for the portfolio VaR tests.
"""

import matplotlib

matplotlib.use("Agg")

import pytest
from loguru import logger

from portfolio_var.config import get_settings
from portfolio_var.portfolio import Instrument


def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Run every test against default settings."""
    for key in ("VAR_CONFIDENCE", "VAR_HOLDING_PERIOD", "VAR_DATA_PATH", "VAR_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV rows under a `date,symbol,price` header and return the path."""

    def _write(rows, name="instrument_data.csv", header="date,symbol,price"):
        path = tmp_path / name
        lines = [header, *rows] if header is not None else list(rows)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_csv(write_csv):
    """Three symbols with unsorted rows; CCC has a single observation."""
    return write_csv(
        [
            "2024-01-03,AAA,98.7",
            "2024-01-01,AAA,100",
            "2024-01-02,AAA,105",
            "2024-01-01,BBB,50",
            "2024-01-02,BBB,51",
            "2024-01-03,BBB,49.47",
            "2024-01-02,CCC,10",
        ]
    )


@pytest.fixture
def instrument_a():
    return Instrument(symbol="AAA", name="Alpha")


@pytest.fixture
def log_messages():
    """Capture loguru messages emitted during a test."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
