"""Root conftest — suite markers and shared audit fixtures."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from dotenv import load_dotenv

from auditmcp.audit import AuditFailure
from auditmcp.audit import AuditLogger
from auditmcp.audit.storage import MemoryAuditStorage
from auditmcp.observability import CounterRegistry

logger = logging.getLogger(__name__)

# Load repository-root .env for test opt-ins (existing env vars stay authoritative).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env", override=False)

TEST_KEY_HEX = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Attach suite markers from test path.

    - `tests/unit/*` -> `unit`
    - `tests/integration/*` -> `integration`
    """
    root = Path(__file__).resolve().parents[1]
    for item in items:
        item_path = Path(str(item.fspath)).resolve()
        try:
            rel = item_path.relative_to(root)
        except ValueError:
            continue

        parts = rel.parts
        if len(parts) < 2 or parts[0] != "tests":
            continue
        if parts[1] == "unit":
            item.add_marker(pytest.mark.unit)
        elif parts[1] == "integration":
            item.add_marker(pytest.mark.integration)


# ---------------------------------------------------------------------------
# Audit pipeline
# ---------------------------------------------------------------------------


@pytest.fixture()
def failures() -> list[AuditFailure]:
    """Collects failures reported through the ``on_error`` channel."""
    return []


@pytest.fixture()
def counters() -> CounterRegistry:
    return CounterRegistry()


@pytest.fixture()
def memory_storage(failures) -> MemoryAuditStorage:
    return MemoryAuditStorage(max_events=1000, on_error=failures.append)


@pytest.fixture()
def audit_logger(memory_storage, counters, failures) -> AuditLogger:
    """Plaintext audit logger over an in-memory backend."""
    return AuditLogger(memory_storage, counters=counters, on_error=failures.append)


@pytest.fixture()
def encrypted_logger(memory_storage, counters, failures) -> AuditLogger:
    """Audit logger with field encryption enabled."""
    return AuditLogger(
        memory_storage,
        encryption_key=TEST_KEY_HEX,
        counters=counters,
        on_error=failures.append,
    )
