"""
Pytest configuration and fixtures for dashboard-resilience tests.
"""

import sys
from pathlib import Path
import pytest

# Add src directory to Python path to allow importing dashboard_resilience
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from dashboard_resilience.recovery import (
    InMemoryComponentFailureHandler,
    InMemoryFallbackLogger,
    LoggingNotificationService,
    RecoveryOrchestrator,
)
from dashboard_resilience.structured_log import LoggingService


# Configure anyio to only use asyncio (not trio)
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def logging_service():
    """A small LoggingService with the default in-memory store."""
    return LoggingService(max_entries=100)


@pytest.fixture
def component_handler():
    return InMemoryComponentFailureHandler()


@pytest.fixture
def fallback_logger():
    return InMemoryFallbackLogger(capacity=100)


@pytest.fixture
def notification_service():
    return LoggingNotificationService()


@pytest.fixture
def orchestrator(logging_service, component_handler, fallback_logger, notification_service):
    """RecoveryOrchestrator wired to in-memory collaborators."""
    return RecoveryOrchestrator(
        logging_service,
        component_handler=component_handler,
        fallback_logger=fallback_logger,
        notification_service=notification_service,
    )


class UnprintableError(Exception):
    """Exception whose ``str()`` itself raises."""

    def __str__(self):
        raise ValueError("unprintable")


@pytest.fixture
def unprintable_error():
    return UnprintableError()
