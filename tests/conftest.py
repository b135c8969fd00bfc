"""
Shared pytest fixtures and configuration for resync tests.
"""

import pytest

from resync import ManualScheduler, create_model
from tests.utils.fakes import FakeConnection


@pytest.fixture
def scheduler():
    """Deterministic scheduler; advance it to run timers and next-tick work."""
    return ManualScheduler()


@pytest.fixture
def connection():
    """Fake connection serving a couple of posts."""
    return FakeConnection(
        server={"posts": {"1": {"title": "First"}, "2": {"title": "Second"}}}
    )


@pytest.fixture
def model(scheduler):
    """Local-only model, no connection."""
    return create_model(scheduler=scheduler)


@pytest.fixture
def remote_model(connection, scheduler):
    """Model backed by the fake connection with a 1 second unload delay."""
    return create_model(connection=connection, scheduler=scheduler, unload_delay=1.0)
