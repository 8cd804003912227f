"""
Shared fixtures.

Every test starts without Redis, so the rate limiter and the action guard
use their in-memory fallbacks, and with those fallbacks empty.
"""

import pytest

from edubeast.core import action_guard
from edubeast.core import redis as redis_module
from edubeast.core.rate_limit import reset_memory_store


@pytest.fixture(autouse=True)
def reset_in_memory_state(monkeypatch):
    monkeypatch.setattr(redis_module, "redis_client", None)
    action_guard._memory_locks.clear()
    reset_memory_store()
    yield
    action_guard._memory_locks.clear()
    reset_memory_store()
