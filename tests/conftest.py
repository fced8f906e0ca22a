# Add project root to sys.path so pytest can import the terminality package
import sys
from pathlib import Path

import pytest

# Insert project root (parent of this tests/ directory) at front of sys.path
# This makes `import terminality` work when running `pytest` from the repo root.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from terminality.filesystem import FileSystem  # noqa: E402
from terminality.store import MemorySnapshotStore  # noqa: E402


class _Handle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualTimers:
    """
    Stand-in for loop.call_later: nothing fires until the test says so.
    """

    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback):
        handle = _Handle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self):
        return [h for h in self.handles if not h.cancelled]

    def fire(self):
        handles, self.handles = self.active, []
        for handle in handles:
            handle.callback()
        return len(handles)


@pytest.fixture
def timers():
    return ManualTimers()


@pytest.fixture
def store():
    return MemorySnapshotStore()


@pytest.fixture
def fs(store, timers):
    return FileSystem(store, call_later=timers.call_later)
