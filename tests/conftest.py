"""Shared fixtures for procnap tests."""

import pytest

from procnap.dispatcher import SignalDispatcher
from procnap.engine import Suspender
from procnap.models import ProcessAttributes, SignalKind
from procnap.registry import EntityRegistry
from procnap.table import ProcessTableError


def attrs(pid, parent=None, group=None, session=None, tpgid=None):
    """Build a ProcessAttributes with unset relations defaulting to None."""
    return ProcessAttributes(
        pid=pid,
        parent_pid=parent,
        process_group_id=group,
        session_id=session,
        controlling_terminal_foreground_pgid=tpgid,
    )


class FakeTable:
    """Process table returning a fixed snapshot, or failing on demand."""

    def __init__(self, entries=()):
        self.entries = frozenset(entries)
        self.fail = False
        self.calls = 0

    def snapshot(self):
        self.calls += 1
        if self.fail:
            raise ProcessTableError("procfs unavailable")
        return self.entries


class RecordingSender:
    """Signal primitive that records calls instead of signalling."""

    def __init__(self, failures=None):
        self.calls: list[tuple[int, SignalKind]] = []
        self.failures = failures or {}

    def __call__(self, pid, kind):
        self.calls.append((pid, kind))
        if pid in self.failures:
            raise self.failures[pid]

    def by_pid(self):
        return dict(self.calls)


@pytest.fixture
def registry():
    return EntityRegistry()


@pytest.fixture
def table():
    return FakeTable()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def suspender(registry, table, sender):
    return Suspender(registry, table=table, dispatcher=SignalDispatcher(send=sender))
