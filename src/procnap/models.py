"""Data models for procnap."""

import signal
from dataclasses import dataclass
from enum import Enum


@dataclass(slots=True, frozen=True)
class ProcessAttributes:
    """Immutable snapshot of one process-table entry."""

    pid: int
    parent_pid: int | None
    process_group_id: int | None
    session_id: int | None
    controlling_terminal_foreground_pgid: int | None  # tpgid, None without a tty


@dataclass(slots=True, frozen=True)
class TrackedEntity:
    """Read-only view of an entity held by the registry."""

    entity_id: str
    process_id: int | None
    visible: bool


class SignalKind(Enum):
    """Signals the dispatcher can deliver."""

    STOP = signal.SIGSTOP
    CONTINUE = signal.SIGCONT


class Action(Enum):
    """Intended state of a process after a cycle."""

    RESUME = "resume"
    SUSPEND = "suspend"

    @classmethod
    def for_visibility(cls, visible: bool) -> "Action":
        """Return RESUME for visible entities and SUSPEND otherwise."""
        return cls.RESUME if visible else cls.SUSPEND

    @staticmethod
    def merge(first: "Action", second: "Action") -> "Action":
        """Combine two intents for the same pid; RESUME absorbs SUSPEND."""
        if Action.RESUME in (first, second):
            return Action.RESUME
        return Action.SUSPEND

    @property
    def signal_kind(self) -> SignalKind:
        """Get the signal that carries out this action."""
        return SignalKind.CONTINUE if self is Action.RESUME else SignalKind.STOP


# One action per pid, rebuilt every cycle.
SignalPlan = dict[int, Action]
