"""Signal delivery for procnap."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import psutil

from procnap.models import SignalKind, SignalPlan

logger = logging.getLogger(__name__)

SignalSender = Callable[[int, SignalKind], None]


def send_signal(pid: int, kind: SignalKind) -> None:
    """Stop or continue a process through psutil."""
    process = psutil.Process(pid)
    if kind is SignalKind.STOP:
        process.suspend()
    else:
        process.resume()


@dataclass(slots=True)
class DispatchReport:
    """Outcome of dispatching one plan."""

    sent: dict[int, SignalKind] = field(default_factory=dict)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Check if every signal was delivered."""
        return not self.failed


class SignalDispatcher:
    """
    Executes a signal plan, one signal per pid.

    A failure for one pid is logged and recorded but never stops delivery
    to the remaining pids.
    """

    def __init__(self, send: SignalSender = send_signal, dry_run: bool = False) -> None:
        """
        Initialize the SignalDispatcher.

        Args:
            send: Signal primitive taking a pid and a SignalKind.
            dry_run: Log intended signals without sending them.
        """
        self._send = send
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        """Check if signals are only logged."""
        return self._dry_run

    def dispatch(self, signal_plan: SignalPlan) -> DispatchReport:
        """Send the signal for every entry in the plan."""
        report = DispatchReport()

        for pid, action in signal_plan.items():
            kind = action.signal_kind
            if self._dry_run:
                logger.info("Dry run: would send %s to pid %d", kind.name, pid)
                report.sent[pid] = kind
                continue

            try:
                self._send(pid, kind)
            except (psutil.NoSuchProcess, ProcessLookupError):
                # Exited since the snapshot was taken
                logger.debug("pid %d exited before %s", pid, kind.name)
                report.failed[pid] = "no such process"
            except (psutil.AccessDenied, PermissionError):
                logger.warning("Permission denied sending %s to pid %d", kind.name, pid)
                report.failed[pid] = "permission denied"
            except Exception as exc:
                logger.exception("Failed to send %s to pid %d", kind.name, pid)
                report.failed[pid] = str(exc) or type(exc).__name__
            else:
                report.sent[pid] = kind

        logger.info(
            "Dispatched %d signal(s), %d failure(s)", len(report.sent), len(report.failed)
        )
        return report
