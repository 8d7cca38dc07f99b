"""Job-control relatedness between processes."""

from collections.abc import Iterable

from procnap.models import ProcessAttributes


def is_related(root_pid: int, candidate: ProcessAttributes) -> bool:
    """
    Check whether candidate is one job-control hop away from root_pid.

    A candidate is related when it is the root itself, or when the root is
    its parent, its process group, its session, or the foreground process
    group of its controlling terminal. Ancestry beyond one hop is not walked.
    """
    if candidate.pid == root_pid:
        return True
    return root_pid in (
        candidate.parent_pid,
        candidate.process_group_id,
        candidate.session_id,
        candidate.controlling_terminal_foreground_pgid,
    )


def related_pids(root_pid: int, snapshot: Iterable[ProcessAttributes]) -> set[int]:
    """Return root_pid plus every pid in snapshot related to it."""
    related = {root_pid}
    related.update(entry.pid for entry in snapshot if is_related(root_pid, entry))
    return related
