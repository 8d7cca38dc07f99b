"""Process table access for procnap."""

import logging
import os
from collections.abc import Callable
from pathlib import Path

import psutil

from procnap.models import ProcessAttributes

logger = logging.getLogger(__name__)

PROC_ROOT = Path("/proc")


class ProcessTableError(RuntimeError):
    """Raised when the process table cannot be enumerated at all."""


class ProcessTable:
    """
    Point-in-time reader of the system process table.

    Uses psutil to enumerate pids and parent pids, and the os module for
    process group and session ids. The terminal foreground process group is
    only exposed by procfs, so it is None on platforms without one.
    Processes that exit between enumeration and lookup are skipped.
    """

    def __init__(self, proc_root: Path | None = PROC_ROOT) -> None:
        """
        Initialize the ProcessTable.

        Args:
            proc_root: Mount point of procfs, or None to never read it.
        """
        if proc_root is not None and not proc_root.is_dir():
            proc_root = None
        self._proc_root = proc_root

    @property
    def has_procfs(self) -> bool:
        """Check if terminal foreground groups can be read."""
        return self._proc_root is not None

    def snapshot(self) -> frozenset[ProcessAttributes]:
        """
        Collect attributes of every live process.

        Raises:
            ProcessTableError: If the process list itself is unavailable.
        """
        entries: set[ProcessAttributes] = set()

        try:
            processes = list(psutil.process_iter(attrs=["pid", "ppid"]))
        except (psutil.Error, OSError) as exc:
            raise ProcessTableError(f"cannot enumerate processes: {exc}") from exc

        for proc in processes:
            attributes = self._read_attributes(proc.info["pid"], proc.info.get("ppid"))
            if attributes is not None:
                entries.add(attributes)

        logger.debug("Process table snapshot holds %d entries", len(entries))
        return frozenset(entries)

    def lookup(self, pid: int) -> ProcessAttributes | None:
        """Read the attributes of a single pid, or None if it is gone."""
        try:
            parent_pid = psutil.Process(pid).ppid()
        except psutil.AccessDenied:
            parent_pid = None
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            return None
        return self._read_attributes(pid, parent_pid)

    def _read_attributes(self, pid: int, parent_pid: int | None) -> ProcessAttributes | None:
        """Complete one entry; None means the process exited meanwhile."""
        try:
            process_group_id = _permitted(os.getpgid, pid)
            session_id = _permitted(os.getsid, pid)
        except ProcessLookupError:
            return None

        return ProcessAttributes(
            pid=pid,
            parent_pid=parent_pid,
            process_group_id=process_group_id,
            session_id=session_id,
            controlling_terminal_foreground_pgid=self._read_tpgid(pid),
        )

    def _read_tpgid(self, pid: int) -> int | None:
        """Read the foreground process group of pid's controlling terminal."""
        if self._proc_root is None:
            return None
        try:
            stat = (self._proc_root / str(pid) / "stat").read_text()
        except OSError:
            return None
        return parse_tpgid(stat)


def parse_tpgid(stat: str) -> int | None:
    """
    Extract tpgid from the contents of /proc/<pid>/stat.

    The command name is parenthesised and may itself contain spaces or
    parentheses, so fields are counted from the last closing parenthesis.
    """
    _, _, rest = stat.rpartition(")")
    fields = rest.split()
    # state ppid pgrp session tty_nr tpgid ...
    if len(fields) < 6:
        return None
    try:
        tpgid = int(fields[5])
    except ValueError:
        return None
    return tpgid if tpgid > 0 else None


def _permitted(lookup: Callable[[int], int], pid: int) -> int | None:
    """Call an os id lookup, mapping permission errors to None."""
    try:
        return lookup(pid)
    except PermissionError:
        return None
