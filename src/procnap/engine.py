"""Cycle engine tying the registry, process table and dispatcher together."""

import logging
import os
import threading
from collections.abc import Collection

from procnap.dispatcher import DispatchReport, SignalDispatcher
from procnap.models import Action, SignalPlan
from procnap.planner import expand_entities, plan, protect
from procnap.registry import EntityRegistry
from procnap.table import ProcessTable

logger = logging.getLogger(__name__)


class EngineFinalizedError(RuntimeError):
    """Raised when a cycle is requested after finalize()."""


class Suspender:
    """
    Suspends the processes of hidden entities and resumes visible ones.

    Each cycle reads a fresh registry snapshot and a fresh process table
    snapshot, plans one action per related pid and dispatches it. Cycles are
    serialized, so hosts may trigger them from any thread.
    """

    def __init__(
        self,
        registry: EntityRegistry,
        table: ProcessTable | None = None,
        dispatcher: SignalDispatcher | None = None,
        protected_pids: Collection[int] | None = None,
    ) -> None:
        """
        Initialize the Suspender.

        Args:
            registry: Source of tracked entities.
            table: Process table accessor. Defaults to the live system table.
            dispatcher: Signal dispatcher. Defaults to psutil delivery.
            protected_pids: Pids never suspended. Defaults to this process.
        """
        self._registry = registry
        self._table = table or ProcessTable()
        self._dispatcher = dispatcher or SignalDispatcher()
        if protected_pids is None:
            protected_pids = {os.getpid()}
        self._protected = frozenset(protected_pids)
        self._lock = threading.Lock()
        self._finalized = False
        self.last_plan: SignalPlan = {}
        self.last_report: DispatchReport | None = None

    @property
    def registry(self) -> EntityRegistry:
        """Get the entity registry."""
        return self._registry

    @property
    def protected_pids(self) -> frozenset[int]:
        """Get the pids that are never suspended."""
        return self._protected

    @property
    def is_finalized(self) -> bool:
        """Check if finalize() has run."""
        return self._finalized

    def run_cycle(self) -> SignalPlan:
        """
        Plan and dispatch signals for the current entities.

        Raises:
            EngineFinalizedError: If finalize() ran and nothing has been
                registered since.
            ProcessTableError: If the process table is unavailable. No signal
                is sent in that case.
        """
        with self._lock:
            if self._finalized:
                if self._registry.is_empty():
                    raise EngineFinalizedError("engine was finalized and nothing is tracked")
                # Tracking was enabled again
                self._finalized = False
            return self._cycle(resume_all=False)

    def finalize(self) -> SignalPlan:
        """
        Run a last cycle that resumes every known process.

        Called when the last entity stops being tracked, so nothing is left
        stopped once the engine goes quiet.
        """
        with self._lock:
            signal_plan = self._cycle(resume_all=True)
            self._finalized = True
            logger.info("Finalized after resuming %d process(es)", len(signal_plan))
            return signal_plan

    def reset(self) -> None:
        """Allow cycles again after finalize()."""
        with self._lock:
            self._finalized = False

    def _cycle(self, resume_all: bool) -> SignalPlan:
        entities = self._registry.list_tracked_entities()
        departed = self._registry.drain_departed()

        try:
            snapshot = self._table.snapshot()
        except Exception:
            self._registry.requeue_departed(departed)
            logger.error("Cycle aborted: process table unavailable")
            raise

        forced = Action.RESUME if resume_all else None
        tracked = plan(expand_entities(entities, snapshot, forced))
        # Departed families resume unless a tracked entity still covers the pid
        released = plan(expand_entities(departed, snapshot, Action.RESUME))
        signal_plan = protect({**released, **tracked}, self._protected)
        logger.debug(
            "Cycle: %d entities, %d departed, %d planned pid(s)",
            len(entities),
            len(departed),
            len(signal_plan),
        )

        self.last_report = self._dispatcher.dispatch(signal_plan)
        self.last_plan = signal_plan
        return signal_plan
