"""procnap - Textual host application."""

import argparse
import logging

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from procnap.dispatcher import SignalDispatcher
from procnap.engine import EngineFinalizedError, Suspender
from procnap.models import Action, SignalPlan, TrackedEntity
from procnap.registry import EntityRegistry, UnknownEntityError
from procnap.table import ProcessTableError

logger = logging.getLogger(__name__)


def format_action(action: Action | None) -> str:
    """Format an action for display."""
    if action is None:
        return "-"
    color = "green" if action is Action.RESUME else "yellow"
    return f"[{color}]{action.value}[/{color}]"


class StatusLine(Static):
    """One-line summary of the last cycle."""

    DEFAULT_CSS = """
    StatusLine {
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def show_plan(self, signal_plan: SignalPlan, failures: int) -> None:
        """Summarize a dispatched plan."""
        resumed = sum(1 for action in signal_plan.values() if action is Action.RESUME)
        suspended = len(signal_plan) - resumed
        self.update(
            f"Resumed: {resumed}  Suspended: {suspended}  Failures: {failures}"
        )


class EntityTable(Container):
    """Container for the tracked entity table."""

    DEFAULT_CSS = """
    EntityTable {
        width: 2fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize EntityTable."""
        super().__init__(*args, **kwargs)
        self._current_ids: set[str] = set()

    def compose(self) -> ComposeResult:
        """Compose the entity table."""
        yield DataTable(id="entity-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#entity-table", DataTable)
        table.cursor_type = "row"
        table.add_column("ENTITY", key="entity", width=12)
        table.add_column("PID", key="pid", width=8)
        table.add_column("VISIBLE", key="visible", width=8)
        table.add_column("ACTION", key="action")

    @property
    def selected_entity(self) -> str | None:
        """Get the entity id under the cursor."""
        table = self.query_one("#entity-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return row_key.value

    def update_entities(self, entities: list[TrackedEntity], signal_plan: SignalPlan) -> None:
        """
        Update the entity table.

        Existing rows are updated in place; departed entities are removed.
        """
        table = self.query_one("#entity-table", DataTable)
        new_ids = {entity.entity_id for entity in entities}

        for entity_id in self._current_ids - new_ids:
            table.remove_row(entity_id)

        for entity in entities:
            pid = "-" if entity.process_id is None else str(entity.process_id)
            visible = "yes" if entity.visible else "no"
            action = format_action(signal_plan.get(entity.process_id))
            if entity.entity_id in self._current_ids:
                table.update_cell(entity.entity_id, "pid", pid)
                table.update_cell(entity.entity_id, "visible", visible)
                table.update_cell(entity.entity_id, "action", action)
            else:
                table.add_row(entity.entity_id, pid, visible, action, key=entity.entity_id)

        self._current_ids = new_ids


class PlanTable(Container):
    """Container for the last dispatched plan."""

    DEFAULT_CSS = """
    PlanTable {
        width: 1fr;
        border: solid $secondary;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the plan table."""
        yield DataTable(id="plan-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#plan-table", DataTable)
        table.add_column("PID", key="pid", width=8)
        table.add_column("ACTION", key="action")

    def update_plan(self, signal_plan: SignalPlan) -> None:
        """Replace the table contents with a new plan."""
        table = self.query_one("#plan-table", DataTable)
        table.clear()
        for pid in sorted(signal_plan):
            table.add_row(str(pid), format_action(signal_plan[pid]), key=str(pid))


class ProcnapApp(App):
    """Main procnap application."""

    TITLE = "procnap"
    SUB_TITLE = "Suspend what you cannot see"

    CSS = """
    Screen {
        layout: vertical;
    }

    Horizontal {
        height: 1fr;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("v", "toggle_visible", "Visibility"),
        ("d", "untrack", "Untrack"),
        ("r", "cycle", "Run cycle"),
    ]

    def __init__(
        self,
        pids: list[int] | None = None,
        suspender: Suspender | None = None,
        dry_run: bool = False,
    ) -> None:
        """
        Initialize the ProcnapApp.

        Args:
            pids: Processes to track, one entity each, initially visible.
            suspender: Engine to drive. Built over a fresh registry if omitted.
            dry_run: Only log signals when building the default engine.
        """
        super().__init__()
        if suspender is None:
            suspender = Suspender(EntityRegistry(), dispatcher=SignalDispatcher(dry_run=dry_run))
        self._suspender = suspender
        for pid in pids or []:
            self._suspender.registry.register(f"pid-{pid}", pid, visible=True)

    @property
    def suspender(self) -> Suspender:
        """Get the engine driven by this app."""
        return self._suspender

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield StatusLine("No cycle yet", id="status")
        yield Horizontal(EntityTable(), PlanTable())
        yield Footer()

    def on_mount(self) -> None:
        """Run a first cycle once the tables have their columns."""
        self.call_after_refresh(self._run_cycle)

    def _run_cycle(self, finalize: bool = False) -> None:
        """Run a cycle and refresh the UI, reporting failures."""
        try:
            if finalize:
                signal_plan = self._suspender.finalize()
            else:
                signal_plan = self._suspender.run_cycle()
        except ProcessTableError as exc:
            self.notify(f"Cycle aborted: {exc}", severity="error")
            return
        except EngineFinalizedError:
            self.notify("Nothing tracked", severity="warning")
            return
        self._update_ui(signal_plan)

    def _update_ui(self, signal_plan: SignalPlan) -> None:
        """Update the UI after a cycle."""
        report = self._suspender.last_report
        failures = len(report.failed) if report is not None else 0
        self.query_one("#status", StatusLine).show_plan(signal_plan, failures)
        self.query_one(EntityTable).update_entities(
            self._suspender.registry.list_tracked_entities(), signal_plan
        )
        self.query_one(PlanTable).update_plan(signal_plan)

    def action_toggle_visible(self) -> None:
        """Flip the visibility of the selected entity and run a cycle."""
        entity_id = self.query_one(EntityTable).selected_entity
        if entity_id is None:
            return
        registry = self._suspender.registry
        try:
            entity = registry.get(entity_id)
        except UnknownEntityError:
            return
        registry.set_visible(entity_id, not entity.visible)
        self._run_cycle()

    def action_untrack(self) -> None:
        """Stop tracking the selected entity, finalizing if it was the last."""
        entity_id = self.query_one(EntityTable).selected_entity
        if entity_id is None:
            return
        registry = self._suspender.registry
        try:
            registry.unregister(entity_id)
        except UnknownEntityError:
            return
        self._run_cycle(finalize=registry.is_empty())

    def action_cycle(self) -> None:
        """Rerun a cycle on demand."""
        self._run_cycle()

    def release(self) -> None:
        """Untrack every entity and resume their processes, at most once."""
        registry = self._suspender.registry
        if self._suspender.is_finalized and registry.is_empty():
            return
        for entity in registry.list_tracked_entities():
            registry.unregister(entity.entity_id)
        try:
            self._suspender.finalize()
        except ProcessTableError:
            logger.exception("Could not resume tracked processes on exit")

    def on_unmount(self) -> None:
        """Resume everything when the app shuts down by any route."""
        self.release()

    def action_quit(self) -> None:
        """Resume everything that is tracked, then exit."""
        self.release()
        self.exit()


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="procnap",
        description="Suspend and resume process families by visibility.",
    )
    parser.add_argument("pids", metavar="PID", type=int, nargs="+", help="process to track")
    parser.add_argument(
        "--dry-run", action="store_true", help="log signals instead of sending them"
    )
    parser.add_argument("--log-level", default="INFO", help="logging level (default: INFO)")
    parser.add_argument("--log-file", help="write logs to this file")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for procnap application."""
    args = build_parser().parse_args(argv)
    if args.log_file:
        logging.basicConfig(
            filename=args.log_file,
            level=args.log_level.upper(),
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )
    app = ProcnapApp(args.pids, dry_run=args.dry_run)
    try:
        app.run()
    finally:
        app.release()


if __name__ == "__main__":
    main()
