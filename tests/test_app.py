"""Tests for procnap application."""

import pytest
from conftest import FakeTable, RecordingSender, attrs

from procnap.app import EntityTable, PlanTable, ProcnapApp, build_parser, format_action, main
from procnap.dispatcher import SignalDispatcher
from procnap.engine import Suspender
from procnap.models import Action, SignalKind
from procnap.registry import EntityRegistry


def make_app(pids, entries=()):
    """Build an app over a fake process table and a recording sender."""
    sender = RecordingSender()
    table = FakeTable(entries)
    suspender = Suspender(EntityRegistry(), table=table, dispatcher=SignalDispatcher(send=sender))
    return ProcnapApp(pids, suspender=suspender), table, sender


def test_format_action():
    """Test format_action renders each action."""
    assert "resume" in format_action(Action.RESUME)
    assert "suspend" in format_action(Action.SUSPEND)
    assert format_action(None) == "-"


class TestParser:
    """Tests for the command line parser."""

    def test_pids_and_flags(self):
        """Test pids and options are parsed."""
        args = build_parser().parse_args(["10", "20", "--dry-run", "--log-level", "debug"])
        assert args.pids == [10, 20]
        assert args.dry_run
        assert args.log_level == "debug"
        assert args.log_file is None

    def test_pid_required(self):
        """Test at least one pid must be given."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


@pytest.mark.asyncio
async def test_app_creation():
    """Test ProcnapApp registers one visible entity per pid."""
    app, _, _ = make_app([10, 20])
    assert app.title == "procnap"
    entities = app.suspender.registry.list_tracked_entities()
    assert [(e.entity_id, e.process_id, e.visible) for e in entities] == [
        ("pid-10", 10, True),
        ("pid-20", 20, True),
    ]


@pytest.mark.asyncio
async def test_app_default_engine_dry_run():
    """Test the default engine honours dry_run."""
    app = ProcnapApp([10], dry_run=True)
    assert app.suspender.registry.get("pid-10").process_id == 10


@pytest.mark.asyncio
async def test_app_compose_and_first_cycle():
    """Test the app composes its tables and runs a first cycle."""
    app, _, sender = make_app([10], entries={attrs(11, parent=10)})
    async with app.run_test() as pilot:
        await pilot.pause()
        assert pilot.app.query_one("#entity-table") is not None
        assert pilot.app.query_one("#plan-table") is not None

        assert sender.by_pid() == {10: SignalKind.CONTINUE, 11: SignalKind.CONTINUE}
        entity_table = pilot.app.query_one("#entity-table")
        plan_table = pilot.app.query_one("#plan-table")
        assert entity_table.row_count == 1
        assert plan_table.row_count == 2


@pytest.mark.asyncio
async def test_toggle_visibility_suspends():
    """Test 'v' hides the selected entity and stops its family."""
    app, _, sender = make_app([10], entries={attrs(11, parent=10)})
    async with app.run_test() as pilot:
        await pilot.pause()
        sender.calls.clear()
        await pilot.press("v")
        await pilot.pause()

        assert app.suspender.registry.get("pid-10").visible is False
        assert sender.by_pid() == {10: SignalKind.STOP, 11: SignalKind.STOP}
        assert app.suspender.last_plan == {10: Action.SUSPEND, 11: Action.SUSPEND}


@pytest.mark.asyncio
async def test_untrack_last_entity_finalizes():
    """Test 'd' on the last entity resumes it and finalizes."""
    app, _, sender = make_app([10])
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("v")
        await pilot.pause()
        sender.calls.clear()

        await pilot.press("d")
        await pilot.pause()

        assert app.suspender.is_finalized
        assert sender.calls == [(10, SignalKind.CONTINUE)]
        assert pilot.app.query_one("#entity-table").row_count == 0


@pytest.mark.asyncio
async def test_untrack_one_of_two():
    """Test 'd' with entities left runs a normal cycle."""
    app, _, sender = make_app([10, 20])
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("d")
        await pilot.pause()

        assert not app.suspender.is_finalized
        assert len(app.suspender.registry) == 1
        assert pilot.app.query_one(EntityTable).selected_entity == "pid-20"


@pytest.mark.asyncio
async def test_cycle_failure_does_not_crash():
    """Test an unavailable process table is reported, not raised."""
    app, table, sender = make_app([10])
    async with app.run_test() as pilot:
        await pilot.pause()
        sender.calls.clear()
        table.fail = True
        await pilot.press("r")
        await pilot.pause()

        assert sender.calls == []
        assert pilot.app.is_running


@pytest.mark.asyncio
async def test_quit_resumes_everything():
    """Test 'q' continues hidden processes before exiting."""
    app, _, sender = make_app([10])
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("v")
        await pilot.pause()
        sender.calls.clear()

        await pilot.press("q")

        assert sender.calls == [(10, SignalKind.CONTINUE)]
        assert app.suspender.is_finalized
        assert app.suspender.registry.is_empty()


@pytest.mark.asyncio
async def test_plan_table_update():
    """Test PlanTable shows one row per planned pid."""
    app, _, _ = make_app([])
    async with app.run_test() as pilot:
        await pilot.pause()
        plan_table = pilot.app.query_one(PlanTable)
        plan_table.update_plan({3: Action.SUSPEND, 1: Action.RESUME})
        assert pilot.app.query_one("#plan-table").row_count == 2


def test_release_resumes_hidden_entities():
    """Test release untracks everything and continues hidden families."""
    app, _, sender = make_app([10, 20])
    app.suspender.registry.set_visible("pid-10", False)

    app.release()

    assert app.suspender.is_finalized
    assert app.suspender.registry.is_empty()
    assert sender.by_pid() == {10: SignalKind.CONTINUE, 20: SignalKind.CONTINUE}


def test_release_runs_once():
    """Test a second release sends nothing."""
    app, _, sender = make_app([10])
    app.release()
    sender.calls.clear()

    app.release()

    assert sender.calls == []


def test_main_releases_when_app_crashes(monkeypatch):
    """Test main resumes tracked processes even if the app run fails."""
    apps = []

    def crashing_run(self):
        apps.append(self)
        raise RuntimeError("terminal lost")

    monkeypatch.setattr(ProcnapApp, "run", crashing_run)
    with pytest.raises(RuntimeError):
        main(["4242", "--dry-run"])

    (app,) = apps
    assert app.suspender.is_finalized
    assert app.suspender.registry.is_empty()
    assert app.suspender.last_plan[4242] is Action.RESUME
    assert set(app.suspender.last_plan.values()) == {Action.RESUME}
