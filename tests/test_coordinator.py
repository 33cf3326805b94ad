"""
Tests for the ShiftEngine facade.
"""
import asyncio

import pytest

from benchmark import clear_profile_data, get_profile_summary
from communication.message import MessageType
from communication.message_bus import MessageBus
from engine.coordinator import ShiftEngine
from models.conflict import ConflictType

from tests.helpers import (
    MONDAY, InMemoryEntityStore, day, make_employee, make_shift, make_store,
    make_suggestion,
)


def week_shifts():
    return [
        make_shift("a-mon", "a", on=day(0), start="09:00", end="13:00"),
        make_shift("a-tue", "a", on=day(1), start="09:00", end="13:00"),
        make_shift("a-wed", "a", on=day(2)),
    ]


@pytest.fixture
def engine_with_store(app_config, clock):
    shifts = week_shifts()
    entity_store = InMemoryEntityStore(shifts)
    bus = MessageBus()
    engine = ShiftEngine(callbacks=entity_store.callbacks(), config=app_config,
                         message_bus=bus, clock=clock)
    engine.refresh([make_employee("a"), make_employee("b")], [make_store()], shifts)
    return engine, entity_store


def test_components_share_state_and_cache(engine_with_store):
    engine, _ = engine_with_store

    assert engine.validator.state is engine.state
    assert engine.executor.state is engine.state
    assert engine.validator.cache is engine.cache
    assert engine.executor.validator.cache is engine.cache
    assert engine.resolver.cache is engine.cache
    assert engine.snapshots.cache is engine.cache
    assert [c.name for c in engine.components()] == [
        "ConflictDetector", "WorkloadBalancer", "SuggestionValidator",
        "BalancingExecutor", "ConflictResolver", "SnapshotManager",
    ]


def test_refresh_invalidates_cached_validations(engine_with_store):
    engine, _ = engine_with_store
    engine.validate(make_suggestion(), [make_shift("a-mon", "b")])
    assert len(engine.cache) == 1

    engine.refresh([make_employee("a")], [make_store()], [])

    assert len(engine.cache) == 0
    assert engine.state.summary()["shifts"] == 0


def test_validation_after_refresh_sees_new_shifts(engine_with_store):
    engine, _ = engine_with_store
    suggestion = make_suggestion()
    moved = [make_shift("a-mon", "b", start="09:00", end="13:00")]
    first = engine.validate(suggestion, moved)
    assert first.is_valid, first.error_messages()

    engine.refresh(
        [make_employee("a"), make_employee("b")], [make_store()],
        week_shifts() + [make_shift("b-mon", "b", start="10:00", end="18:00")],
    )
    second = engine.validate(suggestion, moved)

    assert second is not first
    assert not second.is_valid
    assert engine.cache.stats()["misses"] == 2


def test_detection_uses_clock_and_is_profiled(engine_with_store):
    engine, _ = engine_with_store
    clear_profile_data()

    conflicts = engine.detect_conflicts()

    assert conflicts is engine.last_conflicts
    assert {c.type for c in conflicts} == {ConflictType.UNDERSTAFFING}
    assert conflicts[0].id == f"understaffing-store-1-{MONDAY.isoformat()}"
    assert engine.detector.last_breakdown == {"understaffing": 7}
    assert get_profile_summary()["ShiftEngine.detect_conflicts"]["call_count"] == 1


def test_execute_runs_detection_and_balancing(engine_with_store):
    engine, _ = engine_with_store

    result = engine.execute(week_start=MONDAY)

    assert result["conflicts"] == engine.last_conflicts
    assert result["report"] is engine.last_report
    assert len(result["report"].metrics.workload_distribution) == 2
    assert result["elapsed_time_seconds"] >= 0
    complete = engine.message_bus.get_history(msg_type=MessageType.COMPLETE)[-1]
    assert complete.sender == "ShiftEngine"


def test_apply_with_snapshot_then_rollback(engine_with_store):
    engine, entity_store = engine_with_store

    snapshot_id, result = asyncio.run(
        engine.apply_with_snapshot(make_suggestion(hours=8), user_action="approve")
    )

    assert result.success, result.errors
    assert engine.state.get_shift("a-mon").employee_id == "b"
    snapshot = engine.snapshots.get_snapshot(snapshot_id)
    assert snapshot.operation == "redistribute"
    assert snapshot.metadata.user_action == "approve"

    rollback = asyncio.run(engine.rollback_to_snapshot(snapshot_id))

    assert rollback.success
    assert engine.state.get_shift("a-mon").employee_id == "a"
    assert entity_store.shifts["a-tue"].employee_id == "a"


def test_failed_apply_keeps_snapshot(engine_with_store):
    engine, _ = engine_with_store

    snapshot_id, result = asyncio.run(
        engine.apply_with_snapshot(make_suggestion(source="ghost"))
    )

    assert not result.success
    assert engine.snapshots.get_snapshot(snapshot_id) is not None


def test_resolve_all_defaults_to_last_detection(app_config, clock):
    shifts = [
        make_shift("s1", "a", start="09:00", end="17:00"),
        make_shift("s2", "a", start="15:00", end="19:00"),
    ]
    entity_store = InMemoryEntityStore(shifts)
    engine = ShiftEngine(callbacks=entity_store.callbacks(), config=app_config, clock=clock)
    engine.refresh([make_employee("a"), make_employee("b")], [], shifts)

    conflicts = engine.detect_conflicts()
    batch = asyncio.run(engine.resolve_all_conflicts())

    assert [c.type for c in conflicts] == [ConflictType.OVERLAP]
    assert batch.summary.total_conflicts == 1
    assert batch.summary.resolved == 1
    assert engine.state.get_shift("s1").end_time == "15:00"
    assert engine.detect_conflicts() == []


def test_metrics_and_report(engine_with_store, capsys):
    engine, _ = engine_with_store
    engine.execute(week_start=MONDAY)

    metrics = engine.get_metrics()

    assert metrics["name"] == "ShiftEngine"
    assert metrics["state"]["shifts"] == 3
    assert set(metrics["cache"]) == {"size", "max_size", "hits", "misses"}
    assert metrics["resolutions"]["attempted"] == 0
    assert metrics["components"]["ConflictDetector"]["executions"] == 1

    engine.print_report()

    assert "Shift Engine Report" in capsys.readouterr().out
