"""
Tests for executing conflict resolution strategies.
"""
import asyncio
from dataclasses import replace

from config import AppConfig
from engine.callbacks import EngineCallbacks
from engine.conflict_detector import detect_conflicts
from engine.conflict_resolver import ConflictResolver
from models.conflict import (
    Conflict, ConflictType, ResolutionStep, ResolutionStrategy, Severity, StepAction,
    StepTarget,
)
from models.state import ScheduleState

from tests.helpers import MONDAY, day, make_employee, make_shift, make_store


def overlap_world(build_world, employees=None, **shift_kwargs):
    shifts = [
        make_shift("s1", "a", start="09:00", end="17:00", **shift_kwargs),
        make_shift("s2", "a", start="15:00", end="19:00"),
    ]
    world = build_world(employees or [make_employee("a"), make_employee("b")], shifts)
    conflict = detect_conflicts(
        list(world.state.employees.values()), [], world.state.all_shifts(),
        reference_date=MONDAY,
    )[0]
    return world, conflict


def test_adjust_times_resolves_overlap(build_world):
    world, conflict = overlap_world(build_world)

    result = asyncio.run(world.resolver.resolve_conflict(conflict))

    assert result.success
    assert result.strategy_used == "adjust-times"
    shift = world.state.get_shift("s1")
    assert shift.end_time == "15:00"
    assert shift.worked_hours == 6.0
    assert world.entity_store.shifts["s1"].end_time == "15:00"
    assert result.summary.conflicts_resolved == 1
    assert result.summary.shifts_modified == 1
    assert result.summary.employees_affected == 1
    assert result.summary.time_saved == 5

    remaining = detect_conflicts(
        list(world.state.employees.values()), [], world.state.all_shifts(),
        reference_date=MONDAY,
    )
    assert remaining == []


def test_unknown_strategy_fails(build_world):
    world, conflict = overlap_world(build_world)

    result = asyncio.run(world.resolver.resolve_conflict(conflict, "nope"))

    assert not result.success
    assert result.errors == ["Strategy not found: nope"]
    assert world.entity_store.updates == []


def test_conflict_without_strategies_fails(build_world):
    world, conflict = overlap_world(build_world)
    bare = replace(conflict, resolution_strategies=[])

    result = asyncio.run(world.resolver.resolve_conflict(bare))

    assert not result.success
    assert "No resolution strategy" in result.errors[0]


def test_reassign_moves_shift_to_colleague(build_world):
    world, conflict = overlap_world(build_world)

    result = asyncio.run(world.resolver.resolve_conflict(conflict, "reassign-shift"))

    assert result.success
    assert world.state.get_shift("s2").employee_id == "b"
    assert result.summary.employees_affected == 2
    assert result.summary.time_saved == 15


def test_reassign_without_colleague_only_warns(build_world):
    world, conflict = overlap_world(build_world, employees=[make_employee("a")])

    result = asyncio.run(world.resolver.resolve_conflict(conflict, "reassign-shift"))

    assert result.success
    assert result.modified_shifts == []
    assert result.warnings == ["No available employee at store store-1 to take shift s2"]


def test_locked_shift_step_fails(build_world):
    world, conflict = overlap_world(build_world, is_locked=True)

    result = asyncio.run(world.resolver.resolve_conflict(conflict))

    assert not result.success
    assert result.errors == ["Step modify-first-shift: Shift s1 is locked"]
    assert result.summary.time_saved == 0


def test_overlap_with_same_start_is_resolved_by_reassignment(build_world):
    shifts = [
        make_shift("s1", "a", start="09:00", end="17:00"),
        make_shift("s2", "a", start="09:00", end="12:00"),
    ]
    world = build_world([make_employee("a"), make_employee("b")], shifts)
    conflict = detect_conflicts(
        list(world.state.employees.values()), [], world.state.all_shifts(),
        reference_date=MONDAY,
    )[0]

    result = asyncio.run(world.resolver.resolve_conflict(conflict))

    assert result.success
    assert result.strategy_used == "reassign-shift"
    assert world.state.get_shift("s1").end_time == "17:00"
    assert world.state.get_shift("s1").worked_hours == 8.0
    assert world.state.get_shift("s2").employee_id == "b"


def test_zero_length_time_change_is_rejected(build_world):
    world, conflict = overlap_world(build_world)
    strategy = ResolutionStrategy(
        id="collapse", name="Collapse", description="", confidence=50,
        steps=[ResolutionStep(
            id="collapse-first", action=StepAction.MODIFY_HOURS, description="",
            target=StepTarget(shift_id="s1", parameters={"end_time": "09:00"}),
        )],
    )

    result = asyncio.run(world.resolver.resolve_conflict(
        replace(conflict, resolution_strategies=[strategy])
    ))

    assert not result.success
    assert result.errors == [
        "Step collapse-first: Shift s1 would not end after it starts (09:00-09:00)"
    ]
    assert world.state.get_shift("s1").end_time == "17:00"
    assert world.entity_store.updates == []


def test_unsupported_step_action_is_recorded(build_world):
    world, conflict = overlap_world(build_world)
    strategy = ResolutionStrategy(
        id="custom", name="Custom", description="", confidence=50,
        steps=[ResolutionStep(id="warp", action="teleport", description="")],
    )

    result = asyncio.run(world.resolver.resolve_conflict(
        replace(conflict, resolution_strategies=[strategy])
    ))

    assert result.errors == ["Step warp: Unsupported step action: teleport"]


# =============================================================================
# Notifications
# =============================================================================

def understaffed_conflict():
    return detect_conflicts([], [make_store()], [], reference_date=MONDAY)[0]


def test_critical_understaffing_notifies_with_error_level(build_world):
    world = build_world([make_employee("a")], [])
    conflict = understaffed_conflict()
    assert conflict.severity == Severity.CRITICAL

    result = asyncio.run(world.resolver.resolve_conflict(conflict))

    assert result.success
    assert result.strategy_used == "add-staff"
    message, level = world.entity_store.notifications[0]
    assert level == "error"
    assert message.startswith("Conflict detected: Understaffed day.")


def test_failed_notification_is_a_warning():
    def broken(message, level):
        raise ConnectionError("mail server down")

    resolver = ConflictResolver(ScheduleState(), EngineCallbacks(notify_manager=broken),
                                config=AppConfig())

    result = asyncio.run(resolver.resolve_conflict(understaffed_conflict()))

    assert result.success
    assert result.warnings == ["Manager notification failed: mail server down"]


def test_missing_notification_callback_is_ignored():
    resolver = ConflictResolver(ScheduleState(), config=AppConfig())

    result = asyncio.run(resolver.resolve_conflict(understaffed_conflict()))

    assert result.success
    assert result.warnings == []


# =============================================================================
# Batches
# =============================================================================

def test_resolve_all_orders_by_severity_and_skips_manual(build_world):
    employees = [make_employee("a"), make_employee("b")]
    shifts = [
        make_shift("s1", "a", start="09:00", end="17:00"),
        make_shift("s2", "a", start="15:00", end="19:00"),
        make_shift("b-mon", "b", on=day(0), start="14:00", end="23:00"),
        make_shift("b-tue", "b", on=day(1), start="08:00", end="12:00"),
    ]
    world = build_world(employees, shifts)
    conflicts = detect_conflicts(employees, [], shifts, reference_date=MONDAY)
    overlap = next(c for c in conflicts if c.type == ConflictType.OVERLAP)
    rest = next(c for c in conflicts if c.type == ConflictType.REST_VIOLATION)
    assert rest.severity == Severity.HIGH
    manual = replace(overlap, id="manual", auto_resolvable=False)

    batch = asyncio.run(world.resolver.resolve_all_conflicts([rest, manual, overlap]))

    assert batch.summary.total_conflicts == 2
    assert batch.summary.resolved == 2
    assert batch.summary.failed == 0
    assert batch.summary.total_time_saved == 5 + 10
    assert batch.summary.shifts_modified == 2
    assert [r.conflict_id for r in world.resolver.resolution_history] == [overlap.id, rest.id]
    assert world.state.get_shift("b-tue").start_time == "11:00"
    assert world.resolver.get_resolution_stats() == {
        "attempted": 2, "resolved": 2, "failed": 0, "time_saved": 15,
    }


def test_batch_continues_after_failure(build_world):
    world, conflict = overlap_world(build_world, is_locked=True)
    unresolvable = Conflict(
        id="x", type=ConflictType.SKILL_MISMATCH, severity=Severity.LOW,
        title="Untyped", description="",
    )

    batch = asyncio.run(world.resolver.resolve_all_conflicts([unresolvable, conflict]))

    assert batch.summary.total_conflicts == 2
    assert batch.summary.failed == 2
    assert [r.conflict_id for r in batch.failed] == [conflict.id, "x"]
