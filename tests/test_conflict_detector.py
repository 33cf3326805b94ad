"""
Tests for conflict detection rules.
"""
from config import AppConfig, DetectionConfig
from communication.message import MessageType
from communication.message_bus import MessageBus
from engine.conflict_detector import ConflictDetector, detect_conflicts
from models.conflict import ConflictType, Severity, StepAction
from models.employee import ApprovalStatus, Unavailability, UnavailabilityKind
from models.store import standard_opening_hours

from tests.helpers import MONDAY, day, make_employee, make_shift, make_store


def of_type(conflicts, conflict_type):
    return [c for c in conflicts if c.type == conflict_type]


# =============================================================================
# Overlaps
# =============================================================================

def test_overlapping_shifts_are_critical():
    employee = make_employee("a")
    shifts = [
        make_shift("s1", "a", start="09:00", end="17:00"),
        make_shift("s2", "a", start="15:00", end="19:00"),
    ]

    conflicts = detect_conflicts([employee], [], shifts, reference_date=MONDAY)

    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert conflict.id == "overlap-s1-s2"
    assert conflict.type == ConflictType.OVERLAP
    assert conflict.severity == Severity.CRITICAL
    assert conflict.affected_shifts == ["s1", "s2"]
    assert conflict.affected_employees == ["a"]
    assert "2024-01-15" in conflict.description


def test_overlap_strategies_ordered_by_confidence():
    employee = make_employee("a")
    shifts = [
        make_shift("s1", "a", start="09:00", end="17:00"),
        make_shift("s2", "a", start="15:00", end="19:00"),
    ]

    conflict = detect_conflicts([employee], [], shifts, reference_date=MONDAY)[0]

    ids = [s.id for s in conflict.resolution_strategies]
    assert ids == ["adjust-times", "reassign-shift"]
    adjust = conflict.best_strategy
    assert adjust.confidence == 90
    step = adjust.steps[0]
    assert step.action == StepAction.MODIFY_HOURS
    assert step.target.shift_id == "s1"
    assert step.target.parameters == {"end_time": "15:00"}
    reassign = conflict.get_strategy("reassign-shift")
    assert reassign.steps[0].action == StepAction.MOVE_SHIFT
    assert reassign.steps[0].target.shift_id == "s2"


def test_overlap_with_same_start_only_offers_reassignment():
    shifts = [
        make_shift("s1", "a", start="09:00", end="17:00"),
        make_shift("s2", "a", start="09:00", end="12:00"),
    ]

    conflict = detect_conflicts([make_employee("a")], [], shifts, reference_date=MONDAY)[0]

    assert conflict.type == ConflictType.OVERLAP
    assert [s.id for s in conflict.resolution_strategies] == ["reassign-shift"]
    assert conflict.best_strategy.steps[0].target.shift_id == "s2"


def test_back_to_back_shifts_do_not_overlap():
    employee = make_employee("a")
    shifts = [
        make_shift("s1", "a", start="09:00", end="13:00"),
        make_shift("s2", "a", start="13:00", end="17:00"),
    ]

    conflicts = detect_conflicts([employee], [], shifts, reference_date=MONDAY)

    assert of_type(conflicts, ConflictType.OVERLAP) == []


def test_shifts_of_unknown_employees_are_ignored():
    shifts = [
        make_shift("s1", "ghost", start="09:00", end="17:00"),
        make_shift("s2", "ghost", start="10:00", end="12:00"),
    ]

    assert detect_conflicts([make_employee("a")], [], shifts, reference_date=MONDAY) == []


# =============================================================================
# Rest periods
# =============================================================================

def test_nine_hours_rest_is_high():
    employee = make_employee("a")
    shifts = [
        make_shift("s1", "a", on=day(0), start="14:00", end="23:00"),
        make_shift("s2", "a", on=day(1), start="08:00", end="12:00"),
    ]

    conflicts = detect_conflicts([employee], [], shifts, reference_date=MONDAY)

    assert [c.id for c in conflicts] == ["rest-s1-s2"]
    conflict = conflicts[0]
    assert conflict.severity == Severity.HIGH
    strategy = conflict.best_strategy
    assert strategy.id == "extend-rest"
    assert strategy.steps[0].target.shift_id == "s2"
    assert strategy.steps[0].target.parameters == {"start_time": "11:00"}


def test_six_hours_rest_is_critical_and_falls_back_to_reassign():
    employee = make_employee("a")
    shifts = [
        make_shift("s1", "a", on=day(0), start="16:00", end="23:00"),
        make_shift("s2", "a", on=day(1), start="05:00", end="10:00"),
    ]

    conflicts = detect_conflicts([employee], [], shifts, reference_date=MONDAY)

    conflict = conflicts[0]
    assert conflict.severity == Severity.CRITICAL
    assert conflict.best_strategy.id == "reassign-rest"
    assert conflict.best_strategy.steps[0].action == StepAction.MOVE_SHIFT


def test_rest_threshold_follows_configuration():
    employee = make_employee("a")
    shifts = [
        make_shift("s1", "a", on=day(0), start="14:00", end="23:00"),
        make_shift("s2", "a", on=day(1), start="08:00", end="12:00"),
    ]
    relaxed = DetectionConfig(min_rest_hours=8.0, critical_rest_hours=6.0)

    assert detect_conflicts([employee], [], shifts, reference_date=MONDAY, config=relaxed) == []


# =============================================================================
# Overtime
# =============================================================================

def _week_of(employee_id, hours_per_shift, count=4):
    return [
        make_shift(f"{employee_id}-{i}", employee_id, on=day(i), actual_hours=hours_per_shift)
        for i in range(count)
    ]


def test_overtime_boundaries():
    employee = make_employee("a", contract_hours=40)

    def severity_for(hours_per_shift):
        found = of_type(
            detect_conflicts([employee], [], _week_of("a", hours_per_shift), reference_date=MONDAY),
            ConflictType.OVERTIME,
        )
        return found[0].severity if found else None

    assert severity_for(12.5) is None               # 50h, exactly 125%
    assert severity_for(13) == Severity.HIGH        # 52h
    assert severity_for(15) == Severity.HIGH        # 60h, exactly 150%
    assert severity_for(15.25) == Severity.CRITICAL  # 61h


def test_overtime_uses_default_contract_hours():
    employee = make_employee("a")

    conflicts = detect_conflicts([employee], [], _week_of("a", 13), reference_date=MONDAY)

    overtime = of_type(conflicts, ConflictType.OVERTIME)
    assert [c.id for c in overtime] == ["overtime-a"]
    assert "52h vs 40h" in overtime[0].description


def test_overtime_strategy_targets_smallest_unlocked_shift():
    employee = make_employee("a", contract_hours=20)
    shifts = [
        make_shift("a-0", "a", on=day(0), actual_hours=4, is_locked=True),
        make_shift("a-1", "a", on=day(1), actual_hours=9),
        make_shift("a-2", "a", on=day(2), actual_hours=6),
        make_shift("a-3", "a", on=day(3), actual_hours=8),
    ]

    conflict = of_type(
        detect_conflicts([employee], [], shifts, reference_date=MONDAY), ConflictType.OVERTIME
    )[0]

    strategy = conflict.best_strategy
    assert strategy.id == "redistribute-hours"
    assert strategy.steps[0].target.shift_id == "a-2"


def test_overtime_period_limits_counted_shifts():
    employee = make_employee("a", contract_hours=40)
    shifts = _week_of("a", 13)

    conflicts = detect_conflicts(
        [employee], [], shifts, reference_date=MONDAY, period=(day(0), day(2)),
    )

    assert of_type(conflicts, ConflictType.OVERTIME) == []


# =============================================================================
# Availability
# =============================================================================

def test_shift_during_approved_leave_conflicts():
    employee = make_employee("a")
    leave = Unavailability(
        id="u1", employee_id="a", start_date=day(0), end_date=day(2),
        kind=UnavailabilityKind.HOLIDAY, status=ApprovalStatus.APPROVED,
    )

    conflicts = detect_conflicts(
        [employee], [], [make_shift("s1", "a", on=day(1))],
        reference_date=MONDAY, unavailabilities=[leave],
    )

    assert [c.id for c in conflicts] == ["availability-s1"]
    assert conflicts[0].severity == Severity.HIGH
    assert conflicts[0].best_strategy.id == "reassign-unavailable"


def test_pending_leave_does_not_conflict():
    employee = make_employee("a")
    leave = Unavailability(id="u1", employee_id="a", start_date=day(0), end_date=day(0))

    conflicts = detect_conflicts(
        [employee], [], [make_shift("s1", "a")],
        reference_date=MONDAY, unavailabilities=[leave],
    )

    assert conflicts == []


# =============================================================================
# Understaffing
# =============================================================================

def test_understaffing_counts_distinct_employees_and_skips_closed_days():
    store = make_store(opening_hours=standard_opening_hours())
    employees = [make_employee("a"), make_employee("b")]
    shifts = [
        make_shift("m-a", "a", on=day(0), start="09:00", end="13:00"),
        make_shift("m-b", "b", on=day(0), start="09:00", end="13:00"),
        make_shift("t-a", "a", on=day(1), start="09:00", end="13:00"),
        make_shift("w-a1", "a", on=day(2), start="08:00", end="10:00"),
        make_shift("w-a2", "a", on=day(2), start="14:00", end="16:00"),
    ]

    conflicts = of_type(
        detect_conflicts(employees, [store], shifts, reference_date=MONDAY),
        ConflictType.UNDERSTAFFING,
    )

    assert [c.id for c in conflicts] == [
        "understaffing-store-1-2024-01-16",
        "understaffing-store-1-2024-01-17",
        "understaffing-store-1-2024-01-18",
        "understaffing-store-1-2024-01-19",
        "understaffing-store-1-2024-01-20",
    ]
    assert [c.severity for c in conflicts[:2]] == [Severity.HIGH, Severity.HIGH]
    assert all(c.severity == Severity.CRITICAL for c in conflicts[2:])
    step = conflicts[0].best_strategy.steps[0]
    assert step.action == StepAction.NOTIFY_MANAGER
    assert step.required is False
    assert step.target.parameters["required_staff"] == 1
    assert conflicts[0].best_strategy.cost == 100


def test_inactive_store_is_never_understaffed():
    store = make_store(is_active=False)

    assert detect_conflicts([], [store], [], reference_date=MONDAY) == []


# =============================================================================
# Determinism and component
# =============================================================================

def test_detection_is_deterministic():
    store = make_store()
    employees = [make_employee("a", contract_hours=20), make_employee("b")]
    shifts = [
        make_shift("s1", "a", on=day(0), start="09:00", end="17:00"),
        make_shift("s2", "a", on=day(0), start="15:00", end="23:00"),
        make_shift("s3", "a", on=day(1), start="06:00", end="14:00"),
        make_shift("s4", "b", on=day(1), start="09:00", end="17:00"),
    ]

    first = detect_conflicts(employees, [store], shifts, reference_date=MONDAY)
    second = detect_conflicts(employees, [store], list(reversed(shifts)), reference_date=MONDAY)

    assert first == second
    assert [c.id for c in first] == [c.id for c in second]


def test_detector_component_publishes_breakdown(clock):
    bus = MessageBus()
    detector = ConflictDetector(config=AppConfig(), message_bus=bus, clock=clock)
    employee = make_employee("a")
    shifts = [
        make_shift("s1", "a", start="09:00", end="17:00"),
        make_shift("s2", "a", start="15:00", end="19:00"),
    ]

    conflicts = detector.execute([employee], [make_store()], shifts)

    assert detector.last_breakdown["overlap"] == 1
    # Only Monday is staffed (by one person); the rest of the week is empty
    assert detector.last_breakdown["understaffing"] == 7
    assert len(conflicts) == 8
    events = bus.get_history(sender="ConflictDetector", msg_type=MessageType.CONFLICT)
    assert len(events) == 1
    assert events[0].content["total"] == 8
