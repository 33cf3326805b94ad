"""
Conflict Detector - Scans shift assignments for rule violations.

Detection is a pure function of its inputs: the same employees, stores and
shifts always produce the same conflicts, in the same order, with the same
ids. Rules run independently in this order: overlap, rest, overtime,
availability, understaffing.
"""
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .base import BaseComponent
from communication.message import MessageType
from communication.message_bus import MessageBus
from config import AppConfig, DetectionConfig, config as default_config
from models.conflict import (
    Conflict, ConflictType, ImpactEstimate, ResolutionStep,
    ResolutionStrategy, Severity, StepAction, StepTarget,
)
from models.employee import Employee, Unavailability
from models.shift import Shift
from models.store import Store


Period = Tuple[date, date]


def _sort_key(shift: Shift) -> Tuple[datetime, str]:
    return shift.get_start_datetime(), shift.id


def _group_by_employee(shifts: Iterable[Shift]) -> Dict[str, List[Shift]]:
    grouped: Dict[str, List[Shift]] = defaultdict(list)
    for shift in shifts:
        grouped[shift.employee_id].append(shift)
    for employee_shifts in grouped.values():
        employee_shifts.sort(key=_sort_key)
    return grouped


def _unique(values: Iterable[str]) -> List[str]:
    """Deduplicate while keeping first-seen order."""
    return list(dict.fromkeys(values))


# =============================================================================
# RULES
# =============================================================================

def _detect_overlaps(employees: List[Employee],
                     by_employee: Dict[str, List[Shift]]) -> List[Conflict]:
    conflicts = []
    for employee in employees:
        employee_shifts = by_employee.get(employee.id, [])
        for i, earlier in enumerate(employee_shifts):
            for later in employee_shifts[i + 1:]:
                if later.date != earlier.date:
                    break
                if not earlier.overlaps(later):
                    continue
                conflicts.append(Conflict(
                    id=f"overlap-{earlier.id}-{later.id}",
                    type=ConflictType.OVERLAP,
                    severity=Severity.CRITICAL,
                    title="Overlapping shifts",
                    description=(
                        f"{employee.full_name} has overlapping shifts on "
                        f"{earlier.date.isoformat()} ({earlier.start_time}-{earlier.end_time} "
                        f"and {later.start_time}-{later.end_time})"
                    ),
                    affected_shifts=[earlier.id, later.id],
                    affected_employees=[employee.id],
                    affected_stores=_unique([earlier.store_id, later.store_id]),
                    resolution_strategies=_overlap_strategies(earlier, later, employee),
                ))
    return conflicts


def _overlap_strategies(earlier: Shift, later: Shift,
                        employee: Employee) -> List[ResolutionStrategy]:
    """Trim the first shift when it starts first; otherwise only reassignment is possible."""
    strategies = []
    if earlier.get_start_datetime() < later.get_start_datetime():
        strategies.append(ResolutionStrategy(
            id="adjust-times",
            name="Adjust times",
            description="Shorten the first shift so it ends when the second begins",
            confidence=90,
            impact=ImpactEstimate(-5, 10, -20),
            steps=[ResolutionStep(
                id="modify-first-shift",
                action=StepAction.MODIFY_HOURS,
                description=f"Change end of first shift to {later.start_time}",
                target=StepTarget(
                    shift_id=earlier.id,
                    employee_id=employee.id,
                    store_id=earlier.store_id,
                    parameters={"end_time": later.start_time},
                ),
            )],
            estimated_time=5,
        ))
    strategies.append(ResolutionStrategy(
        id="reassign-shift",
        name="Reassign shift",
        description="Give the second shift to another available employee",
        confidence=75,
        impact=ImpactEstimate(5, 5, -15),
        steps=[ResolutionStep(
            id="find-replacement",
            action=StepAction.MOVE_SHIFT,
            description="Find an alternative employee for the second shift",
            target=StepTarget(
                shift_id=later.id,
                employee_id=employee.id,
                store_id=later.store_id,
            ),
        )],
        estimated_time=15,
    ))
    return strategies


def _rest_strategy(previous: Shift, following: Shift, employee: Employee,
                   min_rest: float) -> ResolutionStrategy:
    """Push the later start out to the minimum rest, or reassign when that no longer fits the day."""
    new_start = previous.get_end_datetime() + timedelta(hours=min_rest)
    fits = (
        new_start.date() == following.date
        and new_start < following.get_end_datetime()
    )
    if fits:
        start_text = new_start.strftime("%H:%M")
        return ResolutionStrategy(
            id="extend-rest",
            name="Extend rest",
            description=f"Move shift times to guarantee {min_rest:g}h of rest",
            confidence=85,
            impact=ImpactEstimate(15, -5, -25),
            steps=[ResolutionStep(
                id="delay-next-shift",
                action=StepAction.MODIFY_HOURS,
                description=f"Delay start of next shift to {start_text}",
                target=StepTarget(
                    shift_id=following.id,
                    employee_id=employee.id,
                    store_id=following.store_id,
                    parameters={"start_time": start_text},
                ),
            )],
            estimated_time=10,
        )
    return ResolutionStrategy(
        id="reassign-rest",
        name="Reassign next shift",
        description="Give the next shift to another employee to restore rest",
        confidence=60,
        impact=ImpactEstimate(5, 0, -25),
        steps=[ResolutionStep(
            id="reassign-next-shift",
            action=StepAction.MOVE_SHIFT,
            description="Find an alternative employee for the next shift",
            target=StepTarget(
                shift_id=following.id,
                employee_id=employee.id,
                store_id=following.store_id,
            ),
        )],
        estimated_time=15,
    )


def _detect_rest_violations(employees: List[Employee],
                            by_employee: Dict[str, List[Shift]],
                            cfg: DetectionConfig) -> List[Conflict]:
    conflicts = []
    for employee in employees:
        employee_shifts = by_employee.get(employee.id, [])
        for previous, following in zip(employee_shifts, employee_shifts[1:]):
            rest_hours = previous.hours_until_next(following)
            if not 0 < rest_hours < cfg.min_rest_hours:
                continue
            severity = Severity.CRITICAL if rest_hours < cfg.critical_rest_hours else Severity.HIGH
            conflicts.append(Conflict(
                id=f"rest-{previous.id}-{following.id}",
                type=ConflictType.REST_VIOLATION,
                severity=severity,
                title="Rest period violation",
                description=(
                    f"{employee.full_name} has only {rest_hours:.1f}h of rest "
                    f"(minimum {cfg.min_rest_hours:g}h)"
                ),
                affected_shifts=[previous.id, following.id],
                affected_employees=[employee.id],
                affected_stores=_unique([previous.store_id, following.store_id]),
                resolution_strategies=[
                    _rest_strategy(previous, following, employee, cfg.min_rest_hours)
                ],
            ))
    return conflicts


def _detect_overtime(employees: List[Employee],
                     by_employee: Dict[str, List[Shift]],
                     cfg: DetectionConfig,
                     period: Optional[Period]) -> List[Conflict]:
    conflicts = []
    for employee in employees:
        employee_shifts = by_employee.get(employee.id, [])
        if period is not None:
            employee_shifts = [s for s in employee_shifts if period[0] <= s.date <= period[1]]
        if not employee_shifts:
            continue

        total_hours = round(sum(s.worked_hours for s in employee_shifts), 2)
        contract_hours = employee.max_hours(cfg.default_contract_hours)
        if total_hours <= contract_hours * cfg.overtime_ratio:
            continue

        critical = total_hours > contract_hours * cfg.critical_overtime_ratio
        unlocked = [s for s in employee_shifts if not s.is_locked]
        smallest = min(unlocked, key=lambda s: (s.worked_hours, s.id)) if unlocked else None
        home_store = employee.store_id or employee_shifts[0].store_id

        conflicts.append(Conflict(
            id=f"overtime-{employee.id}",
            type=ConflictType.OVERTIME,
            severity=Severity.CRITICAL if critical else Severity.HIGH,
            title="Contract hours exceeded",
            description=(
                f"{employee.full_name} exceeds contract hours "
                f"({total_hours:g}h vs {contract_hours:g}h, "
                f"{total_hours / contract_hours * 100:.0f}%)"
            ),
            affected_shifts=[s.id for s in employee_shifts],
            affected_employees=[employee.id],
            affected_stores=_unique(s.store_id for s in employee_shifts),
            resolution_strategies=[ResolutionStrategy(
                id="redistribute-hours",
                name="Redistribute hours",
                description="Transfer some shifts to other employees",
                confidence=80,
                impact=ImpactEstimate(0, 5, -20),
                steps=[ResolutionStep(
                    id="find-recipients",
                    action=StepAction.MOVE_SHIFT,
                    description="Move the smallest shift to an employee with spare hours",
                    target=StepTarget(
                        shift_id=smallest.id if smallest else None,
                        employee_id=employee.id,
                        store_id=smallest.store_id if smallest else home_store,
                    ),
                )],
                estimated_time=20,
            )],
        ))
    return conflicts


def _detect_unavailability(employees: List[Employee],
                           by_employee: Dict[str, List[Shift]],
                           unavailabilities: List[Unavailability]) -> List[Conflict]:
    approved: Dict[str, List[Unavailability]] = defaultdict(list)
    for window in unavailabilities:
        if window.is_approved:
            approved[window.employee_id].append(window)

    conflicts = []
    for employee in employees:
        windows = approved.get(employee.id)
        if not windows:
            continue
        for shift in by_employee.get(employee.id, []):
            window = next((w for w in windows if w.covers(shift.date)), None)
            if window is None:
                continue
            conflicts.append(Conflict(
                id=f"availability-{shift.id}",
                type=ConflictType.AVAILABILITY,
                severity=Severity.HIGH,
                title="Shift during approved absence",
                description=(
                    f"{employee.full_name} is scheduled on {shift.date.isoformat()} "
                    f"during approved {window.kind.value} leave"
                ),
                affected_shifts=[shift.id],
                affected_employees=[employee.id],
                affected_stores=[shift.store_id],
                resolution_strategies=[ResolutionStrategy(
                    id="reassign-unavailable",
                    name="Reassign shift",
                    description="Give the shift to an available colleague",
                    confidence=75,
                    impact=ImpactEstimate(10, 0, -20),
                    steps=[ResolutionStep(
                        id="find-cover",
                        action=StepAction.MOVE_SHIFT,
                        description="Find an available employee at the same store",
                        target=StepTarget(
                            shift_id=shift.id,
                            employee_id=employee.id,
                            store_id=shift.store_id,
                        ),
                    )],
                    estimated_time=15,
                )],
            ))
    return conflicts


def _detect_understaffing(stores: List[Store],
                          shifts: List[Shift],
                          cfg: DetectionConfig,
                          reference_date: date) -> List[Conflict]:
    by_store_day: Dict[Tuple[str, date], List[Shift]] = defaultdict(list)
    for shift in shifts:
        by_store_day[(shift.store_id, shift.date)].append(shift)

    conflicts = []
    for store in stores:
        if not store.is_active:
            continue
        for offset in range(cfg.understaffing_horizon_days):
            day = reference_date + timedelta(days=offset)
            if store.opening_hours and not store.is_open_on(day):
                continue
            day_shifts = sorted(by_store_day.get((store.id, day), []), key=_sort_key)
            staff = _unique(s.employee_id for s in day_shifts)
            if len(staff) >= cfg.min_staff_per_day:
                continue
            conflicts.append(Conflict(
                id=f"understaffing-{store.id}-{day.isoformat()}",
                type=ConflictType.UNDERSTAFFING,
                severity=Severity.CRITICAL if not staff else Severity.HIGH,
                title="Understaffed day",
                description=f"{store.name} has only {len(staff)} staff on {day.isoformat()}",
                affected_shifts=[s.id for s in day_shifts],
                affected_employees=staff,
                affected_stores=[store.id],
                resolution_strategies=[ResolutionStrategy(
                    id="add-staff",
                    name="Add staff",
                    description="Assign available employees to the store",
                    confidence=70,
                    impact=ImpactEstimate(-5, 20, -10),
                    steps=[ResolutionStep(
                        id="request-volunteers",
                        action=StepAction.NOTIFY_MANAGER,
                        description="Ask the manager for volunteer shifts",
                        target=StepTarget(
                            store_id=store.id,
                            parameters={
                                "date": day.isoformat(),
                                "required_staff": cfg.min_staff_per_day - len(staff),
                            },
                        ),
                        required=False,
                    )],
                    estimated_time=30,
                    cost=cfg.add_staff_cost,
                )],
            ))
    return conflicts


def detect_conflicts(employees: List[Employee],
                     stores: List[Store],
                     shifts: List[Shift],
                     reference_date: Optional[date] = None,
                     unavailabilities: Optional[List[Unavailability]] = None,
                     config: Optional[DetectionConfig] = None,
                     period: Optional[Period] = None) -> List[Conflict]:
    """
    Scan shift assignments for rule violations.

    Args:
        employees: All employees; shifts of unknown employees are ignored
        stores: All stores, checked for understaffing
        shifts: All shifts, unfiltered
        reference_date: First day of the understaffing horizon (default today)
        unavailabilities: Time-off windows; only approved ones conflict
        config: Detection thresholds
        period: Inclusive (start, end) window for overtime; all shifts if None

    Returns:
        Conflicts in rule order, each with its candidate strategies
    """
    cfg = config or default_config.detection
    by_employee = _group_by_employee(shifts)

    conflicts: List[Conflict] = []
    conflicts.extend(_detect_overlaps(employees, by_employee))
    conflicts.extend(_detect_rest_violations(employees, by_employee, cfg))
    conflicts.extend(_detect_overtime(employees, by_employee, cfg, period))
    conflicts.extend(_detect_unavailability(employees, by_employee, unavailabilities or []))
    conflicts.extend(_detect_understaffing(
        stores, shifts, cfg, reference_date or date.today()
    ))
    return conflicts


class ConflictDetector(BaseComponent):
    """
    Component wrapper around ``detect_conflicts``.

    Adds logging, audit events and a per-type breakdown of the last run.
    """

    def __init__(self,
                 config: Optional[AppConfig] = None,
                 message_bus: Optional[MessageBus] = None,
                 verbose: Optional[bool] = None,
                 clock: Optional[Callable[[], date]] = None):
        super().__init__("ConflictDetector", config, message_bus, verbose)
        self.clock = clock or date.today
        self.last_breakdown: Dict[str, int] = {}

    def execute(self,
                employees: List[Employee],
                stores: List[Store],
                shifts: List[Shift],
                reference_date: Optional[date] = None,
                unavailabilities: Optional[List[Unavailability]] = None,
                period: Optional[Period] = None,
                **kwargs) -> List[Conflict]:
        """
        Detect conflicts in the given collections.

        Returns:
            List of conflicts (see ``detect_conflicts``)
        """
        self._begin()
        self.log(f"Scanning {len(shifts)} shifts for {len(employees)} employees")

        conflicts = detect_conflicts(
            employees, stores, shifts,
            reference_date=reference_date or self.clock(),
            unavailabilities=unavailabilities,
            config=self.config.detection,
            period=period,
        )

        self.last_breakdown = defaultdict(int)
        for conflict in conflicts:
            self.last_breakdown[conflict.type.value] += 1
        self.last_breakdown = dict(self.last_breakdown)

        critical = sum(1 for c in conflicts if c.severity == Severity.CRITICAL)
        if conflicts:
            self.log(f"Detected {len(conflicts)} conflicts ({critical} critical)", "warning")
        else:
            self.log("No conflicts detected ✓", "success")

        self.publish(
            MessageType.CONFLICT,
            {"total": len(conflicts), "critical": critical, "by_type": self.last_breakdown},
        )
        self._end()
        return conflicts
