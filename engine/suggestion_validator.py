"""
Suggestion Validator - Gates a suggestion before it mutates any shift.

The affected (post-change) shifts are overlaid onto the current collection
and a battery of availability, contract, legal, competency and
operational checks runs against the simulated result.
"""
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set

from .base import BaseComponent
from .cache import ValidationCache
from communication.message import MessageType
from communication.message_bus import MessageBus
from config import AppConfig, ValidationConfig
from models.employee import Employee, EmployeeRole
from models.shift import Shift, parse_time
from models.state import ScheduleState
from models.suggestion import BalancingSuggestion
from models.validation import (
    CheckSeverity, CheckType, ValidationCheck, ValidationResult,
)


def _week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


class _CheckRun:
    """One validation pass over a simulated shift collection."""

    def __init__(self,
                 suggestion: BalancingSuggestion,
                 affected: List[Shift],
                 state: ScheduleState,
                 cfg: ValidationConfig):
        self.suggestion = suggestion
        self.affected = affected
        self.affected_ids: Set[str] = {s.id for s in affected}
        self.state = state
        self.cfg = cfg
        self.checks: List[ValidationCheck] = []

        simulated = dict(state.shifts)
        for shift in affected:
            simulated[shift.id] = shift
        self.simulated = list(simulated.values())

        self.by_employee: Dict[str, List[Shift]] = defaultdict(list)
        for shift in self.simulated:
            self.by_employee[shift.employee_id].append(shift)
        for shifts in self.by_employee.values():
            shifts.sort(key=lambda s: (s.get_start_datetime(), s.id))

        ids = [suggestion.source_employee_id, suggestion.target_employee_id]
        ids.extend(s.employee_id for s in affected)
        self.employee_ids = [i for i in dict.fromkeys(ids) if i and i in state.employees]

    def add(self, check_id: str, name: str, check_type: CheckType,
            severity: CheckSeverity, message: str, *,
            employees: Iterable[str] = (), shifts: Iterable[str] = (),
            details: Optional[dict] = None, suggestion: Optional[str] = None) -> None:
        self.checks.append(ValidationCheck(
            id=check_id,
            name=name,
            type=check_type,
            severity=severity,
            message=message,
            details=details or {},
            affected_employees=list(employees),
            affected_shifts=list(shifts),
            suggestion=suggestion,
        ))

    def employee(self, employee_id: str) -> Employee:
        return self.state.employees[employee_id]

    def run(self) -> List[ValidationCheck]:
        self._check_overlaps()
        self._check_consecutive_days()
        self._check_rest_periods()
        self._check_contract_hours()
        self._check_junior_assignments()
        self._check_store_authorization()
        self._check_referential_integrity()
        self._check_unavailability()
        self._check_store_capacity()
        self._check_shift_length()
        return self.checks

    # ==================== Checks ====================

    def _check_overlaps(self) -> None:
        """Two shifts of one employee on the same day may not intersect."""
        for employee_id in self.employee_ids:
            shifts = self.by_employee.get(employee_id, [])
            for i, first in enumerate(shifts):
                for second in shifts[i + 1:]:
                    if second.date != first.date:
                        break
                    if first.overlaps(second):
                        self.add(
                            f"overlap-{first.id}-{second.id}", "Shift overlap",
                            CheckType.OVERLAP, CheckSeverity.ERROR,
                            f"{self.employee(employee_id).full_name} would have overlapping shifts "
                            f"on {first.date.isoformat()}",
                            employees=[employee_id], shifts=[first.id, second.id],
                        )

    def _check_consecutive_days(self) -> None:
        limit = self.cfg.max_consecutive_days
        for employee_id in self.employee_ids:
            days = sorted({s.date for s in self.by_employee.get(employee_id, [])})
            run_start = prev = None
            length = 0
            for day in days + [None]:
                if day is not None and prev is not None and day == prev + timedelta(days=1):
                    length += 1
                else:
                    if length > limit:
                        self.add(
                            f"consecutive-{employee_id}-{run_start.isoformat()}",
                            "Consecutive working days", CheckType.LEGAL, CheckSeverity.WARNING,
                            f"{self.employee(employee_id).full_name} would work {length} consecutive "
                            f"days from {run_start.isoformat()} (max {limit})",
                            employees=[employee_id],
                            details={"days": length, "start": run_start.isoformat()},
                            suggestion="Schedule a rest day within the run",
                        )
                    run_start, length = day, 1
                prev = day

    def _check_rest_periods(self) -> None:
        """Short rest is an error only when the change creates or touches it."""
        minimum = self.cfg.min_rest_hours
        for employee_id in self.employee_ids:
            shifts = self.by_employee.get(employee_id, [])
            for previous, following in zip(shifts, shifts[1:]):
                if previous.id not in self.affected_ids and following.id not in self.affected_ids:
                    continue
                rest = previous.hours_until_next(following)
                if 0 < rest < minimum:
                    self.add(
                        f"rest-{previous.id}-{following.id}", "Rest period",
                        CheckType.LEGAL, CheckSeverity.ERROR,
                        f"{self.employee(employee_id).full_name} would have only {rest:.1f}h "
                        f"of rest (minimum {minimum:g}h)",
                        employees=[employee_id], shifts=[previous.id, following.id],
                        details={"rest_hours": round(rest, 2)},
                    )

    def _check_contract_hours(self) -> None:
        cfg = self.cfg
        for employee_id in self.employee_ids:
            employee = self.employee(employee_id)
            weeks = sorted({_week_start(s.date) for s in self.affected})
            ceiling = employee.max_hours(cfg.default_contract_hours)
            floor = employee.min_hours(ceiling)
            for week in weeks:
                week_end = week + timedelta(days=6)
                hours = sum(
                    s.worked_hours for s in self.by_employee.get(employee_id, [])
                    if week <= s.date <= week_end
                )
                ratio = hours / ceiling if ceiling else 0
                details = {"hours": round(hours, 1), "contract_hours": ceiling,
                           "week_start": week.isoformat()}
                if ratio > cfg.contract_error_ratio:
                    self.add(
                        f"contract-{employee_id}-{week.isoformat()}", "Contract hours",
                        CheckType.CONTRACT, CheckSeverity.ERROR,
                        f"{employee.full_name} would work {hours:.1f}h in the week of "
                        f"{week.isoformat()}, over {cfg.contract_error_ratio:.0%} of {ceiling:g}h",
                        employees=[employee_id], details=details,
                    )
                elif ratio > cfg.contract_warning_ratio:
                    self.add(
                        f"contract-{employee_id}-{week.isoformat()}", "Contract hours",
                        CheckType.CONTRACT, CheckSeverity.WARNING,
                        f"{employee.full_name} would work {hours:.1f}h in the week of "
                        f"{week.isoformat()}, approaching overtime ({ceiling:g}h contract)",
                        employees=[employee_id], details=details,
                    )
                if hours < floor * cfg.floor_warning_ratio:
                    self.add(
                        f"floor-{employee_id}-{week.isoformat()}", "Minimum hours",
                        CheckType.CONTRACT, CheckSeverity.WARNING,
                        f"{employee.full_name} would drop to {hours:.1f}h in the week of "
                        f"{week.isoformat()} (guaranteed {floor:g}h)",
                        employees=[employee_id], details={**details, "min_hours": floor},
                    )

    def _check_junior_assignments(self) -> None:
        cfg = self.cfg
        for shift in self.affected:
            employee = self.state.employees.get(shift.employee_id)
            if employee is None or employee.role != EmployeeRole.JUNIOR:
                continue
            reasons = []
            if shift.worked_hours > cfg.junior_max_shift_hours:
                reasons.append(f"a {shift.worked_hours:.1f}h shift")
            if parse_time(shift.start_time).hour >= cfg.evening_start_hour:
                reasons.append("an evening shift")
            if shift.is_weekend():
                reasons.append("a weekend shift")
            for reason in reasons:
                self.add(
                    f"junior-{shift.id}-{len(self.checks)}", "Junior assignment",
                    CheckType.COMPETENCY, CheckSeverity.WARNING,
                    f"Junior {employee.full_name} assigned {reason} on {shift.date.isoformat()}",
                    employees=[employee.id], shifts=[shift.id],
                    suggestion="Pair with a senior colleague for supervision",
                )

    def _check_store_authorization(self) -> None:
        for shift in self.affected:
            employee = self.state.employees.get(shift.employee_id)
            if employee is None or shift.store_id not in self.state.stores:
                continue
            if not employee.is_authorized_for(shift.store_id):
                store = self.state.stores[shift.store_id]
                self.add(
                    f"store-access-{shift.id}", "Store authorization",
                    CheckType.OPERATIONAL, CheckSeverity.ERROR,
                    f"{employee.full_name} is not authorized to work at {store.name}",
                    employees=[employee.id], shifts=[shift.id],
                )

    def _check_referential_integrity(self) -> None:
        employees = self.state.employees
        for shift in self.affected:
            if shift.employee_id not in employees:
                self.add(
                    f"missing-employee-{shift.id}", "Missing employee",
                    CheckType.OPERATIONAL, CheckSeverity.ERROR,
                    f"Shift {shift.id} references unknown employee {shift.employee_id}",
                    shifts=[shift.id],
                )
            if shift.store_id not in self.state.stores:
                self.add(
                    f"missing-store-{shift.id}", "Missing store",
                    CheckType.OPERATIONAL, CheckSeverity.ERROR,
                    f"Shift {shift.id} references unknown store {shift.store_id}",
                    shifts=[shift.id],
                )
        for role, employee_id in (("source", self.suggestion.source_employee_id),
                                  ("target", self.suggestion.target_employee_id)):
            if employee_id and employee_id not in employees:
                self.add(
                    f"missing-{role}-{employee_id}", f"Missing {role} employee",
                    CheckType.OPERATIONAL, CheckSeverity.ERROR,
                    f"Suggestion {role} employee {employee_id} does not exist",
                )

    def _check_unavailability(self) -> None:
        for shift in self.affected:
            employee = self.state.employees.get(shift.employee_id)
            if employee is None:
                continue
            for window in self.state.unavailabilities_for(shift.employee_id, shift.date):
                if window.is_approved:
                    severity, state = CheckSeverity.ERROR, "approved"
                elif window.is_pending:
                    severity, state = CheckSeverity.WARNING, "pending"
                else:
                    continue
                self.add(
                    f"unavailable-{shift.id}-{window.id}", "Unavailability",
                    CheckType.AVAILABILITY, severity,
                    f"{employee.full_name} has {state} {window.kind.value} leave on "
                    f"{shift.date.isoformat()}",
                    employees=[employee.id], shifts=[shift.id],
                    details={"unavailability_id": window.id},
                )

    def _check_store_capacity(self) -> None:
        days = {(s.store_id, s.date) for s in self.affected}
        for store_id, day in sorted(days):
            store = self.state.stores.get(store_id)
            if store is None:
                continue
            staff = {s.employee_id for s in self.simulated if s.store_id == store_id and s.date == day}
            if len(staff) > store.max_staff_per_day:
                self.add(
                    f"capacity-{store_id}-{day.isoformat()}", "Store capacity",
                    CheckType.OPERATIONAL, CheckSeverity.WARNING,
                    f"{store.name} would have {len(staff)} staff on {day.isoformat()} "
                    f"(capacity {store.max_staff_per_day})",
                    details={"staff": len(staff), "capacity": store.max_staff_per_day},
                )

    def _check_shift_length(self) -> None:
        for shift in self.affected:
            if shift.worked_hours > self.cfg.long_shift_hours:
                self.add(
                    f"long-shift-{shift.id}", "Shift length",
                    CheckType.LEGAL, CheckSeverity.WARNING,
                    f"Shift {shift.id} lasts {shift.worked_hours:.1f}h "
                    f"(over {self.cfg.long_shift_hours:g}h)",
                    employees=[shift.employee_id], shifts=[shift.id],
                )


def validate_suggestion(suggestion: BalancingSuggestion,
                        affected_shifts: List[Shift],
                        state: ScheduleState,
                        config: ValidationConfig) -> ValidationResult:
    """
    Run every check for a suggestion without caching.

    Args:
        suggestion: The suggestion being gated
        affected_shifts: Post-change copies of the shifts it would touch
        state: Current employees, stores, shifts and unavailabilities
        config: Validation thresholds

    Returns:
        Aggregated ValidationResult
    """
    return ValidationResult.from_checks(
        _CheckRun(suggestion, affected_shifts, state, config).run()
    )


class SuggestionValidator(BaseComponent):
    """
    Component that validates suggestions against the shared state.

    Results are cached by suggestion id and affected (shift, employee)
    pairs. Internal failures become a single blocking check instead of an
    exception.
    """

    def __init__(self,
                 state: ScheduleState,
                 cache: Optional[ValidationCache] = None,
                 config: Optional[AppConfig] = None,
                 message_bus: Optional[MessageBus] = None,
                 verbose: Optional[bool] = None):
        super().__init__("SuggestionValidator", config, message_bus, verbose)
        self.state = state
        if cache is None:
            cache = ValidationCache(self.config.validation.cache_size)
        self.cache = cache

    def execute(self, suggestion: BalancingSuggestion,
                affected_shifts: List[Shift], **kwargs) -> ValidationResult:
        return self.validate(suggestion, affected_shifts)

    def validate(self, suggestion: BalancingSuggestion,
                 affected_shifts: List[Shift]) -> ValidationResult:
        """
        Validate a suggestion, returning a cached result when available.

        Args:
            suggestion: The suggestion being gated
            affected_shifts: Post-change copies of the shifts it would touch

        Returns:
            ValidationResult; never raises
        """
        key = ValidationCache.make_key(suggestion.id, affected_shifts)
        cached = self.cache.get(key)
        if cached is not None:
            self.log(f"Cache hit for {suggestion.id}", "debug")
            return cached

        self._begin()
        try:
            result = validate_suggestion(
                suggestion, affected_shifts, self.state, self.config.validation
            )
            self.cache.put(key, result)
        except Exception as e:
            message = self._handle_error(e, f"validate({suggestion.id})")
            result = ValidationResult.from_checks([ValidationCheck(
                id="validation-error",
                name="Validation error",
                type=CheckType.OPERATIONAL,
                severity=CheckSeverity.ERROR,
                message=f"Validation failed: {message}",
            )])

        self.log(f"{suggestion.id}: {result.get_summary()}",
                 "success" if result.is_valid else "warning")
        self.publish(
            MessageType.VALIDATION_RESULT,
            {
                "suggestion_id": suggestion.id,
                "is_valid": result.is_valid,
                "errors": result.summary.errors,
                "warnings": result.summary.warnings,
                "estimated_success": result.estimated_success,
            },
        )
        self._end()
        return result
