"""
Workload Balancer - Computes equity metrics and proposes corrective actions.

All computations are pure functions of the current shifts; generating
suggestions never mutates anything.
"""
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from itertools import count
from typing import Callable, Dict, List, Optional, Tuple

from .base import BaseComponent
from communication.message import MessageType
from communication.message_bus import MessageBus
from config import AppConfig, BalancingConfig, config as default_config
from models.employee import Employee
from models.shift import Shift
from models.store import Store
from models.suggestion import (
    AdjustDirection, BalanceRating, BalancingMetrics, BalancingReport,
    BalancingSuggestion, EmployeeWorkload, HourLimits, Priority,
    ProposedChanges, StaffingLevel, StoreBalance, SuggestionImpact,
    SuggestionType,
)


@dataclass
class BalancingOptions:
    """
    Filters and overrides for a balancing run.

    Attributes:
        store_filter: Restrict the run to one store
        target_hours_per_week: Ceiling for employees without contract hours
        hour_overrides: Per-employee ceiling/floor overrides
    """
    store_filter: Optional[str] = None
    target_hours_per_week: Optional[float] = None
    hour_overrides: Dict[str, HourLimits] = field(default_factory=dict)


def _r1(value: float) -> float:
    return round(value, 1)


# =============================================================================
# METRICS
# =============================================================================

def _employee_workloads(employees: List[Employee],
                        shifts: List[Shift],
                        options: BalancingOptions,
                        target: float) -> List[EmployeeWorkload]:
    by_employee: Dict[str, List[Shift]] = {}
    for shift in shifts:
        by_employee.setdefault(shift.employee_id, []).append(shift)

    workloads = []
    for employee in employees:
        if not employee.is_active:
            continue
        employee_shifts = by_employee.get(employee.id, [])
        if options.store_filter and employee.store_id != options.store_filter and not employee_shifts:
            continue

        override = options.hour_overrides.get(employee.id, HourLimits())
        ceiling = override.max_hours or employee.max_hours(target)
        floor = override.min_hours or employee.min_hours(ceiling)
        total = _r1(sum(s.worked_hours for s in employee_shifts))
        deviation = _r1(total - ceiling)

        workloads.append(EmployeeWorkload(
            employee_id=employee.id,
            employee_name=employee.full_name,
            store_id=employee.store_id,
            current_hours=total,
            ideal_hours=ceiling,
            min_hours=floor,
            deviation=deviation,
            deviation_percent=_r1(deviation / ceiling * 100) if ceiling else 0.0,
            shift_ids=[s.id for s in employee_shifts],
        ))
    return workloads


def _store_balances(stores: List[Store],
                    shifts: List[Shift],
                    options: BalancingOptions,
                    cfg: BalancingConfig) -> List[StoreBalance]:
    scoped = [
        s for s in stores
        if s.is_active and (not options.store_filter or s.id == options.store_filter)
    ]
    if not scoped:
        return []

    totals = {store.id: 0.0 for store in scoped}
    for shift in shifts:
        if shift.store_id in totals:
            totals[shift.store_id] += shift.worked_hours
    average = sum(totals.values()) / len(totals)

    balances = []
    for store in scoped:
        deviation = totals[store.id] - average
        level = StaffingLevel.OPTIMAL
        if average > 0 and abs(deviation) > average * cfg.store_deviation_ratio:
            level = StaffingLevel.UNDERSTAFFED if deviation < 0 else StaffingLevel.OVERSTAFFED
        balances.append(StoreBalance(
            store_id=store.id,
            store_name=store.name,
            current_hours=_r1(totals[store.id]),
            ideal_hours=_r1(average),
            deviation=_r1(deviation),
            staffing_level=level,
        ))
    return balances


def equity_score(hours: List[float]) -> float:
    """
    Evenness of the hour distribution, 0-100.

    100 minus the coefficient of variation (population standard deviation
    over mean) as a percentage. An empty or all-zero distribution is
    perfectly even.
    """
    if not hours:
        return 100.0
    mean = sum(hours) / len(hours)
    if mean == 0:
        return 100.0
    variance = sum((h - mean) ** 2 for h in hours) / len(hours)
    score = 100 - math.sqrt(variance) / mean * 100
    return _r1(min(100.0, max(0.0, score)))


# =============================================================================
# SUGGESTIONS
# =============================================================================

class _SuggestionBuilder:
    """Generates suggestions in a fixed order with sequential ids."""

    def __init__(self,
                 workloads: List[EmployeeWorkload],
                 store_balances: List[StoreBalance],
                 shifts: List[Shift],
                 stores: Dict[str, Store],
                 cfg: BalancingConfig):
        self.workloads = workloads
        self.store_balances = store_balances
        self.shifts = {s.id: s for s in shifts}
        self.stores = stores
        self.cfg = cfg
        self._ids = count(1)
        self.suggestions: List[BalancingSuggestion] = []

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _shifts_of(self, workload: EmployeeWorkload) -> List[Shift]:
        return [self.shifts[sid] for sid in workload.shift_ids]

    def _store_name(self, store_id: Optional[str]) -> Optional[str]:
        store = self.stores.get(store_id) if store_id else None
        return store.name if store else None

    def build(self) -> List[BalancingSuggestion]:
        self._redistribute()
        self._swaps()
        self._intra_store()
        self._adjust_hours()
        self._add_remove()
        # sorted() is stable, so generation order breaks priority ties
        return sorted(self.suggestions, key=lambda s: s.priority.rank, reverse=True)

    def _redistribute(self) -> None:
        cfg = self.cfg
        for over in self.workloads:
            if over.deviation_percent <= cfg.redistribute_threshold_percent or over.current_hours <= 0:
                continue
            candidates = [
                under for under in self.workloads
                if under.employee_id != over.employee_id
                and under.store_id is not None
                and under.store_id == over.store_id
                and under.deviation_percent < -cfg.redistribute_threshold_percent
            ]
            if not candidates:
                continue
            best = min(candidates, key=lambda u: (abs(u.deviation_percent), abs(u.deviation)))

            hours = _r1(min(
                abs(over.deviation) / 2,
                abs(best.deviation) / 2,
                cfg.max_redistribute_hours,
                over.current_hours,
            ))
            if hours < cfg.min_redistribute_hours:
                continue

            low, high = cfg.auto_apply_window
            self.suggestions.append(BalancingSuggestion(
                id=self._next_id("redistribute"),
                type=SuggestionType.REDISTRIBUTE,
                priority=(Priority.HIGH if over.deviation_percent > cfg.redistribute_high_priority_percent
                          else Priority.MEDIUM),
                title="Redistribute hours",
                description=f"Move {hours:.1f}h from {over.employee_name} to {best.employee_name}",
                source_employee_id=over.employee_id,
                target_employee_id=best.employee_id,
                source_employee_name=over.employee_name,
                target_employee_name=best.employee_name,
                store_id=over.store_id,
                store_name=self._store_name(over.store_id),
                proposed_changes=ProposedChanges(
                    action="Redistribute hours",
                    from_value=f"{over.current_hours}h",
                    to_value=(f"{over.current_hours - hours:.1f}h → "
                              f"{best.current_hours + hours:.1f}h"),
                    impact=SuggestionImpact(hours, 8.5, 12.3),
                ),
                auto_applicable=low <= hours <= high,
                estimated_duration=15,
            ))

    def _find_swap(self, source: EmployeeWorkload,
                   target: EmployeeWorkload) -> Optional[Tuple[Shift, Shift, float]]:
        best = None
        for first in self._shifts_of(source):
            for second in self._shifts_of(target):
                if first.date == second.date and first.store_id == second.store_id:
                    continue
                diff = abs(first.worked_hours - second.worked_hours)
                if diff > self.cfg.swap_max_hour_difference:
                    continue
                if best is None or diff < best[2]:
                    best = (first, second, diff)
        return best

    def _swaps(self) -> None:
        cfg = self.cfg
        threshold = cfg.swap_threshold_percent
        for i, first in enumerate(self.workloads):
            for second in self.workloads[i + 1:]:
                if first.store_id is None or first.store_id != second.store_id:
                    continue
                if abs(first.deviation_percent) <= threshold or abs(second.deviation_percent) <= threshold:
                    continue
                if first.deviation_percent * second.deviation_percent >= 0:
                    continue
                source, target = (first, second) if first.deviation_percent > 0 else (second, first)
                match = self._find_swap(source, target)
                if match is None:
                    continue
                source_shift, target_shift, diff = match
                worst = max(abs(source.deviation_percent), abs(target.deviation_percent))
                self.suggestions.append(BalancingSuggestion(
                    id=self._next_id("swap"),
                    type=SuggestionType.SWAP_SHIFTS,
                    priority=Priority.HIGH if worst > cfg.swap_high_priority_percent else Priority.MEDIUM,
                    title="Swap shifts",
                    description=f"Swap shifts between {source.employee_name} and {target.employee_name}",
                    source_employee_id=source.employee_id,
                    target_employee_id=target.employee_id,
                    source_employee_name=source.employee_name,
                    target_employee_name=target.employee_name,
                    store_id=source.store_id,
                    store_name=self._store_name(source.store_id),
                    shift_id=source_shift.id,
                    proposed_changes=ProposedChanges(
                        action="Swap shifts",
                        from_value=f"{source_shift.start_time}-{source_shift.end_time}",
                        to_value=f"{target_shift.start_time}-{target_shift.end_time}",
                        impact=SuggestionImpact(_r1(diff), 6.8, 9.2),
                    ),
                    auto_applicable=True,
                    estimated_duration=10,
                ))

    def _intra_store(self) -> None:
        cfg = self.cfg
        groups: Dict[str, List[EmployeeWorkload]] = {}
        for workload in self.workloads:
            if workload.store_id is not None:
                groups.setdefault(workload.store_id, []).append(workload)

        for store_id, members in groups.items():
            if len(members) < 2:
                continue
            mean = sum(m.current_hours for m in members) / len(members)
            variance = sum((m.current_hours - mean) ** 2 for m in members) / len(members)
            if variance <= cfg.intra_store_variance:
                continue
            store_name = self._store_name(store_id) or store_id
            self.suggestions.append(BalancingSuggestion(
                id=self._next_id("intra-store-balance"),
                type=SuggestionType.REDISTRIBUTE,
                priority=Priority.HIGH if variance > cfg.intra_store_high_variance else Priority.MEDIUM,
                title="Rebalance within store",
                description=f"Rebalance hours among {store_name} employees to improve internal equity",
                store_id=store_id,
                store_name=store_name,
                proposed_changes=ProposedChanges(
                    action="Redistribute hours internally",
                    from_value=f"Current variance: {variance:.1f}h²",
                    to_value="More even internal distribution",
                    impact=SuggestionImpact(_r1(math.sqrt(variance) * 0.5), 8.2, 12.1),
                ),
                auto_applicable=False,
                estimated_duration=20,
            ))

    def _adjust_hours(self) -> None:
        low, high = self.cfg.adjust_window
        for workload in self.workloads:
            magnitude = abs(workload.deviation)
            if not low < magnitude < high:
                continue
            direction = AdjustDirection.REDUCE if workload.deviation > 0 else AdjustDirection.EXTEND
            self.suggestions.append(BalancingSuggestion(
                id=self._next_id("adjust-hours"),
                type=SuggestionType.ADJUST_HOURS,
                priority=Priority.LOW,
                title="Adjust hours",
                description=f"Adjust {workload.employee_name}'s hours to optimize workload",
                source_employee_id=workload.employee_id,
                source_employee_name=workload.employee_name,
                store_id=workload.store_id,
                store_name=self._store_name(workload.store_id),
                proposed_changes=ProposedChanges(
                    action="Reduce hours" if direction == AdjustDirection.REDUCE else "Increase hours",
                    from_value=f"{workload.current_hours}h",
                    to_value=f"{workload.current_hours - workload.deviation:.1f}h",
                    impact=SuggestionImpact(_r1(magnitude), 3.2, 4.1),
                    direction=direction,
                ),
                auto_applicable=magnitude < self.cfg.adjust_auto_below,
                estimated_duration=8,
            ))

    def _add_remove(self) -> None:
        limit = self.cfg.store_shift_deviation_hours
        for balance in self.store_balances:
            members = [w for w in self.workloads if w.store_id == balance.store_id]
            if not members:
                continue

            if balance.staffing_level == StaffingLevel.UNDERSTAFFED and balance.deviation < -limit:
                chosen = min(members, key=lambda w: w.deviation_percent)
                self.suggestions.append(BalancingSuggestion(
                    id=self._next_id("add-shift"),
                    type=SuggestionType.ADD_SHIFT,
                    priority=Priority.MEDIUM,
                    title="Add shift",
                    description=(f"Add a shift for {chosen.employee_name} at {balance.store_name} "
                                 f"({abs(balance.deviation):.1f}h below average)"),
                    source_employee_id=chosen.employee_id,
                    source_employee_name=chosen.employee_name,
                    store_id=balance.store_id,
                    store_name=balance.store_name,
                    proposed_changes=ProposedChanges(
                        action="Add shift",
                        from_value=f"{balance.current_hours}h",
                        to_value=f"{balance.ideal_hours}h",
                        impact=SuggestionImpact(_r1(abs(balance.deviation)), 5.5, 7.0),
                    ),
                    auto_applicable=False,
                    estimated_duration=10,
                ))

            elif balance.staffing_level == StaffingLevel.OVERSTAFFED and balance.deviation > limit:
                chosen = max(members, key=lambda w: w.deviation_percent)
                shifts = self._shifts_of(chosen)
                if not shifts:
                    continue
                smallest = min(shifts, key=lambda s: (s.worked_hours, s.id))
                self.suggestions.append(BalancingSuggestion(
                    id=self._next_id("remove-shift"),
                    type=SuggestionType.REMOVE_SHIFT,
                    priority=Priority.MEDIUM,
                    title="Remove shift",
                    description=(f"Remove {chosen.employee_name}'s {smallest.worked_hours:.1f}h shift "
                                 f"at {balance.store_name} ({balance.deviation:.1f}h above average)"),
                    source_employee_id=chosen.employee_id,
                    source_employee_name=chosen.employee_name,
                    store_id=balance.store_id,
                    store_name=balance.store_name,
                    shift_id=smallest.id,
                    proposed_changes=ProposedChanges(
                        action="Remove shift",
                        from_value=f"{balance.current_hours}h",
                        to_value=f"{balance.current_hours - smallest.worked_hours:.1f}h",
                        impact=SuggestionImpact(_r1(smallest.worked_hours), 4.0, 6.0),
                    ),
                    auto_applicable=False,
                    estimated_duration=10,
                ))


def compute_balancing(employees: List[Employee],
                      stores: List[Store],
                      shifts: List[Shift],
                      week_start: date,
                      options: Optional[BalancingOptions] = None,
                      config: Optional[BalancingConfig] = None) -> BalancingReport:
    """
    Compute workload equity for a 7-day period and propose corrective actions.

    Args:
        employees: All employees; inactive ones are skipped
        stores: All stores
        shifts: All shifts; locked and out-of-period shifts are ignored
        week_start: First day of the period
        options: Store filter and hour overrides
        config: Balancing thresholds

    Returns:
        BalancingReport with metrics and priority-sorted suggestions
    """
    cfg = config or default_config.balancing
    options = options or BalancingOptions()
    target = options.target_hours_per_week or cfg.target_hours_per_week
    week_end = week_start + timedelta(days=6)

    period_shifts = [
        s for s in shifts
        if week_start <= s.date <= week_end
        and not s.is_locked
        and (not options.store_filter or s.store_id == options.store_filter)
    ]

    workloads = _employee_workloads(employees, period_shifts, options, target)
    store_balances = _store_balances(stores, period_shifts, options, cfg)

    current = equity_score([w.current_hours for w in workloads])
    metrics = BalancingMetrics(
        current_equity_score=current,
        potential_equity_score=min(100.0, _r1(current + cfg.potential_equity_uplift)),
        workload_distribution=workloads,
        store_balance=store_balances,
        overall_balance=BalanceRating.from_score(current),
    )

    builder = _SuggestionBuilder(
        workloads, store_balances, period_shifts, {s.id: s for s in stores}, cfg
    )
    return BalancingReport(
        metrics=metrics,
        suggestions=builder.build(),
        employee_stats={w.employee_id: w for w in workloads},
        store_stats={b.store_id: b for b in store_balances},
    )


# =============================================================================
# REPORT HELPERS
# =============================================================================

def suggestions_by_type(suggestions: List[BalancingSuggestion],
                        suggestion_type: SuggestionType) -> List[BalancingSuggestion]:
    return [s for s in suggestions if s.type == suggestion_type]


def high_priority(suggestions: List[BalancingSuggestion]) -> List[BalancingSuggestion]:
    return [s for s in suggestions if s.priority == Priority.HIGH]


def auto_applicable(suggestions: List[BalancingSuggestion]) -> List[BalancingSuggestion]:
    return [s for s in suggestions if s.auto_applicable]


def estimate_total_duration(suggestions: List[BalancingSuggestion]) -> int:
    """Minutes needed to review and apply every suggestion."""
    return sum(s.estimated_duration for s in suggestions)


def needs_urgent_balancing(suggestions: List[BalancingSuggestion]) -> bool:
    return any(s.priority == Priority.HIGH for s in suggestions)


class WorkloadBalancer(BaseComponent):
    """
    Component wrapper around ``compute_balancing``.

    Keeps the last report so callers can query it without recomputing.
    """

    def __init__(self,
                 config: Optional[AppConfig] = None,
                 message_bus: Optional[MessageBus] = None,
                 verbose: Optional[bool] = None,
                 clock: Optional[Callable[[], date]] = None):
        super().__init__("WorkloadBalancer", config, message_bus, verbose)
        self.clock = clock or date.today
        self.last_report: Optional[BalancingReport] = None

    def default_week_start(self) -> date:
        """Monday of the current week."""
        today = self.clock()
        return today - timedelta(days=today.weekday())

    def execute(self,
                employees: List[Employee],
                stores: List[Store],
                shifts: List[Shift],
                week_start: Optional[date] = None,
                options: Optional[BalancingOptions] = None,
                **kwargs) -> BalancingReport:
        self._begin()
        week_start = week_start or self.default_week_start()
        self.log(f"Balancing week of {week_start.isoformat()}")

        report = compute_balancing(
            employees, stores, shifts, week_start,
            options=options, config=self.config.balancing,
        )
        self.last_report = report

        metrics = report.metrics
        self.log(
            f"Equity {metrics.current_equity_score:.1f} ({metrics.overall_balance.value}), "
            f"{len(report.suggestions)} suggestions"
        )
        if needs_urgent_balancing(report.suggestions):
            self.log(f"{len(high_priority(report.suggestions))} high-priority suggestions", "warning")

        self.publish(
            MessageType.SUGGESTIONS,
            {
                "week_start": week_start.isoformat(),
                "equity_score": metrics.current_equity_score,
                "suggestions": len(report.suggestions),
                "auto_applicable": len(auto_applicable(report.suggestions)),
            },
        )
        self._end()
        return report
