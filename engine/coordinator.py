"""
Shift Engine - Wires every engine component around one shared state.

This module implements the coordinator facade with:
- One ScheduleState, ValidationCache and callback bundle for all components
- Detection and balancing with profiling
- Validation, execution and resolution entry points
- Snapshot-wrapped execution and rollback
"""
import time
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from rich.table import Table

from .balancing_executor import BalancingExecutor
from .base import BaseComponent
from .cache import ValidationCache
from .callbacks import EngineCallbacks
from .conflict_detector import ConflictDetector
from .conflict_resolver import ConflictResolver
from .snapshot_manager import SnapshotManager
from .suggestion_validator import SuggestionValidator
from .workload_balancer import BalancingOptions, WorkloadBalancer

from benchmark import profile_function
from communication.message import MessageType
from communication.message_bus import MessageBus
from config import AppConfig
from models.conflict import Conflict, Severity
from models.employee import Employee, Unavailability
from models.results import (
    BalancingResult, BatchApplyResult, BatchResolutionResult,
    ConflictResolutionResult, RollbackOperation,
)
from models.shift import Shift
from models.state import ScheduleState
from models.store import Store
from models.suggestion import BalancingReport, BalancingSuggestion
from models.validation import ValidationResult


class ShiftEngine(BaseComponent):
    """
    Coordinator that owns the engine components.

    Responsibilities:
    - Mirror the entity store's collections in one ScheduleState
    - Share the validation cache between validator, executor and resolver
    - Expose detection, balancing, execution, resolution and rollback
    - Report a summary of the last run

    Callers must ``refresh()`` whenever the entity store changes behind the
    engine's back; mutations made through the engine are mirrored
    automatically.
    """

    def __init__(self,
                 callbacks: Optional[EngineCallbacks] = None,
                 config: Optional[AppConfig] = None,
                 message_bus: Optional[MessageBus] = None,
                 verbose: Optional[bool] = None,
                 clock: Optional[Callable[[], date]] = None):
        super().__init__("ShiftEngine", config, message_bus, verbose)
        self.clock = clock or date.today
        self.callbacks = callbacks or EngineCallbacks()
        self.state = ScheduleState()
        self.cache = ValidationCache(self.config.validation.cache_size)

        shared = dict(config=self.config, message_bus=message_bus, verbose=verbose)
        self.detector = ConflictDetector(clock=self.clock, **shared)
        self.balancer = WorkloadBalancer(clock=self.clock, **shared)
        self.validator = SuggestionValidator(self.state, cache=self.cache, **shared)
        self.executor = BalancingExecutor(
            self.state, self.validator, callbacks=self.callbacks, clock=self.clock, **shared
        )
        self.resolver = ConflictResolver(
            self.state, callbacks=self.callbacks, cache=self.cache, **shared
        )
        self.snapshots = SnapshotManager(
            self.state, callbacks=self.callbacks, cache=self.cache, **shared
        )

        self.last_conflicts: List[Conflict] = []
        self.last_report: Optional[BalancingReport] = None

    def execute(self, week_start: Optional[date] = None, **kwargs) -> Dict[str, Any]:
        """
        Run detection and balancing over the current state.

        Returns:
            Dictionary with the conflicts, the balancing report and timings
        """
        started = time.perf_counter()
        conflicts = self.detect_conflicts()
        report = self.compute_balancing(week_start)
        elapsed = time.perf_counter() - started

        self.publish(MessageType.COMPLETE, {
            "operation": "analyze",
            "conflicts": len(conflicts),
            "suggestions": len(report.suggestions),
        })
        return {
            "conflicts": conflicts,
            "report": report,
            "elapsed_time_seconds": elapsed,
        }

    # ==================== State ====================

    def refresh(self,
                employees: Iterable[Employee],
                stores: Iterable[Store],
                shifts: Iterable[Shift],
                unavailabilities: Optional[Iterable[Unavailability]] = None) -> None:
        """
        Replace the mirrored collections and drop cached validations.

        Args:
            employees: All employees
            stores: All stores
            shifts: All shifts
            unavailabilities: Time-off windows
        """
        self.state.replace_all(employees, stores, shifts, unavailabilities)
        self.cache.invalidate()
        summary = self.state.summary()
        self.log(
            f"State refreshed: {summary['employees']} employees, "
            f"{summary['stores']} stores, {summary['shifts']} shifts"
        )

    # ==================== Analysis ====================

    @profile_function
    def detect_conflicts(self,
                         reference_date: Optional[date] = None,
                         period: Optional[Tuple[date, date]] = None) -> List[Conflict]:
        """Detect conflicts in the current state."""
        self.last_conflicts = self.detector.execute(
            list(self.state.employees.values()),
            list(self.state.stores.values()),
            self.state.all_shifts(),
            reference_date=reference_date,
            unavailabilities=self.state.unavailabilities,
            period=period,
        )
        return self.last_conflicts

    @profile_function
    def compute_balancing(self,
                          week_start: Optional[date] = None,
                          options: Optional[BalancingOptions] = None) -> BalancingReport:
        """Compute workload metrics and suggestions for one week."""
        self.last_report = self.balancer.execute(
            list(self.state.employees.values()),
            list(self.state.stores.values()),
            self.state.all_shifts(),
            week_start=week_start,
            options=options,
        )
        return self.last_report

    def validate(self, suggestion: BalancingSuggestion,
                 affected_shifts: List[Shift]) -> ValidationResult:
        return self.validator.validate(suggestion, affected_shifts)

    # ==================== Mutation ====================

    async def apply_suggestion(self, suggestion: BalancingSuggestion) -> BalancingResult:
        return await self.executor.apply_suggestion(suggestion)

    async def apply_suggestions(self, suggestions: List[BalancingSuggestion]) -> BatchApplyResult:
        return await self.executor.apply_suggestions(suggestions)

    async def apply_with_snapshot(self,
                                  suggestion: BalancingSuggestion,
                                  user_action: Optional[str] = None
                                  ) -> Tuple[str, BalancingResult]:
        """
        Snapshot the shifts, then apply a suggestion.

        The snapshot is kept even when the apply fails, so the caller can
        roll back to it either way.

        Returns:
            (snapshot id, BalancingResult)
        """
        snapshot_id = self.snapshots.create_snapshot(
            f"Before {suggestion.title.lower()}",
            operation=suggestion.type.value,
            suggestion=suggestion,
            user_action=user_action,
        )
        result = await self.executor.apply_suggestion(suggestion)
        return snapshot_id, result

    async def resolve_conflict(self, conflict: Conflict,
                               strategy_id: Optional[str] = None) -> ConflictResolutionResult:
        return await self.resolver.resolve_conflict(conflict, strategy_id)

    async def resolve_all_conflicts(self,
                                    conflicts: Optional[List[Conflict]] = None
                                    ) -> BatchResolutionResult:
        """Resolve the given conflicts, or those of the last detection run."""
        if conflicts is None:
            conflicts = self.last_conflicts
        return await self.resolver.resolve_all_conflicts(conflicts)

    # ==================== Snapshots ====================

    def create_snapshot(self, description: str, operation: str = "",
                        suggestion: Optional[BalancingSuggestion] = None) -> str:
        return self.snapshots.create_snapshot(description, operation, suggestion)

    async def rollback_to_snapshot(self, snapshot_id: str) -> RollbackOperation:
        return await self.snapshots.rollback_to_snapshot(snapshot_id)

    # ==================== Reporting ====================

    def components(self) -> List[BaseComponent]:
        return [
            self.detector, self.balancer, self.validator,
            self.executor, self.resolver, self.snapshots,
        ]

    def get_metrics(self) -> Dict[str, Any]:
        """Get metrics of the engine and every component."""
        metrics = super().get_metrics()
        metrics["state"] = self.state.summary()
        metrics["cache"] = self.cache.stats()
        metrics["snapshots"] = self.snapshots.get_snapshot_summary()
        metrics["resolutions"] = self.resolver.get_resolution_stats()
        metrics["components"] = {c.name: c.get_metrics() for c in self.components()}
        return metrics

    def print_report(self) -> None:
        """Print the last detection and balancing results."""
        table = Table(title="🗓️ Shift Engine Report")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")

        summary = self.state.summary()
        table.add_row("Employees", str(summary["employees"]))
        table.add_row("Stores", str(summary["stores"]))
        table.add_row("Shifts", f"{summary['shifts']} ({summary['locked_shifts']} locked)")
        table.add_row("Total Hours", f"{summary['total_hours']:.1f}")

        critical = sum(1 for c in self.last_conflicts if c.severity == Severity.CRITICAL)
        table.add_row("Conflicts", f"{len(self.last_conflicts)} ({critical} critical)")
        for conflict_type, count in sorted(self.detector.last_breakdown.items()):
            table.add_row(f"  {conflict_type}", str(count))

        if self.last_report is not None:
            metrics = self.last_report.metrics
            table.add_row(
                "Equity Score",
                f"{metrics.current_equity_score:.1f} ({metrics.overall_balance.value})",
            )
            table.add_row("Potential Score", f"{metrics.potential_equity_score:.1f}")
            table.add_row("Suggestions", str(len(self.last_report.suggestions)))

        cache = self.cache.stats()
        table.add_row("Validation Cache", f"{cache['size']}/{cache['max_size']} "
                                          f"({cache['hits']} hits, {cache['misses']} misses)")
        table.add_row("Snapshots", str(len(self.snapshots.snapshots)))

        self.console.print(table)
