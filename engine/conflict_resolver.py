"""
Conflict Resolver - Executes a conflict's resolution strategy step by step.
"""
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from .base import BaseComponent
from .cache import ValidationCache
from .callbacks import EngineCallbacks
from .errors import EngineError, ExecutionError
from communication.message import MessageType
from communication.message_bus import MessageBus
from config import AppConfig
from models.conflict import Conflict, ResolutionStep, Severity, StepAction
from models.results import (
    BatchResolutionResult, ConflictResolutionResult, ResolutionSummary,
)
from models.shift import ShiftPatch, ShiftUpdate, calculate_shift_hours
from models.state import ScheduleState


StepHandler = Callable[[Conflict, ResolutionStep, ConflictResolutionResult], Awaitable[None]]


class ConflictResolver(BaseComponent):
    """
    Component responsible for resolving detected conflicts.

    Responsibilities:
    - Pick the requested strategy, or the most confident one
    - Execute each step, isolating step failures
    - Mirror shift mutations into the shared state
    - Track resolution history

    A resolution succeeds iff no step recorded an error. Missing
    replacement staff and failed notifications are warnings only.
    """

    def __init__(self,
                 state: ScheduleState,
                 callbacks: Optional[EngineCallbacks] = None,
                 cache: Optional[ValidationCache] = None,
                 config: Optional[AppConfig] = None,
                 message_bus: Optional[MessageBus] = None,
                 verbose: Optional[bool] = None):
        super().__init__("ConflictResolver", config, message_bus, verbose)
        self.state = state
        self.callbacks = callbacks or EngineCallbacks()
        self.cache = cache
        self.resolution_history: List[ConflictResolutionResult] = []
        self._handlers: Dict[StepAction, StepHandler] = {
            StepAction.MODIFY_HOURS: self._modify_hours,
            StepAction.MOVE_SHIFT: self._move_shift,
            StepAction.NOTIFY_MANAGER: self._notify_manager,
        }

    async def execute(self, conflict: Conflict,
                      strategy_id: Optional[str] = None, **kwargs) -> ConflictResolutionResult:
        return await self.resolve_conflict(conflict, strategy_id)

    async def resolve_conflict(self, conflict: Conflict,
                               strategy_id: Optional[str] = None) -> ConflictResolutionResult:
        """
        Resolve one conflict.

        Args:
            conflict: The conflict to resolve
            strategy_id: Strategy to use; the first listed one if omitted

        Returns:
            ConflictResolutionResult; never raises
        """
        self._begin()
        if strategy_id is not None:
            strategy = conflict.get_strategy(strategy_id)
            missing = f"Strategy not found: {strategy_id}"
        else:
            strategy = conflict.best_strategy
            missing = f"No resolution strategy for conflict {conflict.id}"

        if strategy is None:
            self.log(missing, "warning")
            result = ConflictResolutionResult(
                success=False, conflict_id=conflict.id, errors=[missing],
            )
            self.resolution_history.append(result)
            self._end()
            return result

        self.log(f"Resolving {conflict.id} with {strategy.id}")
        result = ConflictResolutionResult(
            success=False, conflict_id=conflict.id, strategy_used=strategy.id,
        )

        for step in strategy.steps:
            handler = self._handlers.get(step.action)
            try:
                if handler is None:
                    kind = getattr(step.action, "value", step.action)
                    raise ExecutionError(f"Unsupported step action: {kind}")
                await handler(conflict, step, result)
            except EngineError as e:
                result.errors.append(f"Step {step.id}: {e}")
                self.log(f"Step {step.id} failed: {e}", "warning")
            except Exception as e:
                message = self._handle_error(e, f"step {step.id} of {conflict.id}")
                result.errors.append(f"Step {step.id}: {message}")

        result.success = not result.errors
        employees = set(conflict.affected_employees)
        employees.update(s.employee_id for s in result.modified_shifts)
        result.summary = ResolutionSummary(
            conflicts_resolved=1 if result.success else 0,
            shifts_modified=len({s.id for s in result.modified_shifts}),
            employees_affected=len(employees),
            time_saved=strategy.estimated_time if result.success else 0,
        )

        if result.modified_shifts and self.cache is not None:
            self.cache.invalidate()

        self.resolution_history.append(result)
        self.log(
            f"{conflict.id}: {'resolved' if result.success else 'not resolved'} "
            f"({len(result.errors)} errors, {len(result.warnings)} warnings)",
            "success" if result.success else "warning",
        )
        self.publish(
            MessageType.RESOLUTION_SELECTED,
            {
                "conflict_id": conflict.id,
                "strategy": strategy.id,
                "success": result.success,
                "shifts_modified": result.summary.shifts_modified,
            },
        )
        self._end()
        return result

    async def resolve_all_conflicts(self, conflicts: List[Conflict]) -> BatchResolutionResult:
        """
        Resolve every auto-resolvable conflict, most severe first.

        Conflicts are processed sequentially; one failure never stops the batch.
        """
        queue = sorted(
            (c for c in conflicts if c.auto_resolvable),
            key=lambda c: c.severity.rank,
            reverse=True,
        )
        skipped = len(conflicts) - len(queue)
        if skipped:
            self.log(f"Skipping {skipped} conflicts that need manual review", "info")

        batch = BatchResolutionResult()
        batch.summary.total_conflicts = len(queue)
        for conflict in queue:
            result = await self.resolve_conflict(conflict)
            if result.success:
                batch.successful.append(result)
                batch.summary.total_time_saved += result.summary.time_saved
            else:
                batch.failed.append(result)
            batch.summary.shifts_modified += result.summary.shifts_modified
            await asyncio.sleep(0)

        batch.summary.resolved = len(batch.successful)
        batch.summary.failed = len(batch.failed)
        self.log(
            f"Resolved {batch.summary.resolved}/{batch.summary.total_conflicts} conflicts, "
            f"{batch.summary.total_time_saved} minutes saved",
            "success" if not batch.failed else "warning",
        )
        self.publish(MessageType.COMPLETE, {
            "operation": "resolve_all_conflicts",
            "resolved": batch.summary.resolved,
            "failed": batch.summary.failed,
        })
        return batch

    def get_resolution_stats(self) -> Dict[str, int]:
        resolved = sum(1 for r in self.resolution_history if r.success)
        return {
            "attempted": len(self.resolution_history),
            "resolved": resolved,
            "failed": len(self.resolution_history) - resolved,
            "time_saved": sum(r.summary.time_saved for r in self.resolution_history),
        }

    # ==================== Step handlers ====================

    async def _modify_hours(self, conflict: Conflict, step: ResolutionStep,
                            result: ConflictResolutionResult) -> None:
        shift = self.state.get_shift(step.target.shift_id)
        if shift is None:
            raise ExecutionError(f"Shift not found: {step.target.shift_id}")
        if shift.is_locked:
            raise ExecutionError(f"Shift {shift.id} is locked")

        params = step.target.parameters
        patch = ShiftPatch(
            start_time=params.get("start_time"),
            end_time=params.get("end_time"),
            break_duration=params.get("break_duration"),
        )
        if patch.is_empty():
            raise ExecutionError(f"Step {step.id} has no time changes")
        patch.validate()

        changed = shift.apply(patch)
        if changed.get_end_datetime() <= changed.get_start_datetime():
            raise ExecutionError(
                f"Shift {shift.id} would not end after it starts "
                f"({changed.start_time}-{changed.end_time})"
            )
        patch.actual_hours = calculate_shift_hours(
            changed.start_time, changed.end_time, changed.break_duration
        )
        await self.callbacks.apply_updates([ShiftUpdate(shift.id, patch)])
        result.modified_shifts.append(self.state.apply_update(shift.id, patch))

    async def _move_shift(self, conflict: Conflict, step: ResolutionStep,
                          result: ConflictResolutionResult) -> None:
        if step.target.shift_id is None:
            result.warnings.append(f"Step {step.id}: no shift to move")
            return
        shift = self.state.get_shift(step.target.shift_id)
        if shift is None:
            raise ExecutionError(f"Shift not found: {step.target.shift_id}")
        if shift.is_locked:
            raise ExecutionError(f"Shift {shift.id} is locked")

        store_id = step.target.store_id or shift.store_id
        implicated = set(conflict.affected_employees) | {shift.employee_id}
        replacement = next(
            (e for e in self.state.employees_at_store(store_id) if e.id not in implicated),
            None,
        )
        if replacement is None:
            result.warnings.append(
                f"No available employee at store {store_id} to take shift {shift.id}"
            )
            return

        patch = ShiftPatch(employee_id=replacement.id)
        await self.callbacks.apply_updates([ShiftUpdate(shift.id, patch)])
        result.modified_shifts.append(self.state.apply_update(shift.id, patch))
        self.log(f"Moved {shift.id} to {replacement.full_name}", "debug")

    async def _notify_manager(self, conflict: Conflict, step: ResolutionStep,
                              result: ConflictResolutionResult) -> None:
        level = "error" if conflict.severity == Severity.CRITICAL else "warning"
        message = f"Conflict detected: {conflict.title}. {step.description}"
        try:
            delivered = await self.callbacks.notify(message, level)
        except Exception as e:
            result.warnings.append(f"Manager notification failed: {e}")
            self.log(f"Notification for {conflict.id} failed: {e}", "warning")
            return
        if delivered:
            self.publish(MessageType.NOTIFICATION, {"message": message, "level": level})
