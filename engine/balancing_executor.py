"""
Balancing Executor - Applies suggestions by mutating concrete shifts.

Each suggestion type has a dedicated apply routine that picks the shifts
to touch, re-validates the post-change result, and only then writes
through the injected callbacks. Failures of any kind come back as a
BalancingResult with success=False; nothing is raised to the caller.
"""
import asyncio
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional

from .base import BaseComponent
from .callbacks import EngineCallbacks
from .errors import EngineError, ExecutionError, ValidationBlocked
from .suggestion_validator import SuggestionValidator
from communication.message import MessageType
from communication.message_bus import MessageBus
from config import AppConfig
from models.employee import ALL_STORES, ApprovalStatus
from models.results import (
    BalancingResult, BalancingSummary, BatchApplyResult, FailedSuggestion,
)
from models.shift import (
    Shift, ShiftDraft, ShiftPatch, ShiftUpdate, calculate_shift_hours, parse_time,
)
from models.state import ScheduleState
from models.suggestion import AdjustDirection, BalancingSuggestion, SuggestionType


class BalancingExecutor(BaseComponent):
    """
    Component that turns a suggestion into shift mutations.

    Every successful mutation is mirrored into the shared ScheduleState so
    later items of a batch observe it.
    """

    def __init__(self,
                 state: ScheduleState,
                 validator: SuggestionValidator,
                 callbacks: Optional[EngineCallbacks] = None,
                 config: Optional[AppConfig] = None,
                 message_bus: Optional[MessageBus] = None,
                 verbose: Optional[bool] = None,
                 clock: Optional[Callable[[], date]] = None):
        super().__init__("BalancingExecutor", config, message_bus, verbose)
        self.state = state
        self.validator = validator
        self.callbacks = callbacks or EngineCallbacks()
        self.clock = clock or date.today
        self.history: List[BalancingResult] = []
        self._handlers: Dict[SuggestionType, Callable[[BalancingSuggestion], Awaitable[BalancingResult]]] = {
            SuggestionType.REDISTRIBUTE: self._apply_redistribute,
            SuggestionType.SWAP_SHIFTS: self._apply_swap,
            SuggestionType.ADD_SHIFT: self._apply_add_shift,
            SuggestionType.REMOVE_SHIFT: self._apply_remove_shift,
            SuggestionType.ADJUST_HOURS: self._apply_adjust_hours,
        }

    async def execute(self, suggestion: BalancingSuggestion, **kwargs) -> BalancingResult:
        return await self.apply_suggestion(suggestion)

    # ==================== Public API ====================

    async def apply_suggestion(self, suggestion: BalancingSuggestion) -> BalancingResult:
        """
        Apply one suggestion.

        Args:
            suggestion: The suggestion to execute

        Returns:
            BalancingResult describing what changed, or why nothing did
        """
        self._begin()
        self.log(f"Applying {suggestion}")
        try:
            if suggestion.approval == ApprovalStatus.REJECTED:
                raise ExecutionError(f"Suggestion {suggestion.id} was rejected")
            handler = self._handlers.get(suggestion.type)
            if handler is None:
                kind = getattr(suggestion.type, "value", suggestion.type)
                raise ExecutionError(f"Unsupported suggestion type: {kind}")
            result = await handler(suggestion)
        except ValidationBlocked as e:
            self.log(f"{suggestion.id} blocked by validation: {e}", "warning")
            result = BalancingResult.failure(*e.messages, warnings=e.warnings)
        except EngineError as e:
            self.log(f"{suggestion.id} not applied: {e}", "warning")
            result = BalancingResult.failure(str(e))
        except Exception as e:
            message = self._handle_error(e, f"apply_suggestion({suggestion.id})")
            result = BalancingResult.failure(f"Internal error: {message}")
        finally:
            self._end()

        if result.success:
            self.validator.cache.invalidate()
            self.log(
                f"{suggestion.id} applied: {result.summary.shifts_modified} shifts, "
                f"{result.summary.hours_redistributed:.1f}h", "success"
            )
        self.history.append(result)
        self.publish(
            MessageType.SUGGESTION_APPLIED,
            {
                "suggestion_id": suggestion.id,
                "type": getattr(suggestion.type, "value", suggestion.type),
                "success": result.success,
                "errors": result.errors,
            },
        )
        return result

    async def apply_suggestions(self, suggestions: List[BalancingSuggestion]) -> BatchApplyResult:
        """
        Apply suggestions one after another.

        A failing item never stops the batch.
        """
        batch = BatchApplyResult()
        batch.summary.total = len(suggestions)
        self.log(f"Applying batch of {len(suggestions)} suggestions")

        for suggestion in suggestions:
            result = await self.apply_suggestion(suggestion)
            if result.success:
                batch.successful.append(result)
                batch.summary.total_shifts_modified += result.summary.shifts_modified
                batch.summary.total_hours_redistributed += result.summary.hours_redistributed
            else:
                batch.failed.append(FailedSuggestion(
                    suggestion=suggestion,
                    error="; ".join(result.errors) or "Unknown error",
                ))
            await asyncio.sleep(0)

        batch.summary.successful = len(batch.successful)
        batch.summary.failed = len(batch.failed)
        batch.summary.total_hours_redistributed = round(batch.summary.total_hours_redistributed, 1)

        self.log(
            f"Batch complete: {batch.summary.successful}/{batch.summary.total} applied",
            "success" if not batch.failed else "warning",
        )
        self.publish(MessageType.COMPLETE, {
            "operation": "apply_suggestions",
            "successful": batch.summary.successful,
            "failed": batch.summary.failed,
        })
        return batch

    # ==================== Helpers ====================

    def _validate(self, suggestion: BalancingSuggestion, affected: List[Shift]) -> List[str]:
        """Run the pre-apply checks, returning warnings or raising when blocked."""
        result = self.validator.validate(suggestion, affected)
        if not result.can_proceed:
            raise ValidationBlocked(result.error_messages(), result.warning_messages())
        return result.warning_messages()

    async def _write(self, updates: List[ShiftUpdate]) -> List[Shift]:
        await self.callbacks.apply_updates(updates)
        return [self.state.apply_update(u.shift_id, u.patch) for u in updates]

    def _require_employee(self, employee_id: Optional[str], role: str) -> str:
        if not employee_id:
            raise ExecutionError(f"Suggestion has no {role} employee")
        if employee_id not in self.state.employees:
            raise ExecutionError(f"Unknown {role} employee: {employee_id}")
        return employee_id

    # ==================== Apply routines ====================

    async def _apply_redistribute(self, suggestion: BalancingSuggestion) -> BalancingResult:
        source_id = self._require_employee(suggestion.source_employee_id, "source")
        target_id = self._require_employee(suggestion.target_employee_id, "target")
        target_hours = suggestion.hours
        tolerance = self.config.execution.redistribute_tolerance_hours

        candidates = sorted(
            self.state.unlocked_shifts_for(source_id),
            key=lambda s: (s.worked_hours, s.id),
        )
        if not candidates:
            raise ExecutionError(f"No unlocked shifts found for source employee {source_id}")

        selected: List[Shift] = []
        accumulated = 0.0
        for shift in candidates:
            if accumulated + shift.worked_hours <= target_hours + tolerance:
                selected.append(shift)
                accumulated += shift.worked_hours
            if accumulated >= target_hours - tolerance:
                break

        if not selected:
            raise ExecutionError(
                f"No shifts of {source_id} fit {target_hours:.1f}h (±{tolerance:g}h)"
            )

        affected = [replace(s, employee_id=target_id) for s in selected]
        warnings = self._validate(suggestion, affected)
        modified = await self._write([
            ShiftUpdate(s.id, ShiftPatch(employee_id=target_id)) for s in selected
        ])
        return BalancingResult(
            success=True,
            modified_shifts=modified,
            warnings=warnings,
            summary=BalancingSummary(
                shifts_modified=len(modified),
                employees_affected=2,
                hours_redistributed=round(accumulated, 1),
            ),
        )

    async def _apply_swap(self, suggestion: BalancingSuggestion) -> BalancingResult:
        source_id = self._require_employee(suggestion.source_employee_id, "source")
        target_id = self._require_employee(suggestion.target_employee_id, "target")
        if source_id == target_id:
            raise ExecutionError(f"Cannot swap shifts of {source_id} with themselves")
        named = self.state.get_shift(suggestion.shift_id)
        if named is None:
            raise ExecutionError(f"Shift to swap not found: {suggestion.shift_id}")
        if named.employee_id != source_id:
            raise ExecutionError(
                f"Shift {named.id} belongs to {named.employee_id}, not {source_id}"
            )
        if named.is_locked:
            raise ExecutionError(f"Shift {named.id} is locked")

        max_diff = self.config.balancing.swap_max_hour_difference
        candidates = [
            s for s in self.state.unlocked_shifts_for(target_id)
            if s.id != named.id
            and abs(s.worked_hours - named.worked_hours) <= max_diff
            and not (s.date == named.date and s.store_id == named.store_id)
        ]
        if not candidates:
            raise ExecutionError(f"No compatible shift of {target_id} to swap with {named.id}")
        other = min(candidates, key=lambda s: (abs(s.worked_hours - named.worked_hours), s.id))

        affected = [
            replace(named, employee_id=other.employee_id),
            replace(other, employee_id=named.employee_id),
        ]
        warnings = self._validate(suggestion, affected)
        modified = await self._write([
            ShiftUpdate(named.id, ShiftPatch(employee_id=other.employee_id)),
            ShiftUpdate(other.id, ShiftPatch(employee_id=named.employee_id)),
        ])
        return BalancingResult(
            success=True,
            modified_shifts=modified,
            warnings=warnings,
            summary=BalancingSummary(
                shifts_modified=2,
                employees_affected=2,
                hours_redistributed=round(abs(named.worked_hours - other.worked_hours), 1),
            ),
        )

    async def _apply_add_shift(self, suggestion: BalancingSuggestion) -> BalancingResult:
        if self.callbacks.create_shift is None:
            raise ExecutionError("Shift creation callback not provided")
        employee_id = self._require_employee(suggestion.source_employee_id, "source")
        employee = self.state.employees[employee_id]

        store_id = suggestion.store_id or employee.store_id
        if not store_id or store_id == ALL_STORES:
            raise ExecutionError(f"No store to add a shift for {employee.full_name}")

        cfg = self.config.execution
        draft = ShiftDraft(
            employee_id=employee_id,
            store_id=store_id,
            date=self.clock() + timedelta(days=1),
            start_time=cfg.default_shift_start,
            end_time=cfg.default_shift_end,
            break_duration=cfg.default_break_minutes,
            actual_hours=calculate_shift_hours(
                cfg.default_shift_start, cfg.default_shift_end, cfg.default_break_minutes
            ),
        )
        warnings = self._validate(suggestion, [draft.to_shift(f"new-{suggestion.id}")])

        new_id = await self.callbacks.create(draft)
        if not new_id:
            raise ExecutionError("Shift creation returned no id")
        shift = draft.to_shift(str(new_id))
        self.state.add_shift(shift)
        return BalancingResult(
            success=True,
            modified_shifts=[shift],
            warnings=warnings,
            summary=BalancingSummary(
                shifts_modified=1,
                employees_affected=1,
                hours_redistributed=shift.worked_hours,
            ),
        )

    async def _apply_remove_shift(self, suggestion: BalancingSuggestion) -> BalancingResult:
        if self.callbacks.delete_shift is None:
            raise ExecutionError("Shift deletion callback not provided")
        employee_id = self._require_employee(suggestion.source_employee_id, "source")

        candidates = self.state.unlocked_shifts_for(employee_id)
        if not candidates:
            raise ExecutionError(f"No unlocked shifts found for employee {employee_id}")
        smallest = min(candidates, key=lambda s: (s.worked_hours, s.id))

        await self.callbacks.delete(smallest.id)
        self.state.remove_shift(smallest.id)
        return BalancingResult(
            success=True,
            modified_shifts=[smallest],
            summary=BalancingSummary(
                shifts_modified=1,
                employees_affected=1,
                hours_redistributed=smallest.worked_hours,
            ),
        )

    async def _apply_adjust_hours(self, suggestion: BalancingSuggestion) -> BalancingResult:
        employee_id = self._require_employee(suggestion.source_employee_id, "source")
        direction = suggestion.proposed_changes.direction
        if direction is None:
            raise ExecutionError("Adjust suggestion has no direction")

        candidates = self.state.unlocked_shifts_for(employee_id)
        if not candidates:
            raise ExecutionError(f"No unlocked shifts found for employee {employee_id}")
        longest = max(candidates, key=lambda s: (s.worked_hours, s.id))

        cfg = self.config.execution
        current = longest.worked_hours
        sign = -1 if direction == AdjustDirection.REDUCE else 1
        new_hours = min(cfg.max_shift_hours, max(cfg.min_shift_hours, current + sign * suggestion.hours))
        change = abs(new_hours - current)
        if change < cfg.min_adjustment_hours:
            raise ExecutionError(
                f"Adjustment of {change:.1f}h is below the {cfg.min_adjustment_hours:g}h minimum"
            )

        start = datetime.combine(longest.date, parse_time(longest.start_time))
        end = start + timedelta(hours=new_hours, minutes=longest.break_duration)
        if end.date() != longest.date:
            raise ExecutionError(f"Adjusted shift {longest.id} would end past midnight")
        end_time = end.strftime("%H:%M")

        patch = ShiftPatch(end_time=end_time, actual_hours=round(new_hours, 2))
        warnings = self._validate(suggestion, [longest.apply(patch)])
        modified = await self._write([ShiftUpdate(longest.id, patch)])
        return BalancingResult(
            success=True,
            modified_shifts=modified,
            warnings=warnings,
            summary=BalancingSummary(
                shifts_modified=1,
                employees_affected=1,
                hours_redistributed=round(change, 1),
            ),
        )
