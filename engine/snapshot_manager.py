"""
Snapshot Manager - Captures shift state before risky operations and restores it.
"""
import copy
import uuid
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from .base import BaseComponent
from .cache import ValidationCache
from .callbacks import EngineCallbacks
from .errors import EngineError, IntegrityError
from communication.message import MessageType
from communication.message_bus import MessageBus
from config import AppConfig
from models.results import RollbackOperation
from models.shift import Shift, ShiftPatch, ShiftUpdate
from models.snapshot import SnapshotMetadata, StateSnapshot
from models.state import ScheduleState
from models.suggestion import BalancingSuggestion


def _diff(current: Shift, captured: Shift) -> Optional[ShiftPatch]:
    """Patch that turns ``current`` back into ``captured``, or None if they match."""
    fields = ("employee_id", "store_id", "start_time", "end_time", "break_duration",
              "actual_hours")
    if all(getattr(current, f) == getattr(captured, f) for f in fields):
        return None
    return ShiftPatch(
        employee_id=captured.employee_id,
        store_id=captured.store_id,
        start_time=captured.start_time,
        end_time=captured.end_time,
        break_duration=captured.break_duration,
        actual_hours=captured.actual_hours,
        clear_hours=captured.actual_hours is None,
    )


class SnapshotManager(BaseComponent):
    """
    Bounded history of shift snapshots, newest first.

    Snapshots deep-copy the whole shift collection, which is O(n) per
    capture. Rollback restores mutable fields of shifts present both now
    and in the snapshot; shifts created or deleted since are left alone.
    """

    def __init__(self,
                 state: ScheduleState,
                 callbacks: Optional[EngineCallbacks] = None,
                 cache: Optional[ValidationCache] = None,
                 config: Optional[AppConfig] = None,
                 message_bus: Optional[MessageBus] = None,
                 verbose: Optional[bool] = None):
        super().__init__("SnapshotManager", config, message_bus, verbose)
        self.state = state
        self.callbacks = callbacks or EngineCallbacks()
        self.cache = cache
        self._history: Deque[StateSnapshot] = deque(maxlen=self.config.snapshots.max_snapshots)

    def execute(self, description: str, operation: str = "", **kwargs) -> str:
        return self.create_snapshot(description, operation, kwargs.get("suggestion"))

    @property
    def snapshots(self) -> List[StateSnapshot]:
        """Retained snapshots, newest first."""
        return list(self._history)

    def get_snapshot(self, snapshot_id: str) -> Optional[StateSnapshot]:
        return next((s for s in self._history if s.id == snapshot_id), None)

    def create_snapshot(self, description: str, operation: str = "",
                        suggestion: Optional[BalancingSuggestion] = None,
                        user_action: Optional[str] = None) -> str:
        """
        Capture the current shift collection.

        Args:
            description: Why the snapshot is taken
            operation: Label of the operation about to run
            suggestion: Suggestion that triggered it, if any
            user_action: Free-form label of the user's action

        Returns:
            Id of the new snapshot
        """
        snapshot = StateSnapshot(
            id=f"snapshot-{uuid.uuid4().hex}",
            timestamp=datetime.now(),
            description=description,
            shifts=tuple(copy.deepcopy(self.state.all_shifts())),
            operation=operation,
            metadata=SnapshotMetadata(suggestion=suggestion, user_action=user_action),
        )
        evicted = len(self._history) == self._history.maxlen
        self._history.appendleft(snapshot)

        self.log(f"Snapshot {snapshot.id} taken: {description} ({len(snapshot.shifts)} shifts)")
        if evicted:
            self.log("Oldest snapshot evicted", "debug")
        self.publish(MessageType.SNAPSHOT, {"snapshot_id": snapshot.id, "description": description})
        return snapshot.id

    async def rollback_to_snapshot(self, snapshot_id: str) -> RollbackOperation:
        """
        Restore the mutable shift fields captured in a snapshot.

        Fails without side effects when the snapshot is unknown or no
        update callback is configured.
        """
        self._begin()
        operation = RollbackOperation(snapshot_id=snapshot_id)
        try:
            snapshot = self.get_snapshot(snapshot_id)
            if snapshot is None:
                raise IntegrityError(f"Snapshot not found: {snapshot_id}", snapshot_id)
            if self.callbacks.update_shifts is None:
                raise IntegrityError("No shift update callback provided for rollback")

            updates = []
            for captured in snapshot.shifts:
                current = self.state.get_shift(captured.id)
                if current is None:
                    continue
                patch = _diff(current, captured)
                if patch is not None:
                    updates.append(ShiftUpdate(captured.id, patch))

            if updates:
                await self.callbacks.apply_updates(updates)
                operation.restored_shifts = [
                    self.state.apply_update(u.shift_id, u.patch) for u in updates
                ]
                if self.cache is not None:
                    self.cache.invalidate()
            operation.success = True
            self.log(
                f"Rolled back to {snapshot_id}: {len(operation.restored_shifts)} shifts restored",
                "success",
            )
        except EngineError as e:
            operation.errors.append(str(e))
            self.log(f"Rollback failed: {e}", "warning")
        except Exception as e:
            operation.errors.append(f"Internal error: {self._handle_error(e, 'rollback_to_snapshot()')}")
        finally:
            self._end()

        self.publish(MessageType.ROLLBACK, {
            "snapshot_id": snapshot_id,
            "success": operation.success,
            "restored": len(operation.restored_shifts),
        })
        return operation

    def clear_snapshots(self) -> None:
        """Drop every snapshot and the validation cache."""
        self._history.clear()
        if self.cache is not None:
            self.cache.invalidate()
        self.log("Snapshot history cleared")

    def get_snapshot_summary(self) -> Dict[str, Any]:
        snapshots = self.snapshots
        return {
            "total": len(snapshots),
            "capacity": self._history.maxlen,
            "latest": snapshots[0].timestamp.isoformat() if snapshots else None,
            "oldest": snapshots[-1].timestamp.isoformat() if snapshots else None,
            "operations": [s.operation for s in snapshots],
        }
