"""
Immutable captures of shift state used for rollback.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from .shift import Shift
from .suggestion import BalancingSuggestion


@dataclass(frozen=True)
class SnapshotMetadata:
    suggestion: Optional[BalancingSuggestion] = None
    user_action: Optional[str] = None


@dataclass(frozen=True)
class StateSnapshot:
    """
    A captured copy of the shift collection.

    Attributes:
        id: Snapshot identifier
        timestamp: Capture time
        description: Why the snapshot was taken
        shifts: Deep copies of every shift at capture time
        operation: Label of the operation about to run
        metadata: Triggering suggestion and user action
    """
    id: str
    timestamp: datetime
    description: str
    shifts: Tuple[Shift, ...]
    operation: str = ""
    metadata: SnapshotMetadata = field(default_factory=SnapshotMetadata)

    def get_shift(self, shift_id: str) -> Optional[Shift]:
        for shift in self.shifts:
            if shift.id == shift_id:
                return shift
        return None

    def __str__(self) -> str:
        return (
            f"{self.id} @ {self.timestamp.strftime('%H:%M:%S')} "
            f"[{self.operation or 'manual'}] {self.description} ({len(self.shifts)} shifts)"
        )
