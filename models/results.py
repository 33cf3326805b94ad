"""
Outcome models returned by the executor, resolver and snapshot manager.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .shift import Shift
from .suggestion import BalancingSuggestion


@dataclass
class BalancingSummary:
    shifts_modified: int = 0
    employees_affected: int = 0
    hours_redistributed: float = 0.0


@dataclass
class BalancingResult:
    """
    Outcome of executing one suggestion.

    Attributes:
        success: Whether the mutation was performed
        modified_shifts: Post-change copies of the touched shifts
        errors: Why the suggestion could not be applied
        warnings: Non-blocking validation findings
        summary: Counts for reporting
    """
    success: bool
    modified_shifts: List[Shift] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    summary: BalancingSummary = field(default_factory=BalancingSummary)

    @classmethod
    def failure(cls, *errors: str, warnings: Optional[List[str]] = None) -> "BalancingResult":
        return cls(success=False, errors=list(errors), warnings=list(warnings or []))


@dataclass
class FailedSuggestion:
    suggestion: BalancingSuggestion
    error: str


@dataclass
class BatchSummary:
    total: int = 0
    successful: int = 0
    failed: int = 0
    total_shifts_modified: int = 0
    total_hours_redistributed: float = 0.0


@dataclass
class BatchApplyResult:
    """Per-item accounting of a sequential batch apply."""
    successful: List[BalancingResult] = field(default_factory=list)
    failed: List[FailedSuggestion] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=BatchSummary)


@dataclass
class ResolutionSummary:
    conflicts_resolved: int = 0
    shifts_modified: int = 0
    employees_affected: int = 0
    time_saved: int = 0


@dataclass
class ConflictResolutionResult:
    """
    Outcome of executing one resolution strategy.

    A resolution succeeds iff no step recorded an error; warnings never fail it.
    """
    success: bool
    conflict_id: str
    strategy_used: Optional[str] = None
    modified_shifts: List[Shift] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    summary: ResolutionSummary = field(default_factory=ResolutionSummary)
    resolved_at: datetime = field(default_factory=datetime.now, compare=False)


@dataclass
class BatchResolutionSummary:
    total_conflicts: int = 0
    resolved: int = 0
    failed: int = 0
    total_time_saved: int = 0
    shifts_modified: int = 0


@dataclass
class BatchResolutionResult:
    successful: List[ConflictResolutionResult] = field(default_factory=list)
    failed: List[ConflictResolutionResult] = field(default_factory=list)
    summary: BatchResolutionSummary = field(default_factory=BatchResolutionSummary)


@dataclass
class RollbackOperation:
    """
    Outcome of restoring a snapshot.

    Attributes:
        snapshot_id: Snapshot that was requested
        restored_shifts: Shifts whose fields were written back
        success: Whether the restore completed
        errors: Why it failed, if it did
        timestamp: When the rollback ran
    """
    snapshot_id: str
    restored_shifts: List[Shift] = field(default_factory=list)
    success: bool = False
    errors: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now, compare=False)
