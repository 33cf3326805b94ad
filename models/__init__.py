"""
Data models for the shift engine.
"""
from .employee import (
    ALL_STORES,
    ApprovalStatus,
    Employee,
    EmployeeRole,
    Unavailability,
    UnavailabilityKind,
)
from .shift import (
    Shift,
    ShiftDraft,
    ShiftPatch,
    ShiftStatus,
    ShiftUpdate,
    calculate_shift_hours,
    parse_time,
)
from .store import OpeningHours, Store, standard_opening_hours
from .conflict import (
    Conflict,
    ConflictType,
    ImpactEstimate,
    ResolutionStep,
    ResolutionStrategy,
    Severity,
    StepAction,
    StepTarget,
)
from .suggestion import (
    AdjustDirection,
    BalanceRating,
    BalancingMetrics,
    BalancingReport,
    BalancingSuggestion,
    EmployeeWorkload,
    HourLimits,
    Priority,
    ProposedChanges,
    StaffingLevel,
    StoreBalance,
    SuggestionImpact,
    SuggestionType,
)
from .validation import (
    CheckSeverity,
    CheckType,
    ValidationCheck,
    ValidationResult,
    ValidationSummary,
)
from .results import (
    BalancingResult,
    BalancingSummary,
    BatchApplyResult,
    BatchResolutionResult,
    BatchResolutionSummary,
    BatchSummary,
    ConflictResolutionResult,
    FailedSuggestion,
    ResolutionSummary,
    RollbackOperation,
)
from .snapshot import SnapshotMetadata, StateSnapshot
from .state import ScheduleState

__all__ = [
    "ALL_STORES", "ApprovalStatus", "Employee", "EmployeeRole",
    "Unavailability", "UnavailabilityKind",
    "Shift", "ShiftDraft", "ShiftPatch", "ShiftStatus", "ShiftUpdate",
    "calculate_shift_hours", "parse_time",
    "OpeningHours", "Store", "standard_opening_hours",
    "Conflict", "ConflictType", "ImpactEstimate", "ResolutionStep",
    "ResolutionStrategy", "Severity", "StepAction", "StepTarget",
    "AdjustDirection", "BalanceRating", "BalancingMetrics", "BalancingReport",
    "BalancingSuggestion", "EmployeeWorkload", "HourLimits", "Priority",
    "ProposedChanges", "StaffingLevel", "StoreBalance", "SuggestionImpact",
    "SuggestionType",
    "CheckSeverity", "CheckType", "ValidationCheck", "ValidationResult",
    "ValidationSummary",
    "BalancingResult", "BalancingSummary", "BatchApplyResult",
    "BatchResolutionResult", "BatchResolutionSummary", "BatchSummary",
    "ConflictResolutionResult", "FailedSuggestion", "ResolutionSummary",
    "RollbackOperation",
    "SnapshotMetadata", "StateSnapshot",
    "ScheduleState",
]
