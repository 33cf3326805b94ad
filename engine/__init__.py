"""
Engine components for shift conflict detection and workload balancing.
"""
from .base import BaseComponent, ComponentState
from .errors import EngineError, ExecutionError, IntegrityError, ValidationBlocked
from .cache import ValidationCache
from .callbacks import EngineCallbacks
from .conflict_detector import ConflictDetector, detect_conflicts
from .workload_balancer import (
    BalancingOptions,
    WorkloadBalancer,
    compute_balancing,
    equity_score,
)
from .suggestion_validator import SuggestionValidator, validate_suggestion
from .balancing_executor import BalancingExecutor
from .conflict_resolver import ConflictResolver
from .snapshot_manager import SnapshotManager
from .coordinator import ShiftEngine

__all__ = [
    "BaseComponent",
    "ComponentState",
    "EngineError",
    "ExecutionError",
    "IntegrityError",
    "ValidationBlocked",
    "ValidationCache",
    "EngineCallbacks",
    "ConflictDetector",
    "detect_conflicts",
    "BalancingOptions",
    "WorkloadBalancer",
    "compute_balancing",
    "equity_score",
    "SuggestionValidator",
    "validate_suggestion",
    "BalancingExecutor",
    "ConflictResolver",
    "SnapshotManager",
    "ShiftEngine",
]
