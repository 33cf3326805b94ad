"""
Balancing suggestion models and workload metrics.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .employee import ApprovalStatus


class SuggestionType(Enum):
    """Kinds of corrective action the balancer can propose."""
    REDISTRIBUTE = "redistribute"
    ADD_SHIFT = "add_shift"
    REMOVE_SHIFT = "remove_shift"
    SWAP_SHIFTS = "swap_shifts"
    ADJUST_HOURS = "adjust_hours"


class Priority(Enum):
    """Suggestion priority."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class AdjustDirection(Enum):
    """Whether an adjust-hours suggestion trims or extends a shift."""
    REDUCE = "reduce"
    EXTEND = "extend"


class StaffingLevel(Enum):
    UNDERSTAFFED = "understaffed"
    OPTIMAL = "optimal"
    OVERSTAFFED = "overstaffed"


class BalanceRating(Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"

    @classmethod
    def from_score(cls, score: float) -> "BalanceRating":
        """Map an equity score to a rating."""
        if score >= 90:
            return cls.EXCELLENT
        if score >= 75:
            return cls.GOOD
        if score >= 60:
            return cls.FAIR
        return cls.POOR


@dataclass
class SuggestionImpact:
    """Estimated effect of applying a suggestion."""
    hours_change: float
    equity_improvement: float = 0.0
    workload_balance: float = 0.0


@dataclass
class ProposedChanges:
    """
    Description of the change a suggestion makes.

    Attributes:
        action: Human-readable action
        from_value: State before, as text
        to_value: State after, as text
        impact: Magnitude and estimated improvement
        direction: Set for adjust-hours suggestions
    """
    action: str
    impact: SuggestionImpact
    from_value: str = ""
    to_value: str = ""
    direction: Optional[AdjustDirection] = None


@dataclass
class BalancingSuggestion:
    """
    A proposed, not-yet-applied corrective scheduling action.

    Suggestions are regenerated on demand from the current shifts and are
    never persisted.
    """
    id: str
    type: SuggestionType
    priority: Priority
    title: str
    description: str
    proposed_changes: ProposedChanges
    source_employee_id: Optional[str] = None
    target_employee_id: Optional[str] = None
    source_employee_name: Optional[str] = None
    target_employee_name: Optional[str] = None
    store_id: Optional[str] = None
    store_name: Optional[str] = None
    shift_id: Optional[str] = None
    auto_applicable: bool = False
    estimated_duration: int = 0
    approval: ApprovalStatus = ApprovalStatus.PENDING

    @property
    def hours(self) -> float:
        return self.proposed_changes.impact.hours_change

    def __str__(self) -> str:
        auto = "auto" if self.auto_applicable else "manual"
        kind = getattr(self.type, "value", self.type)
        return f"[{self.priority.value.upper()}] {kind}: {self.description} ({auto})"


@dataclass
class HourLimits:
    """Per-employee override of the weekly hour ceiling and floor."""
    max_hours: Optional[float] = None
    min_hours: Optional[float] = None


@dataclass
class EmployeeWorkload:
    """Hours assigned to one employee in the balancing period."""
    employee_id: str
    employee_name: str
    store_id: Optional[str]
    current_hours: float
    ideal_hours: float
    min_hours: float
    deviation: float
    deviation_percent: float
    shift_ids: List[str] = field(default_factory=list)

    @property
    def underutilized(self) -> bool:
        return self.current_hours < self.min_hours


@dataclass
class StoreBalance:
    """Hours assigned to one store compared to the cross-store average."""
    store_id: str
    store_name: str
    current_hours: float
    ideal_hours: float
    deviation: float
    staffing_level: StaffingLevel


@dataclass
class BalancingMetrics:
    """Equity metrics for a balancing period."""
    current_equity_score: float
    potential_equity_score: float
    workload_distribution: List[EmployeeWorkload]
    store_balance: List[StoreBalance]
    overall_balance: BalanceRating


@dataclass
class BalancingReport:
    """
    Output of a balancing run.

    Attributes:
        metrics: Equity score, rating and per-employee/store balance
        suggestions: Ranked corrective actions
        employee_stats: Per-employee workload, keyed by employee id
        store_stats: Per-store balance, keyed by store id
    """
    metrics: BalancingMetrics
    suggestions: List[BalancingSuggestion] = field(default_factory=list)
    employee_stats: Dict[str, EmployeeWorkload] = field(default_factory=dict)
    store_stats: Dict[str, StoreBalance] = field(default_factory=dict)
