"""
Conflict models: detected violations and the strategies that resolve them.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ConflictType(Enum):
    """Categories of scheduling conflicts."""
    OVERLAP = "overlap"
    REST_VIOLATION = "rest_violation"
    SKILL_MISMATCH = "skill_mismatch"
    OVERTIME = "overtime"
    UNDERSTAFFING = "understaffing"
    AVAILABILITY = "availability"


class Severity(Enum):
    """How urgently a conflict needs attention."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric order, higher is more severe."""
        return {"critical": 4, "high": 3, "medium": 2, "low": 1}[self.value]


class StepAction(Enum):
    """Mutations and side effects a resolution step can perform."""
    MODIFY_HOURS = "modify_hours"
    MOVE_SHIFT = "move_shift"
    NOTIFY_MANAGER = "notify_manager"


@dataclass
class ImpactEstimate:
    """Expected deltas of applying a strategy (positive is better, risk negative is better)."""
    employee_satisfaction: float = 0.0
    operational_efficiency: float = 0.0
    compliance_risk: float = 0.0


@dataclass
class StepTarget:
    """What a resolution step acts on."""
    shift_id: Optional[str] = None
    employee_id: Optional[str] = None
    store_id: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResolutionStep:
    """
    A single typed mutation or notification inside a strategy.

    Attributes:
        id: Step identifier, unique within its strategy
        action: What the step does
        description: Human-readable description
        target: Shift/employee/store the step acts on
        required: Whether the strategy is meaningless without this step
    """
    id: str
    action: StepAction
    description: str
    target: StepTarget = field(default_factory=StepTarget)
    required: bool = True


@dataclass
class ResolutionStrategy:
    """
    A candidate way of resolving a conflict.

    Attributes:
        id: Strategy identifier (e.g. "adjust-times")
        name: Short name
        description: Human-readable description
        confidence: 0-100, likelihood the strategy resolves the conflict
        impact: Expected satisfaction/efficiency/compliance deltas
        steps: Ordered steps to execute
        estimated_time: Minutes of manual work the strategy saves
        cost: Estimated cost impact
    """
    id: str
    name: str
    description: str
    confidence: float
    impact: ImpactEstimate = field(default_factory=ImpactEstimate)
    steps: List[ResolutionStep] = field(default_factory=list)
    estimated_time: int = 0
    cost: float = 0.0

    def __str__(self) -> str:
        return f"[{self.id}] {self.name} (confidence {self.confidence:.0f}%, {len(self.steps)} steps)"


@dataclass
class Conflict:
    """
    A detected rule violation in the current shift assignment.

    ``detected_at`` is informational and excluded from equality so that
    re-running detection on unchanged input compares equal.
    """
    id: str
    type: ConflictType
    severity: Severity
    title: str
    description: str
    affected_shifts: List[str] = field(default_factory=list)
    affected_employees: List[str] = field(default_factory=list)
    affected_stores: List[str] = field(default_factory=list)
    auto_resolvable: bool = True
    resolution_strategies: List[ResolutionStrategy] = field(default_factory=list)
    detected_at: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def best_strategy(self) -> Optional[ResolutionStrategy]:
        """First strategy, which detection always lists as the most confident."""
        return self.resolution_strategies[0] if self.resolution_strategies else None

    def get_strategy(self, strategy_id: str) -> Optional[ResolutionStrategy]:
        for strategy in self.resolution_strategies:
            if strategy.id == strategy_id:
                return strategy
        return None

    def __str__(self) -> str:
        return f"[{self.severity.value.upper()}] {self.type.value}: {self.description}"
