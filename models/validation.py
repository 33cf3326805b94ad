"""
Validation models for pre-apply checks.
Defines the rule outcomes produced before a suggestion mutates any shift.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class CheckType(Enum):
    """Categories of pre-apply checks."""
    AVAILABILITY = "availability"      # Approved/pending time off
    CONTRACT = "contract"              # Weekly hour ceiling and floor
    OVERLAP = "overlap"                # Double-booked employee
    COMPETENCY = "competency"          # Role fit, e.g. juniors
    LEGAL = "legal"                    # Rest periods, consecutive days
    OPERATIONAL = "operational"        # Store access, capacity, integrity


class CheckSeverity(Enum):
    """Whether a check blocks the operation."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ValidationCheck:
    """
    Outcome of a single validation rule.

    Attributes:
        id: Check identifier, stable for the same input
        name: Short rule name
        type: Rule category
        severity: error blocks, warning and info do not
        message: Human-readable description
        details: Extra data about the finding
        affected_employees: Employee ids involved
        affected_shifts: Shift ids involved
        suggestion: Optional advice for the manager
    """
    id: str
    name: str
    type: CheckType
    severity: CheckSeverity
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    affected_employees: List[str] = field(default_factory=list)
    affected_shifts: List[str] = field(default_factory=list)
    suggestion: Optional[str] = None

    def is_blocking(self) -> bool:
        return self.severity == CheckSeverity.ERROR

    def __str__(self) -> str:
        return f"[{self.severity.value.upper()}] {self.name}: {self.message}"


@dataclass
class ValidationSummary:
    errors: int = 0
    warnings: int = 0
    infos: int = 0


@dataclass
class ValidationResult:
    """
    Aggregate outcome of all checks for one suggestion.

    Attributes:
        is_valid: True when no check has error severity
        can_proceed: Mirrors is_valid
        checks: Every rule outcome, in evaluation order
        summary: Counts per severity
        estimated_success: 0-100, 30 points per error and 10 per warning off
        checked_at: When the checks ran
    """
    is_valid: bool = True
    can_proceed: bool = True
    checks: List[ValidationCheck] = field(default_factory=list)
    summary: ValidationSummary = field(default_factory=ValidationSummary)
    estimated_success: float = 100.0
    checked_at: datetime = field(default_factory=datetime.now, compare=False)

    @classmethod
    def from_checks(cls, checks: List[ValidationCheck]) -> "ValidationResult":
        """Aggregate a list of checks into a result."""
        summary = ValidationSummary(
            errors=sum(1 for c in checks if c.severity == CheckSeverity.ERROR),
            warnings=sum(1 for c in checks if c.severity == CheckSeverity.WARNING),
            infos=sum(1 for c in checks if c.severity == CheckSeverity.INFO),
        )
        is_valid = summary.errors == 0
        return cls(
            is_valid=is_valid,
            can_proceed=is_valid,
            checks=list(checks),
            summary=summary,
            estimated_success=max(0, 100 - summary.errors * 30 - summary.warnings * 10),
        )

    @property
    def errors(self) -> List[ValidationCheck]:
        return [c for c in self.checks if c.severity == CheckSeverity.ERROR]

    @property
    def warnings(self) -> List[ValidationCheck]:
        return [c for c in self.checks if c.severity == CheckSeverity.WARNING]

    def error_messages(self) -> List[str]:
        return [c.message for c in self.errors]

    def warning_messages(self) -> List[str]:
        return [c.message for c in self.warnings]

    def get_summary(self) -> str:
        """Get a human-readable summary of the validation."""
        status = "VALID" if self.is_valid else "BLOCKED"
        return (
            f"{status} | errors: {self.summary.errors}, "
            f"warnings: {self.summary.warnings}, "
            f"estimated success: {self.estimated_success:.0f}%"
        )
