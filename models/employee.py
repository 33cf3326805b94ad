"""
Employee data model.
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


# Home-store sentinel that authorizes an employee for every store
ALL_STORES = "all"


class EmployeeRole(Enum):
    """Seniority level of a staff member."""
    JUNIOR = "junior"
    SENIOR = "senior"
    MANAGER = "manager"

    @classmethod
    def from_string(cls, value: str) -> "EmployeeRole":
        """Convert string to EmployeeRole enum."""
        mapping = {
            "junior": cls.JUNIOR,
            "senior": cls.SENIOR,
            "manager": cls.MANAGER,
        }
        return mapping.get(value.lower().strip(), cls.SENIOR)


class ApprovalStatus(Enum):
    """Canonical tri-state for anything that needs a manager's sign-off."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class UnavailabilityKind(Enum):
    """Reason category for an unavailability window."""
    HOLIDAY = "holiday"
    SICK = "sick"
    PERSONAL = "personal"
    TRAINING = "training"
    OTHER = "other"


@dataclass
class Employee:
    """
    Employee model representing a staff member.

    Attributes:
        id: Unique employee identifier
        first_name: Given name
        last_name: Family name
        role: Junior, senior or manager
        store_id: Home store (ALL_STORES authorizes every store, None authorizes none)
        contract_hours: Weekly hour ceiling from the contract
        fixed_hours: Guaranteed minimum weekly hours
        is_active: Whether the employee is currently employed
    """
    id: str
    first_name: str
    last_name: str = ""
    role: EmployeeRole = EmployeeRole.SENIOR
    store_id: Optional[str] = None
    contract_hours: Optional[float] = None
    fixed_hours: Optional[float] = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def max_hours(self, default: float) -> float:
        """Contract ceiling, falling back to ``default`` when unset."""
        return self.contract_hours if self.contract_hours else default

    def min_hours(self, default_ceiling: float) -> float:
        """Guaranteed floor, defaulting to half the ceiling (never below 8h)."""
        if self.fixed_hours:
            return self.fixed_hours
        return max(self.max_hours(default_ceiling) * 0.5, 8)

    def is_authorized_for(self, store_id: str) -> bool:
        """Check if the employee may work at a store."""
        return self.store_id == ALL_STORES or self.store_id == store_id

    def __str__(self) -> str:
        return f"{self.full_name} ({self.role.value}, {self.store_id or 'no store'})"

    def __hash__(self):
        return hash(self.id)

    def __eq__(self, other):
        if isinstance(other, Employee):
            return self.id == other.id
        return False


@dataclass
class Unavailability:
    """
    A window of days an employee has asked not to work.

    Only APPROVED windows block scheduling; PENDING ones are surfaced as
    warnings and REJECTED ones are ignored.
    """
    id: str
    employee_id: str
    start_date: date
    end_date: date
    kind: UnavailabilityKind = UnavailabilityKind.OTHER
    reason: str = ""
    status: ApprovalStatus = ApprovalStatus.PENDING

    def covers(self, target_date: date) -> bool:
        """Check if a date falls inside this window (inclusive)."""
        return self.start_date <= target_date <= self.end_date

    @property
    def is_approved(self) -> bool:
        return self.status == ApprovalStatus.APPROVED

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING
