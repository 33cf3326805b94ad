"""
In-memory schedule state shared by the engine components.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from .employee import Employee, Unavailability
from .shift import Shift, ShiftPatch
from .store import Store


@dataclass
class ScheduleState:
    """
    Mirror of the entity store's collections.

    The engine reads it for every query and writes each successful
    callback mutation back into it, so items later in a batch see the
    effects of earlier ones.

    Attributes:
        employees: Employees keyed by id
        stores: Stores keyed by id
        shifts: Shifts keyed by id, in insertion order
        unavailabilities: Time-off windows
    """
    employees: Dict[str, Employee] = field(default_factory=dict)
    stores: Dict[str, Store] = field(default_factory=dict)
    shifts: Dict[str, Shift] = field(default_factory=dict)
    unavailabilities: List[Unavailability] = field(default_factory=list)

    # Indexes for fast lookup
    _by_employee: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))
    _by_store: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    @classmethod
    def from_collections(cls,
                         employees: Iterable[Employee],
                         stores: Iterable[Store],
                         shifts: Iterable[Shift],
                         unavailabilities: Optional[Iterable[Unavailability]] = None
                         ) -> "ScheduleState":
        state = cls()
        state.replace_all(employees, stores, shifts, unavailabilities)
        return state

    def replace_all(self,
                    employees: Iterable[Employee],
                    stores: Iterable[Store],
                    shifts: Iterable[Shift],
                    unavailabilities: Optional[Iterable[Unavailability]] = None) -> None:
        """Replace every collection and rebuild the indexes."""
        self.employees = {e.id: e for e in employees}
        self.stores = {s.id: s for s in stores}
        self.unavailabilities = list(unavailabilities or [])
        self.shifts = {}
        self._by_employee = defaultdict(list)
        self._by_store = defaultdict(list)
        for shift in shifts:
            self.add_shift(shift)

    # =========================================================================
    # Shift mutation
    # =========================================================================

    def add_shift(self, shift: Shift) -> None:
        """Add a shift to the state."""
        if shift.id in self.shifts:
            self.remove_shift(shift.id)
        self.shifts[shift.id] = shift
        self._by_employee[shift.employee_id].append(shift.id)
        self._by_store[shift.store_id].append(shift.id)

    def remove_shift(self, shift_id: str) -> Optional[Shift]:
        """Remove a shift, returning it if it existed."""
        shift = self.shifts.pop(shift_id, None)
        if shift is None:
            return None
        self._by_employee[shift.employee_id].remove(shift_id)
        self._by_store[shift.store_id].remove(shift_id)
        return shift

    def apply_update(self, shift_id: str, patch: ShiftPatch) -> Optional[Shift]:
        """
        Merge a patch into a stored shift.

        Args:
            shift_id: Shift to update
            patch: Fields to overwrite

        Returns:
            The updated shift, or None if the id is unknown
        """
        current = self.shifts.get(shift_id)
        if current is None:
            return None
        updated = current.apply(patch)
        if updated.employee_id != current.employee_id:
            self._by_employee[current.employee_id].remove(shift_id)
            self._by_employee[updated.employee_id].append(shift_id)
        if updated.store_id != current.store_id:
            self._by_store[current.store_id].remove(shift_id)
            self._by_store[updated.store_id].append(shift_id)
        self.shifts[shift_id] = updated
        return updated

    # =========================================================================
    # Queries
    # =========================================================================

    def get_shift(self, shift_id: Optional[str]) -> Optional[Shift]:
        if shift_id is None:
            return None
        return self.shifts.get(shift_id)

    def get_employee(self, employee_id: Optional[str]) -> Optional[Employee]:
        if employee_id is None:
            return None
        return self.employees.get(employee_id)

    def get_store(self, store_id: Optional[str]) -> Optional[Store]:
        if store_id is None:
            return None
        return self.stores.get(store_id)

    def all_shifts(self) -> List[Shift]:
        return list(self.shifts.values())

    def shifts_for_employee(self, employee_id: str) -> List[Shift]:
        """Get all shifts for a specific employee."""
        return [self.shifts[sid] for sid in self._by_employee.get(employee_id, [])]

    def shifts_for_store(self, store_id: str) -> List[Shift]:
        """Get all shifts for a specific store."""
        return [self.shifts[sid] for sid in self._by_store.get(store_id, [])]

    def unlocked_shifts_for(self, employee_id: str) -> List[Shift]:
        return [s for s in self.shifts_for_employee(employee_id) if not s.is_locked]

    def employees_at_store(self, store_id: str, active_only: bool = True) -> List[Employee]:
        """Get employees whose home store is ``store_id``."""
        return [
            e for e in self.employees.values()
            if e.store_id == store_id and (e.is_active or not active_only)
        ]

    def unavailabilities_for(self, employee_id: str, target_date: date) -> List[Unavailability]:
        return [
            u for u in self.unavailabilities
            if u.employee_id == employee_id and u.covers(target_date)
        ]

    def summary(self) -> dict:
        """Get a summary of the state."""
        return {
            "employees": len(self.employees),
            "stores": len(self.stores),
            "shifts": len(self.shifts),
            "locked_shifts": sum(1 for s in self.shifts.values() if s.is_locked),
            "total_hours": round(sum(s.worked_hours for s in self.shifts.values()), 1),
        }
