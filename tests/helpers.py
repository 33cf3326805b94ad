"""
Entity factories and an in-memory entity store for the test suite.
"""
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from engine.callbacks import EngineCallbacks
from models.employee import Employee, EmployeeRole
from models.shift import Shift, ShiftDraft, ShiftUpdate
from models.store import Store
from models.suggestion import (
    AdjustDirection, BalancingSuggestion, Priority, ProposedChanges,
    SuggestionImpact, SuggestionType,
)


# Monday
MONDAY = date(2024, 1, 15)


def day(offset: int) -> date:
    """Date ``offset`` days after MONDAY."""
    return MONDAY + timedelta(days=offset)


def make_employee(employee_id: str, store_id: Optional[str] = "store-1",
                  role: EmployeeRole = EmployeeRole.SENIOR, **kwargs) -> Employee:
    return Employee(
        id=employee_id,
        first_name=employee_id.capitalize(),
        last_name="Test",
        role=role,
        store_id=store_id,
        **kwargs,
    )


def make_store(store_id: str = "store-1", **kwargs) -> Store:
    kwargs.setdefault("name", f"Store {store_id.split('-')[-1]}")
    return Store(id=store_id, **kwargs)


def make_shift(shift_id: str, employee_id: str, on: date = MONDAY,
               start: str = "09:00", end: str = "17:00",
               store_id: str = "store-1", **kwargs) -> Shift:
    return Shift(
        id=shift_id,
        employee_id=employee_id,
        store_id=store_id,
        date=on,
        start_time=start,
        end_time=end,
        **kwargs,
    )


def make_suggestion(suggestion_id: str = "redistribute-1",
                    suggestion_type: SuggestionType = SuggestionType.REDISTRIBUTE,
                    source: Optional[str] = "a",
                    target: Optional[str] = "b",
                    hours: float = 8.0,
                    direction: Optional[AdjustDirection] = None,
                    **kwargs) -> BalancingSuggestion:
    kwargs.setdefault("store_id", "store-1")
    return BalancingSuggestion(
        id=suggestion_id,
        type=suggestion_type,
        priority=Priority.MEDIUM,
        title="Test suggestion",
        description="Suggestion built by the test suite",
        proposed_changes=ProposedChanges(
            action="Test",
            impact=SuggestionImpact(hours),
            direction=direction,
        ),
        source_employee_id=source,
        target_employee_id=target,
        **kwargs,
    )


class InMemoryEntityStore:
    """
    Entity store double whose callbacks record every mutation.

    Updates and deletes are plain functions, creation is a coroutine, so
    both callback flavours are exercised.
    """

    def __init__(self, shifts: Optional[List[Shift]] = None):
        self.shifts: Dict[str, Shift] = {s.id: s for s in shifts or []}
        self.updates: List[ShiftUpdate] = []
        self.created: List[ShiftDraft] = []
        self.deleted: List[str] = []
        self.notifications: List[Tuple[str, str]] = []
        self._next_id = 0

    def update_shifts(self, updates: List[ShiftUpdate]) -> None:
        for update in updates:
            self.updates.append(update)
            self.shifts[update.shift_id] = self.shifts[update.shift_id].apply(update.patch)

    async def create_shift(self, draft: ShiftDraft) -> str:
        self._next_id += 1
        shift_id = f"created-{self._next_id}"
        self.created.append(draft)
        self.shifts[shift_id] = draft.to_shift(shift_id)
        return shift_id

    def delete_shift(self, shift_id: str) -> None:
        self.deleted.append(shift_id)
        self.shifts.pop(shift_id, None)

    def notify_manager(self, message: str, level: str) -> None:
        self.notifications.append((message, level))

    def callbacks(self) -> EngineCallbacks:
        return EngineCallbacks(
            update_shifts=self.update_shifts,
            create_shift=self.create_shift,
            delete_shift=self.delete_shift,
            notify_manager=self.notify_manager,
        )
