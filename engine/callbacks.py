"""
Mutation callbacks injected by the entity store.

Each callback may be a plain function or a coroutine function; the
engine awaits whatever it returns when that is awaitable.
"""
import inspect
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from models.shift import ShiftDraft, ShiftUpdate

from .errors import ExecutionError


NOTIFY_LEVELS = ("info", "warning", "error")


async def resolve(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass
class EngineCallbacks:
    """
    Write side of the entity store.

    Attributes:
        update_shifts: Persist a batch of shift patches
        create_shift: Persist a new shift and return its id (or None)
        delete_shift: Delete a shift by id
        notify_manager: Deliver a message with level info|warning|error
    """
    update_shifts: Optional[Callable[[List[ShiftUpdate]], Any]] = None
    create_shift: Optional[Callable[[ShiftDraft], Any]] = None
    delete_shift: Optional[Callable[[str], Any]] = None
    notify_manager: Optional[Callable[[str, str], Any]] = None

    async def apply_updates(self, updates: List[ShiftUpdate]) -> None:
        if self.update_shifts is None:
            raise ExecutionError("No shift update callback provided")
        for update in updates:
            update.patch.validate()
        await resolve(self.update_shifts(updates))

    async def create(self, draft: ShiftDraft) -> Optional[str]:
        if self.create_shift is None:
            raise ExecutionError("Shift creation callback not provided")
        return await resolve(self.create_shift(draft))

    async def delete(self, shift_id: str) -> None:
        if self.delete_shift is None:
            raise ExecutionError("Shift deletion callback not provided")
        await resolve(self.delete_shift(shift_id))

    async def notify(self, message: str, level: str = "info") -> bool:
        """
        Deliver a manager notification.

        Returns:
            False when no notification callback is configured
        """
        if self.notify_manager is None:
            return False
        if level not in NOTIFY_LEVELS:
            level = "info"
        await resolve(self.notify_manager(message, level))
        return True
