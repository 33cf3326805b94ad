"""
Shift model, typed patches and wall-clock time helpers.
"""
import re
from dataclasses import dataclass, replace
from datetime import date, time, datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional


_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_time(value: str) -> time:
    """
    Parse a wall-clock HH:MM string.

    Raises:
        ValueError: If the string is not a valid 24h time
    """
    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def format_time(value: time) -> str:
    """Format a time as HH:MM."""
    return value.strftime("%H:%M")


def calculate_shift_hours(start_time: str, end_time: str,
                          break_minutes: int = 0) -> float:
    """
    Calculate worked hours between two HH:MM times.

    Shifts crossing midnight (end before start) get 24h added to the end.
    The result is clamped at zero.
    """
    start = parse_time(start_time)
    end = parse_time(end_time)
    start_minutes = start.hour * 60 + start.minute
    end_minutes = end.hour * 60 + end.minute
    if end_minutes < start_minutes:
        end_minutes += 24 * 60
    total_minutes = end_minutes - start_minutes - (break_minutes or 0)
    return max(0.0, total_minutes / 60)


class ShiftStatus(Enum):
    """Lifecycle status of a shift."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class Shift:
    """
    Represents a work shift assigned to one employee at one store.

    Attributes:
        id: Unique shift identifier
        employee_id: Assigned employee
        store_id: Store where the shift is worked
        date: Calendar date of the shift
        start_time: Start as HH:MM
        end_time: End as HH:MM
        break_duration: Unpaid break in minutes
        actual_hours: Precomputed worked hours, if known
        status: Lifecycle status
        is_locked: Locked shifts are never mutated by the engine
        locked_at: When the shift was locked
        locked_by: Who locked it
        notes: Free text
    """
    id: str
    employee_id: str
    store_id: str
    date: date
    start_time: str
    end_time: str
    break_duration: int = 0
    actual_hours: Optional[float] = None
    status: ShiftStatus = ShiftStatus.SCHEDULED
    is_locked: bool = False
    locked_at: Optional[datetime] = None
    locked_by: Optional[str] = None
    notes: str = ""

    @property
    def worked_hours(self) -> float:
        """Hours worked, preferring a positive precomputed value."""
        if self.actual_hours and self.actual_hours > 0:
            return self.actual_hours
        return calculate_shift_hours(self.start_time, self.end_time, self.break_duration)

    def get_start_datetime(self) -> datetime:
        """Get the datetime when this shift starts."""
        return datetime.combine(self.date, parse_time(self.start_time))

    def get_end_datetime(self) -> datetime:
        """Get the datetime when this shift ends (next day if it crosses midnight)."""
        end = datetime.combine(self.date, parse_time(self.end_time))
        if end < self.get_start_datetime():
            end += timedelta(days=1)
        return end

    def hours_until_next(self, next_shift: "Shift") -> float:
        """Calculate rest hours between this shift and the next."""
        delta = next_shift.get_start_datetime() - self.get_end_datetime()
        return delta.total_seconds() / 3600

    def overlaps(self, other: "Shift") -> bool:
        """Check if two shifts on the same date intersect as [start, end) intervals."""
        if self.date != other.date:
            return False
        return (self.get_start_datetime() < other.get_end_datetime()
                and other.get_start_datetime() < self.get_end_datetime())

    def is_weekend(self) -> bool:
        return self.date.weekday() >= 5

    def apply(self, patch: "ShiftPatch") -> "Shift":
        """Return a copy of this shift with the patch merged in."""
        return replace(self, **patch.as_dict())

    def __str__(self) -> str:
        return (
            f"{self.id} on {self.date.strftime('%a %d/%m')}: "
            f"{self.start_time}-{self.end_time} ({self.worked_hours:.1f}h) "
            f"-> {self.employee_id}@{self.store_id}"
        )


@dataclass
class ShiftPatch:
    """
    Explicit partial update for a shift.

    Only fields that are not None are merged; everything else is left as is.
    ``clear_hours`` resets ``actual_hours`` to None so hours are derived from
    the times again.
    """
    employee_id: Optional[str] = None
    store_id: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    break_duration: Optional[int] = None
    actual_hours: Optional[float] = None
    clear_hours: bool = False

    def validate(self) -> None:
        """
        Check field formats before the patch is merged.

        Raises:
            ValueError: On malformed times or negative durations
        """
        for value in (self.start_time, self.end_time):
            if value is not None:
                parse_time(value)
        if self.break_duration is not None and self.break_duration < 0:
            raise ValueError(f"Negative break duration: {self.break_duration}")
        if self.actual_hours is not None and self.actual_hours < 0:
            raise ValueError(f"Negative hours: {self.actual_hours}")
        if self.clear_hours and self.actual_hours is not None:
            raise ValueError("Cannot both set and clear hours")
        if self.employee_id == "" or self.store_id == "":
            raise ValueError("Empty identifier in shift patch")

    def is_empty(self) -> bool:
        return not self.as_dict()

    def as_dict(self) -> Dict[str, Any]:
        """Get the set fields only."""
        values = {
            name: value
            for name, value in (
                ("employee_id", self.employee_id),
                ("store_id", self.store_id),
                ("start_time", self.start_time),
                ("end_time", self.end_time),
                ("break_duration", self.break_duration),
                ("actual_hours", self.actual_hours),
            )
            if value is not None
        }
        if self.clear_hours:
            values["actual_hours"] = None
        return values


@dataclass
class ShiftUpdate:
    """A patch addressed to one shift."""
    shift_id: str
    patch: ShiftPatch


@dataclass
class ShiftDraft:
    """Fields for a shift that does not have an id yet."""
    employee_id: str
    store_id: str
    date: date
    start_time: str
    end_time: str
    break_duration: int = 0
    actual_hours: Optional[float] = None
    is_locked: bool = False
    notes: str = ""

    def to_shift(self, shift_id: str) -> Shift:
        """Materialize the draft once the entity store assigned an id."""
        return Shift(
            id=shift_id,
            employee_id=self.employee_id,
            store_id=self.store_id,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            break_duration=self.break_duration,
            actual_hours=self.actual_hours,
            is_locked=self.is_locked,
            notes=self.notes,
        )
