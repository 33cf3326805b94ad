"""
Store configuration models.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional

from .shift import parse_time


WEEKDAYS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
)


@dataclass
class OpeningHours:
    """
    Opening window for a single weekday.

    Attributes:
        open: Opening time as HH:MM
        close: Closing time as HH:MM
    """
    open: str
    close: str

    def duration_hours(self) -> float:
        """Calculate opening duration in hours."""
        start = parse_time(self.open)
        end = parse_time(self.close)
        start_minutes = start.hour * 60 + start.minute
        end_minutes = end.hour * 60 + end.minute
        return max(0, end_minutes - start_minutes) / 60


@dataclass
class Store:
    """
    Store configuration model.

    Attributes:
        id: Store identifier
        name: Store name
        is_active: Whether the store is trading
        opening_hours: Opening window keyed by lowercase weekday name
        max_staff_per_day: Headcount above which a day is flagged as crowded
    """
    id: str
    name: str
    is_active: bool = True
    opening_hours: Dict[str, OpeningHours] = field(default_factory=dict)
    max_staff_per_day: int = 10

    def hours_for(self, target_date: date) -> Optional[OpeningHours]:
        """Get the opening window for a date, or None if closed."""
        return self.opening_hours.get(WEEKDAYS[target_date.weekday()])

    def is_open_on(self, target_date: date) -> bool:
        """Check if the store trades on a date."""
        return self.hours_for(target_date) is not None

    def get_operating_hours(self) -> float:
        """Total weekly opening hours."""
        return sum(h.duration_hours() for h in self.opening_hours.values())

    def __str__(self) -> str:
        status = "active" if self.is_active else "inactive"
        return f"{self.name} ({status}) | Open {len(self.opening_hours)} days/week"


def standard_opening_hours(open_time: str = "09:00",
                           close_time: str = "20:00",
                           sunday: bool = False) -> Dict[str, OpeningHours]:
    """Build a Monday-Saturday (optionally Sunday) opening table."""
    days = WEEKDAYS if sunday else WEEKDAYS[:6]
    return {day: OpeningHours(open_time, close_time) for day in days}
