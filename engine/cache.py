"""
Bounded LRU cache for validation results.
"""
from collections import OrderedDict
from typing import Iterable, Optional, Tuple

from models.shift import Shift
from models.validation import ValidationResult


ValidationKey = Tuple[str, Tuple[Tuple[str, str], ...]]


class ValidationCache:
    """
    Least-recently-used cache of validation results.

    Entries are keyed by the suggestion id plus the sorted (shift id,
    employee id) pairs of the affected shifts. The cache does not watch the
    underlying collections; callers must ``invalidate()`` it whenever
    employees, stores or shifts change.
    """

    def __init__(self, max_size: int = 50):
        if max_size <= 0:
            raise ValueError(f"Cache size must be positive, got {max_size}")
        self.max_size = max_size
        self._entries: "OrderedDict[ValidationKey, ValidationResult]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(suggestion_id: str, shifts: Iterable[Shift]) -> ValidationKey:
        return suggestion_id, tuple(sorted((s.id, s.employee_id) for s in shifts))

    def get(self, key: ValidationKey) -> Optional[ValidationResult]:
        result = self._entries.get(key)
        if result is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return result

    def put(self, key: ValidationKey, result: ValidationResult) -> None:
        self._entries[key] = result
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def invalidate(self) -> None:
        """Drop every cached result."""
        self._entries.clear()

    def stats(self) -> dict:
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
        }

    def __contains__(self, key: ValidationKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
