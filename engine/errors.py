"""
Exception hierarchy for engine routines.

These are raised inside a routine and converted into structured failure
results at the routine boundary; callers of the public operations never
see them.
"""
from typing import Optional


class EngineError(Exception):
    """Base class for engine failures."""


class ExecutionError(EngineError):
    """
    An operation could not be carried out.

    Raised when no eligible shift or employee exists, a required callback
    is missing, or the suggestion type is not supported.
    """


class ValidationBlocked(ExecutionError):
    """The pre-apply validator reported errors."""

    def __init__(self, messages, warnings=None):
        self.messages = list(messages)
        self.warnings = list(warnings or [])
        super().__init__("; ".join(self.messages) or "Validation failed")


class IntegrityError(EngineError):
    """A referenced snapshot, shift or entity does not exist or is malformed."""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message)
