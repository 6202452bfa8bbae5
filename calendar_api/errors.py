"""Exception types shared by the parser, codec and sync engine."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List


class TextCalError(Exception):
    """Base class for all textcal errors."""


@dataclass(frozen=True)
class FieldError:
    field: str
    rule: str
    message: str


class ValidationError(TextCalError):
    """Raised when a draft violates one or more field rules.

    ``errors`` holds every violation found, not only the first one.
    """

    def __init__(self, errors: List[FieldError]):
        self.errors = list(errors)
        summary = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(f"Invalid calendar item ({summary})")

    def rules_for(self, field: str) -> List[str]:
        return [e.rule for e in self.errors if e.field == field]


class MalformedDurationError(TextCalError, ValueError):
    """Raised when an alarm duration token cannot be parsed."""


class NotFoundError(TextCalError, LookupError):
    """Raised when a calendar or an event id does not exist."""


class RemoteUnavailableError(TextCalError):
    """Raised when the remote calendar server cannot be reached or queried."""
