"""Error taxonomy shared by the request validator, services and stores."""
from __future__ import annotations

from collections.abc import Sequence


class WellnessError(Exception):
    """Base class for every failure raised by the wellness services."""


class ValidationError(WellnessError):
    """A request is missing fields or carries values of the wrong type."""

    def __init__(self, message: str, *, fields: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.fields = tuple(fields)

    @classmethod
    def for_fields(cls, fields: Sequence[str]) -> "ValidationError":
        return cls(f"Missing or invalid fields: {', '.join(fields)}", fields=fields)


class NotFoundError(WellnessError):
    """The referenced user profile does not exist."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id!r} not found")
        self.user_id = user_id


class GenerationError(WellnessError):
    """The language model failed or returned output that does not match the schema."""


class StoreError(WellnessError):
    """The document store is unreachable or rejected a read/write."""


__all__ = [
    "GenerationError",
    "NotFoundError",
    "StoreError",
    "ValidationError",
    "WellnessError",
]
