"""Error taxonomy shared by board operations, the CSV codec and persistence."""

from __future__ import annotations

from typing import Optional


class TrackerError(Exception):
    """Base class; every failure leaves the board unchanged."""


class ValidationError(TrackerError):
    pass


class NotFoundError(TrackerError):
    def __init__(self, initiative_id: str, message: str = "") -> None:
        self.initiative_id = initiative_id
        super().__init__(message or f"Initiative {initiative_id!r} not found")


class ParseError(TrackerError):
    def __init__(self, message: str, *, row: Optional[int] = None) -> None:
        self.row = row
        if row is not None:
            message = f"row {row}: {message}"
        super().__init__(message)


class PersistenceError(TrackerError):
    pass
