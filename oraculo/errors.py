"""Error taxonomy for the Oraculo core.

Every failure a core operation can detect is one of these. Capacity and
selection errors are expected conditions the caller shows to the user;
NotFound means the caller and the store disagree about state.
"""

from __future__ import annotations


class OraculoError(Exception):
    """Base class for all core errors."""


class CapacityExceeded(OraculoError):
    """A horizon has no room left for another non-completed task."""

    def __init__(self, horizon_id: str, limit: int, message: str | None = None) -> None:
        self.horizon_id = horizon_id
        self.limit = limit
        if message is None:
            noun = "task" if limit == 1 else "tasks"
            message = (
                f"Horizon '{horizon_id}' is full: {limit} active {noun} allowed. "
                "Complete or move something out to free a slot."
            )
        super().__init__(message)


class NotFound(OraculoError):
    """A referenced task, horizon or habit does not exist where expected."""

    def __init__(self, kind: str, ident: str, where: str | None = None) -> None:
        self.kind = kind
        self.ident = ident
        self.where = where
        message = f"{kind.capitalize()} not found: {ident}"
        if where:
            message += f" (in '{where}')"
        super().__init__(message)


class InvalidSelection(OraculoError):
    """A daily setup selection is missing or not one of the allowed values."""

    def __init__(self, field: str, value: object = None, message: str | None = None) -> None:
        self.field = field
        self.value = value
        if message is None:
            if value is None:
                message = f"Select a {field} before starting the day"
            else:
                message = f"Invalid {field}: {value!r}"
        super().__init__(message)


class PersistenceFailure(OraculoError):
    """The storage collaborator could not load or save the document."""
