"""Error taxonomy shared by the store, the services and the API layer."""

from typing import Optional


class ProkiiiError(Exception):
    """Base class for application errors."""


class ValidationError(ProkiiiError, ValueError):
    """Caller-supplied input violates a precondition."""


class EventNotFoundError(ValidationError):
    """The event referenced by a roster operation does not exist."""

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event {event_id} not found.")


class MembershipConflictError(ValidationError):
    """The user already belongs to another team for the same event."""

    def __init__(self, event_id: str, user_id: str, team_name: str):
        self.event_id = event_id
        self.user_id = user_id
        self.team_name = team_name
        super().__init__(
            f"User {user_id} is already a member of team '{team_name}' for event {event_id}."
        )


class NotFoundError(ProkiiiError, LookupError):
    """A requested entity does not exist."""


class StoreError(ProkiiiError):
    """The data store is unreachable, timed out or rejected the operation."""

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        if operation:
            message = f"{operation}: {message}"
        super().__init__(message)
