"""
Engine error types.

Recoverable outcomes (no matches, missing pricing rule, missing distance) are
returned as results and never raised. The exceptions below are reserved for
invariant violations and lookups that cannot proceed.
"""


class EngineError(Exception):
    """Base class for all engine errors."""


class NotFoundError(EngineError):
    """A referenced record does not exist."""

    def __init__(self, entity: str, entity_id: int):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class LifecycleError(EngineError):
    """A state change violates a lifecycle rule."""


class InvalidTransitionError(LifecycleError):
    """Attempted a status transition the state machine does not permit."""

    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} cannot move from '{current}' to '{target}'")


class QuoteExpiredError(LifecycleError):
    """The quote passed its validity window before it was accepted."""

    def __init__(self, quote_id: int):
        self.quote_id = quote_id
        super().__init__(f"Quote {quote_id} has expired")


class InvitationDispatchError(EngineError):
    """Some invitations could not be sent; their carrier requests were released for a retry."""
