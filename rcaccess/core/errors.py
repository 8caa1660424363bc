"""
Domain errors raised by the access-control services.

Services raise these; ``rcaccess.main`` turns them into HTTP responses.
"""


class RCAccessError(Exception):
    """Base class for access-control failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RCAccessError):
    """
    An RC, target account, or grant id does not exist.

    ``conceal`` marks lookups made on behalf of a permission-gated operation;
    those are reported to the caller exactly like an authorization failure so
    the existence of the resource does not leak.
    """

    def __init__(self, resource: str, identifier, conceal: bool = False):
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier
        self.conceal = conceal


class ConflictError(RCAccessError):
    """A grant already exists for this (RC, principal) pair."""


class AuthorizationError(RCAccessError):
    """The requester's effective level is insufficient for the operation."""


class ValidationError(RCAccessError):
    """The request is well formed but not allowed (wrong principal kind, protected RC...)."""


class ConfigurationError(RCAccessError):
    """A directory group mapping entry is malformed. Never surfaced to end users."""
