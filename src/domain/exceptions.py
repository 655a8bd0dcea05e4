"""
Domain exceptions - Semantic error types for onboarding codes.

Expected code conditions (not found, expired, already used) are returned
as CodeResult values. The exceptions below cover broken preconditions and
infrastructure failures that callers translate at the edge.
"""


class RegistrationError(Exception):
    """Base class for onboarding domain errors."""

    pass


class OrganizationNotFound(RegistrationError):
    """No configuration document exists for the organization."""

    pass


class UnknownEntityType(RegistrationError):
    """Organization references an entity type with no holder identity."""

    pass


class InvalidCodeFormat(RegistrationError, ValueError):
    """Registration code is outside the configured length bounds."""

    pass


class MalformedDocument(RegistrationError):
    """Stored document is missing required fields or has bad values."""

    pass


class DocumentConflict(RegistrationError):
    """Store rejected a write: duplicate key or stale revision token."""

    def __init__(self, key: str, collection: str) -> None:
        super().__init__(f"Document update conflict: {key} in {collection}")
        self.key = key
        self.collection = collection


class StoreUnavailable(RegistrationError):
    """Document store could not be reached or failed unexpectedly."""

    pass


class NotificationFailed(RegistrationError):
    """Notification dispatcher could not deliver a message."""

    pass
