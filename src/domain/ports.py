"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, plus the result types shared by the code state
machines. Adapters implement these protocols.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .organization import OrganizationConfig


class CodeStatus(str, Enum):
    """
    Lifecycle states of registration and verification codes.

    State Transitions (forward-only):
    - NEW -> USED (code consumed by a holder)

    Non-transitioning:
    - GLOBAL: Multi-use registration code, never consumed, never expires

    Note: Forward-only transitions are enforced by the state machines
    through revision-checked writes against the document store.
    """

    NEW = "new"
    USED = "used"
    GLOBAL = "global"


class CodeOutcome(Enum):
    """
    Classification of a state machine operation.

    Each outcome carries the HTTP-style status used by the API layer.
    """

    SUCCESS = "success"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    EXPIRED = "expired"
    CONFLICT = "conflict"
    THRESHOLD_ABORT = "threshold_abort"
    INTERNAL = "internal"

    @property
    def status(self) -> int:
        return _OUTCOME_STATUS[self]


_OUTCOME_STATUS = {
    CodeOutcome.SUCCESS: 200,
    CodeOutcome.VALIDATION: 400,
    CodeOutcome.NOT_FOUND: 404,
    CodeOutcome.INVALID_STATE: 400,
    CodeOutcome.EXPIRED: 400,
    CodeOutcome.CONFLICT: 409,
    CodeOutcome.THRESHOLD_ABORT: 200,
    CodeOutcome.INTERNAL: 500,
}


@dataclass
class CodeResult:
    """Typed {status, message, data} triple returned by public operations."""

    outcome: CodeOutcome
    message: str
    data: Any = None

    @property
    def status(self) -> int:
        return self.outcome.status

    @property
    def ok(self) -> bool:
        return self.outcome is CodeOutcome.SUCCESS


class CrudOperation(str, Enum):
    """Holder data operations recorded by the audit log."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class StoredDocument:
    """A document body together with its key and revision token."""

    key: str
    rev: str
    body: dict[str, Any]


@dataclass(frozen=True)
class ReadResult:
    """Outcome of DocumentStore.read_safe (200 found, 404 missing, 500 store error)."""

    status: int
    document: StoredDocument | None = None
    message: str = ""


@dataclass(frozen=True)
class BulkItemResult:
    """Per-document outcome of DocumentStore.create_bulk."""

    key: str
    ok: bool
    rev: str | None = None
    error: str | None = None
    reason: str | None = None


class DocumentStore(Protocol):
    """Port interface for the revisioned document database."""

    def create(self, key: str, body: dict[str, Any], collection: str) -> str:
        """
        Create a document under an explicit key.

        Returns:
            Revision token of the new document

        Raises:
            DocumentConflict: If the key already exists
        """
        ...

    def create_bulk(
        self, documents: list[tuple[str, dict[str, Any]]], collection: str
    ) -> list[BulkItemResult]:
        """
        Create many (key, body) documents in one call.

        Results are aligned positionally with the input. A duplicate key
        yields error="conflict" for that position only.
        """
        ...

    def read_safe(self, key: str, collection: str) -> ReadResult:
        """Read a document, reporting absence as status 404 instead of raising."""
        ...

    def update(self, key: str, rev: str, body: dict[str, Any], collection: str) -> str:
        """
        Replace a document if its revision still matches.

        Returns:
            New revision token

        Raises:
            DocumentConflict: If the document is gone or the revision is stale
        """
        ...

    def delete(self, key: str, rev: str, collection: str) -> None:
        """
        Delete a document if its revision still matches.

        Raises:
            DocumentConflict: If the document is gone or the revision is stale
        """
        ...

    def query(
        self, selector: dict[str, Any], limit: int, collection: str
    ) -> list[StoredDocument]:
        """Return up to `limit` documents whose body contains `selector`."""
        ...


class NotificationDispatcher(Protocol):
    """Port interface for SMS and email delivery."""

    def send_sms(self, destination: str, text: str) -> None:
        """
        Send a text message.

        Raises:
            NotificationFailed: If delivery failed
        """
        ...

    def send_email(self, destination: str, subject: str, body: str) -> None:
        """
        Send an email.

        Raises:
            NotificationFailed: If delivery failed
        """
        ...


class AuditLogger(Protocol):
    """Port interface for holder-keyed data access auditing."""

    def log(self, holder_id: str, operation: CrudOperation) -> None:
        ...


class OrganizationProvider(Protocol):
    """Port interface resolving an organization id to its configuration."""

    def get(self, entity: str) -> OrganizationConfig | None:
        """Return the organization's configuration, or None if not onboarded."""
        ...
