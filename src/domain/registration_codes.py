"""
Registration code state machine.

Registration Code Lifecycle (Forward-Only Transitions)
======================================================

States:
- NEW: Issued, waiting for a holder
- USED: Terminal state after a holder consumed the code
- GLOBAL: Multi-use code, never consumed and exempt from expiration

Valid Transitions:
    NEW -> USED     (consume)
    NEW -> deleted  (rollback)

Never allowed:
    USED -> any     (USED is terminal, cannot be rolled back)
    GLOBAL -> USED  (consuming a GLOBAL code is a no-op)

Every transition re-reads or carries the revision token of the document it
changes. The store rejects a write with a stale token, so of several
concurrent consumers exactly one wins and the others get CONFLICT.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from .conflicts import ConflictResolver
from .documents import (
    REGISTRATION_FIELDS,
    RegistrationCodeDocument,
    VerificationCodeDocument,
    is_verification_body,
)
from .exceptions import DocumentConflict, InvalidCodeFormat
from .expiration import is_expired, now_timestamp
from .organization import OrganizationConfig
from .policy import CodePolicy
from .ports import (
    AuditLogger,
    CodeOutcome,
    CodeResult,
    CodeStatus,
    CrudOperation,
    DocumentStore,
)

logger = logging.getLogger(__name__)

QUERY_MAX_LIMIT = 200


@dataclass
class UploadResult:
    """Aggregate outcome of creating many registration codes at once."""

    status: int
    message: str
    docs: list[RegistrationCodeDocument]
    errors: list[dict[str, Any]]


@dataclass
class RegistrationCodeService:
    """
    Domain service owning the registration code lifecycle.

    Validates, consumes and rolls back registration code documents kept in
    the organization's register collection.
    """

    store: DocumentStore
    audit: AuditLogger
    policy: CodePolicy = field(default_factory=CodePolicy)

    def build(
        self,
        code_or_record: str | dict[str, Any],
        expiration: int,
        is_global: bool = False,
        policy: CodePolicy | None = None,
    ) -> RegistrationCodeDocument:
        """
        Construct (but never persist) a registration code document.

        Args:
            code_or_record: The code itself, or a holder record carrying
                the code in its registerCode field
            expiration: Expiration timestamp (epoch seconds)
            is_global: Build a multi-use GLOBAL code
            policy: Length bounds to enforce (defaults to the service policy)

        Raises:
            InvalidCodeFormat: If the code is missing or out of bounds
        """
        limits = policy or self.policy
        if isinstance(code_or_record, dict):
            code = code_or_record.get("registerCode")
            holder = {
                k: v
                for k, v in code_or_record.items()
                if k not in REGISTRATION_FIELDS and k not in ("_id", "_rev")
            }
        else:
            code = code_or_record
            holder = {}

        if not isinstance(code, str) or not limits.min_length <= len(code) <= limits.max_length:
            raise InvalidCodeFormat(
                f"Code must be between {limits.min_length} and {limits.max_length} characters"
            )

        created = now_timestamp()
        return RegistrationCodeDocument(
            register_code=code,
            status=CodeStatus.GLOBAL if is_global else CodeStatus.NEW,
            created_timestamp=created,
            updated_timestamp=created,
            expiration_timestamp=expiration,
            holder=holder,
        )

    def prepare(
        self,
        org: OrganizationConfig,
        codes: list[str | dict[str, Any]],
        expiration: int,
        is_global: bool = False,
    ) -> tuple[list[RegistrationCodeDocument], list[dict[str, Any]]]:
        """
        Build documents for a list of codes, separating out invalid ones.

        Returns:
            Tuple of (buildable documents, upload error entries)
        """
        policy = self.policy.for_organization(org)
        docs: list[RegistrationCodeDocument] = []
        errors: list[dict[str, Any]] = []
        for item in codes:
            try:
                docs.append(self.build(item, expiration, is_global, policy))
            except InvalidCodeFormat as e:
                code = item.get("registerCode") if isinstance(item, dict) else item
                errors.append({"error": "invalid", "reason": str(e), "registerCode": code})
        return docs, errors

    def read(self, org: OrganizationConfig, code: str) -> CodeResult:
        """Read a registration code document without checking its state."""
        stored = self.store.read_safe(code, org.register_collection)
        if stored.status not in (200, 404):
            message = f"Failed to read registration code doc {code}: {stored.message}"
            logger.error(message)
            return CodeResult(CodeOutcome.INTERNAL, message)
        if stored.status == 404 or is_verification_body(stored.document.body):
            message = f"Registration code doc for code {code} not found"
            logger.warning(message)
            return CodeResult(CodeOutcome.NOT_FOUND, message)
        doc = RegistrationCodeDocument.from_stored(stored.document)
        return CodeResult(CodeOutcome.SUCCESS, f"Registration code doc found for code {code}", doc)

    def validate(self, org: OrganizationConfig, code: str) -> CodeResult:
        """
        Check that a registration code exists and can still be used.

        Return values by scenario:
        - NOT_FOUND: No registration code document under this key
        - INVALID_STATE: Status is not NEW or GLOBAL (already used)
        - EXPIRED: Non-GLOBAL code at or past its expiration timestamp
        - SUCCESS: Code is usable, document returned as data

        A verification document referenced by a usable code and no longer
        part of an active flow (used or expired) is deleted on the way.
        """
        result = self.read(org, code)
        if not result.ok:
            return result
        doc: RegistrationCodeDocument = result.data
        self._audit(org, doc.holder, CrudOperation.READ)

        rejection = self.check_usable(doc)
        if rejection is not None:
            return rejection

        if doc.verification_code:
            failure = self._discard_stale_verification(org, doc.verification_code)
            if failure is not None:
                return failure

        return CodeResult(CodeOutcome.SUCCESS, f"Registration code {code} is valid", doc)

    def check_usable(
        self, doc: RegistrationCodeDocument, now: int | None = None
    ) -> CodeResult | None:
        """Return the rejection for an unusable document, None if usable."""
        if doc.status not in (CodeStatus.NEW, CodeStatus.GLOBAL):
            message = (
                f"Registration code status is '{doc.status.value}', but a code can only be "
                f"used once - status must be {CodeStatus.NEW.value}"
            )
            logger.warning(message)
            return CodeResult(CodeOutcome.INVALID_STATE, message)

        if not doc.is_global and is_expired(doc.expiration_timestamp, now):
            message = f"Registration code expired at {doc.expiration_timestamp}"
            logger.warning(message)
            return CodeResult(CodeOutcome.EXPIRED, message)

        return None

    def consume(self, org: OrganizationConfig, document: RegistrationCodeDocument) -> CodeResult:
        """
        Transition a registration code NEW -> USED.

        The write carries the document's revision token; a concurrent
        consumer that already moved the document makes this call CONFLICT.
        GLOBAL codes are never consumed. On success the given document is
        updated in place and its verification document is removed.
        """
        code = document.register_code
        if document.status is CodeStatus.GLOBAL:
            return CodeResult(CodeOutcome.SUCCESS, f"Global registration code {code} stays in use", document)
        if document.status is not CodeStatus.NEW:
            message = (
                f"Code status is {document.status.value}, but a code can only be used once "
                f"- status must be {CodeStatus.NEW.value}"
            )
            logger.warning(message)
            return CodeResult(CodeOutcome.INVALID_STATE, message)

        used = replace(document, status=CodeStatus.USED, updated_timestamp=now_timestamp())
        try:
            rev = self.store.update(code, document.rev, used.to_body(), org.register_collection)
        except DocumentConflict:
            message = f"Multiple simultaneous attempts to update code doc for code {code}"
            logger.warning(message)
            return CodeResult(CodeOutcome.CONFLICT, message)

        document.status = used.status
        document.updated_timestamp = used.updated_timestamp
        document.rev = rev
        self._audit(org, document.holder, CrudOperation.UPDATE)

        if document.verification_code:
            self.delete_verification(org, document.verification_code)

        logger.info("Registration code %s consumed", code)
        return CodeResult(CodeOutcome.SUCCESS, f"Successfully updated code doc for code {code}", document)

    def consume_code(self, org: OrganizationConfig, code: str) -> CodeResult:
        """Read a registration code and consume it."""
        result = self.read(org, code)
        if not result.ok:
            return result
        return self.consume(org, result.data)

    def attach_verification(
        self, org: OrganizationConfig, document: RegistrationCodeDocument, verification_code: str
    ) -> CodeResult:
        """Point a registration code at its current verification code."""
        updated = replace(
            document, verification_code=verification_code, updated_timestamp=now_timestamp()
        )
        try:
            rev = self.store.update(
                document.key, document.rev, updated.to_body(), org.register_collection
            )
        except DocumentConflict:
            message = f"Multiple simultaneous attempts to update code doc {document.key}"
            logger.warning(message)
            return CodeResult(CodeOutcome.CONFLICT, message)

        document.verification_code = verification_code
        document.updated_timestamp = updated.updated_timestamp
        document.rev = rev
        self._audit(org, document.holder, CrudOperation.UPDATE)
        return CodeResult(CodeOutcome.SUCCESS, f"Successfully updated code doc {document.key}", document)

    def rollback(self, org: OrganizationConfig, code: str) -> CodeResult:
        """
        Delete an unused registration code and its verification document.

        USED codes are never rolled back. Rolling back a GLOBAL code is a
        no-op: other holders may be using it.
        """
        result = self.read(org, code)
        if not result.ok:
            return result
        doc: RegistrationCodeDocument = result.data

        if doc.status is CodeStatus.USED:
            message = (
                f"Code status is {doc.status.value}, but a code can only be used once "
                f"- status must be {CodeStatus.NEW.value}"
            )
            logger.warning(message)
            return CodeResult(CodeOutcome.INVALID_STATE, message)
        if doc.is_global:
            return CodeResult(CodeOutcome.SUCCESS, f"Global registration code {code} is shared and was kept")

        try:
            self.store.delete(code, doc.rev, org.register_collection)
        except DocumentConflict:
            message = f"Multiple simultaneous attempts to update code doc for code {code}"
            logger.warning(message)
            return CodeResult(CodeOutcome.CONFLICT, message)

        if doc.verification_code:
            self.delete_verification(org, doc.verification_code)
        self._audit(org, doc.holder, CrudOperation.DELETE)

        logger.info("Registration code %s rolled back", code)
        return CodeResult(CodeOutcome.SUCCESS, f"Successfully deleted code doc for code {code}")

    def upload(
        self,
        org: OrganizationConfig,
        codes: list[str | dict[str, Any]],
        expiration: int,
        is_global: bool = False,
    ) -> UploadResult:
        """
        Create registration codes in one bulk call.

        Conflicting codes are re-labelled by the conflict resolver so the
        caller can tell spent codes apart from duplicate submissions.
        """
        docs, errors = self.prepare(org, codes, expiration, is_global)
        results = self.store.create_bulk(
            [(doc.key, doc.to_body()) for doc in docs], org.register_collection
        )

        resolver = ConflictResolver(self)
        uploaded: list[RegistrationCodeDocument] = []
        for doc, res in zip(docs, results):
            if res.ok:
                doc.rev = res.rev
                uploaded.append(doc)
                self._audit(org, doc.holder, CrudOperation.CREATE)
                continue

            logger.warning("Failed to save registration code doc %s", doc.key)
            reason = res.reason
            if res.error == "conflict":
                reason = resolver.resolve(org, doc.key)
            errors.append({"error": res.error, "reason": reason, "registerCode": doc.key})

        if not errors:
            status, message = 201, "Registration codes uploaded successfully"
        elif not uploaded:
            status, message = 400, "No registration codes uploaded"
        else:
            status, message = 409, "Some registration codes uploaded successfully"
        logger.info("%s: %d created, %d rejected", message, len(uploaded), len(errors))
        return UploadResult(status=status, message=message, docs=uploaded, errors=errors)

    def query(
        self, org: OrganizationConfig, limit: int, status: CodeStatus | None = None
    ) -> CodeResult:
        """Fetch up to `limit` registration codes, optionally by status."""
        if not 1 <= limit <= QUERY_MAX_LIMIT:
            return CodeResult(
                CodeOutcome.VALIDATION,
                f"Invalid quantity: {limit} (must be number between 1 and {QUERY_MAX_LIMIT})",
            )

        statuses = [status] if status is not None else list(CodeStatus)
        docs: list[RegistrationCodeDocument] = []
        for wanted in statuses:
            remaining = limit - len(docs)
            if remaining <= 0:
                break
            stored = self.store.query({"status": wanted.value}, remaining, org.register_collection)
            docs.extend(RegistrationCodeDocument.from_stored(s) for s in stored)

        if not docs:
            if status is not None:
                message = f"No registration codes found with status {status.value}"
            else:
                message = "No registration codes found"
            logger.warning(message)
            return CodeResult(CodeOutcome.NOT_FOUND, message, [])

        for doc in docs:
            self._audit(org, doc.holder, CrudOperation.READ)
        logger.info("Queried %d registration code docs", len(docs))
        return CodeResult(CodeOutcome.SUCCESS, "Registration codes found", docs)

    def _discard_stale_verification(
        self, org: OrganizationConfig, verification_code: str
    ) -> CodeResult | None:
        stored = self.store.read_safe(verification_code, org.register_collection)
        if stored.status not in (200, 404):
            message = f"Failed to read verification code doc {verification_code}: {stored.message}"
            logger.error(message)
            return CodeResult(CodeOutcome.INTERNAL, message)
        if stored.status == 404 or not is_verification_body(stored.document.body):
            return None
        verification = VerificationCodeDocument.from_stored(stored.document)
        active = verification.verification_status is CodeStatus.NEW and not is_expired(
            verification.expiration_timestamp
        )
        if active:
            return None
        try:
            self.store.delete(verification.key, verification.rev, org.register_collection)
            logger.info("Removed stale verification code doc %s", verification.key)
        except DocumentConflict:
            # Changed underneath us; the next validation retries the cleanup
            logger.debug("Stale verification code doc %s changed during cleanup", verification.key)
        return None

    def delete_verification(self, org: OrganizationConfig, key: str) -> None:
        """Delete a verification code document if it still exists."""
        stored = self.store.read_safe(key, org.register_collection)
        if stored.status != 200 or not is_verification_body(stored.document.body):
            return
        try:
            self.store.delete(key, stored.document.rev, org.register_collection)
        except DocumentConflict:
            logger.warning("Code doc %s changed while being deleted", key)

    def _audit(self, org: OrganizationConfig, holder: dict[str, Any], operation: CrudOperation) -> None:
        holder_id = org.holder_id(holder)
        if holder_id:
            self.audit.log(holder_id, operation)
