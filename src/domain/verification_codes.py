"""
Verification code state machine - second factor of the MFA flow.

A verification code is an 8-digit number issued for an already valid
registration code and delivered to the holder's phone or email.

    NEW -> USED  (holder proved possession, one-way)

At most one verification code is live per registration code: issuing a new
one deletes the previous document first.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from .codes import VERIFICATION_CODE_DIGITS, generate_verification_code
from .documents import RegistrationCodeDocument, VerificationCodeDocument, is_verification_body
from .exceptions import DocumentConflict
from .expiration import is_expired, now_timestamp, verification_code_expiration
from .organization import OrganizationConfig
from .policy import CodePolicy
from .ports import CodeOutcome, CodeResult, CodeStatus, DocumentStore
from .registration_codes import RegistrationCodeService

logger = logging.getLogger(__name__)

FORMAT_ERROR = "Incorrect verification code format"


@dataclass
class VerificationCodeService:
    """Issues, validates and consumes verification codes."""

    store: DocumentStore
    registration: RegistrationCodeService
    policy: CodePolicy = field(default_factory=CodePolicy)
    generate: Callable[[], int] = generate_verification_code

    def issue(self, org: OrganizationConfig, registration_doc: RegistrationCodeDocument) -> CodeResult:
        """
        Create a verification code for a registration code.

        Candidates are created under their own key; a duplicate key is
        retried with a fresh candidate up to `policy.duplicate_code_retry`
        attempts. Any other error propagates without a retry.

        Returns:
            SUCCESS with the VerificationCodeDocument as data, or CONFLICT
            when the retry budget is spent or the registration code changed
            concurrently
        """
        if registration_doc.verification_code:
            self.registration.delete_verification(org, registration_doc.verification_code)

        attempts = max(1, self.policy.duplicate_code_retry)
        created: VerificationCodeDocument | None = None
        for attempt in range(1, attempts + 1):
            candidate = self.generate()
            if candidate <= 0:
                # Zero is not a valid code and would never validate
                continue
            doc = VerificationCodeDocument(
                verification_code=candidate,
                verification_status=CodeStatus.NEW,
                register_code=registration_doc.register_code,
                registration_doc_id=registration_doc.key,
                created_timestamp=now_timestamp(),
                expiration_timestamp=verification_code_expiration(
                    self.policy.verification_valid_minutes
                ),
            )
            try:
                doc.rev = self.store.create(doc.key, doc.to_body(), org.register_collection)
            except DocumentConflict:
                logger.warning(
                    "Duplicate verification code generated (attempt %d of %d)", attempt, attempts
                )
                continue
            created = doc
            break

        if created is None:
            message = f"Failed to create a unique verification code after {attempts} attempts"
            logger.error(message)
            return CodeResult(CodeOutcome.CONFLICT, message)

        attached = self.registration.attach_verification(org, registration_doc, created.key)
        if not attached.ok:
            self.registration.delete_verification(org, created.key)
            return attached

        logger.info("Issued verification code for registration code %s", registration_doc.key)
        return CodeResult(
            CodeOutcome.SUCCESS,
            f"Successfully created verification code doc {created.key} in Database",
            created,
        )

    def validate(self, org: OrganizationConfig, code: str | int) -> CodeResult:
        """
        Check that a verification code exists, is unused and not expired.

        Return values by scenario:
        - VALIDATION: Code is not a positive number
        - NOT_FOUND: No verification code document under this key
        - INVALID_STATE: Already used
        - EXPIRED: At or past its expiration timestamp
        - SUCCESS: Code is usable, document returned as data
        """
        text = str(code).strip()
        # ASCII digits only; int() rejects other Unicode digits
        well_formed = text.isascii() and text.isdigit() and len(text) <= VERIFICATION_CODE_DIGITS
        if not well_formed or int(text) <= 0:
            logger.warning(FORMAT_ERROR)
            return CodeResult(CodeOutcome.VALIDATION, FORMAT_ERROR)

        result = self.read(org, str(int(text)))
        if not result.ok:
            return result

        doc: VerificationCodeDocument = result.data
        if doc.verification_status is not CodeStatus.NEW:
            message = (
                f"Verification code status is '{doc.verification_status.value}', but a code can "
                f"only be used once - status must be {CodeStatus.NEW.value}"
            )
            logger.warning(message)
            return CodeResult(CodeOutcome.INVALID_STATE, message)

        if is_expired(doc.expiration_timestamp):
            message = "Verification code has already expired"
            logger.warning(message)
            return CodeResult(CodeOutcome.EXPIRED, message)

        return CodeResult(CodeOutcome.SUCCESS, "Verification code found", doc)

    def read(self, org: OrganizationConfig, key: str) -> CodeResult:
        """Read a verification code document without checking its state."""
        stored = self.store.read_safe(key, org.register_collection)
        if stored.status not in (200, 404):
            message = f"Failed to read verification code doc {key}: {stored.message}"
            logger.error(message)
            return CodeResult(CodeOutcome.INTERNAL, message)
        if stored.status == 404 or not is_verification_body(stored.document.body):
            message = "Verification code doc not found"
            logger.warning(message)
            return CodeResult(CodeOutcome.NOT_FOUND, message)
        doc = VerificationCodeDocument.from_stored(stored.document)
        return CodeResult(CodeOutcome.SUCCESS, f"Verification code doc {key} found", doc)

    def consume(self, org: OrganizationConfig, document: VerificationCodeDocument) -> CodeResult:
        """Transition a verification code NEW -> USED under its revision token."""
        if document.verification_status is not CodeStatus.NEW:
            message = (
                f"Verification code status is '{document.verification_status.value}', but a code "
                f"can only be used once - status must be {CodeStatus.NEW.value}"
            )
            logger.warning(message)
            return CodeResult(CodeOutcome.INVALID_STATE, message)

        used = replace(document, verification_status=CodeStatus.USED)
        try:
            rev = self.store.update(document.key, document.rev, used.to_body(), org.register_collection)
        except DocumentConflict:
            message = f"Multiple simultaneous attempts to update code doc {document.key}"
            logger.warning(message)
            return CodeResult(CodeOutcome.CONFLICT, message)

        document.verification_status = CodeStatus.USED
        document.rev = rev
        return CodeResult(CodeOutcome.SUCCESS, f"Successfully updated code doc {document.key}", document)
