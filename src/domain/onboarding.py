"""
Onboarding service - pre-registration and the MFA holder flow.

Two-step flow for organizations with MFA enabled:

1. validate_registration_code: the holder presents a registration code; a
   verification code is issued and sent to the holder's phone or email
2. validate_verification_code: the holder proves possession of the
   verification code, which moves to USED
3. submit_registration: the registration code is consumed; only one
   concurrent submission can win

Without MFA, step 2 is skipped and submission only needs a usable
registration code.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from .batch import BatchProcessor, BatchResult
from .documents import RegistrationCodeDocument, VerificationCodeDocument
from .expiration import registration_code_expiration
from .notifications import HolderNotifier
from .organization import OrganizationConfig
from .policy import CodePolicy
from .ports import CodeOutcome, CodeResult, CodeStatus
from .registration_codes import RegistrationCodeService
from .verification_codes import VerificationCodeService

logger = logging.getLogger(__name__)


@dataclass
class PreRegistration:
    """Everything produced by one pre-registration upload."""

    batch_id: str
    result: BatchResult
    failed_rows: list[dict[str, Any]]
    report: dict[str, Any] | None = None


@dataclass
class ValidatedRegistration:
    """A usable registration code, plus its verification code under MFA."""

    document: RegistrationCodeDocument
    verification: VerificationCodeDocument | None = None

    @property
    def reg_info(self) -> dict[str, Any]:
        return self.document.reg_info()


@dataclass
class OnboardingService:
    """Orchestrates the code state machines for holder onboarding."""

    registration: RegistrationCodeService
    verification: VerificationCodeService
    notifier: HolderNotifier
    batch: BatchProcessor
    policy: CodePolicy = field(default_factory=CodePolicy)

    def pre_register(
        self,
        org: OrganizationConfig,
        users: Any,
        file_name: str | None = None,
        batch_id: str | None = None,
    ) -> CodeResult:
        """
        Pre-register a list of holders and send them registration codes.

        Returns:
            VALIDATION for a bad user list, INTERNAL when the organization
            lacks its SMS templates, otherwise SUCCESS or THRESHOLD_ABORT
            with a PreRegistration as data
        """
        checked = self.batch.validate_user_list(users, org)
        if not checked.ok:
            return checked

        texts = self.notifier.registration_texts(org)
        if not texts.ok:
            return texts

        expiration = registration_code_expiration(self.policy.valid_days)
        batch_id = batch_id or uuid.uuid4().hex
        items = self.batch.enqueue(org, batch_id, users)
        result = self.batch.process_batch(org, items, expiration.data, texts.data)

        failed_rows = self.batch.failed_rows(items, result)
        saved = self.batch.save_report(org, batch_id, file_name, len(users), result, failed_rows)

        outcome = PreRegistration(
            batch_id=batch_id, result=result, failed_rows=failed_rows, report=saved.data
        )
        logger.info("Pre-registration batch %s for %s: %s", batch_id, org.entity, result.message)
        return CodeResult(result.outcome, result.message, outcome)

    def validate_registration_code(self, org: OrganizationConfig, code: str) -> CodeResult:
        """
        Validate a registration code and start the verification step.

        Returns:
            SUCCESS with a ValidatedRegistration, or the first failure
        """
        validated = self.registration.validate(org, code)
        if not validated.ok:
            return validated
        document: RegistrationCodeDocument = validated.data
        success = f"Successfully validated registration code for organization {org.entity}"

        if not org.mfa_auth:
            return CodeResult(CodeOutcome.SUCCESS, success, ValidatedRegistration(document))

        destination = self.notifier.verification_destination(document.holder)
        if not destination.ok:
            return destination
        channel, address = destination.data

        issued = self.verification.issue(org, document)
        if not issued.ok:
            return issued
        verification: VerificationCodeDocument = issued.data

        if org.holder_notification:
            sent = self.notifier.send_verification_code(
                org, channel, address, verification.verification_code
            )
            if not sent.ok:
                return sent

        return CodeResult(CodeOutcome.SUCCESS, success, ValidatedRegistration(document, verification))

    def validate_verification_code(self, org: OrganizationConfig, code: str) -> CodeResult:
        """
        Prove possession of a verification code and mark it used.

        Returns:
            SUCCESS with the parent registration code as data
        """
        validated = self.verification.validate(org, code)
        if not validated.ok:
            return validated
        document: VerificationCodeDocument = validated.data

        consumed = self.verification.consume(org, document)
        if not consumed.ok:
            return consumed

        return CodeResult(
            CodeOutcome.SUCCESS,
            f"Successfully validated verification code for organization {org.entity}",
            document.register_code,
        )

    def submit_registration(self, org: OrganizationConfig, code: str) -> CodeResult:
        """
        Consume a registration code at the end of onboarding.

        Under MFA the code's verification code must already be used.
        Concurrent submissions of one code race on the store's revision
        check; every loser gets INVALID_STATE ("already used").
        """
        read = self.registration.read(org, code)
        if not read.ok:
            return read
        document: RegistrationCodeDocument = read.data

        rejection = self.registration.check_usable(document)
        if rejection is not None:
            return rejection

        if org.mfa_auth:
            if not document.verification_code:
                message = f"Registration code {code} has not been verified"
                logger.warning(message)
                return CodeResult(CodeOutcome.VALIDATION, message)
            verification = self.verification.read(org, document.verification_code)
            if not verification.ok:
                return verification
            if verification.data.verification_status is not CodeStatus.USED:
                message = "Verification code has not been validated"
                logger.warning(message)
                return CodeResult(CodeOutcome.VALIDATION, message)

        consumed = self.registration.consume(org, document)
        if consumed.outcome is CodeOutcome.CONFLICT:
            message = f"Registration code {code} already used"
            logger.warning(message)
            return CodeResult(CodeOutcome.INVALID_STATE, message)
        if not consumed.ok:
            return consumed

        logger.info("Submitted registration in organization %s", org.entity)
        return CodeResult(
            CodeOutcome.SUCCESS,
            f"Successfully submitted registration in organization {org.entity}",
            document,
        )
