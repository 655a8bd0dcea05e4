"""
Unit tests for OnboardingService.

Tests the MFA holder flow end to end and the pre-registration entry point.
"""

from unittest.mock import Mock

from src.domain.exceptions import NotificationFailed
from src.domain.expiration import now_timestamp
from src.domain.onboarding import OnboardingService, PreRegistration, ValidatedRegistration
from src.domain.organization import OrganizationConfig
from src.domain.ports import CodeOutcome, CodeStatus

HOLDER = {"id": "h1", "mobile": "+15550100", "givenName": "Ada", "rowID": 4, "batchID": "b1"}


def sent_verification_code(dispatcher: Mock) -> str:
    """Pull the verification code out of the last SMS text."""
    text = dispatcher.send_sms.call_args.args[1]
    return text.rsplit(" ", 1)[-1]


class TestValidateRegistrationCode:
    """Tests for validate_registration_code."""

    def test_without_mfa_no_verification_code(self, onboarding, org, seed_code, dispatcher: Mock) -> None:
        seed_code(org, **HOLDER)

        result = onboarding.validate_registration_code(org, "ABCDE12345")

        assert result.ok
        assert result.message == "Successfully validated registration code for organization acme"
        assert isinstance(result.data, ValidatedRegistration)
        assert result.data.verification is None
        dispatcher.send_sms.assert_not_called()

    def test_reg_info_strips_bookkeeping(self, onboarding, org, seed_code) -> None:
        seed_code(org, **HOLDER)
        info = onboarding.validate_registration_code(org, "ABCDE12345").data.reg_info
        assert info == {"id": "h1", "mobile": "+15550100", "givenName": "Ada"}

    def test_with_mfa_sends_verification_code(self, onboarding, mfa_org, seed_code, dispatcher: Mock) -> None:
        seed_code(mfa_org, **HOLDER)

        result = onboarding.validate_registration_code(mfa_org, "ABCDE12345")

        assert result.ok
        verification = result.data.verification
        assert verification.verification_status is CodeStatus.NEW
        dispatcher.send_sms.assert_called_once()
        assert dispatcher.send_sms.call_args.args[0] == "+15550100"
        assert sent_verification_code(dispatcher) == str(verification.verification_code)

    def test_mfa_without_destination(self, onboarding, mfa_org, seed_code) -> None:
        seed_code(mfa_org, id="h1")
        result = onboarding.validate_registration_code(mfa_org, "ABCDE12345")
        assert result.outcome is CodeOutcome.VALIDATION
        assert result.message == "User registration data must include field: email"

    def test_mfa_delivery_failure(self, onboarding, mfa_org, seed_code, dispatcher: Mock) -> None:
        seed_code(mfa_org, **HOLDER)
        dispatcher.send_sms.side_effect = NotificationFailed("gateway down")

        result = onboarding.validate_registration_code(mfa_org, "ABCDE12345")
        assert result.outcome is CodeOutcome.INTERNAL
        assert result.status == 500

    def test_unknown_code(self, onboarding, org) -> None:
        assert onboarding.validate_registration_code(org, "MISSING01").outcome is CodeOutcome.NOT_FOUND


class TestMfaFlow:
    """End-to-end MFA onboarding over the in-memory store."""

    def test_full_flow(self, onboarding, mfa_org, seed_code, store, dispatcher: Mock) -> None:
        seed_code(mfa_org, **HOLDER)

        assert onboarding.validate_registration_code(mfa_org, "ABCDE12345").ok
        code = sent_verification_code(dispatcher)
        stored = store.read_safe("ABCDE12345", mfa_org.register_collection).document
        assert stored.body["verificationCode"] == code

        verified = onboarding.validate_verification_code(mfa_org, code)
        assert verified.ok
        assert verified.data == "ABCDE12345"

        submitted = onboarding.submit_registration(mfa_org, "ABCDE12345")
        assert submitted.ok
        assert submitted.message == "Successfully submitted registration in organization acme"
        stored = store.read_safe("ABCDE12345", mfa_org.register_collection).document
        assert stored.body["status"] == "used"
        assert store.read_safe(code, mfa_org.register_collection).status == 404

    def test_verification_code_single_use(self, onboarding, mfa_org, seed_code, dispatcher: Mock) -> None:
        seed_code(mfa_org, **HOLDER)
        onboarding.validate_registration_code(mfa_org, "ABCDE12345")
        code = sent_verification_code(dispatcher)

        onboarding.validate_verification_code(mfa_org, code)
        assert onboarding.validate_verification_code(mfa_org, code).outcome is CodeOutcome.INVALID_STATE

    def test_revalidation_replaces_verification_code(
        self, onboarding, mfa_org, seed_code, store, dispatcher: Mock
    ) -> None:
        seed_code(mfa_org, **HOLDER)
        onboarding.validate_registration_code(mfa_org, "ABCDE12345")
        first = sent_verification_code(dispatcher)
        onboarding.validate_registration_code(mfa_org, "ABCDE12345")
        second = sent_verification_code(dispatcher)

        if first != second:
            assert store.read_safe(first, mfa_org.register_collection).status == 404
        assert onboarding.validate_verification_code(mfa_org, second).ok

    def test_submit_before_verification(self, onboarding, mfa_org, seed_code, dispatcher: Mock) -> None:
        seed_code(mfa_org, **HOLDER)
        result = onboarding.submit_registration(mfa_org, "ABCDE12345")
        assert result.outcome is CodeOutcome.VALIDATION
        assert result.message == "Registration code ABCDE12345 has not been verified"

    def test_submit_with_unused_verification_code(
        self, onboarding, mfa_org, seed_code, dispatcher: Mock
    ) -> None:
        seed_code(mfa_org, **HOLDER)
        onboarding.validate_registration_code(mfa_org, "ABCDE12345")

        result = onboarding.submit_registration(mfa_org, "ABCDE12345")
        assert result.outcome is CodeOutcome.VALIDATION
        assert result.message == "Verification code has not been validated"


class TestSubmitRegistration:
    """Tests for submit_registration without MFA."""

    def test_submit_consumes(self, onboarding, org, seed_code) -> None:
        seed_code(org, **HOLDER)
        result = onboarding.submit_registration(org, "ABCDE12345")
        assert result.ok
        assert result.data.reg_info() == {"id": "h1", "mobile": "+15550100", "givenName": "Ada"}

    def test_second_submit_rejected(self, onboarding, org, seed_code) -> None:
        seed_code(org)
        onboarding.submit_registration(org, "ABCDE12345")
        result = onboarding.submit_registration(org, "ABCDE12345")
        assert result.outcome is CodeOutcome.INVALID_STATE
        assert result.status == 400

    def test_lost_race_reported_as_used(self, onboarding: OnboardingService, org, seed_code, store) -> None:
        seed_code(org)
        real_read = onboarding.registration.read

        def read_then_consume(org_, code):
            result = real_read(org_, code)
            rival = real_read(org_, code).data
            onboarding.registration.consume(org_, rival)
            return result

        onboarding.registration.read = read_then_consume
        result = onboarding.submit_registration(org, "ABCDE12345")

        assert result.outcome is CodeOutcome.INVALID_STATE
        assert result.message == "Registration code ABCDE12345 already used"

    def test_expired_code(self, onboarding, org, seed_code) -> None:
        seed_code(org, expiration=now_timestamp() - 5)
        assert onboarding.submit_registration(org, "ABCDE12345").outcome is CodeOutcome.EXPIRED

    def test_global_code_submitted_repeatedly(self, onboarding, org, seed_code) -> None:
        seed_code(org, status=CodeStatus.GLOBAL)
        assert onboarding.submit_registration(org, "ABCDE12345").ok
        assert onboarding.submit_registration(org, "ABCDE12345").ok


class TestPreRegister:
    """Tests for pre_register."""

    USERS = [
        {
            "id": f"holder-{i}",
            "clientName": "acme-clinic",
            "givenName": "Ada",
            "familyName": "Lovelace",
            "location": "London",
            "mobile": f"+155501{i:02d}",
        }
        for i in range(3)
    ]

    def test_pre_register_batch(self, onboarding, org, store, dispatcher: Mock) -> None:
        result = onboarding.pre_register(org, self.USERS, "holders.csv", batch_id="batch-1")

        assert result.ok
        outcome: PreRegistration = result.data
        assert outcome.batch_id == "batch-1"
        assert outcome.result.success_count == 3
        assert outcome.failed_rows == []
        assert outcome.report["fileName"] == "holders.csv"
        assert store.count(org.register_collection) == 3
        assert store.count(org.batch_queue_collection) == 0
        assert store.read_safe("batch-1", org.batch_collection).status == 200
        assert dispatcher.send_sms.call_count == 6

    def test_generated_batch_id(self, onboarding, org) -> None:
        result = onboarding.pre_register(org, self.USERS)
        assert len(result.data.batch_id) == 32

    def test_invalid_list_stores_nothing(self, onboarding, org, store) -> None:
        result = onboarding.pre_register(org, [])
        assert result.outcome is CodeOutcome.VALIDATION
        assert store.count(org.batch_queue_collection) == 0

    def test_missing_sms_templates(self, onboarding, make_org, store) -> None:
        template = make_org()
        org = OrganizationConfig(entity="bare", identity=template.identity)

        result = onboarding.pre_register(org, self.USERS)
        assert result.outcome is CodeOutcome.INTERNAL
        assert store.count(org.register_collection) == 0

    def test_abort_reported(self, onboarding, org, dispatcher: Mock) -> None:
        dispatcher.send_sms.side_effect = NotificationFailed("gateway down")
        users = [dict(self.USERS[0], id=f"holder-{i}") for i in range(22)]

        result = onboarding.pre_register(org, users)

        assert result.outcome is CodeOutcome.THRESHOLD_ABORT
        assert result.status == 200
        assert result.message == "Batch processing abandoned after 20 failures"
        assert len(result.data.failed_rows) == 20
        assert result.data.report["batchFailureMessages"] == [result.message]
