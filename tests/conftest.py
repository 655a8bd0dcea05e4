"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- An in-memory document store
- Organization configurations with and without MFA
- Domain services wired over the store with mocked dispatcher and audit ports
- A factory seeding registration code documents
"""

from collections.abc import Callable
from typing import Any
from unittest.mock import Mock

import pytest

from src.adapters.repository.memory import InMemoryDocumentStore
from src.domain.batch import BatchProcessor
from src.domain.conflicts import ConflictResolver
from src.domain.documents import RegistrationCodeDocument
from src.domain.expiration import now_timestamp
from src.domain.notifications import HolderNotifier
from src.domain.onboarding import OnboardingService
from src.domain.organization import OrganizationConfig
from src.domain.policy import CodePolicy
from src.domain.ports import CodeStatus, ReadResult
from src.domain.registration_codes import RegistrationCodeService
from src.domain.verification_codes import VerificationCodeService

ORG_DOCUMENT: dict[str, Any] = {
    "entityType": "holder-upload",
    "userRegistrationConfig": {"flow": {"mfaAuth": False, "holderNotification": True}},
    "notifyTextRegistrationCodeAndroid": "{ORG} registration code (Android): {CODE}",
    "notifyTextRegistrationCodeiOS": "{ORG} registration code (iOS): {CODE}",
    "notifyTextVerificationCode": "HealthPass verification code: {CODE}",
    "emailTemplate": {
        "RegistrationCode": {"subject": "Your registration code", "content": "Code {CODE} for {ORG}"},
        "VerificationCode": {"subject": "Your verification code", "content": "Verify with {CODE}"},
    },
}


class UnreachableStore(InMemoryDocumentStore):
    """In-memory store whose reads fail as if the database were down."""

    def read_safe(self, key: str, collection: str) -> ReadResult:
        return ReadResult(status=500, message="connection refused")


def organization_document(mfa: bool = False, **overrides: Any) -> dict[str, Any]:
    """Build an organization document body."""
    body = {
        **ORG_DOCUMENT,
        "userRegistrationConfig": {"flow": {"mfaAuth": mfa, "holderNotification": True}},
    }
    body.update(overrides)
    return body


@pytest.fixture
def make_org() -> Callable[..., OrganizationConfig]:
    """Factory for organization configs; keyword overrides apply to the document."""

    def factory(entity: str = "acme", mfa: bool = False, **overrides: Any) -> OrganizationConfig:
        return OrganizationConfig.from_document(entity, organization_document(mfa, **overrides))

    return factory


@pytest.fixture
def org(make_org: Callable[..., OrganizationConfig]) -> OrganizationConfig:
    return make_org()


@pytest.fixture
def mfa_org(make_org: Callable[..., OrganizationConfig]) -> OrganizationConfig:
    return make_org(mfa=True)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def policy() -> CodePolicy:
    return CodePolicy()


@pytest.fixture
def audit() -> Mock:
    return Mock()


@pytest.fixture
def dispatcher() -> Mock:
    return Mock()


@pytest.fixture
def registration(
    store: InMemoryDocumentStore, audit: Mock, policy: CodePolicy
) -> RegistrationCodeService:
    return RegistrationCodeService(store=store, audit=audit, policy=policy)


@pytest.fixture
def verification(
    store: InMemoryDocumentStore, registration: RegistrationCodeService, policy: CodePolicy
) -> VerificationCodeService:
    return VerificationCodeService(store=store, registration=registration, policy=policy)


@pytest.fixture
def notifier(dispatcher: Mock) -> HolderNotifier:
    return HolderNotifier(dispatcher)


@pytest.fixture
def batch(
    store: InMemoryDocumentStore,
    registration: RegistrationCodeService,
    notifier: HolderNotifier,
    audit: Mock,
    policy: CodePolicy,
) -> BatchProcessor:
    return BatchProcessor(
        store=store,
        registration=registration,
        resolver=ConflictResolver(registration),
        notifier=notifier,
        audit=audit,
        policy=policy,
    )


@pytest.fixture
def onboarding(
    registration: RegistrationCodeService,
    verification: VerificationCodeService,
    notifier: HolderNotifier,
    batch: BatchProcessor,
    policy: CodePolicy,
) -> OnboardingService:
    return OnboardingService(
        registration=registration,
        verification=verification,
        notifier=notifier,
        batch=batch,
        policy=policy,
    )


@pytest.fixture
def seed_code(store: InMemoryDocumentStore) -> Callable[..., RegistrationCodeDocument]:
    """
    Factory storing a registration code document directly in the store.

    Expiration defaults to one hour from now; holder fields are passed as
    keyword arguments.
    """

    def factory(
        org: OrganizationConfig,
        code: str = "ABCDE12345",
        status: CodeStatus = CodeStatus.NEW,
        expiration: int | None = None,
        **holder: Any,
    ) -> RegistrationCodeDocument:
        created = now_timestamp()
        doc = RegistrationCodeDocument(
            register_code=code,
            status=status,
            created_timestamp=created,
            updated_timestamp=created,
            expiration_timestamp=expiration if expiration is not None else created + 3600,
            holder=holder,
        )
        doc.rev = store.create(doc.key, doc.to_body(), org.register_collection)
        return doc

    return factory
