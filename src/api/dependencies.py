"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from fastapi import Depends, Request

from src.adapters.audit.logger import LoggingAuditLogger
from src.adapters.notify.console import ConsoleNotificationDispatcher
from src.adapters.repository.organizations import StoreOrganizationProvider
from src.config.settings import get_settings
from src.domain.batch import BatchProcessor
from src.domain.conflicts import ConflictResolver
from src.domain.exceptions import OrganizationNotFound
from src.domain.notifications import HolderNotifier
from src.domain.onboarding import OnboardingService
from src.domain.organization import OrganizationConfig
from src.domain.policy import CodePolicy
from src.domain.ports import AuditLogger, DocumentStore, NotificationDispatcher
from src.domain.registration_codes import RegistrationCodeService
from src.domain.verification_codes import VerificationCodeService

# Module-level singletons - both adapters are stateless
_dispatcher = ConsoleNotificationDispatcher()
_audit_logger = LoggingAuditLogger()


def get_store(request: Request) -> DocumentStore:
    """
    Get document store from app state.

    The store is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.store


def get_dispatcher() -> NotificationDispatcher:
    """Get console notification dispatcher (singleton)."""
    return _dispatcher


def get_audit_logger() -> AuditLogger:
    return _audit_logger


def get_policy() -> CodePolicy:
    """Build the code policy from application settings."""
    return CodePolicy.from_settings(get_settings())


def load_organization(store: DocumentStore, entity: str) -> OrganizationConfig:
    """
    Load an organization's configuration.

    Raises:
        OrganizationNotFound: If the organization is not onboarded
    """
    org = StoreOrganizationProvider(store).get(entity)
    if org is None:
        raise OrganizationNotFound(f"Invalid entity: {entity.lower()}")
    return org


def get_organization(entity: str, store: DocumentStore = Depends(get_store)) -> OrganizationConfig:
    """Resolve the {entity} path parameter to its organization configuration."""
    return load_organization(store, entity)


def get_registration_service(
    store: DocumentStore = Depends(get_store),
    audit: AuditLogger = Depends(get_audit_logger),
    policy: CodePolicy = Depends(get_policy),
) -> RegistrationCodeService:
    return RegistrationCodeService(store=store, audit=audit, policy=policy)


def get_onboarding_service(
    store: DocumentStore = Depends(get_store),
    registration: RegistrationCodeService = Depends(get_registration_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    audit: AuditLogger = Depends(get_audit_logger),
    policy: CodePolicy = Depends(get_policy),
) -> OnboardingService:
    """
    Create onboarding service with injected dependencies.

    Wires the code state machines, notifier and batch processor together
    over a single document store.
    """
    notifier = HolderNotifier(dispatcher)
    verification = VerificationCodeService(store=store, registration=registration, policy=policy)
    batch = BatchProcessor(
        store=store,
        registration=registration,
        resolver=ConflictResolver(registration),
        notifier=notifier,
        audit=audit,
        policy=policy,
    )
    return OnboardingService(
        registration=registration,
        verification=verification,
        notifier=notifier,
        batch=batch,
        policy=policy,
    )
