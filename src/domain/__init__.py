"""
Domain layer - Pure business logic with zero framework imports.

This package contains the registration and verification code lifecycle,
the conflict resolver and the batch pre-registration engine. It defines its
own port interfaces for infrastructure abstraction; adapters live outside
the domain and satisfy the ports structurally.
"""

from .batch import BatchProcessor, BatchResult
from .conflicts import ConflictResolver
from .exceptions import (
    DocumentConflict,
    InvalidCodeFormat,
    MalformedDocument,
    NotificationFailed,
    OrganizationNotFound,
    RegistrationError,
    StoreUnavailable,
    UnknownEntityType,
)
from .notifications import HolderNotifier
from .onboarding import OnboardingService
from .organization import OrganizationConfig
from .policy import CodePolicy
from .ports import (
    AuditLogger,
    CodeOutcome,
    CodeResult,
    CodeStatus,
    DocumentStore,
    NotificationDispatcher,
    OrganizationProvider,
)
from .registration_codes import RegistrationCodeService
from .verification_codes import VerificationCodeService

__all__ = [
    "AuditLogger",
    "BatchProcessor",
    "BatchResult",
    "CodeOutcome",
    "CodePolicy",
    "CodeResult",
    "CodeStatus",
    "ConflictResolver",
    "DocumentConflict",
    "DocumentStore",
    "HolderNotifier",
    "InvalidCodeFormat",
    "MalformedDocument",
    "NotificationDispatcher",
    "NotificationFailed",
    "OnboardingService",
    "OrganizationConfig",
    "OrganizationNotFound",
    "OrganizationProvider",
    "RegistrationCodeService",
    "RegistrationError",
    "StoreUnavailable",
    "UnknownEntityType",
    "VerificationCodeService",
]
