"""
Conflict resolver - re-labels duplicate-key creation failures.

A bulk or single insert that collides with an existing registration code
is never surfaced as a raw store conflict. The existing document is
re-validated and the conflict is classified as spent (used or expired)
or as a true duplicate submission.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .organization import OrganizationConfig
from .ports import CodeOutcome

if TYPE_CHECKING:
    from .registration_codes import RegistrationCodeService

logger = logging.getLogger(__name__)

DUPLICATE_REASON = "Registration code doc already exists in Database"
VANISHED_REASON = "Registration code doc changed during upload, please retry"


@dataclass
class ConflictResolver:
    registration: "RegistrationCodeService"

    def resolve(self, org: OrganizationConfig, code: str) -> str:
        """Return the actionable reason for a creation conflict on `code`."""
        result = self.registration.validate(org, code)
        if result.outcome in (CodeOutcome.EXPIRED, CodeOutcome.INVALID_STATE):
            reason = result.message
        elif result.ok:
            reason = DUPLICATE_REASON
        elif result.outcome is CodeOutcome.NOT_FOUND:
            reason = VANISHED_REASON
        else:
            reason = result.message
        logger.debug("Conflict on registration code %s resolved: %s", code, reason)
        return reason
