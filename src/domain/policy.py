"""
Code policy - explicit configuration struct for the code lifecycle.

Built once from application settings and handed to each domain component
at construction. Organizations may narrow it through their own config.
"""

from dataclasses import dataclass, replace
from typing import Any

from .organization import OrganizationConfig


@dataclass(frozen=True)
class CodePolicy:
    """Limits and defaults shared by the code state machines and batches."""

    min_length: int = 5
    max_length: int = 64
    code_length: int = 16
    valid_days: int = 90
    verification_valid_minutes: int = 10
    duplicate_code_retry: int = 3
    batch_max_error_threshold: int = 20
    user_list_row_max: int = 1000

    @classmethod
    def from_settings(cls, settings: Any) -> "CodePolicy":
        return cls(
            min_length=settings.registration_code_min_length,
            max_length=settings.registration_code_max_length,
            code_length=settings.registration_code_length,
            valid_days=settings.registration_code_valid_days,
            verification_valid_minutes=settings.verification_code_valid_minutes,
            duplicate_code_retry=settings.duplicate_code_retry,
            batch_max_error_threshold=settings.batch_max_error_threshold,
            user_list_row_max=settings.user_list_row_max,
        )

    def for_organization(self, org: OrganizationConfig) -> "CodePolicy":
        """
        Apply the organization's code-length and batch-threshold overrides.

        The generated code length is clamped into the organization's bounds
        so generated codes always pass its own validation.
        """
        overrides: dict[str, int] = {}
        if org.code_min_length is not None:
            overrides["min_length"] = org.code_min_length
        if org.code_max_length is not None:
            overrides["max_length"] = org.code_max_length
        if overrides:
            low = overrides.get("min_length", self.min_length)
            high = overrides.get("max_length", self.max_length)
            overrides["code_length"] = min(max(self.code_length, low), high)
        if org.batch_max_error_threshold is not None:
            overrides["batch_max_error_threshold"] = org.batch_max_error_threshold
        return replace(self, **overrides) if overrides else self
