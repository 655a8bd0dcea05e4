"""
Expiration utilities - epoch-second timestamps for code lifetimes.

Expiration is enforced lazily, at validation time: a code expires at the
first second where `now >= expirationTimestamp`.
"""

import time
from datetime import datetime, timedelta, timezone

from .ports import CodeOutcome, CodeResult


def now_timestamp() -> int:
    """Current time as integer epoch seconds."""
    return round(time.time())


def is_expired(expiration_timestamp: int, now: int | None = None) -> bool:
    current = now_timestamp() if now is None else now
    return current >= expiration_timestamp


def registration_code_expiration(
    valid_days: int,
    expires_at: str | int | None = None,
    expires_in: str | int | None = None,
) -> CodeResult:
    """
    Resolve a registration code expiration timestamp.

    Exactly one of expires_at (absolute epoch seconds) or expires_in
    (seconds from now) may be given; otherwise `valid_days` from now.

    Returns:
        SUCCESS with the expiration timestamp as data, or VALIDATION
    """
    if expires_at is not None and expires_in is not None:
        return CodeResult(
            CodeOutcome.VALIDATION, 'Cannot specify both "expiresAt" and "expiresIn" in query'
        )

    current = now_timestamp()
    if expires_at is not None:
        try:
            expiration = int(expires_at)
        except (TypeError, ValueError):
            return CodeResult(CodeOutcome.VALIDATION, 'Non-numeric "expiresAt" value')
        if expiration < current:
            return CodeResult(CodeOutcome.VALIDATION, 'Cannot specify a past value for "expiresAt"')
        return CodeResult(CodeOutcome.SUCCESS, "Expiration resolved", expiration)

    if expires_in is not None:
        try:
            seconds = int(expires_in)
        except (TypeError, ValueError):
            return CodeResult(CodeOutcome.VALIDATION, 'Non-numeric "expiresIn" value')
        return CodeResult(CodeOutcome.SUCCESS, "Expiration resolved", current + seconds)

    expiration_date = datetime.fromtimestamp(current, tz=timezone.utc) + timedelta(days=valid_days)
    return CodeResult(CodeOutcome.SUCCESS, "Expiration resolved", round(expiration_date.timestamp()))


def verification_code_expiration(valid_minutes: int) -> int:
    """Expiration timestamp for a verification code issued now."""
    if valid_minutes < 0:
        valid_minutes = 10
    return now_timestamp() + valid_minutes * 60
