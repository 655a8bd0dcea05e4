"""
Code generator - random registration and verification codes.

Uses the secrets module for cryptographic randomness. Registration codes
are unique within one call; verification code collisions are handled by
the bounded retry in the verification state machine.
"""

import secrets
import string

REGISTRATION_CODE_ALPHABET = string.ascii_letters + string.digits
VERIFICATION_CODE_DIGITS = 8
VERIFICATION_CODE_SPACE = 10**VERIFICATION_CODE_DIGITS


def generate_registration_codes(
    count: int, length: int = 16, alphabet: str = REGISTRATION_CODE_ALPHABET
) -> list[str]:
    """
    Generate `count` distinct random registration codes.

    Args:
        count: Number of codes to generate
        length: Characters per code
        alphabet: Characters codes are drawn from

    Returns:
        List of unique codes, in generation order
    """
    if count < 0:
        raise ValueError("count must not be negative")
    if length < 1:
        raise ValueError("length must be positive")

    codes: list[str] = []
    seen: set[str] = set()
    while len(codes) < count:
        code = "".join(secrets.choice(alphabet) for _ in range(length))
        if code not in seen:
            seen.add(code)
            codes.append(code)
    return codes


def generate_verification_code() -> int:
    """Generate a random verification code in [0, 10**8)."""
    return secrets.randbelow(VERIFICATION_CODE_SPACE)
