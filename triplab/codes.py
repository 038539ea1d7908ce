"""Shareable trip codes — short, unambiguous invitation codes.

Codes use uppercase letters and digits, excluding the visually ambiguous
``0``, ``O``, ``I``, ``L`` and ``1``. Input is case-insensitive.
"""

from __future__ import annotations

import secrets

from triplab.errors import ValidationError

CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6


def generate_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str | None) -> str:
    """Uppercase and trim; non-strings normalise to ``""``."""
    if not code or not isinstance(code, str):
        return ""
    return code.strip().upper()


def is_valid_code(code: str | None, length: int = CODE_LENGTH) -> bool:
    normalized = normalize_code(code)
    return len(normalized) == length and all(ch in CODE_ALPHABET for ch in normalized)


def require_valid_code(code: str | None, length: int = CODE_LENGTH) -> str:
    """Return the normalised code or raise ``ValidationError``."""
    if not is_valid_code(code, length):
        raise ValidationError("Invalid trip code format")
    return normalize_code(code)


def shareable_url(code: str, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/join/{normalize_code(code)}"
