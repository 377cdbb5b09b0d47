"""
Account input validators: framework-agnostic, pure functions.
"""

from __future__ import annotations

import re
from typing import List, Tuple

import validators as _validators

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def normalize_email(email: str) -> str:
    """Lower-case and trim *email*; the result is the account's subject id."""
    return (email or "").strip().lower()


def validate_email(email: str) -> bool:
    """Return True if *email* is a syntactically valid address."""
    return bool(_validators.email(normalize_email(email)))


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """Check a new account password.

    Rules:
    - 8 to 128 characters
    - Contains at least one letter
    - Contains at least one digit

    Returns:
        Tuple of (is_valid, missing_requirements)
    """
    if not password:
        return False, ["Password is required"]

    missing = []
    if len(password) < PASSWORD_MIN_LENGTH:
        missing.append(f"At least {PASSWORD_MIN_LENGTH} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        missing.append(f"Maximum {PASSWORD_MAX_LENGTH} characters")
    if not re.search(r"[A-Za-z]", password):
        missing.append("At least one letter")
    if not re.search(r"\d", password):
        missing.append("At least one number")

    return not missing, missing
