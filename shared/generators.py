"""
One-time code generation: pure, side-effect-free functions.

Codes are drawn with the ``secrets`` module.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from typing import Literal

Alphabet = Literal["numeric", "alphanumeric"]

MIN_CODE_LENGTH = 4

_ALPHABETS = {
    ("numeric", True): string.digits,
    ("numeric", False): string.digits,
    ("alphanumeric", True): string.ascii_letters + string.digits,
    ("alphanumeric", False): string.ascii_uppercase + string.digits,
}


@dataclass(frozen=True)
class CodePolicy:
    """Shape of the one-time codes handed out by the challenge engine.

    Case-insensitive alphanumeric codes are generated upper-case and the
    supplied code is upper-cased by ``normalize`` before comparison.
    """

    length: int = 6
    alphabet: Alphabet = "numeric"
    case_sensitive: bool = False

    def __post_init__(self) -> None:
        if self.length < MIN_CODE_LENGTH:
            raise ValueError(f"code length must be at least {MIN_CODE_LENGTH}")
        if self.alphabet not in ("numeric", "alphanumeric"):
            raise ValueError(f"unknown code alphabet: {self.alphabet!r}")

    @property
    def characters(self) -> str:
        return _ALPHABETS[(self.alphabet, self.case_sensitive)]

    def normalize(self, code: str) -> str:
        code = (code or "").strip()
        if self.case_sensitive:
            return code
        return code.upper()


def generate_otp_code(policy: CodePolicy = CodePolicy()) -> str:
    """Generate a cryptographically secure one-time code.

    Args:
        policy: Length and alphabet of the code (default 6 digits).

    Returns:
        Random code drawn from ``policy.characters``.
    """
    chars = policy.characters
    return "".join(secrets.choice(chars) for _ in range(policy.length))
