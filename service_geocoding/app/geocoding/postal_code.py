"""
CEP normalization and validation.
"""

import re

from shared.errors import InvalidInputError

_NON_DIGITS = re.compile(r"[^0-9]")
_REPEATED_DIGIT = re.compile(r"^([0-9])\1{7}$")


def normalize_cep(cep: str) -> str:
    """Strip everything but digits."""
    if not cep:
        return ""
    return _NON_DIGITS.sub("", cep)


def is_valid_cep(cep: str) -> bool:
    """Eight digits after normalization, not all the same digit."""
    clean = normalize_cep(cep)
    if len(clean) != 8:
        return False
    return not _REPEATED_DIGIT.match(clean)


def format_cep(cep: str) -> str:
    """Hyphenated 5+3 form, e.g. ``01310-100``."""
    clean = normalize_cep(cep)
    if len(clean) != 8:
        return clean
    return f"{clean[:5]}-{clean[5:]}"


def validate_cep(cep: str) -> str:
    """Return the normalized CEP or raise :class:`InvalidInputError`."""
    if not cep:
        raise InvalidInputError("CEP is required", code="INVALID_CEP")
    if not is_valid_cep(cep):
        raise InvalidInputError(
            "CEP format is invalid. CEP must contain 8 digits",
            code="INVALID_CEP",
            details={"cep": cep}
        )
    return normalize_cep(cep)
