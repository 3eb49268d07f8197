"""
Text normalisation for codes and free-text columns
"""
import re
import unicodedata
from typing import Optional

_SPACES = re.compile(r"\s+")
_HYPHEN = re.compile(r"\s*-\s*")


def tr_upper(value: str) -> str:
    """Upper-case with Turkish dotted/dotless i"""
    return value.replace("i", "İ").replace("ı", "I").upper()


def normalize_text(value: Optional[str]) -> Optional[str]:
    """NFKC, trim, collapse whitespace, "1050 - CK45" -> "1050-CK45"; empty -> None"""
    if value is None:
        return None
    text = unicodedata.normalize("NFKC", value).strip()
    text = _HYPHEN.sub("-", _SPACES.sub(" ", text))
    return text or None


def normalize_code(value: Optional[str]) -> Optional[str]:
    text = normalize_text(value)
    if not text:
        return None
    return tr_upper(_SPACES.sub("", text))


def normalize_upper(value: Optional[str]) -> Optional[str]:
    text = normalize_text(value)
    return tr_upper(text) if text else None


def capitalize_first(value: Optional[str]) -> Optional[str]:
    text = normalize_text(value)
    if not text:
        return None
    return tr_upper(text[0]) + text[1:]
