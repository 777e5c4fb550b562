"""Shared input sanitizers for API models."""

from __future__ import annotations

import re
from urllib.parse import urlparse

NAME_MAX_LENGTH = 120
NOTE_MAX_LENGTH = 600
PHONE_PATTERN = re.compile(r"^[0-9+()\-\.\s]{8,32}$")


def _squash_whitespace(text: str) -> str:
    return " ".join(text.split())


def normalize_display_name(value: str, *, field: str = "name") -> str:
    cleaned = _squash_whitespace(value.strip())
    if not cleaned:
        raise ValueError(f"{field} cannot be blank")
    if len(cleaned) > NAME_MAX_LENGTH:
        raise ValueError(f"{field} must be <= {NAME_MAX_LENGTH} characters")
    return cleaned


def normalize_phone(value: str | None, *, field: str = "phone") -> str | None:
    """Validate a phone/WhatsApp number and reduce it to its digits (keeping a leading '+')."""
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    if not PHONE_PATTERN.fullmatch(cleaned):
        raise ValueError(
            f"{field} must contain digits, spaces, '.', '-', '()' or '+' and be 8-32 characters"
        )
    digits = re.sub(r"\D", "", cleaned)
    return f"+{digits}" if cleaned.startswith("+") else digits


def normalize_note(
    value: str | None, *, field: str = "description", max_length: int = NOTE_MAX_LENGTH
) -> str | None:
    if value is None:
        return None
    cleaned = _squash_whitespace(value.strip())
    if not cleaned:
        return None
    if len(cleaned) > max_length:
        raise ValueError(f"{field} must be <= {max_length} characters")
    return cleaned


def normalize_url(value: str | None, *, field: str = "website") -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    if "://" not in cleaned:
        cleaned = f"https://{cleaned}"
    parsed = urlparse(cleaned)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"{field} must be an http(s) URL")
    return cleaned


__all__ = [
    "NAME_MAX_LENGTH",
    "NOTE_MAX_LENGTH",
    "normalize_display_name",
    "normalize_note",
    "normalize_phone",
    "normalize_url",
]
