from __future__ import annotations

import unicodedata


def normalize(text: str) -> str:
    """Lower-case and strip diacritics so "Açaí" and "acai" compare equal."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))
