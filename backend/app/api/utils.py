from __future__ import annotations

from fastapi import HTTPException


def parse_city_scope(raw: str | None) -> int | None:
    """Blank or missing `city_id` means no scope; anything else must be an integer."""
    payload = (raw or "").strip()
    if not payload:
        return None
    try:
        return int(payload)
    except ValueError as exc:
        raise HTTPException(422, f"city_id must be an integer, got {raw!r}") from exc
