"""Static API-key authentication for the HTTP API."""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request

API_KEY_HEADER = "X-API-Key"


def verify_api_key(expected: Optional[str], provided: Optional[str]) -> bool:
    """Return True when no key is configured or *provided* matches it."""
    if not expected:
        return True
    return provided == expected


async def require_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
) -> None:
    settings = request.app.state.settings
    if not verify_api_key(settings.api_key, x_api_key):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
