"""API key guard for mutating endpoints."""

from __future__ import annotations

import hmac

from fastapi import HTTPException, Request


async def require_api_key(request: Request) -> None:
    """FastAPI dependency checking the X-API-Key header.

    A no-op when ``auth.api_key`` is empty, so read-only deployments and
    local development need no key.
    """
    expected = request.app.state.config.auth.api_key
    if not expected:
        return
    supplied = request.headers.get("X-API-Key", "")
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
