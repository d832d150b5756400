"""
Request-scoped dependencies: the store, the acting principal, and once-only application of mutations.
"""
from typing import Awaitable, Callable

from fastapi import Header, HTTPException, Request
from fastapi.responses import JSONResponse

from storefront.models import ActingPrincipal, Role
from storefront.redis_client import claim_request, release_request, request_key


def get_store(request: Request):
    return request.app.state.store


async def get_principal(
    x_principal_id: str | None = Header(default=None),
    x_principal_role: Role | None = Header(default=None),
) -> ActingPrincipal:
    """
    The session provider sits in front of this service and forwards who is acting.
    Missing identity -> 401; authority for the specific operation is checked by the engine.
    """
    if not x_principal_id or x_principal_role is None:
        raise HTTPException(status_code=401, detail="X-Principal-Id and X-Principal-Role headers are required")
    return ActingPrincipal(id=x_principal_id, role=x_principal_role)


async def apply_once(
    scope: str,
    idempotency_key: str | None,
    mutation: Callable[[], Awaitable[dict]],
) -> JSONResponse:
    """
    Run mutation and answer 200 {"status": "ok", ...}. With an Idempotency-Key, a repeat within the TTL
    answers {"status": "already_processed"} instead; a failed attempt releases its key.
    """
    key = request_key(scope, idempotency_key) if idempotency_key else None
    if key is not None and not await claim_request(key):
        return JSONResponse(
            status_code=200,
            content={"status": "already_processed", "idempotency_key": idempotency_key},
        )
    try:
        content = await mutation()
    except Exception:
        if key is not None:
            await release_request(key)
        raise
    return JSONResponse(status_code=200, content={"status": "ok", **content})
