"""
Redis-backed request keys for lifecycle mutations.

A key is scoped to the acting principal and the operation on one record, e.g.
idempotency:admin-1:order-status:<order id>:<Idempotency-Key header>, so the same header value
sent for another order or by another actor is a different request.
"""
import redis.asyncio as redis
from storefront.config import settings

_redis: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    global _redis
    if _redis is None:
        _redis = redis.from_url(settings.redis_url, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def request_key(scope: str, idempotency_key: str) -> str:
    return f"idempotency:{scope}:{idempotency_key}"


async def claim_request(key: str, ttl_seconds: int | None = None) -> bool:
    """
    Claim key for one mutation. True if it was free and this request now owns it;
    False if a request with the same key ran (or is running) within the TTL.
    """
    r = await get_redis()
    was_set = await r.set(key, "1", nx=True, ex=ttl_seconds or settings.idempotency_ttl_seconds)
    return bool(was_set)


async def release_request(key: str) -> None:
    """Give the key back after a failed mutation so the actor can resubmit it."""
    r = await get_redis()
    await r.delete(key)
