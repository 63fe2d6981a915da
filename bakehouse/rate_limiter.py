"""
Hybrid in-memory + Redis rate limiting for the public token endpoints.

Counts are kept in process memory and mirrored to Redis when REDIS_URL is set, so a
limit survives across workers. A Redis outage degrades to memory-only counting.
"""

import logging
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request

from . import config

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None

# Format: {key: {"count": int, "reset_time": int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

PRUNE_INTERVAL_SECONDS = 60
next_prune_at = 0


def get_redis_client() -> Optional[redis.Redis]:
    """Lazily connect to Redis; returns None when no REDIS_URL is configured"""
    global redis_client

    if redis_client is None and config.REDIS_URL:
        logger.info("🔄 Initializing Redis connection for rate limiting...")
        redis_client = redis.from_url(
            config.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
    return redis_client


def _redis_incr(client: redis.Redis, key: str, window_seconds: int) -> Optional[int]:
    try:
        count = int(client.incr(key))
        if count == 1:
            client.expire(key, window_seconds)
        return count
    except redis.RedisError as e:
        logger.warning(f"⚠️ Redis rate limit sync failed, using memory only: {e}")
        return None


def get_client_ip(request: Request) -> Optional[str]:
    """
    Address of the caller.

    X-Forwarded-For is only read when the direct peer is in TRUSTED_PROXIES, and then from
    the right: the first hop that is not itself a trusted proxy is the client.
    """
    peer = request.client.host if request.client else None
    forwarded = request.headers.get("X-Forwarded-For")
    if not forwarded or peer not in config.TRUSTED_PROXIES:
        return peer

    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in config.TRUSTED_PROXIES:
            return hop
    return hops[0] if hops else peer


def check_rate_limit(key: str, limit: int, window_seconds: int) -> tuple[bool, int, int]:
    """
    Count one request against ``key``.

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    global next_prune_at
    current_time = int(time.time())

    with cache_lock:
        if current_time >= next_prune_at:
            expired = [k for k, v in memory_cache.items() if current_time >= v["reset_time"]]
            for stale_key in expired:
                del memory_cache[stale_key]
            next_prune_at = current_time + PRUNE_INTERVAL_SECONDS

        entry = memory_cache.get(key)
        if entry is None or current_time >= entry["reset_time"]:
            entry = {"count": 0, "reset_time": current_time + window_seconds}
            memory_cache[key] = entry
        entry["count"] += 1
        count = entry["count"]
        ttl = entry["reset_time"] - current_time

    client = get_redis_client()
    if client is not None:
        shared_count = _redis_incr(client, key, window_seconds)
        if shared_count is not None:
            count = max(count, shared_count)

    return count <= limit, count, max(0, ttl)


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Create a per-IP rate limiter dependency.

    Example:
        token_rate_limit = create_rate_limiter(limit=30, window_seconds=60, key_prefix="quote_token")
    """

    async def rate_limiter(request: Request):
        if not config.RATE_LIMIT_ENABLED:
            return

        key = f"{key_prefix}:{get_client_ip(request) or 'unknown'}"
        is_allowed, current_count, ttl = check_rate_limit(key, limit, window_seconds)
        if not is_allowed:
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit}")
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                headers={"Retry-After": str(ttl)},
            )

    return rate_limiter
