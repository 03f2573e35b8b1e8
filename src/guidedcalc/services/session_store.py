import json
import logging
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..models import SessionState
from ..settings import get_settings

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "guidedcalc:session:"


class SessionStore:
    """Snapshots of the active dialogue session in Redis, with a TTL.

    A snapshot only lets a dropped connection pick up the same session; it is
    deleted when the tool instance closes. Redis errors are logged and read
    as a miss so the dialogue keeps working without persistence.
    """

    def __init__(self, url: str, ttl_seconds: int) -> None:
        self._url = url
        self._ttl = ttl_seconds
        self._client: Redis[Any] | None = None

    async def connect(self) -> None:
        """Establish connection to Redis. Idempotent."""
        if self._client is not None:
            return
        self._client = Redis.from_url(self._url, decode_responses=True)
        try:
            await self._client.ping()
            logger.info("Redis connection established: %s", self._url.split("@")[-1])
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning("Redis ping failed: %s", e)
            await self._client.aclose()
            self._client = None
            raise

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Redis connection closed")

    @property
    def connected(self) -> bool:
        return self._client is not None

    def _key(self, session_id: str, tool_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{tool_id}:{session_id}"

    async def load(self, session_id: str, tool_id: str) -> SessionState | None:
        """Return the stored session, or None if missing, invalid or on error."""
        if self._client is None:
            return None
        key = self._key(session_id, tool_id)
        try:
            raw = await self._client.get(key)
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning("Redis get %s failed: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            state = SessionState.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Invalid session snapshot for %s: %s", key, e)
            return None
        if state.tool_id != tool_id:
            logger.warning("Snapshot %s belongs to %s; ignoring", key, state.tool_id)
            return None
        return state

    async def save(self, session_id: str, state: SessionState) -> bool:
        """Persist the snapshot with TTL. Returns True on success."""
        if self._client is None:
            return False
        key = self._key(session_id, state.tool_id)
        try:
            payload = json.dumps(state.to_dict())
        except (TypeError, ValueError) as e:
            logger.warning("Session serialization failed for %s: %s", key, e)
            return False
        try:
            if self._ttl > 0:
                await self._client.setex(key, self._ttl, payload)
            else:
                await self._client.set(key, payload)
            return True
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning("Redis set %s failed: %s", key, e)
            return False

    async def delete(self, session_id: str, tool_id: str) -> bool:
        if self._client is None:
            return False
        key = self._key(session_id, tool_id)
        try:
            await self._client.delete(key)
            return True
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning("Redis delete %s failed: %s", key, e)
            return False


_session_store_instance: SessionStore | None = None


async def get_session_store_async() -> SessionStore | None:
    """Return the connected store when redis_url is configured; else None. Cached."""
    global _session_store_instance
    settings = get_settings()
    if not settings.redis_url or not settings.redis_url.strip():
        return None
    if _session_store_instance is None:
        store = SessionStore(settings.redis_url.strip(), settings.session_ttl_seconds)
        try:
            await store.connect()
        except (RedisConnectionError, RedisTimeoutError, ConnectionError, TimeoutError) as e:
            logger.warning("Session store unavailable (Redis): %s", e)
            return None
        _session_store_instance = store
    return _session_store_instance


async def close_session_store() -> None:
    """Close the Redis connection used by the session store. Idempotent."""
    global _session_store_instance
    if _session_store_instance is not None:
        await _session_store_instance.close()
        _session_store_instance = None
        logger.debug("Session store (Redis) closed")
