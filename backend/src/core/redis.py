"""Redis client with connection pooling and graceful fallback."""
import logging

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import NoScriptError, RedisError, WatchError

logger = logging.getLogger(__name__)

# Lua script for fixed window rate limiting with an optional block period.
# KEYS[1] holds the consumed-points counter, KEYS[2] marks a blocked key.
# Times are in milliseconds so retry hints keep sub-second precision.
FIXED_WINDOW_BLOCK_SCRIPT = """
local key = KEYS[1]
local block_key = KEYS[2]
local points = tonumber(ARGV[1])
local duration_ms = tonumber(ARGV[2])
local block_ms = tonumber(ARGV[3])

local blocked_ttl = redis.call('PTTL', block_key)
if blocked_ttl > 0 then
    return {0, 0, blocked_ttl}  -- denied while blocked
end

local count = redis.call('INCR', key)
local ttl = redis.call('PTTL', key)
if count == 1 or ttl < 0 then
    redis.call('PEXPIRE', key, duration_ms)
    ttl = duration_ms
end

if count <= points then
    return {1, points - count, ttl}  -- allowed, remaining, ms until window reset
end

if block_ms > 0 then
    redis.call('SET', block_key, 1, 'PX', block_ms)
    redis.call('DEL', key)  -- a fresh window starts once the block lapses
    return {0, 0, block_ms}
end
return {0, 0, ttl}  -- denied until the window resets
"""


class RedisClient:
    """Async Redis client with connection pooling and graceful fallback."""

    def __init__(
        self,
        url: str,
        enabled: bool = True,
        pool_size: int = 20,
        client: Redis | None = None,
    ) -> None:
        """
        Create a client for ``url``.

        Pass ``client`` to wrap an already-constructed ``redis.asyncio.Redis``
        (e.g. in tests); ``connect()`` then skips building a pool.
        """
        self._url = url
        self._enabled = enabled
        self._pool_size = pool_size
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None
        self._injected_client = client
        self._rate_limit_sha: str | None = None

    async def connect(self) -> None:
        """Initialize connection pool and load Lua scripts."""
        if not self._enabled:
            logger.info("Redis disabled by configuration")
            return
        try:
            if self._injected_client is not None:
                self._client = self._injected_client
            else:
                self._pool = ConnectionPool.from_url(self._url, max_connections=self._pool_size)
                self._client = Redis(connection_pool=self._pool)
            # Verify connection
            await self._client.ping()
            await self._load_scripts()
            logger.info("Redis connected successfully")
        except RedisError as e:
            logger.warning("Redis connection failed: %s", e)
            self._client = None
            self._pool = None

    async def _load_scripts(self) -> None:
        """Load Lua scripts and store their SHAs for evalsha calls."""
        if not self._client:
            return
        try:
            self._rate_limit_sha = await self._client.script_load(FIXED_WINDOW_BLOCK_SCRIPT)
            logger.info("Redis Lua scripts loaded")
        except RedisError as e:
            logger.warning("Failed to load Lua scripts: %s", e)

    async def close(self) -> None:
        """Close connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._pool = None
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        """Check if client is connected."""
        return self._client is not None

    @property
    def rate_limit_sha(self) -> str | None:
        """Get SHA for the rate limit script."""
        return self._rate_limit_sha

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        if not self._client:
            return False
        try:
            return await self._client.ping()
        except RedisError:
            return False

    async def get(self, key: str) -> bytes | None:
        """Get value, returns None if Redis unavailable."""
        if not self._client:
            return None
        try:
            return await self._client.get(key)
        except RedisError as e:
            logger.warning("Redis GET failed: %s", e)
            return None

    async def delete(self, *keys: str) -> bool:
        """Delete key(s), returns False if Redis unavailable."""
        if not self._client:
            return False
        if not keys:
            return True
        try:
            await self._client.delete(*keys)
            return True
        except RedisError as e:
            logger.warning("Redis DELETE failed: %s", e)
            return False

    async def smembers(self, key: str) -> set[str] | None:
        """Return set members decoded as str, None if Redis unavailable."""
        if not self._client:
            return None
        try:
            members = await self._client.smembers(key)
        except RedisError as e:
            logger.warning("Redis SMEMBERS failed: %s", e)
            return None
        return {m.decode() if isinstance(m, bytes) else m for m in members}

    async def incr(self, key: str) -> int | None:
        """Increment a counter, returns None if Redis unavailable."""
        if not self._client:
            return None
        try:
            return await self._client.incr(key)
        except RedisError as e:
            logger.warning("Redis INCR failed: %s", e)
            return None

    async def setex_if_unchanged(
        self,
        guard_key: str,
        expected: bytes | None,
        seconds: int,
        items: dict[str, str | bytes],
        index_key: str | None = None,
    ) -> bool:
        """
        Write ``items`` only while ``guard_key`` still holds ``expected``.

        WATCH/MULTI makes the check and the writes atomic: if the guard changes
        before EXEC nothing is written. When ``index_key`` is given the written
        keys are added to that set in the same transaction.

        Returns:
            True if written; False if the guard moved or Redis is unavailable.
        """
        if not self._client:
            return False
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                await pipe.watch(guard_key)
                if await pipe.get(guard_key) != expected:
                    return False
                pipe.multi()
                for key, value in items.items():
                    pipe.setex(key, seconds, value)
                if index_key is not None:
                    pipe.sadd(index_key, *items)
                    pipe.expire(index_key, seconds)
                await pipe.execute()
            return True
        except WatchError:
            logger.debug("Redis guarded write skipped, %s changed", guard_key)
            return False
        except RedisError as e:
            logger.warning("Redis guarded SETEX failed: %s", e)
            return False

    async def eval_rate_limit(
        self,
        key: str,
        block_key: str,
        points: int,
        duration_ms: int,
        block_ms: int,
    ) -> list[int] | None:
        """
        Execute the fixed window rate limit script with automatic script reload.

        Handles NOSCRIPT errors by reloading scripts and retrying once.

        Args:
            key: Redis key holding the consumed-points counter
            block_key: Redis key marking the bucket as blocked
            points: Maximum consumptions allowed per window
            duration_ms: Window size in milliseconds
            block_ms: Block period in milliseconds once the window is exhausted (0 = none)

        Returns:
            [allowed, remaining, ms_before_next] or None if Redis unavailable
        """
        # SHA is None when Redis was unavailable at startup or a reload failed.
        # Fail open by returning None.
        if not self._client or self._rate_limit_sha is None:
            return None

        args = (key, block_key, points, duration_ms, block_ms)
        try:
            return await self._client.evalsha(self._rate_limit_sha, 2, *args)
        except NoScriptError:
            # Redis restarted, scripts need reloading
            logger.warning("redis_script_reload", extra={"script": "rate_limit"})
            await self._load_scripts()
            if self._rate_limit_sha is None:
                return None
            try:
                return await self._client.evalsha(self._rate_limit_sha, 2, *args)
            except RedisError as e:
                logger.warning("Redis rate limit retry failed: %s", e)
                return None
        except RedisError as e:
            logger.warning("Redis rate limit failed: %s", e)
            return None
