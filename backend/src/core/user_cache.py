"""Cache-aside proxy in front of the user store for reduced database load."""
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from schemas.user import UserEntity

if TYPE_CHECKING:
    from core.redis import RedisClient
    from services.user_store import UserStore

logger = logging.getLogger(__name__)

# Cache schema version - included in all cache keys (e.g., "user:v1:id:...")
#
# Bump this version when UserEntity fields are added, removed, or renamed.
# This ensures old cached entries (with the previous schema) are ignored:
# - New code looks for "user:v2:..." keys
# - Old "user:v1:..." keys are never found (cache miss)
# - Old entries expire naturally via TTL
#
# This avoids the need for cache invalidation during deployments.
CACHE_SCHEMA_VERSION = 1

DEFAULT_TTL = 60 * 60 * 24

_user_list = TypeAdapter(list[UserEntity])


class CachedUserStore:
    """
    UserStore proxy that serves reads from Redis and falls through to the store.

    Writes go to the store first; only after they succeed are the affected keys
    (by id, by email, and every listing page) deleted. Misses repopulate only if
    no invalidation ran since the read began (see ``_key_generation``). The cache
    is never authoritative: any Redis failure degrades to a store read.
    """

    def __init__(
        self,
        store: "UserStore",
        redis_client: "RedisClient",
        ttl: int = DEFAULT_TTL,
    ) -> None:
        self._store = store
        self._redis = redis_client
        self._ttl = ttl

    # -- keys ---------------------------------------------------------------

    def _key_id(self, user_id: UUID | str) -> str:
        return f"user:v{CACHE_SCHEMA_VERSION}:id:{user_id}"

    def _key_email(self, email: str) -> str:
        return f"user:v{CACHE_SCHEMA_VERSION}:email:{email}"

    def _key_page(self, limit: int, offset: int) -> str:
        return f"users:v{CACHE_SCHEMA_VERSION}:all:{limit}:{offset}"

    def _key_count(self) -> str:
        return f"users:v{CACHE_SCHEMA_VERSION}:count"

    def _key_index(self) -> str:
        """Set of every listing key written, so invalidation can find all pages."""
        return f"users:v{CACHE_SCHEMA_VERSION}:all:index"

    def _key_generation(self) -> str:
        """Counter bumped by every invalidation; guards read-path repopulation."""
        return f"users:v{CACHE_SCHEMA_VERSION}:generation"

    # -- reads --------------------------------------------------------------

    async def find_by_id(self, user_id: UUID) -> UserEntity | None:
        key = self._key_id(user_id)
        cached = await self._read_user(key)
        if cached is not None:
            logger.debug("user_cache_hit key=%s", key)
            return cached
        logger.debug("user_cache_miss key=%s", key)
        generation = await self._redis.get(self._key_generation())
        user = await self._store.find_by_id(user_id)
        if user is not None:
            await self._write_user(user, generation)
        return user

    async def find_by_email(self, email: str) -> UserEntity | None:
        key = self._key_email(email)
        cached = await self._read_user(key)
        if cached is not None:
            logger.debug("user_cache_hit key=%s", key)
            return cached
        logger.debug("user_cache_miss key=%s", key)
        generation = await self._redis.get(self._key_generation())
        user = await self._store.find_by_email(email)
        if user is not None:
            await self._write_user(user, generation)
        return user

    async def find_all(self, limit: int, offset: int) -> list[UserEntity]:
        key = self._key_page(limit, offset)
        data = await self._redis.get(key)
        if data:
            try:
                users = _user_list.validate_json(data)
            except PydanticValidationError:
                await self._discard_corrupt(key)
            else:
                logger.debug("user_cache_hit key=%s", key)
                return users
        logger.debug("user_cache_miss key=%s", key)
        generation = await self._redis.get(self._key_generation())
        users = await self._store.find_all(limit, offset)
        await self._write_listing(key, _user_list.dump_json(users), generation)
        return users

    async def count(self) -> int:
        key = self._key_count()
        data = await self._redis.get(key)
        if data:
            try:
                return int(data)
            except ValueError:
                await self._discard_corrupt(key)
        generation = await self._redis.get(self._key_generation())
        total = await self._store.count()
        await self._write_listing(key, str(total), generation)
        return total

    # -- writes -------------------------------------------------------------

    async def save(self, user: UserEntity) -> UserEntity:
        saved = await self._store.save(user)
        await self._invalidate(saved.id, saved.email)
        return saved

    async def update(self, user_id: UUID, changes: Mapping[str, Any]) -> UserEntity:
        # Look up the old email so its key is dropped too when the email changes.
        previous = await self._store.find_by_id(user_id)
        updated = await self._store.update(user_id, changes)
        emails = {updated.email}
        if previous is not None:
            emails.add(previous.email)
        await self._invalidate(user_id, *emails)
        return updated

    async def delete(self, user_id: UUID) -> None:
        existing = await self._store.find_by_id(user_id)
        await self._store.delete(user_id)
        emails = (existing.email,) if existing is not None else ()
        await self._invalidate(user_id, *emails)

    # -- helpers ------------------------------------------------------------

    async def _read_user(self, key: str) -> UserEntity | None:
        data = await self._redis.get(key)
        if not data:
            return None
        try:
            return UserEntity.model_validate_json(data)
        except PydanticValidationError:
            await self._discard_corrupt(key)
            return None

    async def _write_user(self, user: UserEntity, generation: bytes | None) -> None:
        """Cache ``user`` unless an invalidation ran since ``generation`` was read."""
        data = user.model_dump_json()
        written = await self._redis.setex_if_unchanged(
            self._key_generation(),
            generation,
            self._ttl,
            {self._key_id(user.id): data, self._key_email(user.email): data},
        )
        if not written:
            logger.debug("user_cache_fill_skipped user_id=%s", user.id)

    async def _write_listing(
        self, key: str, data: str | bytes, generation: bytes | None,
    ) -> None:
        await self._redis.setex_if_unchanged(
            self._key_generation(),
            generation,
            self._ttl,
            {key: data},
            index_key=self._key_index(),
        )

    async def _discard_corrupt(self, key: str) -> None:
        logger.warning("user_cache_corrupt_entry", extra={"key": key})
        await self._redis.delete(key)

    async def _invalidate(self, user_id: UUID, *emails: str) -> None:
        """
        Delete per-user keys and every listing key. Failures are logged by RedisClient.

        The generation is bumped first, so a read that loaded the store before
        this write cannot repopulate a key once it has been deleted.
        """
        await self._redis.incr(self._key_generation())
        keys = [self._key_id(user_id), *(self._key_email(e) for e in emails)]
        listing_keys = await self._redis.smembers(self._key_index()) or set()
        keys.extend(sorted(listing_keys))
        keys.extend([self._key_count(), self._key_index()])
        if not await self._redis.delete(*keys):
            logger.warning(
                "user_cache_invalidate_failed",
                extra={"user_id": str(user_id), "keys": len(keys)},
            )
            return
        logger.debug(
            "user_cache_invalidate user_id=%s keys=%s", user_id, len(keys),
        )
