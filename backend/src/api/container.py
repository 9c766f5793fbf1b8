"""Composition root: builds every collaborator once per process."""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from core import rate_limit_config
from core.config import Settings
from core.hashing import Argon2PasswordHasher
from core.rate_limiter import RateLimiter, create_rate_limiter
from core.redis import RedisClient
from core.tokens import JwtTokenSigner
from core.user_cache import CachedUserStore
from services.auth_service import AuthService
from services.use_cases import LoginUseCase, RegisterUserUseCase
from services.user_service import UserService
from services.user_store import SqlAlchemyUserStore, UserStore

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Everything request handlers depend on, stored on ``app.state.container``."""

    settings: Settings
    engine: AsyncEngine
    redis: RedisClient
    users: UserService
    auth: AuthService
    register_user: RegisterUserUseCase
    login: LoginUseCase
    default_limiter: RateLimiter
    auth_limiter: RateLimiter
    public_limiter: RateLimiter


def build_container(
    settings: Settings,
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    redis_client: RedisClient,
) -> Container:
    """
    Wire services together.

    The cache proxy and Redis limiters are only used when Redis connected at
    startup; otherwise reads go straight to the database and limits are
    enforced per process.
    """
    hasher = Argon2PasswordHasher.from_settings(settings)
    signer = JwtTokenSigner.from_settings(settings)

    store: UserStore = SqlAlchemyUserStore(session_factory)
    if redis_client.is_connected:
        store = CachedUserStore(store, redis_client, ttl=settings.cache_ttl_seconds)
    else:
        logger.warning("user_cache_disabled", extra={"reason": "redis_unavailable"})

    users = UserService(store, hasher)
    auth = AuthService(
        users,
        hasher,
        signer,
        access_ttl=settings.jwt_expires_in,
        refresh_ttl=settings.jwt_refresh_expires_in,
    )
    return Container(
        settings=settings,
        engine=engine,
        redis=redis_client,
        users=users,
        auth=auth,
        register_user=RegisterUserUseCase(users),
        login=LoginUseCase(auth),
        default_limiter=create_rate_limiter(rate_limit_config.DEFAULT, redis_client),
        auth_limiter=create_rate_limiter(rate_limit_config.AUTH, redis_client),
        public_limiter=create_rate_limiter(rate_limit_config.PUBLIC, redis_client),
    )
