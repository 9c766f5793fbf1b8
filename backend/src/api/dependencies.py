"""FastAPI dependencies for injection."""
import logging
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.container import Container
from core.rate_limit_config import RateLimitExceededError
from core.rate_limiter import RateLimiter, get_client_ip, key_by_ip, key_by_route, key_by_user
from core.tokens import TokenClaims, TokenType
from services.auth_service import AuthService
from services.exceptions import UnauthorizedError
from services.use_cases import LoginUseCase, RegisterUserUseCase
from services.user_service import UserService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_container(request: Request) -> Container:
    """Return the container built during application startup."""
    return request.app.state.container


def get_user_service(container: Container = Depends(get_container)) -> UserService:
    return container.users


def get_auth_service(container: Container = Depends(get_container)) -> AuthService:
    return container.auth


def get_register_use_case(
    container: Container = Depends(get_container),
) -> RegisterUserUseCase:
    return container.register_user


def get_login_use_case(container: Container = Depends(get_container)) -> LoginUseCase:
    return container.login


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    auth: AuthService = Depends(get_auth_service),
) -> TokenClaims:
    """
    Dependency that validates the Bearer token and returns its claims.

    Only access tokens are accepted; refresh tokens are rejected like any other
    invalid token.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        claims = auth.decode_token(credentials.credentials)
    except UnauthorizedError as e:
        raise _unauthorized(e.message) from None
    if claims.token_type != TokenType.ACCESS:
        raise _unauthorized("Invalid or expired token")
    return claims


async def get_current_user_id(claims: TokenClaims = Depends(get_current_claims)) -> UUID:
    """Dependency returning the authenticated user's id."""
    try:
        return UUID(claims.subject_id)
    except ValueError:
        raise _unauthorized("Invalid token subject") from None


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

async def _enforce(request: Request, limiter: RateLimiter, key: str) -> None:
    """Consume one point; raise when rejected, otherwise record header info."""
    result = await limiter.consume(key)
    if not result.allowed:
        logger.warning(
            "rate_limit_exceeded",
            extra={
                "key": key,
                "limiter": limiter.config.key_prefix,
                "retry_after": result.retry_after,
            },
        )
        raise RateLimitExceededError(result)
    request.state.rate_limit_info = {
        "limit": result.limit,
        "remaining": result.remaining,
        "reset": result.reset,
    }


async def rate_limit_default(
    request: Request,
    container: Container = Depends(get_container),
) -> None:
    """Per-IP limit applied to every route."""
    await _enforce(request, container.default_limiter, key_by_ip(get_client_ip(request)))


async def rate_limit_auth(
    request: Request,
    container: Container = Depends(get_container),
) -> None:
    """Strict limit for credential endpoints, keyed by IP and route."""
    key = key_by_route(get_client_ip(request), request.url.path)
    await _enforce(request, container.auth_limiter, key)


async def rate_limit_public(
    request: Request,
    container: Container = Depends(get_container),
) -> None:
    """Limit for unauthenticated read endpoints, keyed by IP."""
    await _enforce(request, container.public_limiter, key_by_ip(get_client_ip(request)))


async def rate_limit_user(
    request: Request,
    claims: TokenClaims = Depends(get_current_claims),
    container: Container = Depends(get_container),
) -> None:
    """Per-user limit for authenticated routes."""
    await _enforce(request, container.default_limiter, key_by_user(claims.subject_id))
