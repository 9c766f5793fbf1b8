"""
Application use cases: validate raw input, then orchestrate services.

Use cases are the boundary where unexpected failures become InternalError;
AppError subclasses raised below them pass through unchanged.
"""
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from schemas.user import LoginInput, RegisterUserInput, UserEntity
from services.auth_service import AuthService, TokenPair
from services.exceptions import AppError, ConflictError, InternalError, ValidationError
from services.user_service import UserService

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
R = TypeVar("R")


def parse_input(model: type[M], data: Mapping[str, Any]) -> M:
    """
    Validate ``data`` against ``model``.

    Raises:
        ValidationError: With ``details`` as a list of {field, message}.
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid input", details=format_errors(e.errors())) from e


def format_errors(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Flatten pydantic error dicts to {field, message} pairs."""
    details = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return details


async def _run(name: str, action: Callable[[], Awaitable[R]]) -> R:
    try:
        return await action()
    except AppError:
        raise
    except Exception as e:
        logger.exception("use_case_failed", extra={"use_case": name})
        raise InternalError() from e


class RegisterUserUseCase:
    """Register a new account."""

    def __init__(self, users: UserService) -> None:
        self._users = users

    async def execute(self, data: Mapping[str, Any]) -> UserEntity:
        """
        Raises:
            ValidationError: Input fails validation.
            ConflictError: The email is already registered.
            InternalError: Anything unexpected.
        """
        payload = parse_input(RegisterUserInput, data)

        async def register() -> UserEntity:
            # Pre-check only; the unique index on email is the final guard.
            if await self._users.find_by_email(payload.email) is not None:
                raise ConflictError("User with this email already exists")
            return await self._users.create(
                username=payload.username,
                email=payload.email,
                password=payload.password,
            )

        return await _run("register_user", register)


class LoginUseCase:
    """Exchange credentials for a token pair."""

    def __init__(self, auth: AuthService) -> None:
        self._auth = auth

    async def execute(self, data: Mapping[str, Any]) -> TokenPair:
        """
        Raises:
            ValidationError: Input fails validation.
            UnauthorizedError: Credentials do not match.
            InternalError: Anything unexpected.
        """
        payload = parse_input(LoginInput, data)

        async def login() -> TokenPair:
            user = await self._auth.authenticate(payload.email, payload.password)
            tokens = self._auth.generate_tokens(str(user.id), user.role)
            logger.info("login_succeeded", extra={"user_id": str(user.id)})
            return tokens

        return await _run("login", login)
