"""Sign-up and sign-in endpoints."""
from typing import Any

from fastapi import APIRouter, Body, Depends, status

from api.dependencies import get_login_use_case, get_register_use_case, rate_limit_auth
from schemas.response import ApiResponse
from schemas.user import TokenPairResponse, UserResponse
from services.use_cases import LoginUseCase, RegisterUserUseCase

router = APIRouter(tags=["auth"], dependencies=[Depends(rate_limit_auth)])


async def register(
    data: dict[str, Any],
    use_case: RegisterUserUseCase,
) -> ApiResponse[UserResponse]:
    """Shared by POST /sign-up and POST /users."""
    user = await use_case.execute(data)
    return ApiResponse[UserResponse](
        data=UserResponse.model_validate(user),
        message="User registered successfully",
    )


@router.post(
    "/sign-up",
    response_model=ApiResponse[UserResponse],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def sign_up(
    data: dict[str, Any] = Body(...),
    use_case: RegisterUserUseCase = Depends(get_register_use_case),
) -> ApiResponse[UserResponse]:
    """Register a new account. Body: {username, email, password}."""
    return await register(data, use_case)


@router.post(
    "/sign-in",
    response_model=ApiResponse[TokenPairResponse],
    response_model_exclude_none=True,
)
async def sign_in(
    data: dict[str, Any] = Body(...),
    use_case: LoginUseCase = Depends(get_login_use_case),
) -> ApiResponse[TokenPairResponse]:
    """Exchange {email, password} for an access and a refresh token."""
    tokens = await use_case.execute(data)
    return ApiResponse[TokenPairResponse](
        data=TokenPairResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
        ),
        message="Signed in successfully",
    )
