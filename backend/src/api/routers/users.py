"""User endpoints."""
import math
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status

from api.dependencies import (
    get_current_user_id,
    get_register_use_case,
    get_user_service,
    rate_limit_auth,
    rate_limit_user,
)
from api.routers.auth import register
from schemas.response import ApiResponse, PaginationMeta
from schemas.user import PasswordChangeInput, UserResponse
from services.exceptions import NotFoundError
from services.use_cases import RegisterUserUseCase, parse_input
from services.user_service import MAX_PAGE, UserService, clamp_page

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "",
    response_model=ApiResponse[UserResponse],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit_auth)],
)
async def create_user(
    data: dict[str, Any] = Body(...),
    use_case: RegisterUserUseCase = Depends(get_register_use_case),
) -> ApiResponse[UserResponse]:
    """Register a new account. Same contract as POST /sign-up."""
    return await register(data, use_case)


@router.get(
    "",
    response_model=ApiResponse[list[UserResponse]],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit_user)],
)
async def list_users(
    page: int = Query(default=1, le=MAX_PAGE),
    limit: int | None = Query(default=None),
    users: UserService = Depends(get_user_service),
) -> ApiResponse[list[UserResponse]]:
    """List users, newest first. ``limit`` defaults to 50 and is capped at 100."""
    page = max(1, page)
    limit, _ = clamp_page(limit, 0)
    items = await users.list(limit=limit, offset=(page - 1) * limit)
    total = await users.count()
    return ApiResponse[list[UserResponse]](
        data=[UserResponse.model_validate(u) for u in items],
        meta=PaginationMeta(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        ),
    )


@router.get(
    "/me",
    response_model=ApiResponse[UserResponse],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit_user)],
)
async def get_me(
    user_id: UUID = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
) -> ApiResponse[UserResponse]:
    """Get the current authenticated user's info."""
    user = await users.find_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return ApiResponse[UserResponse](data=UserResponse.model_validate(user))


@router.patch(
    "/me/password",
    response_model=ApiResponse[UserResponse],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit_user)],
)
async def change_password(
    data: dict[str, Any] = Body(...),
    user_id: UUID = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
) -> ApiResponse[UserResponse]:
    """Replace the current user's password. Body: {password}."""
    payload = parse_input(PasswordChangeInput, data)
    user = await users.update_password(user_id, payload.password)
    return ApiResponse[UserResponse](
        data=UserResponse.model_validate(user),
        message="Password updated",
    )


@router.delete(
    "/me",
    response_model=ApiResponse[None],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit_user)],
)
async def delete_me(
    user_id: UUID = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
) -> ApiResponse[None]:
    """Delete the current user's account. Issued tokens stay valid until they expire."""
    await users.delete(user_id)
    return ApiResponse[None](message="User deleted")


@router.get(
    "/{user_id}",
    response_model=ApiResponse[UserResponse],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit_user)],
)
async def get_user(
    user_id: UUID,
    users: UserService = Depends(get_user_service),
) -> ApiResponse[UserResponse]:
    """Get a user by id."""
    user = await users.find_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return ApiResponse[UserResponse](data=UserResponse.model_validate(user))
