from fastapi import APIRouter, Depends

from app.core import responses
from app.dependencies import CurrentUser, get_user_service
from app.models import LoginRequest, RefreshRequest, UserCreate
from app.services.user_service import UserService

router = APIRouter(tags=["users"])


@router.post("/user")
async def create_user(
    user_data: UserCreate, service: UserService = Depends(get_user_service)
):
    """Create a new user"""
    user = await service.create_user(user_data)
    return responses.success(user, "user created")


@router.get("/users")
async def list_users(
    current_user: CurrentUser, service: UserService = Depends(get_user_service)
):
    result = await service.list_users()
    return responses.success(
        {"list": result.data, "count": len(result.data), "source": result.source.value},
        "user list fetched",
    )


@router.post("/login")
async def login(
    credentials: LoginRequest, service: UserService = Depends(get_user_service)
):
    """Exchange email and password for an access and a refresh token"""
    return responses.success(await service.login(credentials), "login succeeded")


@router.post("/refresh-token")
async def refresh_token(
    body: RefreshRequest, service: UserService = Depends(get_user_service)
):
    return responses.success(
        service.refresh_access_token(body.refresh_token), "token refreshed"
    )


@router.get("/profile")
async def profile(
    current_user: CurrentUser, service: UserService = Depends(get_user_service)
):
    """Get the authenticated user"""
    user = await service.get_user(current_user.user_id)
    return responses.success(user, "profile fetched")
