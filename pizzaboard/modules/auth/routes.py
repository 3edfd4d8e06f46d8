from fastapi import APIRouter, Depends
from pizzaboard.database.supabase_client import get_supabase
from pizzaboard.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse, CurrentUserResponse
)
from pizzaboard.modules.auth.service import AuthService
from pizzaboard.modules.profiles.service import ProfileService
from pizzaboard.core.dependencies import get_auth_service, get_current_user_id, get_current_token
from pizzaboard.core.exceptions import NotFound
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Register a new user"""
    return service.register(register_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login and get access token"""
    return service.login(login_data)


@router.post("/logout", status_code=200)
async def logout(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    """Logout and invalidate token"""
    service.logout(token)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    current_user: Dict = Depends(get_current_user_id),
    supabase: Client = Depends(get_supabase),
):
    """Current viewer with the profile fields the frontend needs for routing (onboarding)."""
    try:
        profile = ProfileService(supabase).get_profile(current_user["id"])
    except NotFound:
        return CurrentUserResponse(id=current_user["id"], email=current_user.get("email"), needs_onboarding=True)
    return CurrentUserResponse(
        id=current_user["id"],
        email=current_user.get("email"),
        username=profile.username,
        display_name=profile.display_name,
        needs_onboarding=profile.needs_onboarding
    )
