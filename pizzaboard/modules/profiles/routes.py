from fastapi import APIRouter, Depends
from pizzaboard.database.supabase_client import get_supabase
from pizzaboard.modules.profiles.schemas import (
    ProfileResponse, ProfileSummary, ProfileUpdate, FavoriteGroupUpdate, FavoriteGroupResponse
)
from pizzaboard.modules.profiles.service import ProfileService
from pizzaboard.modules.groups.service import GroupService
from pizzaboard.core.dependencies import get_current_user_id
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/profiles", tags=["profiles"])


def get_profile_service(supabase: Client = Depends(get_supabase)) -> ProfileService:
    return ProfileService(supabase)


def get_group_service(supabase: Client = Depends(get_supabase)) -> GroupService:
    return GroupService(supabase)


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    current_user: Dict = Depends(get_current_user_id),
    service: ProfileService = Depends(get_profile_service)
):
    return service.get_profile(current_user["id"])


@router.put("/me", response_model=ProfileResponse)
async def update_my_profile(
    profile_data: ProfileUpdate,
    current_user: Dict = Depends(get_current_user_id),
    service: ProfileService = Depends(get_profile_service)
):
    """Save username, display name and visibility settings (also completes onboarding)"""
    return service.update_profile(current_user["id"], profile_data)


@router.get("/me/favorite-group", response_model=FavoriteGroupResponse)
async def get_favorite_group(
    current_user: Dict = Depends(get_current_user_id),
    service: ProfileService = Depends(get_profile_service),
    groups: GroupService = Depends(get_group_service)
):
    my_group_ids = [g.id for g in groups.list_my_groups(current_user["id"])]
    return service.get_favorite_group(current_user["id"], my_group_ids)


@router.put("/me/favorite-group", response_model=FavoriteGroupResponse)
async def set_favorite_group(
    body: FavoriteGroupUpdate,
    current_user: Dict = Depends(get_current_user_id),
    service: ProfileService = Depends(get_profile_service),
    groups: GroupService = Depends(get_group_service)
):
    my_group_ids = [g.id for g in groups.list_my_groups(current_user["id"])]
    return service.set_favorite_group(current_user["id"], body.group_id, my_group_ids)


@router.get("/search", response_model=List[ProfileSummary])
async def search_profiles(
    q: str,
    limit: int = 20,
    current_user: Dict = Depends(get_current_user_id),
    service: ProfileService = Depends(get_profile_service)
):
    """Search users by username or display name"""
    return service.search_profiles(q, exclude_user_id=current_user["id"], limit=min(limit, 50))


@router.get("/{username}", response_model=ProfileSummary)
async def get_profile_by_username(
    username: str,
    service: ProfileService = Depends(get_profile_service)
):
    """Public profile card"""
    return ProfileSummary(**service.get_profile_row_by_username(username))
