import logging
from typing import List, Optional

from postgrest import APIError
from supabase import Client

from pizzaboard.core.exceptions import AlreadyExists, InvalidOperation, NotFound
from pizzaboard.database.supabase_client import contains_any, first_row, is_unique_violation
from pizzaboard.modules.profiles.schemas import (
    ProfileResponse, ProfileSummary, ProfileUpdate, FavoriteGroupResponse
)

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = (
    "id, username, display_name, avatar_url, pizza_visibility, "
    "email_visibility, needs_onboarding, favorite_group_id"
)


class ProfileService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_profile_row(self, user_id: str) -> dict:
        result = self.supabase.table("profiles")\
            .select(PROFILE_COLUMNS)\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        row = first_row(result)
        if row is None:
            raise NotFound("profile_not_found", "User not found")
        return row

    def get_profile(self, user_id: str) -> ProfileResponse:
        return ProfileResponse(**self.get_profile_row(user_id))

    def get_profile_row_by_username(self, username: str) -> dict:
        result = self.supabase.table("profiles")\
            .select(PROFILE_COLUMNS)\
            .eq("username", username)\
            .limit(1)\
            .execute()
        row = first_row(result)
        if row is None:
            raise NotFound("profile_not_found", "User not found")
        return row

    def update_profile(self, user_id: str, profile_data: ProfileUpdate) -> ProfileResponse:
        """Save the viewer's own profile. Completing it also ends onboarding."""
        username = profile_data.username
        taken = self.supabase.table("profiles")\
            .select("id")\
            .eq("username", username)\
            .neq("id", user_id)\
            .limit(1)\
            .execute()
        if taken.data:
            raise AlreadyExists("username_taken", "This username is already in use")

        update_data = {
            "username": username,
            "display_name": (profile_data.display_name or "").strip() or username,
            "needs_onboarding": False
        }
        if profile_data.pizza_visibility is not None:
            update_data["pizza_visibility"] = profile_data.pizza_visibility.value
        if profile_data.email_visibility is not None:
            update_data["email_visibility"] = profile_data.email_visibility.value

        try:
            result = self.supabase.table("profiles")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()
        except APIError as e:
            if is_unique_violation(e):
                raise AlreadyExists("username_taken", "This username is already in use")
            raise

        row = first_row(result)
        if row is None:
            raise NotFound("profile_not_found", "User not found")
        logger.info("Profile %s updated", user_id)
        return ProfileResponse(**row)

    def search_profiles(self, query: str, exclude_user_id: Optional[str] = None, limit: int = 20) -> List[ProfileSummary]:
        term = query.strip()
        if not term:
            return []
        request = self.supabase.table("profiles")\
            .select("id, username, display_name, avatar_url")\
            .or_(contains_any(("username", "display_name"), term))
        if exclude_user_id:
            request = request.neq("id", exclude_user_id)
        result = request.limit(limit).execute()
        return [ProfileSummary(**p) for p in (result.data or [])]

    def get_favorite_group(self, user_id: str, my_group_ids: List[int]) -> FavoriteGroupResponse:
        """Stored favorite if the user still belongs to it, else the first of their groups."""
        row = self.get_profile_row(user_id)
        favorite = row.get("favorite_group_id")
        if favorite is not None and favorite in my_group_ids:
            return FavoriteGroupResponse(group_id=favorite, stored=True)
        return FavoriteGroupResponse(group_id=my_group_ids[0] if my_group_ids else None, stored=False)

    def set_favorite_group(self, user_id: str, group_id: Optional[int], my_group_ids: List[int]) -> FavoriteGroupResponse:
        if group_id is not None and group_id not in my_group_ids:
            raise InvalidOperation("not_a_member", "You can only pick one of your groups as favorite")
        result = self.supabase.table("profiles")\
            .update({"favorite_group_id": group_id})\
            .eq("id", user_id)\
            .execute()
        if not result.data:
            raise NotFound("profile_not_found", "User not found")
        return FavoriteGroupResponse(group_id=group_id, stored=group_id is not None)
