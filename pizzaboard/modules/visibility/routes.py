from fastapi import APIRouter, Depends
from pizzaboard.database.supabase_client import get_supabase
from pizzaboard.modules.profiles.service import ProfileService
from pizzaboard.modules.visibility.resolver import can_view, policy_of
from pizzaboard.modules.visibility.schemas import VisibilityResponse
from pizzaboard.modules.visibility.service import VisibilityService
from pizzaboard.core.dependencies import get_optional_user
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/visibility", tags=["visibility"])


def get_visibility_service(supabase: Client = Depends(get_supabase)) -> VisibilityService:
    return VisibilityService(supabase)


@router.get("/users/{username}", response_model=VisibilityResponse)
async def get_pizza_visibility(
    username: str,
    current_user: Optional[Dict] = Depends(get_optional_user),
    service: VisibilityService = Depends(get_visibility_service),
    supabase: Client = Depends(get_supabase)
):
    """Whether the viewer (possibly anonymous) may see this user's pizzas, and why"""
    owner = ProfileService(supabase).get_profile_row_by_username(username)
    viewer_id = current_user["id"] if current_user else None
    facts = service.facts_for(viewer_id, owner, complete=True)
    return VisibilityResponse(
        owner_id=owner["id"],
        policy=policy_of(owner),
        is_self=facts.is_self,
        is_accepted_friend=facts.is_accepted_friend,
        shares_any_active_group=facts.shares_any_active_group,
        visible=can_view(viewer_id, owner, facts)
    )
