from fastapi import APIRouter, Depends
from pizzaboard.database.supabase_client import get_supabase
from pizzaboard.modules.friendships.schemas import (
    FriendshipRequest, FriendshipResponse, FriendshipWithState, FriendshipOverview
)
from pizzaboard.modules.friendships.service import FriendshipService
from pizzaboard.modules.profiles.schemas import ProfileSummary
from pizzaboard.core.dependencies import get_current_user_id
from supabase import Client
from typing import List, Dict
from uuid import UUID

router = APIRouter(prefix="/friendships", tags=["friendships"])


def get_friendship_service(supabase: Client = Depends(get_supabase)) -> FriendshipService:
    return FriendshipService(supabase)


@router.get("", response_model=FriendshipOverview)
async def get_friendships(
    current_user: Dict = Depends(get_current_user_id),
    service: FriendshipService = Depends(get_friendship_service)
):
    """Accepted friends plus incoming and outgoing requests"""
    return service.get_overview(current_user["id"])


@router.post("", response_model=FriendshipResponse, status_code=201)
async def request_friendship(
    body: FriendshipRequest,
    current_user: Dict = Depends(get_current_user_id),
    service: FriendshipService = Depends(get_friendship_service)
):
    return service.request_friendship(current_user["id"], str(body.addressee_id))


@router.get("/candidates", response_model=List[ProfileSummary])
async def search_candidates(
    q: str,
    current_user: Dict = Depends(get_current_user_id),
    service: FriendshipService = Depends(get_friendship_service)
):
    """Users matching the username query that are not already friends or requested"""
    return service.search_candidates(current_user["id"], q)


@router.get("/with/{user_id}", response_model=FriendshipWithState)
async def get_friendship_with(
    user_id: UUID,
    current_user: Dict = Depends(get_current_user_id),
    service: FriendshipService = Depends(get_friendship_service)
):
    """Relationship state with another user, used to pick the profile page button"""
    return service.get_state_with(current_user["id"], str(user_id))


@router.post("/{friendship_id}/accept", response_model=FriendshipResponse)
async def accept_friendship(
    friendship_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: FriendshipService = Depends(get_friendship_service)
):
    return service.accept_friendship(current_user["id"], friendship_id)


@router.delete("/{friendship_id}", response_model=FriendshipResponse)
async def remove_friendship(
    friendship_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: FriendshipService = Depends(get_friendship_service)
):
    """Unfriend, cancel a sent request or decline a received one"""
    return service.remove_friendship(current_user["id"], friendship_id)
