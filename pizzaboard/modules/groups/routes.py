from fastapi import APIRouter, Depends
from pizzaboard.database.supabase_client import get_supabase
from pizzaboard.modules.groups.schemas import (
    GroupCreate, GroupResponse, GroupWithMembership,
    GroupMemberAdd, GroupMemberResponse, GroupMemberWithProfile, GroupParticipants
)
from pizzaboard.modules.groups.service import GroupService
from pizzaboard.modules.profiles.schemas import ProfileSummary
from pizzaboard.core.dependencies import get_current_user_id
from supabase import Client
from typing import List, Dict
from uuid import UUID

router = APIRouter(prefix="/groups", tags=["groups"])


def get_group_service(supabase: Client = Depends(get_supabase)) -> GroupService:
    return GroupService(supabase)


@router.post("", response_model=GroupResponse, status_code=201)
async def create_group(
    group_data: GroupCreate,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Create a new group owned by the current user"""
    return service.create_group(current_user["id"], group_data)


@router.get("", response_model=List[GroupWithMembership])
async def list_my_groups(
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Groups the user owns or is an active member of"""
    return service.list_my_groups(current_user["id"])


@router.get("/explore", response_model=List[GroupWithMembership])
async def list_explore_groups(
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Public and closed groups the user is not part of yet"""
    return service.list_explore_groups(current_user["id"])


@router.get("/{group_id}", response_model=GroupWithMembership)
async def get_group(
    group_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    return service.get_group(current_user["id"], group_id)


@router.post("/{group_id}/join", response_model=GroupMemberResponse, status_code=201)
async def join_group(
    group_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Join a public group, or request to join a closed or private one"""
    return service.join_group(current_user["id"], group_id)


@router.delete("/{group_id}/membership", response_model=GroupMemberResponse)
async def leave_group(
    group_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Leave a group or withdraw a pending request"""
    return service.leave_group(current_user["id"], group_id)


@router.get("/{group_id}/members", response_model=List[GroupMemberWithProfile])
async def list_members(
    group_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    return service.list_members(current_user["id"], group_id)


@router.get("/{group_id}/participants", response_model=GroupParticipants)
async def list_participants(
    group_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Owner plus active members"""
    service.get_group(current_user["id"], group_id)
    return GroupParticipants(group_id=group_id, user_ids=service.list_active_participants(group_id))


@router.post("/{group_id}/members", response_model=GroupMemberResponse, status_code=201)
async def add_member(
    group_id: int,
    member_data: GroupMemberAdd,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Add a user as active member (owner or admin only)"""
    return service.add_member(current_user["id"], group_id, str(member_data.user_id))


@router.post("/{group_id}/members/{user_id}/approve", response_model=GroupMemberResponse)
async def approve_member(
    group_id: int,
    user_id: UUID,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Approve a pending join request (owner or admin only)"""
    return service.approve_member(current_user["id"], group_id, str(user_id))


@router.delete("/{group_id}/members/{user_id}", response_model=GroupMemberResponse)
async def remove_member(
    group_id: int,
    user_id: UUID,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Remove a member or reject a pending request (owner or admin only)"""
    return service.remove_member(current_user["id"], group_id, str(user_id))


@router.get("/{group_id}/invite-candidates", response_model=List[ProfileSummary])
async def search_invite_candidates(
    group_id: int,
    q: str,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    return service.search_invite_candidates(current_user["id"], group_id, q)
