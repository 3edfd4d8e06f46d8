from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from pizzaboard.modules.groups.models import GroupVisibility, MembershipRole, MembershipState, MembershipStatus
from pizzaboard.modules.profiles.schemas import ProfileSummary


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    description: Optional[str] = None
    visibility: GroupVisibility = GroupVisibility.PUBLIC


class GroupResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    visibility: GroupVisibility
    owner_id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GroupWithMembership(GroupResponse):
    membership_state: MembershipState = MembershipState.NONE


class GroupMemberAdd(BaseModel):
    user_id: UUID


class GroupMemberResponse(BaseModel):
    id: int
    group_id: int
    user_id: str
    role: MembershipRole
    status: MembershipStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GroupMemberWithProfile(GroupMemberResponse):
    profile: Optional[ProfileSummary] = None


class GroupParticipants(BaseModel):
    group_id: int
    user_ids: List[str]
