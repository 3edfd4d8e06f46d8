from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from pizzaboard.modules.friendships.models import FriendshipState, FriendshipStatus
from pizzaboard.modules.profiles.schemas import ProfileSummary


class FriendshipRequest(BaseModel):
    addressee_id: UUID


class FriendshipResponse(BaseModel):
    id: int
    requester_id: str
    addressee_id: str
    status: FriendshipStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FriendshipWithState(BaseModel):
    """A friendship row as seen by the viewer, with the other party resolved."""
    friendship: Optional[FriendshipResponse] = None
    state: FriendshipState
    other_user_id: str
    other_profile: Optional[ProfileSummary] = None


class FriendshipOverview(BaseModel):
    friends: List[FriendshipWithState]
    incoming: List[FriendshipWithState]
    outgoing: List[FriendshipWithState]
