# Supabase tables: groups, group_members
# Operations are handled via Supabase SDK in service.py; this file holds the
# pure membership state machine.

"""
Expected Supabase table structure:

groups:
- id: bigint (primary key, identity)
- name: text (not null)
- description: text (nullable)
- visibility: text (not null, default: 'public') - values: public, closed, private
- owner_id: uuid (foreign key to profiles.id, not null)
- created_at: timestamp (default: now())

group_members:
- id: bigint (primary key, identity)
- group_id: bigint (foreign key to groups.id on delete cascade, not null)
- user_id: uuid (foreign key to profiles.id, not null)
- role: text (not null, default: 'member') - values: member, admin
- status: text (not null, default: 'pending') - values: pending, active
- created_at: timestamp (default: now())
- unique constraint on (group_id, user_id)

The owner always counts as an active admin, with or without a group_members row.
"""

from enum import Enum
from typing import Iterable, List, Optional


class GroupVisibility(str, Enum):
    PUBLIC = "public"      # listed, join is immediate
    CLOSED = "closed"      # listed, join needs approval
    PRIVATE = "private"    # hidden from non-members, join needs approval


class MembershipRole(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"


class MembershipStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"


class MembershipState(str, Enum):
    NONE = "none"
    PENDING = "pending"
    ACTIVE = "active"
    OWNER = "owner"


def join_status(visibility: str) -> MembershipStatus:
    if visibility == GroupVisibility.PUBLIC.value:
        return MembershipStatus.ACTIVE
    return MembershipStatus.PENDING


def is_discoverable(visibility: str) -> bool:
    return visibility in (GroupVisibility.PUBLIC.value, GroupVisibility.CLOSED.value)


def membership_state(group: dict, user_id: Optional[str], membership: Optional[dict]) -> MembershipState:
    if user_id is not None and group["owner_id"] == user_id:
        return MembershipState.OWNER
    if membership is None:
        return MembershipState.NONE
    if membership["status"] == MembershipStatus.ACTIVE.value:
        return MembershipState.ACTIVE
    return MembershipState.PENDING


def can_manage(group: dict, user_id: str, membership: Optional[dict]) -> bool:
    """Owner, or an active admin."""
    state = membership_state(group, user_id, membership)
    if state == MembershipState.OWNER:
        return True
    return (
        state == MembershipState.ACTIVE
        and membership.get("role") == MembershipRole.ADMIN.value
    )


def active_participants(group: dict, memberships: Iterable[dict]) -> List[str]:
    """Owner first, then active members in row order, without duplicates."""
    participants = [group["owner_id"]]
    for m in memberships:
        if m["group_id"] != group["id"] or m["status"] != MembershipStatus.ACTIVE.value:
            continue
        if m["user_id"] not in participants:
            participants.append(m["user_id"])
    return participants
