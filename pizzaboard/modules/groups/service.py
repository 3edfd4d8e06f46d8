import logging
from typing import List, Optional, Set

from postgrest import APIError
from supabase import Client

from pizzaboard.core.exceptions import AlreadyExists, InvalidOperation, InvalidState, NotFound, Unauthorized
from pizzaboard.database.supabase_client import contains_any, first_row, is_unique_violation, quote_filter_value
from pizzaboard.modules.groups.models import (
    GroupVisibility, MembershipRole, MembershipState, MembershipStatus,
    active_participants, can_manage, is_discoverable, join_status, membership_state
)
from pizzaboard.modules.groups.schemas import (
    GroupCreate, GroupResponse, GroupWithMembership,
    GroupMemberResponse, GroupMemberWithProfile
)
from pizzaboard.modules.profiles.schemas import ProfileSummary

logger = logging.getLogger(__name__)

GROUP_COLUMNS = "id, name, description, visibility, owner_id, created_at"
MEMBER_COLUMNS = "id, group_id, user_id, role, status, created_at"


class GroupService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _get_group_row(self, group_id: int) -> dict:
        result = self.supabase.table("groups")\
            .select(GROUP_COLUMNS)\
            .eq("id", group_id)\
            .limit(1)\
            .execute()
        row = first_row(result)
        if row is None:
            raise NotFound("group_not_found", "Group not found")
        return row

    def _get_membership(self, group_id: int, user_id: Optional[str]) -> Optional[dict]:
        if user_id is None:
            return None
        result = self.supabase.table("group_members")\
            .select(MEMBER_COLUMNS)\
            .eq("group_id", group_id)\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        return first_row(result)

    def _memberships_for_user(self, user_id: str) -> List[dict]:
        result = self.supabase.table("group_members")\
            .select(MEMBER_COLUMNS)\
            .eq("user_id", user_id)\
            .execute()
        return result.data or []

    def _with_state(self, group: dict, user_id: Optional[str], membership: Optional[dict]) -> GroupWithMembership:
        return GroupWithMembership(
            **group,
            membership_state=membership_state(group, user_id, membership)
        )

    def get_group(self, viewer_id: Optional[str], group_id: int) -> GroupWithMembership:
        """Read a group; private groups are reported missing to users without a membership row."""
        group = self._get_group_row(group_id)
        membership = self._get_membership(group_id, viewer_id)
        state = membership_state(group, viewer_id, membership)
        if group["visibility"] == GroupVisibility.PRIVATE.value and state == MembershipState.NONE:
            raise NotFound("group_not_found", "Group not found")
        return self._with_state(group, viewer_id, membership)

    def active_group_ids(self, user_id: str) -> Set[int]:
        """Groups the user counts toward: owned groups plus active memberships."""
        group_ids = {
            m["group_id"] for m in self._memberships_for_user(user_id)
            if m["status"] == MembershipStatus.ACTIVE.value
        }
        owned = self.supabase.table("groups")\
            .select("id")\
            .eq("owner_id", user_id)\
            .execute()
        group_ids.update(g["id"] for g in (owned.data or []))
        return group_ids

    def list_my_groups(self, user_id: str) -> List[GroupWithMembership]:
        """Groups the user owns or is an active member of."""
        memberships = {m["group_id"]: m for m in self._memberships_for_user(user_id)}
        active_ids = [
            gid for gid, m in memberships.items()
            if m["status"] == MembershipStatus.ACTIVE.value
        ]
        filters = f"owner_id.eq.{quote_filter_value(user_id)}"
        if active_ids:
            filters += ",id.in.(" + ",".join(str(gid) for gid in active_ids) + ")"
        result = self.supabase.table("groups")\
            .select(GROUP_COLUMNS)\
            .or_(filters)\
            .order("id")\
            .execute()
        return [
            self._with_state(g, user_id, memberships.get(g["id"]))
            for g in (result.data or [])
        ]

    def list_explore_groups(self, user_id: str) -> List[GroupWithMembership]:
        """Public and closed groups the user does not own and is not active in."""
        memberships = {m["group_id"]: m for m in self._memberships_for_user(user_id)}
        result = self.supabase.table("groups")\
            .select(GROUP_COLUMNS)\
            .in_("visibility", [v.value for v in GroupVisibility if is_discoverable(v.value)])\
            .order("id")\
            .execute()
        groups = []
        for g in result.data or []:
            state = membership_state(g, user_id, memberships.get(g["id"]))
            if state in (MembershipState.OWNER, MembershipState.ACTIVE):
                continue
            groups.append(self._with_state(g, user_id, memberships.get(g["id"])))
        return groups

    def list_active_participants(self, group_id: int) -> List[str]:
        """Owner plus active members: the set that counts for display and leaderboards."""
        group = self._get_group_row(group_id)
        result = self.supabase.table("group_members")\
            .select(MEMBER_COLUMNS)\
            .eq("group_id", group_id)\
            .eq("status", MembershipStatus.ACTIVE.value)\
            .order("id")\
            .execute()
        return active_participants(group, result.data or [])

    def list_members(self, viewer_id: str, group_id: int) -> List[GroupMemberWithProfile]:
        """Members with profiles. Pending requests are only listed for owner and admins."""
        group = self.get_group(viewer_id, group_id)
        viewer_membership = self._get_membership(group_id, viewer_id)
        show_pending = can_manage(group.model_dump(), viewer_id, viewer_membership)

        result = self.supabase.table("group_members")\
            .select(MEMBER_COLUMNS)\
            .eq("group_id", group_id)\
            .order("id")\
            .execute()
        rows = [
            m for m in (result.data or [])
            if show_pending or m["status"] == MembershipStatus.ACTIVE.value
        ]
        profiles = self._profiles_by_id([m["user_id"] for m in rows])
        return [
            GroupMemberWithProfile(
                **m,
                profile=ProfileSummary(**profiles[m["user_id"]]) if m["user_id"] in profiles else None
            )
            for m in rows
        ]

    def create_group(self, owner_id: str, group_data: GroupCreate) -> GroupResponse:
        """Create a group; the owner is also stored as an active admin"""
        result = self.supabase.table("groups").insert({
            "name": group_data.name.strip(),
            "description": (group_data.description or "").strip() or None,
            "visibility": group_data.visibility.value,
            "owner_id": owner_id
        }).execute()
        group = first_row(result)
        if group is None:
            raise InvalidState("write_failed", "Failed to create group")

        try:
            self.supabase.table("group_members").insert({
                "group_id": group["id"],
                "user_id": owner_id,
                "role": MembershipRole.ADMIN.value,
                "status": MembershipStatus.ACTIVE.value
            }).execute()
        except APIError as e:
            # The owner counts as a participant without the row; log and keep the group.
            logger.error("Group %s created but owner membership insert failed: %s", group["id"], e)

        logger.info("Group %s (%s) created by %s", group["id"], group["visibility"], owner_id)
        return GroupResponse(**group)

    def _insert_membership(self, group_id: int, user_id: str, status: MembershipStatus) -> dict:
        try:
            result = self.supabase.table("group_members").insert({
                "group_id": group_id,
                "user_id": user_id,
                "role": MembershipRole.MEMBER.value,
                "status": status.value
            }).execute()
        except APIError as e:
            if is_unique_violation(e):
                raise AlreadyExists("membership_exists", "User already has a membership in this group")
            raise
        row = first_row(result)
        if row is None:
            raise InvalidState("write_failed", "Failed to create membership")
        return row

    def join_group(self, user_id: str, group_id: int) -> GroupMemberResponse:
        """Join immediately for public groups, otherwise create a pending request."""
        # Private groups are hidden from reads but joinable by id (shared link); approval still applies.
        group = self._get_group_row(group_id)
        if group["owner_id"] == user_id:
            raise InvalidOperation("owner_cannot_join", "You already own this group")
        if self._get_membership(group_id, user_id) is not None:
            raise AlreadyExists("membership_exists", "You already joined or requested to join this group")

        status = join_status(group["visibility"])
        row = self._insert_membership(group_id, user_id, status)
        logger.info("User %s joined group %s with status %s", user_id, group_id, status.value)
        return GroupMemberResponse(**row)

    def leave_group(self, user_id: str, group_id: int) -> GroupMemberResponse:
        """Leave a group (or withdraw a pending request). Owners cannot leave."""
        group = self._get_group_row(group_id)
        if group["owner_id"] == user_id:
            raise Unauthorized("owner_cannot_leave", "The owner cannot leave the group")

        result = self.supabase.table("group_members")\
            .delete()\
            .eq("group_id", group_id)\
            .eq("user_id", user_id)\
            .execute()
        row = first_row(result)
        if row is None:
            raise NotFound("membership_not_found", "You are not a member of this group")
        logger.info("User %s left group %s", user_id, group_id)
        return GroupMemberResponse(**row)

    def _require_manager(self, actor_id: str, group_id: int) -> dict:
        group = self._get_group_row(group_id)
        if not can_manage(group, actor_id, self._get_membership(group_id, actor_id)):
            raise Unauthorized("not_group_admin", "You must be the group owner or an admin to do this")
        return group

    def add_member(self, actor_id: str, group_id: int, user_id: str) -> GroupMemberResponse:
        """Owner or admin adds a user directly as an active member."""
        group = self._require_manager(actor_id, group_id)
        if group["owner_id"] == user_id:
            raise InvalidOperation("owner_cannot_join", "The owner is already part of the group")
        if self._get_membership(group_id, user_id) is not None:
            raise AlreadyExists("membership_exists", "User already has a membership in this group")
        profile = self.supabase.table("profiles")\
            .select("id")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        if not profile.data:
            raise NotFound("profile_not_found", "User not found")

        row = self._insert_membership(group_id, user_id, MembershipStatus.ACTIVE)
        logger.info("User %s added to group %s by %s", user_id, group_id, actor_id)
        return GroupMemberResponse(**row)

    def approve_member(self, actor_id: str, group_id: int, user_id: str) -> GroupMemberResponse:
        """Turn a pending request into an active membership."""
        self._require_manager(actor_id, group_id)
        membership = self._get_membership(group_id, user_id)
        if membership is None:
            raise NotFound("membership_not_found", "No join request from this user")
        if membership["status"] != MembershipStatus.PENDING.value:
            raise InvalidState("not_pending", "This membership is not pending")

        result = self.supabase.table("group_members")\
            .update({"status": MembershipStatus.ACTIVE.value})\
            .eq("id", membership["id"])\
            .eq("status", MembershipStatus.PENDING.value)\
            .execute()
        row = first_row(result)
        if row is None:
            raise InvalidState("not_pending", "This membership is not pending")
        logger.info("Membership %s approved by %s", membership["id"], actor_id)
        return GroupMemberResponse(**row)

    def remove_member(self, actor_id: str, group_id: int, user_id: str) -> GroupMemberResponse:
        """Owner or admin removes a member or rejects a pending request."""
        group = self._require_manager(actor_id, group_id)
        if group["owner_id"] == user_id:
            raise Unauthorized("cannot_remove_owner", "The group owner cannot be removed")

        result = self.supabase.table("group_members")\
            .delete()\
            .eq("group_id", group_id)\
            .eq("user_id", user_id)\
            .execute()
        row = first_row(result)
        if row is None:
            raise NotFound("membership_not_found", "User is not a member of this group")
        logger.info("User %s removed from group %s by %s", user_id, group_id, actor_id)
        return GroupMemberResponse(**row)

    def search_invite_candidates(self, actor_id: str, group_id: int, query: str, limit: int = 10) -> List[ProfileSummary]:
        """Profiles matching username or display name that have no membership row yet."""
        group = self._require_manager(actor_id, group_id)
        term = query.strip()
        if not term:
            return []
        members = self.supabase.table("group_members")\
            .select("user_id")\
            .eq("group_id", group_id)\
            .execute()
        excluded = {m["user_id"] for m in (members.data or [])}
        excluded.add(group["owner_id"])
        result = self.supabase.table("profiles")\
            .select("id, username, display_name, avatar_url")\
            .or_(contains_any(("username", "display_name"), term))\
            .order("username")\
            .limit(limit + len(excluded))\
            .execute()
        candidates = [p for p in (result.data or []) if p["id"] not in excluded]
        return [ProfileSummary(**p) for p in candidates[:limit]]

    def _profiles_by_id(self, user_ids: List[str]) -> dict:
        if not user_ids:
            return {}
        result = self.supabase.table("profiles")\
            .select("id, username, display_name, avatar_url")\
            .in_("id", list(set(user_ids)))\
            .execute()
        return {p["id"]: p for p in (result.data or [])}
