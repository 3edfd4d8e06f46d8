import logging
from typing import List, Optional, Set

from postgrest import APIError
from supabase import Client

from pizzaboard.core.exceptions import AlreadyExists, InvalidOperation, InvalidState, NotFound, Unauthorized
from pizzaboard.database.supabase_client import escape_like, first_row, is_unique_violation, quote_filter_value
from pizzaboard.modules.friendships.models import FriendshipState, FriendshipStatus, classify, other_party
from pizzaboard.modules.friendships.schemas import (
    FriendshipResponse, FriendshipWithState, FriendshipOverview
)
from pizzaboard.modules.profiles.schemas import ProfileSummary

logger = logging.getLogger(__name__)

FRIENDSHIP_COLUMNS = "id, requester_id, addressee_id, status, created_at"


class FriendshipService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _get_row(self, friendship_id: int) -> dict:
        result = self.supabase.table("friendships")\
            .select(FRIENDSHIP_COLUMNS)\
            .eq("id", friendship_id)\
            .limit(1)\
            .execute()
        row = first_row(result)
        if row is None:
            raise NotFound("friendship_not_found", "Friendship not found")
        return row

    def get_friendship_between(self, user_a: str, user_b: str) -> Optional[dict]:
        """Return the single row linking two users, in either direction."""
        a, b = quote_filter_value(user_a), quote_filter_value(user_b)
        result = self.supabase.table("friendships")\
            .select(FRIENDSHIP_COLUMNS)\
            .or_(
                f"and(requester_id.eq.{a},addressee_id.eq.{b}),"
                f"and(requester_id.eq.{b},addressee_id.eq.{a})"
            )\
            .execute()
        rows = result.data or []
        if len(rows) > 1:
            logger.error(
                "Found %d friendship rows for pair %s/%s; unique pair constraint is missing",
                len(rows), user_a, user_b
            )
            raise InvalidState("duplicate_friendship", "More than one friendship exists for this pair")
        return rows[0] if rows else None

    def list_for_user(self, user_id: str) -> List[dict]:
        user = quote_filter_value(user_id)
        result = self.supabase.table("friendships")\
            .select(FRIENDSHIP_COLUMNS)\
            .or_(f"requester_id.eq.{user},addressee_id.eq.{user}")\
            .order("id")\
            .execute()
        return result.data or []

    def accepted_friend_ids(self, user_id: str) -> List[str]:
        friend_ids = []
        for row in self.list_for_user(user_id):
            if row["status"] == FriendshipStatus.ACCEPTED.value:
                other = other_party(user_id, row)
                if other not in friend_ids:
                    friend_ids.append(other)
        return friend_ids

    def linked_user_ids(self, user_id: str) -> Set[str]:
        """Users with any friendship row (pending or accepted) with ``user_id``."""
        return {other_party(user_id, row) for row in self.list_for_user(user_id)}

    def are_friends(self, user_a: str, user_b: str) -> bool:
        if user_a == user_b:
            return False
        row = self.get_friendship_between(user_a, user_b)
        return classify(user_a, row) == FriendshipState.ACCEPTED

    def request_friendship(self, requester_id: str, addressee_id: str) -> FriendshipResponse:
        """Create a pending request from ``requester_id`` to ``addressee_id``."""
        if requester_id == addressee_id:
            raise InvalidOperation("self_friendship", "You cannot send a friend request to yourself")

        addressee = self.supabase.table("profiles")\
            .select("id")\
            .eq("id", addressee_id)\
            .limit(1)\
            .execute()
        if not addressee.data:
            raise NotFound("profile_not_found", "User not found")

        if self.get_friendship_between(requester_id, addressee_id) is not None:
            raise AlreadyExists("friendship_exists", "A friendship or request already exists with this user")

        try:
            result = self.supabase.table("friendships").insert({
                "requester_id": requester_id,
                "addressee_id": addressee_id,
                "status": FriendshipStatus.PENDING.value
            }).execute()
        except APIError as e:
            if is_unique_violation(e):
                raise AlreadyExists("friendship_exists", "A friendship or request already exists with this user")
            raise

        row = first_row(result)
        if row is None:
            raise InvalidState("write_failed", "Failed to create friend request")
        logger.info("Friend request %s: %s -> %s", row["id"], requester_id, addressee_id)
        return FriendshipResponse(**row)

    def accept_friendship(self, actor_id: str, friendship_id: int) -> FriendshipResponse:
        """Accept a pending request; only the addressee may do this."""
        row = self._get_row(friendship_id)
        if actor_id not in (row["requester_id"], row["addressee_id"]):
            raise Unauthorized("not_a_party", "You are not part of this friendship")
        if row["status"] != FriendshipStatus.PENDING.value:
            raise InvalidState("not_pending", "This friend request is no longer pending")
        if row["addressee_id"] != actor_id:
            raise Unauthorized("not_addressee", "Only the recipient can accept a friend request")

        result = self.supabase.table("friendships")\
            .update({"status": FriendshipStatus.ACCEPTED.value})\
            .eq("id", friendship_id)\
            .eq("addressee_id", actor_id)\
            .eq("status", FriendshipStatus.PENDING.value)\
            .execute()
        updated = first_row(result)
        if updated is None:
            # Deleted or accepted between our read and the write.
            raise InvalidState("not_pending", "This friend request is no longer pending")
        logger.info("Friendship %s accepted by %s", friendship_id, actor_id)
        return FriendshipResponse(**updated)

    def remove_friendship(self, actor_id: str, friendship_id: int) -> FriendshipResponse:
        """Unfriend, cancel an outgoing request or decline an incoming one."""
        row = self._get_row(friendship_id)
        if actor_id not in (row["requester_id"], row["addressee_id"]):
            raise Unauthorized("not_a_party", "You are not part of this friendship")

        result = self.supabase.table("friendships")\
            .delete()\
            .eq("id", friendship_id)\
            .execute()
        if not result.data:
            raise NotFound("friendship_not_found", "Friendship not found")
        logger.info("Friendship %s removed by %s", friendship_id, actor_id)
        return FriendshipResponse(**row)

    def get_state_with(self, viewer_id: str, other_id: str) -> FriendshipWithState:
        if viewer_id == other_id:
            raise InvalidOperation("self_friendship", "There is no friendship with yourself")
        row = self.get_friendship_between(viewer_id, other_id)
        return FriendshipWithState(
            friendship=FriendshipResponse(**row) if row else None,
            state=classify(viewer_id, row),
            other_user_id=other_id
        )

    def get_overview(self, viewer_id: str) -> FriendshipOverview:
        """Split the viewer's rows into friends, incoming and outgoing requests."""
        rows = self.list_for_user(viewer_id)
        other_ids = list({other_party(viewer_id, row) for row in rows})
        profiles = self._profiles_by_id(other_ids)

        overview = FriendshipOverview(friends=[], incoming=[], outgoing=[])
        buckets = {
            FriendshipState.ACCEPTED: overview.friends,
            FriendshipState.PENDING_INCOMING: overview.incoming,
            FriendshipState.PENDING_OUTGOING: overview.outgoing,
        }
        for row in rows:
            state = classify(viewer_id, row)
            other_id = other_party(viewer_id, row)
            profile = profiles.get(other_id)
            buckets[state].append(FriendshipWithState(
                friendship=FriendshipResponse(**row),
                state=state,
                other_user_id=other_id,
                other_profile=ProfileSummary(**profile) if profile else None
            ))
        return overview

    def search_candidates(self, viewer_id: str, query: str, limit: int = 20) -> List[ProfileSummary]:
        """Profiles matching ``query`` that have no friendship row with the viewer yet."""
        term = query.strip()
        if not term:
            return []
        linked = self.linked_user_ids(viewer_id)
        # Over-fetch by the linked users filtered out below
        result = self.supabase.table("profiles")\
            .select("id, username, display_name, avatar_url")\
            .ilike("username", f"%{escape_like(term)}%")\
            .neq("id", viewer_id)\
            .order("username")\
            .limit(limit + len(linked))\
            .execute()
        candidates = [p for p in (result.data or []) if p["id"] not in linked]
        return [ProfileSummary(**p) for p in candidates[:limit]]

    def _profiles_by_id(self, user_ids: List[str]) -> dict:
        if not user_ids:
            return {}
        result = self.supabase.table("profiles")\
            .select("id, username, display_name, avatar_url")\
            .in_("id", user_ids)\
            .execute()
        return {p["id"]: p for p in (result.data or [])}
