import logging
from typing import Optional

from supabase import Client

from pizzaboard.core.exceptions import Unauthorized
from pizzaboard.modules.friendships.service import FriendshipService
from pizzaboard.modules.groups.service import GroupService
from pizzaboard.modules.profiles.models import PizzaVisibility
from pizzaboard.modules.visibility.resolver import RelationshipFacts, can_view, policy_of, shares_any_group

logger = logging.getLogger(__name__)


class VisibilityService:
    """Gathers relationship facts from the store and applies the resolver."""

    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.friendships = FriendshipService(supabase)
        self.groups = GroupService(supabase)

    def facts_for(self, viewer_id: Optional[str], owner_profile: dict, complete: bool = False) -> RelationshipFacts:
        """Only the facts the owner's policy needs are fetched, unless ``complete`` asks for all of them."""
        owner_id = owner_profile["id"]
        if viewer_id is None:
            return RelationshipFacts()
        if viewer_id == owner_id:
            return RelationshipFacts(is_self=True)

        policy = policy_of(owner_profile)
        is_friend = False
        shares_group = False
        if complete or policy == PizzaVisibility.FRIENDS:
            is_friend = self.friendships.are_friends(viewer_id, owner_id)
        if complete or policy == PizzaVisibility.GROUPS:
            shares_group = shares_any_group(
                self.groups.active_group_ids(viewer_id),
                self.groups.active_group_ids(owner_id)
            )
        return RelationshipFacts(
            is_self=False,
            is_accepted_friend=is_friend,
            shares_any_active_group=shares_group
        )

    def can_view_pizzas(self, viewer_id: Optional[str], owner_profile: dict) -> bool:
        return can_view(viewer_id, owner_profile, self.facts_for(viewer_id, owner_profile))

    def ensure_can_view_pizzas(self, viewer_id: Optional[str], owner_profile: dict) -> None:
        if not self.can_view_pizzas(viewer_id, owner_profile):
            logger.debug("Viewer %s denied pizzas of %s", viewer_id, owner_profile["id"])
            raise Unauthorized("pizzas_hidden", "This user's pizzas are not visible to you")
