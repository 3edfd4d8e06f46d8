"""Decide whether a viewer may see a user's pizzas.

Pure functions only: the facts are gathered by ``VisibilityService`` and the
decision is taken here, so pages and tests share one decision table.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from pizzaboard.modules.profiles.models import PizzaVisibility


@dataclass(frozen=True)
class RelationshipFacts:
    is_self: bool = False
    is_accepted_friend: bool = False
    shares_any_active_group: bool = False


def shares_any_group(viewer_groups: Iterable[int], owner_groups: Iterable[int]) -> bool:
    # Empty on either side is simply no overlap.
    return not set(viewer_groups).isdisjoint(owner_groups)


def policy_of(owner_profile: dict) -> PizzaVisibility:
    value = owner_profile.get("pizza_visibility")
    if value is None:
        return PizzaVisibility.EVERYONE
    return PizzaVisibility(value)


def can_view(viewer_id: Optional[str], owner_profile: dict, facts: RelationshipFacts) -> bool:
    if facts.is_self or (viewer_id is not None and viewer_id == owner_profile["id"]):
        return True

    policy = policy_of(owner_profile)
    if policy == PizzaVisibility.EVERYONE:
        return True
    if policy == PizzaVisibility.FRIENDS:
        return facts.is_accepted_friend
    if policy == PizzaVisibility.GROUPS:
        return facts.shares_any_active_group
    return False
