# Supabase table: friendships
# Operations are handled via Supabase SDK in service.py; this file holds the
# pure state machine shared by services and routes.

"""
Expected Supabase table structure:

friendships:
- id: bigint (primary key, identity)
- requester_id: uuid (foreign key to profiles.id, not null)
- addressee_id: uuid (foreign key to profiles.id, not null)
- status: text (not null, default: 'pending') - values: pending, accepted
- created_at: timestamp (default: now())
- unique index on (least(requester_id, addressee_id), greatest(requester_id, addressee_id))

Rejection is not a status: declining, cancelling and unfriending all delete the row.
"""

from enum import Enum
from typing import Optional

from pizzaboard.core.exceptions import InvalidOperation


class FriendshipStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"


class FriendshipState(str, Enum):
    NONE = "none"
    PENDING_OUTGOING = "pending_outgoing"
    PENDING_INCOMING = "pending_incoming"
    ACCEPTED = "accepted"


def other_party(viewer_id: str, row: dict) -> str:
    """Return the id of the user on the other side of the edge."""
    if row["requester_id"] == viewer_id:
        return row["addressee_id"]
    if row["addressee_id"] == viewer_id:
        return row["requester_id"]
    raise InvalidOperation("viewer_not_party", "Viewer is not part of this friendship")


def classify(viewer_id: str, row: Optional[dict]) -> FriendshipState:
    """Map a friendship row to the state seen by ``viewer_id``.

    ``None`` means no row exists for the pair. Direction only matters while
    the row is pending; an accepted edge is symmetric.
    """
    if row is None:
        return FriendshipState.NONE
    # Raises for a viewer outside the edge.
    other_party(viewer_id, row)
    if row["status"] == FriendshipStatus.ACCEPTED.value:
        return FriendshipState.ACCEPTED
    if row["requester_id"] == viewer_id:
        return FriendshipState.PENDING_OUTGOING
    return FriendshipState.PENDING_INCOMING
