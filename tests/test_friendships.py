import pytest

from pizzaboard.core.exceptions import AlreadyExists, InvalidOperation, InvalidState, NotFound, Unauthorized
from pizzaboard.modules.friendships.models import FriendshipState, classify, other_party
from pizzaboard.modules.friendships.service import FriendshipService
from tests.conftest import ALICE, BOB, CAROL, DAVE


@pytest.fixture
def service(db):
    return FriendshipService(db)


# =============================================================================
# Pure state machine
# =============================================================================

class TestClassify:

    def test_no_row_is_none(self):
        assert classify(ALICE, None) == FriendshipState.NONE

    def test_pending_direction(self):
        row = {"id": 1, "requester_id": ALICE, "addressee_id": BOB, "status": "pending"}
        assert classify(ALICE, row) == FriendshipState.PENDING_OUTGOING
        assert classify(BOB, row) == FriendshipState.PENDING_INCOMING

    def test_accepted_is_symmetric(self):
        row = {"id": 1, "requester_id": ALICE, "addressee_id": BOB, "status": "accepted"}
        assert classify(ALICE, row) == FriendshipState.ACCEPTED
        assert classify(BOB, row) == FriendshipState.ACCEPTED

    def test_outsider_is_rejected(self):
        row = {"id": 1, "requester_id": ALICE, "addressee_id": BOB, "status": "accepted"}
        with pytest.raises(InvalidOperation):
            classify(CAROL, row)

    def test_other_party(self):
        row = {"id": 1, "requester_id": ALICE, "addressee_id": BOB, "status": "pending"}
        assert other_party(ALICE, row) == BOB
        assert other_party(BOB, row) == ALICE


# =============================================================================
# Service transitions
# =============================================================================

class TestRequestFriendship:

    def test_request_creates_pending_row(self, service):
        created = service.request_friendship(ALICE, BOB)

        row = service.get_friendship_between(ALICE, BOB)
        assert created.status.value == "pending"
        assert classify(ALICE, row) == FriendshipState.PENDING_OUTGOING
        assert classify(BOB, row) == FriendshipState.PENDING_INCOMING

    def test_self_request_is_invalid(self, service):
        with pytest.raises(InvalidOperation) as exc:
            service.request_friendship(ALICE, ALICE)
        assert not isinstance(exc.value, AlreadyExists)

    def test_repeat_request_already_exists(self, service):
        service.request_friendship(ALICE, BOB)

        with pytest.raises(AlreadyExists):
            service.request_friendship(ALICE, BOB)
        with pytest.raises(AlreadyExists):
            service.request_friendship(BOB, ALICE)

    def test_already_exists_is_an_invalid_operation(self, service):
        service.request_friendship(ALICE, BOB)
        with pytest.raises(InvalidOperation):
            service.request_friendship(BOB, ALICE)

    def test_store_unique_violation_is_already_exists(self, service, monkeypatch):
        service.request_friendship(ALICE, BOB)
        # Simulate the race where the pre-check saw nothing
        monkeypatch.setattr(service, "get_friendship_between", lambda a, b: None)

        with pytest.raises(AlreadyExists):
            service.request_friendship(BOB, ALICE)

    def test_unknown_addressee(self, service):
        with pytest.raises(NotFound):
            service.request_friendship(ALICE, "missing-user")

    def test_duplicate_rows_are_reported(self, service, db):
        db.tables["friendships"] = [
            {"id": 1, "requester_id": ALICE, "addressee_id": BOB, "status": "pending", "created_at": None},
            {"id": 2, "requester_id": BOB, "addressee_id": ALICE, "status": "pending", "created_at": None},
        ]
        with pytest.raises(InvalidState):
            service.get_friendship_between(ALICE, BOB)


class TestAcceptFriendship:

    def test_addressee_accepts(self, service):
        created = service.request_friendship(ALICE, BOB)

        accepted = service.accept_friendship(BOB, created.id)

        row = service.get_friendship_between(ALICE, BOB)
        assert accepted.status.value == "accepted"
        assert classify(ALICE, row) == FriendshipState.ACCEPTED
        assert classify(BOB, row) == FriendshipState.ACCEPTED

    def test_requester_cannot_accept(self, service):
        created = service.request_friendship(ALICE, BOB)
        with pytest.raises(Unauthorized):
            service.accept_friendship(ALICE, created.id)

    def test_outsider_cannot_accept(self, service):
        created = service.request_friendship(ALICE, BOB)
        with pytest.raises(Unauthorized):
            service.accept_friendship(CAROL, created.id)

    def test_accepting_twice_is_invalid_state(self, service):
        created = service.request_friendship(ALICE, BOB)
        service.accept_friendship(BOB, created.id)
        with pytest.raises(InvalidState):
            service.accept_friendship(BOB, created.id)

    def test_missing_row(self, service):
        with pytest.raises(NotFound):
            service.accept_friendship(BOB, 999)


class TestRemoveFriendship:

    def test_either_party_removes(self, service, db):
        first = service.request_friendship(ALICE, BOB)
        service.remove_friendship(BOB, first.id)
        assert db.rows("friendships") == []

        second = service.request_friendship(ALICE, BOB)
        service.accept_friendship(BOB, second.id)
        service.remove_friendship(ALICE, second.id)
        assert service.get_state_with(ALICE, BOB).state == FriendshipState.NONE

    def test_second_remove_is_not_found(self, service):
        created = service.request_friendship(ALICE, BOB)
        service.remove_friendship(ALICE, created.id)
        with pytest.raises(NotFound):
            service.remove_friendship(ALICE, created.id)

    def test_outsider_cannot_remove(self, service):
        created = service.request_friendship(ALICE, BOB)
        with pytest.raises(Unauthorized):
            service.remove_friendship(CAROL, created.id)


class TestFriendshipReads:

    def test_overview_buckets(self, service, db):
        db.add_friendship(ALICE, BOB, status="accepted")
        db.add_friendship(CAROL, ALICE, status="pending")

        overview = service.get_overview(ALICE)

        assert [f.other_user_id for f in overview.friends] == [BOB]
        assert [f.other_user_id for f in overview.incoming] == [CAROL]
        assert overview.outgoing == []
        assert overview.friends[0].other_profile.username == "bob"

    def test_accepted_friend_ids_skip_pending(self, service, db):
        db.add_friendship(ALICE, BOB, status="accepted")
        db.add_friendship(ALICE, CAROL, status="pending")
        assert service.accepted_friend_ids(ALICE) == [BOB]

    def test_candidates_exclude_self_and_linked(self, service, db):
        db.add_friendship(ALICE, BOB, status="pending")

        usernames = {p.username for p in service.search_candidates(ALICE, "a")}

        assert "alice" not in usernames
        assert "bob" not in usernames
        assert {"carol", "dave"} <= usernames

    def test_candidates_fill_limit_past_linked_users(self, service, db):
        db.add_profile("zara-id", "zara")
        db.add_friendship(ALICE, CAROL, status="accepted")
        db.add_friendship(DAVE, ALICE, status="pending")

        candidates = service.search_candidates(ALICE, "a", limit=1)

        assert [p.username for p in candidates] == ["zara"]

    def test_candidate_query_with_wildcards_is_literal(self, service):
        assert service.search_candidates(ALICE, "%") == []
        assert service.search_candidates(ALICE, "c_rol") == []

    def test_pair_lookup_treats_ids_as_values(self, service, db):
        db.add_friendship(ALICE, BOB, status="accepted")
        assert service.get_friendship_between(ALICE, f"{CAROL}),or(id.gt.0") is None
