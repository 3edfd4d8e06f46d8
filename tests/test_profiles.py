import pytest
from pydantic import ValidationError

from pizzaboard.core.exceptions import AlreadyExists, InvalidOperation, NotFound
from pizzaboard.modules.profiles.schemas import ProfileUpdate
from pizzaboard.modules.profiles.service import ProfileService
from tests.conftest import ALICE, BOB


@pytest.fixture
def service(db):
    return ProfileService(db)


class TestProfileUpdate:

    def test_update_completes_onboarding(self, service, db):
        db.add_profile("newbie", username="", needs_onboarding=True)

        profile = service.update_profile("newbie", ProfileUpdate(username=" pizza_lover ", pizza_visibility="friends"))

        assert profile.username == "pizza_lover"
        assert profile.display_name == "pizza_lover"
        assert profile.needs_onboarding is False
        assert profile.pizza_visibility.value == "friends"

    def test_username_taken(self, service):
        with pytest.raises(AlreadyExists):
            service.update_profile(ALICE, ProfileUpdate(username="bob"))

    def test_keeping_own_username(self, service):
        profile = service.update_profile(ALICE, ProfileUpdate(username="alice", display_name="Ali"))
        assert profile.display_name == "Ali"

    @pytest.mark.parametrize("username", ["ab", "a" * 21, "has space", "émile"])
    def test_invalid_usernames(self, username):
        with pytest.raises(ValidationError):
            ProfileUpdate(username=username)

    def test_null_visibility_reads_as_everyone(self, service):
        assert service.get_profile(ALICE).pizza_visibility.value == "everyone"

    def test_unknown_username(self, service):
        with pytest.raises(NotFound):
            service.get_profile_row_by_username("ghost")


class TestSearch:

    def test_search_username_or_display_name(self, service, db):
        db.add_profile("u5", "margherita", "Queen Margherita")
        db.add_profile("u6", "marinara", "Mario")

        usernames = {p.username for p in service.search_profiles("mar", exclude_user_id=ALICE)}

        assert usernames == {"margherita", "marinara"}

    def test_blank_query(self, service):
        assert service.search_profiles("   ") == []

    def test_reserved_filter_characters_match_literally(self, service, db):
        db.add_profile("u7", "bo_baker", "Bo, the (Pizza) Baker")

        assert service.search_profiles("bo,b") == []
        assert [p.username for p in service.search_profiles("bo, the (pizza)")] == ["bo_baker"]
        assert [p.username for p in service.search_profiles("bo_")] == ["bo_baker"]


class TestFavoriteGroup:

    def test_fallback_to_first_group(self, service):
        favorite = service.get_favorite_group(ALICE, [7, 3])
        assert (favorite.group_id, favorite.stored) == (7, False)

    def test_no_groups(self, service):
        favorite = service.get_favorite_group(ALICE, [])
        assert favorite.group_id is None

    def test_stored_favorite(self, service):
        service.set_favorite_group(ALICE, 3, [7, 3])
        favorite = service.get_favorite_group(ALICE, [7, 3])
        assert (favorite.group_id, favorite.stored) == (3, True)

    def test_stale_favorite_falls_back(self, service):
        service.set_favorite_group(ALICE, 3, [7, 3])
        favorite = service.get_favorite_group(ALICE, [7])
        assert (favorite.group_id, favorite.stored) == (7, False)

    def test_cannot_favor_foreign_group(self, service):
        with pytest.raises(InvalidOperation):
            service.set_favorite_group(BOB, 9, [1])
