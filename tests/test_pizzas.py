from datetime import datetime, timezone

import pytest

from pizzaboard.core.exceptions import InvalidOperation, NotFound, Unauthorized
from pizzaboard.modules.pizzas.schemas import PizzaCreate, PizzaUpdate, YearlyCounterUpdate
from pizzaboard.modules.pizzas.service import PizzaService
from tests.conftest import ALICE, BOB, CAROL


class FakePhotoStorage:
    def __init__(self):
        self.uploads = []

    def upload_photo(self, content, key, content_type):
        self.uploads.append((key, content_type, len(content)))
        return f"https://photos.example.com/{key}"


@pytest.fixture
def storage():
    return FakePhotoStorage()


@pytest.fixture
def service(db, storage):
    return PizzaService(db, storage=storage)


def log_pizza(service, user_id, day, **extra):
    return service.create_pizza(user_id, PizzaCreate(
        eaten_at=datetime(2025, 5, day, 20, tzinfo=timezone.utc), **extra
    ))


class TestCreatePizza:

    def test_create_with_ingredients(self, service, db):
        db.insert_rows("ingredients", {"name": "Mozzarella"})

        pizza = service.create_pizza(ALICE, PizzaCreate(
            name=" Margherita ",
            rating=8.5,
            origin="restaurant",
            ingredient_ids=[db.rows("ingredients")[0]["id"]],
            ingredient_names=["basil", "mozzarella"],
        ))

        assert pizza.name == "Margherita"
        assert pizza.origin.value == "restaurant"
        assert sorted(i.name for i in pizza.ingredients) == ["Mozzarella", "basil"]
        assert len(db.rows("ingredients")) == 2

    def test_rating_bounds(self):
        with pytest.raises(ValueError):
            PizzaCreate(rating=11)

    def test_blank_ingredient_name(self, service):
        with pytest.raises(InvalidOperation):
            service.get_or_create_ingredient(ALICE, "   ")

    def test_ingredient_reuse_is_case_insensitive(self, service, db):
        first = service.get_or_create_ingredient(ALICE, "Pepperoni")
        assert service.get_or_create_ingredient(BOB, "PEPPERONI")["id"] == first["id"]

    @pytest.mark.parametrize("name", ["pepperon_", "%", "pep%"])
    def test_wildcards_in_ingredient_names_are_literal(self, service, db, name):
        pepperoni = service.get_or_create_ingredient(ALICE, "Pepperoni")

        created = service.get_or_create_ingredient(BOB, name)

        assert created["id"] != pepperoni["id"]
        assert created["name"] == name


class TestOwnership:

    def test_only_owner_updates(self, service):
        pizza = log_pizza(service, ALICE, 1)
        with pytest.raises(Unauthorized):
            service.update_pizza(BOB, pizza.id, PizzaUpdate(name="Stolen"))

    def test_update_replaces_ingredients(self, service, db):
        db.insert_rows("ingredients", [{"name": "Tomato"}, {"name": "Olives"}])
        tomato, olives = [r["id"] for r in db.rows("ingredients")]
        pizza = log_pizza(service, ALICE, 1, ingredient_ids=[tomato])

        updated = service.update_pizza(ALICE, pizza.id, PizzaUpdate(rating=6, ingredient_ids=[olives]))

        assert updated.rating == 6
        assert [i.name for i in updated.ingredients] == ["Olives"]

    def test_delete_own_pizza(self, service, db):
        pizza = log_pizza(service, ALICE, 1)
        service.delete_pizza(ALICE, pizza.id)
        assert db.rows("pizzas") == []
        with pytest.raises(NotFound):
            service.delete_pizza(ALICE, pizza.id)

    def test_cannot_delete_foreign_pizza(self, service):
        pizza = log_pizza(service, ALICE, 1)
        with pytest.raises(Unauthorized):
            service.delete_pizza(BOB, pizza.id)


class TestPhotos:

    def test_upload_attaches_public_url(self, service, storage):
        pizza = log_pizza(service, ALICE, 1)

        updated = service.upload_photo(ALICE, pizza.id, b"\xff\xd8jpeg", "image/jpeg")

        [(key, content_type, size)] = storage.uploads
        assert key.startswith(f"{ALICE}/{pizza.id}-") and key.endswith(".jpg")
        assert updated.photo_url == f"https://photos.example.com/{key}"

    def test_rejects_non_images(self, service, storage):
        pizza = log_pizza(service, ALICE, 1)
        with pytest.raises(InvalidOperation):
            service.upload_photo(ALICE, pizza.id, b"%PDF", "application/pdf")
        assert storage.uploads == []

    def test_remove_photo(self, service):
        pizza = log_pizza(service, ALICE, 1)
        service.upload_photo(ALICE, pizza.id, b"png", "image/png")
        assert service.remove_photo(ALICE, pizza.id).photo_url is None


class TestGetPizza:

    def test_owner_and_allowed_viewers(self, service, db):
        pizza = log_pizza(service, ALICE, 1)
        assert service.get_pizza(ALICE, pizza.id).id == pizza.id
        assert service.get_pizza(None, pizza.id).id == pizza.id

    def test_hidden_by_owner_visibility(self, service, db):
        db.add_profile("shy", "shy", pizza_visibility="none")
        pizza = log_pizza(service, "shy", 1)

        with pytest.raises(Unauthorized):
            service.get_pizza(BOB, pizza.id)
        assert service.get_pizza("shy", pizza.id).user_id == "shy"

    def test_missing_pizza(self, service):
        with pytest.raises(NotFound):
            service.get_pizza(ALICE, 999)


class TestListPizzas:

    def test_newest_first_in_pages(self, service):
        for day in range(1, 13):
            log_pizza(service, ALICE, day)

        first = service.list_user_pizzas(BOB, "alice", page=0)
        second = service.list_user_pizzas(BOB, "alice", page=1)

        assert len(first.items) == 10 and first.has_more
        assert first.items[0].eaten_at.day == 12
        assert [p.eaten_at.day for p in second.items] == [2, 1]
        assert not second.has_more

    def test_hidden_by_visibility(self, service, db):
        db.add_profile("shy", "shy", pizza_visibility="friends")
        db.add_friendship("shy", CAROL, status="accepted")

        with pytest.raises(Unauthorized):
            service.list_user_pizzas(BOB, "shy")
        with pytest.raises(Unauthorized):
            service.list_user_pizzas(None, "shy")
        assert service.list_user_pizzas(CAROL, "shy").items == []


class TestYearlyCounter:

    def test_upsert_base_count(self, service, db):
        log_pizza(service, ALICE, 3)

        service.set_yearly_counter(ALICE, YearlyCounterUpdate(year=2025, base_count=10))
        counter = service.set_yearly_counter(ALICE, YearlyCounterUpdate(year=2025, base_count=12))

        assert len(db.rows("user_yearly_counters")) == 1
        assert (counter.base_count, counter.period_count, counter.total) == (12, 1, 13)

    def test_missing_counter_is_zero(self, service):
        counter = service.get_yearly_counter(BOB, 2025)
        assert counter.base_count == 0 and counter.total == 0
