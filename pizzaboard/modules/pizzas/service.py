import logging
import time
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from postgrest import APIError
from supabase import Client

from pizzaboard.config import settings
from pizzaboard.core.exceptions import InvalidOperation, InvalidState, NotFound, Unauthorized
from pizzaboard.database.supabase_client import escape_like, first_row, is_unique_violation
from pizzaboard.modules.leaderboards.aggregator import period_bounds
from pizzaboard.modules.pizzas.models import PHOTO_CONTENT_TYPES
from pizzaboard.modules.pizzas.schemas import (
    IngredientResponse, PizzaCreate, PizzaPage, PizzaResponse, PizzaUpdate,
    YearlyCounterResponse, YearlyCounterUpdate
)
from pizzaboard.modules.pizzas.storage import PhotoStorage
from pizzaboard.modules.profiles.service import ProfileService
from pizzaboard.modules.visibility.service import VisibilityService

logger = logging.getLogger(__name__)

PIZZA_COLUMNS = "id, user_id, name, eaten_at, rating, origin, photo_url, notes"


class PizzaService:
    def __init__(self, supabase: Client, storage: Optional[PhotoStorage] = None):
        self.supabase = supabase
        self._storage = storage

    @property
    def storage(self) -> PhotoStorage:
        # Created on first upload so the rest of the API works without S3 configured
        if self._storage is None:
            self._storage = PhotoStorage()
        return self._storage

    def _get_row(self, pizza_id: int) -> dict:
        result = self.supabase.table("pizzas")\
            .select(PIZZA_COLUMNS)\
            .eq("id", pizza_id)\
            .limit(1)\
            .execute()
        row = first_row(result)
        if row is None:
            raise NotFound("pizza_not_found", "Pizza not found")
        return row

    def _get_own_row(self, user_id: str, pizza_id: int) -> dict:
        row = self._get_row(pizza_id)
        if row["user_id"] != user_id:
            raise Unauthorized("not_pizza_owner", "You can only change your own pizzas")
        return row

    def _ingredients_by_pizza(self, pizza_ids: List[int]) -> Dict[int, List[dict]]:
        if not pizza_ids:
            return {}
        links = self.supabase.table("pizza_ingredients")\
            .select("pizza_id, ingredient_id")\
            .in_("pizza_id", pizza_ids)\
            .execute()
        link_rows = links.data or []
        ingredient_ids = list({r["ingredient_id"] for r in link_rows})
        names = {}
        if ingredient_ids:
            result = self.supabase.table("ingredients")\
                .select("id, name")\
                .in_("id", ingredient_ids)\
                .execute()
            names = {r["id"]: r for r in (result.data or [])}

        by_pizza: Dict[int, List[dict]] = {pid: [] for pid in pizza_ids}
        for link in link_rows:
            ingredient = names.get(link["ingredient_id"])
            if ingredient is not None:
                by_pizza[link["pizza_id"]].append(ingredient)
        for items in by_pizza.values():
            items.sort(key=lambda i: i["name"].lower())
        return by_pizza

    def _to_response(self, row: dict, ingredients: List[dict]) -> PizzaResponse:
        return PizzaResponse(**row, ingredients=[IngredientResponse(**i) for i in ingredients])

    def _load(self, pizza_id: int) -> PizzaResponse:
        row = self._get_row(pizza_id)
        return self._to_response(row, self._ingredients_by_pizza([row["id"]])[row["id"]])

    def get_pizza(self, viewer_id: Optional[str], pizza_id: int) -> PizzaResponse:
        """A single pizza, gated by its owner's pizza visibility"""
        row = self._get_row(pizza_id)
        owner = ProfileService(self.supabase).get_profile_row(row["user_id"])
        VisibilityService(self.supabase).ensure_can_view_pizzas(viewer_id, owner)
        return self._to_response(row, self._ingredients_by_pizza([row["id"]])[row["id"]])

    def search_ingredients(self, query: str, limit: int = 20) -> List[IngredientResponse]:
        request = self.supabase.table("ingredients").select("id, name")
        term = query.strip()
        if term:
            request = request.ilike("name", f"%{escape_like(term)}%")
        result = request.order("name").limit(limit).execute()
        return [IngredientResponse(**i) for i in (result.data or [])]

    def get_or_create_ingredient(self, user_id: str, name: str) -> dict:
        """Reuse an ingredient with the same name (case-insensitive) or create it."""
        clean = " ".join(name.split())
        if not clean:
            raise InvalidOperation("invalid_ingredient", "Ingredient name must not be empty")

        existing = self.supabase.table("ingredients")\
            .select("id, name")\
            .ilike("name", escape_like(clean))\
            .limit(1)\
            .execute()
        row = first_row(existing)
        if row is not None:
            return row

        try:
            result = self.supabase.table("ingredients").insert({
                "name": clean,
                "created_by": user_id
            }).execute()
        except APIError as e:
            if not is_unique_violation(e):
                raise
            # Created concurrently by someone else
            result = self.supabase.table("ingredients")\
                .select("id, name")\
                .ilike("name", escape_like(clean))\
                .limit(1)\
                .execute()
        row = first_row(result)
        if row is None:
            raise InvalidState("write_failed", "Failed to create ingredient")
        return row

    def _link_ingredients(self, pizza_id: int, ingredient_ids: List[int]) -> None:
        unique_ids = list(dict.fromkeys(ingredient_ids))
        if not unique_ids:
            return
        self.supabase.table("pizza_ingredients").insert([
            {"pizza_id": pizza_id, "ingredient_id": ingredient_id}
            for ingredient_id in unique_ids
        ]).execute()

    def create_pizza(self, user_id: str, pizza_data: PizzaCreate) -> PizzaResponse:
        """Log a pizza for the current user, with optional ingredients"""
        eaten_at = pizza_data.eaten_at or datetime.now(timezone.utc)
        result = self.supabase.table("pizzas").insert({
            "user_id": user_id,
            "name": (pizza_data.name or "").strip() or None,
            "eaten_at": eaten_at.isoformat(),
            "rating": pizza_data.rating,
            "origin": pizza_data.origin.value if pizza_data.origin else None,
            "notes": pizza_data.notes
        }).execute()
        pizza = first_row(result)
        if pizza is None:
            raise InvalidState("write_failed", "Failed to log pizza")

        ingredient_ids = list(pizza_data.ingredient_ids)
        for name in pizza_data.ingredient_names:
            ingredient_ids.append(self.get_or_create_ingredient(user_id, name)["id"])
        try:
            self._link_ingredients(pizza["id"], ingredient_ids)
        except APIError as e:
            # The pizza itself counts; ingredients can be fixed from the details panel.
            logger.error("Pizza %s logged but ingredient links failed: %s", pizza["id"], e)

        logger.info("Pizza %s logged by %s", pizza["id"], user_id)
        return self._load(pizza["id"])

    def update_pizza(self, user_id: str, pizza_id: int, pizza_data: PizzaUpdate) -> PizzaResponse:
        self._get_own_row(user_id, pizza_id)
        update_data = pizza_data.model_dump(exclude_unset=True, exclude={"ingredient_ids"}, mode="json")
        if update_data:
            self.supabase.table("pizzas")\
                .update(update_data)\
                .eq("id", pizza_id)\
                .execute()

        if pizza_data.ingredient_ids is not None:
            self.supabase.table("pizza_ingredients")\
                .delete()\
                .eq("pizza_id", pizza_id)\
                .execute()
            self._link_ingredients(pizza_id, pizza_data.ingredient_ids)
        return self._load(pizza_id)

    def upload_photo(self, user_id: str, pizza_id: int, content: bytes, content_type: Optional[str]) -> PizzaResponse:
        """Store the photo in S3 and attach its public URL to the pizza"""
        self._get_own_row(user_id, pizza_id)
        extension = PHOTO_CONTENT_TYPES.get(content_type or "")
        if extension is None:
            raise InvalidOperation("invalid_photo", "Photo must be a JPEG, PNG, WebP or HEIC image")
        if not content:
            raise InvalidOperation("invalid_photo", "Photo is empty")

        key = f"{user_id}/{pizza_id}-{int(time.time() * 1000)}.{extension}"
        url = self.storage.upload_photo(content, key, content_type)
        self.supabase.table("pizzas")\
            .update({"photo_url": url})\
            .eq("id", pizza_id)\
            .execute()
        logger.info("Photo %s attached to pizza %s", key, pizza_id)
        return self._load(pizza_id)

    def remove_photo(self, user_id: str, pizza_id: int) -> PizzaResponse:
        """Detach the photo. The object stays in the bucket."""
        self._get_own_row(user_id, pizza_id)
        self.supabase.table("pizzas")\
            .update({"photo_url": None})\
            .eq("id", pizza_id)\
            .execute()
        return self._load(pizza_id)

    def delete_pizza(self, user_id: str, pizza_id: int) -> PizzaResponse:
        row = self._get_own_row(user_id, pizza_id)
        result = self.supabase.table("pizzas")\
            .delete()\
            .eq("id", pizza_id)\
            .eq("user_id", user_id)\
            .execute()
        if not result.data:
            raise NotFound("pizza_not_found", "Pizza not found")
        logger.info("Pizza %s deleted by %s", pizza_id, user_id)
        return PizzaResponse(**row)

    def list_user_pizzas(self, viewer_id: Optional[str], username: str, page: int = 0,
                         page_size: Optional[int] = None) -> PizzaPage:
        """Newest first, gated by the owner's pizza visibility"""
        if page < 0:
            raise InvalidOperation("invalid_page", "Page must not be negative")
        owner = ProfileService(self.supabase).get_profile_row_by_username(username)
        VisibilityService(self.supabase).ensure_can_view_pizzas(viewer_id, owner)

        size = page_size or settings.pizzas_page_size
        start = page * size
        # One extra row tells whether another page exists
        result = self.supabase.table("pizzas")\
            .select(PIZZA_COLUMNS)\
            .eq("user_id", owner["id"])\
            .order("eaten_at", desc=True)\
            .order("id", desc=True)\
            .range(start, start + size)\
            .execute()
        rows = result.data or []
        has_more = len(rows) > size
        rows = rows[:size]
        ingredients = self._ingredients_by_pizza([r["id"] for r in rows])
        return PizzaPage(
            user_id=owner["id"],
            page=page,
            page_size=size,
            items=[self._to_response(r, ingredients.get(r["id"], [])) for r in rows],
            has_more=has_more
        )

    def get_yearly_counter(self, user_id: str, year: Optional[int] = None) -> YearlyCounterResponse:
        year = year or date.today().year
        result = self.supabase.table("user_yearly_counters")\
            .select("user_id, year, base_count")\
            .eq("user_id", user_id)\
            .eq("year", year)\
            .limit(1)\
            .execute()
        row = first_row(result)
        base = row["base_count"] if row else 0
        start, end = period_bounds(year)
        pizzas = self.supabase.table("pizzas")\
            .select("id")\
            .eq("user_id", user_id)\
            .gte("eaten_at", start)\
            .lt("eaten_at", end)\
            .execute()
        period = len(pizzas.data or [])
        return YearlyCounterResponse(
            user_id=user_id, year=year, base_count=base, period_count=period, total=base + period
        )

    def set_yearly_counter(self, user_id: str, counter: YearlyCounterUpdate) -> YearlyCounterResponse:
        """Set the starting offset for a year (pizzas eaten before logging began)"""
        self.supabase.table("user_yearly_counters").upsert(
            {"user_id": user_id, "year": counter.year, "base_count": counter.base_count},
            on_conflict="user_id,year"
        ).execute()
        logger.info("Yearly counter for %s in %s set to %s", user_id, counter.year, counter.base_count)
        return self.get_yearly_counter(user_id, counter.year)
