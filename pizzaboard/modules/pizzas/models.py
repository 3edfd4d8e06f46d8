# Supabase tables: pizzas, ingredients, pizza_ingredients, user_yearly_counters
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

pizzas:
- id: bigint (primary key)
- user_id: uuid (foreign key to profiles.id)
- name: text (nullable)
- eaten_at: timestamptz (default: now())
- rating: numeric (nullable, 0..10)
- origin: text (nullable) - values: takeaway, frozen, restaurant, bakery, bar, other
- photo_url: text (nullable)
- notes: text (nullable)
- created_at: timestamptz

ingredients:
- id: bigint (primary key)
- name: text (unique, case-insensitive)
- created_by: uuid (nullable)

pizza_ingredients:
- pizza_id: bigint (foreign key to pizzas.id on delete cascade)
- ingredient_id: bigint (foreign key to ingredients.id)
- unique(pizza_id, ingredient_id)

user_yearly_counters:
- user_id: uuid
- year: integer
- base_count: integer (>= 0) - pizzas eaten before the user started logging
- unique(user_id, year)
"""

from enum import Enum


class PizzaOrigin(str, Enum):
    TAKEAWAY = "takeaway"
    FROZEN = "frozen"
    RESTAURANT = "restaurant"
    BAKERY = "bakery"
    BAR = "bar"
    OTHER = "other"


PHOTO_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
}
