from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from pizzaboard.modules.leaderboards.aggregator import MAX_YEAR, MIN_YEAR
from pizzaboard.modules.pizzas.models import PizzaOrigin


class IngredientResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class PizzaCreate(BaseModel):
    name: Optional[str] = Field(None, max_length=120)
    eaten_at: Optional[datetime] = None
    rating: Optional[float] = Field(None, ge=0, le=10)
    origin: Optional[PizzaOrigin] = None
    notes: Optional[str] = None
    ingredient_ids: List[int] = []
    ingredient_names: List[str] = []


class PizzaUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=120)
    eaten_at: Optional[datetime] = None
    rating: Optional[float] = Field(None, ge=0, le=10)
    origin: Optional[PizzaOrigin] = None
    notes: Optional[str] = None
    ingredient_ids: Optional[List[int]] = None


class PizzaResponse(BaseModel):
    id: int
    user_id: str
    name: Optional[str] = None
    eaten_at: Optional[datetime] = None
    rating: Optional[float] = None
    origin: Optional[PizzaOrigin] = None
    photo_url: Optional[str] = None
    notes: Optional[str] = None
    ingredients: List[IngredientResponse] = []

    class Config:
        from_attributes = True


class PizzaPage(BaseModel):
    user_id: str
    page: int
    page_size: int
    items: List[PizzaResponse]
    has_more: bool


class YearlyCounterUpdate(BaseModel):
    year: int = Field(ge=MIN_YEAR, le=MAX_YEAR)
    base_count: int = Field(ge=0)


class YearlyCounterResponse(BaseModel):
    user_id: str
    year: int
    base_count: int
    period_count: int = 0
    total: int = 0
