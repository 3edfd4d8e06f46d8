from fastapi import APIRouter, Depends, File, Query, UploadFile
from pizzaboard.database.supabase_client import get_supabase
from pizzaboard.modules.leaderboards.aggregator import MAX_YEAR, MIN_YEAR
from pizzaboard.modules.pizzas.schemas import (
    IngredientResponse, PizzaCreate, PizzaPage, PizzaResponse, PizzaUpdate,
    YearlyCounterResponse, YearlyCounterUpdate
)
from pizzaboard.modules.pizzas.service import PizzaService
from pizzaboard.core.dependencies import get_current_user_id, get_optional_user
from supabase import Client
from typing import List, Dict, Optional

router = APIRouter(prefix="/pizzas", tags=["pizzas"])


def get_pizza_service(supabase: Client = Depends(get_supabase)) -> PizzaService:
    return PizzaService(supabase)


@router.post("", response_model=PizzaResponse, status_code=201)
async def create_pizza(
    pizza_data: PizzaCreate,
    current_user: Dict = Depends(get_current_user_id),
    service: PizzaService = Depends(get_pizza_service)
):
    """Log a pizza"""
    return service.create_pizza(current_user["id"], pizza_data)


@router.get("/ingredients", response_model=List[IngredientResponse])
async def search_ingredients(
    q: str = "",
    limit: int = Query(20, ge=1, le=100),
    service: PizzaService = Depends(get_pizza_service)
):
    return service.search_ingredients(q, limit=limit)


@router.get("/counter", response_model=YearlyCounterResponse)
async def get_yearly_counter(
    year: Optional[int] = Query(None, ge=MIN_YEAR, le=MAX_YEAR),
    current_user: Dict = Depends(get_current_user_id),
    service: PizzaService = Depends(get_pizza_service)
):
    """Base offset and logged pizzas for a year"""
    return service.get_yearly_counter(current_user["id"], year)


@router.put("/counter", response_model=YearlyCounterResponse)
async def set_yearly_counter(
    counter: YearlyCounterUpdate,
    current_user: Dict = Depends(get_current_user_id),
    service: PizzaService = Depends(get_pizza_service)
):
    return service.set_yearly_counter(current_user["id"], counter)


@router.get("/users/{username}", response_model=PizzaPage)
async def list_user_pizzas(
    username: str,
    page: int = Query(0, ge=0),
    current_user: Optional[Dict] = Depends(get_optional_user),
    service: PizzaService = Depends(get_pizza_service)
):
    """A user's pizzas, newest first, if their visibility allows it"""
    viewer_id = current_user["id"] if current_user else None
    return service.list_user_pizzas(viewer_id, username, page=page)


@router.get("/{pizza_id}", response_model=PizzaResponse)
async def get_pizza(
    pizza_id: int,
    current_user: Optional[Dict] = Depends(get_optional_user),
    service: PizzaService = Depends(get_pizza_service)
):
    viewer_id = current_user["id"] if current_user else None
    return service.get_pizza(viewer_id, pizza_id)


@router.patch("/{pizza_id}", response_model=PizzaResponse)
async def update_pizza(
    pizza_id: int,
    pizza_data: PizzaUpdate,
    current_user: Dict = Depends(get_current_user_id),
    service: PizzaService = Depends(get_pizza_service)
):
    return service.update_pizza(current_user["id"], pizza_id, pizza_data)


@router.post("/{pizza_id}/photo", response_model=PizzaResponse)
async def upload_photo(
    pizza_id: int,
    file: UploadFile = File(...),
    current_user: Dict = Depends(get_current_user_id),
    service: PizzaService = Depends(get_pizza_service)
):
    content = await file.read()
    return service.upload_photo(current_user["id"], pizza_id, content, file.content_type)


@router.delete("/{pizza_id}/photo", response_model=PizzaResponse)
async def remove_photo(
    pizza_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: PizzaService = Depends(get_pizza_service)
):
    return service.remove_photo(current_user["id"], pizza_id)


@router.delete("/{pizza_id}", response_model=PizzaResponse)
async def delete_pizza(
    pizza_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: PizzaService = Depends(get_pizza_service)
):
    return service.delete_pizza(current_user["id"], pizza_id)
