from datetime import date
from fastapi import APIRouter, Depends, Query
from pizzaboard.database.supabase_client import get_supabase
from pizzaboard.modules.leaderboards.aggregator import MAX_YEAR, MIN_YEAR, ChartMetric, ChartView, LeaderboardMode
from pizzaboard.modules.leaderboards.schemas import (
    GlobalRankResponse, HighlightResponse, IngredientCount, LeaderboardResponse, WeeklyProgressionResponse
)
from pizzaboard.modules.leaderboards.service import LeaderboardService
from pizzaboard.modules.profiles.service import ProfileService
from pizzaboard.core.dependencies import get_current_user_id
from supabase import Client
from typing import List, Dict, Optional

router = APIRouter(prefix="/leaderboards", tags=["leaderboards"])


def get_leaderboard_service(supabase: Client = Depends(get_supabase)) -> LeaderboardService:
    return LeaderboardService(supabase)


def get_profile_service(supabase: Client = Depends(get_supabase)) -> ProfileService:
    return ProfileService(supabase)


@router.get("/friends", response_model=LeaderboardResponse)
async def get_friends_leaderboard(
    year: Optional[int] = Query(None, ge=MIN_YEAR, le=MAX_YEAR),
    month: Optional[int] = Query(None, ge=1, le=12),
    mode: LeaderboardMode = LeaderboardMode.TOP,
    page: int = Query(0, ge=0),
    size: Optional[int] = Query(None, ge=1, le=100),
    q: Optional[str] = None,
    current_user: Dict = Depends(get_current_user_id),
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    """Viewer and accepted friends, for a year or a single month"""
    return service.friends_leaderboard(
        current_user["id"], year or date.today().year, month,
        mode=mode, page=page, query=q, size=size
    )


@router.get("/groups/{group_id}", response_model=LeaderboardResponse)
async def get_group_leaderboard(
    group_id: int,
    year: Optional[int] = Query(None, ge=MIN_YEAR, le=MAX_YEAR),
    month: Optional[int] = Query(None, ge=1, le=12),
    mode: LeaderboardMode = LeaderboardMode.TOP,
    page: int = Query(0, ge=0),
    size: Optional[int] = Query(None, ge=1, le=100),
    q: Optional[str] = None,
    current_user: Dict = Depends(get_current_user_id),
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    """Owner and active members of the group"""
    return service.group_leaderboard(
        current_user["id"], group_id, year or date.today().year, month,
        mode=mode, page=page, query=q, size=size
    )


@router.get("/groups/{group_id}/weekly", response_model=WeeklyProgressionResponse)
async def get_group_weekly_progression(
    group_id: int,
    year: Optional[int] = Query(None, ge=MIN_YEAR, le=MAX_YEAR),
    metric: ChartMetric = ChartMetric.PIZZAS,
    view: ChartView = ChartView.TOP,
    current_user: Dict = Depends(get_current_user_id),
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    return service.weekly_progression(
        current_user["id"], group_id, year or date.today().year, metric=metric, view=view
    )


@router.get("/users/{username}/rank", response_model=GlobalRankResponse)
async def get_global_rank(
    username: str,
    year: Optional[int] = Query(None, ge=MIN_YEAR, le=MAX_YEAR),
    month: Optional[int] = Query(None, ge=1, le=12),
    service: LeaderboardService = Depends(get_leaderboard_service),
    profiles: ProfileService = Depends(get_profile_service)
):
    """Position among all users who logged a pizza in the period"""
    profile = profiles.get_profile_row_by_username(username)
    return service.global_rank(profile["id"], year or date.today().year, month)


@router.get("/users/{username}/highlights", response_model=List[HighlightResponse])
async def get_highlights(
    username: str,
    service: LeaderboardService = Depends(get_leaderboard_service),
    profiles: ProfileService = Depends(get_profile_service)
):
    """Top-10 badges for the current year and month"""
    profile = profiles.get_profile_row_by_username(username)
    today = date.today()
    return service.highlights(profile["id"], today.year, today.month)


@router.get("/ingredients", response_model=List[IngredientCount])
async def get_top_ingredients(
    year: Optional[int] = Query(None, ge=MIN_YEAR, le=MAX_YEAR),
    limit: int = Query(10, ge=1, le=50),
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    return service.top_ingredients(year or date.today().year, limit=limit)
