from pydantic import BaseModel
from typing import Optional, List, Dict

from pizzaboard.modules.leaderboards.aggregator import LeaderboardMode


class LeaderboardRowResponse(BaseModel):
    rank: int
    user_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    base_count: int
    period_count: int
    total: int
    is_me: bool = False

    class Config:
        from_attributes = True


class LeaderboardResponse(BaseModel):
    mode: LeaderboardMode
    year: int
    month: Optional[int] = None
    rows: List[LeaderboardRowResponse]
    total_participants: int
    start_rank: Optional[int] = None
    end_rank: Optional[int] = None
    focus_user_id: Optional[str] = None
    page: Optional[int] = None
    page_size: Optional[int] = None
    total_pages: Optional[int] = None
    has_more: bool = False


class GlobalRankResponse(BaseModel):
    user_id: str
    year: int
    month: Optional[int] = None
    rank: Optional[int] = None
    total_users: int
    count: int


class HighlightResponse(BaseModel):
    id: str
    label: str
    description: str
    rank: int


class WeekPointResponse(BaseModel):
    week: int
    label: str
    values: Dict[str, int]

    class Config:
        from_attributes = True


class WeeklyProgressionResponse(BaseModel):
    group_id: int
    year: int
    metric: str
    view: str
    user_ids: List[str]
    weeks: List[WeekPointResponse]


class IngredientCount(BaseModel):
    ingredient_id: int
    name: Optional[str] = None
    count: int
