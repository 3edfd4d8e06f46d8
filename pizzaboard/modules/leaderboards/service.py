import calendar
import logging
from typing import Dict, List, Optional

from supabase import Client

from pizzaboard.config import settings
from pizzaboard.modules.friendships.service import FriendshipService
from pizzaboard.modules.groups.service import GroupService
from pizzaboard.modules.leaderboards.aggregator import (
    ChartMetric, ChartView, LeaderboardMode, LeaderboardView, RankedRow,
    build_view, chart_participants, count_by_user, global_rank, period_bounds,
    rank_participants, top_counts, weekly_progression
)
from pizzaboard.modules.leaderboards.schemas import (
    GlobalRankResponse, HighlightResponse, IngredientCount, LeaderboardResponse,
    LeaderboardRowResponse, WeekPointResponse, WeeklyProgressionResponse
)

logger = logging.getLogger(__name__)


class LeaderboardService:
    """Fetches counts for a participant set and hands them to the aggregator."""

    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.friendships = FriendshipService(supabase)
        self.groups = GroupService(supabase)

    def _base_counts(self, user_ids: List[str], year: int) -> Dict[str, int]:
        if not user_ids:
            return {}
        result = self.supabase.table("user_yearly_counters")\
            .select("user_id, base_count")\
            .eq("year", year)\
            .in_("user_id", user_ids)\
            .execute()
        return {r["user_id"]: r.get("base_count") or 0 for r in (result.data or [])}

    def _pizza_rows(self, year: int, month: Optional[int] = None, user_ids: Optional[List[str]] = None,
                    columns: str = "user_id") -> List[dict]:
        start, end = period_bounds(year, month)
        request = self.supabase.table("pizzas")\
            .select(columns)\
            .gte("eaten_at", start)\
            .lt("eaten_at", end)
        if user_ids is not None:
            if not user_ids:
                return []
            request = request.in_("user_id", user_ids)
        result = request.execute()
        return result.data or []

    def _period_counts(self, user_ids: List[str], year: int, month: Optional[int]) -> Dict[str, int]:
        return count_by_user(r["user_id"] for r in self._pizza_rows(year, month, user_ids))

    def _profiles_by_id(self, user_ids: List[str]) -> Dict[str, dict]:
        if not user_ids:
            return {}
        result = self.supabase.table("profiles")\
            .select("id, username, display_name")\
            .in_("id", user_ids)\
            .execute()
        return {p["id"]: p for p in (result.data or [])}

    def rank(self, participant_ids: List[str], viewer_id: Optional[str], year: int,
             month: Optional[int] = None) -> List[RankedRow]:
        """Rank participants for a year (base offset included) or a month (pizzas only)."""
        ids = list(dict.fromkeys(participant_ids))
        base = self._base_counts(ids, year) if month is None else {}
        return rank_participants(
            ids,
            base_counts=base,
            period_counts=self._period_counts(ids, year, month),
            self_id=viewer_id,
            profiles=self._profiles_by_id(ids)
        )

    def _response(self, view: LeaderboardView, year: int, month: Optional[int]) -> LeaderboardResponse:
        return LeaderboardResponse(
            mode=view.mode,
            year=year,
            month=month,
            rows=[LeaderboardRowResponse.model_validate(r) for r in view.rows],
            total_participants=view.total_participants,
            start_rank=view.start_rank,
            end_rank=view.end_rank,
            focus_user_id=view.focus_user_id,
            page=view.page,
            page_size=view.page_size,
            total_pages=view.total_pages,
            has_more=view.has_more
        )

    def _view(self, participant_ids: List[str], viewer_id: str, year: int, month: Optional[int],
              mode: LeaderboardMode, page: int, query: Optional[str], size: Optional[int]) -> LeaderboardResponse:
        rows = self.rank(participant_ids, viewer_id, year, month)
        view = build_view(
            rows, mode,
            self_id=viewer_id,
            size=size or settings.leaderboard_top_size,
            k=settings.leaderboard_window,
            page=page,
            page_size=size or settings.leaderboard_page_size,
            query=query
        )
        return self._response(view, year, month)

    def friends_leaderboard(self, viewer_id: str, year: int, month: Optional[int] = None,
                            mode: LeaderboardMode = LeaderboardMode.TOP, page: int = 0,
                            query: Optional[str] = None, size: Optional[int] = None) -> LeaderboardResponse:
        """Viewer plus accepted friends."""
        participants = [viewer_id] + self.friendships.accepted_friend_ids(viewer_id)
        return self._view(participants, viewer_id, year, month, mode, page, query, size)

    def group_leaderboard(self, viewer_id: str, group_id: int, year: int, month: Optional[int] = None,
                          mode: LeaderboardMode = LeaderboardMode.TOP, page: int = 0,
                          query: Optional[str] = None, size: Optional[int] = None) -> LeaderboardResponse:
        """Active participants of a group the viewer is allowed to see."""
        self.groups.get_group(viewer_id, group_id)
        participants = self.groups.list_active_participants(group_id)
        return self._view(participants, viewer_id, year, month, mode, page, query, size)

    def weekly_progression(self, viewer_id: str, group_id: int, year: int,
                           metric: ChartMetric = ChartMetric.PIZZAS,
                           view: ChartView = ChartView.TOP) -> WeeklyProgressionResponse:
        self.groups.get_group(viewer_id, group_id)
        rows = self.rank(self.groups.list_active_participants(group_id), viewer_id, year)
        user_ids = chart_participants(
            rows, viewer_id, view,
            size=settings.leaderboard_top_size,
            k=settings.leaderboard_window
        )
        pizzas = self._pizza_rows(year, user_ids=user_ids, columns="user_id, eaten_at")
        points = weekly_progression(
            ((p["user_id"], p.get("eaten_at")) for p in pizzas),
            user_ids, year, metric
        )
        return WeeklyProgressionResponse(
            group_id=group_id,
            year=year,
            metric=metric.value,
            view=view.value,
            user_ids=user_ids,
            weeks=[WeekPointResponse.model_validate(p) for p in points]
        )

    def global_rank(self, user_id: str, year: int, month: Optional[int] = None) -> GlobalRankResponse:
        """Position among everyone who logged a pizza in the period."""
        counts = count_by_user(r["user_id"] for r in self._pizza_rows(year, month))
        ranking = global_rank(counts, user_id)
        return GlobalRankResponse(
            user_id=user_id,
            year=year,
            month=month,
            rank=ranking.rank,
            total_users=ranking.total_users,
            count=ranking.count
        )

    def _ingredient_counts(self, pizza_ids: List[int]) -> Dict[int, int]:
        if not pizza_ids:
            return {}
        result = self.supabase.table("pizza_ingredients")\
            .select("pizza_id, ingredient_id")\
            .in_("pizza_id", pizza_ids)\
            .execute()
        counts: Dict[int, int] = {}
        for row in result.data or []:
            counts[row["ingredient_id"]] = counts.get(row["ingredient_id"], 0) + 1
        return counts

    def _ingredient_names(self, ingredient_ids: List[int]) -> Dict[int, str]:
        if not ingredient_ids:
            return {}
        result = self.supabase.table("ingredients")\
            .select("id, name")\
            .in_("id", ingredient_ids)\
            .execute()
        return {r["id"]: r["name"] for r in (result.data or [])}

    def top_ingredients(self, year: int, limit: int = 10, user_id: Optional[str] = None) -> List[IngredientCount]:
        """Most used ingredients of the year, optionally for a single user."""
        pizzas = self._pizza_rows(year, user_ids=[user_id] if user_id else None, columns="id, user_id")
        ranked = top_counts(self._ingredient_counts([p["id"] for p in pizzas]), limit)
        names = self._ingredient_names([ingredient_id for ingredient_id, _ in ranked])
        return [
            IngredientCount(ingredient_id=ingredient_id, name=names.get(ingredient_id), count=count)
            for ingredient_id, count in ranked
        ]

    def _ingredient_rank(self, user_id: str, ingredient_id: int, year: int):
        links = self.supabase.table("pizza_ingredients")\
            .select("pizza_id")\
            .eq("ingredient_id", ingredient_id)\
            .execute()
        pizza_ids = [r["pizza_id"] for r in (links.data or [])]
        if not pizza_ids:
            return global_rank({}, user_id)
        start, end = period_bounds(year)
        result = self.supabase.table("pizzas")\
            .select("id, user_id")\
            .in_("id", pizza_ids)\
            .gte("eaten_at", start)\
            .lt("eaten_at", end)\
            .execute()
        return global_rank(count_by_user(r["user_id"] for r in (result.data or [])), user_id)

    def highlights(self, user_id: str, year: int, month: int) -> List[HighlightResponse]:
        """Badges for top positions this year, this month and on the user's favorite ingredient."""
        max_rank = settings.highlight_max_rank
        items = []

        yearly = self.global_rank(user_id, year)
        if yearly.rank and yearly.rank <= max_rank:
            items.append(HighlightResponse(
                id="year-pizzas",
                label=f"Top {yearly.rank} for pizzas in {year}",
                description=f"Logged {yearly.count} pizzas in {year}.",
                rank=yearly.rank
            ))

        monthly = self.global_rank(user_id, year, month)
        if monthly.rank and monthly.rank <= max_rank:
            items.append(HighlightResponse(
                id="month-pizzas",
                label=f"Top {monthly.rank} in {calendar.month_name[month]}",
                description=f"Logged {monthly.count} pizzas this month.",
                rank=monthly.rank
            ))

        favorites = self.top_ingredients(year, limit=1, user_id=user_id)
        if favorites:
            favorite = favorites[0]
            ranking = self._ingredient_rank(user_id, favorite.ingredient_id, year)
            if ranking.rank and ranking.rank <= max_rank:
                name = favorite.name or "their favorite ingredient"
                items.append(HighlightResponse(
                    id="ingredient-year",
                    label=f"Top {ranking.rank} for {name}",
                    description=f"Ate {ranking.count} pizzas with {name} in {year}.",
                    rank=ranking.rank
                ))
        return items
