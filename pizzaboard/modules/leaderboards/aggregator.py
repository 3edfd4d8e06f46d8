"""
Leaderboard aggregation.

Pure functions over already fetched numbers: no store access happens here.
A participant's score is ``base_count + period_count`` (both default to 0).
Rows are sorted by score descending and then by user id, and every row keeps
its rank in the full ordering even when only a window of it is returned.
"""
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from pizzaboard.core.exceptions import InvalidOperation, NotFound

MIN_YEAR = 2000
MAX_YEAR = 2100


class LeaderboardMode(str, Enum):
    TOP = "top"
    AROUND_ME = "around_me"
    PAGINATED = "paginated"
    SEARCH = "search"


class ChartMetric(str, Enum):
    PIZZAS = "pizzas"
    POSITIONS = "positions"


class ChartView(str, Enum):
    TOP = "top"
    AROUND_ME = "around_me"


@dataclass
class RankedRow:
    rank: int
    user_id: str
    username: Optional[str]
    display_name: Optional[str]
    base_count: int
    period_count: int
    total: int
    is_me: bool = False


@dataclass
class LeaderboardView:
    mode: LeaderboardMode
    rows: List[RankedRow]
    total_participants: int
    start_rank: Optional[int] = None
    end_rank: Optional[int] = None
    focus_user_id: Optional[str] = None
    page: Optional[int] = None
    page_size: Optional[int] = None
    total_pages: Optional[int] = None
    has_more: bool = False


@dataclass
class GlobalRank:
    rank: Optional[int]
    total_users: int
    count: int


@dataclass
class WeekPoint:
    week: int
    label: str
    values: Dict[str, int] = field(default_factory=dict)


def _sort_key(user_id: str, total: int) -> Tuple[int, str]:
    return (-total, user_id)


def rank_participants(
    participant_ids: Iterable[str],
    base_counts: Optional[Dict[str, int]] = None,
    period_counts: Optional[Dict[str, int]] = None,
    self_id: Optional[str] = None,
    profiles: Optional[Dict[str, dict]] = None
) -> List[RankedRow]:
    """Score and rank a participant set. Duplicate ids are counted once."""
    base_counts = base_counts or {}
    period_counts = period_counts or {}
    profiles = profiles or {}

    unique_ids = list(dict.fromkeys(participant_ids))
    scored = []
    for user_id in unique_ids:
        base = int(base_counts.get(user_id) or 0)
        period = int(period_counts.get(user_id) or 0)
        scored.append((user_id, base, period, base + period))
    scored.sort(key=lambda s: _sort_key(s[0], s[3]))

    rows = []
    for position, (user_id, base, period, total) in enumerate(scored, start=1):
        profile = profiles.get(user_id) or {}
        rows.append(RankedRow(
            rank=position,
            user_id=user_id,
            username=profile.get("username"),
            display_name=profile.get("display_name"),
            base_count=base,
            period_count=period,
            total=total,
            is_me=user_id == self_id
        ))
    return rows


def index_of(rows: List[RankedRow], user_id: Optional[str]) -> Optional[int]:
    if user_id is None:
        return None
    for idx, row in enumerate(rows):
        if row.user_id == user_id:
            return idx
    return None


def find_match(rows: List[RankedRow], query: str) -> Optional[int]:
    """Index of the best ranked row whose username or display name contains the query."""
    needle = query.strip().lower()
    if not needle:
        return None
    for idx, row in enumerate(rows):
        for value in (row.username, row.display_name):
            if value and needle in value.lower():
                return idx
    return None


def _window(rows: List[RankedRow], start: int, end: int) -> List[RankedRow]:
    return rows[max(0, start):min(len(rows), end)]


def _view_of(mode: LeaderboardMode, rows: List[RankedRow], window: List[RankedRow], **extra) -> LeaderboardView:
    return LeaderboardView(
        mode=mode,
        rows=window,
        total_participants=len(rows),
        start_rank=window[0].rank if window else None,
        end_rank=window[-1].rank if window else None,
        **extra
    )


def top_view(rows: List[RankedRow], size: int) -> LeaderboardView:
    if size <= 0:
        raise InvalidOperation("invalid_size", "Size must be positive")
    window = rows[:size]
    return _view_of(LeaderboardMode.TOP, rows, window, has_more=len(rows) > size)


def around_view(
    rows: List[RankedRow],
    focus_user_id: Optional[str],
    k: int,
    fallback_size: int,
    mode: LeaderboardMode = LeaderboardMode.AROUND_ME
) -> LeaderboardView:
    """Window of 2k+1 rows centered on the focus user, clipped at both ends.

    Falls back to the top view when the focus user is not ranked.
    """
    if k < 0:
        raise InvalidOperation("invalid_window", "Window must not be negative")
    focus = index_of(rows, focus_user_id)
    if focus is None:
        return top_view(rows, fallback_size)
    window = _window(rows, focus - k, focus + k + 1)
    return _view_of(
        mode, rows, window,
        focus_user_id=focus_user_id,
        has_more=window[-1].rank < len(rows)
    )


def paginated_view(rows: List[RankedRow], page: int, page_size: int) -> LeaderboardView:
    """0-based page of the ranking. Pages past the end are empty."""
    if page < 0:
        raise InvalidOperation("invalid_page", "Page must not be negative")
    if page_size <= 0:
        raise InvalidOperation("invalid_page_size", "Page size must be positive")
    start = page * page_size
    window = _window(rows, start, start + page_size)
    total_pages = math.ceil(len(rows) / page_size)
    return _view_of(
        LeaderboardMode.PAGINATED, rows, window,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_more=page + 1 < total_pages
    )


def search_view(rows: List[RankedRow], query: Optional[str], self_id: Optional[str], k: int, fallback_size: int) -> LeaderboardView:
    """Center the window on the first matching participant in rank order."""
    if not query or not query.strip():
        return around_view(rows, self_id, k, fallback_size)
    match = find_match(rows, query)
    if match is None:
        raise NotFound("no_match", f"No participant matches '{query.strip()}'")
    return around_view(rows, rows[match].user_id, k, fallback_size, mode=LeaderboardMode.SEARCH)


def build_view(
    rows: List[RankedRow],
    mode: LeaderboardMode,
    self_id: Optional[str] = None,
    size: int = 10,
    k: int = 5,
    page: int = 0,
    page_size: int = 10,
    query: Optional[str] = None
) -> LeaderboardView:
    """Apply a display mode to a ranked list. An empty ranking is always an empty view."""
    if not rows:
        return LeaderboardView(mode=mode, rows=[], total_participants=0)
    if mode == LeaderboardMode.TOP:
        return top_view(rows, size)
    if mode == LeaderboardMode.AROUND_ME:
        return around_view(rows, self_id, k, size)
    if mode == LeaderboardMode.PAGINATED:
        return paginated_view(rows, page, page_size)
    return search_view(rows, query, self_id, k, size)


def count_by_user(user_ids: Iterable[str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for user_id in user_ids:
        counts[user_id] = counts.get(user_id, 0) + 1
    return counts


def global_rank(counts: Dict[str, int], user_id: str) -> GlobalRank:
    """Rank of a user among everybody with a positive count. Unranked users get ``rank=None``."""
    ordered = sorted(
        (uid for uid, count in counts.items() if count > 0),
        key=lambda uid: _sort_key(uid, counts[uid])
    )
    rank = ordered.index(user_id) + 1 if user_id in ordered else None
    return GlobalRank(rank=rank, total_users=len(ordered), count=counts.get(user_id, 0))


def period_bounds(year: int, month: Optional[int] = None) -> Tuple[str, str]:
    """Inclusive start and exclusive end dates of a year or of one of its months."""
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidOperation("invalid_year", f"Year must be between {MIN_YEAR} and {MAX_YEAR}")
    if month is None:
        return date(year, 1, 1).isoformat(), date(year + 1, 1, 1).isoformat()
    if not 1 <= month <= 12:
        raise InvalidOperation("invalid_month", "Month must be between 1 and 12")
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start.isoformat(), end.isoformat()


def parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def weeks_in_year(year: int) -> int:
    return date(year, 12, 28).isocalendar()[1]


def week_of(moment: datetime, year: int) -> int:
    """ISO week number, clamped into the given calendar year."""
    iso_year, iso_week, _ = moment.isocalendar()
    if iso_year < year:
        return 1
    if iso_year > year:
        return weeks_in_year(year)
    return iso_week


def chart_participants(rows: List[RankedRow], self_id: Optional[str], view: ChartView, size: int = 10, k: int = 5) -> List[str]:
    """Users plotted in the weekly chart: the top plus self, or the window around self."""
    if view == ChartView.TOP:
        chosen = [r.user_id for r in rows[:size]]
        if self_id is not None and self_id not in chosen and index_of(rows, self_id) is not None:
            chosen.append(self_id)
        return chosen
    focus = index_of(rows, self_id)
    if focus is None:
        return [r.user_id for r in rows[:2 * k + 1]]
    return [r.user_id for r in _window(rows, focus - k, focus + k + 1)]


def weekly_progression(
    events: Iterable[Tuple[str, object]],
    participant_ids: List[str],
    year: int,
    metric: ChartMetric = ChartMetric.PIZZAS
) -> List[WeekPoint]:
    """Cumulative pizza counts (or positions) per ISO week.

    ``events`` holds ``(user_id, eaten_at)`` pairs. Weeks before the first and
    after the last week with any pizza are left out.
    """
    participants = list(dict.fromkeys(participant_ids))
    if not participants:
        return []

    last_week = weeks_in_year(year)
    per_week: Dict[int, Dict[str, int]] = {w: {} for w in range(1, last_week + 1)}
    for user_id, eaten_at in events:
        if user_id not in participants or eaten_at is None:
            continue
        moment = parse_timestamp(eaten_at)
        if moment.year != year:
            continue
        week = week_of(moment, year)
        per_week[week][user_id] = per_week[week].get(user_id, 0) + 1

    active_weeks = [w for w, counts in per_week.items() if counts]
    if not active_weeks:
        return []

    points = []
    cumulative = {uid: 0 for uid in participants}
    for week in range(1, max(active_weeks) + 1):
        for uid, count in per_week[week].items():
            cumulative[uid] += count
        if week < min(active_weeks):
            continue
        if metric == ChartMetric.PIZZAS:
            values = dict(cumulative)
        else:
            ordered = sorted(participants, key=lambda uid: _sort_key(uid, cumulative[uid]))
            values = {uid: position for position, uid in enumerate(ordered, start=1)}
        points.append(WeekPoint(week=week, label=f"W{week}", values=values))
    return points


def top_counts(counts: Dict[int, int], limit: int) -> List[Tuple[int, int]]:
    """Highest counts first, ties by key."""
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
