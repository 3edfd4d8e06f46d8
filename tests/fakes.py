"""
In-memory stand-in for the parts of the Supabase client the services use:
the PostgREST table query builder (filters, ordering, paging, writes with
unique constraints) and a token-based auth API.
"""
import copy
import itertools
import re
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

from postgrest import APIError

AUTO_ID_TABLES = {"friendships", "groups", "group_members", "pizzas", "ingredients"}

UNIQUE_KEYS: Dict[str, List[Callable[[dict], Any]]] = {
    "profiles": [lambda r: ("username", r.get("username")) if r.get("username") else None],
    "friendships": [lambda r: frozenset((r["requester_id"], r["addressee_id"]))],
    "group_members": [lambda r: (r["group_id"], r["user_id"])],
    "user_yearly_counters": [lambda r: (r["user_id"], r["year"])],
    "ingredients": [lambda r: r["name"].lower()],
    "pizza_ingredients": [lambda r: (r["pizza_id"], r["ingredient_id"])],
}


def unique_violation(table: str) -> APIError:
    return APIError({
        "message": f'duplicate key value violates unique constraint "{table}_unique"',
        "code": "23505",
        "hint": None,
        "details": None,
    })


def _like_to_regex(pattern: str) -> re.Pattern:
    """LIKE semantics: ``%`` any run, ``_`` one character, backslash escapes the next one."""
    regex, chars = "", iter(pattern)
    for ch in chars:
        if ch == "\\":
            regex += re.escape(next(chars, "\\"))
        elif ch == "%":
            regex += ".*"
        elif ch == "_":
            regex += "."
        else:
            regex += re.escape(ch)
    return re.compile("^" + regex + "$", re.IGNORECASE | re.DOTALL)


def _split_top_level(text: str) -> List[str]:
    items, depth, current, quoted, escaped = [], 0, "", False, False
    for ch in text:
        if quoted:
            current += ch
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                quoted = False
            continue
        if ch == '"':
            quoted = True
        elif ch == "," and depth == 0:
            items.append(current)
            current = ""
            continue
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        current += ch
    if quoted or depth != 0:
        raise APIError({"message": f"failed to parse logic tree ({text})", "code": "PGRST100",
                        "hint": None, "details": None})
    if current:
        items.append(current)
    return items


def _unquote(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return re.sub(r"\\(.)", r"\1", value[1:-1])
    return value


def _or_condition(expression: str) -> Callable[[dict], bool]:
    """Parse a PostgREST logic expression such as ``a.eq.1,and(b.eq.2,c.in.(3,4))``."""
    conditions = []
    for item in _split_top_level(expression):
        item = item.strip()
        if item.startswith("and(") and item.endswith(")"):
            inner = [_or_condition(part) for part in _split_top_level(item[4:-1])]
            conditions.append(lambda row, inner=inner: all(c(row) for c in inner))
            continue
        parts = item.split(".", 2)
        if len(parts) != 3:
            raise APIError({"message": f"failed to parse filter ({item})", "code": "PGRST100",
                            "hint": None, "details": None})
        column, op, value = parts
        conditions.append(_simple_condition(column, op, value if op == "in" else _unquote(value)))
    return lambda row: any(c(row) for c in conditions)


def _simple_condition(column: str, op: str, value: str) -> Callable[[dict], bool]:
    if op == "eq":
        return lambda row: row.get(column) is not None and str(row.get(column)) == value
    if op == "neq":
        return lambda row: str(row.get(column)) != value
    if op == "ilike":
        regex = _like_to_regex(value)
        return lambda row: row.get(column) is not None and bool(regex.match(str(row.get(column))))
    if op == "in":
        options = {v.strip() for v in value.strip("()").split(",") if v.strip()}
        return lambda row: str(row.get(column)) in options
    raise ValueError(f"Unsupported operator in fake or_: {op}")


class FakeResult:
    def __init__(self, data: List[dict]):
        self.data = data
        self.count = len(data)


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.columns: Optional[List[str]] = None
        self.filters: List[Callable[[dict], bool]] = []
        self.orders: List[tuple] = []
        self.limit_count: Optional[int] = None
        self.range_bounds: Optional[tuple] = None
        self.action = "select"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None

    # -- projections and writes --

    def select(self, columns: str = "*", **kwargs):
        if columns.strip() != "*":
            self.columns = [c.strip() for c in columns.split(",") if c.strip()]
        return self

    def insert(self, payload, **kwargs):
        self.action, self.payload = "insert", payload
        return self

    def update(self, payload, **kwargs):
        self.action, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None, **kwargs):
        self.action, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self, **kwargs):
        self.action = "delete"
        return self

    # -- filters --

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        options = list(values)
        self.filters.append(lambda row: row.get(column) in options)
        return self

    def ilike(self, column, pattern):
        regex = _like_to_regex(pattern)
        self.filters.append(lambda row: row.get(column) is not None and bool(regex.match(str(row.get(column)))))
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) <= value)
        return self

    def lt(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) < value)
        return self

    def or_(self, expression):
        self.filters.append(_or_condition(expression))
        return self

    # -- modifiers --

    def order(self, column, desc: bool = False, **kwargs):
        self.orders.append((column, desc))
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def range(self, start, end):
        self.range_bounds = (start, end)
        return self

    # -- execution --

    def _matches(self, row: dict) -> bool:
        return all(f(row) for f in self.filters)

    def _project(self, row: dict) -> dict:
        if self.columns is None:
            return copy.deepcopy(row)
        return {c: copy.deepcopy(row.get(c)) for c in self.columns}

    def execute(self) -> FakeResult:
        self.db.calls.append((self.table_name, self.action))
        rows = self.db.tables.setdefault(self.table_name, [])
        if self.action == "insert":
            return FakeResult(self.db.insert_rows(self.table_name, self.payload))
        if self.action == "upsert":
            return FakeResult(self.db.upsert_rows(self.table_name, self.payload, self.on_conflict))
        if self.action == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    candidate = {**row, **self.payload}
                    self.db.check_unique(self.table_name, candidate, ignore=row)
                    row.update(self.payload)
                    updated.append(copy.deepcopy(row))
            return FakeResult(updated)
        if self.action == "delete":
            deleted = [r for r in rows if self._matches(r)]
            self.db.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            return FakeResult(copy.deepcopy(deleted))

        selected = [r for r in rows if self._matches(r)]
        for column, desc in reversed(self.orders):
            selected.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        if self.range_bounds is not None:
            start, end = self.range_bounds
            selected = selected[start:end + 1]
        if self.limit_count is not None:
            selected = selected[:self.limit_count]
        return FakeResult([self._project(r) for r in selected])


class FakeAuth:
    def __init__(self, db: "FakeSupabase"):
        self.db = db
        self.tokens: Dict[str, SimpleNamespace] = {}
        self.passwords: Dict[str, tuple] = {}

    def add_user(self, user_id: str, email: str, password: str = "secret123") -> str:
        token = f"token-{user_id}"
        user = SimpleNamespace(id=user_id, email=email)
        self.tokens[token] = user
        self.passwords[email] = (password, user, token)
        return token

    def get_user(self, jwt: str):
        user = self.tokens.get(jwt)
        if user is None:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=user)

    def sign_up(self, credentials: dict):
        email = credentials["email"]
        if email in self.passwords:
            raise RuntimeError("User already registered")
        user_id = f"user-{len(self.passwords) + 1}"
        self.add_user(user_id, email, credentials["password"])
        self.db.insert_rows("profiles", {"id": user_id, "needs_onboarding": True})
        return SimpleNamespace(user=self.tokens[f"token-{user_id}"], session=None)

    def sign_in_with_password(self, credentials: dict):
        entry = self.passwords.get(credentials["email"])
        if entry is None or entry[0] != credentials["password"]:
            raise RuntimeError("Invalid login credentials")
        _, user, token = entry
        return SimpleNamespace(user=user, session=SimpleNamespace(access_token=token))

    def sign_out(self):
        return None


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[dict]] = {}
        self.calls: List[tuple] = []
        self._ids = itertools.count(1)
        self.auth = FakeAuth(self)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def check_unique(self, table: str, candidate: dict, ignore: Optional[dict] = None) -> None:
        for key_of in UNIQUE_KEYS.get(table, []):
            key = key_of(candidate)
            if key is None:
                continue
            for row in self.tables.get(table, []):
                if row is ignore:
                    continue
                if key_of(row) == key:
                    raise unique_violation(table)

    def insert_rows(self, table: str, payload) -> List[dict]:
        items = payload if isinstance(payload, list) else [payload]
        created = []
        for item in items:
            row = dict(item)
            if table in AUTO_ID_TABLES and "id" not in row:
                row["id"] = next(self._ids)
            self.check_unique(table, row)
            self.tables.setdefault(table, []).append(row)
            created.append(copy.deepcopy(row))
        return created

    def upsert_rows(self, table: str, payload, on_conflict: Optional[str]) -> List[dict]:
        items = payload if isinstance(payload, list) else [payload]
        keys = [k.strip() for k in (on_conflict or "id").split(",")]
        written = []
        for item in items:
            existing = next(
                (r for r in self.tables.get(table, []) if all(r.get(k) == item.get(k) for k in keys)),
                None
            )
            if existing is not None:
                existing.update(item)
                written.append(copy.deepcopy(existing))
            else:
                written.extend(self.insert_rows(table, item))
        return written

    # -- seeding helpers --

    def add_profile(self, user_id: str, username: Optional[str] = None, display_name: Optional[str] = None,
                    pizza_visibility: Optional[str] = None, **extra) -> dict:
        row = {
            "id": user_id,
            "username": username if username is not None else user_id,
            "display_name": display_name,
            "avatar_url": None,
            "pizza_visibility": pizza_visibility,
            "email_visibility": None,
            "needs_onboarding": False,
            "favorite_group_id": None,
        }
        row.update(extra)
        return self.insert_rows("profiles", row)[0]

    def add_group(self, owner_id: str, visibility: str = "public", name: str = "Pizza club", with_owner_row: bool = True) -> dict:
        group = self.insert_rows("groups", {
            "name": name,
            "description": None,
            "visibility": visibility,
            "owner_id": owner_id,
            "created_at": None,
        })[0]
        if with_owner_row:
            self.add_member(group["id"], owner_id, role="admin")
        return group

    def add_member(self, group_id: int, user_id: str, status: str = "active", role: str = "member") -> dict:
        return self.insert_rows("group_members", {
            "group_id": group_id,
            "user_id": user_id,
            "role": role,
            "status": status,
            "created_at": None,
        })[0]

    def add_friendship(self, requester_id: str, addressee_id: str, status: str = "accepted") -> dict:
        return self.insert_rows("friendships", {
            "requester_id": requester_id,
            "addressee_id": addressee_id,
            "status": status,
            "created_at": None,
        })[0]

    def add_pizzas(self, user_id: str, *eaten_at: str) -> List[dict]:
        return [
            self.insert_rows("pizzas", {
                "user_id": user_id,
                "name": None,
                "eaten_at": when,
                "rating": None,
                "origin": None,
                "photo_url": None,
                "notes": None,
            })[0]
            for when in eaten_at
        ]

    def rows(self, table: str) -> List[dict]:
        return self.tables.get(table, [])
