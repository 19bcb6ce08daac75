"""In-memory stand-in for the hosted platform client used by the tests.

Implements the subset of the async client API the service uses: table
queries (select/insert/update/delete/upsert with eq/match/or_/order/limit/range),
remote procedures, auth sessions, TOTP factors and storage removal.
"""

import itertools
import math
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

from postgrest.exceptions import APIError
from storage3.exceptions import StorageException
from supabase_auth.errors import AuthError

VALID_TOTP_CODE = "123456"
EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)

class FakeAuthError(AuthError):
    """Auth failure raised by the fake; keeps the library's base class."""

    def __init__(self, message: str):
        Exception.__init__(self, message)
        self.message = message
        self.name = "FakeAuthError"
        self.code = None

class FakeResponse:
    def __init__(self, data: Any = None, count: Optional[int] = None):
        self.data = data
        self.count = count

def _matches(row: Dict[str, Any], column: str, value: Any) -> bool:
    actual = row.get(column)
    if actual == value:
        return True
    return actual is not None and value is not None and str(actual) == str(value)

def _ilike(row: Dict[str, Any], column: str, pattern: str) -> bool:
    needle = pattern.strip("%").lower()
    return needle in str(row.get(column) or "").lower()

class FakeQuery:
    """Chainable query against one table of the fake backend."""

    def __init__(self, backend: "FakeBackend", table: str):
        self.backend = backend
        self.table = table
        self.operation = "select"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.count: Optional[str] = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.ordering: List[tuple] = []
        self.row_limit: Optional[int] = None
        self.row_offset = 0

    def select(self, *columns, count: Optional[str] = None):
        self.count = count
        return self

    def insert(self, rows):
        self.operation = "insert"
        self.payload = rows
        return self

    def update(self, values):
        self.operation = "update"
        self.payload = values
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def upsert(self, rows, on_conflict: str = ""):
        self.operation = "upsert"
        self.payload = rows
        self.on_conflict = on_conflict
        return self

    def eq(self, column: str, value: Any):
        self.filters.append(lambda row: _matches(row, column, value))
        return self

    def match(self, query: Dict[str, Any]):
        for column, value in query.items():
            self.eq(column, value)
        return self

    def or_(self, expression: str):
        clauses = []
        for clause in expression.split(","):
            column, operator, value = clause.split(".", 2)
            assert operator in ("ilike", "eq"), f"unsupported operator {operator}"
            clauses.append((column, operator, value))
        self.filters.append(lambda row: any(
            _ilike(row, c, v) if op == "ilike" else _matches(row, c, v)
            for c, op, v in clauses
        ))
        return self

    def order(self, column: str, desc: bool = False):
        self.ordering.append((column, desc))
        return self

    def limit(self, size: int):
        self.row_limit = size
        return self

    def range(self, start: int, end: int):
        self.row_offset = start
        self.row_limit = end - start + 1
        return self

    def _selected(self) -> List[Dict[str, Any]]:
        return [row for row in self.backend.rows(self.table) if all(f(row) for f in self.filters)]

    async def execute(self) -> FakeResponse:
        self.backend.queries.append((self.table, self.operation))
        failure = self.backend.failures.get(self.table)
        if failure:
            raise APIError(failure)

        if self.operation == "insert":
            rows = self.payload if isinstance(self.payload, list) else [self.payload]
            return FakeResponse([dict(self.backend.insert(self.table, row)) for row in rows])

        if self.operation == "upsert":
            keys = [key.strip() for key in self.on_conflict.split(",") if key.strip()]
            result = []
            for row in self.payload:
                existing = [
                    stored for stored in self.backend.rows(self.table)
                    if keys and all(_matches(stored, key, row.get(key)) for key in keys)
                ]
                if existing:
                    existing[0].update(row)
                    result.append(dict(existing[0]))
                else:
                    result.append(dict(self.backend.insert(self.table, row)))
            return FakeResponse(result)

        rows = self._selected()

        if self.operation == "update":
            for row in rows:
                row.update(self.payload)
            return FakeResponse([dict(row) for row in rows])

        if self.operation == "delete":
            table = self.backend.rows(self.table)
            table[:] = [row for row in table if row not in rows]
            return FakeResponse([dict(row) for row in rows])

        total = len(rows)
        for column, desc in reversed(self.ordering):
            rows = sorted(rows, key=lambda row: (row.get(column) is None, row.get(column)), reverse=desc)
        rows = rows[self.row_offset:]
        if self.row_limit is not None:
            rows = rows[:self.row_limit]
        return FakeResponse(
            [dict(row) for row in rows],
            total if self.count else None
        )

class FakeRPCCall:
    def __init__(self, backend: "FakeBackend", name: str, params: Dict[str, Any]):
        self.backend = backend
        self.name = name
        self.params = params

    async def execute(self) -> FakeResponse:
        self.backend.rpc_calls.append((self.name, self.params))
        handler = self.backend.procedures.get(self.name)
        if handler is None:
            raise APIError({
                "message": f"Could not find the function public.{self.name}",
                "code": "PGRST202",
                "hint": None,
                "details": None,
            })
        return FakeResponse(handler(self.params))

class FakeVerifyResponse:
    """Session returned by a successful MFA verification."""

    def __init__(self, user):
        self.user = user
        self.access_token = f"aal2-{user.id}"
        self.refresh_token = f"aal2-refresh-{user.id}"
        self.token_type = "bearer"
        self.expires_in = 3600

    def model_dump(self, mode: str = "python") -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "user": {"id": self.user.id, "email": self.user.email},
        }

class FakeMFA:
    def __init__(self, auth: "FakeAuth"):
        self.auth = auth

    @property
    def backend(self) -> "FakeBackend":
        return self.auth.backend

    def _user(self):
        if self.auth.user is None:
            raise FakeAuthError("Auth session missing!")
        return self.auth.user

    def _factor(self, factor_id: str):
        for factor in self.backend.factors.get(self._user().id, []):
            if factor.id == factor_id:
                return factor
        raise FakeAuthError(f"Factor {factor_id} not found")

    async def enroll(self, params: Dict[str, Any]):
        user = self._user()
        if self.backend.mfa_failure:
            raise FakeAuthError(self.backend.mfa_failure)
        factor = SimpleNamespace(
            id=str(uuid.uuid4()),
            factor_type=params["factor_type"],
            status="unverified",
        )
        self.backend.factors.setdefault(user.id, []).append(factor)
        return SimpleNamespace(
            id=factor.id,
            type=factor.factor_type,
            totp=SimpleNamespace(
                qr_code=f"data:image/svg+xml;{factor.id}",
                secret=f"SECRET{factor.id[:8].upper()}",
                uri=f"otpauth://totp/{user.email}",
            ),
        )

    async def list_factors(self):
        factors = list(self.backend.factors.get(self._user().id, []))
        return SimpleNamespace(all=factors, totp=[f for f in factors if f.factor_type == "totp"])

    async def challenge(self, params: Dict[str, Any]):
        self._factor(params["factor_id"])
        return SimpleNamespace(id=str(uuid.uuid4()))

    async def verify(self, params: Dict[str, Any]):
        factor = self._factor(params["factor_id"])
        if params.get("code") != VALID_TOTP_CODE:
            raise FakeAuthError("Invalid TOTP code entered")
        factor.status = "verified"
        return FakeVerifyResponse(self._user())

    async def challenge_and_verify(self, params: Dict[str, Any]):
        challenge = await self.challenge({"factor_id": params["factor_id"]})
        return await self.verify({
            "factor_id": params["factor_id"],
            "challenge_id": challenge.id,
            "code": params.get("code"),
        })

    async def unenroll(self, params: Dict[str, Any]):
        factor = self._factor(params["factor_id"])
        self.backend.factors[self._user().id].remove(factor)
        return SimpleNamespace(id=factor.id)

class FakeAuth:
    def __init__(self, backend: "FakeBackend"):
        self.backend = backend
        self.user = None
        self.mfa = FakeMFA(self)

    def _lookup(self, access_token: str):
        user = self.backend.tokens.get(access_token)
        if user is None:
            raise FakeAuthError("invalid JWT: unable to parse or verify signature")
        return user

    async def get_user(self, jwt: Optional[str] = None):
        self.user = self._lookup(jwt)
        return SimpleNamespace(user=self.user)

    async def set_session(self, access_token: str, refresh_token: str):
        user = self._lookup(access_token)
        if self.backend.refresh_tokens.get(refresh_token) is not user:
            raise FakeAuthError("Invalid Refresh Token")
        self.user = user
        session = SimpleNamespace(access_token=access_token, refresh_token=refresh_token, user=user)
        return SimpleNamespace(user=user, session=session)

    async def exchange_code_for_session(self, params: Dict[str, Any]):
        user = self.backend.auth_codes.pop(params["auth_code"], None)
        if user is None:
            raise FakeAuthError("invalid flow state, no valid flow state found")
        self.user = user
        session = SimpleNamespace(
            access_token=f"oauth-{user.id}",
            refresh_token=f"oauth-refresh-{user.id}",
            user=user,
        )
        return SimpleNamespace(user=user, session=session)

class FakePostgrest:
    def __init__(self):
        self.token = None

    def auth(self, token: str):
        self.token = token

class FakeBucket:
    def __init__(self, backend: "FakeBackend", name: str):
        self.backend = backend
        self.name = name

    async def remove(self, paths: List[str]):
        if self.backend.storage_failure:
            raise StorageException(self.backend.storage_failure)
        self.backend.removed_objects.extend((self.name, path) for path in paths)
        return [{"name": path} for path in paths]

class FakeStorage:
    def __init__(self, backend: "FakeBackend"):
        self.backend = backend

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self.backend, bucket)

class FakeSupabase:
    """One client instance; auth state is per instance, data is shared."""

    def __init__(self, backend: "FakeBackend", key: str, options=None):
        self.backend = backend
        self.key = key
        self.options = options
        self.auth = FakeAuth(backend)
        self.postgrest = FakePostgrest()
        self.storage = FakeStorage(backend)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.backend, name)

    def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> FakeRPCCall:
        return FakeRPCCall(self.backend, name, params or {})

class FakeBackend:
    """Shared state behind every fake client."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.tokens: Dict[str, Any] = {}
        self.refresh_tokens: Dict[str, Any] = {}
        self.auth_codes: Dict[str, Any] = {}
        self.factors: Dict[str, List[Any]] = {}
        self.failures: Dict[str, Dict[str, Any]] = {}
        self.procedures: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "increment_listing_views": self._increment_listing_views,
            "handle_expired_listings": self._handle_expired_listings,
            "get_filtered_listings": self._get_filtered_listings,
            "get_listings_within_radius": self._get_listings_within_radius,
            "create_notification": self._create_notification,
        }
        self.rpc_calls: List[tuple] = []
        self.queries: List[tuple] = []
        self.removed_objects: List[tuple] = []
        self.storage_failure: Optional[str] = None
        self.mfa_failure: Optional[str] = None
        self.clients: List[FakeSupabase] = []
        self._clock = itertools.count(1)

    async def factory(self, url: str, key: str, options=None) -> FakeSupabase:
        client = FakeSupabase(self, key, options)
        self.clients.append(client)
        return client

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def timestamp(self) -> str:
        return (EPOCH + timedelta(seconds=next(self._clock))).isoformat()

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", self.timestamp())
        self.rows(table).append(stored)
        return stored

    def add_user(
        self,
        user_id: str,
        email: str,
        access_token: str,
        refresh_token: Optional[str] = None,
        role: str = "user",
        **profile
    ):
        user = SimpleNamespace(id=user_id, email=email)
        self.tokens[access_token] = user
        if refresh_token:
            self.refresh_tokens[refresh_token] = user
        self.insert("profiles", {"id": user_id, "email": email, "role": role, **profile})
        return user

    def fail(self, table: str, message: str = "relation does not exist", code: str = "42P01"):
        self.failures[table] = {"message": message, "code": code, "hint": None, "details": None}

    def _increment_listing_views(self, params: Dict[str, Any]):
        for row in self.rows("listings"):
            if row["id"] == params["listing_uuid"]:
                row["views"] = (row.get("views") or 0) + 1
                return [{"views": row["views"]}]
        return []

    def _handle_expired_listings(self, params: Dict[str, Any]):
        now = datetime.now(timezone.utc).isoformat()
        for row in self.rows("listings"):
            if row.get("status") == "active" and row.get("expires_at") and row["expires_at"] < now:
                row["status"] = "expired"
        return None

    def _get_filtered_listings(self, params: Dict[str, Any]):
        rows = [row for row in self.rows("listings") if row.get("status") == "active"]
        if params.get("p_search_query"):
            rows = [row for row in rows if _ilike(row, "title", params["p_search_query"])]
        if params.get("p_categories"):
            rows = [row for row in rows if row.get("category_id") in params["p_categories"]]
        start = (params["p_page"] - 1) * params["p_page_size"]
        return {
            "listings": rows[start:start + params["p_page_size"]],
            "total_count": len(rows),
        }

    def _get_listings_within_radius(self, params: Dict[str, Any]):
        found = []
        for row in self.rows("listings"):
            if row.get("status") != "active" or row.get("latitude") is None or row.get("longitude") is None:
                continue
            distance = _distance_km(params["user_latitude"], params["user_longitude"], row["latitude"], row["longitude"])
            if distance <= params["radius_km"]:
                found.append({**row, "distance_km": round(distance, 3)})
        return sorted(found, key=lambda row: row["distance_km"])

    def _create_notification(self, params: Dict[str, Any]):
        row = self.insert("notifications", {
            "user_id": params["target_user_id"],
            "type": params["notification_type"],
            "title": params["notification_title"],
            "message": params["notification_message"],
            "data": params["notification_data"],
            "read": False,
        })
        return row["id"]

def _distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance on a 6371 km sphere."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * 6371 * math.asin(math.sqrt(a))
