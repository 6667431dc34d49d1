from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Sequence

import httpx

from gymstudio.core import Settings, get_settings


Row = dict[str, Any]
# PostgREST filters: column -> "op.value" (or a list for repeated columns)
Filters = Mapping[str, "str | list[str]"]


class SupabaseError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    @property
    def user_message(self) -> str:
        """
        Human-readable error for the UI.

        PostgREST/GoTrue bodies are JSON with a `message` (or `msg`,
        `error_description`) field; anything else is returned as-is.
        """

        if self.detail:
            try:
                body = json.loads(self.detail)
            except ValueError:
                return self.detail.strip()
            if isinstance(body, dict):
                for key in ("message", "msg", "error_description", "error"):
                    value = body.get(key)
                    if value:
                        return str(value)
            return self.detail.strip()
        return str(self)


def _fmt(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def eq(value: Any) -> str:
    return f"eq.{_fmt(value)}"


def neq(value: Any) -> str:
    return f"neq.{_fmt(value)}"


def gt(value: Any) -> str:
    return f"gt.{_fmt(value)}"


def gte(value: Any) -> str:
    return f"gte.{_fmt(value)}"


def lt(value: Any) -> str:
    return f"lt.{_fmt(value)}"


def lte(value: Any) -> str:
    return f"lte.{_fmt(value)}"


def in_(values: Iterable[Any]) -> str:
    return "in.(" + ",".join(_fmt(v) for v in values) + ")"


def is_(value: Any) -> str:
    return f"is.{'null' if value is None else _fmt(value)}"


def not_is(value: Any) -> str:
    return f"not.is.{'null' if value is None else _fmt(value)}"


def ilike(pattern: str) -> str:
    return f"ilike.{pattern}"


def between(low: Any, high: Any) -> list[str]:
    """Inclusive range on a single column."""
    return [gte(low), lte(high)]


class SupabaseClient:
    """
    Async Supabase client over plain HTTP.

    Wraps PostgREST (`/rest/v1`), GoTrue (`/auth/v1`) and Storage
    (`/storage/v1`). Service role key is used, so RLS is bypassed;
    tenant scoping (`unit_id`) is applied by the services.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._base_url = str(self._settings.supabase_url).rstrip("/")
        headers = {
            "apikey": self._settings.supabase_service_key,
            "Authorization": f"Bearer {self._settings.supabase_service_key}",
            "Accept": "application/json",
        }
        self._rest = httpx.AsyncClient(
            base_url=f"{self._base_url}/rest/v1",
            headers={**headers, "Content-Type": "application/json"},
            timeout=10.0,
            transport=transport,
        )
        self._auth = httpx.AsyncClient(
            base_url=f"{self._base_url}/auth/v1",
            headers={**headers, "Content-Type": "application/json"},
            timeout=10.0,
            transport=transport,
        )
        self._storage = httpx.AsyncClient(
            base_url=f"{self._base_url}/storage/v1",
            headers=headers,
            timeout=30.0,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def realtime_url(self) -> str:
        ws_base = self._base_url.replace("https://", "wss://").replace("http://", "ws://")
        return f"{ws_base}/realtime/v1/websocket?apikey={self._settings.supabase_service_key}&vsn=1.0.0"

    async def close(self) -> None:
        await self._rest.aclose()
        await self._auth.aclose()
        await self._storage.aclose()

    @staticmethod
    def _raise_for_status(response: httpx.Response, message: str) -> None:
        if response.status_code >= 400:
            raise SupabaseError(
                message,
                status_code=response.status_code,
                detail=response.text,
            )

    # ------------------------------------------------------------------
    # Tables (PostgREST)
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        *,
        filters: Filters | None = None,
        columns: str = "*",
        order: str | Sequence[str] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        params: dict[str, Any] = {**(filters or {}), "select": columns}
        if order:
            params["order"] = order if isinstance(order, str) else ",".join(order)
        if limit is not None:
            params["limit"] = limit

        response = await self._rest.get(f"/{table}", params=params)
        self._raise_for_status(response, f"Supabase REST GET failed for '{table}'")
        return response.json()

    async def select_one(
        self,
        table: str,
        *,
        filters: Filters,
        columns: str = "*",
        order: str | Sequence[str] | None = None,
    ) -> Row | None:
        items = await self.select(table, filters=filters, columns=columns, order=order, limit=1)
        if not items:
            return None
        return items[0]

    async def insert(self, table: str, payload: Row | list[Row]) -> list[Row]:
        response = await self._rest.post(
            f"/{table}",
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        self._raise_for_status(response, f"Supabase REST INSERT failed for '{table}'")
        return response.json()

    async def insert_one(self, table: str, payload: Row) -> Row:
        items = await self.insert(table, payload)
        if not items:
            raise SupabaseError(f"Empty insert response for table '{table}'")
        return items[0]

    async def update(self, table: str, filters: Filters, payload: Row) -> list[Row]:
        if not filters:
            raise ValueError("Refusing to update without filters")
        response = await self._rest.patch(
            f"/{table}",
            params=dict(filters),
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        self._raise_for_status(response, f"Supabase REST UPDATE failed for '{table}'")
        return response.json()

    async def update_one(self, table: str, row_id: str, payload: Row, *, filters: Filters | None = None) -> Row:
        """Update a row by id; extra `filters` (e.g. `unit_id`) narrow the match."""
        items = await self.update(table, {**(filters or {}), "id": eq(row_id)}, payload)
        if not items:
            raise SupabaseError(f"Row not found in '{table}'", status_code=404)
        return items[0]

    async def delete(self, table: str, filters: Filters) -> list[Row]:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        response = await self._rest.delete(
            f"/{table}",
            params=dict(filters),
            headers={"Prefer": "return=representation"},
        )
        self._raise_for_status(response, f"Supabase REST DELETE failed for '{table}'")
        return response.json()

    async def count(self, table: str, *, filters: Filters | None = None) -> int:
        """Exact row count using the `Content-Range` header."""

        response = await self._rest.head(
            f"/{table}",
            params={**(filters or {}), "select": "id"},
            headers={"Prefer": "count=exact"},
        )
        self._raise_for_status(response, f"Supabase REST COUNT failed for '{table}'")
        content_range = response.headers.get("content-range", "*/0")
        total = content_range.split("/")[-1]
        return int(total) if total.isdigit() else 0

    async def rpc(self, function: str, params: Row | None = None) -> Any:
        response = await self._rest.post(f"/rpc/{function}", json=params or {})
        self._raise_for_status(response, f"Supabase RPC '{function}' failed")
        return response.json()

    # ------------------------------------------------------------------
    # Auth (GoTrue)
    # ------------------------------------------------------------------

    async def get_user(self, access_token: str) -> Row:
        response = await self._auth.get(
            "/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        self._raise_for_status(response, "Supabase Auth user lookup failed")
        return response.json()

    async def sign_in_with_password(self, email: str, password: str) -> Row:
        response = await self._auth.post(
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        self._raise_for_status(response, "Supabase Auth sign-in failed")
        return response.json()

    async def create_auth_user(
        self,
        email: str,
        password: str,
        metadata: Row | None = None,
    ) -> str:
        """
        Create a confirmed Supabase Auth user via the admin endpoint.
        """

        response = await self._auth.post(
            "/admin/users",
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata or {},
            },
        )
        self._raise_for_status(response, "Supabase Auth admin user creation failed")

        data: Row = response.json()
        user_id = data.get("id")
        if not user_id:
            raise SupabaseError("Supabase Auth admin response missing 'id'", detail=response.text)
        return str(user_id)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        *,
        content_type: str = "application/octet-stream",
        upsert: bool = False,
    ) -> str:
        response = await self._storage.post(
            f"/object/{bucket}/{path}",
            content=content,
            headers={
                "Content-Type": content_type,
                "x-upsert": "true" if upsert else "false",
            },
        )
        self._raise_for_status(response, f"Supabase Storage upload failed for '{bucket}/{path}'")
        return path

    async def remove(self, bucket: str, paths: list[str]) -> None:
        response = await self._storage.request(
            "DELETE",
            f"/object/{bucket}",
            json={"prefixes": paths},
        )
        self._raise_for_status(response, f"Supabase Storage remove failed for '{bucket}'")

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{bucket}/{path}"


_supabase_client: SupabaseClient | None = None


def get_supabase_client() -> SupabaseClient:
    """
    Lazy singleton for SupabaseClient.

    The bot entry point closes it on shutdown.
    """

    global _supabase_client
    if _supabase_client is None:
        _supabase_client = SupabaseClient()
    return _supabase_client
