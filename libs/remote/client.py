"""Single configured handle to the hosted backend.

Auth, table queries, file storage and realtime presence all go through one
``RemoteDataClient`` per process. Callers never construct SDK clients
themselves:

    from libs.remote.client import eq, get_remote_client

    remote = await get_remote_client()
    rows = await remote.fetch_all("clients", eq("coach_id", coach_id))

Every method either returns normalized data (plain dicts, ``AuthSession``)
or raises an error from ``libs.common.errors``. SDK exceptions never leak past
this module.
"""

import asyncio
from typing import Any, Callable, Iterable, NamedTuple, Optional, Sequence, Union

import httpx
from postgrest.exceptions import APIError
from storage3.utils import StorageException
from supabase import AsyncClient, acreate_client
from supabase_auth.errors import AuthError

from libs.auth.models import AuthSession
from libs.common.config import get_settings
from libs.common.errors import (
    AuthenticationError,
    AuthorizationError,
    BackendError,
    CoachingError,
    ConflictError,
    FieldValidationError,
    NotFoundError,
    TransportError,
)
from libs.common.logging import get_logger

logger = get_logger(__name__)

# PostgREST / Postgres error codes
_PERMISSION_CODES = {"42501", "PGRST301", "PGRST302"}
_CONSTRAINT_CODES = {"23505", "23503", "23502", "23514"}
_NO_ROWS_CODE = "PGRST116"


class Filter(NamedTuple):
    column: str
    op: str
    value: Any


_FILTER_METHODS = {
    "eq": "eq",
    "neq": "neq",
    "gt": "gt",
    "gte": "gte",
    "lt": "lt",
    "lte": "lte",
    "in": "in_",
    "is": "is_",
}


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", list(values))


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


def translate_api_error(exc: APIError) -> CoachingError:
    """Map a PostgREST error onto the domain taxonomy."""
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    if code in _PERMISSION_CODES or "row-level security" in message.lower():
        return AuthorizationError(message, code=code)
    if code in _CONSTRAINT_CODES:
        return ConflictError(message, code=code)
    if code == _NO_ROWS_CODE:
        return NotFoundError(message, code=code)
    return BackendError(message, code=code)


def _status_of(exc: Exception) -> Optional[int]:
    status = getattr(exc, "status", None)
    if status is None and exc.args and isinstance(exc.args[0], dict):
        status = exc.args[0].get("statusCode") or exc.args[0].get("status")
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def translate_status_error(exc: Exception, *, service: str) -> CoachingError:
    """Map an auth or storage error carrying an HTTP status."""
    status = _status_of(exc)
    message = getattr(exc, "message", None) or str(exc)
    code = getattr(exc, "code", None)
    if status == 401 or (service == "auth" and status == 400):
        return AuthenticationError(message, code=code)
    if status == 403:
        return AuthorizationError(message, code=code)
    if status == 404:
        return NotFoundError(message, code=code)
    if status == 409 or "duplicate" in message.lower():
        return ConflictError(message, code=code)
    if status in (413, 422):
        return FieldValidationError(message)
    return BackendError(message, code=code)


async def _guard(operation: str, awaitable) -> Any:
    try:
        return await awaitable
    except APIError as exc:
        error = translate_api_error(exc)
    except AuthError as exc:
        error = translate_status_error(exc, service="auth")
    except StorageException as exc:
        error = translate_status_error(exc, service="storage")
    except httpx.TransportError as exc:
        error = TransportError(f"{operation}: {exc}")
    logger.warning(
        "Backend call %s failed: %s (%s)", operation, error.message, type(error).__name__
    )
    raise error


# ---------------------------------------------------------------------------
# Realtime presence
# ---------------------------------------------------------------------------


class PresenceChannel:
    """Thin wrapper over a realtime channel configured for presence."""

    def __init__(self, channel: Any, topic: str, key: str):
        self._channel = channel
        self.topic = topic
        self.key = key

    def on_sync(self, callback: Callable[[], None]) -> "PresenceChannel":
        self._channel.on_presence_sync(callback)
        return self

    async def subscribe(
        self, callback: Callable[[str, Optional[Exception]], None]
    ) -> None:
        def _on_status(status: Any, error: Optional[Exception] = None) -> None:
            callback(str(getattr(status, "value", status)), error)

        await _guard(f"subscribe {self.topic}", self._channel.subscribe(_on_status))

    async def track(self, payload: dict[str, Any]) -> None:
        await _guard(f"track {self.topic}", self._channel.track(payload))

    def presence_state(self) -> dict[str, list]:
        return dict(self._channel.presence_state() or {})

    async def unsubscribe(self) -> None:
        await _guard(f"unsubscribe {self.topic}", self._channel.unsubscribe())


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class RemoteDataClient:
    """Process-wide handle to the backend. Configuration is fixed at creation."""

    def __init__(self, client: AsyncClient, *, url: str):
        self._client = client
        self._url = url

    @classmethod
    async def connect(cls, url: str, key: str) -> "RemoteDataClient":
        client = await acreate_client(url, key)
        logger.info("Remote data client connected to %s", url)
        return cls(client, url=url)

    @property
    def url(self) -> str:
        return self._url

    # ----- tables ---------------------------------------------------------

    @staticmethod
    def _apply_filters(builder: Any, filters: Sequence[Filter]) -> Any:
        for item in filters:
            builder = getattr(builder, _FILTER_METHODS[item.op])(item.column, item.value)
        return builder

    async def fetch_all(
        self,
        table: str,
        *filters: Filter,
        columns: str = "*",
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        builder = self._apply_filters(self._client.table(table).select(columns), filters)
        if order_by:
            builder = builder.order(order_by, desc=descending)
        if limit is not None:
            builder = builder.limit(limit)
        response = await _guard(f"select {table}", builder.execute())
        return list(response.data or [])

    async def fetch_maybe(
        self, table: str, *filters: Filter, columns: str = "*"
    ) -> Optional[dict]:
        """Single-row lookup where no row is a valid state."""
        rows = await self.fetch_all(table, *filters, columns=columns, limit=1)
        return rows[0] if rows else None

    async def fetch_one(
        self, table: str, *filters: Filter, columns: str = "*"
    ) -> dict:
        row = await self.fetch_maybe(table, *filters, columns=columns)
        if row is None:
            raise NotFoundError(f"No row in {table} matching {list(filters)}")
        return row

    async def insert(self, table: str, rows: Union[dict, list[dict]]) -> list[dict]:
        response = await _guard(
            f"insert {table}", self._client.table(table).insert(rows).execute()
        )
        return list(response.data or [])

    async def insert_one(self, table: str, row: dict) -> dict:
        created = await self.insert(table, row)
        if not created:
            raise BackendError(f"Insert into {table} returned no row")
        return created[0]

    async def update(self, table: str, values: dict, *filters: Filter) -> list[dict]:
        if not filters:
            raise FieldValidationError(f"Refusing unfiltered update on {table}")
        builder = self._apply_filters(self._client.table(table).update(values), filters)
        response = await _guard(f"update {table}", builder.execute())
        return list(response.data or [])

    async def upsert(self, table: str, row: dict, *, on_conflict: str = "id") -> dict:
        response = await _guard(
            f"upsert {table}",
            self._client.table(table).upsert(row, on_conflict=on_conflict).execute(),
        )
        if not response.data:
            raise BackendError(f"Upsert into {table} returned no row")
        return response.data[0]

    async def delete(self, table: str, *filters: Filter) -> list[dict]:
        if not filters:
            raise FieldValidationError(f"Refusing unfiltered delete on {table}")
        builder = self._apply_filters(self._client.table(table).delete(), filters)
        response = await _guard(f"delete {table}", builder.execute())
        return list(response.data or [])

    # ----- auth -----------------------------------------------------------

    async def sign_up(
        self, email: str, password: str, metadata: Optional[dict] = None
    ) -> Optional[AuthSession]:
        response = await _guard(
            "auth.sign_up",
            self._client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": metadata or {}}}
            ),
        )
        return AuthSession.from_sdk(response.session) if response.session else None

    async def sign_in(self, email: str, password: str) -> AuthSession:
        response = await _guard(
            "auth.sign_in",
            self._client.auth.sign_in_with_password({"email": email, "password": password}),
        )
        if not response.session:
            raise AuthenticationError("Sign-in returned no session")
        return AuthSession.from_sdk(response.session)

    async def sign_out(self) -> None:
        await _guard("auth.sign_out", self._client.auth.sign_out())

    async def get_session(self) -> Optional[AuthSession]:
        session = await _guard("auth.get_session", self._client.auth.get_session())
        return AuthSession.from_sdk(session) if session else None

    async def update_password(self, new_password: str) -> None:
        await _guard(
            "auth.update_user", self._client.auth.update_user({"password": new_password})
        )

    def on_auth_state_change(
        self, callback: Callable[[str, Optional[AuthSession]], None]
    ) -> Callable[[], None]:
        """Register for auth events. Returns the unsubscribe callable."""

        def _listener(event: Any, session: Any) -> None:
            callback(
                str(getattr(event, "value", event)),
                AuthSession.from_sdk(session) if session else None,
            )

        subscription = self._client.auth.on_auth_state_change(_listener)
        return subscription.unsubscribe

    async def admin_create_user(
        self, email: str, password: str, metadata: Optional[dict] = None
    ) -> dict:
        """Create a confirmed user. Requires the service-role handle."""
        response = await _guard(
            "auth.admin.create_user",
            self._client.auth.admin.create_user(
                {
                    "email": email,
                    "password": password,
                    "email_confirm": True,
                    "user_metadata": metadata or {},
                }
            ),
        )
        user = response.user
        return {"id": str(user.id), "email": user.email}

    async def admin_generate_link(
        self,
        link_type: str,
        email: str,
        *,
        redirect_to: str,
        data: Optional[dict] = None,
    ) -> str:
        """Generate an invite/magic link. Requires the service-role handle."""
        response = await _guard(
            "auth.admin.generate_link",
            self._client.auth.admin.generate_link(
                {
                    "type": link_type,
                    "email": email,
                    "options": {"redirect_to": redirect_to, "data": data or {}},
                }
            ),
        )
        return response.properties.action_link

    # ----- storage --------------------------------------------------------

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> str:
        await _guard(
            f"storage.upload {bucket}",
            self._client.storage.from_(bucket).upload(
                path=path,
                file=data,
                file_options={
                    "content-type": content_type,
                    "cache-control": cache_control,
                    "upsert": "true" if upsert else "false",
                },
            ),
        )
        return path

    async def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        result = await _guard(
            f"storage.create_signed_url {bucket}",
            self._client.storage.from_(bucket).create_signed_url(path, expires_in),
        )
        signed = result.get("signedURL") or result.get("signedUrl")
        if not signed:
            raise BackendError(f"No signed URL returned for {bucket}/{path}")
        return signed

    async def remove(self, bucket: str, paths: list[str]) -> None:
        await _guard(
            f"storage.remove {bucket}", self._client.storage.from_(bucket).remove(paths)
        )

    # ----- realtime -------------------------------------------------------

    def presence_channel(self, topic: str, key: str) -> PresenceChannel:
        channel = self._client.channel(topic, {"config": {"presence": {"key": key}}})
        return PresenceChannel(channel, topic, key)


# ---------------------------------------------------------------------------
# Process-wide handles
# ---------------------------------------------------------------------------

_remote_client: Optional[RemoteDataClient] = None
_admin_client: Optional[RemoteDataClient] = None
_lock: Optional[asyncio.Lock] = None


def _get_lock() -> asyncio.Lock:
    global _lock
    if _lock is None:
        _lock = asyncio.Lock()
    return _lock


async def get_remote_client() -> RemoteDataClient:
    """
    Return the process-wide handle built from the anon key, creating it once.
    """
    global _remote_client
    if _remote_client is None:
        async with _get_lock():
            if _remote_client is None:
                settings = get_settings()
                settings.require("SUPABASE_URL", "SUPABASE_ANON_KEY")
                _remote_client = await RemoteDataClient.connect(
                    settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY
                )
    return _remote_client


async def get_admin_client() -> RemoteDataClient:
    """
    Return the service-role handle. Only the serverless functions process
    uses this; browser-facing code never holds the service key.
    """
    global _admin_client
    if _admin_client is None:
        async with _get_lock():
            if _admin_client is None:
                settings = get_settings()
                settings.require("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")
                _admin_client = await RemoteDataClient.connect(
                    settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY
                )
    return _admin_client


def configure_remote_client(
    client: Optional[RemoteDataClient], *, admin: bool = False
) -> None:
    """Inject (or clear, with ``None``) a handle. Used at startup and in tests."""
    global _remote_client, _admin_client
    if admin:
        _admin_client = client
    else:
        _remote_client = client
