"""Supabase-compatible REST backend (GoTrue auth + PostgREST records)."""

import logging
from typing import Any, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from humanoidhub.backend.base import (
    AuthCapability,
    CurrentUser,
    Filter,
    FilterOp,
    Order,
    PageRange,
    RecordStoreCapability,
    Row,
)
from humanoidhub.core.result import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)

# Reads are idempotent and safe to repeat on connection trouble
read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception_type(httpx.TransportError),
    reraise=True,
)


class SupabaseClient:
    """Shared HTTP client for the hosted backend."""

    def __init__(
        self,
        url: str,
        service_key: str,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            url: Project base URL, e.g. https://xyz.supabase.co
            service_key: Service role key sent as ``apikey``
            timeout: Request timeout in seconds
            transport: Optional transport override (used by tests)
        """
        self.base_url = url.rstrip("/")
        self.service_key = service_key
        self.http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "X-Client-Info": "humanoid-hub",
            },
        )

    async def aclose(self) -> None:
        await self.http.aclose()


def error_from_response(response: httpx.Response) -> Err:
    """Map a non-success response to a tagged error."""
    try:
        body = response.json()
        message = body.get("message") or body.get("error") or response.text
    except (ValueError, AttributeError):
        message = response.text
    if not isinstance(message, str):
        message = str(message)

    status_code = response.status_code
    if status_code in (401, 403):
        kind = ErrorKind.UNAUTHENTICATED
    elif status_code == 404:
        kind = ErrorKind.NOT_FOUND
    elif status_code == 409:
        kind = ErrorKind.CONFLICT
    else:
        kind = ErrorKind.BACKEND
    return Err(kind, f"HTTP {status_code}: {message}")


def json_body(response: httpx.Response, action: str) -> Result[Any]:
    """Decode a success response, ``Err(backend)`` when the body is not JSON."""
    try:
        return Ok(response.json())
    except ValueError:
        logger.error(
            "Backend returned a non-JSON body",
            extra={
                "action": action,
                "status_code": response.status_code,
                "content_type": response.headers.get("content-type"),
            },
        )
        return Err(ErrorKind.BACKEND, f"{action} returned invalid JSON (HTTP {response.status_code})")


def _quote(value: Any) -> str:
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def encode_filter(flt: Filter) -> tuple[str, str]:
    """Encode one filter as a PostgREST query parameter."""
    if flt.op == FilterOp.EQ:
        if flt.value is None:
            return flt.column, "is.null"
        return flt.column, f"eq.{_literal(flt.value)}"
    values = ",".join(_quote(v) for v in flt.value)
    if flt.op == FilterOp.CONTAINS:
        return flt.column, f"cs.{{{values}}}"
    return flt.column, f"in.({values})"


def parse_content_range(header: Optional[str]) -> Optional[int]:
    """Extract the total from a ``Content-Range: 0-9/42`` header."""
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    if total == "*":
        return None
    try:
        return int(total)
    except ValueError:
        return None


class SupabaseAuth(AuthCapability):
    """Resolve access tokens through the GoTrue ``/auth/v1/user`` endpoint."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    @read_retry
    async def _fetch_user(self, token: str) -> httpx.Response:
        return await self.client.http.get(
            "/auth/v1/user",
            headers={"Authorization": f"Bearer {token}"},
        )

    async def get_current_user(self, token: Optional[str]) -> Optional[CurrentUser]:
        if not token:
            return None
        try:
            response = await self._fetch_user(token)
        except httpx.HTTPError as e:
            logger.warning("Auth lookup failed", extra={"error": str(e)})
            return None

        if response.status_code != 200:
            logger.info(
                "Credential rejected by auth provider",
                extra={"status_code": response.status_code},
            )
            return None

        decoded = json_body(response, "auth lookup")
        if isinstance(decoded, Err):
            return None
        body = decoded.value
        if not isinstance(body, dict) or not body.get("id"):
            return None
        metadata = body.get("user_metadata") or {}
        return CurrentUser(
            id=str(body["id"]),
            email=body.get("email"),
            display_name=metadata.get("display_name"),
        )


class SupabaseRecordStore(RecordStoreCapability):
    """Record store backed by the PostgREST ``/rest/v1`` API."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    @staticmethod
    def _params(
        filters: tuple[Filter, ...],
        order: Optional[Order] = None,
        select: Optional[str] = "*",
    ) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        if select:
            params.append(("select", select))
        params.extend(encode_filter(flt) for flt in filters)
        if order is not None:
            direction = "asc" if order.ascending else "desc"
            ordering = f"{order.column}.{direction}"
            # id breaks ties so pages never overlap
            if order.column != "id":
                ordering += ",id.asc"
            params.append(("order", ordering))
        return params

    @read_retry
    async def _get(self, path: str, params: list[tuple[str, str]], headers: dict[str, str]) -> httpx.Response:
        return await self.client.http.get(path, params=params, headers=headers)

    @read_retry
    async def _head(self, path: str, params: list[tuple[str, str]], headers: dict[str, str]) -> httpx.Response:
        return await self.client.http.head(path, params=params, headers=headers)

    async def insert(self, table: str, fields: Row) -> Result[Row]:
        try:
            response = await self.client.http.post(
                f"/rest/v1/{table}",
                json=fields,
                headers={"Prefer": "return=representation"},
            )
        except httpx.HTTPError as e:
            logger.error("Insert failed", extra={"table": table, "error": str(e)})
            return Err(ErrorKind.TRANSPORT, f"insert into {table} failed: {e}")

        if response.status_code not in (200, 201):
            return error_from_response(response)
        decoded = json_body(response, f"insert into {table}")
        if isinstance(decoded, Err):
            return decoded
        rows = decoded.value
        if not rows:
            return Err(ErrorKind.BACKEND, f"insert into {table} returned no row")
        return Ok(rows[0] if isinstance(rows, list) else rows)

    async def query(
        self,
        table: str,
        filters: tuple[Filter, ...] = (),
        order: Optional[Order] = None,
        page_range: Optional[PageRange] = None,
    ) -> Result[list[Row]]:
        headers: dict[str, str] = {}
        if page_range is not None:
            headers["Range-Unit"] = "items"
            headers["Range"] = f"{page_range.offset}-{page_range.last}"

        try:
            response = await self._get(f"/rest/v1/{table}", self._params(filters, order), headers)
        except httpx.HTTPError as e:
            logger.error("Query failed", extra={"table": table, "error": str(e)})
            return Err(ErrorKind.TRANSPORT, f"query on {table} failed: {e}")

        # Range past the last row
        if response.status_code == 416:
            return Ok([])
        if response.status_code not in (200, 206):
            return error_from_response(response)
        return json_body(response, f"query on {table}")

    async def count(self, table: str, filters: tuple[Filter, ...] = ()) -> Result[int]:
        try:
            response = await self._head(
                f"/rest/v1/{table}",
                self._params(filters),
                {"Prefer": "count=exact", "Range-Unit": "items", "Range": "0-0"},
            )
        except httpx.HTTPError as e:
            logger.error("Count failed", extra={"table": table, "error": str(e)})
            return Err(ErrorKind.TRANSPORT, f"count on {table} failed: {e}")

        if response.status_code == 416:
            return Ok(0)
        if response.status_code not in (200, 206):
            return error_from_response(response)

        total = parse_content_range(response.headers.get("content-range"))
        if total is None:
            return Err(ErrorKind.BACKEND, f"count on {table} returned no total")
        return Ok(total)

    async def update(self, table: str, filters: tuple[Filter, ...], fields: Row) -> Result[list[Row]]:
        try:
            response = await self.client.http.patch(
                f"/rest/v1/{table}",
                params=self._params(filters, select=None),
                json=fields,
                headers={"Prefer": "return=representation"},
            )
        except httpx.HTTPError as e:
            logger.error("Update failed", extra={"table": table, "error": str(e)})
            return Err(ErrorKind.TRANSPORT, f"update on {table} failed: {e}")

        if response.status_code not in (200, 204):
            return error_from_response(response)
        if response.status_code == 204 or not response.content:
            return Ok([])
        return json_body(response, f"update on {table}")

    def get_backend_name(self) -> str:
        return "supabase"
