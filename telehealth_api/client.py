"""Async PostgREST client for the Supabase backend.
Authenticates with the service key; every call is a single round trip.
"""
from __future__ import annotations
import logging
import os
import httpx
from dotenv import load_dotenv
from .errors import StoreError, ValidationError

load_dotenv()

_BASE_URL = os.getenv("SUPABASE_URL", "http://localhost:54321").rstrip("/")
_REST_URL = f"{_BASE_URL}/rest/v1"
_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "")
_TIMEOUT = float(os.getenv("STORE_TIMEOUT", "15"))

logger = logging.getLogger(__name__)


def _headers(**extra: str) -> dict[str, str]:
    headers = {
        "apikey": _SERVICE_KEY,
        "Authorization": f"Bearer {_SERVICE_KEY}",
        "Accept": "application/json",
    }
    headers.update(extra)
    return headers


def _error_message(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text or f"Store responded with HTTP {resp.status_code}"
    if isinstance(payload, dict):
        return payload.get("message") or payload.get("error") or str(payload)
    return str(payload)


def _raise_for_store(resp: httpx.Response, table: str) -> None:
    if resp.is_success:
        return
    message = _error_message(resp)
    logger.error("store request on %s failed (%s): %s", table, resp.status_code, message)
    # PostgREST answers constraint violations and malformed filters with 4xx
    if resp.status_code < 500:
        raise ValidationError(message)
    raise StoreError(message)


async def select_rows(
    table: str,
    columns: str = "*",
    filters: dict[str, object] | None = None,
    order: list[str] | None = None,
) -> list[dict]:
    """Return rows of ``table`` matching every ``column == value`` filter.

    ``columns`` is a PostgREST select expression and may embed related rows,
    e.g. ``*,Doctors:doctor_id(id,name)``. ``order`` entries look like
    ``appointment_time.asc``.
    """
    params: dict[str, str] = {"select": columns}
    for column, value in (filters or {}).items():
        params[column] = f"eq.{value}"
    if order:
        params["order"] = ",".join(order)

    try:
        async with httpx.AsyncClient(http2=True, timeout=_TIMEOUT) as client:
            resp = await client.get(f"{_REST_URL}/{table}", headers=_headers(), params=params)
    except httpx.HTTPError as exc:
        logger.error("store unreachable reading %s: %s", table, exc)
        raise StoreError(str(exc)) from exc

    _raise_for_store(resp, table)
    rows = resp.json()
    if not isinstance(rows, list):
        raise StoreError(f"Unexpected response shape from {table}")
    return rows


async def select_one(table: str, columns: str = "*", filters: dict[str, object] | None = None) -> dict | None:
    """Return the single matching row, None when there is none."""
    rows = await select_rows(table, columns, filters)
    if not rows:
        return None
    if len(rows) > 1:
        raise StoreError(f"Expected at most one row from {table}, got {len(rows)}")
    return rows[0]


async def insert_row(table: str, row: dict) -> dict:
    """Insert one row and return it as stored (generated id, timestamps)."""
    headers = _headers(**{"Content-Type": "application/json", "Prefer": "return=representation"})
    try:
        async with httpx.AsyncClient(http2=True, timeout=_TIMEOUT) as client:
            resp = await client.post(f"{_REST_URL}/{table}", headers=headers, json=[row])
    except httpx.HTTPError as exc:
        logger.error("store unreachable inserting into %s: %s", table, exc)
        raise StoreError(str(exc)) from exc

    _raise_for_store(resp, table)
    created = resp.json()
    if not isinstance(created, list) or not created:
        raise StoreError(f"Insert into {table} returned no row")
    return created[0]
