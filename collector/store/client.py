"""Minimal Supabase (PostgREST) client for inserting rows over HTTPS."""

from __future__ import annotations

import logging
from typing import Any

import requests
from requests.exceptions import ConnectionError as ReqConnectionError
from requests.exceptions import RequestException, Timeout

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 5.0


class StoreError(Exception):
    """A remote store call failed; the message is safe to log."""


class SupabaseClient:
    """Inserts rows into Supabase tables through the PostgREST endpoint.

    Authenticates with the service-role key. Each call is a single POST
    bounded by *timeout*; failures of any kind surface as ``StoreError``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._rest_url = base_url.rstrip("/") + "/rest/v1"
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        )

    def insert(
        self,
        table: str,
        row: dict[str, Any],
        returning: str | None = None,
    ) -> dict[str, Any] | None:
        """POST one row into *table*.

        With *returning* (a PostgREST ``select`` list such as ``"id"``) the
        inserted row is returned; otherwise the store is asked for an empty
        body and None is returned.
        """
        url = f"{self._rest_url}/{table}"
        headers = {"Prefer": "return=representation" if returning else "return=minimal"}
        params = {"select": returning} if returning else None

        try:
            response = self._session.post(
                url,
                json=row,
                params=params,
                headers=headers,
                timeout=self._timeout,
            )
        except (ReqConnectionError, Timeout) as exc:
            raise StoreError(f"store unreachable at {self._rest_url}: {exc}") from exc
        except RequestException as exc:
            raise StoreError(f"request to {table} failed: {exc}") from exc

        if not response.ok:
            raise StoreError(
                f"insert into {table} returned {response.status_code}: {_error_message(response)}"
            )

        if not returning:
            return None

        try:
            body = response.json()
        except ValueError as exc:
            raise StoreError(f"insert into {table} returned an undecodable body") from exc

        rows = body if isinstance(body, list) else [body]
        if not rows or not isinstance(rows[0], dict):
            raise StoreError(f"insert into {table} returned no row")
        return rows[0]

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()
        logger.info("Store session closed")


def _error_message(response: requests.Response) -> str:
    """Pull PostgREST's ``message`` out of an error response when present."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason or "no body"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return str(body)[:200]
