"""Blocking PostgREST client for the bot's event tables.

Used from async code through ``run_in_executor``; one ``requests.Session``
is shared so connections are pooled across polls.
"""

from typing import Optional

import requests

from core.config import Settings
from core.config import settings as default_settings
from core.logging_utils import get_logger
from datafeeds.base import TransportError

logger = get_logger(__name__)


class RestClient:
    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or default_settings
        self.base_url = self.settings.rest_base_url
        self.timeout = self.settings.request_timeout_seconds
        self.session = session or requests.Session()
        key = self.settings.supabase_key
        self.session.headers.update({
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Accept": "application/json",
        })

    def fetch_latest(self, table: str, limit: int) -> list[dict]:
        """Most recent ``limit`` rows of ``table``, newest first."""
        return self._get(table, {"select": "*", "order": "timestamp.desc", "limit": str(max(0, int(limit)))})

    def fetch_by_ids(self, table: str, ids: list[str]) -> list[dict]:
        """Current rows for ``ids``, newest first. Ids that no longer exist are absent."""
        if not ids:
            return []
        in_list = ",".join(f'"{i}"' for i in ids)
        return self._get(table, {"select": "*", "id": f"in.({in_list})", "order": "timestamp.desc"})

    def _get(self, table: str, params: dict) -> list[dict]:
        try:
            resp = self.session.get(f"{self.base_url}/{table}", params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"GET {table} failed: {e}") from e
        if resp.status_code != 200:
            raise TransportError(f"GET {table} returned HTTP {resp.status_code}")
        try:
            rows = resp.json()
        except ValueError as e:
            raise TransportError(f"GET {table} returned invalid JSON") from e
        if not isinstance(rows, list):
            raise TransportError(f"GET {table} returned {type(rows).__name__}, expected a list")
        return rows

    def insert(self, table: str, record: dict) -> None:
        try:
            resp = self.session.post(
                f"{self.base_url}/{table}",
                json=record,
                headers={"Prefer": "return=minimal"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"POST {table} failed: {e}") from e
        if resp.status_code not in (200, 201, 204):
            raise TransportError(f"POST {table} returned HTTP {resp.status_code}")

    def close(self) -> None:
        self.session.close()
