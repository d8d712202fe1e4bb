"""
Cloud store client.

The shared authoritative store is a hosted Postgres table exposed through a
PostgREST-compatible REST API (Supabase). Every call is scoped by the
owner identifier of the authenticated session.
"""

from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import requests
from loguru import logger

from watch_minion.core.config import CloudConfig

from .exceptions import TransportError
from .transcoder import RemoteRow

# (record id, last_modified_date as sent by the cloud)
IndexEntry = Tuple[str, str]


class RemoteStore(Protocol):
    """Operations the sync engine consumes from the cloud store."""

    def upsert(self, rows: Sequence[RemoteRow]) -> None:
        """Insert-or-replace rows by identifier."""
        ...

    def update_where_id_in(
        self, owner_id: str, ids: Sequence[str], patch: Dict[str, Any]
    ) -> None:
        """Apply ``patch`` to the owner's rows whose id is in ``ids``."""
        ...

    def delete_where_owner(self, owner_id: str) -> None:
        """Physically remove every row owned by ``owner_id``."""
        ...

    def insert(self, rows: Sequence[RemoteRow]) -> None:
        ...

    def select(
        self,
        owner_id: str,
        ids: Optional[Sequence[str]] = None,
        include_deleted: bool = False,
    ) -> List[Dict[str, Any]]:
        """Full rows for the owner, optionally limited to ``ids``."""
        ...

    def select_index(
        self, owner_id: str, ids: Optional[Sequence[str]] = None
    ) -> List[IndexEntry]:
        """(id, last_modified_date) for the owner's live (non-tombstoned) rows."""
        ...

    def ping(self, timeout: float) -> bool:
        """Time-boxed connectivity check. Never raises."""
        ...


def _in_filter(ids: Sequence[str]) -> str:
    return "in.(" + ",".join(f'"{record_id}"' for record_id in ids) + ")"


class RestRemoteStore:
    """RemoteStore over the PostgREST API using ``requests``."""

    def __init__(
        self,
        config: CloudConfig,
        access_token: Callable[[], Optional[str]],
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            config: Cloud project settings (URL, anon key, table)
            access_token: Returns the current session's bearer token, if any
            session: Optional pre-built requests session (tests)
        """
        self.config = config
        self._access_token = access_token
        self._http = session or requests.Session()

    @property
    def table_url(self) -> str:
        return f"{self.config.url}/rest/v1/{self.config.table}"

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        token = self._access_token() or self.config.anon_key
        headers = {
            "apikey": self.config.anon_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "User-Agent": "watch-minion-sync/0.1",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(
        self,
        method: str,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> requests.Response:
        try:
            response = self._http.request(
                method,
                self.table_url,
                params=params,
                json=payload,
                headers=self._headers(prefer),
                timeout=self.config.request_timeout_seconds,
            )
        except requests.RequestException as e:
            raise TransportError(f"Could not reach the cloud: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("message") or response.text
            except ValueError:
                detail = response.text
            raise TransportError(
                f"HTTP {response.status_code}: {detail}", status=response.status_code
            )
        return response

    def upsert(self, rows: Sequence[RemoteRow]) -> None:
        if not rows:
            return
        self._request(
            "POST",
            payload=[row.as_dict() for row in rows],
            prefer="resolution=merge-duplicates,return=minimal",
        )
        logger.debug(f"Upserted {len(rows)} rows")

    def update_where_id_in(
        self, owner_id: str, ids: Sequence[str], patch: Dict[str, Any]
    ) -> None:
        if not ids:
            return
        self._request(
            "PATCH",
            params={"user_id": f"eq.{owner_id}", "id": _in_filter(ids)},
            payload=patch,
            prefer="return=minimal",
        )
        logger.debug(f"Patched {len(ids)} rows with {sorted(patch)}")

    def delete_where_owner(self, owner_id: str) -> None:
        self._request(
            "DELETE", params={"user_id": f"eq.{owner_id}"}, prefer="return=minimal"
        )
        logger.debug(f"Deleted all rows for owner {owner_id}")

    def insert(self, rows: Sequence[RemoteRow]) -> None:
        if not rows:
            return
        self._request(
            "POST", payload=[row.as_dict() for row in rows], prefer="return=minimal"
        )
        logger.debug(f"Inserted {len(rows)} rows")

    def _select(
        self,
        owner_id: str,
        columns: str,
        ids: Optional[Sequence[str]],
        include_deleted: bool,
    ) -> List[Dict[str, Any]]:
        if ids is not None and not ids:
            return []
        params = {"select": columns, "user_id": f"eq.{owner_id}"}
        if not include_deleted:
            params["is_deleted"] = "eq.false"
        if ids is not None:
            params["id"] = _in_filter(ids)

        response = self._request("GET", params=params)
        try:
            rows = response.json()
        except ValueError as e:
            raise TransportError(f"Cloud returned malformed JSON: {e}") from e
        if not isinstance(rows, list):
            raise TransportError(f"Cloud returned unexpected payload: {rows!r}")
        return rows

    def select(
        self,
        owner_id: str,
        ids: Optional[Sequence[str]] = None,
        include_deleted: bool = False,
    ) -> List[Dict[str, Any]]:
        return self._select(owner_id, "*", ids, include_deleted)

    def select_index(
        self, owner_id: str, ids: Optional[Sequence[str]] = None
    ) -> List[IndexEntry]:
        rows = self._select(owner_id, "id,last_modified_date", ids, False)
        return [
            (row["id"], row.get("last_modified_date"))
            for row in rows
            if isinstance(row, dict) and row.get("id")
        ]

    def ping(self, timeout: float) -> bool:
        try:
            response = self._http.get(
                f"{self.config.url}/auth/v1/health",
                headers={"apikey": self.config.anon_key},
                timeout=timeout,
            )
        except requests.RequestException as e:
            logger.info(f"Connectivity check failed: {e}")
            return False
        return response.status_code < 500
