"""
HTTP Snapshot Store

The canonical remote backend: a single endpoint (typically a Google Apps
Script web app) that reads and writes one JSON blob per account key.

Wire contract:
- GET  <endpoint>?key=<accountKey>  -> {"trips": [...], "categories": [...]}
                                       or an empty body / null / {} for a new account
- POST <endpoint>  body {"key", "data"} -> {"success": bool, "error"?: str}

TRADEOFFS:
- Loads are retried on connection-level errors; an answer from the server,
  good or bad, is never retried.
- Saves are never retried here. The sync engine reports a failed save and
  leaves the optimistic local state as the source of truth.
"""

import json
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
import structlog
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tripbudget.models.trip import AccountSnapshot
from tripbudget.services.storage.interface import (
    RemoteFetchFailed,
    RemotePersistFailed,
    SnapshotStoreInterface,
    StorageConnectionError,
)


logger = structlog.get_logger(__name__)


class HttpSnapshotStore(SnapshotStoreInterface):
    """
    httpx implementation of the snapshot store.

    Pass an `httpx.AsyncClient` to share a connection pool (or a mock
    transport in tests); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        endpoint_url: str,
        timeout_seconds: float = 15.0,
        fetch_attempts: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not endpoint_url:
            raise StorageConnectionError("Remote store endpoint URL is not configured")
        self._endpoint_url = endpoint_url
        self._timeout = timeout_seconds
        self._fetch_attempts = fetch_attempts
        self._client = client

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def _get(self, account_key: str) -> httpx.Response:
        @retry(
            stop=stop_after_attempt(self._fetch_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        async def attempt() -> httpx.Response:
            async with self._session() as client:
                return await client.get(self._endpoint_url, params={"key": account_key})

        return await attempt()

    async def fetch_snapshot(self, account_key: str) -> Optional[AccountSnapshot]:
        """Fetch the snapshot for an account key; None means a new account."""
        try:
            response = await self._get(account_key)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteFetchFailed(
                f"Remote store responded with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise RemoteFetchFailed(f"Could not reach remote store: {e}") from e

        if not response.content.strip():
            return None

        try:
            payload = response.json()
        except json.JSONDecodeError as e:
            raise RemoteFetchFailed(f"Remote store returned invalid JSON: {e}") from e

        if not payload:
            return None
        if not isinstance(payload, dict):
            raise RemoteFetchFailed(
                f"Remote store returned {type(payload).__name__}, expected an object"
            )
        if "error" in payload and "trips" not in payload:
            raise RemoteFetchFailed(f"Remote store error: {payload['error']}")

        try:
            return AccountSnapshot.model_validate(payload)
        except ValidationError as e:
            raise RemoteFetchFailed(f"Remote snapshot is malformed: {e}") from e

    async def save_snapshot(self, account_key: str, snapshot: AccountSnapshot) -> bool:
        """Replace the stored snapshot; raises RemotePersistFailed on any failure."""
        body = {"key": account_key, "data": snapshot.to_wire()}

        try:
            async with self._session() as client:
                # Apps Script endpoints skip CORS preflight for text/plain bodies
                response = await client.post(
                    self._endpoint_url,
                    content=json.dumps(body),
                    headers={"Content-Type": "text/plain;charset=utf-8"},
                )
        except httpx.HTTPError as e:
            raise RemotePersistFailed(f"Could not reach remote store: {e}") from e

        result = self._parse_result(response)

        if response.is_error:
            raise RemotePersistFailed(
                result.get("error")
                or f"Failed to save data. Server responded with status {response.status_code}"
            )
        if not result.get("success"):
            raise RemotePersistFailed(
                result.get("error") or "An unknown error occurred while saving."
            )

        logger.debug("snapshot_saved", trips=len(snapshot.trips))
        return True

    @staticmethod
    def _parse_result(response: httpx.Response) -> dict:
        """Best-effort decode of the save response body."""
        try:
            result = response.json()
        except json.JSONDecodeError:
            return {}
        return result if isinstance(result, dict) else {}
