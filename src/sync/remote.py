"""Remote data collaborator — the authoritative server the queue drains into.

Wraps the Dosekeeper API over ``httpx``.  The client is injectable so tests
can use ``httpx.MockTransport`` instead of the network.

Endpoints used (relative to ``remote_api_base_url``):
    GET  /sync/snapshot/      — current server snapshot
    PUT  /sync/snapshot/      — replace server snapshot with a merged one
    POST /sync/mutations/     — replay one queued mutation
    HEAD <remote_health_path> — connectivity probe
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from src.sync.base import DomainSnapshot, SyncQueueItem
from src.sync.errors import RemoteSyncError

logger = logging.getLogger("dosekeeper.sync.remote")


@dataclass
class NetworkStatus:
    """Result of a connectivity probe.

    Attributes:
        is_online: True if the health endpoint answered 2xx in time.
        rtt_ms:    Round-trip time of the probe, when online.
    """

    is_online: bool
    rtt_ms: float | None = None


class RemoteDataClient:
    """Fetches server snapshots and replays queued mutations.

    Usage::

        remote = RemoteDataClient("https://api.example.com/api", token="...")
        status = await remote.check_network_quality()
        if status.is_online:
            snapshot = await remote.fetch_snapshot()
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        health_path: str = "/health/",
        timeout_seconds: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url:        API root, without trailing slash.
            token:           Bearer token; omitted from requests when empty.
            health_path:     Path probed by ``check_network_quality``.
            timeout_seconds: Per-request timeout.
            http_client:     Optional pre-configured httpx client (for testing).
        """
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._health_path = health_path
        self._timeout = timeout_seconds
        self._http_client = http_client

    def _build_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _send(
        self, method: str, path: str, json: Any = None, timeout: float | None = None
    ) -> httpx.Response:
        url = self._url(path)
        kwargs: dict[str, Any] = {
            "headers": self._build_headers(),
            "timeout": timeout if timeout is not None else self._timeout,
        }
        if json is not None:
            kwargs["json"] = json

        if self._http_client:
            return await self._http_client.request(method, url, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.request(method, url, **kwargs)

    async def _request(self, method: str, path: str, json: Any = None) -> httpx.Response:
        """Send a request, translating transport and HTTP errors to RemoteSyncError."""
        try:
            response = await self._send(method, path, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteSyncError(
                f"{method} {path} returned {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteSyncError(f"{method} {path} failed: {exc}") from exc
        return response

    # ------------------------------------------------------------------
    # Collaborator interface
    # ------------------------------------------------------------------

    async def fetch_snapshot(self) -> DomainSnapshot:
        """Return the current server snapshot.

        Raises:
            RemoteSyncError: On transport failure, non-2xx, or a non-JSON body.
        """
        response = await self._request("GET", "/sync/snapshot/")
        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteSyncError(f"Snapshot response is not JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise RemoteSyncError(f"Snapshot response must be an object, got {type(data).__name__}")
        return DomainSnapshot.from_dict(data)

    async def push_snapshot(self, snapshot: DomainSnapshot) -> None:
        """Replace the server snapshot with a merged one."""
        await self._request("PUT", "/sync/snapshot/", json=snapshot.to_dict())

    async def submit_mutation(self, item: SyncQueueItem) -> None:
        """Replay one queued mutation against the server."""
        await self._request("POST", "/sync/mutations/", json=item.to_dict())
        logger.debug("Replayed %s (%s)", item.action, item.id)

    async def check_network_quality(self, timeout_seconds: float = 4.0) -> NetworkStatus:
        """Probe the health endpoint with HEAD and measure the round trip.

        Never raises; any failure reads as offline.
        """
        started = time.monotonic()
        try:
            response = await self._send("HEAD", self._health_path, timeout=timeout_seconds)
        except httpx.HTTPError as exc:
            logger.info("Network probe failed: %s", exc)
            return NetworkStatus(is_online=False)
        if not response.is_success:
            logger.info("Network probe returned %d", response.status_code)
            return NetworkStatus(is_online=False)
        rtt_ms = (time.monotonic() - started) * 1000.0
        return NetworkStatus(is_online=True, rtt_ms=round(rtt_ms, 1))
