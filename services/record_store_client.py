"""HTTP client for the external record store (results, rosters, summaries).

Every record-store endpoint answers with a ``{code, message, data}`` envelope;
:meth:`RecordStoreClient.fetch` and :meth:`RecordStoreClient.submit` hand
back the unwrapped ``data`` so adapters only deal with documents. A missing
document (404) can be read as ``None`` with ``missing_ok=True``.

Transport concerns:
- static Bearer token auth
- retry with exponential backoff on network errors and 5xx, never on 4xx
- circuit breaker: fail fast after N consecutive failures
- connection-pool lifecycle tied to FastAPI lifespan
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from config.settings import get_settings

logger = logging.getLogger(__name__)

_client: RecordStoreClient | None = None

MAX_RETRIES = 3
RETRY_BASE_DELAY = 0.5  # seconds, doubles each attempt
CIRCUIT_OPEN_THRESHOLD = 5  # consecutive failures before circuit opens
CIRCUIT_RESET_TIMEOUT = 60  # seconds before a trial request is let through


class RecordStoreError(Exception):
    """Non-2xx answer from the record store."""

    def __init__(self, status_code: int, detail: str, url: str = ""):
        self.status_code = status_code
        self.detail = detail
        self.url = url
        super().__init__(f"Record store {status_code}: {detail} ({url})")

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500

    @classmethod
    def from_response(cls, response: httpx.Response) -> RecordStoreError:
        text = response.text or ""
        return cls(
            status_code=response.status_code,
            detail=text[:500] or f"HTTP {response.status_code}",
            url=str(response.url),
        )


class CircuitOpenError(Exception):
    """The circuit breaker is open; the record store is treated as down."""

    def __init__(self):
        super().__init__("Circuit breaker open: record store unavailable")


def unwrap(payload: Any) -> Any:
    """``data`` of a ``{code, message, data}`` envelope, or the payload itself."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


class RecordStoreClient:
    """Async record-store client with retry, circuit breaker and envelope handling."""

    def __init__(self) -> None:
        settings = get_settings()
        self._base_url = f"{settings.record_store_base_url.rstrip('/')}{settings.record_store_api_prefix}"
        self._timeout = settings.record_store_timeout
        self._access_token = settings.record_store_access_token
        self._http: httpx.AsyncClient | None = None
        self._consecutive_failures = 0
        self._circuit_opened_at: float | None = None

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        if self._http is not None:
            return
        headers = {"Authorization": f"Bearer {self._access_token}"} if self._access_token else {}
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=headers,
            limits=httpx.Limits(max_connections=30, max_keepalive_connections=15),
        )
        logger.info("RecordStoreClient started, base_url=%s", self._base_url)

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info("RecordStoreClient closed")

    # -- document API --------------------------------------------------------

    async def fetch(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        missing_ok: bool = False,
    ) -> Any:
        """GET *path* and return the unwrapped ``data``.

        With ``missing_ok`` a 404 yields ``None`` instead of raising.

        Raises:
            RecordStoreError: Non-2xx answer (after retries for 5xx).
            CircuitOpenError: The circuit breaker is open.
        """
        try:
            payload = await self._send("GET", path, params=params)
        except RecordStoreError as exc:
            if missing_ok and exc.status_code == 404:
                logger.debug("GET %s: not found", path)
                return None
            raise
        return unwrap(payload)

    async def submit(self, path: str, json_body: dict[str, Any] | None = None) -> Any:
        """POST *json_body* to *path* and return the unwrapped ``data``."""
        return unwrap(await self._send("POST", path, json_body=json_body))

    # -- circuit breaker -----------------------------------------------------

    @property
    def circuit_open(self) -> bool:
        if self._consecutive_failures < CIRCUIT_OPEN_THRESHOLD:
            return False
        opened = self._circuit_opened_at
        if opened is not None and time.monotonic() - opened >= CIRCUIT_RESET_TIMEOUT:
            logger.info("Circuit breaker half-open, letting a trial request through")
            return False
        return True

    def _record_success(self) -> None:
        if self._consecutive_failures:
            logger.info("Record store back after %d failed attempt(s)", self._consecutive_failures)
        self._consecutive_failures = 0
        self._circuit_opened_at = None

    def _record_failure(self) -> None:
        self._consecutive_failures += 1
        if self._consecutive_failures >= CIRCUIT_OPEN_THRESHOLD and self._circuit_opened_at is None:
            self._circuit_opened_at = time.monotonic()
            logger.warning(
                "Circuit breaker OPEN after %d consecutive failures; next trial in %ds",
                self._consecutive_failures, CIRCUIT_RESET_TIMEOUT,
            )

    # -- transport -----------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        if self.circuit_open:
            raise CircuitOpenError()
        http = self._require_http()

        attempt = 0
        while True:
            attempt += 1
            started = time.monotonic()
            try:
                if method == "GET":
                    response = await http.get(path, params=params)
                else:
                    response = await http.post(path, json=json_body)
            except httpx.TransportError as exc:
                self._record_failure()
                logger.warning(
                    "%s %s: network error after %.0fms (%s), attempt %d/%d",
                    method, path, (time.monotonic() - started) * 1000, exc, attempt, MAX_RETRIES,
                )
                if attempt >= MAX_RETRIES:
                    raise
                await self._backoff(attempt)
                continue

            logger.info(
                "%s %s -> %d (%.0fms)",
                method, path, response.status_code, (time.monotonic() - started) * 1000,
            )
            if response.status_code < 400:
                self._record_success()
                return response.json() if response.text else {}

            error = RecordStoreError.from_response(response)
            if not error.retryable:
                # the store answered; a 4xx says nothing about its health
                self._record_success()
                raise error
            self._record_failure()
            if attempt >= MAX_RETRIES:
                raise error
            logger.warning("%s %s -> %d, retry %d/%d", method, path, error.status_code, attempt, MAX_RETRIES)
            await self._backoff(attempt)

    @staticmethod
    async def _backoff(attempt: int) -> None:
        await asyncio.sleep(RETRY_BASE_DELAY * (2 ** (attempt - 1)))

    def _require_http(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("RecordStoreClient not started; await client.start() first")
        return self._http


def get_record_store_client() -> RecordStoreClient:
    """Module-level RecordStoreClient singleton (created on first use)."""
    global _client
    if _client is None:
        _client = RecordStoreClient()
    return _client
