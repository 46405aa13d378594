"""
Core logic: transport session, streaming bridge, model directory.
"""

import logging
from typing import AsyncGenerator, Callable, Optional

import httpx

from chat_bridge.adapters import ChatRequest, ProviderAdapter, adapter_for
from chat_bridge.config import (
    CONNECT_TIMEOUT_SECONDS,
    MAX_CONNECTIONS,
    MODEL_LIST_TIMEOUT_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    ConnectionConfig,
)
from chat_bridge.errors import (
    ConfigError,
    ProtocolError,
    TransportError,
    parse_error_message,
)

logger = logging.getLogger(__name__)


# Type for optional cancellation check function
CancellationCheck = Optional[Callable[[], bool]]


# ─────────────────────────────────────────────────────────────────────
# TRANSPORT SESSION
# ─────────────────────────────────────────────────────────────────────

def create_client(timeout_seconds: float = REQUEST_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    """
    Build the HTTP client shared by all requests of one session.

    Long read timeout for slow local generation, bounded connection pool,
    and no response caching.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_seconds, connect=CONNECT_TIMEOUT_SECONDS),
        limits=httpx.Limits(max_connections=MAX_CONNECTIONS),
        headers={"Cache-Control": "no-cache"},
    )


def _provider_name(adapter: ProviderAdapter) -> str:
    return adapter.config.provider.display_name


async def _raise_for_status(
    adapter: ProviderAdapter, request: ChatRequest, response: httpx.Response
) -> None:
    """Raise ProtocolError carrying the vendor's error message on non-2xx."""
    if response.is_success:
        return
    # Read the error body for streaming responses
    body = await response.aread()
    msg = parse_error_message(response.status_code, body)
    raise ProtocolError(
        f"{_provider_name(adapter)} error for '{request.body.get('model')}': {msg}",
        status_code=response.status_code,
    )


# ─────────────────────────────────────────────────────────────────────
# STREAMING BRIDGE
# ─────────────────────────────────────────────────────────────────────

class StreamingBridge:
    """
    Runs one generation against one provider.

    Owns the running text for the generation; the session reads
    `accumulated` to persist partial output after a cancel or failure.
    Single-use: a new generation needs a new bridge.
    """

    def __init__(self, adapter: ProviderAdapter, client: httpx.AsyncClient):
        self.adapter = adapter
        self._client = client
        self.accumulated = ""
        self.cancelled = False
        self.finished_by_marker = False
        self.skipped_lines = 0
        self._used = False

    def _claim(self) -> None:
        if self._used:
            raise RuntimeError("StreamingBridge is single-use; create a new one per generation")
        self._used = True

    async def stream(
        self,
        request: ChatRequest,
        should_cancel: CancellationCheck = None,
        on_connected: Optional[Callable[[], None]] = None,
    ) -> AsyncGenerator[str, None]:
        """
        POST the request and yield text deltas as they are parsed.

        Args:
            request: Prepared request from the adapter
            should_cancel: Checked before each line; True stops reading
            on_connected: Called once a 2xx status has been received

        Yields:
            Text deltas in wire order

        Raises:
            ProtocolError: non-2xx status
            TransportError: connection, timeout or read failure
        """
        self._claim()
        try:
            async with self._client.stream(
                "POST",
                request.url,
                json=request.body,
                headers=request.headers,
            ) as response:
                await _raise_for_status(self.adapter, request, response)
                if on_connected:
                    on_connected()

                async for line in response.aiter_lines():
                    if should_cancel and should_cancel():
                        self.cancelled = True
                        logger.debug("Cancellation requested, stopping stream")
                        break
                    if not line.strip():
                        continue

                    chunk = self.adapter.parse_stream_line(line)
                    if chunk.delta:
                        self.accumulated += chunk.delta
                        yield chunk.delta
                    elif not chunk.is_final:
                        self.skipped_lines += 1
                        logger.debug("Skipped stream line: %.200s", line)

                    if chunk.is_final:
                        self.finished_by_marker = True
                        break

        except httpx.TimeoutException as e:
            raise TransportError(
                f"{_provider_name(self.adapter)} timeout: {e}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"{_provider_name(self.adapter)} HTTP error: {e}"
            ) from e

    async def complete(self, request: ChatRequest) -> str:
        """
        Get a complete (non-streaming) response.
        Returns the full text, which also becomes `accumulated`.
        """
        self._claim()
        try:
            response = await self._client.post(
                request.url,
                json=request.body,
                headers=request.headers,
            )
        except httpx.TimeoutException as e:
            raise TransportError(
                f"{_provider_name(self.adapter)} timeout: {e}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"{_provider_name(self.adapter)} HTTP error: {e}"
            ) from e

        await _raise_for_status(self.adapter, request, response)
        try:
            data = response.json()
        except ValueError:
            logger.warning("Non-JSON completion body from %s", _provider_name(self.adapter))
            data = None

        text = self.adapter.parse_completion(data)
        self.accumulated += text
        return text


# ─────────────────────────────────────────────────────────────────────
# MODEL DIRECTORY
# ─────────────────────────────────────────────────────────────────────

async def list_models(
    config: ConnectionConfig,
    client: Optional[httpx.AsyncClient] = None,
) -> list[str]:
    """
    Fetch model names from the provider's listing endpoint.

    Fails soft: a missing credential, transport error, non-2xx status or
    unexpected body yields []. Empty means "unknown", not "no models".
    """
    adapter = adapter_for(config)
    try:
        headers = adapter.build_headers()
    except ConfigError as e:
        logger.debug(f"Skipping model list for {config.provider.value}: {e}")
        return []

    url = f"{config.url}{adapter.model_list_endpoint()}"
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=MODEL_LIST_TIMEOUT_SECONDS) as own_client:
                response = await own_client.get(url, headers=headers)
        else:
            response = await client.get(url, headers=headers, timeout=MODEL_LIST_TIMEOUT_SECONDS)
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        # Server unreachable or error - report no models
        logger.debug(f"Model list failed for {url}: {e}")
        return []

    return adapter.parse_model_list(data)
