"""
GenerationSession - conversation-level control over the StreamingBridge.

Handles history injection, single-flight generation, cooperative
cancellation, the non-streaming fallback for streaming-gated models, and
persistence of every outcome (including partial text).

All session state is touched only from the event loop that calls
generate()/cancel(); the driving task never shares its running text.
"""

import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import AsyncIterator, Optional

import httpx
from pydantic import BaseModel

from chat_bridge.adapters import adapter_for
from chat_bridge.config import (
    CANCELLED_MARKER,
    DEFAULT_SYSTEM_PROMPT,
    ERROR_MARKER,
    ConnectionConfig,
    ConversationTurn,
    GenerationRequest,
)
from chat_bridge.core import StreamingBridge, create_client
from chat_bridge.errors import ChatBridgeError, ProtocolError, TransportError
from chat_bridge.history import ConversationStore

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"


class OutcomeStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class GenerationOutcome(BaseModel):
    """Terminal state of one generation."""
    status: OutcomeStatus
    text: str = ""  # Accumulated text; partial on cancel/failure
    error: Optional[str] = None
    model: str
    elapsed_seconds: float = 0.0
    tokens_per_second: float = 0.0
    used_fallback: bool = False


def approximate_tokens(delta: str) -> int:
    """Word-count token estimate; every delta counts for at least one."""
    return max(1, len(delta.split()))


def build_annotations(text: str, model: str, tokens_per_second: float) -> list[str]:
    """Trailing model-name and throughput lines, unless the text already has them."""
    annotations = []
    if f"[{model}]" not in text:
        annotations.append(f"\n\n**[{model}]**")
    if "tokens/sec" not in text and "Performance:" not in text:
        annotations.append(f"\n   {tokens_per_second:.1f} tokens/sec")
    return annotations


_END = object()


class Generation:
    """
    Handle for one generation.

    Async-iterable (once) over text deltas in wire order. `await result()`
    returns the GenerationOutcome once the driving task has finished.
    """

    def __init__(self, request: GenerationRequest, user_turn: Optional[ConversationTurn] = None):
        self.request = request
        self.user_turn = user_turn
        self.state = SessionState.SENDING
        self.outcome: Optional[GenerationOutcome] = None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._cancel_requested = False
        self._iterated = False
        self._task: Optional[asyncio.Task] = None

    @property
    def model(self) -> str:
        return self.request.model

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancel(self) -> None:
        """Request cooperative cancellation; takes effect at the next line."""
        self._cancel_requested = True

    def _publish(self, delta: str) -> None:
        self._queue.put_nowait(delta)

    def _close(self) -> None:
        self._queue.put_nowait(_END)

    def __aiter__(self) -> AsyncIterator[str]:
        if self._iterated:
            raise RuntimeError("Generation output can only be iterated once")
        self._iterated = True
        return self._drain()

    async def _drain(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item

    async def result(self) -> GenerationOutcome:
        return await self._task


class GenerationSession:
    """
    Chat session bound to one ConnectionConfig and one conversation.

    Build a new session when the provider, address or key changes; the
    config is never mutated in place.

    Usage:
        session = GenerationSession(config, store, group_id)
        generation = session.generate("Hello", model="llama3.2")
        async for delta in generation:
            print(delta, end="")
        outcome = await generation.result()
    """

    def __init__(
        self,
        config: ConnectionConfig,
        store: ConversationStore,
        group_id: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        system_prompt: Optional[str] = DEFAULT_SYSTEM_PROMPT,
        annotate: bool = True,
    ):
        self.config = config
        self.adapter = adapter_for(config)
        self.store = store
        self.group_id = group_id or str(uuid.uuid4())
        self.system_prompt = system_prompt
        self.annotate = annotate
        self.turns: list[ConversationTurn] = []
        self.state = SessionState.IDLE
        self._client = client
        self._owns_client = client is None
        self._current: Optional[Generation] = None

    @property
    def is_generating(self) -> bool:
        return self._current is not None and not self._current.done

    def load_history(self) -> list[ConversationTurn]:
        """Rebuild in-memory turns from the store (e.g. when reopening a chat)."""
        self.turns = self._history_turns()
        return list(self.turns)

    def _history_turns(self) -> list[ConversationTurn]:
        turns = []
        for entry in self.store.fetch_history(self.group_id):
            turns.extend(entry.to_turns())
        return turns

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = create_client(self.config.timeout_seconds)
        return self._client

    def generate(
        self,
        prompt: str,
        image: Optional[bytes] = None,
        model: Optional[str] = None,
    ) -> Generation:
        """
        Start a generation and return its handle.

        Must be called from the event loop. Any active generation is
        cancelled first (fire-and-forget).

        Raises:
            ConfigError: cloud provider without an API key; nothing is sent
        """
        self.adapter.build_headers()

        if self.is_generating:
            logger.debug("Superseding active generation for %s", self._current.model)
            self._current.cancel()

        request = GenerationRequest(
            prompt=prompt,
            model=self.adapter.resolve_model(model or self.config.provider.default_model, image),
            image=image,
            history=tuple(self._history_turns()),
        )
        user_turn = ConversationTurn(role="user", content=prompt, image=image)
        self.turns.append(user_turn)

        generation = Generation(request, user_turn)
        self._current = generation
        self.state = SessionState.SENDING
        generation._task = asyncio.create_task(self._run(generation))
        return generation

    def cancel(self) -> None:
        """Cancel the active generation. No-op when idle."""
        if not self.is_generating:
            return
        logger.debug("Cancelling generation for %s", self._current.model)
        self._current.cancel()

    async def aclose(self) -> None:
        """Cancel any active generation and close the client if we own it."""
        self.cancel()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # ─────────────────────────────────────────────────────────────────
    # DRIVING TASK
    # ─────────────────────────────────────────────────────────────────

    def _set_state(self, generation: Generation, state: SessionState) -> None:
        generation.state = state
        # A superseded generation no longer owns the session state
        if self._current is generation:
            self.state = state

    async def _run(self, generation: Generation) -> GenerationOutcome:
        request = generation.request
        delivered: list[str] = []
        token_count = 0
        used_fallback = False
        error: Optional[str] = None
        start = time.monotonic()

        def forward(delta: str) -> None:
            nonlocal token_count
            delivered.append(delta)
            token_count += approximate_tokens(delta)
            generation._publish(delta)

        try:
            try:
                bridge = StreamingBridge(self.adapter, self._get_client())
                chat_request = self.adapter.build_chat_request(
                    request.history, request.prompt, request.model,
                    image=request.image, system_prompt=self.system_prompt, stream=True,
                )
                try:
                    async for delta in bridge.stream(
                        chat_request,
                        should_cancel=lambda: generation.cancel_requested,
                        on_connected=lambda: self._set_state(generation, SessionState.STREAMING),
                    ):
                        forward(delta)
                except (TransportError, ProtocolError) as e:
                    if (
                        not self.adapter.is_streaming_gated(request.model)
                        or bridge.accumulated
                        or generation.cancel_requested
                    ):
                        raise
                    logger.info(f"Streaming failed for {request.model} ({e}); retrying without streaming")
                    used_fallback = True
                    fallback = StreamingBridge(self.adapter, self._get_client())
                    text = await fallback.complete(
                        self.adapter.build_chat_request(
                            request.history, request.prompt, request.model,
                            image=request.image, system_prompt=self.system_prompt, stream=False,
                        )
                    )
                    if text and not generation.cancel_requested:
                        forward(text)
            except ChatBridgeError as e:
                error = str(e)
                logger.warning(f"Generation failed for {request.model}: {e}")

            return self._finish(generation, "".join(delivered), error, token_count, start, used_fallback)
        finally:
            # Always terminate the delta stream
            generation._close()
            generation.state = SessionState.IDLE
            if self._current is generation:
                self.state = SessionState.IDLE

    def _add_answer_turn(self, generation: Generation, turn: ConversationTurn) -> None:
        """Place the answer right after its own prompt, even if a newer prompt followed."""
        for index, existing in enumerate(self.turns):
            if existing is generation.user_turn:
                self.turns.insert(index + 1, turn)
                return
        # Prompt no longer in memory (load_history() ran meanwhile)
        self.turns.append(turn)

    def _finish(
        self,
        generation: Generation,
        text: str,
        error: Optional[str],
        token_count: int,
        start: float,
        used_fallback: bool,
    ) -> GenerationOutcome:
        request = generation.request
        elapsed = time.monotonic() - start
        tokens_per_second = token_count / elapsed if elapsed > 0 else 0.0

        if generation.cancel_requested:
            status = OutcomeStatus.CANCELLED
            answer = text + CANCELLED_MARKER if text else ""
        elif error is not None:
            status = OutcomeStatus.FAILED
            answer = text + ERROR_MARKER if text else ""
        else:
            status = OutcomeStatus.COMPLETED
            answer = text
            if self.annotate:
                for line in build_annotations(text, request.model, tokens_per_second):
                    generation._publish(line)
                    answer += line

        if answer:
            self._add_answer_turn(generation, ConversationTurn(role="assistant", content=answer))
            self.store.append_turn(
                self.group_id,
                question=request.prompt,
                answer=answer,
                image=request.image,
                engine=request.model,
                provider=self.config.provider,
                model=request.model,
            )

        outcome = GenerationOutcome(
            status=status,
            text=text,
            error=error if status is OutcomeStatus.FAILED else None,
            model=request.model,
            elapsed_seconds=elapsed,
            tokens_per_second=tokens_per_second,
            used_fallback=used_fallback,
        )
        generation.outcome = outcome
        logger.debug(f"Generation for {request.model} finished: {status.value}")
        return outcome
