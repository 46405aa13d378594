"""
ProviderAdapter Protocol - defines the contract for chat backends.

This is the WHAT (interface), not the HOW (implementation).
See ollama.py, lmstudio.py, claude.py and openai.py for the variants.

The helpers below cover the framing shared by the SSE-style providers.
"""

import base64
import json
import logging
from typing import Any, Optional, Protocol, Sequence

from chat_bridge.adapters.schema import ChatRequest, StreamChunk
from chat_bridge.config import ConnectionConfig, ConversationTurn
from chat_bridge.errors import ConfigError

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


class ProviderAdapter(Protocol):
    """
    Contract for chat backends.

    Implementations must provide:
    - Endpoint selection (model_list_endpoint, chat_endpoint)
    - Model resolution (resolve_model)
    - Request building (build_headers, build_chat_request)
    - Response parsing (parse_model_list, parse_stream_line, parse_completion)

    Adapters are stateless apart from their ConnectionConfig. A provider
    switch builds a new adapter instead of reconfiguring one.
    """

    config: ConnectionConfig

    def model_list_endpoint(self) -> str:
        """Path of the model-listing endpoint, e.g. "/v1/models"."""
        ...

    def chat_endpoint(self, model: str) -> str:
        """Path of the chat endpoint for this model."""
        ...

    def build_headers(self) -> dict[str, str]:
        """
        Return auth and content headers.

        Raises:
            ConfigError: if the provider needs an API key and none is set
        """
        ...

    def build_chat_request(
        self,
        history: Sequence[ConversationTurn],
        prompt: str,
        model: str,
        image: Optional[bytes] = None,
        system_prompt: Optional[str] = None,
        stream: bool = True,
    ) -> ChatRequest:
        """
        Build the provider-specific request for a new prompt.

        Args:
            history: Prior turns, oldest first. Must not contain the new prompt.
            prompt: The new user message
            model: Target model name
            image: Optional raw image bytes attached to the new prompt
            system_prompt: Optional instruction injected the provider's way
            stream: Request a streamed response
        """
        ...

    def parse_model_list(self, data: Any) -> list[str]:
        """Extract model identifiers; [] on any shape mismatch."""
        ...

    def parse_stream_line(self, line: str) -> StreamChunk:
        """Parse one wire line. Never raises on malformed input."""
        ...

    def parse_completion(self, data: Any) -> str:
        """Extract the full text of a non-streaming response."""
        ...

    def resolve_model(self, model: str, image: Optional[bytes] = None) -> str:
        """The model that will actually answer, e.g. a vision model when an image is attached."""
        ...

    def is_streaming_gated(self, model: str) -> bool:
        """True when streaming for this model may be refused by the provider."""
        ...


# ─────────────────────────────────────────────────────────────────────
# SHARED HELPERS
# ─────────────────────────────────────────────────────────────────────

def require_api_key(config: ConnectionConfig) -> str:
    """Return the API key or fail fast before any network call."""
    if not config.api_key:
        raise ConfigError(f"{config.provider.display_name} key is required")
    return config.api_key


def accept_headers(stream: bool) -> dict[str, str]:
    """Headers negotiating an event stream, or plain JSON for one-shot calls."""
    if not stream:
        return {"Accept": "application/json"}
    return {
        "Accept": "text/event-stream",
        "Connection": "keep-alive",
        "Cache-Control": "no-cache",
    }


def strip_sse_framing(line: str) -> Optional[str]:
    """
    Strip "data: " framing from an SSE line.

    Returns the payload, SSE_DONE for the sentinel, or None for lines that
    carry no data (event:, comments, blanks, anything that is not JSON).
    Bare JSON lines are passed through unchanged.
    """
    line = line.strip()
    if line.startswith(SSE_DATA_PREFIX):
        payload = line[len(SSE_DATA_PREFIX):].strip()
        return payload or None
    if line.startswith("{"):
        return line
    return None


def load_json_object(payload: str) -> Optional[dict]:
    """Decode a JSON object, returning None for anything else."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed stream line: %.200s", payload)
        return None
    if not isinstance(data, dict):
        return None
    return data


def encode_image(image: bytes) -> str:
    """Base64-encode raw image bytes for inline transport."""
    return base64.b64encode(image).decode("utf-8")


def image_data_url(image: bytes, mime_type: str = "image/jpeg") -> str:
    """Encode image bytes as a data URL for OpenAI-style vision content."""
    return f"data:{mime_type};base64,{encode_image(image)}"


def history_to_messages(history: Sequence[ConversationTurn]) -> list[dict]:
    """Convert prior turns to plain-text role/content messages."""
    return [{"role": turn.role, "content": turn.content} for turn in history]


def collect_ids(data: Any, list_key: str, id_key: str) -> list[str]:
    """Collect data[list_key][*][id_key] strings; [] on shape mismatch."""
    if not isinstance(data, dict):
        return []
    items = data.get(list_key)
    if not isinstance(items, list):
        return []
    return [
        item[id_key] for item in items
        if isinstance(item, dict) and isinstance(item.get(id_key), str)
    ]


def parse_chat_choice(data: dict) -> StreamChunk:
    """
    Parse an OpenAI-style chat-completion chunk.

    {"choices": [{"delta": {"content": "..."}, "finish_reason": "stop"}]}
    """
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return StreamChunk()
    choice = choices[0]
    delta = choice.get("delta")
    content = delta.get("content") if isinstance(delta, dict) else None
    return StreamChunk(
        delta=content if isinstance(content, str) and content else None,
        is_final=choice.get("finish_reason") == "stop",
    )
