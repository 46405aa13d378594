"""
ClaudeAdapter - Anthropic Messages API.

Cloud adapter: fixed HTTPS endpoint, x-api-key auth, typed SSE events.

    event: content_block_delta
    data: {"type":"content_block_delta","index":0,"delta":{"type":"text_delta","text":"Hi"}}
    event: message_stop
    data: {"type":"message_stop"}
"""

from typing import Any, Optional, Sequence

from chat_bridge.adapters.base import (
    SSE_DONE,
    accept_headers,
    collect_ids,
    encode_image,
    history_to_messages,
    load_json_object,
    require_api_key,
    strip_sse_framing,
)
from chat_bridge.adapters.schema import FINAL, SKIP, ChatRequest, StreamChunk
from chat_bridge.config import ANTHROPIC_VERSION, ConnectionConfig, ConversationTurn

CLAUDE_MAX_TOKENS = 4096


class ClaudeAdapter:
    """
    Anthropic implementation of ProviderAdapter.

    The system prompt goes in the top-level "system" field; Claude rejects
    a "system" role inside messages.
    """

    max_tokens = CLAUDE_MAX_TOKENS

    def __init__(self, config: ConnectionConfig):
        self.config = config

    def model_list_endpoint(self) -> str:
        return "/v1/models"

    def chat_endpoint(self, model: str) -> str:
        return "/v1/messages"

    def build_headers(self) -> dict[str, str]:
        return {
            "x-api-key": require_api_key(self.config),
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def build_chat_request(
        self,
        history: Sequence[ConversationTurn],
        prompt: str,
        model: str,
        image: Optional[bytes] = None,
        system_prompt: Optional[str] = None,
        stream: bool = True,
    ) -> ChatRequest:
        headers = {**self.build_headers(), **accept_headers(stream)}

        content: list[dict] = []
        if image:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": "image/jpeg",
                    "data": encode_image(image),
                },
            })
        content.append({"type": "text", "text": prompt})

        messages = history_to_messages(history)
        messages.append({"role": "user", "content": content})

        body: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "stream": stream,
            "temperature": self.config.temperature,
        }
        if system_prompt:
            body["system"] = system_prompt

        return ChatRequest(
            url=f"{self.config.url}{self.chat_endpoint(model)}",
            headers=headers,
            body=body,
            stream=stream,
        )

    def parse_model_list(self, data: Any) -> list[str]:
        return collect_ids(data, "data", "id")

    def parse_stream_line(self, line: str) -> StreamChunk:
        payload = strip_sse_framing(line)
        if payload is None:
            return SKIP
        if payload == SSE_DONE:
            return FINAL
        data = load_json_object(payload)
        if data is None:
            return SKIP

        event_type = data.get("type")
        if event_type == "content_block_delta":
            delta = data.get("delta")
            text = delta.get("text") if isinstance(delta, dict) else None
            if isinstance(text, str) and text:
                return StreamChunk(delta=text)
            return SKIP
        if event_type == "message_stop":
            return FINAL
        # message_start, content_block_start/stop, message_delta, ping
        return SKIP

    def parse_completion(self, data: Any) -> str:
        # {"content": [{"type": "text", "text": "..."}], ...}
        if not isinstance(data, dict) or not isinstance(data.get("content"), list):
            return ""
        return "".join(
            block["text"] for block in data["content"]
            if isinstance(block, dict) and block.get("type") == "text"
            and isinstance(block.get("text"), str)
        )

    def resolve_model(self, model: str, image: Optional[bytes] = None) -> str:
        return model

    def is_streaming_gated(self, model: str) -> bool:
        return False
