"""
LMStudioAdapter - local OpenAI-compatible server.

Speaks the chat-completions dialect over SSE-style lines:
    data: {"choices":[{"delta":{"content":"Hi"},"finish_reason":null}]}
    data: [DONE]
"""

from typing import Any, Optional, Sequence

from chat_bridge.adapters.base import (
    SSE_DONE,
    accept_headers,
    collect_ids,
    history_to_messages,
    image_data_url,
    load_json_object,
    parse_chat_choice,
    strip_sse_framing,
)
from chat_bridge.adapters.schema import FINAL, SKIP, ChatRequest, StreamChunk
from chat_bridge.config import ConnectionConfig, ConversationTurn


LMSTUDIO_MAX_TOKENS = 2048


def build_user_content(prompt: str, image: Optional[bytes]) -> Any:
    """Plain string, or text + image_url parts when an image is attached."""
    if not image:
        return prompt
    return [
        {"type": "text", "text": prompt},
        {"type": "image_url", "image_url": {"url": image_data_url(image)}},
    ]


def parse_chat_completion(data: Any) -> str:
    """Extract choices[0].message.content from a non-streaming body."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


class LMStudioAdapter:
    """LM Studio implementation of ProviderAdapter."""

    max_tokens = LMSTUDIO_MAX_TOKENS

    def __init__(self, config: ConnectionConfig):
        self.config = config

    def model_list_endpoint(self) -> str:
        return "/v1/models"

    def chat_endpoint(self, model: str) -> str:
        return "/v1/chat/completions"

    def build_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def build_chat_request(
        self,
        history: Sequence[ConversationTurn],
        prompt: str,
        model: str,
        image: Optional[bytes] = None,
        system_prompt: Optional[str] = None,
        stream: bool = True,
    ) -> ChatRequest:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend(history_to_messages(history))
        messages.append({"role": "user", "content": build_user_content(prompt, image)})

        return ChatRequest(
            url=f"{self.config.url}{self.chat_endpoint(model)}",
            headers={**self.build_headers(), **accept_headers(stream)},
            body={
                "model": model,
                "messages": messages,
                "stream": stream,
                "temperature": self.config.temperature,
                "max_tokens": self.max_tokens,
            },
            stream=stream,
        )

    def parse_model_list(self, data: Any) -> list[str]:
        # {"data": [{"id": "model-name", ...}, ...]}
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
        return parse_chat_choice(data)

    def parse_completion(self, data: Any) -> str:
        return parse_chat_completion(data)

    def resolve_model(self, model: str, image: Optional[bytes] = None) -> str:
        return model

    def is_streaming_gated(self, model: str) -> bool:
        return False
