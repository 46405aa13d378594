"""
OllamaAdapter - local generation server speaking newline-delimited JSON.

No auth, user-editable address. Every response line is a bare JSON object:
    {"message": {"role": "assistant", "content": "Hi"}, "done": false}
The last line carries "done": true.
"""

from typing import Any, Optional, Sequence

from chat_bridge.adapters.base import (
    collect_ids,
    encode_image,
    history_to_messages,
    load_json_object,
)
from chat_bridge.adapters.schema import SKIP, ChatRequest, StreamChunk
from chat_bridge.config import ConnectionConfig, ConversationTurn


class OllamaAdapter:
    """Ollama implementation of ProviderAdapter."""

    def __init__(self, config: ConnectionConfig):
        self.config = config

    def model_list_endpoint(self) -> str:
        return "/api/tags"

    def chat_endpoint(self, model: str) -> str:
        return "/api/chat"

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

        current: dict[str, Any] = {"role": "user", "content": prompt}
        if image:
            current["images"] = [encode_image(image)]
        messages.append(current)

        body = {
            "model": model,
            "messages": messages,
            "stream": stream,
            "temperature": self.config.temperature,
            "top_p": self.config.top_p,
            "top_k": int(self.config.top_k),
        }
        return ChatRequest(
            url=f"{self.config.url}{self.chat_endpoint(model)}",
            # ND-JSON, so never an event stream
            headers={
                **self.build_headers(),
                "Accept": "application/json",
                "Cache-Control": "no-cache",
            },
            body=body,
            stream=stream,
        )

    def parse_model_list(self, data: Any) -> list[str]:
        # {"models": [{"name": "llama3.2:latest", ...}, ...]}
        return collect_ids(data, "models", "name")

    def parse_stream_line(self, line: str) -> StreamChunk:
        data = load_json_object(line.strip())
        if data is None:
            return SKIP

        message = data.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        return StreamChunk(
            delta=content if isinstance(content, str) and content else None,
            is_final=data.get("done") is True,
        )

    def parse_completion(self, data: Any) -> str:
        if not isinstance(data, dict):
            return ""
        message = data.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        return ""

    def resolve_model(self, model: str, image: Optional[bytes] = None) -> str:
        return model

    def is_streaming_gated(self, model: str) -> bool:
        return False
