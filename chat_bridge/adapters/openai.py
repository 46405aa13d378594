"""
OpenAIAdapter - OpenAI cloud API with two sub-APIs.

Legacy models use /v1/chat/completions with the chat-array request and
chunk shape. Next-generation models (name prefix "gpt-5") use /v1/responses,
whose request carries a single "input" array of content parts and whose
stream is a sequence of typed events:

    data: {"type":"response.output_text.delta","delta":"Hi"}
    data: {"type":"response.completed","response":{...}}

Streaming on /v1/responses can be refused for accounts without organization
verification, so is_streaming_gated() flags these models for the session's
non-streaming fallback.
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
    require_api_key,
    strip_sse_framing,
)
from chat_bridge.adapters.lmstudio import build_user_content, parse_chat_completion
from chat_bridge.adapters.schema import FINAL, SKIP, ChatRequest, StreamChunk
from chat_bridge.config import (
    OPENAI_VISION_MODEL,
    ConnectionConfig,
    ConversationTurn,
    is_next_gen_model,
)

OPENAI_MAX_TOKENS = 4096
CHAT_COMPLETIONS_PATH = "/v1/chat/completions"
RESPONSES_PATH = "/v1/responses"


class OpenAIAdapter:
    """OpenAI implementation of ProviderAdapter."""

    max_tokens = OPENAI_MAX_TOKENS

    def __init__(self, config: ConnectionConfig):
        self.config = config

    def model_list_endpoint(self) -> str:
        return "/v1/models"

    def chat_endpoint(self, model: str) -> str:
        if is_next_gen_model(model):
            return RESPONSES_PATH
        return CHAT_COMPLETIONS_PATH

    def build_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {require_api_key(self.config)}",
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
        if is_next_gen_model(model):
            body = self._responses_body(history, prompt, model, image, system_prompt, stream)
        else:
            body = self._chat_body(history, prompt, model, image, system_prompt, stream)

        return ChatRequest(
            url=f"{self.config.url}{self.chat_endpoint(model)}",
            headers=headers,
            body=body,
            stream=stream,
        )

    def _chat_body(self, history, prompt, model, image, system_prompt, stream) -> dict:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend(history_to_messages(history))
        messages.append({"role": "user", "content": build_user_content(prompt, image)})
        return {
            "model": model,
            "messages": messages,
            "stream": stream,
            "temperature": self.config.temperature,
            "max_tokens": self.max_tokens,
        }

    def _responses_body(self, history, prompt, model, image, system_prompt, stream) -> dict:
        items = []
        for turn in history:
            part_type = "input_text" if turn.role == "user" else "output_text"
            items.append({
                "role": turn.role,
                "content": [{"type": part_type, "text": turn.content}],
            })

        content: list[dict] = [{"type": "input_text", "text": prompt}]
        if image:
            content.append({"type": "input_image", "image_url": image_data_url(image)})
        items.append({"role": "user", "content": content})

        body: dict[str, Any] = {"model": model, "input": items, "stream": stream}
        if system_prompt:
            body["instructions"] = system_prompt
        return body

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

        # Legacy chat-completions chunk
        if "choices" in data:
            return parse_chat_choice(data)

        # Typed Responses event
        event_type = data.get("type")
        if event_type == "response.output_text.delta":
            delta = data.get("delta")
            if isinstance(delta, str) and delta:
                return StreamChunk(delta=delta)
            return SKIP
        if event_type == "response.completed":
            return FINAL
        return SKIP

    def parse_completion(self, data: Any) -> str:
        if not isinstance(data, dict):
            return ""
        if "choices" in data:
            return parse_chat_completion(data)

        # {"output": [{"type": "message", "content": [{"type": "output_text", "text": "..."}]}]}
        output = data.get("output")
        if not isinstance(output, list):
            return ""
        texts = []
        for item in output:
            if not isinstance(item, dict) or item.get("type") != "message":
                continue
            for part in item.get("content") or []:
                if (
                    isinstance(part, dict)
                    and part.get("type") == "output_text"
                    and isinstance(part.get("text"), str)
                ):
                    texts.append(part["text"])
        return "".join(texts)

    def resolve_model(self, model: str, image: Optional[bytes] = None) -> str:
        # Legacy chat models need the vision model for image input
        if image and not is_next_gen_model(model):
            return OPENAI_VISION_MODEL
        return model

    def is_streaming_gated(self, model: str) -> bool:
        return is_next_gen_model(model)
