"""Shared test fixtures for chat-bridge tests."""

import pytest

from chat_bridge.config import ConnectionConfig, ConversationTurn, Provider, Settings


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

OLLAMA_URL = "http://localhost:11434"
LMSTUDIO_URL = "http://localhost:1234"
CLAUDE_URL = "https://api.anthropic.com:443"
OPENAI_URL = "https://api.openai.com:443"

TEST_API_KEY = "test-key-123"

# Recorded streams: (lines as sent on the wire, expected concatenated text)

OLLAMA_STREAM_LINES = [
    '{"model":"llama3.2","created_at":"2024-06-01T10:00:00Z","message":{"role":"assistant","content":"Hi"},"done":false}',
    '{"model":"llama3.2","created_at":"2024-06-01T10:00:00Z","message":{"role":"assistant","content":" there"},"done":false}',
    '{"model":"llama3.2","created_at":"2024-06-01T10:00:00Z","message":{"role":"assistant","content":"!"},"done":false}',
    '{"model":"llama3.2","created_at":"2024-06-01T10:00:01Z","message":{"role":"assistant","content":""},"done":true,"total_duration":123456,"eval_count":3}',
]
OLLAMA_EXPECTED_TEXT = "Hi there!"

LMSTUDIO_STREAM_LINES = [
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"role":"assistant","content":""},"finish_reason":null}]}',
    '',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"content":"The"},"finish_reason":null}]}',
    '',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"content":" capital"},"finish_reason":null}]}',
    '',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"content":" of France"},"finish_reason":null}]}',
    '',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"content":" is Paris."},"finish_reason":null}]}',
    '',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{},"finish_reason":"stop"}]}',
    '',
    'data: [DONE]',
    '',
]
LMSTUDIO_EXPECTED_TEXT = "The capital of France is Paris."

CLAUDE_STREAM_LINES = [
    'event: message_start',
    'data: {"type":"message_start","message":{"id":"msg_01","type":"message","role":"assistant","content":[],"model":"claude-3-5-sonnet-20241022"}}',
    '',
    'event: content_block_start',
    'data: {"type":"content_block_start","index":0,"content_block":{"type":"text","text":""}}',
    '',
    'event: ping',
    'data: {"type": "ping"}',
    '',
    'event: content_block_delta',
    'data: {"type":"content_block_delta","index":0,"delta":{"type":"text_delta","text":"Hello"}}',
    '',
    'event: content_block_delta',
    'data: {"type":"content_block_delta","index":0,"delta":{"type":"text_delta","text":", world"}}',
    '',
    'event: content_block_stop',
    'data: {"type":"content_block_stop","index":0}',
    '',
    'event: message_delta',
    'data: {"type":"message_delta","delta":{"stop_reason":"end_turn"},"usage":{"output_tokens":4}}',
    '',
    'event: message_stop',
    'data: {"type":"message_stop"}',
    '',
]
CLAUDE_EXPECTED_TEXT = "Hello, world"

OPENAI_RESPONSES_STREAM_LINES = [
    'event: response.created',
    'data: {"type":"response.created","response":{"id":"resp_1","status":"in_progress"}}',
    '',
    'event: response.output_text.delta',
    'data: {"type":"response.output_text.delta","item_id":"msg_1","output_index":0,"content_index":0,"delta":"Bonjour"}',
    '',
    'event: response.output_text.delta',
    'data: {"type":"response.output_text.delta","item_id":"msg_1","output_index":0,"content_index":0,"delta":" le monde"}',
    '',
    'event: response.output_text.done',
    'data: {"type":"response.output_text.done","item_id":"msg_1","output_index":0,"content_index":0,"text":"Bonjour le monde"}',
    '',
    'event: response.completed',
    'data: {"type":"response.completed","response":{"id":"resp_1","status":"completed"}}',
    '',
]
OPENAI_RESPONSES_EXPECTED_TEXT = "Bonjour le monde"

OPENAI_CHAT_STREAM_LINES = [
    'data: {"id":"chatcmpl-9","object":"chat.completion.chunk","model":"gpt-4-0613","choices":[{"index":0,"delta":{"role":"assistant","content":""},"finish_reason":null}]}',
    '',
    'data: {"id":"chatcmpl-9","object":"chat.completion.chunk","model":"gpt-4-0613","choices":[{"index":0,"delta":{"content":"Two"},"finish_reason":null}]}',
    '',
    'data: {"id":"chatcmpl-9","object":"chat.completion.chunk","model":"gpt-4-0613","choices":[{"index":0,"delta":{"content":" plus two"},"finish_reason":null}]}',
    '',
    'data: {"id":"chatcmpl-9","object":"chat.completion.chunk","model":"gpt-4-0613","choices":[{"index":0,"delta":{"content":" is four."},"finish_reason":null}]}',
    '',
    'data: {"id":"chatcmpl-9","object":"chat.completion.chunk","model":"gpt-4-0613","choices":[{"index":0,"delta":{},"finish_reason":"stop"}]}',
    '',
    'data: [DONE]',
    '',
]
OPENAI_CHAT_EXPECTED_TEXT = "Two plus two is four."

OPENAI_RESPONSES_COMPLETION = {
    "id": "resp_2",
    "object": "response",
    "status": "completed",
    "output": [
        {"type": "reasoning", "id": "rs_1", "summary": []},
        {
            "type": "message",
            "id": "msg_2",
            "role": "assistant",
            "content": [{"type": "output_text", "text": "Hello from fallback", "annotations": []}],
        },
    ],
}


def stream_body(lines: list[str]) -> str:
    """Join recorded lines into a response body."""
    return "\n".join(lines) + "\n"


# ─────────────────────────────────────────────────────────────────────
# FIXTURES - Config
# ─────────────────────────────────────────────────────────────────────

def make_config(provider: Provider, api_key: str | None = TEST_API_KEY) -> ConnectionConfig:
    """Build a ConnectionConfig the way the app would for tests."""
    if provider is Provider.OLLAMA:
        return ConnectionConfig(base_url="http://localhost", port=11434, provider=provider)
    if provider is Provider.LMSTUDIO:
        return ConnectionConfig(base_url="http://localhost", port=1234, provider=provider)
    if provider is Provider.CLAUDE:
        return ConnectionConfig(base_url="https://api.anthropic.com", port=443, provider=provider, api_key=api_key)
    return ConnectionConfig(base_url="https://api.openai.com", port=443, provider=provider, api_key=api_key)


@pytest.fixture
def ollama_config():
    return make_config(Provider.OLLAMA)


@pytest.fixture
def lmstudio_config():
    return make_config(Provider.LMSTUDIO)


@pytest.fixture
def claude_config():
    return make_config(Provider.CLAUDE)


@pytest.fixture
def openai_config():
    return make_config(Provider.OPENAI)


@pytest.fixture
def settings():
    """Settings with both cloud keys present."""
    return Settings(
        server_address="http://192.168.1.10:11434",
        lm_studio_address="http://192.168.1.11:1234",
        claude_api_key="claude-key",
        openai_api_key="openai-key",
        temperature=0.5,
        top_p=0.8,
        top_k=20,
    )


# ─────────────────────────────────────────────────────────────────────
# FIXTURES - Conversation
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def sample_history():
    """Two prior turns: one question and its answer."""
    return [
        ConversationTurn(role="user", content="What is the capital of France?"),
        ConversationTurn(role="assistant", content="The capital of France is Paris."),
    ]


@pytest.fixture
def sample_image():
    """A few bytes standing in for a JPEG attachment."""
    return b"\xff\xd8\xff\xe0fake-jpeg"
