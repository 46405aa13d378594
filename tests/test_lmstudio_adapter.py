"""Tests for LMStudioAdapter request building and SSE parsing."""

import pytest

from chat_bridge.adapters.lmstudio import LMStudioAdapter

from tests.conftest import LMSTUDIO_STREAM_LINES


@pytest.fixture
def adapter(lmstudio_config):
    return LMStudioAdapter(lmstudio_config)


class TestEndpoints:
    def test_endpoints(self, adapter):
        assert adapter.model_list_endpoint() == "/v1/models"
        assert adapter.chat_endpoint("llama-3.2-3b-instruct") == "/v1/chat/completions"

    def test_no_auth_header(self, adapter):
        assert "Authorization" not in adapter.build_headers()


class TestBuildChatRequest:
    def test_body_shape(self, adapter, sample_history):
        request = adapter.build_chat_request(
            sample_history, "And Germany?", "llama-3.2-3b-instruct", system_prompt="Be brief."
        )

        assert request.url == "http://localhost:1234/v1/chat/completions"
        assert request.body == {
            "model": "llama-3.2-3b-instruct",
            "messages": [
                {"role": "system", "content": "Be brief."},
                {"role": "user", "content": "What is the capital of France?"},
                {"role": "assistant", "content": "The capital of France is Paris."},
                {"role": "user", "content": "And Germany?"},
            ],
            "stream": True,
            "temperature": 0.7,
            "max_tokens": 2048,
        }

    def test_streaming_headers(self, adapter):
        request = adapter.build_chat_request([], "Hi", "m")
        assert request.headers["Accept"] == "text/event-stream"
        assert request.headers["Cache-Control"] == "no-cache"

    def test_image_becomes_content_parts(self, adapter, sample_image):
        request = adapter.build_chat_request([], "Describe", "llava", image=sample_image)
        content = request.body["messages"][-1]["content"]

        assert content[0] == {"type": "text", "text": "Describe"}
        assert content[1]["type"] == "image_url"
        assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")


class TestParsing:
    def test_role_only_chunk_has_no_delta(self, adapter):
        chunk = adapter.parse_stream_line(LMSTUDIO_STREAM_LINES[0])
        assert chunk.delta is None
        assert chunk.is_final is False

    def test_finish_reason_stop_is_final(self, adapter):
        line = 'data: {"choices":[{"index":0,"delta":{},"finish_reason":"stop"}]}'
        chunk = adapter.parse_stream_line(line)
        assert chunk.is_final is True
        assert chunk.delta is None

    def test_finish_reason_length_is_not_final(self, adapter):
        line = 'data: {"choices":[{"index":0,"delta":{"content":"x"},"finish_reason":"length"}]}'
        chunk = adapter.parse_stream_line(line)
        assert chunk.delta == "x"
        assert chunk.is_final is False

    def test_data_prefix_without_space(self, adapter):
        chunk = adapter.parse_stream_line('data:{"choices":[{"delta":{"content":"y"}}]}')
        assert chunk.delta == "y"

    def test_empty_choices_skipped(self, adapter):
        chunk = adapter.parse_stream_line('data: {"choices":[]}')
        assert chunk.delta is None
        assert chunk.is_final is False

    def test_model_list(self, adapter):
        data = {"data": [{"id": "llama-3.2-3b-instruct", "object": "model"}, {"id": "qwen2.5-7b-instruct"}]}
        assert adapter.parse_model_list(data) == ["llama-3.2-3b-instruct", "qwen2.5-7b-instruct"]

    def test_parse_completion(self, adapter):
        data = {"choices": [{"index": 0, "message": {"role": "assistant", "content": "Paris."}}]}
        assert adapter.parse_completion(data) == "Paris."
        assert adapter.parse_completion({"choices": []}) == ""
