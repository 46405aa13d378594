"""
Error taxonomy for chat generation.

Only ConfigError, TransportError and ProtocolError end a generation early.
Malformed stream lines are absorbed by the adapters and never raised.
"""

import json
from typing import Optional, Union


class ChatBridgeError(Exception):
    """Base class for chat-bridge errors."""
    pass


class ConfigError(ChatBridgeError):
    """Connection config cannot be used (e.g. missing API key for a cloud provider)."""
    pass


class TransportError(ChatBridgeError):
    """Connection refused, timeout, TLS failure or broken read."""
    pass


class ProtocolError(ChatBridgeError):
    """Non-2xx HTTP status from the provider."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def parse_error_message(status_code: int, body: Union[bytes, str]) -> str:
    """Extract a user-friendly error message from a provider error body.

    Vendor envelopes usually look like {"error": {"message": "..."}};
    some servers send {"error": "..."} or {"message": "..."} instead.
    Falls back to the bare status code.
    """
    fallback = f"HTTP {status_code}"
    try:
        data = json.loads(body)
    except (ValueError, TypeError):
        return fallback

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        elif isinstance(error, str) and error:
            return error
        message = data.get("message")
        if isinstance(message, str) and message:
            return message
    return fallback
