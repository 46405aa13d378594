"""
chat-bridge: one streaming chat interface over Ollama, LM Studio,
Claude and OpenAI.
"""

from chat_bridge.config import (
    ConnectionConfig,
    ConversationTurn,
    Provider,
    Settings,
    build_connection_config,
    load_settings_from_env,
)
from chat_bridge.core import StreamingBridge, create_client, list_models
from chat_bridge.errors import ConfigError, ProtocolError, TransportError
from chat_bridge.history import ConversationStore, InMemoryConversationStore
from chat_bridge.session import (
    Generation,
    GenerationOutcome,
    GenerationSession,
    OutcomeStatus,
    SessionState,
)

__all__ = [
    "ConnectionConfig",
    "ConversationTurn",
    "Provider",
    "Settings",
    "build_connection_config",
    "load_settings_from_env",
    "StreamingBridge",
    "create_client",
    "list_models",
    "ConfigError",
    "ProtocolError",
    "TransportError",
    "ConversationStore",
    "InMemoryConversationStore",
    "Generation",
    "GenerationOutcome",
    "GenerationSession",
    "OutcomeStatus",
    "SessionState",
]
