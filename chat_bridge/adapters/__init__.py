"""
Adapters for chat backends.

Provider-agnostic architecture: Protocol defines WHAT, implementations define HOW.
"""

from chat_bridge.adapters.base import ProviderAdapter
from chat_bridge.adapters.claude import ClaudeAdapter
from chat_bridge.adapters.lmstudio import LMStudioAdapter
from chat_bridge.adapters.ollama import OllamaAdapter
from chat_bridge.adapters.openai import OpenAIAdapter
from chat_bridge.adapters.schema import ChatRequest, StreamChunk
from chat_bridge.config import ConnectionConfig, Provider

ADAPTERS = {
    Provider.OLLAMA: OllamaAdapter,
    Provider.LMSTUDIO: LMStudioAdapter,
    Provider.CLAUDE: ClaudeAdapter,
    Provider.OPENAI: OpenAIAdapter,
}


def adapter_for(config: ConnectionConfig) -> ProviderAdapter:
    """Build a fresh adapter bound to this config."""
    return ADAPTERS[config.provider](config)


__all__ = [
    "ProviderAdapter",
    "OllamaAdapter",
    "LMStudioAdapter",
    "ClaudeAdapter",
    "OpenAIAdapter",
    "ChatRequest",
    "StreamChunk",
    "adapter_for",
]
