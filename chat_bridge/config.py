"""
Configuration constants and Pydantic models for chat-bridge.
"""

import os
from datetime import datetime
from enum import Enum
from typing import Literal, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS - User-configurable via settings / environment
# ─────────────────────────────────────────────────────────────────────

DEFAULT_TEMPERATURE: float = 0.7
DEFAULT_TOP_P: float = 0.9
DEFAULT_TOP_K: int = 40
DEFAULT_SYSTEM_PROMPT: str = "You are a helpful assistant."

DEFAULT_OLLAMA_ADDRESS: str = "http://localhost:11434"
DEFAULT_LMSTUDIO_ADDRESS: str = "http://localhost:1234"


# ─────────────────────────────────────────────────────────────────────
# INTERNAL CONSTANTS - Not exposed to settings
# ─────────────────────────────────────────────────────────────────────

CLAUDE_BASE_URL: str = "https://api.anthropic.com"
OPENAI_BASE_URL: str = "https://api.openai.com"
ANTHROPIC_VERSION: str = "2023-06-01"

REQUEST_TIMEOUT_SECONDS: float = 300.0
CONNECT_TIMEOUT_SECONDS: float = 30.0
MODEL_LIST_TIMEOUT_SECONDS: float = 10.0
MAX_CONNECTIONS: int = 6

# Models whose streaming mode may be refused depending on account privileges
NEXT_GEN_MODEL_PREFIXES: tuple[str, ...] = ("gpt-5",)
OPENAI_VISION_MODEL: str = "gpt-4o"

CANCELLED_MARKER: str = "\nCancelled by user."
ERROR_MARKER: str = "\nAn error occurred."


def get_request_timeout() -> float:
    """
    Get streaming request timeout in seconds.

    Set CHAT_BRIDGE_TIMEOUT in .env (default: 300).
    """
    try:
        return float(os.environ.get("CHAT_BRIDGE_TIMEOUT", str(REQUEST_TIMEOUT_SECONDS)))
    except ValueError:
        return REQUEST_TIMEOUT_SECONDS


# ─────────────────────────────────────────────────────────────────────
# PROVIDERS
# ─────────────────────────────────────────────────────────────────────

class Provider(str, Enum):
    """Supported chat backends."""
    OLLAMA = "ollama"
    LMSTUDIO = "lmstudio"
    CLAUDE = "claude"
    OPENAI = "openai"

    @property
    def display_name(self) -> str:
        return {
            Provider.OLLAMA: "Ollama Server",
            Provider.LMSTUDIO: "LMStudio",
            Provider.CLAUDE: "Claude API",
            Provider.OPENAI: "OpenAI API",
        }[self]

    @property
    def is_cloud(self) -> bool:
        return self in (Provider.CLAUDE, Provider.OPENAI)

    @property
    def default_port(self) -> int:
        if self.is_cloud:
            return 443
        if self is Provider.LMSTUDIO:
            return 1234
        return 11434

    @property
    def default_model(self) -> str:
        return {
            Provider.OLLAMA: "llama3.2",
            Provider.LMSTUDIO: "llama3.2",
            Provider.CLAUDE: "claude-3-5-sonnet-20241022",
            Provider.OPENAI: "gpt-4",
        }[self]


def is_next_gen_model(model: str) -> bool:
    """Check whether a model name belongs to the streaming-gated family."""
    return model.lower().startswith(NEXT_GEN_MODEL_PREFIXES)


# ─────────────────────────────────────────────────────────────────────
# SETTINGS
# ─────────────────────────────────────────────────────────────────────

class Settings(BaseModel):
    """Read-only settings snapshot consumed when building a ConnectionConfig."""
    model_config = ConfigDict(frozen=True)

    server_address: str = DEFAULT_OLLAMA_ADDRESS
    lm_studio_address: str = DEFAULT_LMSTUDIO_ADDRESS
    claude_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P
    top_k: float = DEFAULT_TOP_K
    system_instruction: str = DEFAULT_SYSTEM_PROMPT
    show_ollama: bool = True
    show_lmstudio: bool = True
    show_claude: bool = True
    show_openai: bool = True
    timeout_seconds: float = REQUEST_TIMEOUT_SECONDS


def _env_flag(key: str, default: bool = True) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(key: str, default: float) -> float:
    try:
        return float(os.environ.get(key, default))
    except ValueError:
        return default


def load_settings_from_env() -> Settings:
    """
    Build Settings from environment variables.

    Recognised keys: CHAT_BRIDGE_SERVER_ADDRESS, CHAT_BRIDGE_LMSTUDIO_ADDRESS,
    ANTHROPIC_API_KEY, OPENAI_API_KEY, CHAT_BRIDGE_TEMPERATURE,
    CHAT_BRIDGE_TOP_P, CHAT_BRIDGE_TOP_K, CHAT_BRIDGE_SYSTEM_PROMPT and
    CHAT_BRIDGE_SHOW_<PROVIDER> flags. Empty keys are treated as unset.
    """
    return Settings(
        server_address=os.environ.get("CHAT_BRIDGE_SERVER_ADDRESS") or DEFAULT_OLLAMA_ADDRESS,
        lm_studio_address=os.environ.get("CHAT_BRIDGE_LMSTUDIO_ADDRESS") or DEFAULT_LMSTUDIO_ADDRESS,
        claude_api_key=os.environ.get("ANTHROPIC_API_KEY") or None,
        openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
        temperature=_env_float("CHAT_BRIDGE_TEMPERATURE", DEFAULT_TEMPERATURE),
        top_p=_env_float("CHAT_BRIDGE_TOP_P", DEFAULT_TOP_P),
        top_k=_env_float("CHAT_BRIDGE_TOP_K", DEFAULT_TOP_K),
        system_instruction=os.environ.get("CHAT_BRIDGE_SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
        show_ollama=_env_flag("CHAT_BRIDGE_SHOW_OLLAMA"),
        show_lmstudio=_env_flag("CHAT_BRIDGE_SHOW_LMSTUDIO"),
        show_claude=_env_flag("CHAT_BRIDGE_SHOW_CLAUDE"),
        show_openai=_env_flag("CHAT_BRIDGE_SHOW_OPENAI"),
        timeout_seconds=get_request_timeout(),
    )


def available_providers(settings: Settings) -> list[Provider]:
    """Return providers enabled in settings, in declaration order."""
    enabled = {
        Provider.OLLAMA: settings.show_ollama,
        Provider.LMSTUDIO: settings.show_lmstudio,
        Provider.CLAUDE: settings.show_claude,
        Provider.OPENAI: settings.show_openai,
    }
    return [p for p in Provider if enabled[p]]


# ─────────────────────────────────────────────────────────────────────
# CONNECTION CONFIG
# ─────────────────────────────────────────────────────────────────────

class ConnectionConfig(BaseModel):
    """Immutable connection parameters for one provider.

    Rebuilt whenever provider, address or API key changes; never mutated
    while a generation is in flight.
    """
    model_config = ConfigDict(frozen=True)

    base_url: str
    port: int
    provider: Provider
    api_key: Optional[str] = None
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P
    top_k: float = DEFAULT_TOP_K
    timeout_seconds: float = REQUEST_TIMEOUT_SECONDS

    @property
    def url(self) -> str:
        """Root URL including port, without trailing slash."""
        return f"{self.base_url.rstrip('/')}:{self.port}"

    @property
    def has_credentials(self) -> bool:
        return not self.provider.is_cloud or bool(self.api_key)


def _split_address(address: str, default_port: int) -> tuple[str, int]:
    """Split a user-entered address into (scheme://host, port)."""
    if "://" not in address:
        address = f"http://{address}"
    parts = urlsplit(address)
    host = parts.hostname or "localhost"
    try:
        port = parts.port or default_port
    except ValueError:
        port = default_port
    return f"{parts.scheme or 'http'}://{host}", port


def build_connection_config(provider: Provider, settings: Settings) -> ConnectionConfig:
    """
    Build a ConnectionConfig for a provider from a settings snapshot.

    Cloud providers use their fixed HTTPS endpoint and the matching API key.
    Local providers use the user-editable address; a missing port falls back
    to the provider default. Zero top_p / top_k are treated as unset.
    """
    api_key: Optional[str] = None
    if provider is Provider.CLAUDE:
        base_url, port = CLAUDE_BASE_URL, 443
        api_key = settings.claude_api_key
    elif provider is Provider.OPENAI:
        base_url, port = OPENAI_BASE_URL, 443
        api_key = settings.openai_api_key
    elif provider is Provider.LMSTUDIO:
        base_url, port = _split_address(settings.lm_studio_address, provider.default_port)
    else:
        base_url, port = _split_address(settings.server_address, provider.default_port)

    return ConnectionConfig(
        base_url=base_url,
        port=port,
        provider=provider,
        api_key=api_key or None,
        temperature=settings.temperature,
        top_p=settings.top_p or DEFAULT_TOP_P,
        top_k=settings.top_k or DEFAULT_TOP_K,
        timeout_seconds=settings.timeout_seconds,
    )


# ─────────────────────────────────────────────────────────────────────
# DATA MODELS
# ─────────────────────────────────────────────────────────────────────

class ConversationTurn(BaseModel):
    """A single turn in a conversation."""
    role: Literal["user", "assistant"]
    content: str
    image: Optional[bytes] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class GenerationRequest(BaseModel):
    """Everything needed to send one prompt. Built fresh per send."""
    model_config = ConfigDict(frozen=True)

    prompt: str
    model: str
    image: Optional[bytes] = None
    history: tuple[ConversationTurn, ...] = ()
