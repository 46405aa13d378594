from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """
    Prepared HTTP request for one chat call.
    Produced by a provider adapter, consumed unchanged by the StreamingBridge,
    so the bridge never needs to know which backend it is talking to.
    """
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Dict[str, Any]
    stream: bool = True


@dataclass(frozen=True)
class StreamChunk:
    """Result of parsing one wire line: zero or one delta plus a final flag."""
    delta: Optional[str] = None
    is_final: bool = False


SKIP = StreamChunk()
FINAL = StreamChunk(is_final=True)
