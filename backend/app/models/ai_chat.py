"""AI request shapes — one payload per task invocation, never persisted.

RequestPayload is the provider-agnostic input every adapter accepts.
ChatTurn is one prior message of a grounded-chat conversation.
"""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

OutputMode = Literal["text", "json"]


class RequestPayload(BaseModel):
    instruction: str
    context: Optional[str] = None
    output_mode: OutputMode = "text"


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str = ""
