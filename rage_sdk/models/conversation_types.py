from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from enum import Enum


class TurnRole(str, Enum):
    """Conversation turn roles."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageBase(BaseModel):
    """Base class for conversation messages."""

    role: TurnRole
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ConversationMessage(MessageBase):
    """Message in an outbound conversation."""
    name: Optional[str] = None
