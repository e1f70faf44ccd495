"""Pydantic schemas for realtime events.

Learn: Two groups live here:
- Socket frames the client sends (ClientFrame, TypingData)
- HTTP bodies server code posts to trigger server → client events
  (MessageCreate, NotificationCreate) and what those calls return
  (EmitResult)

Project updates are arbitrary JSON objects, so they have no schema.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ─── Socket frames ───────────────────────────────────────

class ClientFrame(BaseModel):
    event: str = Field(..., min_length=1, max_length=64)
    data: Any = None


class TypingData(BaseModel):
    """Typing indicator. Only projectId is required; the rest is relayed as-is."""
    model_config = ConfigDict(extra="allow")

    projectId: str | int
    userName: Any = None
    isTyping: Any = None


# ─── Server-initiated events ─────────────────────────────

class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10_000)
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    attachments: list[dict] = Field(default_factory=list)


class MessageRead(MessageCreate):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    project_id: str
    created_at: datetime = Field(default_factory=_now)


class NotificationCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    type: str = Field(default="info", pattern=r"^(info|success|warning|error)$")
    project_id: Optional[str] = None
    action_type: Optional[str] = None  # e.g. "task", "approval"
    action_id: Optional[str] = None


class NotificationRead(NotificationCreate):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    read: bool = False
    created_at: datetime = Field(default_factory=_now)


class EmitResult(BaseModel):
    room: str
    event: str
    delivered: int
    payload: Any = None
