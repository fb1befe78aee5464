"""Schemas for the message and session endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from orchestrator.core.config import MAX_MESSAGE_CHARS, MAX_SESSION_ID_CHARS


class MessageRequest(BaseModel):
    """Request body for POST /agent/message. History is stored server-side by session_id."""

    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_CHARS, description="User message for the agent.")
    session_id: str = Field(..., min_length=1, max_length=MAX_SESSION_ID_CHARS, description="Session ID; conversation memory is kept on the server for this session.")


class MessageResponse(BaseModel):
    """Response for POST /agent/message."""

    reply: str = Field(..., description="Final reply from the agent.")
    session_id: str
    timestamp: datetime
    strategy: str = Field(..., description="How the reply was produced: plugin, rag or conversational.")
    sources: list[str] = Field(default_factory=list, description="Knowledge-base documents used (RAG only).")
    plugins_used: list[str] = Field(default_factory=list, description="Plugins whose output formed the reply.")


class MessageOut(BaseModel):
    role: str
    content: str
    timestamp: datetime | None = None


class SessionStatsOut(BaseModel):
    message_count: int
    user_messages: int
    assistant_messages: int
    session_age: str
    last_activity: str


class SessionResponse(BaseModel):
    """Response for GET /agent/session/{session_id}."""

    session_id: str
    messages: list[MessageOut]
    created_at: datetime
    last_activity: datetime
    stats: SessionStatsOut


class SessionSummaryOut(BaseModel):
    session_id: str
    message_count: int
    last_activity: datetime
