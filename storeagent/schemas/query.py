"""Schemas for the query, history and listing endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    """Request body for POST /query. History is stored server-side by session_id."""

    query: str = Field(..., description="Natural language request for the store assistant.")
    session_id: str | None = Field(
        None, description="Session ID; chat history is stored on the server for this session. Defaults to the caller id."
    )


class QueryResponse(BaseModel):
    """Response for POST /query."""

    operations_performed: bool = Field(..., description="True when at least one capability was executed this turn.")
    message: str = Field(..., description="Final answer from the assistant.")
    session_id: str = Field(..., description="Session the turn was recorded in.")
    timestamp: str = Field(..., description="UTC time the turn completed, ISO 8601.")


class HistoryMessage(BaseModel):
    role: str
    content: str


class HistoryResponse(BaseModel):
    """Response for GET /history."""

    session_id: str
    messages: list[HistoryMessage] = Field(default_factory=list)


class ClearHistoryResponse(BaseModel):
    """Response for DELETE /history."""

    session_id: str
    cleared: bool = True


class PageResponse(BaseModel):
    """One page of a listing endpoint."""

    data: list[dict[str, Any]] = Field(default_factory=list)
    page: int = Field(..., description="1-based page number.")
    page_size: int = Field(..., description="Requested page size.")
    total: int = Field(..., description="Number of documents matching the filter.")
    has_more: bool = Field(..., description="True when later pages exist.")
