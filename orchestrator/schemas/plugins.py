"""Schemas for plugin and knowledge-base endpoints."""

from typing import Any

from pydantic import BaseModel, Field

from orchestrator.core.config import SEARCH_DEFAULT_LIMIT


class PluginInfo(BaseModel):
    name: str
    description: str
    version: str


class PluginTestRequest(BaseModel):
    """Request body for POST /agent/plugins/test."""

    plugin_name: str = Field(..., min_length=1, description="Registered plugin name, e.g. math or weather.")
    test_query: str = Field(..., min_length=1, description="Query passed to the plugin as-is.")


class PluginInvocationOut(BaseModel):
    plugin_name: str
    success: bool
    data: Any = None
    formatted_response: str = ""
    error: str | None = None
    error_code: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    elapsed: float = 0.0


class SearchRequest(BaseModel):
    """Request body for POST /agent/search and the MCP search_documents tool."""

    query: str = Field(..., description="Search query (keywords or natural language question).")
    limit: int = Field(SEARCH_DEFAULT_LIMIT, ge=1, le=50)


class SearchResult(BaseModel):
    content: str
    score: float
    source: str
    title: str = ""
    chunk_index: int = 0
    total_chunks: int = 0
