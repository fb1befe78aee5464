"""
Minimal MCP-style tool server: exposes retrieval, plugins and system stats
as a standardized tool interface for external agents.
"""

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from orchestrator.api.routes import get_agent_service
from orchestrator.services.agent_service import AgentService

logger = logging.getLogger(__name__)

# MCP tool schema for discovery / documentation
tools = [
    {
        "name": "search_documents",
        "description": "Search the knowledge base using semantic retrieval",
        "input_schema": {"query": "string", "limit": "integer (optional)"},
    },
    {
        "name": "list_plugins",
        "description": "List registered plugins with name, description and version",
        "input_schema": {},
    },
    {
        "name": "execute_plugin",
        "description": "Run one plugin by name against a query",
        "input_schema": {"plugin_name": "string", "query": "string"},
    },
    {
        "name": "system_stats",
        "description": "Sessions, plugins and knowledge base status (system observability)",
        "input_schema": {},
    },
]

mcp_router = APIRouter(tags=["mcp"])


class SearchDocumentsRequest(BaseModel):
    """Request body for MCP tool search_documents."""
    query: str = ""
    limit: int = 5


class ExecutePluginRequest(BaseModel):
    """Request body for MCP tool execute_plugin."""
    plugin_name: str
    query: str = ""


@mcp_router.get("/tools", summary="MCP tool discovery")
def list_tools() -> dict[str, list[dict[str, Any]]]:
    return {"tools": tools}


@mcp_router.post(
    "/tools/search_documents",
    summary="MCP tool: search_documents",
    description="Lets external agents call retrieval through a standardized interface.",
)
async def mcp_search_documents(
    body: SearchDocumentsRequest,
    service: AgentService = Depends(get_agent_service),
) -> dict[str, list[dict[str, Any]]]:
    logger.info("MCP tool called: search_documents")
    query = (body.query or "").strip()
    if not query:
        return {"results": []}
    matches = await service.search_documents(query, max(1, body.limit))
    results = [
        {"content": m.content, "score": m.score, "source": m.source, "title": m.title}
        for m in matches
    ]
    return {"results": results}


@mcp_router.post("/tools/list_plugins", summary="MCP tool: list_plugins")
def mcp_list_plugins(service: AgentService = Depends(get_agent_service)) -> dict[str, list[dict[str, str]]]:
    logger.info("MCP tool called: list_plugins")
    return {"plugins": [asdict(p) for p in service.list_plugins()]}


@mcp_router.post("/tools/execute_plugin", summary="MCP tool: execute_plugin")
async def mcp_execute_plugin(
    body: ExecutePluginRequest,
    service: AgentService = Depends(get_agent_service),
) -> dict[str, Any]:
    """Failures (unknown plugin, timeout, plugin error) come back in the result, not as HTTP errors."""
    logger.info("MCP tool called: execute_plugin plugin=%s", body.plugin_name)
    result = await service.execute_plugin_directly(body.plugin_name, body.query, session_id="mcp")
    return {
        "plugin_name": result.plugin_name,
        "success": result.success,
        "response": result.formatted_response or result.message,
        "error": result.error,
        "error_code": result.error_code,
    }


@mcp_router.post(
    "/tools/system_stats",
    summary="MCP tool: system_stats",
    description="Sessions, plugins and knowledge base status (system observability).",
)
async def mcp_system_stats(service: AgentService = Depends(get_agent_service)) -> dict[str, Any]:
    logger.info("MCP tool called: system_stats")
    status = await service.rag_status()
    return {
        "active_sessions": len(service.list_sessions()),
        "plugins": [p.name for p in service.list_plugins()],
        "index": asdict(status),
    }
