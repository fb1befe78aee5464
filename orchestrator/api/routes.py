"""
API routes: register endpoints; no logic, only delegate to AgentService.

AgentError subclasses raised here are rendered by the handlers in api.errors.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from orchestrator.core.errors import NotFoundError
from orchestrator.schemas.message import (
    MessageOut,
    MessageRequest,
    MessageResponse,
    SessionResponse,
    SessionStatsOut,
    SessionSummaryOut,
)
from orchestrator.schemas.plugins import (
    PluginInfo,
    PluginInvocationOut,
    PluginTestRequest,
    SearchRequest,
    SearchResult,
)
from orchestrator.services.agent_service import AgentService

logger = logging.getLogger(__name__)
router = APIRouter()
agent_router = APIRouter(prefix="/agent")


def get_agent_service(request: Request) -> AgentService:
    return request.app.state.agent_service


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "Agent orchestration backend running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Conversation ---

@agent_router.post(
    "/message",
    response_model=MessageResponse,
    tags=["agent"],
    summary="Send a message to the agent",
    description="Routes the message to a plugin, the knowledge base (RAG) or plain conversation and returns one reply. 400 on invalid input, 502/503 when a provider fails.",
)
async def post_message(body: MessageRequest, service: AgentService = Depends(get_agent_service)) -> MessageResponse:
    logger.info("[api:post_message] IN  session_id=%s message_len=%d", body.session_id[:16], len(body.message))
    reply = await service.handle_message(body.session_id, body.message)
    logger.info("[api:post_message] OUT strategy=%s reply_len=%d", reply.strategy.value, len(reply.reply))
    return MessageResponse(
        reply=reply.reply,
        session_id=reply.session_id,
        timestamp=reply.timestamp,
        strategy=reply.strategy.value,
        sources=reply.sources,
        plugins_used=reply.plugins_used,
    )


@agent_router.get("/session/{session_id}", response_model=SessionResponse, tags=["agent"])
def get_session(session_id: str, service: AgentService = Depends(get_agent_service)) -> SessionResponse:
    session = service.get_session(session_id)
    stats = service.session_stats(session_id)
    if session is None or stats is None:
        raise NotFoundError(f"Session '{session_id}' not found", code="SESSION_NOT_FOUND")
    return SessionResponse(
        session_id=session.id,
        messages=[MessageOut(role=m.role, content=m.content, timestamp=m.timestamp) for m in session.messages],
        created_at=session.created_at,
        last_activity=session.last_activity,
        stats=SessionStatsOut(**asdict(stats)),
    )


@agent_router.delete("/session/{session_id}", tags=["agent"])
def delete_session(session_id: str, service: AgentService = Depends(get_agent_service)) -> dict:
    if not service.clear_session(session_id):
        raise NotFoundError(f"Session '{session_id}' not found", code="SESSION_NOT_FOUND")
    return {"cleared": True, "session_id": session_id}


@agent_router.get("/sessions", response_model=list[SessionSummaryOut], tags=["agent"])
def list_sessions(service: AgentService = Depends(get_agent_service)) -> list[SessionSummaryOut]:
    return [SessionSummaryOut(**asdict(info)) for info in service.list_sessions()]


@agent_router.get("/health", tags=["agent"])
async def agent_health(service: AgentService = Depends(get_agent_service)) -> dict:
    report = await service.health()
    return asdict(report)


# --- Plugins ---

@agent_router.get("/plugins", response_model=list[PluginInfo], tags=["plugins"])
def list_plugins(service: AgentService = Depends(get_agent_service)) -> list[PluginInfo]:
    return [PluginInfo(**asdict(p)) for p in service.list_plugins()]


@agent_router.get(
    "/plugins/health",
    tags=["plugins"],
    summary="Probe every plugin",
    description="200 when all plugins are healthy, 503 when any probe fails.",
)
async def plugins_health(service: AgentService = Depends(get_agent_service)):
    report = await service.plugin_health()
    body = {"status": "healthy" if report.healthy else "degraded", "plugins": report.plugins}
    return JSONResponse(status_code=200 if report.healthy else 503, content=body)


@agent_router.post("/plugins/test", response_model=PluginInvocationOut, tags=["plugins"])
async def test_plugin(body: PluginTestRequest, service: AgentService = Depends(get_agent_service)) -> PluginInvocationOut:
    result = await service.execute_plugin_directly(body.plugin_name, body.test_query)
    if result.error_code == "NOT_FOUND":
        raise NotFoundError(result.error or "Plugin not found", code="PLUGIN_NOT_FOUND")
    return PluginInvocationOut(**{k: v for k, v in asdict(result).items() if k != "message"})


# --- Knowledge base ---

@agent_router.post("/search", tags=["rag"])
async def search(body: SearchRequest, service: AgentService = Depends(get_agent_service)) -> dict:
    matches = await service.search_documents(body.query, body.limit)
    results = [SearchResult(**asdict(m)) for m in matches]
    return {"query": body.query, "results": results, "count": len(results)}


@agent_router.post("/rag/refresh", tags=["rag"])
async def refresh_index(service: AgentService = Depends(get_agent_service)) -> dict:
    count = await service.refresh_index()
    return {"refreshed": True, "chunks_indexed": count}


@agent_router.get("/rag/health", tags=["rag"])
async def rag_health(service: AgentService = Depends(get_agent_service)) -> dict:
    status = await service.rag_status()
    return {"status": "healthy" if status.total_vectors > 0 else "empty", **asdict(status)}


router.include_router(agent_router)
