# Run from project root: uvicorn orchestrator.main:app --reload

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from orchestrator.api.errors import install_error_handlers
from orchestrator.api.routes import router
from orchestrator.core.config import RAG_AUTO_INDEX
from orchestrator.core.errors import CollaboratorError
from orchestrator.mcp.server import mcp_router
from orchestrator.services.agent_service import AgentService, build_agent_service

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(service: AgentService | None = None, auto_index: bool = RAG_AUTO_INDEX) -> FastAPI:
    """Build the FastAPI app. Pass a service to inject fakes (tests)."""
    agent_service = service or build_agent_service()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        agent_service.sweeper.start()
        if auto_index:
            try:
                count = await agent_service.initialize_index()
                logger.info("Knowledge base ready (%d chunks indexed at startup)", count)
            except CollaboratorError as e:
                logger.warning("Knowledge base indexing skipped: %s", e.message)
        yield
        await agent_service.sweeper.stop()

    app = FastAPI(title="Agent Orchestration Backend", lifespan=lifespan)
    app.state.agent_service = agent_service
    install_error_handlers(app)
    app.include_router(router)
    app.include_router(mcp_router, prefix="/mcp")
    return app


app = create_app()
