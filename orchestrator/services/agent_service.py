"""
Agent service: the single entry point the API talks to.

Responsibility: validate requests, delegate routing to the Router, and expose
session, plugin and knowledge-base operations. Owns the wiring of memory,
plugins, retrieval and completion; no HTTP here.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from orchestrator.agent.graph import Router, Strategy
from orchestrator.agent.llm import CompletionService, build_completion_service
from orchestrator.core.config import MAX_MESSAGE_CHARS, MAX_SESSION_ID_CHARS, SEARCH_DEFAULT_LIMIT
from orchestrator.core.errors import CollaboratorError, ValidationError
from orchestrator.core.session_store import MemoryStore, Session, SessionInfo, SessionStats, SessionSweeper, utc_now
from orchestrator.plugins.base import Plugin, PluginContext, PluginInvocationResult, PluginSummary
from orchestrator.plugins.dispatcher import PluginDispatcher, PluginHealthReport
from orchestrator.plugins.math_plugin import MathPlugin
from orchestrator.plugins.registry import PluginRegistry
from orchestrator.plugins.weather_plugin import WeatherPlugin
from orchestrator.services.embeddings import EmbeddingService, build_embedding_service
from orchestrator.services.ingestion_service import IndexStatus, IngestionService
from orchestrator.services.retrieval_service import RetrievalMatch, Retriever
from orchestrator.services.vector_store import VectorIndex, build_vector_index

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentReply:
    reply: str
    session_id: str
    timestamp: datetime
    strategy: Strategy
    sources: list[str] = field(default_factory=list)
    plugins_used: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class HealthReport:
    status: str
    timestamp: datetime
    active_sessions: int
    plugins: int
    index_vectors: int | None = None


def validate_message_request(session_id: object, message: object) -> tuple[str, str]:
    """Return (session_id, message) or raise ValidationError."""
    if message is None:
        raise ValidationError("Message is required")
    if not isinstance(message, str):
        raise ValidationError("Message must be a string")
    if not message.strip():
        raise ValidationError("Message cannot be empty")
    if len(message) > MAX_MESSAGE_CHARS:
        raise ValidationError(f"Message too long (max {MAX_MESSAGE_CHARS} characters)")
    if session_id is None or not isinstance(session_id, str) or not session_id.strip():
        raise ValidationError("session_id is required")
    if len(session_id) > MAX_SESSION_ID_CHARS:
        raise ValidationError(f"session_id too long (max {MAX_SESSION_ID_CHARS} characters)")
    return session_id, message


class AgentService:
    def __init__(
        self,
        memory: MemoryStore,
        registry: PluginRegistry,
        retriever: Retriever,
        completion: CompletionService,
        dispatcher: PluginDispatcher | None = None,
        ingestion: IngestionService | None = None,
        router: Router | None = None,
    ) -> None:
        self.memory = memory
        self.registry = registry
        self.retriever = retriever
        self.completion = completion
        self.dispatcher = dispatcher or PluginDispatcher(registry)
        self.ingestion = ingestion or IngestionService(retriever)
        self.router = router or Router(memory, self.dispatcher, retriever, completion)
        self.sweeper = SessionSweeper(memory)

    async def handle_message(self, session_id: str, text: str) -> AgentReply:
        session_id, text = validate_message_request(session_id, text)
        logger.info("[agent_service:handle_message] IN  session_id=%s message_len=%d", session_id[:16], len(text))
        outcome = await self.router.route(session_id, text)
        return AgentReply(
            reply=outcome.reply,
            session_id=session_id,
            timestamp=outcome.timestamp,
            strategy=outcome.strategy,
            sources=outcome.sources,
            plugins_used=outcome.plugins_used,
        )

    def get_session(self, session_id: str) -> Session | None:
        return self.memory.get(session_id)

    def session_stats(self, session_id: str) -> SessionStats | None:
        return self.memory.stats(session_id)

    def list_sessions(self) -> list[SessionInfo]:
        return self.memory.list_active()

    def clear_session(self, session_id: str) -> bool:
        return self.memory.clear(session_id)

    def list_plugins(self) -> list[PluginSummary]:
        return [p.summary() for p in self.registry.all()]

    def register_plugin(self, plugin: Plugin) -> None:
        self.registry.register(plugin)

    async def execute_plugin_directly(self, name: str, query: str, session_id: str = "direct") -> PluginInvocationResult:
        """Run one named plugin, bypassing can_handle. Unknown names come back as NOT_FOUND results."""
        if not name or not name.strip():
            raise ValidationError("plugin_name is required")
        context = PluginContext(query=query, session_id=session_id, user_message=query, timestamp=utc_now())
        return await self.dispatcher.execute_one(name, context)

    async def plugin_health(self) -> PluginHealthReport:
        return await self.dispatcher.health_check()

    async def search_documents(self, query: str, limit: int = SEARCH_DEFAULT_LIMIT) -> list[RetrievalMatch]:
        if not query or not query.strip():
            raise ValidationError("Query is required")
        return await self.retriever.search(query, limit)

    async def initialize_index(self) -> int:
        return await self.ingestion.initialize()

    async def refresh_index(self) -> int:
        return await self.ingestion.refresh()

    async def rag_status(self) -> IndexStatus:
        return await self.ingestion.status()

    async def health(self) -> HealthReport:
        """Index vectors are None and status is degraded when the index cannot be reached."""
        status = "healthy"
        index_vectors: int | None = None
        try:
            index_vectors = (await self.ingestion.status()).total_vectors
        except CollaboratorError as e:
            logger.warning("[agent_service:health] index unavailable: %s", e.message)
            status = "degraded"
        return HealthReport(
            status=status,
            timestamp=utc_now(),
            active_sessions=len(self.memory),
            plugins=len(self.registry),
            index_vectors=index_vectors,
        )


def default_plugins() -> list[Plugin]:
    return [WeatherPlugin(), MathPlugin()]


def build_agent_service(
    completion: CompletionService | None = None,
    embedder: EmbeddingService | None = None,
    index: VectorIndex | None = None,
    plugins: list[Plugin] | None = None,
) -> AgentService:
    """Wire the default components from configuration."""
    memory = MemoryStore()
    registry = PluginRegistry(default_plugins() if plugins is None else plugins)
    retriever = Retriever(embedder or build_embedding_service(), index or build_vector_index())
    return AgentService(
        memory=memory,
        registry=registry,
        retriever=retriever,
        completion=completion or build_completion_service(),
    )
