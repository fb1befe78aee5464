"""
LangGraph router: route -> (plugin | rag | conversational) -> respond -> END.

The strategy is chosen once per message by priority: a successful plugin wins,
then the RAG heuristic, then plain conversation. Memory is read before the
new turn is recorded; the user message and reply are appended in respond.
Collaborator failures inside a strategy propagate; there is no fallback to
another strategy.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal, TypedDict

from langgraph.graph import END, StateGraph

from orchestrator.agent.llm import CompletionService
from orchestrator.core.config import (
    HISTORY_WINDOW,
    LLM_MAX_TOKENS,
    LLM_TEMPERATURE,
    PROMPT_MAX_TOKENS,
    RAG_KEYWORDS,
    RAG_PATTERNS,
    RAG_TOP_K,
    RELEVANCE_THRESHOLD,
)
from orchestrator.core.session_store import MemoryStore, Message, utc_now
from orchestrator.plugins.base import PluginContext, PluginInvocationResult
from orchestrator.plugins.dispatcher import PluginDispatcher
from orchestrator.services.prompt_service import PromptContext, assemble_prompt
from orchestrator.services.retrieval_service import (
    RetrievalMatch,
    Retriever,
    filter_relevant,
    unique_sources,
)

logger = logging.getLogger(__name__)


class Strategy(str, Enum):
    PLUGIN = "plugin"
    RAG = "rag"
    CONVERSATIONAL = "conversational"


class RouteState(str, Enum):
    ROUTING = "routing"
    PLUGIN = "plugin"
    RAG = "rag"
    CONVERSATIONAL = "conversational"
    RESPONDED = "responded"


class AgentState(TypedDict):
    session_id: str
    message: str
    timestamp: datetime
    memory_summary: str
    recent_messages: list  # list[Message], snapshot taken before this turn
    plugin_results: list  # list[PluginInvocationResult]
    strategy: str
    state: str
    reply: str
    sources: list  # list[str]


@dataclass(frozen=True)
class RouteOutcome:
    reply: str
    strategy: Strategy
    session_id: str
    timestamp: datetime
    sources: list[str] = field(default_factory=list)
    plugins_used: list[str] = field(default_factory=list)
    plugin_results: list[PluginInvocationResult] = field(default_factory=list)


def should_use_rag(
    message: str,
    keywords: tuple[str, ...] = RAG_KEYWORDS,
    patterns: tuple[str, ...] = RAG_PATTERNS,
) -> bool:
    """Case-insensitive keyword substring or regex pattern match."""
    lowered = message.lower()
    if any(k in lowered for k in keywords):
        return True
    return any(re.search(p, message, re.IGNORECASE) for p in patterns)


def format_rag_context(matches: list[RetrievalMatch]) -> str:
    blocks = []
    for m in matches:
        label = m.title or m.source
        blocks.append(f"[{label}] (relevance {m.score:.2f})\n{m.content}")
    return "\n\n".join(blocks)


class Router:
    def __init__(
        self,
        memory: MemoryStore,
        dispatcher: PluginDispatcher,
        retriever: Retriever,
        completion: CompletionService,
        budget_tokens: int = PROMPT_MAX_TOKENS,
        top_k: int = RAG_TOP_K,
        min_score: float = RELEVANCE_THRESHOLD,
        rag_keywords: tuple[str, ...] = RAG_KEYWORDS,
        rag_patterns: tuple[str, ...] = RAG_PATTERNS,
    ) -> None:
        self.memory = memory
        self.dispatcher = dispatcher
        self.retriever = retriever
        self.completion = completion
        self.budget_tokens = budget_tokens
        self.top_k = top_k
        self.min_score = min_score
        self.rag_keywords = rag_keywords
        self.rag_patterns = rag_patterns
        self._graph = self._build_graph()

    def _build_graph(self):
        graph = StateGraph(AgentState)

        graph.add_node("route", self._route_node)
        graph.add_node("plugin", self._plugin_node)
        graph.add_node("rag", self._rag_node)
        graph.add_node("conversational", self._conversational_node)
        graph.add_node("respond", self._respond_node)

        graph.set_entry_point("route")
        graph.add_conditional_edges("route", self._next_after_route)
        graph.add_edge("plugin", "respond")
        graph.add_edge("rag", "respond")
        graph.add_edge("conversational", "respond")
        graph.add_edge("respond", END)

        return graph.compile()

    async def _route_node(self, state: AgentState) -> dict:
        session_id = state["session_id"]
        message = state["message"]
        summary = self.memory.summarize(session_id)
        recent = self.memory.recent_window(session_id, HISTORY_WINDOW)
        context = PluginContext(
            query=message,
            session_id=session_id,
            user_message=message,
            timestamp=state["timestamp"],
        )
        results = await self.dispatcher.execute_applicable(context)
        if any(r.success for r in results):
            strategy = Strategy.PLUGIN
        elif should_use_rag(message, self.rag_keywords, self.rag_patterns):
            strategy = Strategy.RAG
        else:
            strategy = Strategy.CONVERSATIONAL
        logger.info(
            "[graph:route] session_id=%s history=%d plugins=%s -> %s",
            session_id[:16], len(recent), [(r.plugin_name, r.success) for r in results], strategy.value,
        )
        return {
            "memory_summary": summary,
            "recent_messages": recent,
            "plugin_results": results,
            "strategy": strategy.value,
            "state": RouteState(strategy.value).value,
        }

    def _next_after_route(self, state: AgentState) -> Literal["plugin", "rag", "conversational"]:
        return state["strategy"]

    async def _plugin_node(self, state: AgentState) -> dict:
        successful = [r for r in state["plugin_results"] if r.success]
        reply = "\n\n".join(r.formatted_response or r.message for r in successful)
        logger.info("[graph:plugin] OUT plugins=%s reply_len=%d", [r.plugin_name for r in successful], len(reply))
        return {"reply": reply}

    def _prompt_context(self, state: AgentState, rag_context: str | None = None, sources: list[str] | None = None) -> PromptContext:
        return PromptContext(
            user_query=state["message"],
            session_id=state["session_id"],
            timestamp=state["timestamp"],
            memory_summary=state["memory_summary"],
            rag_context=rag_context,
            rag_sources=sources or [],
            plugin_results=state["plugin_results"],
            recent_messages=state["recent_messages"],
        )

    async def _generate(self, state: AgentState, prompt: str) -> str:
        result = await self.completion.generate(
            [Message(role="user", content=state["message"])],
            system_prompt=prompt,
            max_tokens=LLM_MAX_TOKENS,
            temperature=LLM_TEMPERATURE,
        )
        return result.text

    async def _rag_node(self, state: AgentState) -> dict:
        matches = await self.retriever.search(state["message"], self.top_k)
        relevant = filter_relevant(matches, self.min_score)
        sources = unique_sources(relevant)
        rag_context = format_rag_context(relevant) if relevant else None
        logger.info(
            "[graph:rag] matches=%d relevant=%d sources=%s",
            len(matches), len(relevant), sources,
        )
        prompt = assemble_prompt(self._prompt_context(state, rag_context, sources), self.budget_tokens)
        reply = await self._generate(state, prompt)
        return {"reply": reply, "sources": sources}

    async def _conversational_node(self, state: AgentState) -> dict:
        prompt = assemble_prompt(self._prompt_context(state), self.budget_tokens)
        reply = await self._generate(state, prompt)
        logger.info("[graph:conversational] OUT reply_len=%d", len(reply))
        return {"reply": reply}

    async def _respond_node(self, state: AgentState) -> dict:
        session_id = state["session_id"]
        self.memory.append(session_id, Message(role="user", content=state["message"], timestamp=state["timestamp"]))
        self.memory.append(session_id, Message(role="assistant", content=state["reply"]))
        return {"state": RouteState.RESPONDED.value}

    async def route(self, session_id: str, message: str) -> RouteOutcome:
        """Run one message through the graph and record the turn in memory."""
        logger.info("[router] START session_id=%s message_len=%d", session_id[:16], len(message))
        initial: AgentState = {
            "session_id": session_id,
            "message": message,
            "timestamp": utc_now(),
            "memory_summary": "",
            "recent_messages": [],
            "plugin_results": [],
            "strategy": "",
            "state": RouteState.ROUTING.value,
            "reply": "",
            "sources": [],
        }
        final = await self._graph.ainvoke(initial)
        results: list[PluginInvocationResult] = final.get("plugin_results") or []
        strategy = Strategy(final["strategy"])
        plugins_used = [r.plugin_name for r in results if r.success] if strategy is Strategy.PLUGIN else []
        logger.info(
            "[router] END strategy=%s state=%s reply_len=%d",
            strategy.value, final.get("state"), len(final.get("reply") or ""),
        )
        return RouteOutcome(
            reply=final.get("reply") or "",
            strategy=strategy,
            session_id=session_id,
            timestamp=final["timestamp"],
            sources=list(final.get("sources") or []),
            plugins_used=plugins_used,
            plugin_results=results,
        )
