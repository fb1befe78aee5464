"""
Prompt assembly: merge memory, retrieved context, tool results and the current
request into one system prompt under a token budget.

Pure functions only. When the prompt is over budget the middle of everything
before the current-request section is replaced by TRUNCATION_MARKER; the
current-request section is always kept verbatim.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime

from orchestrator.core.config import CHARS_PER_TOKEN, HISTORY_WINDOW, PROMPT_MAX_TOKENS
from orchestrator.core.session_store import Message
from orchestrator.plugins.base import PluginInvocationResult

logger = logging.getLogger(__name__)

SECTION_SEPARATOR = "\n\n---\n\n"
TRUNCATION_MARKER = "\n\n... [Content truncated for length] ...\n\n"
KEEP_START_FRACTION = 0.6
KEEP_END_FRACTION = 0.3

BASE_INSTRUCTIONS = """# Assistant Instructions

You are a helpful, accurate assistant with access to conversation memory, a knowledge base and tools.

- Use the context below (memory, documents, tool results) when it is relevant.
- Say so when you are uncertain or the context does not cover the question.
- Prefer specific, actionable answers; use lists and code blocks when they help.
- Cite source documents when you use knowledge base content."""


@dataclass(frozen=True)
class PromptContext:
    user_query: str
    session_id: str
    timestamp: datetime
    memory_summary: str = ""
    rag_context: str | None = None
    rag_sources: list[str] = field(default_factory=list)
    plugin_results: list[PluginInvocationResult] = field(default_factory=list)
    recent_messages: list[Message] = field(default_factory=list)


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _memory_section(summary: str) -> str:
    return (
        "## Conversation Memory\n"
        f"{summary}\n\n"
        "Use this to keep the conversation consistent and refer back to earlier topics."
    )


def _rag_section(context: str, sources: list[str]) -> str:
    section = (
        "## Knowledge Base Context\n"
        "Retrieved from the knowledge base for this request:\n\n"
        f"{context}"
    )
    if sources:
        listed = "\n".join(f"{i}. {s}" for i, s in enumerate(sources, 1))
        section += f"\n\n### Sources:\n{listed}"
    return section


def _plugin_section(results: list[PluginInvocationResult]) -> str | None:
    successful = [r for r in results if r.success]
    if not successful:
        return None
    body = "\n\n".join(
        f"### {r.plugin_name}\n{r.formatted_response or r.message}" for r in successful
    )
    return (
        "## Tool Results\n"
        f"{body}\n\n"
        "Treat these results as authoritative."
    )


def _conversation_section(messages: list[Message]) -> str | None:
    recent = [m for m in messages[-HISTORY_WINDOW:] if m.content.strip()]
    if not recent:
        return None
    lines = "\n\n".join(f"**{m.role}**: {m.content}" for m in recent)
    return f"## Recent Conversation\n{lines}"


def _query_section(query: str, session_id: str, timestamp: datetime) -> str:
    return (
        "## Current Request\n"
        f"**Session**: {session_id}\n"
        f"**Time**: {timestamp.isoformat()}\n"
        f"**Query**: {query}\n\n"
        "Respond to this query using the context above."
    )


def build_sections(context: PromptContext) -> list[str]:
    """Ordered sections; the last one is always the current request."""
    sections = [BASE_INSTRUCTIONS]
    if context.memory_summary:
        sections.append(_memory_section(context.memory_summary))
    if context.rag_context:
        sections.append(_rag_section(context.rag_context, context.rag_sources))
    plugins = _plugin_section(context.plugin_results)
    if plugins:
        sections.append(plugins)
    conversation = _conversation_section(context.recent_messages)
    if conversation:
        sections.append(conversation)
    sections.append(_query_section(context.user_query, context.session_id, context.timestamp))
    return sections


def truncate_body(body: str, max_chars: int) -> str:
    """Keep the first 60% and last 30% of max_chars, with the marker in between."""
    keep_start = int(max(max_chars, 0) * KEEP_START_FRACTION)
    keep_end = int(max(max_chars, 0) * KEEP_END_FRACTION)
    if len(body) <= keep_start + keep_end:
        return body
    tail = body[len(body) - keep_end:] if keep_end else ""
    return body[:keep_start] + TRUNCATION_MARKER + tail


def assemble_prompt(context: PromptContext, budget_tokens: int = PROMPT_MAX_TOKENS) -> str:
    sections = build_sections(context)
    prompt = SECTION_SEPARATOR.join(sections)
    tokens = estimate_tokens(prompt)
    if tokens <= budget_tokens:
        return prompt

    query_section = sections[-1]
    body = SECTION_SEPARATOR.join(sections[:-1])
    available = (
        budget_tokens * CHARS_PER_TOKEN
        - len(query_section)
        - len(SECTION_SEPARATOR)
        - len(TRUNCATION_MARKER)
    )
    truncated = truncate_body(body, available) if available > 0 else TRUNCATION_MARKER.strip()
    out = truncated + SECTION_SEPARATOR + query_section
    logger.info(
        "[prompt:assemble] truncated tokens=%d budget=%d -> %d",
        tokens, budget_tokens, estimate_tokens(out),
    )
    return out
