"""
In-memory conversation store. Keyed by session_id; history is not sent from the client.

Sessions are created lazily, capped at MAX_MESSAGES_PER_SESSION (oldest dropped
first) and expired by a periodic sweep once idle for longer than
MAX_SESSION_AGE_SECONDS. Callers only ever receive snapshots.
"""

import asyncio
import contextlib
import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from orchestrator.core.config import (
    MAX_MESSAGES_PER_SESSION,
    MAX_SESSION_AGE_SECONDS,
    SUMMARY_MAX_CHARS,
    SUMMARY_TOPIC_CHARS,
    SWEEP_INTERVAL_SECONDS,
)

logger = logging.getLogger(__name__)

NO_HISTORY = "No previous conversation history."
ROLES = frozenset({"user", "assistant", "system"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    role: str
    content: str
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")


@dataclass
class Session:
    id: str
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    last_activity: datetime = field(default_factory=utc_now)

    def snapshot(self) -> "Session":
        return Session(
            id=self.id,
            messages=list(self.messages),
            created_at=self.created_at,
            last_activity=self.last_activity,
        )


@dataclass(frozen=True)
class SessionInfo:
    session_id: str
    message_count: int
    last_activity: datetime


@dataclass(frozen=True)
class SessionStats:
    message_count: int
    user_messages: int
    assistant_messages: int
    session_age: str
    last_activity: str


@dataclass
class _Entry:
    session: Session
    lock: threading.Lock = field(default_factory=threading.Lock)
    removed: bool = False


def format_time_ago(then: datetime, now: datetime) -> str:
    """Coarse relative time: '3d ago', '2h ago', '5m ago' or 'just now'."""
    seconds = max(0.0, (now - then).total_seconds())
    days = int(seconds // 86400)
    hours = int(seconds // 3600)
    minutes = int(seconds // 60)
    if days > 0:
        return f"{days}d ago"
    if hours > 0:
        return f"{hours}h ago"
    if minutes > 0:
        return f"{minutes}m ago"
    return "just now"


class MemoryStore:
    """
    Thread-safe session table.

    The table lock only guards the id -> entry map; each session has its own lock
    so appends to one session never wait on another.
    """

    def __init__(
        self,
        max_messages: int = MAX_MESSAGES_PER_SESSION,
        max_age_seconds: float = MAX_SESSION_AGE_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if max_messages <= 0:
            raise ValueError("max_messages must be positive")
        self.max_messages = max_messages
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._table_lock = threading.Lock()

    def _entry(self, session_id: str, create: bool) -> _Entry | None:
        with self._table_lock:
            entry = self._entries.get(session_id)
            if entry is None and create:
                now = self._clock()
                entry = _Entry(Session(id=session_id, created_at=now, last_activity=now))
                self._entries[session_id] = entry
                logger.info("[session_store:create] session_id=%s", session_id[:16])
            return entry

    def get_or_create(self, session_id: str) -> Session:
        entry = self._entry(session_id, create=True)
        with entry.lock:
            return entry.session.snapshot()

    def get(self, session_id: str) -> Session | None:
        entry = self._entry(session_id, create=False)
        if entry is None:
            return None
        with entry.lock:
            if entry.removed:
                return None
            return entry.session.snapshot()

    def append(self, session_id: str, message: Message) -> None:
        """Append one message, stamping it when it has no timestamp, and trim to the cap."""
        while True:
            entry = self._entry(session_id, create=True)
            with entry.lock:
                # Cleared or swept between lookup and lock: retry against a fresh entry.
                if entry.removed:
                    continue
                now = self._clock()
                if message.timestamp is None:
                    message = dataclasses.replace(message, timestamp=now)
                session = entry.session
                session.messages.append(message)
                overflow = len(session.messages) - self.max_messages
                if overflow > 0:
                    del session.messages[:overflow]
                session.last_activity = now
                count = len(session.messages)
            break
        logger.info(
            "[session_store:append] session_id=%s role=%s content_len=%d messages=%d",
            session_id[:16], message.role, len(message.content), count,
        )

    def recent_window(self, session_id: str, n: int) -> list[Message]:
        """Return the last n messages in insertion order (empty for unknown sessions)."""
        session = self.get(session_id)
        if session is None or n <= 0:
            return []
        return session.messages[-n:]

    def summarize(self, session_id: str) -> str:
        """Short text digest of the session for the prompt. Never raises."""
        session = self.get(session_id)
        if session is None or not session.messages:
            return NO_HISTORY
        messages = session.messages
        users = [m for m in messages if m.role == "user"]
        assistants = sum(1 for m in messages if m.role == "assistant")
        summary = (
            f"Session Info: {len(messages)} total messages "
            f"({len(users)} user, {assistants} assistant)."
        )
        if users:
            topics = ", ".join(
                f'"{m.content[:SUMMARY_TOPIC_CHARS]}..."' for m in users[-2:]
            )
            summary += f" Recent topics: {topics}."
        last = messages[-1].timestamp or session.last_activity
        summary += f" Last activity: {format_time_ago(last, self._clock())}"
        if len(summary) > SUMMARY_MAX_CHARS:
            summary = summary[: SUMMARY_MAX_CHARS - 3] + "..."
        return summary

    def clear(self, session_id: str) -> bool:
        with self._table_lock:
            entry = self._entries.pop(session_id, None)
        if entry is None:
            return False
        with entry.lock:
            entry.removed = True
        logger.info("[session_store:clear] session_id=%s", session_id[:16])
        return True

    def list_active(self) -> list[SessionInfo]:
        with self._table_lock:
            entries = list(self._entries.items())
        out = []
        for session_id, entry in entries:
            with entry.lock:
                if entry.removed:
                    continue
                out.append(SessionInfo(
                    session_id=session_id,
                    message_count=len(entry.session.messages),
                    last_activity=entry.session.last_activity,
                ))
        return out

    def stats(self, session_id: str) -> SessionStats | None:
        session = self.get(session_id)
        if session is None:
            return None
        now = self._clock()
        return SessionStats(
            message_count=len(session.messages),
            user_messages=sum(1 for m in session.messages if m.role == "user"),
            assistant_messages=sum(1 for m in session.messages if m.role == "assistant"),
            session_age=format_time_ago(session.created_at, now),
            last_activity=format_time_ago(session.last_activity, now),
        )

    def sweep(self, now: datetime | None = None) -> int:
        """Remove sessions idle for longer than max_age_seconds. Returns how many were removed."""
        now = now or self._clock()
        removed = 0
        with self._table_lock:
            for session_id, entry in list(self._entries.items()):
                with entry.lock:
                    idle = (now - entry.session.last_activity).total_seconds()
                    if idle <= self.max_age_seconds:
                        continue
                    entry.removed = True
                del self._entries[session_id]
                removed += 1
        if removed:
            logger.info("[session_store:sweep] removed=%d", removed)
        return removed

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._entries)


class SessionSweeper:
    """Runs MemoryStore.sweep on a fixed interval in the background event loop."""

    def __init__(self, store: MemoryStore, interval: float = SWEEP_INTERVAL_SECONDS) -> None:
        self._store = store
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("[session_sweeper:start] interval=%.0fs", self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("[session_sweeper:stop]")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._store.sweep()
            except Exception:
                logger.exception("[session_sweeper] sweep failed")
