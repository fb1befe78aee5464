"""
Unit tests for the conversation memory store and its sweeper.
"""

import asyncio
import threading
from datetime import datetime, timedelta, timezone

import pytest

from orchestrator.core import session_store
from orchestrator.core.session_store import (
    NO_HISTORY,
    MemoryStore,
    Message,
    SessionSweeper,
    format_time_ago,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(max_messages=50, max_age_seconds=24 * 3600, clock=clock)


class TestMessage:
    def test_rejects_unknown_role(self) -> None:
        with pytest.raises(ValueError):
            Message(role="robot", content="hi")


class TestAppend:
    def test_creates_session_lazily_and_stamps_timestamp(self, store: MemoryStore, clock: FakeClock) -> None:
        assert store.get("s1") is None
        store.append("s1", Message(role="user", content="hello"))
        session = store.get("s1")
        assert session is not None
        assert session.messages[0].timestamp == T0
        assert session.last_activity == T0

    def test_keeps_given_timestamp(self, store: MemoryStore) -> None:
        stamp = T0 - timedelta(minutes=5)
        store.append("s1", Message(role="user", content="hello", timestamp=stamp))
        assert store.get("s1").messages[0].timestamp == stamp

    def test_fifo_trim_at_cap(self, clock: FakeClock) -> None:
        store = MemoryStore(max_messages=3, clock=clock)
        for i in range(5):
            store.append("s1", Message(role="user", content=f"m{i}"))
        assert [m.content for m in store.get("s1").messages] == ["m2", "m3", "m4"]

    def test_snapshots_do_not_leak_mutation(self, store: MemoryStore) -> None:
        store.append("s1", Message(role="user", content="hello"))
        snapshot = store.get("s1")
        snapshot.messages.clear()
        assert len(store.get("s1").messages) == 1

    def test_concurrent_appends_are_all_recorded(self) -> None:
        store = MemoryStore(max_messages=1000)

        def worker(n: int) -> None:
            for i in range(20):
                store.append("shared", Message(role="user", content=f"{n}-{i}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store.get("shared").messages) == 200


class TestRecentWindow:
    def test_returns_last_n_in_order(self, store: MemoryStore) -> None:
        for i in range(10):
            store.append("s1", Message(role="user" if i % 2 == 0 else "assistant", content=f"m{i}"))
        assert [m.content for m in store.recent_window("s1", 3)] == ["m7", "m8", "m9"]

    def test_unknown_session_is_empty(self, store: MemoryStore) -> None:
        assert store.recent_window("missing", 6) == []


class TestSummarize:
    def test_absent_session_returns_sentinel(self, store: MemoryStore) -> None:
        assert store.summarize("missing") == NO_HISTORY

    def test_empty_session_returns_sentinel(self, store: MemoryStore) -> None:
        store.get_or_create("s1")
        assert store.summarize("s1") == NO_HISTORY

    def test_reports_counts_topics_and_activity(self, store: MemoryStore, clock: FakeClock) -> None:
        store.append("s1", Message(role="user", content="first question"))
        store.append("s1", Message(role="assistant", content="first answer"))
        store.append("s1", Message(role="user", content="second question"))
        clock.advance(minutes=5)
        summary = store.summarize("s1")
        assert "3 total messages" in summary
        assert "2 user, 1 assistant" in summary
        assert '"first question..."' in summary
        assert '"second question..."' in summary
        assert "Last activity: 5m ago" in summary

    def test_only_last_two_user_turns(self, store: MemoryStore) -> None:
        for text in ("alpha", "beta", "gamma"):
            store.append("s1", Message(role="user", content=text))
        summary = store.summarize("s1")
        assert "alpha" not in summary
        assert "beta" in summary and "gamma" in summary

    def test_hard_truncates_to_budget(self, store: MemoryStore, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(session_store, "SUMMARY_MAX_CHARS", 60)
        store.append("s1", Message(role="user", content="q" * 100))
        summary = store.summarize("s1")
        assert len(summary) == 60
        assert summary.endswith("...")


class TestClearAndStats:
    def test_clear_reports_existence(self, store: MemoryStore) -> None:
        store.append("s1", Message(role="user", content="hi"))
        assert store.clear("s1") is True
        assert store.clear("s1") is False
        assert store.get("s1") is None

    def test_append_after_clear_starts_fresh(self, store: MemoryStore) -> None:
        store.append("s1", Message(role="user", content="old"))
        store.clear("s1")
        store.append("s1", Message(role="user", content="new"))
        assert [m.content for m in store.get("s1").messages] == ["new"]

    def test_stats(self, store: MemoryStore, clock: FakeClock) -> None:
        store.append("s1", Message(role="user", content="q"))
        store.append("s1", Message(role="assistant", content="a"))
        clock.advance(hours=2)
        stats = store.stats("s1")
        assert stats.message_count == 2
        assert stats.user_messages == 1
        assert stats.assistant_messages == 1
        assert stats.session_age == "2h ago"
        assert stats.last_activity == "2h ago"
        assert store.stats("missing") is None

    def test_list_active(self, store: MemoryStore) -> None:
        store.append("a", Message(role="user", content="x"))
        store.append("b", Message(role="user", content="y"))
        store.append("b", Message(role="assistant", content="z"))
        infos = {i.session_id: i.message_count for i in store.list_active()}
        assert infos == {"a": 1, "b": 2}


class TestSweep:
    def test_removes_idle_sessions_only(self, store: MemoryStore, clock: FakeClock) -> None:
        store.append("old", Message(role="user", content="x"))
        clock.advance(hours=20)
        store.append("fresh", Message(role="user", content="y"))
        clock.advance(hours=5)
        assert store.sweep() == 1
        assert store.get("old") is None
        assert store.get("fresh") is not None

    def test_explicit_now(self, store: MemoryStore) -> None:
        store.append("s1", Message(role="user", content="x"))
        assert store.sweep(now=T0 + timedelta(hours=23)) == 0
        assert store.sweep(now=T0 + timedelta(hours=25)) == 1

    def test_sweeper_runs_in_background(self) -> None:
        store = MemoryStore(max_age_seconds=0)
        store.append("s1", Message(role="user", content="x"))

        async def scenario() -> None:
            sweeper = SessionSweeper(store, interval=0.01)
            sweeper.start()
            assert sweeper.running
            await asyncio.sleep(0.1)
            await sweeper.stop()
            assert not sweeper.running

        asyncio.run(scenario())
        assert store.get("s1") is None


class TestFormatTimeAgo:
    @pytest.mark.parametrize(
        "delta,expected",
        [
            (timedelta(seconds=30), "just now"),
            (timedelta(minutes=3), "3m ago"),
            (timedelta(hours=4, minutes=10), "4h ago"),
            (timedelta(days=2, hours=1), "2d ago"),
        ],
    )
    def test_buckets(self, delta: timedelta, expected: str) -> None:
        assert format_time_ago(T0, T0 + delta) == expected
