"""Tests for the shared cool-down clock and knowledge cache."""

from __future__ import annotations

import threading

from chatroute.llm.gateway_state import GatewayState, KnowledgeCache, normalize_knowledge_key


class _Clock:
    def __init__(self, now_ms: int = 1_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


class TestNormalizeKey:
    def test_lowercase_trim_and_collapse(self):
        assert normalize_knowledge_key("  What   is\n\tKubernetes  ") == "what is kubernetes"

    def test_truncates_before_normalizing(self):
        prompt = "a" * 150 + " " + "b" * 100
        key = normalize_knowledge_key(prompt, max_chars=200)
        assert key == "a" * 150 + " " + "b" * 49

    def test_near_duplicates_collide(self):
        base = "What is Kubernetes? " + "x" * 300
        assert normalize_knowledge_key(base + " one") == normalize_knowledge_key(base + " two")


class TestKnowledgeCache:
    def test_put_get(self):
        cache = KnowledgeCache(capacity=3)
        cache.put("What is Python", "A language.")
        assert cache.get("what is   python") == "A language."
        assert "WHAT IS PYTHON" in cache
        assert len(cache) == 1

    def test_miss_returns_none(self):
        assert KnowledgeCache().get("what is rust") is None

    def test_evicts_oldest_inserted(self):
        cache = KnowledgeCache(capacity=2)
        cache.put("what is a", "A")
        cache.put("what is b", "B")
        cache.get("what is a")  # reads do not refresh position
        cache.put("what is c", "C")
        assert cache.get("what is a") is None
        assert cache.get("what is b") == "B"
        assert cache.get("what is c") == "C"

    def test_overwrite_does_not_evict(self):
        cache = KnowledgeCache(capacity=2)
        cache.put("what is a", "A")
        cache.put("what is b", "B")
        cache.put("what is a", "A2")
        assert len(cache) == 2
        assert cache.get("what is a") == "A2"
        assert cache.get("what is b") == "B"

    def test_capacity_is_bounded(self):
        cache = KnowledgeCache(capacity=200)
        for i in range(250):
            cache.put(f"what is item {i}", str(i))
        assert len(cache) == 200
        assert cache.get("what is item 49") is None
        assert cache.get("what is item 50") == "50"

    def test_concurrent_puts_stay_bounded(self):
        cache = KnowledgeCache(capacity=50)

        def worker(offset: int) -> None:
            for i in range(100):
                cache.put(f"what is {offset}-{i}", "x")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(cache) == 50


class TestGatewayState:
    def test_initially_unblocked(self):
        state = GatewayState(clock=_Clock())
        assert state.blocked_until == 0
        assert state.remaining_ms() == 0

    def test_block_for_sets_deadline(self):
        clock = _Clock(5_000)
        state = GatewayState(clock=clock)
        deadline = state.block_for(20_000)
        assert deadline == 25_000
        assert state.blocked_until == 25_000
        assert state.remaining_ms() == 20_000

        clock.now_ms = 24_000
        assert state.remaining_ms() == 1_000

        clock.now_ms = 25_001
        assert state.remaining_ms() == 0

    def test_negative_delay_clamped(self):
        state = GatewayState(clock=_Clock(100))
        assert state.block_for(-5) == 100
        assert state.remaining_ms() == 0

    def test_reset_clears_clock_and_cache(self):
        state = GatewayState(clock=_Clock())
        state.block_for(10_000)
        state.cache.put("what is go", "A language.")
        state.reset()
        assert state.blocked_until == 0
        assert len(state.cache) == 0

    def test_cache_settings_forwarded(self):
        state = GatewayState(cache_capacity=7, key_chars=10)
        assert state.cache.capacity == 7
        assert state.cache.key_for("ABCDEFGHIJKLMNOP") == "abcdefghij"
