"""
Tests for the anonymous usage store behind the free-tier gate.
"""

import asyncio

from isolation_api.middleware.tier_check import AnonymousUsageStore


class FakeClock:

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestAnonymousUsageStore:

    def test_counts_per_key(self):
        store = AnonymousUsageStore()

        async def run():
            await store.increment("session:a")
            await store.increment("session:a")
            await store.increment("session:b")
            return await store.get("session:a"), await store.get("session:b"), await store.get("session:c")

        assert asyncio.run(run()) == (2, 1, 0)

    def test_idle_keys_pruned(self):
        clock = FakeClock()
        store = AnonymousUsageStore(ttl=600, clock=clock)

        async def run():
            for n in range(20):
                await store.increment(f"session:{n}")
            assert len(store) == 20

            clock.now += 601
            await store.increment("session:fresh")

        asyncio.run(run())
        assert len(store) == 1
        assert asyncio.run(store.get("session:0")) == 0

    def test_active_keys_survive_cleanup(self):
        clock = FakeClock()
        store = AnonymousUsageStore(ttl=600, clock=clock)

        async def run():
            await store.increment("session:idle")
            clock.now += 400
            await store.increment("session:active")
            clock.now += 300
            return await store.get("session:active"), await store.get("session:idle")

        assert asyncio.run(run()) == (1, 0)
        assert len(store) == 1

    def test_cleanup_throttled(self):
        clock = FakeClock()
        store = AnonymousUsageStore(ttl=10, clock=clock)

        async def run():
            await store.increment("session:a")
            clock.now += 60
            await store.increment("session:b")

        asyncio.run(run())
        # under the cleanup interval, so the idle key is still held
        assert len(store) == 2
