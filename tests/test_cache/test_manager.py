"""Tests for the freshness-aware CacheManager."""

from __future__ import annotations

import diskcache
import pytest

from tearoute.cache.manager import CacheManager, Freshness
from tearoute.models import CacheStrategy


def _manager(clock, stale_time: float = 10.0, **kwargs) -> CacheManager:
    return CacheManager(CacheStrategy.MEMORY, stale_time, clock=clock, **kwargs)


# ------------------------------------------------------------------ #
# Freshness
# ------------------------------------------------------------------ #


class TestFreshness:
    def test_missing_key(self, clock) -> None:
        assert _manager(clock).get("k") is None

    def test_fresh_within_stale_time(self, clock) -> None:
        manager = _manager(clock)
        manager.set("k", {"id": 1})
        clock.advance(10.0)

        state = manager.get("k")
        assert state is not None
        assert state.status == Freshness.FRESH
        assert state.data == {"id": 1}
        assert state.timestamp == 1_000.0

    def test_stale_after_stale_time(self, clock) -> None:
        manager = _manager(clock)
        manager.set("k", "v")
        clock.advance(10.5)
        assert manager.get("k").status == Freshness.STALE

    def test_zero_stale_time_is_stale_once_time_moves(self, clock) -> None:
        manager = _manager(clock, stale_time=0)
        manager.set("k", "v")
        assert manager.get("k").is_fresh
        clock.advance(0.001)
        assert not manager.get("k").is_fresh

    def test_set_restamps(self, clock) -> None:
        manager = _manager(clock)
        manager.set("k", "old")
        clock.advance(20)
        manager.set("k", "new")
        state = manager.get("k")
        assert state.is_fresh
        assert state.data == "new"

    def test_last_write_wins(self, clock) -> None:
        manager = _manager(clock)
        manager.set("k", 1)
        manager.set("k", 2)
        assert manager.get("k").data == 2
        assert len(manager) == 1

    def test_disk_strategy_shares_directory(self, clock, tmp_path) -> None:
        writer = CacheManager(CacheStrategy.DISK, 60, directory=tmp_path, clock=clock)
        writer.set("k", {"id": 1})
        writer.close()

        reader = CacheManager(CacheStrategy.DISK, 60, directory=tmp_path, clock=clock)
        try:
            assert reader.get("k").data == {"id": 1}
        finally:
            reader.close()

    def test_locked_disk_reads_as_miss(self, clock, tmp_path, monkeypatch) -> None:
        def locked(*args, **kwargs):
            raise diskcache.Timeout("database is locked")

        monkeypatch.setattr(diskcache.Cache, "set", locked)
        monkeypatch.setattr(diskcache.Cache, "get", locked)

        manager = CacheManager(CacheStrategy.DISK, 60, directory=tmp_path, clock=clock)
        try:
            manager.set("k", {"id": 1})
            assert manager.get("k") is None
        finally:
            manager.close()


# ------------------------------------------------------------------ #
# Invalidation
# ------------------------------------------------------------------ #


class TestInvalidate:
    def test_invalidate_keeps_payload_but_reads_stale(self, clock) -> None:
        manager = _manager(clock)
        manager.set("k", "v")
        manager.invalidate("k")

        state = manager.get("k")
        assert state.status == Freshness.STALE
        assert state.data == "v"

    def test_invalidate_missing_key_is_noop(self, clock) -> None:
        manager = _manager(clock)
        manager.invalidate("k")
        assert manager.get("k") is None

    def test_invalidate_all(self, clock) -> None:
        manager = _manager(clock)
        manager.set("a", 1)
        manager.set("b", 2)
        manager.invalidate_all()
        assert not manager.get("a").is_fresh
        assert not manager.get("b").is_fresh

    def test_set_after_invalidate_is_fresh(self, clock) -> None:
        manager = _manager(clock)
        manager.set("k", 1)
        manager.invalidate("k")
        manager.set("k", 2)
        assert manager.get("k").is_fresh

    def test_clear_resets_storage(self, clock) -> None:
        manager = _manager(clock)
        manager.set("a", 1)
        old_storage = manager.storage
        manager.clear()
        assert manager.get("a") is None
        assert manager.storage is not old_storage


class TestInvalidateAndRefetch:
    @pytest.mark.asyncio
    async def test_restamps_before_refetching(self, clock) -> None:
        seen: list[tuple[str, float]] = []

        async def refetch(key: str) -> None:
            seen.append((key, manager.get(key).timestamp))
            clock.advance(1)

        manager = _manager(clock, on_refetch=refetch)
        manager.set("a", 1)
        clock.advance(5)
        manager.set("b", 2)
        clock.advance(100)

        await manager.invalidate_and_refetch()

        assert sorted(key for key, _ in seen) == ["a", "b"]
        # Every entry was restamped to the same instant before the first refetch.
        assert {ts for _, ts in seen} == {1_105.0}

    @pytest.mark.asyncio
    async def test_first_failure_propagates(self, clock) -> None:
        calls: list[str] = []

        async def refetch(key: str) -> None:
            calls.append(key)
            raise RuntimeError("boom")

        manager = _manager(clock, on_refetch=refetch)
        manager.set("a", 1)
        manager.set("b", 2)

        with pytest.raises(RuntimeError, match="boom"):
            await manager.invalidate_and_refetch()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_without_callback_only_restamps(self, clock) -> None:
        manager = _manager(clock)
        manager.set("a", 1)
        clock.advance(50)
        await manager.invalidate_and_refetch()
        assert manager.get("a").timestamp == 1_050.0
        assert manager.get("a").is_fresh


# ------------------------------------------------------------------ #
# Focus refetch and mount
# ------------------------------------------------------------------ #


class TestRefetchStale:
    @pytest.mark.asyncio
    async def test_refetches_only_stale_keys(self, clock) -> None:
        refetched: list[str] = []

        async def refetch(key: str) -> None:
            refetched.append(key)

        manager = _manager(clock, refetch_on_window_focus=True, on_refetch=refetch)
        manager.set("old", 1)
        clock.advance(20)
        manager.set("new", 2)

        assert await manager.refetch_stale() == ["old"]
        assert refetched == ["old"]

    @pytest.mark.asyncio
    async def test_inactive_without_focus_option(self, clock) -> None:
        async def refetch(key: str) -> None:
            raise AssertionError("should not be called")

        manager = _manager(clock, on_refetch=refetch)
        manager.set("k", 1)
        clock.advance(20)
        assert await manager.refetch_stale() == []

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_other_keys(self, clock) -> None:
        refetched: list[str] = []

        async def refetch(key: str) -> None:
            refetched.append(key)
            if key == "a":
                raise RuntimeError("boom")

        manager = _manager(clock, refetch_on_window_focus=True, on_refetch=refetch)
        manager.set("a", 1)
        manager.set("b", 2)
        clock.advance(20)

        result = await manager.refetch_stale()
        assert sorted(result) == ["a", "b"]
        assert sorted(refetched) == ["a", "b"]


class TestMount:
    def test_first_read_reported_when_enabled(self, clock) -> None:
        manager = _manager(clock, refetch_on_mount=True)
        assert manager.mark_mounted("k") is True
        assert manager.mark_mounted("k") is False

    def test_never_reported_when_disabled(self, clock) -> None:
        manager = _manager(clock)
        assert manager.mark_mounted("k") is False

    def test_clear_forgets_mounted_keys(self, clock) -> None:
        manager = _manager(clock, refetch_on_mount=True)
        manager.mark_mounted("k")
        manager.clear()
        assert manager.mark_mounted("k") is True
