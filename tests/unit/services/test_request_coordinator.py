from __future__ import annotations

import asyncio

import pytest

from farmwatch.domain.exceptions import RequestCancelled


class GatedFetch:
    """Fetch function that blocks until released and counts invocations."""

    def __init__(self, value="payload"):
        self.value = value
        self.calls = 0
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.cancelled = False
        self.error: Exception | None = None

    async def __call__(self):
        self.calls += 1
        self.started.set()
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.value


@pytest.mark.asyncio
async def test_cache_hit_skips_fetch(coordinator, telemetry_cache):
    telemetry_cache.set("k", "cached")
    fetch = GatedFetch()

    assert await coordinator.fetch_deduplicated("k", fetch) == "cached"
    assert fetch.calls == 0


@pytest.mark.asyncio
async def test_concurrent_identical_requests_share_one_fetch(coordinator):
    fetch = GatedFetch()

    waiters = [asyncio.ensure_future(coordinator.fetch_deduplicated("k", fetch)) for _ in range(3)]
    await fetch.started.wait()
    assert coordinator.is_pending("k")

    fetch.release.set()
    results = await asyncio.gather(*waiters)

    assert results == ["payload"] * 3
    assert fetch.calls == 1
    assert coordinator.pending_count == 0


@pytest.mark.asyncio
async def test_success_populates_cache(coordinator, telemetry_cache, fake_clock):
    fetch = GatedFetch()
    fetch.release.set()

    await coordinator.fetch_deduplicated("k", fetch)
    fake_clock.advance(10)
    await coordinator.fetch_deduplicated("k", fetch)

    assert fetch.calls == 1
    assert telemetry_cache.get("k") == "payload"


@pytest.mark.asyncio
async def test_expired_entry_triggers_refetch(coordinator, fake_clock):
    fetch = GatedFetch()
    fetch.release.set()

    await coordinator.fetch_deduplicated("k", fetch)
    fake_clock.advance(31)
    await coordinator.fetch_deduplicated("k", fetch)

    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_failure_reaches_every_waiter_and_is_not_cached(coordinator, telemetry_cache):
    fetch = GatedFetch()
    boom = ConnectionError("backend down")
    fetch.error = boom

    waiters = [asyncio.ensure_future(coordinator.fetch_deduplicated("k", fetch)) for _ in range(2)]
    await fetch.started.wait()
    fetch.release.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert results[0] is boom
    assert results[1] is boom
    assert telemetry_cache.get("k") is None
    assert coordinator.pending_count == 0

    # Next call retries
    fetch.error = None
    assert await coordinator.fetch_deduplicated("k", fetch) == "payload"
    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_abort_only_affects_its_own_caller(coordinator):
    fetch = GatedFetch()
    abort = asyncio.Event()

    patient = asyncio.ensure_future(coordinator.fetch_deduplicated("k", fetch))
    impatient = asyncio.ensure_future(coordinator.fetch_deduplicated("k", fetch, signal=abort))
    await fetch.started.wait()

    abort.set()
    with pytest.raises(RequestCancelled):
        await impatient

    fetch.release.set()
    assert await patient == "payload"
    assert fetch.cancelled is False
    assert fetch.calls == 1


@pytest.mark.asyncio
async def test_last_waiter_abort_cancels_fetch(coordinator, telemetry_cache):
    fetch = GatedFetch()
    abort = asyncio.Event()

    waiter = asyncio.ensure_future(coordinator.fetch_deduplicated("k", fetch, signal=abort))
    await fetch.started.wait()
    abort.set()

    with pytest.raises(RequestCancelled) as exc_info:
        await waiter
    await asyncio.sleep(0)

    assert exc_info.value.is_cancellation is True
    assert fetch.cancelled is True
    assert coordinator.pending_count == 0
    assert telemetry_cache.get("k") is None


@pytest.mark.asyncio
async def test_already_aborted_signal_never_fetches(coordinator):
    fetch = GatedFetch()
    abort = asyncio.Event()
    abort.set()

    with pytest.raises(RequestCancelled):
        await coordinator.fetch_deduplicated("k", fetch, signal=abort)
    assert fetch.calls == 0


@pytest.mark.asyncio
async def test_task_cancellation_of_sole_waiter_cancels_fetch(coordinator):
    fetch = GatedFetch()

    waiter = asyncio.ensure_future(coordinator.fetch_deduplicated("k", fetch))
    await fetch.started.wait()
    waiter.cancel()

    with pytest.raises(asyncio.CancelledError):
        await waiter
    await asyncio.sleep(0)

    assert fetch.cancelled is True
    assert coordinator.pending_count == 0


@pytest.mark.asyncio
async def test_distinct_keys_fetch_independently(coordinator):
    a, b = GatedFetch("a"), GatedFetch("b")
    a.release.set()
    b.release.set()

    results = await asyncio.gather(
        coordinator.fetch_deduplicated("a", a),
        coordinator.fetch_deduplicated("b", b),
    )

    assert results == ["a", "b"]
    assert a.calls == b.calls == 1


@pytest.mark.asyncio
async def test_clear_drops_cache_and_stale_results(coordinator, telemetry_cache):
    telemetry_cache.set("old", "value")
    fetch = GatedFetch()

    waiter = asyncio.ensure_future(coordinator.fetch_deduplicated("k", fetch))
    await fetch.started.wait()

    coordinator.clear()
    coordinator.clear()
    assert telemetry_cache.get("old") is None
    assert coordinator.pending_count == 0

    fetch.release.set()
    # The existing waiter still gets its answer, but it is not cached
    assert await waiter == "payload"
    assert telemetry_cache.get("k") is None

    # A new request after clear starts a fresh fetch
    fresh = GatedFetch("fresh")
    fresh.release.set()
    assert await coordinator.fetch_deduplicated("k", fresh) == "fresh"
    assert fresh.calls == 1
