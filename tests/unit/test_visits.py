import asyncio
import pytest
from unittest.mock import AsyncMock

from shortener.models import Link
from shortener.services.visits import Visit, VisitQueue, VisitRecorder
from shortener.store import LinkDetailsStore, LinkStore


async def wait_for_visits(link_store, short_code, expected, timeout=5.0):
    async def poll():
        while (await link_store.find_by_code(short_code)).visit_count < expected:
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout)


@pytest.mark.asyncio
async def test_record_counts_and_stores_geo(service, recorder, link_store, details_store, geo_provider):
    link = await service.create("https://example.com")

    await recorder.record(Visit.for_link(link, "81.20.1.1"))

    assert (await link_store.find_by_code(link.short_code)).visit_count == 1
    [details] = await details_store.find_for_link(link.id)
    assert details.ip == "81.20.1.1"
    assert details.city == "Lisbon"
    assert details.country_emoji == "🇵🇹"
    assert details.date is not None
    assert geo_provider.calls == ["81.20.1.1"]


@pytest.mark.asyncio
async def test_geo_failure_still_counts_visit(service, recorder, link_store, details_store, geo_provider):
    geo_provider.fail = True
    link = await service.create("https://example.com")

    await recorder.record(Visit.for_link(link, "10.0.0.1"))

    assert (await link_store.find_by_code(link.short_code)).visit_count == 1
    [details] = await details_store.find_for_link(link.id)
    assert details.ip == "10.0.0.1"
    assert details.country_code is None
    assert details.city is None
    assert details.latitude is None


@pytest.mark.asyncio
async def test_slow_geo_lookup_times_out(service, link_store, details_store, geo_provider):
    geo_provider.gate = asyncio.Event()  # never set
    recorder = VisitRecorder(link_store, details_store, geo_provider, geo_timeout=0.05)
    link = await service.create("https://example.com")

    await recorder.record(Visit.for_link(link, "10.0.0.1"))

    assert (await link_store.find_by_code(link.short_code)).visit_count == 1
    [details] = await details_store.find_for_link(link.id)
    assert details.country_name is None


@pytest.mark.asyncio
async def test_visit_without_ip_skips_lookup(service, recorder, details_store, geo_provider):
    link = await service.create("https://example.com")

    await recorder.record(Visit.for_link(link))

    assert geo_provider.calls == []
    [details] = await details_store.find_for_link(link.id)
    assert details.ip is None


@pytest.mark.asyncio
async def test_unknown_link_is_dropped(recorder, details_store, geo_provider):
    await recorder.record(Visit(link_id=12345, short_code="zzzz", ip="1.1.1.1"))

    assert geo_provider.calls == []
    assert await details_store.find_for_link(12345) == []


@pytest.mark.asyncio
async def test_increment_does_not_wait_for_geo(service, link_store, visit_queue, geo_provider):
    geo_provider.gate = asyncio.Event()
    link = await service.create("https://example.com")

    assert service.record_visit(link, "1.2.3.4")

    await wait_for_visits(link_store, link.short_code, 1)
    geo_provider.gate.set()
    await visit_queue.join()


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(service, link_store):
    link = await service.create("https://example.com")

    results = await asyncio.gather(*[link_store.increment_visit(link.short_code) for _ in range(100)])

    assert all(results)
    assert (await link_store.find_by_code(link.short_code)).visit_count == 100


@pytest.mark.asyncio
async def test_queue_records_every_visit(service, link_store, details_store, visit_queue):
    link = await service.create("https://example.com")

    for i in range(100):
        assert service.record_visit(link, f"10.0.0.{i}")
    await visit_queue.join()

    assert (await link_store.find_by_code(link.short_code)).visit_count == 100
    assert len(await details_store.find_for_link(link.id, limit=1000)) == 100


@pytest.mark.asyncio
async def test_full_queue_drops_visit():
    recorder = AsyncMock(spec=VisitRecorder)
    queue = VisitQueue(recorder, maxsize=1, workers=1)  # not started
    visit = Visit(link_id=1, short_code="2223")

    assert queue.submit(visit) is True
    assert queue.submit(visit) is False


@pytest.mark.asyncio
async def test_close_drains_pending_visits():
    recorder = AsyncMock(spec=VisitRecorder)
    queue = VisitQueue(recorder, maxsize=10, workers=2)
    queue.start()
    for _ in range(5):
        queue.submit(Visit(link_id=1, short_code="2223"))

    await queue.close(timeout=5.0)

    assert recorder.record.await_count == 5
    assert queue.submit(Visit(link_id=1, short_code="2223")) is False


@pytest.mark.asyncio
async def test_worker_survives_recorder_errors():
    recorder = AsyncMock(spec=VisitRecorder)
    recorder.record.side_effect = [RuntimeError("boom"), None]
    queue = VisitQueue(recorder, maxsize=10, workers=1)
    queue.start()

    queue.submit(Visit(link_id=1, short_code="2223"))
    queue.submit(Visit(link_id=2, short_code="2224"))
    await queue.join()

    assert recorder.record.await_count == 2
    await queue.close()


@pytest.mark.asyncio
async def test_storage_error_on_increment_still_records_details(details_store, geo_provider):
    links = AsyncMock(spec=LinkStore)
    links.increment_visit.side_effect = RuntimeError("db down")
    details = AsyncMock(spec=LinkDetailsStore)
    recorder = VisitRecorder(links, details, geo_provider)

    await recorder.record(Visit(link_id=7, short_code="2229", ip="1.2.3.4"))

    details.add.assert_awaited_once()
    [record] = details.add.await_args.args
    assert record.link_id == 7
    assert record.city == "Lisbon"
