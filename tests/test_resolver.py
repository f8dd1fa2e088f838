import asyncio
import json

import pytest

from office_finder.core.cache import CacheLayer, cache_key
from office_finder.core.errors import ResolutionExhausted
from office_finder.messaging.assembler import ResponseAssembler
from office_finder.models import Provenance, SourceKind
from office_finder.pipeline import resolver
from office_finder.pipeline.resolver import QueryResolutionPipeline
from office_finder.pipeline.stages import GenericFallbackStage, LiveDiscoveryStage, SemanticSearchStage

from fakes import (
    FakeGeocoder,
    FakeIndex,
    FakeLiveClient,
    FakeProvider,
    make_profile,
    make_query,
    make_settings,
    office_hit,
    place_record,
)

KOTHRUD = (18.5074, 73.8077)
GENERIC_ANSWER = json.dumps(
    {
        "service_type": "passport renewal",
        "required_documents": ["Old passport"],
        "offices": [{"name": "Passport Seva Kendra", "address": "Mundhwa Road", "city": "Pune", "state": "Maharashtra"}],
    }
)


class SlowIndex(FakeIndex):
    async def search(self, text, top_k, threshold_hint):
        await asyncio.sleep(1)
        return []


class BrokenIndex(FakeIndex):
    async def search(self, text, top_k, threshold_hint):
        raise RuntimeError("pgvector unavailable")


def build_pipeline(index=None, live_records=None, live_error=None, providers=None, geocoder=None, cache=None, **settings):
    index = index if index is not None else FakeIndex()
    cache = cache if cache is not None else CacheLayer()
    client = FakeLiveClient(live_records or [], error=live_error)
    pipeline = QueryResolutionPipeline(
        semantic=SemanticSearchStage(index),
        live=LiveDiscoveryStage(client, cache),
        fallback=GenericFallbackStage(providers or [], timeout=0.5),
        settings=make_settings(**settings),
        index=index,
        cache=cache,
        geocoder=geocoder,
    )
    return pipeline, client


@pytest.mark.asyncio
async def test_high_confidence_index_match_skips_later_stages():
    index = FakeIndex({0.8: [office_hit("RPO Pune", 0.91)]})
    provider = FakeProvider("openai", text=GENERIC_ANSWER)
    pipeline, client = build_pipeline(index=index, live_records=[place_record("PSK", "Baner")], providers=[provider])

    rec = await pipeline.resolve(make_query(), make_profile())

    assert rec.provenance is Provenance.INDEX_HIGH
    assert [office.name for office in rec.offices] == ["RPO Pune"]
    assert client.calls == []
    assert provider.calls == 0
    assert rec.requires_disclaimer is False


@pytest.mark.asyncio
async def test_broad_index_match_after_high_miss():
    index = FakeIndex({0.5: [office_hit("RPO Pune", 0.62)]})
    pipeline, client = build_pipeline(index=index)

    rec = await pipeline.resolve(make_query(), make_profile())

    assert rec.provenance is Provenance.INDEX_BROAD
    assert [threshold for _, _, threshold in index.searches] == [0.8, 0.5]
    assert client.calls == []


@pytest.mark.asyncio
async def test_thresholds_come_from_settings():
    index = FakeIndex()
    pipeline, _ = build_pipeline(
        index=index,
        live_records=[place_record("PSK", "Baner")],
        high_confidence_threshold=0.9,
        broad_confidence_threshold=0.6,
    )

    await pipeline.resolve(make_query(), make_profile())

    assert [threshold for _, _, threshold in index.searches] == [0.9, 0.6]


@pytest.mark.asyncio
async def test_fresh_live_result_feeds_index_and_invalidates_cache():
    index = FakeIndex()
    cache = CacheLayer()
    pipeline, client = build_pipeline(index=index, cache=cache, live_records=[place_record("PSK", "Baner")])

    rec = await pipeline.resolve(make_query(), make_profile())
    await pipeline.wait_for_background()

    assert rec.provenance is Provenance.LIVE
    assert rec.offices[0].source_kind is SourceKind.LIVE
    assert len(client.calls) == 1
    assert len(index.upserts) == 1
    document = index.upserts[0][0]
    assert document.metadata["office"]["name"] == "PSK"
    assert cache.get(cache_key("passport renewal", "Kothrud")) is None


@pytest.mark.asyncio
async def test_cached_live_result_does_not_feed_index():
    index = FakeIndex()
    cache = CacheLayer()
    cache.put(cache_key("passport renewal", "Kothrud"), [place_record("PSK", "Baner")])
    pipeline, client = build_pipeline(index=index, cache=cache)

    rec = await pipeline.resolve(make_query(), make_profile())
    await pipeline.wait_for_background()

    assert rec.provenance is Provenance.LIVE
    assert client.calls == []
    assert index.upserts == []


@pytest.mark.asyncio
async def test_failed_index_feed_keeps_cache_entry():
    index = FakeIndex(fail_upsert=True)
    cache = CacheLayer()
    pipeline, _ = build_pipeline(index=index, cache=cache, live_records=[place_record("PSK", "Baner")])

    await pipeline.resolve(make_query(), make_profile())
    await pipeline.wait_for_background()

    assert cache.get(cache_key("passport renewal", "Kothrud")) is not None


@pytest.mark.asyncio
async def test_generic_fallback_requires_disclaimer():
    provider = FakeProvider("openai", text=GENERIC_ANSWER)
    pipeline, _ = build_pipeline(live_error=RuntimeError("quota"), providers=[provider])

    rec = await pipeline.resolve(make_query(), make_profile())

    assert rec.provenance is Provenance.GENERIC
    assert rec.requires_disclaimer is True
    assert rec.offices[0].source_kind is SourceKind.GENERIC
    assert rec.required_documents == ["Old passport"]


@pytest.mark.asyncio
async def test_every_stage_failing_raises_resolution_exhausted():
    providers = [FakeProvider("openai", error=RuntimeError("down")), FakeProvider("anthropic", text="")]
    pipeline, _ = build_pipeline(index=BrokenIndex(), live_error=RuntimeError("quota"), providers=providers)

    with pytest.raises(ResolutionExhausted):
        await pipeline.resolve(make_query(), make_profile())


@pytest.mark.asyncio
async def test_missing_fallback_raises_resolution_exhausted():
    pipeline = QueryResolutionPipeline(None, None, None, make_settings())

    with pytest.raises(ResolutionExhausted):
        await pipeline.resolve(make_query(), make_profile())


@pytest.mark.asyncio
async def test_slow_index_counts_as_no_result():
    pipeline, client = build_pipeline(index=SlowIndex(), live_records=[place_record("PSK", "Baner")], semantic_timeout=0.01)

    rec = await pipeline.resolve(make_query(), make_profile())

    assert rec.provenance is Provenance.LIVE
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_guidance_only_index_match_is_carried_into_live_result():
    hit = office_hit("ignored", 0.9, required_documents=["Old passport", "Aadhaar"], processing_time="30 days")
    hit.metadata.pop("office")
    pipeline, _ = build_pipeline(index=FakeIndex({0.8: [hit]}), live_records=[place_record("PSK", "Baner")])

    rec = await pipeline.resolve(make_query(), make_profile())

    assert rec.provenance is Provenance.LIVE
    assert rec.required_documents == ["Old passport", "Aadhaar"]
    assert rec.processing_time == "30 days"


@pytest.mark.asyncio
async def test_origin_is_geocoded_once_per_address():
    index = FakeIndex({0.8: [office_hit("RPO Pune", 0.91, lat=18.5308, lng=73.8475)]})
    geocoder = FakeGeocoder(KOTHRUD)
    pipeline, _ = build_pipeline(index=index, geocoder=geocoder)

    await pipeline.resolve(make_query(), make_profile())
    rec = await pipeline.resolve(make_query(), make_profile())

    assert geocoder.calls == 1
    assert rec.offices[0].distance_km is not None


@pytest.mark.asyncio
async def test_origin_memo_is_bounded(monkeypatch):
    monkeypatch.setattr(resolver, "ORIGIN_MEMO_SIZE", 1)
    index = FakeIndex({0.8: [office_hit("RPO Pune", 0.91, lat=18.5308, lng=73.8475)]})
    geocoder = FakeGeocoder(KOTHRUD)
    pipeline, _ = build_pipeline(index=index, geocoder=geocoder)

    await pipeline.resolve(make_query(), make_profile(address="Kothrud"))
    await pipeline.resolve(make_query(), make_profile(address="Aundh"))
    await pipeline.resolve(make_query(), make_profile(address="Kothrud"))

    assert geocoder.calls == 3
    assert len(pipeline._origins) == 1


@pytest.mark.asyncio
async def test_pune_passport_renewal_from_index():
    index = FakeIndex(
        {
            0.8: [
                office_hit(
                    "Passport Seva Kendra Mundhwa",
                    0.88,
                    address="Mundhwa Road, Mundhwa",
                    lat=18.5376,
                    lng=73.9197,
                    required_documents=["Old passport", "Address proof"],
                ),
                office_hit("Regional Passport Office Pune", 0.91, address="Sakhar Sankul, Shivajinagar", lat=18.5308, lng=73.8475),
            ]
        }
    )
    pipeline, client = build_pipeline(index=index, geocoder=FakeGeocoder(KOTHRUD))

    rec = await pipeline.resolve(make_query(), make_profile())
    messages = ResponseAssembler().assemble(rec, "en")

    assert rec.provenance is Provenance.INDEX_HIGH
    assert client.calls == []
    assert len(messages) == 3
    assert "passport renewal" in messages[0].text
    assert "Old passport" in messages[0].text
    assert messages[1].text.startswith("Regional Passport Office Pune")
    assert messages[2].text.startswith("Passport Seva Kendra Mundhwa")
    assert rec.offices[0].distance_km < rec.offices[1].distance_km
    assert "Distance:" in messages[1].text


@pytest.mark.asyncio
async def test_pune_passport_renewal_from_live_discovery():
    index = FakeIndex()
    records = [
        place_record("Passport Seva Kendra Mundhwa", "Mundhwa Road, Mundhwa, Pune, Maharashtra 411036", lat=18.5376, lng=73.9197),
        place_record("Regional Passport Office Pune", "Sakhar Sankul, Shivajinagar, Pune, Maharashtra 411005", lat=18.5308, lng=73.8475),
    ]
    pipeline, client = build_pipeline(index=index, live_records=records, geocoder=FakeGeocoder(KOTHRUD))

    rec = await pipeline.resolve(make_query(), make_profile())
    await pipeline.wait_for_background()
    messages = ResponseAssembler().assemble(rec, "en")

    assert [threshold for _, _, threshold in index.searches] == [0.8, 0.5]
    assert client.calls == [("passport renewal", "Kothrud", "Pune", "Maharashtra")]
    assert rec.provenance is Provenance.LIVE
    assert rec.requires_disclaimer is False
    assert [office.name for office in rec.offices] == ["Regional Passport Office Pune", "Passport Seva Kendra Mundhwa"]
    assert rec.offices[0].distance_km < rec.offices[1].distance_km
    assert len(messages) == 3
    assert messages[0].text.startswith("Service: passport renewal")
    assert messages[1].text.startswith("Regional Passport Office Pune")
    assert messages[2].text.startswith("Passport Seva Kendra Mundhwa")
    assert len(index.upserts) == 1
