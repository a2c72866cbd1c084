import asyncio

import pytest

from conftest import FailingWriteStore, FakeCompletionClient, SlowCompletionClient
from errors import MalformedResponse, RateLimited, RemoteUnavailable
from models import ContentMode, ContentRequest, LearningStyle, Origin
from pipeline import ContentPipeline


def request(**overrides):
    fields = dict(topic="Statistika", level=2, style="VISUAL", mode=ContentMode.EXPLAIN,
                  source_text="Apa itu median?", fragment_id="stat-2-1")
    fields.update(overrides)
    return ContentRequest(**fields)


# ---------- cache key ----------
def test_cache_key_is_deterministic():
    assert request().cache_key() == request().cache_key()
    assert request().cache_key().startswith("Statistika_2_VISUAL_EXPLAIN_stat-2-1")


@pytest.mark.parametrize("field,value", [
    ("topic", "Statistika Dasar"),
    ("level", 3),
    ("style", "AUDITORY"),
    ("mode", ContentMode.WELCOME),
    ("fragment_id", "stat-2-2"),
])
def test_cache_key_changes_with_each_field(field, value):
    assert request(**{field: value}).cache_key() != request().cache_key()


def test_cache_key_collapses_whitespace_without_colliding():
    spaced = request(topic="Teori  Peluang")
    underscored = request(topic="Teori_Peluang")
    assert " " not in spaced.cache_key()
    assert spaced.cache_key() != underscored.cache_key()


def test_unknown_style_maps_to_default():
    assert request(style="text").style == LearningStyle.DEFAULT


# ---------- tiers ----------
@pytest.mark.asyncio
async def test_generated_result_is_cached_and_second_call_hits_cache(pipeline, fake_client):
    first = await pipeline.resolve(request())
    second = await pipeline.resolve(request())

    assert first.origin == Origin.GENERATED
    assert first.is_offline is False
    assert second.origin == Origin.CACHE
    assert second.explanation == first.explanation
    assert len(fake_client.calls) == 1


@pytest.mark.asyncio
async def test_authored_topic_served_from_curriculum_without_generation(pipeline, fake_client):
    result = await pipeline.resolve(request(topic="Aljabar", level=1, source_text="", fragment_id=None))

    assert result.origin == Origin.STATIC
    assert result.is_offline is False
    assert "Al-Khawarizmi" in result.explanation
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_curriculum_falls_back_to_generic_variant(pipeline):
    result = await pipeline.resolve(
        request(topic="Geometri", level=2, style="AUDITORY", source_text="", fragment_id=None)
    )

    assert result.origin == Origin.STATIC
    assert result.explanation.startswith("Segitiga dibedakan")


@pytest.mark.asyncio
async def test_free_text_explain_on_authored_topic_goes_to_generator(pipeline, fake_client):
    result = await pipeline.resolve(request(topic="Aljabar", level=1, source_text="Kenapa x disebut variabel?"))

    assert result.origin == Origin.GENERATED
    assert len(fake_client.calls) == 1


@pytest.mark.asyncio
async def test_stale_cache_entry_is_bypassed_and_overwritten(pipeline, store, fake_client):
    req = request()
    key = ContentPipeline.cache_key(req)
    await store.set(key, {"key": key, "explanation": "### Analogi Sederhana: format lama"})

    result = await pipeline.resolve(req)

    assert result.origin == Origin.GENERATED
    assert (await store.get(key))["explanation"] == result.explanation


@pytest.mark.asyncio
async def test_cache_write_failure_does_not_fail_resolution(make_pipeline, fake_client):
    pipeline = make_pipeline(fake_client, store_override=FailingWriteStore())

    result = await pipeline.resolve(request())

    assert result.origin == Origin.GENERATED


# ---------- failure handling ----------
@pytest.mark.asyncio
@pytest.mark.parametrize("mode", list(ContentMode))
async def test_resolve_is_total_when_generation_always_fails(make_pipeline, mode):
    pipeline = make_pipeline(FakeCompletionClient(default=RemoteUnavailable("connection refused")))

    result = await pipeline.resolve(request(mode=mode, topic="Kalkulus"))

    assert result.explanation.strip()
    assert result.origin == Origin.OFFLINE_FALLBACK
    assert result.is_offline is True


@pytest.mark.asyncio
async def test_rate_limit_retries_three_times_then_falls_back(make_pipeline, monitor, sleeps):
    readiness = []
    client = FakeCompletionClient(default=RateLimited("429 Too Many Requests"))
    client.before_reply = lambda prompt: readiness.append(monitor.is_ready())
    pipeline = make_pipeline(client)

    result = await pipeline.resolve(request())

    assert len(client.calls) == 3
    assert readiness == [True, False, False]
    assert sleeps == [5.0, 5.0]
    assert result.origin == Origin.OFFLINE_FALLBACK
    assert monitor.is_ready() is False


@pytest.mark.asyncio
async def test_rate_limit_then_success_recovers(make_pipeline, monitor):
    client = FakeCompletionClient(replies=[RateLimited("429"), "Penjelasan baru"])
    pipeline = make_pipeline(client)

    result = await pipeline.resolve(request())

    assert result.origin == Origin.GENERATED
    assert result.explanation == "Penjelasan baru"
    assert monitor.is_ready() is True


@pytest.mark.asyncio
async def test_rate_limit_reported_once_per_resolution(make_pipeline, monitor, clock, monkeypatch):
    reports = []
    original = monitor.report_error
    monkeypatch.setattr(monitor, "report_error", lambda: (reports.append(clock()), original()))
    client = FakeCompletionClient(default=RateLimited("429"))
    pipeline = make_pipeline(client)

    await pipeline.resolve(request())

    assert len(client.calls) == 3
    assert len(reports) == 1


@pytest.mark.asyncio
async def test_blank_reply_is_retried_like_any_malformed_answer(make_pipeline):
    client = FakeCompletionClient(replies=["   ", "Jawaban kedua"])
    pipeline = make_pipeline(client)

    result = await pipeline.resolve(request())

    assert result.explanation == "Jawaban kedua"
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_timeout_is_retried_once_then_falls_back(make_pipeline, monitor):
    client = SlowCompletionClient(delay=5)
    pipeline = make_pipeline(client)

    result = await asyncio.wait_for(pipeline.resolve(request()), timeout=3)

    assert client.calls == 2
    assert result.origin == Origin.OFFLINE_FALLBACK
    assert monitor.is_ready() is False


@pytest.mark.asyncio
async def test_malformed_response_treated_like_timeout(make_pipeline, monitor):
    client = FakeCompletionClient(default=MalformedResponse("empty"))
    pipeline = make_pipeline(client)

    result = await pipeline.resolve(request())

    assert len(client.calls) == 2
    assert result.is_offline is True
    assert monitor.is_ready() is True


@pytest.mark.asyncio
async def test_cooling_down_skips_generation(pipeline, monitor, fake_client):
    monitor.report_error()

    result = await pipeline.resolve(request())

    assert fake_client.calls == []
    assert result.origin == Origin.OFFLINE_FALLBACK


@pytest.mark.asyncio
async def test_cache_still_answers_while_cooling_down(pipeline, monitor):
    await pipeline.resolve(request())
    monitor.report_error()

    result = await pipeline.resolve(request())

    assert result.origin == Origin.CACHE
    assert result.is_offline is False


@pytest.mark.asyncio
async def test_offline_fallback_is_topic_specific(make_pipeline):
    pipeline = make_pipeline(FakeCompletionClient(default=RemoteUnavailable("down")))

    result = await pipeline.resolve(request(topic="Trigonometri", level=1))

    assert "SOH-CAH-TOA" in result.explanation


@pytest.mark.asyncio
async def test_probe_ignores_cooldown_and_skips_cache(pipeline, monitor, fake_client, store):
    monitor.report_error()

    result = await pipeline.probe()

    assert result.is_offline is False
    assert len(fake_client.calls) == 1
    assert store._docs == {}
