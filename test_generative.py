import pytest

from config import DEFAULT_STALE_MARKERS, load_settings
from errors import RemoteUnavailable
from generative import GeminiClient, extract_text, is_rate_limit_error
from models import ContentMode, ContentRequest, LearningStyle
from prompts import build_emotion_prompt, build_prompt


class ApiError(Exception):
    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


def test_rate_limit_detection():
    assert is_rate_limit_error(ApiError("slow down", code=429))
    assert is_rate_limit_error(ApiError("429 RESOURCE_EXHAUSTED: quota exceeded"))
    assert not is_rate_limit_error(ApiError("503 Service Unavailable", code=503))


def test_extract_text_from_parts():
    assert extract_text("halo") == "halo"
    assert extract_text([{"type": "text", "text": "ha"}, "lo", {"type": "image_url"}]) == "halo"
    assert extract_text(None) == ""


@pytest.mark.asyncio
async def test_missing_api_key_is_unavailable():
    with pytest.raises(RemoteUnavailable):
        await GeminiClient(api_key=None).complete("hi", max_output_tokens=10, temperature=0.0)


def test_prompt_carries_style_and_source():
    req = ContentRequest(topic="Aljabar", level=2, style="KINESTHETIC", mode=ContentMode.EXPLAIN,
                         source_text="Suku sejenis")
    prompt = build_prompt(req)
    assert "Aljabar" in prompt
    assert "Suku sejenis" in prompt


def test_emotion_prompt_mentions_feedback():
    prompt = build_emotion_prompt(2, 3, "Lumayan", LearningStyle.VISUAL, "Geometri")
    assert "Lumayan" in prompt
    assert '"decision"' in prompt


def test_settings_from_environment(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "abc")
    monkeypatch.setenv("COOLDOWN_SECONDS", "30")
    monkeypatch.setenv("STALE_CACHE_MARKERS", "lama, usang ,")
    monkeypatch.delenv("REDIS_URL", raising=False)

    settings = load_settings()

    assert settings.google_api_key == "abc"
    assert settings.cooldown_seconds == 30
    assert settings.stale_cache_markers == ["lama", "usang"]
    assert settings.redis_url is None


def test_settings_defaults(monkeypatch):
    for name in ("STALE_CACHE_MARKERS", "MASTERY_THRESHOLD", "RATE_LIMIT_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.stale_cache_markers == DEFAULT_STALE_MARKERS
    assert settings.mastery_threshold == 0.8
    assert settings.rate_limit_attempts == 3
