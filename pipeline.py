"""Content resolution pipeline.

resolve() walks an ordered list of strategies and returns the first answer:

    cache -> static curriculum -> generative (timeout + retry) -> offline fallback

Every strategy has the shape `(request) -> Optional[ResolutionResult]`; adding or
removing a tier is a change to `self.strategies`. resolve() is total: the last
tier always answers.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from loguru import logger

import curriculum
from config import Settings
from errors import MalformedResponse, RateLimited, RemoteUnavailable
from evaluation_graph import EmotionEvaluator
from fallback_content import offline_explanation
from generative import CompletionClient
from models import (
    CacheEntry,
    ContentMode,
    ContentRequest,
    EvaluationResult,
    LearningStyle,
    Origin,
    ResolutionResult,
)
from monitor import AvailabilityMonitor
from prompts import PROBE_PROMPT, build_prompt
from store import DocumentStore

Strategy = Callable[[ContentRequest], Awaitable[Optional[ResolutionResult]]]

CACHE_PREFIX = "materi_cache"


def is_valid_cached(explanation: Optional[str], stale_markers: List[str]) -> bool:
    if not explanation or not explanation.strip():
        return False
    return not any(marker in explanation for marker in stale_markers)


async def first_result(strategies: List[Strategy], req: ContentRequest) -> Optional[ResolutionResult]:
    """Try each strategy in order; a strategy that raises counts as a miss."""
    for strategy in strategies:
        name = getattr(strategy, "__name__", repr(strategy))
        try:
            result = await strategy(req)
        except Exception as e:
            logger.error(f"[Pipeline] ❌ Strategy {name} failed: {e}")
            continue
        if result is not None:
            logger.debug(f"[Pipeline] {name} answered {req.topic}/{req.level} ({result.origin.value})")
            return result
    return None


class ContentPipeline:
    def __init__(
        self,
        store: DocumentStore,
        client: CompletionClient,
        monitor: AvailabilityMonitor,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        settings = settings or Settings()
        self.store = store
        self.client = client
        self.monitor = monitor
        self.timeout = settings.generation_timeout_seconds
        self.max_attempts = settings.rate_limit_attempts
        self.retry_delay = settings.retry_delay_seconds
        self.max_output_tokens = settings.max_output_tokens
        self.temperature = settings.temperature
        self.stale_markers = list(settings.stale_cache_markers)
        self._sleep = sleep

        self.strategies: List[Strategy] = [
            self.from_cache,
            self.from_curriculum,
            self.from_generative,
            self.from_offline_fallback,
        ]
        self.evaluator = EmotionEvaluator(generate=self.generate_once, is_ready=monitor.is_ready)

    # ---------------------------------------------
    # Public entrypoints
    # ---------------------------------------------
    async def resolve(self, req: ContentRequest) -> ResolutionResult:
        logger.info(f"[Pipeline] ⚡ resolve mode={req.mode.value} style={req.style.value} topic={req.topic} level={req.level}")
        result = await first_result(self.strategies, req)
        if result is None or not result.explanation.strip():
            return await self.from_offline_fallback(req)
        return result

    async def probe(self) -> ResolutionResult:
        """Minimal synthetic request used by the monitor. Ignores cooldown, skips the cache."""
        try:
            text = await asyncio.wait_for(
                self.client.complete(PROBE_PROMPT, max_output_tokens=16, temperature=0.0),
                timeout=self.timeout,
            )
        except (RateLimited, RemoteUnavailable, MalformedResponse, asyncio.TimeoutError) as e:
            logger.info(f"[Pipeline] Probe still failing: {type(e).__name__}")
            return ResolutionResult(explanation="offline", origin=Origin.OFFLINE_FALLBACK, is_offline=True)
        return ResolutionResult(explanation=text, origin=Origin.GENERATED, is_offline=False)

    async def classify_emotion(self, score: int, total_questions: int, feedback: str,
                               style: LearningStyle, topic: str) -> EvaluationResult:
        return await self.evaluator.evaluate(score, total_questions, feedback, style, topic)

    # ---------------------------------------------
    # Strategies
    # ---------------------------------------------
    async def from_cache(self, req: ContentRequest) -> Optional[ResolutionResult]:
        key = self.cache_key(req)
        try:
            doc = await self.store.get(key)
        except Exception as e:
            logger.warning(f"[Pipeline] ⚠️ Cache read skipped: {e}")
            return None
        if not doc:
            return None
        explanation = doc.get("explanation")
        if not is_valid_cached(explanation, self.stale_markers):
            logger.info(f"[Pipeline] Bypassing stale cache entry {key}")
            return None
        return ResolutionResult(explanation=explanation, origin=Origin.CACHE, is_offline=False)

    async def from_curriculum(self, req: ContentRequest) -> Optional[ResolutionResult]:
        # Free-text explain requests and welcome/report messages go to the generator.
        if req.mode != ContentMode.EXPLAIN or req.source_text.strip():
            return None
        content = curriculum.styled_content(req.topic, req.level, req.style)
        if not content:
            return None
        return ResolutionResult(explanation=content, origin=Origin.STATIC, is_offline=False)

    async def from_generative(self, req: ContentRequest) -> Optional[ResolutionResult]:
        if not self.monitor.is_ready():
            logger.warning(
                f"[Pipeline] ⏸️ Generative service cooling down ({self.monitor.cooldown_seconds_remaining()}s), skipping"
            )
            return None

        text = await self.complete_with_retry(build_prompt(req))
        if text is None:
            return None

        await self._write_cache(req, text)
        return ResolutionResult(explanation=text, origin=Origin.GENERATED, is_offline=False)

    async def from_offline_fallback(self, req: ContentRequest) -> ResolutionResult:
        logger.warning(f"[Pipeline] 📦 Serving offline content for {req.topic}/{req.level}")
        return ResolutionResult(
            explanation=offline_explanation(req.topic, req.level, req.mode, req.style),
            origin=Origin.OFFLINE_FALLBACK,
            is_offline=True,
        )

    # ---------------------------------------------
    # Generative call policy
    # ---------------------------------------------
    async def generate_once(self, prompt: str, report_rate_limit: bool = True) -> str:
        """A single bounded call. Timeouts surface as RemoteUnavailable; a rate
        limit is reported to the monitor (unless told otherwise) before being re-raised."""
        try:
            text = await asyncio.wait_for(
                self.client.complete(prompt, max_output_tokens=self.max_output_tokens,
                                     temperature=self.temperature),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise RemoteUnavailable(f"Generative call exceeded {self.timeout}s") from e
        except RateLimited:
            if report_rate_limit:
                self.monitor.report_error()
            raise
        if not text or not text.strip():
            raise MalformedResponse("Empty response")
        self.monitor.report_success()
        return text

    async def complete_with_retry(self, prompt: str) -> Optional[str]:
        """Rate limits: up to `max_attempts` calls spaced by `retry_delay`, reporting
        the first one to the monitor. Timeouts/unreachable/malformed: one retry.
        Returns None once the budget is spent."""
        attempt = 0
        other_failures = 0
        rate_limit_reported = False

        while attempt < self.max_attempts:
            attempt += 1
            try:
                text = await self.generate_once(prompt, report_rate_limit=not rate_limit_reported)
            except RateLimited:
                rate_limit_reported = True
                if attempt < self.max_attempts:
                    logger.warning(
                        f"[Pipeline] ⚠️ Rate limited. Retry {attempt}/{self.max_attempts} in {self.retry_delay}s..."
                    )
                    await self._sleep(self.retry_delay)
                continue
            except (RemoteUnavailable, MalformedResponse) as e:
                other_failures += 1
                logger.warning(f"[Pipeline] ⚠️ Generative attempt {attempt} failed: {type(e).__name__}: {e}")
                if other_failures >= 2:
                    if not isinstance(e, MalformedResponse):
                        self.monitor.report_error()
                    return None
                continue

            logger.info(f"[Pipeline] ✅ Generation complete ({len(text)} chars)")
            return text

        logger.error(f"[Pipeline] ❌ Generative service gave up after {attempt} attempts")
        return None

    # ---------------------------------------------
    # Cache
    # ---------------------------------------------
    @staticmethod
    def cache_key(req: ContentRequest) -> str:
        return f"{CACHE_PREFIX}:{req.cache_key()}"

    async def _write_cache(self, req: ContentRequest, text: str) -> None:
        key = self.cache_key(req)
        entry = CacheEntry(key=key, explanation=text)
        try:
            await self.store.set(key, entry.model_dump(mode="json"))
        except Exception as e:
            logger.warning(f"[Pipeline] ⚠️ Cache write skipped: {e}")
