"""FastAPI interface for the adaptive tutor content service."""

import asyncio
import sys
import time
import uuid
from contextlib import asynccontextmanager
from enum import Enum
from typing import Callable, Optional

from cachetools import TTLCache
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field, model_validator

import curriculum
import history
from config import Settings, get_settings
from errors import LessonNotFound, ValidationError
from generative import CompletionClient, GeminiClient
from models import ContentMode, ContentRequest, LearningStyle
from monitor import AvailabilityMonitor
from pipeline import ContentPipeline
from session import (
    Advance,
    ConfirmAnswer,
    NextFragment,
    NextQuestion,
    RequestExplanation,
    Retry,
    SelectOption,
    SessionOrchestrator,
    SkipToQuiz,
    SubmitSentiment,
    describe,
)
from store import DocumentStore, StoreError, create_store


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )


# ---------------------------------------------
# Request bodies
# ---------------------------------------------
class AdaptiveRequest(BaseModel):
    topic: str = Field(..., min_length=1, pattern=r"\S")
    level: int = Field(1, ge=1)
    style: str = LearningStyle.DEFAULT.value
    mode: ContentMode = ContentMode.EXPLAIN
    text: str = ""
    fragment_id: Optional[str] = None


class EvaluateRequest(BaseModel):
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=1)
    sentiment: str = Field(..., min_length=1)
    learning_style: str = LearningStyle.DEFAULT.value
    topic: str = "Matematika"

    @model_validator(mode="after")
    def validate_score(self):
        if self.score > self.total_questions:
            raise ValueError("score cannot exceed total_questions")
        if not self.sentiment.strip():
            raise ValueError("sentiment must not be blank")
        return self


class SessionCreate(BaseModel):
    topic: str = Field(..., min_length=1, pattern=r"\S")
    level: int = Field(1, ge=1)
    learning_style: str = LearningStyle.DEFAULT.value
    learner_id: Optional[str] = None


class EventType(str, Enum):
    REQUEST_EXPLANATION = "REQUEST_EXPLANATION"
    NEXT_FRAGMENT = "NEXT_FRAGMENT"
    SKIP_TO_QUIZ = "SKIP_TO_QUIZ"
    SELECT_OPTION = "SELECT_OPTION"
    CONFIRM_ANSWER = "CONFIRM_ANSWER"
    NEXT_QUESTION = "NEXT_QUESTION"
    SUBMIT_SENTIMENT = "SUBMIT_SENTIMENT"
    RETRY_ALL = "RETRY_ALL"
    RETRY_QUIZ = "RETRY_QUIZ"
    ADVANCE = "ADVANCE"


class EventIn(BaseModel):
    type: EventType
    option: Optional[int] = None
    text: Optional[str] = None

    def to_event(self):
        if self.type == EventType.SELECT_OPTION:
            if self.option is None:
                raise ValidationError("SELECT_OPTION needs an option index")
            return SelectOption(index=self.option)
        if self.type == EventType.SUBMIT_SENTIMENT:
            return SubmitSentiment(text=self.text or "")
        if self.type == EventType.RETRY_ALL:
            return Retry(quiz_only=False)
        if self.type == EventType.RETRY_QUIZ:
            return Retry(quiz_only=True)
        simple = {
            EventType.REQUEST_EXPLANATION: RequestExplanation,
            EventType.NEXT_FRAGMENT: NextFragment,
            EventType.SKIP_TO_QUIZ: SkipToQuiz,
            EventType.CONFIRM_ANSWER: ConfirmAnswer,
            EventType.NEXT_QUESTION: NextQuestion,
            EventType.ADVANCE: Advance,
        }
        return simple[self.type]()


# ---------------------------------------------
# App factory
# ---------------------------------------------
def create_app(
    settings: Optional[Settings] = None,
    client: Optional[CompletionClient] = None,
    store: Optional[DocumentStore] = None,
    monitor: Optional[AvailabilityMonitor] = None,
    run_probe_loop: bool = True,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    store = store or create_store(settings.redis_url)
    client = client or GeminiClient(settings.google_api_key, settings.gemini_model)
    monitor = monitor or AvailabilityMonitor(settings.cooldown_seconds)
    pipeline = ContentPipeline(store, client, monitor, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        probe_task = None
        if run_probe_loop:
            probe_task = asyncio.create_task(monitor.run_probe_loop(pipeline.probe, settings.probe_interval_seconds))
        yield
        if probe_task is not None:
            probe_task.cancel()
            try:
                await probe_task
            except asyncio.CancelledError:
                pass
        await store.close()

    app = FastAPI(
        title="Adaptive Tutor Content Service",
        description="Cached, curriculum-first, Gemini-backed explanations with offline fallback",
        version="1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.monitor = monitor
    app.state.pipeline = pipeline
    # Idle sessions expire; the oldest are dropped once the table is full.
    app.state.sessions = TTLCache(maxsize=settings.max_sessions, ttl=settings.session_ttl_seconds, timer=clock)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error(f"[API] ❌ Store unavailable: {exc}")
        return JSONResponse(status_code=503, content={"error": "Document store unavailable"})

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"error": str(exc)})

    @app.exception_handler(LessonNotFound)
    async def lesson_not_found_handler(request: Request, exc: LessonNotFound):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    def get_session(session_id: str) -> SessionOrchestrator:
        orchestrator = app.state.sessions.get(session_id)
        if orchestrator is None:
            raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
        return orchestrator

    @app.get("/")
    def root():
        return {"message": "Adaptive Tutor is running 🚀"}

    @app.get("/api/status")
    def status():
        return monitor.state().model_dump()

    @app.post("/api/adaptive")
    async def resolve_content(body: AdaptiveRequest):
        req = ContentRequest(
            topic=body.topic,
            level=body.level,
            style=body.style,
            mode=body.mode,
            source_text=body.text,
            fragment_id=body.fragment_id,
        )
        result = await pipeline.resolve(req)
        return result.model_dump(mode="json")

    @app.post("/api/evaluate")
    async def evaluate(body: EvaluateRequest):
        result = await pipeline.classify_emotion(
            body.score, body.total_questions, body.sentiment.strip(),
            LearningStyle.parse(body.learning_style), body.topic,
        )
        return result.model_dump(mode="json")

    @app.post("/api/sessions")
    async def create_session(body: SessionCreate):
        orchestrator = await SessionOrchestrator.start(
            pipeline, store, body.topic, body.level,
            style=LearningStyle.parse(body.learning_style),
            learner_id=body.learner_id,
            mastery_threshold=settings.mastery_threshold,
        )
        session_id = uuid.uuid4().hex
        app.state.sessions[session_id] = orchestrator
        return {"session_id": session_id, "state": describe(orchestrator.state)}

    @app.get("/api/sessions/{session_id}")
    async def read_session(session_id: str):
        return {"session_id": session_id, "state": describe(get_session(session_id).state)}

    @app.post("/api/sessions/{session_id}/events")
    async def post_event(session_id: str, body: EventIn):
        orchestrator = get_session(session_id)
        step = await orchestrator.advance(body.to_event())
        # Re-inserting restarts the idle timer.
        app.state.sessions[session_id] = orchestrator
        return {"session_id": session_id, "state": describe(step.state), "payload": step.payload}

    @app.delete("/api/sessions/{session_id}")
    async def end_session(session_id: str):
        if app.state.sessions.pop(session_id, None) is None:
            raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
        logger.info(f"[API] Session {session_id} ended")
        return {"session_id": session_id, "ended": True}

    @app.post("/api/seed")
    async def seed():
        keys = await curriculum.seed_lessons(store)
        return {"message": "Lessons seeded", "count": len(keys), "keys": keys}

    @app.get("/api/learners/{learner_id}/report")
    async def learner_report(learner_id: str):
        records = await history.load_history(store, learner_id)
        summary = history.summarize_history(records)
        report = None
        if records:
            latest = records[-1]
            report = await pipeline.resolve(ContentRequest(
                topic=latest.topic,
                level=latest.level,
                style=latest.learning_style,
                mode=ContentMode.REPORT,
                source_text=history.summary_text(summary),
            ))
        return {
            "learner_id": learner_id,
            "summary": summary,
            "report": report.model_dump(mode="json") if report else None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
