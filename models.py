"""Request/response schemas shared by the pipeline, session orchestrator and API."""

import hashlib
import json
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------- ENUMS ----------
class LearningStyle(str, Enum):
    VISUAL = "VISUAL"
    AUDITORY = "AUDITORY"
    KINESTHETIC = "KINESTHETIC"
    DEFAULT = "DEFAULT"

    @classmethod
    def parse(cls, value) -> "LearningStyle":
        """Case-insensitive lookup; unknown tags (e.g. "TEXT") map to DEFAULT."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            return cls.DEFAULT


class ContentMode(str, Enum):
    EXPLAIN = "EXPLAIN"
    WELCOME = "WELCOME"
    REPORT = "REPORT"


class Origin(str, Enum):
    CACHE = "CACHE"
    STATIC = "STATIC"
    GENERATED = "GENERATED"
    OFFLINE_FALLBACK = "OFFLINE_FALLBACK"


class Decision(str, Enum):
    NEXT_LEVEL = "NEXT_LEVEL"
    REPEAT = "REPEAT"
    EASIER_CONTENT = "EASIER_CONTENT"
    NEXT_TOPIC = "NEXT_TOPIC"


class Emotion(str, Enum):
    """Plutchik's eight basic emotions."""

    JOY = "Joy"
    TRUST = "Trust"
    FEAR = "Fear"
    SURPRISE = "Surprise"
    SADNESS = "Sadness"
    DISGUST = "Disgust"
    ANGER = "Anger"
    ANTICIPATION = "Anticipation"


# ---------- CONTENT ----------
_WHITESPACE = re.compile(r"\s+")


class ContentRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    topic: str
    level: int = Field(ge=1)
    style: LearningStyle = LearningStyle.DEFAULT
    mode: ContentMode = ContentMode.EXPLAIN
    source_text: str = ""
    fragment_id: Optional[str] = None

    @field_validator("style", mode="before")
    @classmethod
    def normalize_style(cls, v):
        return LearningStyle.parse(v)

    @field_validator("topic")
    @classmethod
    def validate_topic(cls, v):
        if not v.strip():
            raise ValueError("topic must not be empty")
        return v.strip()

    @property
    def source_fragment_id(self) -> str:
        if self.fragment_id:
            return self.fragment_id
        if not self.source_text:
            return "level"
        return "txt-" + hashlib.sha1(self.source_text.encode("utf-8")).hexdigest()[:10]

    def cache_key(self) -> str:
        """Deterministic key: readable `{topic}_{level}_{style}_{mode}_{fragment}` prefix
        plus a digest of the raw fields, so distinct requests never share a key."""
        fields = [self.topic, self.level, self.style.value, self.mode.value, self.source_fragment_id]
        readable = "_".join(str(f) for f in fields)
        readable = _WHITESPACE.sub("_", readable)
        digest = hashlib.sha1(json.dumps(fields).encode("utf-8")).hexdigest()[:12]
        return f"{readable}-{digest}"


class CacheEntry(BaseModel):
    key: str
    explanation: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ResolutionResult(BaseModel):
    explanation: str
    origin: Origin
    is_offline: bool = False


class AvailabilityState(BaseModel):
    healthy: bool
    cooldown_seconds_remaining: int = Field(ge=0)


# ---------- QUIZ / LESSON ----------
class QuizItem(BaseModel):
    question: str
    options: List[str]
    correct_option_index: int
    explanation: str = ""

    @model_validator(mode="after")
    def validate_options(self):
        if len(self.options) < 2:
            raise ValueError("A quiz item needs at least two options")
        if not 0 <= self.correct_option_index < len(self.options):
            raise ValueError("correct_option_index must point into options")
        return self


class Fragment(BaseModel):
    id: str
    order: int
    text: str


class Lesson(BaseModel):
    topic: str
    level: int
    title: str = ""
    fragments: List[Fragment]
    quiz: List[QuizItem]
    final_level: Optional[int] = None

    @model_validator(mode="after")
    def validate_lesson(self):
        if not self.fragments:
            raise ValueError("A lesson needs at least one fragment")
        if not self.quiz:
            raise ValueError("A lesson needs at least one quiz item")
        self.fragments = sorted(self.fragments, key=lambda f: f.order)
        return self

    @property
    def is_final_level(self) -> bool:
        return self.final_level is not None and self.level >= self.final_level


# ---------- EVALUATION / HISTORY ----------
class EvaluationResult(BaseModel):
    decision: Decision
    emotion: Emotion = Emotion.ANTICIPATION
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    message: str = ""
    is_offline: bool = False


class AnswerRecord(BaseModel):
    selected_option: int
    correct: bool


class SessionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    learner_id: Optional[str] = None
    topic: str
    level: int
    score: int
    total_questions: int
    decision: Decision
    emotion: Emotion
    confidence_score: float = 0.0
    learning_style: LearningStyle
    duration_seconds: int = 0
    sentiment: str = ""
    answers: Dict[int, AnswerRecord] = Field(default_factory=dict)
