"""Session orchestrator: LEARNING -> QUIZ -> SENTIMENT -> RESULT.

Business rules live in the pure `transition(state, event)` function. The
`SessionOrchestrator` performs the side effects around it (content
resolution, emotion classification, persistence, lesson loading) and feeds
their outcomes back in as events.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

from loguru import logger

import curriculum
import history
from errors import InvalidTransition, ValidationError
from models import (
    AnswerRecord,
    ContentMode,
    ContentRequest,
    Decision,
    Emotion,
    EvaluationResult,
    LearningStyle,
    Lesson,
    ResolutionResult,
    SessionRecord,
)
from pipeline import ContentPipeline
from store import DocumentStore

ANXIOUS_EMOTIONS = {Emotion.FEAR, Emotion.SADNESS, Emotion.DISGUST, Emotion.SURPRISE}


class Phase(str, Enum):
    LEARNING = "LEARNING"
    QUIZ = "QUIZ"
    SENTIMENT = "SENTIMENT"
    RESULT = "RESULT"


class ResultAction(str, Enum):
    ADVANCE = "ADVANCE"
    RETRY_ALL = "RETRY_ALL"
    RETRY_QUIZ = "RETRY_QUIZ"
    CHOOSE_TOPIC = "CHOOSE_TOPIC"


class Recommendation(str, Enum):
    ADVANCE = "ADVANCE"
    REPEAT_BEFORE_ADVANCING = "REPEAT_BEFORE_ADVANCING"
    RETRY = "RETRY"
    CHOOSE_TOPIC = "CHOOSE_TOPIC"


# ---------------------------------------------
# Phase states (tagged union)
# ---------------------------------------------
@dataclass(frozen=True)
class Learning:
    fragment_index: int = 0
    explanation: Optional[ResolutionResult] = None
    pending_token: Optional[int] = None

    phase = Phase.LEARNING


@dataclass(frozen=True)
class Quiz:
    question_index: int = 0
    selected_option: Optional[int] = None
    locked: bool = False
    last_correct: Optional[bool] = None

    phase = Phase.QUIZ


@dataclass(frozen=True)
class Sentiment:
    feedback: str = ""

    phase = Phase.SENTIMENT


@dataclass(frozen=True)
class Result:
    evaluation: EvaluationResult
    passed: bool
    actions: Tuple[ResultAction, ...]
    recommendation: Recommendation

    phase = Phase.RESULT


PhaseState = Union[Learning, Quiz, Sentiment, Result]


@dataclass(frozen=True)
class SessionState:
    lesson: Lesson
    style: LearningStyle
    phase_state: PhaseState = field(default_factory=Learning)
    learner_id: Optional[str] = None
    mastery_threshold: float = 0.8
    score: int = 0
    answers: Tuple[Tuple[int, AnswerRecord], ...] = ()
    request_counter: int = 0
    started_at: float = 0.0
    welcome: Optional[ResolutionResult] = None
    overview: Optional[ResolutionResult] = None

    @property
    def phase(self) -> Phase:
        return self.phase_state.phase

    @property
    def topic(self) -> str:
        return self.lesson.topic

    @property
    def level(self) -> int:
        return self.lesson.level

    @property
    def total_questions(self) -> int:
        return len(self.lesson.quiz)

    @property
    def ratio(self) -> float:
        return self.score / self.total_questions if self.total_questions else 0.0

    def answers_dict(self) -> Dict[int, AnswerRecord]:
        return dict(self.answers)


# ---------------------------------------------
# Events
# ---------------------------------------------
@dataclass(frozen=True)
class RequestExplanation:
    pass


@dataclass(frozen=True)
class ExplanationReady:
    token: int
    result: ResolutionResult


@dataclass(frozen=True)
class NextFragment:
    pass


@dataclass(frozen=True)
class SkipToQuiz:
    pass


@dataclass(frozen=True)
class SelectOption:
    index: int


@dataclass(frozen=True)
class ConfirmAnswer:
    pass


@dataclass(frozen=True)
class NextQuestion:
    pass


@dataclass(frozen=True)
class SubmitSentiment:
    text: str


@dataclass(frozen=True)
class Evaluated:
    evaluation: EvaluationResult


@dataclass(frozen=True)
class Retry:
    quiz_only: bool = False
    at: float = 0.0


@dataclass(frozen=True)
class Advance:
    pass


@dataclass(frozen=True)
class LevelLoaded:
    lesson: Lesson
    at: float = 0.0
    welcome: Optional[ResolutionResult] = None
    overview: Optional[ResolutionResult] = None


Event = Union[
    RequestExplanation, ExplanationReady, NextFragment, SkipToQuiz, SelectOption, ConfirmAnswer,
    NextQuestion, SubmitSentiment, Evaluated, Retry, Advance, LevelLoaded,
]


def _reject(state: SessionState, event: Event) -> InvalidTransition:
    return InvalidTransition(state.phase.value, type(event).__name__)


# ---------------------------------------------
# Result policy
# ---------------------------------------------
def apply_mastery_override(state: SessionState, evaluation: EvaluationResult) -> EvaluationResult:
    """Completing the topic's final level with mastery always means NEXT_TOPIC."""
    if state.ratio >= state.mastery_threshold and state.lesson.is_final_level:
        if evaluation.decision != Decision.NEXT_TOPIC:
            logger.info(f"[Session] 🎓 {state.topic} completed at level {state.level}, forcing NEXT_TOPIC")
        return evaluation.model_copy(update={"decision": Decision.NEXT_TOPIC})
    return evaluation


def result_options(state: SessionState, evaluation: EvaluationResult) -> Tuple[bool, Tuple[ResultAction, ...], Recommendation]:
    passed = state.ratio >= state.mastery_threshold
    anxious = evaluation.emotion in ANXIOUS_EMOTIONS

    if evaluation.decision == Decision.NEXT_TOPIC:
        return passed, (ResultAction.CHOOSE_TOPIC, ResultAction.RETRY_ALL), Recommendation.CHOOSE_TOPIC
    if not passed:
        return passed, (ResultAction.RETRY_ALL, ResultAction.RETRY_QUIZ), Recommendation.RETRY
    if anxious:
        # Soft nudge: advancing stays available.
        return passed, (ResultAction.RETRY_ALL, ResultAction.ADVANCE), Recommendation.REPEAT_BEFORE_ADVANCING
    return passed, (ResultAction.ADVANCE, ResultAction.RETRY_ALL), Recommendation.ADVANCE


def _fresh_attempt(state: SessionState, phase_state: PhaseState, at: float) -> SessionState:
    return replace(state, phase_state=phase_state, score=0, answers=(), started_at=at)


# ---------------------------------------------
# Transition function
# ---------------------------------------------
def transition(state: SessionState, event: Event) -> SessionState:
    ps = state.phase_state

    # ---------- LEARNING ----------
    if isinstance(event, RequestExplanation):
        if not isinstance(ps, Learning):
            raise _reject(state, event)
        token = state.request_counter + 1
        return replace(state, request_counter=token, phase_state=replace(ps, pending_token=token))

    if isinstance(event, ExplanationReady):
        # Stale answers (learner moved on or asked again) are dropped silently.
        if not isinstance(ps, Learning) or ps.pending_token != event.token:
            return state
        return replace(state, phase_state=replace(ps, explanation=event.result, pending_token=None))

    if isinstance(event, NextFragment):
        if not isinstance(ps, Learning):
            raise _reject(state, event)
        if ps.fragment_index + 1 < len(state.lesson.fragments):
            return replace(state, phase_state=Learning(fragment_index=ps.fragment_index + 1))
        return replace(state, phase_state=Quiz())

    if isinstance(event, SkipToQuiz):
        if not isinstance(ps, Learning):
            raise _reject(state, event)
        return replace(state, phase_state=Quiz())

    # ---------- QUIZ ----------
    if isinstance(event, SelectOption):
        if not isinstance(ps, Quiz):
            raise _reject(state, event)
        if ps.locked:
            raise ValidationError("Answer already confirmed")
        options = state.lesson.quiz[ps.question_index].options
        if not 0 <= event.index < len(options):
            raise ValidationError(f"Option {event.index} does not exist")
        return replace(state, phase_state=replace(ps, selected_option=event.index))

    if isinstance(event, ConfirmAnswer):
        if not isinstance(ps, Quiz):
            raise _reject(state, event)
        if ps.locked:
            raise ValidationError("Answer already confirmed")
        if ps.selected_option is None:
            raise ValidationError("Select an option first")
        item = state.lesson.quiz[ps.question_index]
        correct = ps.selected_option == item.correct_option_index
        answers = state.answers_dict()
        answers[ps.question_index] = AnswerRecord(selected_option=ps.selected_option, correct=correct)
        return replace(
            state,
            score=state.score + (1 if correct else 0),
            answers=tuple(sorted(answers.items())),
            phase_state=replace(ps, locked=True, last_correct=correct),
        )

    if isinstance(event, NextQuestion):
        if not isinstance(ps, Quiz):
            raise _reject(state, event)
        if not ps.locked:
            raise ValidationError("Confirm an answer before moving on")
        if ps.question_index + 1 < state.total_questions:
            return replace(state, phase_state=Quiz(question_index=ps.question_index + 1))
        return replace(state, phase_state=Sentiment())

    # ---------- SENTIMENT ----------
    if isinstance(event, SubmitSentiment):
        if not isinstance(ps, Sentiment):
            raise _reject(state, event)
        text = (event.text or "").strip()
        if not text:
            raise ValidationError("Tell us how this level felt before continuing")
        return replace(state, phase_state=Sentiment(feedback=text))

    if isinstance(event, Evaluated):
        if not isinstance(ps, Sentiment) or not ps.feedback:
            raise _reject(state, event)
        evaluation = apply_mastery_override(state, event.evaluation)
        passed, actions, recommendation = result_options(state, evaluation)
        return replace(state, phase_state=Result(evaluation, passed, actions, recommendation))

    # ---------- RESULT ----------
    if isinstance(event, Retry):
        if not isinstance(ps, Result):
            raise _reject(state, event)
        if event.quiz_only:
            if ResultAction.RETRY_QUIZ not in ps.actions:
                raise _reject(state, event)
            return _fresh_attempt(state, Quiz(), event.at)
        return _fresh_attempt(state, Learning(), event.at)

    if isinstance(event, Advance):
        if not isinstance(ps, Result) or ResultAction.ADVANCE not in ps.actions:
            raise _reject(state, event)
        return state

    if isinstance(event, LevelLoaded):
        if not isinstance(ps, Result) or ResultAction.ADVANCE not in ps.actions:
            raise _reject(state, event)
        return replace(
            _fresh_attempt(state, Learning(), event.at),
            lesson=event.lesson, welcome=event.welcome, overview=event.overview,
        )

    raise _reject(state, event)


# ---------------------------------------------
# Views
# ---------------------------------------------
def describe(state: SessionState) -> Dict[str, Any]:
    """Client-facing snapshot. Never leaks the correct option before it is locked in."""
    ps = state.phase_state
    view: Dict[str, Any] = {
        "phase": state.phase.value,
        "topic": state.topic,
        "level": state.level,
        "title": state.lesson.title,
        "learning_style": state.style.value,
        "score": state.score,
        "total_questions": state.total_questions,
        "welcome": state.welcome.model_dump(mode="json") if state.welcome else None,
        "overview": state.overview.model_dump(mode="json") if state.overview else None,
    }

    if isinstance(ps, Learning):
        fragment = state.lesson.fragments[ps.fragment_index]
        view.update({
            "fragment_index": ps.fragment_index,
            "fragment_count": len(state.lesson.fragments),
            "fragment": fragment.model_dump(),
            "explanation": ps.explanation.model_dump(mode="json") if ps.explanation else None,
            "explaining": ps.pending_token is not None,
        })
    elif isinstance(ps, Quiz):
        item = state.lesson.quiz[ps.question_index]
        question: Dict[str, Any] = {
            "index": ps.question_index,
            "question": item.question,
            "options": item.options,
            "selected_option": ps.selected_option,
            "locked": ps.locked,
        }
        if ps.locked:
            question.update({
                "correct": ps.last_correct,
                "correct_option_index": item.correct_option_index,
                "explanation": item.explanation,
            })
        view["question"] = question
    elif isinstance(ps, Sentiment):
        view["feedback_submitted"] = bool(ps.feedback)
    elif isinstance(ps, Result):
        view.update({
            "evaluation": ps.evaluation.model_dump(mode="json"),
            "passed": ps.passed,
            "actions": [a.value for a in ps.actions],
            "recommendation": ps.recommendation.value,
        })
    return view


@dataclass
class Step:
    state: SessionState
    payload: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------
# Orchestrator
# ---------------------------------------------
class SessionOrchestrator:
    def __init__(
        self,
        pipeline: ContentPipeline,
        store: DocumentStore,
        state: SessionState,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pipeline = pipeline
        self.store = store
        self.state = state
        self._clock = clock

    @classmethod
    async def start(
        cls,
        pipeline: ContentPipeline,
        store: DocumentStore,
        topic: str,
        level: int,
        style: LearningStyle = LearningStyle.DEFAULT,
        learner_id: Optional[str] = None,
        mastery_threshold: float = 0.8,
        clock: Callable[[], float] = time.monotonic,
    ) -> "SessionOrchestrator":
        lesson = await curriculum.load_lesson(store, topic, level)
        style = LearningStyle.parse(style)
        welcome, overview = await cls._level_intro(pipeline, lesson, style)
        state = SessionState(
            lesson=lesson,
            style=style,
            learner_id=learner_id,
            mastery_threshold=mastery_threshold,
            started_at=clock(),
            welcome=welcome,
            overview=overview,
        )
        logger.info(f"[Session] ▶️ Started {lesson.topic} level {lesson.level} ({style.value})")
        return cls(pipeline, store, state, clock=clock)

    @staticmethod
    async def _level_intro(pipeline: ContentPipeline, lesson: Lesson,
                           style: LearningStyle) -> Tuple[ResolutionResult, ResolutionResult]:
        welcome = await pipeline.resolve(ContentRequest(
            topic=lesson.topic, level=lesson.level, style=style, mode=ContentMode.WELCOME,
        ))
        overview = await pipeline.resolve(ContentRequest(
            topic=lesson.topic, level=lesson.level, style=style, mode=ContentMode.EXPLAIN,
        ))
        return welcome, overview

    async def advance(self, event: Event) -> Step:
        if isinstance(event, RequestExplanation):
            return await self._explain(event)
        if isinstance(event, SubmitSentiment):
            return await self._submit_sentiment(event)
        if isinstance(event, Advance):
            return await self._advance_level(event)
        if isinstance(event, Retry):
            event = replace(event, at=self._clock())
        if isinstance(event, (ExplanationReady, Evaluated, LevelLoaded)):
            raise _reject(self.state, event)

        self.state = transition(self.state, event)
        return Step(self.state, self._payload_for(event))

    def _payload_for(self, event: Event) -> Dict[str, Any]:
        ps = self.state.phase_state
        if isinstance(event, ConfirmAnswer) and isinstance(ps, Quiz):
            item = self.state.lesson.quiz[ps.question_index]
            return {"correct": ps.last_correct, "explanation": item.explanation, "score": self.state.score}
        if isinstance(ps, Quiz) and not ps.locked:
            item = self.state.lesson.quiz[ps.question_index]
            return {"question": {"index": ps.question_index, "question": item.question, "options": item.options}}
        if isinstance(ps, Learning):
            return {"fragment": self.state.lesson.fragments[ps.fragment_index].model_dump()}
        return {}

    async def _explain(self, event: RequestExplanation) -> Step:
        self.state = transition(self.state, event)
        ps = self.state.phase_state
        token = ps.pending_token
        fragment = self.state.lesson.fragments[ps.fragment_index]

        # The call runs to completion even if the learner moves on, so the
        # cache still gets the answer.
        result = await self.pipeline.resolve(ContentRequest(
            topic=self.state.topic,
            level=self.state.level,
            style=self.state.style,
            mode=ContentMode.EXPLAIN,
            source_text=fragment.text,
            fragment_id=fragment.id,
        ))

        self.state = transition(self.state, ExplanationReady(token=token, result=result))
        current = self.state.phase_state
        applied = isinstance(current, Learning) and current.explanation is result
        if not applied:
            logger.debug(f"[Session] Discarded stale explanation (token {token})")
            return Step(self.state, {"explanation": None, "discarded": True})
        return Step(self.state, {"explanation": result.model_dump(mode="json"), "discarded": False})

    async def _submit_sentiment(self, event: SubmitSentiment) -> Step:
        self.state = transition(self.state, event)
        state = self.state
        evaluation = await self.pipeline.classify_emotion(
            state.score, state.total_questions, state.phase_state.feedback, state.style, state.topic,
        )
        self.state = transition(self.state, Evaluated(evaluation))
        result = self.state.phase_state

        record = SessionRecord(
            learner_id=state.learner_id,
            topic=state.topic,
            level=state.level,
            score=state.score,
            total_questions=state.total_questions,
            decision=result.evaluation.decision,
            emotion=result.evaluation.emotion,
            confidence_score=result.evaluation.confidence_score,
            learning_style=state.style,
            duration_seconds=max(0, int(self._clock() - state.started_at)),
            sentiment=state.phase_state.feedback,
            answers=state.answers_dict(),
        )
        persisted = False
        progress_saved = False
        if state.learner_id:
            persisted = await history.append_session_record(self.store, state.learner_id, record)
            if result.passed and result.evaluation.decision == Decision.NEXT_LEVEL:
                progress_saved = await history.save_progress(
                    self.store, state.learner_id, state.topic, curriculum.next_level(state.topic, state.level),
                )

        return Step(self.state, {
            "evaluation": result.evaluation.model_dump(mode="json"),
            "record": record.model_dump(mode="json"),
            "persisted": persisted,
            "progress_saved": progress_saved,
        })

    async def _advance_level(self, event: Advance) -> Step:
        self.state = transition(self.state, event)
        state = self.state
        next_level = curriculum.next_level(state.topic, state.level)
        lesson = await curriculum.load_lesson(self.store, state.topic, next_level)
        welcome, overview = await self._level_intro(self.pipeline, lesson, state.style)

        self.state = transition(self.state, LevelLoaded(lesson=lesson, at=self._clock(),
                                                        welcome=welcome, overview=overview))
        # Also covers advancing on a decision other than NEXT_LEVEL.
        if state.learner_id:
            await history.save_progress(self.store, state.learner_id, state.topic, next_level)
        logger.info(f"[Session] ⏭️ Advanced {state.topic} to level {next_level}")
        return Step(self.state, {"level": next_level, "welcome": welcome.model_dump(mode="json")})
