import asyncio

import pytest

import curriculum
import history
from conftest import FailingWriteStore, FakeClock, FakeCompletionClient, emotion_json
from errors import InvalidTransition, LessonNotFound, ValidationError
from models import (
    Decision,
    Emotion,
    EvaluationResult,
    Fragment,
    LearningStyle,
    Lesson,
    Origin,
    QuizItem,
    ResolutionResult,
)
from session import (
    Advance,
    ConfirmAnswer,
    Evaluated,
    ExplanationReady,
    NextFragment,
    NextQuestion,
    Phase,
    Recommendation,
    RequestExplanation,
    ResultAction,
    Retry,
    SelectOption,
    SessionOrchestrator,
    SessionState,
    SkipToQuiz,
    SubmitSentiment,
    describe,
    transition,
)

# Correct options for Aljabar level 1.
ALJABAR_1_ANSWERS = [0, 1, 2]


class GatedClient(FakeCompletionClient):
    """Holds explain calls until `gate` is set, so a test can act in between."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.gate = None

    async def complete(self, prompt_text, max_output_tokens, temperature):
        if self.gate is not None:
            await self.gate.wait()
        return await super().complete(prompt_text, max_output_tokens, temperature)


def lesson_with(questions: int, level: int = 5, final_level: int = 5) -> Lesson:
    return Lesson(
        topic="Aljabar",
        level=level,
        title="Sistem Persamaan Linear",
        fragments=[Fragment(id="aljabar-5-1", order=1, text="Eliminasi dan substitusi.")],
        quiz=[QuizItem(question=f"Soal {i + 1}", options=["A", "B", "C"], correct_option_index=0)
              for i in range(questions)],
        final_level=final_level,
    )


async def answer_all(orchestrator, choices):
    for choice in choices:
        await orchestrator.advance(SelectOption(index=choice))
        await orchestrator.advance(ConfirmAnswer())
        await orchestrator.advance(NextQuestion())


@pytest.fixture
def session_client():
    return GatedClient(emotion_reply=emotion_json("NEXT_LEVEL", "Joy", 0.9, "Hebat!"))


@pytest.fixture
def session_pipeline(make_pipeline, session_client):
    return make_pipeline(session_client)


@pytest.fixture
def start(session_pipeline, store, clock):
    async def _start(topic="Aljabar", level=1, learner_id="siswa-1", store_override=None):
        return await SessionOrchestrator.start(
            session_pipeline, store_override or store, topic, level,
            style="VISUAL", learner_id=learner_id, mastery_threshold=0.8, clock=clock,
        )
    return _start


# ---------- start ----------
@pytest.mark.asyncio
async def test_start_loads_lesson_and_intro(start):
    orchestrator = await start()
    state = orchestrator.state

    assert state.phase == Phase.LEARNING
    assert state.total_questions == 3
    assert state.welcome.origin == Origin.GENERATED
    assert state.overview.origin == Origin.STATIC
    assert describe(state)["fragment"]["id"] == "aljabar-1-1"


@pytest.mark.asyncio
async def test_unknown_lesson_raises(start):
    with pytest.raises(LessonNotFound):
        await start(topic="Kalkulus")


# ---------- learning ----------
@pytest.mark.asyncio
async def test_explanation_is_applied(start, session_client):
    orchestrator = await start()

    step = await orchestrator.advance(RequestExplanation())

    assert step.payload["discarded"] is False
    assert step.payload["explanation"]["origin"] == Origin.GENERATED.value
    assert step.state.phase_state.explanation is not None


@pytest.mark.asyncio
async def test_stale_explanation_is_discarded_but_cached(start, session_client, store):
    orchestrator = await start()
    session_client.gate = asyncio.Event()

    pending = asyncio.create_task(orchestrator.advance(RequestExplanation()))
    await asyncio.sleep(0)
    await orchestrator.advance(NextFragment())
    session_client.gate.set()
    step = await pending

    assert step.payload == {"explanation": None, "discarded": True}
    assert orchestrator.state.phase_state.fragment_index == 1
    assert orchestrator.state.phase_state.explanation is None
    assert any(key.startswith("materi_cache:") and "aljabar-1-1" in key for key in store._docs)


def test_explanation_with_old_token_is_ignored():
    state = SessionState(lesson=lesson_with(1), style=LearningStyle.VISUAL)
    state = transition(state, RequestExplanation())
    state = transition(state, RequestExplanation())
    stale = ResolutionResult(explanation="lama", origin=Origin.GENERATED)

    assert transition(state, ExplanationReady(token=1, result=stale)) is state
    assert transition(state, ExplanationReady(token=2, result=stale)).phase_state.explanation == stale


@pytest.mark.asyncio
async def test_fragments_then_quiz(start):
    orchestrator = await start()

    await orchestrator.advance(NextFragment())
    await orchestrator.advance(NextFragment())
    step = await orchestrator.advance(NextFragment())

    assert step.state.phase == Phase.QUIZ
    assert step.payload["question"]["index"] == 0
    assert "correct_option_index" not in describe(step.state)["question"]


# ---------- quiz ----------
@pytest.mark.asyncio
async def test_scoring_correct_and_incorrect(start):
    orchestrator = await start()
    await orchestrator.advance(SkipToQuiz())

    await orchestrator.advance(SelectOption(index=0))
    step = await orchestrator.advance(ConfirmAnswer())
    assert step.payload["correct"] is True
    assert step.state.score == 1

    await orchestrator.advance(NextQuestion())
    await orchestrator.advance(SelectOption(index=0))
    step = await orchestrator.advance(ConfirmAnswer())
    assert step.payload["correct"] is False
    assert step.state.score == 1
    assert step.state.answers_dict()[1].correct is False
    assert step.state.answers_dict()[1].selected_option == 0


@pytest.mark.asyncio
async def test_quiz_guards(start):
    orchestrator = await start()
    await orchestrator.advance(SkipToQuiz())

    with pytest.raises(ValidationError):
        await orchestrator.advance(ConfirmAnswer())
    with pytest.raises(ValidationError):
        await orchestrator.advance(SelectOption(index=7))
    with pytest.raises(ValidationError):
        await orchestrator.advance(NextQuestion())

    await orchestrator.advance(SelectOption(index=1))
    await orchestrator.advance(ConfirmAnswer())
    with pytest.raises(ValidationError):
        await orchestrator.advance(SelectOption(index=0))
    with pytest.raises(InvalidTransition):
        await orchestrator.advance(NextFragment())


# ---------- sentiment & result ----------
@pytest.mark.asyncio
async def test_result_requires_sentiment(start):
    orchestrator = await start()
    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, ALJABAR_1_ANSWERS)
    assert orchestrator.state.phase == Phase.SENTIMENT

    with pytest.raises(ValidationError):
        await orchestrator.advance(SubmitSentiment(text="   "))
    assert orchestrator.state.phase == Phase.SENTIMENT

    with pytest.raises(InvalidTransition):
        await orchestrator.advance(Evaluated(EvaluationResult(decision=Decision.NEXT_LEVEL)))


@pytest.mark.asyncio
async def test_full_pass_records_history(start, store, clock):
    orchestrator = await start()
    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, ALJABAR_1_ANSWERS)
    clock.advance(125)

    step = await orchestrator.advance(SubmitSentiment(text="Seru!"))

    assert step.state.phase == Phase.RESULT
    assert step.payload["persisted"] is True
    assert describe(step.state)["actions"] == ["ADVANCE", "RETRY_ALL"]
    records = await history.load_history(store, "siswa-1")
    assert len(records) == 1
    assert records[0].score == 3
    assert records[0].emotion == Emotion.JOY
    assert records[0].duration_seconds == 125
    assert records[0].answers[2].correct is True


@pytest.mark.asyncio
async def test_persistence_failure_does_not_block_result(start):
    orchestrator = await start(store_override=FailingWriteStore())
    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, ALJABAR_1_ANSWERS)

    step = await orchestrator.advance(SubmitSentiment(text="Biasa saja"))

    assert step.state.phase == Phase.RESULT
    assert step.payload["persisted"] is False


@pytest.mark.asyncio
async def test_failing_score_offers_retries_only(start):
    orchestrator = await start()
    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, [2, 2, 0])

    step = await orchestrator.advance(SubmitSentiment(text="Susah"))

    assert step.state.phase_state.passed is False
    assert step.state.phase_state.actions == (ResultAction.RETRY_ALL, ResultAction.RETRY_QUIZ)
    with pytest.raises(InvalidTransition):
        await orchestrator.advance(Advance())

    step = await orchestrator.advance(Retry(quiz_only=True))
    assert step.state.phase == Phase.QUIZ
    assert step.state.score == 0
    assert step.state.answers == ()


@pytest.mark.asyncio
async def test_anxious_learner_gets_soft_nudge(make_pipeline, store, clock):
    pipeline = make_pipeline(FakeCompletionClient(emotion_reply=emotion_json("NEXT_LEVEL", "Fear", 0.8)))
    orchestrator = await SessionOrchestrator.start(pipeline, store, "Aljabar", 1, clock=clock)
    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, ALJABAR_1_ANSWERS)

    step = await orchestrator.advance(SubmitSentiment(text="Deg-degan"))

    assert step.state.phase_state.recommendation == Recommendation.REPEAT_BEFORE_ADVANCING
    assert ResultAction.ADVANCE in step.state.phase_state.actions


@pytest.mark.asyncio
async def test_final_level_mastery_forces_next_topic(session_pipeline, store):
    state = SessionState(lesson=lesson_with(10), style=LearningStyle.VISUAL, mastery_threshold=0.8)
    orchestrator = SessionOrchestrator(session_pipeline, store, state, clock=FakeClock())
    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, [0] * 9 + [1])

    step = await orchestrator.advance(SubmitSentiment(text="Lega"))

    assert step.state.score == 9
    assert step.state.phase_state.evaluation.decision == Decision.NEXT_TOPIC
    assert step.state.phase_state.actions == (ResultAction.CHOOSE_TOPIC, ResultAction.RETRY_ALL)


@pytest.mark.asyncio
async def test_mastery_below_final_level_keeps_classifier_decision(session_pipeline, store):
    state = SessionState(lesson=lesson_with(10, level=4), style=LearningStyle.VISUAL)
    orchestrator = SessionOrchestrator(session_pipeline, store, state, clock=FakeClock())
    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, [0] * 10)

    step = await orchestrator.advance(SubmitSentiment(text="Lega"))

    assert step.state.phase_state.evaluation.decision == Decision.NEXT_LEVEL


# ---------- retry / advance ----------
@pytest.mark.asyncio
async def test_retry_all_restarts_learning(start, clock):
    orchestrator = await start()
    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, ALJABAR_1_ANSWERS)
    await orchestrator.advance(SubmitSentiment(text="Oke"))
    clock.advance(10)

    step = await orchestrator.advance(Retry())

    assert step.state.phase == Phase.LEARNING
    assert step.state.phase_state.fragment_index == 0
    assert step.state.score == 0
    assert step.state.started_at == clock.now


@pytest.mark.asyncio
async def test_advance_loads_next_level_and_saves_progress(start, store):
    orchestrator = await start()
    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, ALJABAR_1_ANSWERS)
    await orchestrator.advance(SubmitSentiment(text="Mantap"))

    step = await orchestrator.advance(Advance())

    assert step.payload["level"] == 2
    assert step.state.level == 2
    assert step.state.phase == Phase.LEARNING
    assert step.state.score == 0
    assert (await store.get(history.profile_key("siswa-1")))["levels"] == {"Aljabar": 2}


@pytest.mark.asyncio
async def test_internal_events_are_rejected(start):
    orchestrator = await start()

    with pytest.raises(InvalidTransition):
        await orchestrator.advance(
            ExplanationReady(token=1, result=ResolutionResult(explanation="x", origin=Origin.CACHE))
        )


# ---------- progress & store-only topics ----------
@pytest.mark.asyncio
async def test_passing_next_level_saves_progress_at_evaluation(start, store):
    orchestrator = await start(learner_id="u1")
    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, ALJABAR_1_ANSWERS)

    step = await orchestrator.advance(SubmitSentiment(text="Senang"))

    assert step.payload["progress_saved"] is True
    assert (await store.get(history.profile_key("u1")))["levels"] == {"Aljabar": 2}


@pytest.mark.asyncio
async def test_failing_attempt_does_not_save_progress(start, store):
    orchestrator = await start(learner_id="u2")
    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, [2, 2, 0])

    step = await orchestrator.advance(SubmitSentiment(text="Susah"))

    assert step.payload["progress_saved"] is False
    assert await store.get(history.profile_key("u2")) is None


@pytest.mark.asyncio
async def test_store_only_topic_last_level_forces_next_topic(start, store):
    await curriculum.seed_lessons(store)
    orchestrator = await start(topic="Statistika", level=1)
    assert orchestrator.state.lesson.is_final_level

    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, [2])
    step = await orchestrator.advance(SubmitSentiment(text="senang"))

    assert step.state.phase_state.evaluation.decision == Decision.NEXT_TOPIC
    assert step.state.phase_state.actions == (ResultAction.CHOOSE_TOPIC, ResultAction.RETRY_ALL)
    assert step.payload["progress_saved"] is False
    with pytest.raises(InvalidTransition):
        await orchestrator.advance(Advance())


@pytest.mark.asyncio
async def test_store_only_topic_with_next_level_advances(start, store):
    await curriculum.seed_lessons(store)
    level_two = dict(curriculum.SAMPLE_LESSONS[0], level=2, title="Ukuran Penyebaran Data")
    await store.set(curriculum.lesson_key("Statistika", 2), curriculum.lesson_document(level_two))
    orchestrator = await start(topic="Statistika", level=1)
    assert not orchestrator.state.lesson.is_final_level

    await orchestrator.advance(SkipToQuiz())
    await answer_all(orchestrator, [2])
    await orchestrator.advance(SubmitSentiment(text="senang"))
    step = await orchestrator.advance(Advance())

    assert step.state.level == 2
    assert step.state.lesson.is_final_level
