"""End-of-session emotion evaluation as a LangGraph flow.

classifier (Gemini JSON) --ok--> formatter
           \\--failed--> local_fallback --> formatter

The local fallback guarantees an answer, so session completion never depends
on the generative service.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, TypedDict

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import JsonOutputParser
from langgraph.graph import END, StateGraph
from loguru import logger

from errors import MalformedResponse, RemoteUnavailable
from fallback_content import offline_evaluation_message
from models import Decision, Emotion, EvaluationResult, LearningStyle
from prompts import build_emotion_prompt

CLASSIFIER_DECISIONS = {Decision.NEXT_LEVEL, Decision.REPEAT, Decision.EASIER_CONTENT}

# Labels the model sometimes answers with instead of Plutchik names.
EMOTION_ALIASES = {
    "happy": Emotion.JOY,
    "senang": Emotion.JOY,
    "anxious": Emotion.FEAR,
    "cemas": Emotion.FEAR,
    "takut": Emotion.FEAR,
    "sad": Emotion.SADNESS,
    "sedih": Emotion.SADNESS,
    "angry": Emotion.ANGER,
    "marah": Emotion.ANGER,
}


# ---------------------------------------------
# Evaluation State
# ---------------------------------------------
class EvaluationState(TypedDict, total=False):
    score: int
    total_questions: int
    feedback: str
    style: LearningStyle
    topic: str
    llm_raw: Optional[str]
    result: Optional[EvaluationResult]
    fallback_used: bool
    error: Optional[str]


def parse_emotion(value: Any) -> Emotion:
    label = str(value or "").strip()
    for emotion in Emotion:
        if emotion.value.lower() == label.lower():
            return emotion
    if label.lower() in EMOTION_ALIASES:
        return EMOTION_ALIASES[label.lower()]
    raise MalformedResponse(f"Unknown emotion label: {label!r}")


def parse_classifier_output(text: str) -> EvaluationResult:
    """Turn the classifier's JSON answer into an EvaluationResult or raise MalformedResponse."""
    try:
        parsed = JsonOutputParser().parse(text)
    except OutputParserException as e:
        raise MalformedResponse(f"Classifier answer is not JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise MalformedResponse("Classifier answer is not a JSON object")

    try:
        decision = Decision(str(parsed.get("decision", "")).strip().upper())
    except ValueError as e:
        raise MalformedResponse(f"Unknown decision: {parsed.get('decision')!r}") from e
    if decision not in CLASSIFIER_DECISIONS:
        raise MalformedResponse(f"Classifier may not decide {decision.value}")

    try:
        confidence = float(parsed.get("confidenceScore", parsed.get("confidence_score", 0.0)))
    except (TypeError, ValueError):
        confidence = 0.0

    return EvaluationResult(
        decision=decision,
        emotion=parse_emotion(parsed.get("emotion")),
        confidence_score=min(max(confidence, 0.0), 1.0),
        message=str(parsed.get("message") or "").strip(),
        is_offline=False,
    )


def local_evaluation(score: int, total_questions: int, style: LearningStyle, topic: str) -> EvaluationResult:
    """Deterministic evaluation used whenever the classifier cannot answer."""
    ratio = score / total_questions if total_questions else 0.0
    decision = Decision.REPEAT if ratio < 0.5 else Decision.NEXT_LEVEL
    emotion = Emotion.ANTICIPATION
    return EvaluationResult(
        decision=decision,
        emotion=emotion,
        confidence_score=0.0,
        message=offline_evaluation_message(score, total_questions, emotion.value, topic, style),
        is_offline=True,
    )


class EmotionEvaluator:
    def __init__(self, generate: Callable[[str], Awaitable[str]], is_ready: Callable[[], bool]) -> None:
        self._generate = generate
        self._is_ready = is_ready

        graph = StateGraph(EvaluationState)
        graph.add_node("classifier", self.classifier_node)
        graph.add_node("local_fallback", self.fallback_node)
        graph.add_node("formatter", self.formatter_node)
        graph.set_entry_point("classifier")
        graph.add_conditional_edges(
            "classifier",
            lambda state: "local_fallback" if state.get("fallback_used") else "formatter",
            {"local_fallback": "local_fallback", "formatter": "formatter"},
        )
        graph.add_edge("local_fallback", "formatter")
        graph.add_edge("formatter", END)
        self.graph = graph.compile()

    # ---------------------------------------------
    # Classifier Node
    # ---------------------------------------------
    async def classifier_node(self, state: EvaluationState) -> Dict[str, Any]:
        """One Gemini call; any failure routes to the local fallback."""
        try:
            if not self._is_ready():
                raise RemoteUnavailable("Generative service cooling down")
            prompt = build_emotion_prompt(
                state["score"], state["total_questions"], state["feedback"], state["style"], state["topic"],
            )
            raw = await self._generate(prompt)
            result = parse_classifier_output(raw)
            return {"llm_raw": raw, "result": result, "fallback_used": False}
        except Exception as e:
            logger.warning(f"[Evaluate] ⚠️ Falling back to local evaluation: {e}")
            return {"fallback_used": True, "error": str(e)}

    # ---------------------------------------------
    # Fallback Node
    # ---------------------------------------------
    async def fallback_node(self, state: EvaluationState) -> Dict[str, Any]:
        return {
            "result": local_evaluation(state["score"], state["total_questions"], state["style"], state["topic"])
        }

    # ---------------------------------------------
    # Formatter Node
    # ---------------------------------------------
    async def formatter_node(self, state: EvaluationState) -> Dict[str, Any]:
        result = state["result"]
        if not result.message:
            message = offline_evaluation_message(
                state["score"], state["total_questions"], result.emotion.value, state["topic"], state["style"],
            )
            result = result.model_copy(update={"message": message})
        return {"result": result}

    # ---------------------------------------------
    # Public Entrypoint
    # ---------------------------------------------
    async def evaluate(self, score: int, total_questions: int, feedback: str,
                       style: LearningStyle, topic: str) -> EvaluationResult:
        final = await self.graph.ainvoke({
            "score": score,
            "total_questions": total_questions,
            "feedback": feedback,
            "style": LearningStyle.parse(style),
            "topic": topic,
        })
        result = final["result"]
        logger.info(f"[Evaluate] decision={result.decision.value} emotion={result.emotion.value} offline={result.is_offline}")
        return result
