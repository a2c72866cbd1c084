"""Learner history: session records, progress, and the summary behind REPORT mode."""

from collections import Counter
from typing import Any, Dict, List, Optional

from loguru import logger

from models import Emotion, SessionRecord
from store import DocumentStore


def sessions_collection(learner_id: str) -> str:
    return f"users/{learner_id}/sessions"


def profile_key(learner_id: str) -> str:
    return f"users/{learner_id}"


async def append_session_record(store: DocumentStore, learner_id: str, record: SessionRecord) -> bool:
    """Append-only; analytics failures never block the learner. Returns False on failure."""
    try:
        await store.append(sessions_collection(learner_id), record.model_dump(mode="json"))
    except Exception as e:
        logger.warning(f"[History] ⚠️ Session log failed for {learner_id}: {e}")
        return False
    return True


async def save_progress(store: DocumentStore, learner_id: str, topic: str, level: int) -> bool:
    try:
        profile = await store.get(profile_key(learner_id)) or {}
        levels = dict(profile.get("levels", {}))
        levels[topic] = level
        profile["levels"] = levels
        await store.set(profile_key(learner_id), profile)
    except Exception as e:
        logger.warning(f"[History] ⚠️ Progress save failed for {learner_id}: {e}")
        return False
    return True


async def load_history(store: DocumentStore, learner_id: str) -> List[SessionRecord]:
    docs = await store.list(sessions_collection(learner_id))
    return [SessionRecord(**doc) for doc in docs]


def summarize_history(records: List[SessionRecord]) -> Dict[str, Any]:
    emotion_counts = Counter({emotion.value: 0 for emotion in Emotion})
    for record in records:
        emotion_counts[record.emotion.value] += 1

    dominant: Optional[str] = None
    if records:
        dominant = max(Emotion, key=lambda e: emotion_counts[e.value]).value

    confidences = [r.confidence_score for r in records if r.confidence_score]
    accuracies = [r.score / r.total_questions for r in records if r.total_questions]

    return {
        "sessions": len(records),
        "emotion_counts": dict(emotion_counts),
        "dominant_emotion": dominant,
        "average_confidence": round(sum(confidences) / len(confidences), 3) if confidences else 0.0,
        "average_accuracy": round(sum(accuracies) / len(accuracies), 3) if accuracies else 0.0,
        "total_minutes": round(sum(r.duration_seconds for r in records) / 60, 1),
    }


def summary_text(summary: Dict[str, Any]) -> str:
    """Plain-text digest passed to the REPORT prompt."""
    return (
        f"{summary['sessions']} sessions, dominant emotion {summary['dominant_emotion'] or 'unknown'}, "
        f"average accuracy {round(summary['average_accuracy'] * 100)}%, "
        f"average classifier confidence {round(summary['average_confidence'] * 100)}%, "
        f"{summary['total_minutes']} minutes of study. "
        f"Emotion counts: {', '.join(f'{k}={v}' for k, v in summary['emotion_counts'].items())}."
    )
