"""Prompt template selector keyed on (mode, style)."""

from typing import Dict

from langchain_core.prompts import PromptTemplate

from models import ContentMode, ContentRequest, LearningStyle

# ---------------------------------------------
# Style hints
# ---------------------------------------------
EXPLAIN_STYLE_HINTS: Dict[LearningStyle, str] = {
    LearningStyle.VISUAL: (
        "Focus on imagery, diagrams and layout. Describe visual structures clearly and use "
        "analogies involving sight and shapes."
    ),
    LearningStyle.AUDITORY: (
        "Focus on narrative and flow, as if giving a short podcast. Use conversational markers "
        "and rhythmic lists instead of tables."
    ),
    LearningStyle.KINESTHETIC: (
        "Frame the explanation as a mission or experiment with active verbs and a mini-activity "
        "the learner can try right now."
    ),
    LearningStyle.DEFAULT: "Use clear step-by-step logic.",
}

WELCOME_STYLE_HINTS: Dict[LearningStyle, str] = {
    LearningStyle.VISUAL: "Mention diagrams, mind maps, or seeing the big picture.",
    LearningStyle.AUDITORY: "Invite them to listen and use a warm conversational tone.",
    LearningStyle.KINESTHETIC: "Use action words and invite them to practice.",
    LearningStyle.DEFAULT: "General encouraging welcome.",
}

# ---------------------------------------------
# Templates
# ---------------------------------------------
EXPLAIN_TEMPLATE = PromptTemplate.from_template(
    """Explain this math concept so it is easy to understand.

Material: {text}
Topic: {topic}
Learning style: {style} ({style_hint})

Format:
1. **Simple analogy**: one sentence relating the idea to daily life.
2. **Steps**: numbered step-by-step explanation.
3. **Formula**: wrap every formula in double dollar signs, e.g. $$x^2$$.

Write in friendly, motivating Indonesian. Maximum 150 words."""
)

WELCOME_TEMPLATE = PromptTemplate.from_template(
    """Act as a personal AI tutor.
Context: the student is starting level {level} of "{topic}".
Style: {style} ({style_hint})

Task: write a very short welcome message (max 2 sentences) in Indonesian.
Output: just the message text."""
)

REPORT_TEMPLATE = PromptTemplate.from_template(
    """Act as an educational psychologist and AI tutor.
Analyze the following student data summary: "{text}"

Task: a brief, nurturing and insightful report (max 3-4 sentences) in Indonesian.
- Acknowledge their dominant emotion.
- Connect it to their performance.
- Give one specific tip for the next week.

Output: just the paragraph report."""
)

EMOTION_TEMPLATE = PromptTemplate.from_template(
    """You are an educational emotion classifier.
Identify the student's emotion from their feedback and quiz performance.

- Topic: {topic}
- Quiz score: {score}/{total}
- Student feedback: "{feedback}"
- Learning style: {style}

Classify into exactly one of Plutchik's eight emotions:
Joy, Trust, Fear, Surprise, Sadness, Disgust, Anger, Anticipation.

Decision rules:
- Joy/Trust with a high score -> "NEXT_LEVEL"
- Fear/Sadness/Anger/Disgust -> "EASIER_CONTENT"
- Anticipation/Surprise -> "REPEAT"
- Score below 50% -> "EASIER_CONTENT" regardless of emotion.

Answer with JSON only:
{{"decision": "NEXT_LEVEL" | "REPEAT" | "EASIER_CONTENT", "emotion": "<emotion>", "confidenceScore": <0.0-1.0>, "message": "<empathetic response in Indonesian>"}}"""
)

PROBE_PROMPT = "Reply with the single word: OK"


def build_prompt(req: ContentRequest) -> str:
    """Pure function of (mode, style) plus the request's topic/level/source text."""
    if req.mode == ContentMode.WELCOME:
        return WELCOME_TEMPLATE.format(
            topic=req.topic, level=req.level, style=req.style.value,
            style_hint=WELCOME_STYLE_HINTS[req.style],
        )
    if req.mode == ContentMode.REPORT:
        return REPORT_TEMPLATE.format(text=req.source_text)
    return EXPLAIN_TEMPLATE.format(
        text=req.source_text or f"Level {req.level}", topic=req.topic, style=req.style.value,
        style_hint=EXPLAIN_STYLE_HINTS[req.style],
    )


def build_emotion_prompt(score: int, total: int, feedback: str, style: LearningStyle, topic: str) -> str:
    return EMOTION_TEMPLATE.format(
        score=score, total=total, feedback=feedback, style=style.value, topic=topic or "General Math",
    )
