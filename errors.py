"""Error taxonomy shared by the pipeline, evaluator and session orchestrator."""


class TutorError(Exception):
    """Base class for every error raised inside the tutor service."""


# ---------- REMOTE (absorbed by the pipeline) ----------
class RemoteUnavailable(TutorError):
    """Generative service timed out or could not be reached."""


class RateLimited(TutorError):
    """Generative service answered with an explicit throttling signal (HTTP 429)."""


class MalformedResponse(TutorError):
    """Generative service answered, but the payload is empty or unparseable."""


# ---------- USER-FACING ----------
class ValidationError(TutorError):
    """Learner input rejected (empty reflection, no option selected, ...)."""


class InvalidTransition(ValidationError):
    """Event not allowed in the session's current phase."""

    def __init__(self, phase: str, event: str) -> None:
        super().__init__(f"Event {event} is not allowed during {phase}")
        self.phase = phase
        self.event = event


class LessonNotFound(TutorError):
    """No fragments/quiz are available for the requested topic and level."""
