"""Generative completion collaborator (Gemini via LangChain).

`complete()` returns the response text or raises one of:
RateLimited, RemoteUnavailable, MalformedResponse.
"""

from typing import Dict, Optional, Tuple

from langchain_google_genai import ChatGoogleGenerativeAI
from loguru import logger

from errors import MalformedResponse, RateLimited, RemoteUnavailable

RATE_LIMIT_MARKERS = ("429", "RESOURCE_EXHAUSTED", "quota", "Rate limit", "rate limit")


class CompletionClient:
    """Interface of the generative service as seen by the pipeline."""

    async def complete(self, prompt_text: str, max_output_tokens: int, temperature: float) -> str:
        raise NotImplementedError


def is_rate_limit_error(exc: BaseException) -> bool:
    code = getattr(exc, "code", None) or getattr(exc, "status_code", None)
    if code == 429:
        return True
    message = str(exc)
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def extract_text(content) -> str:
    """Chat message content may be a plain string or a list of parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return ""


class GeminiClient(CompletionClient):
    def __init__(self, api_key: Optional[str], model: str = "gemini-1.5-flash") -> None:
        self.api_key = api_key
        self.model = model
        self._llms: Dict[Tuple[int, float], ChatGoogleGenerativeAI] = {}
        if not api_key:
            logger.warning("[Gemini] ⚠️ GOOGLE_API_KEY is not set; every call will fall back offline.")

    def _llm(self, max_output_tokens: int, temperature: float) -> ChatGoogleGenerativeAI:
        key = (max_output_tokens, temperature)
        if key not in self._llms:
            # Retries are owned by the pipeline, not the SDK.
            self._llms[key] = ChatGoogleGenerativeAI(
                model=self.model,
                google_api_key=self.api_key,
                max_output_tokens=max_output_tokens,
                temperature=temperature,
                top_p=0.95,
                max_retries=1,
            )
        return self._llms[key]

    async def complete(self, prompt_text: str, max_output_tokens: int, temperature: float) -> str:
        if not self.api_key:
            raise RemoteUnavailable("GOOGLE_API_KEY missing")

        try:
            message = await self._llm(max_output_tokens, temperature).ainvoke(prompt_text)
        except Exception as e:
            if is_rate_limit_error(e):
                raise RateLimited(str(e)) from e
            raise RemoteUnavailable(str(e)) from e

        text = extract_text(getattr(message, "content", None)).strip()
        if not text:
            raise MalformedResponse("Empty response from Gemini")
        return text
