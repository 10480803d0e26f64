"""
Text model service - thin wrappers around the Gemini and OpenAI clients.

Every generator in the pipeline (planner, Q&A, quiz) talks to the model
through ``generate_text`` and shares ``run_with_retries`` for the
rate-limit/parse-failure retry policy.
"""
import json
import logging
import math
import random
import time
from typing import Callable, Optional, TypeVar

from lesson_pipeline.config import config
from lesson_pipeline.errors import GenerationFailure, PlanParseError

logger = logging.getLogger(__name__)

T = TypeVar('T')

RETRYABLE_STATUS_CODES = (429, 503)


class GeminiTextModel:
    """Gemini via google-genai, optionally grounded with Google Search"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        use_search: Optional[bool] = None,
    ):
        self.api_key = api_key if api_key is not None else config.gemini_api_key
        self.model = model or config.gemini_model
        self.use_search = config.use_search_grounding if use_search is None else use_search
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise GenerationFailure("GEMINI_API_KEY is not configured")
            from google import genai
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def generate_text(self, prompt: str) -> str:
        from google.genai import types

        generation_config = None
        if self.use_search:
            generation_config = types.GenerateContentConfig(
                tools=[types.Tool(google_search=types.GoogleSearch())]
            )

        response = self.client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=generation_config,
        )
        return response.text or ""


class OpenAITextModel:
    """OpenAI chat completions"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key if api_key is not None else config.openai_api_key
        self.model = model or config.openai_model
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise GenerationFailure("OPENAI_API_KEY is not configured")
            from openai import OpenAI
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def generate_text(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.7,
        )
        return response.choices[0].message.content or ""


def error_status(error: Exception) -> Optional[int]:
    """Best-effort HTTP status of a provider error."""
    for attr in ('code', 'status_code', 'status'):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, 'response', None)
    value = getattr(response, 'status_code', None)
    return value if isinstance(value, int) else None


def retry_after_seconds(error: Exception) -> Optional[float]:
    """Provider-supplied retry-after, in seconds, if any."""
    for holder in (getattr(error, 'response', None), error):
        headers = getattr(holder, 'headers', None)
        if not headers:
            continue
        try:
            value = headers.get('retry-after')
        except AttributeError:
            continue
        if value is None:
            continue
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            return None
        return seconds if math.isfinite(seconds) and seconds >= 0 else None
    return None


def is_retryable(error: Exception) -> bool:
    if isinstance(error, (PlanParseError, json.JSONDecodeError)):
        return True
    return error_status(error) in RETRYABLE_STATUS_CODES


def backoff_seconds(attempt: int, error: Exception) -> float:
    """Wait before the next attempt: retry-after, else 1s * 2^(n-1) + jitter."""
    retry_after = retry_after_seconds(error)
    if retry_after:
        return retry_after
    base_ms = config.retry_base_delay_ms * (2 ** (attempt - 1))
    jitter_ms = random.randint(0, config.retry_max_jitter_ms)
    return (base_ms + jitter_ms) / 1000.0


def run_with_retries(
    operation: Callable[[], T],
    label: str,
    max_attempts: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call operation until it succeeds, retrying transient failures.

    Retryable: provider 429/503 and structural parse failures. Any other
    error aborts immediately.

    Raises:
        GenerationFailure: chained to the last error once attempts run out
    """
    attempts = max_attempts or config.planner_max_attempts
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            logger.info(f"{label} (attempt {attempt}/{attempts})")
            return operation()
        except GenerationFailure:
            raise
        except Exception as e:
            last_error = e
            logger.error(f"{label} failed (attempt {attempt}/{attempts}): {e}")

            if not is_retryable(e) or attempt >= attempts:
                break

            wait = backoff_seconds(attempt, e)
            cause = 'API' if error_status(e) in RETRYABLE_STATUS_CODES else 'JSON'
            logger.info(f"⏳ Waiting {wait:.2f}s before retrying (cause: {cause})")
            sleep(wait)

    raise GenerationFailure(f"{label} failed: {last_error}") from last_error


_text_model = None


def get_text_model():
    """Get or create the global text model for the configured provider"""
    global _text_model
    if _text_model is None:
        if config.llm_provider == 'openai':
            _text_model = OpenAITextModel()
        else:
            _text_model = GeminiTextModel()
        logger.info(f"Text model provider: {config.llm_provider}")
    return _text_model
