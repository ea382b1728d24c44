"""Text-generation providers and the retry policy wrapped around them."""

import logging
import random
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional, Protocol, TypeVar

import openai
from openai import OpenAI

from config import Settings
from errors import TextGenerationError


logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_BACKOFF_SECS = 30.0


class TextGenerator(Protocol):
    name: str

    def generate(self, prompt: str) -> str: ...


class OpenAITextGenerator:
    """Chat-completions provider for any OpenAI-compatible endpoint."""

    def __init__(self, client: OpenAI, model: str) -> None:
        self.client = client
        self.model = model
        self.name = model

    def generate(self, prompt: str) -> str:
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.APIStatusError as exc:
            raise TextGenerationError(
                f"{self.model} returned {exc.status_code}",
                status_code=exc.status_code,
                retry_after=exc.response.headers.get("retry-after"),
            ) from exc
        except openai.APITimeoutError as exc:
            raise TextGenerationError(
                f"{self.model} timed out", status_code=504
            ) from exc
        except openai.APIConnectionError as exc:
            raise TextGenerationError(f"{self.model} unreachable: {exc}") from exc

        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""


def build_text_generators(settings: Settings) -> list[TextGenerator]:
    if not settings.ai_api_key:
        logger.warning("FINORA_AI_API_KEY is not set; insights will use the fallback")
        return []
    client = OpenAI(
        api_key=settings.ai_api_key,
        base_url=settings.ai_base_url,
        timeout=settings.ai_timeout_secs,
        max_retries=0,
    )
    return [OpenAITextGenerator(client, model) for model in settings.ai_models]


def _jitter(upper_secs: float, rng: Callable[[], float]) -> float:
    return rng() * upper_secs


def retry_after_delay(
    value: Optional[str], *, now: Optional[datetime] = None
) -> Optional[float]:
    """Seconds to wait according to a Retry-After header, if it can be read."""
    if not value:
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return seconds if seconds > 0 else None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(1.0, (when - now).total_seconds())


def call_with_retries(
    fn: Callable[[], T],
    *,
    max_attempts: int = 5,
    base_delay: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
    rng: Callable[[], float] = random.random,
) -> T:
    """Call ``fn``, retrying transient ``TextGenerationError`` failures.

    Backoff is exponential with jitter and capped; a server-supplied
    Retry-After wins over the computed delay. Any other error, or the last
    failed attempt, is re-raised.
    """
    attempt = 0
    while True:
        try:
            return fn()
        except TextGenerationError as exc:
            attempt += 1
            logger.warning(
                f"text_generation: attempt={attempt} status={exc.status_code} "
                f"transient={exc.is_transient} error={exc}"
            )
            if not exc.is_transient or attempt >= max_attempts:
                raise

            server_delay = retry_after_delay(exc.retry_after)
            if server_delay is not None:
                delay = server_delay + _jitter(0.5, rng)
            else:
                backoff = min(MAX_BACKOFF_SECS, base_delay * (2 ** (attempt - 1)))
                delay = backoff + _jitter(0.3, rng)
            sleep(delay)
