import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from babel import Locale, UnknownLocaleError


@dataclass(frozen=True)
class Settings:
    database_url: str
    timezone: str
    log_level: str
    ai_api_key: str
    ai_base_url: str
    ai_models: tuple[str, ...]
    ai_timeout_secs: float
    ai_max_attempts: int
    ai_base_delay_secs: float
    resend_api_key: str
    mail_sender: str
    mail_timeout_secs: float
    currency_locale: str = "en_IN"
    currency_code: str = "INR"
    report_commit_timeout_secs: float = 10.0
    recurring_commit_timeout_secs: float = 20.0
    batch_page_size: int = 100


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINORA_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _split_models(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _currency_locale(raw: str) -> str:
    try:
        Locale.parse(raw.replace("-", "_"))
    except (UnknownLocaleError, ValueError) as exc:
        raise ValueError(f"FINORA_CURRENCY_LOCALE={raw!r} is not a known locale") from exc
    return raw


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("FINORA_DATABASE_URL")
    if not database_url:
        database_url = f"sqlite:///{_ensure_data_dir() / 'finora.db'}"
    return Settings(
        database_url=database_url,
        timezone=os.getenv("FINORA_TIMEZONE", "Asia/Kolkata"),
        log_level=os.getenv("FINORA_LOG_LEVEL", "INFO"),
        ai_api_key=os.getenv("FINORA_AI_API_KEY", ""),
        ai_base_url=os.getenv(
            "FINORA_AI_BASE_URL",
            "https://generativelanguage.googleapis.com/v1beta/openai/",
        ),
        ai_models=_split_models(
            os.getenv("FINORA_AI_MODELS", "gemini-2.5-flash,gemini-2.5-pro")
        ),
        ai_timeout_secs=float(os.getenv("FINORA_AI_TIMEOUT_SECS", "30")),
        ai_max_attempts=int(os.getenv("FINORA_AI_MAX_ATTEMPTS", "5")),
        ai_base_delay_secs=float(os.getenv("FINORA_AI_BASE_DELAY_SECS", "0.5")),
        resend_api_key=os.getenv("FINORA_RESEND_API_KEY", ""),
        mail_sender=os.getenv("FINORA_MAIL_SENDER", "Finora <reports@finora.app>"),
        mail_timeout_secs=float(os.getenv("FINORA_MAIL_TIMEOUT_SECS", "10")),
        currency_locale=_currency_locale(os.getenv("FINORA_CURRENCY_LOCALE", "en_IN")),
        currency_code=os.getenv("FINORA_CURRENCY_CODE", "INR"),
        report_commit_timeout_secs=float(
            os.getenv("FINORA_REPORT_COMMIT_TIMEOUT_SECS", "10")
        ),
        recurring_commit_timeout_secs=float(
            os.getenv("FINORA_RECURRING_COMMIT_TIMEOUT_SECS", "20")
        ),
        batch_page_size=int(os.getenv("FINORA_BATCH_PAGE_SIZE", "100")),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
