import logging
import tomllib

from fastapi import FastAPI

from config import configure_logging, get_settings
from scheduler import SchedulerManager


settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


def _load_app_version() -> str:
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except (OSError, tomllib.TOMLDecodeError):
        return "unknown"


APP_VERSION = _load_app_version()

app = FastAPI(title="Finora", version=APP_VERSION)

scheduler_manager = SchedulerManager(settings)


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.get("/")
def health():
    return {
        "message": "API is running",
        "version": APP_VERSION,
        "scheduler_running": scheduler_manager.scheduler.running,
    }
