import importlib

import pytest
from fastapi.testclient import TestClient

from config import get_settings


@pytest.fixture
def app_module(monkeypatch, tmp_path):
    monkeypatch.setenv("FINORA_DATABASE_URL", f"sqlite:///{tmp_path / 'app.db'}")
    get_settings.cache_clear()
    yield importlib.import_module("main")
    get_settings.cache_clear()


def test_app_version_read_from_pyproject(app_module, monkeypatch, tmp_path):
    (tmp_path / "pyproject.toml").write_text('[project]\nversion = "9.8.7"\n')
    monkeypatch.chdir(tmp_path)
    assert app_module._load_app_version() == "9.8.7"


def test_app_version_unknown_without_pyproject(app_module, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    assert app_module._load_app_version() == "unknown"

    (tmp_path / "pyproject.toml").write_text("not = [valid")
    assert app_module._load_app_version() == "unknown"


def test_health_reports_scheduler_state(app_module):
    response = TestClient(app_module.app).get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "API is running"
    assert body["version"] == app_module.APP_VERSION
    assert body["scheduler_running"] is False
