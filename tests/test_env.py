# Environment loading and settings tests.
import os

from lms_quiz import config
from lms_quiz.env import load_environment

# Ensure missing env vars are populated from the .env file.
def test_load_environment_sets_missing_values(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text('OPENAI_MODEL="test-model"\n', encoding="utf-8")
    monkeypatch.delenv("OPENAI_MODEL", raising=False)

    assert load_environment(str(env_file)) is True

    assert os.environ["OPENAI_MODEL"] == "test-model"
    assert config.get_openai_model() == "test-model"
    monkeypatch.delenv("OPENAI_MODEL", raising=False)

# Ensure existing env vars are not overridden by the .env file.
def test_load_environment_does_not_override_existing(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("LOG_LEVEL=ignored\n", encoding="utf-8")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    load_environment(str(env_file))

    assert os.environ["LOG_LEVEL"] == "debug"
    assert config.get_log_level() == "DEBUG"

# Malformed or out-of-range numeric settings fall back to safe values.
def test_numeric_settings_fall_back(monkeypatch):
    monkeypatch.setenv("MAX_TIME_TAKEN_SECONDS", "soon")
    monkeypatch.setenv("SUBMISSIONS_PAGE_SIZE", "5000")

    assert config.get_max_time_taken() == config.DEFAULT_MAX_TIME_TAKEN_SECONDS
    assert config.get_page_size() == config.MAX_PAGE_SIZE


def test_cors_origins_are_split(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test,")

    assert config.get_cors_origins() == ["http://a.test", "http://b.test"]
