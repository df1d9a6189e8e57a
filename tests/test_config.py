"""Tests for settings loading: defaults, YAML overlay, env overrides."""

import pytest

from jobtracker.config import Settings, get_env, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("GROQ_LLM_MODEL", "GROQ_ANALYSIS_MODEL", "TRACKER_STRICT"):
        monkeypatch.delenv(key, raising=False)


class TestLoadSettings:
    def test_defaults_without_file(self, tmp_path):
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings == Settings()
        assert settings.max_retries == 5
        assert settings.base_delay_ms == 2000

    def test_yaml_overlay(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "max_retries: 2\nlogin_walled_domains:\n  - linkedin.com\n  - glassdoor.com\nbogus: 1\n",
            encoding="utf-8",
        )
        settings = load_settings(path)
        assert settings.max_retries == 2
        assert settings.login_walled_domains == ["linkedin.com", "glassdoor.com"]
        assert not hasattr(settings, "bogus")

    def test_non_mapping_yaml_is_ignored(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        assert load_settings(path) == Settings()

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GROQ_LLM_MODEL", "llama-3.1-8b-instant")
        monkeypatch.setenv("TRACKER_STRICT", "true")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.llm_model == "llama-3.1-8b-instant"
        assert settings.analysis_model == Settings().analysis_model
        assert settings.strict is True


def test_get_env_strips(monkeypatch):
    monkeypatch.setenv("SERPAPI_KEY", "  abc \n")
    assert get_env("SERPAPI_KEY") == "abc"
    assert get_env("DEFINITELY_NOT_SET_KEY", "fallback") == "fallback"
