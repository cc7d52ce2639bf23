"""Tests for settings loading."""

from pathlib import Path

import pytest

from core.config import REPO_ROOT, Settings, load_settings


ENV_VARS = [
    "CUSTOMER_RESOLVER_DB",
    "LOG_LEVEL",
    "LOG_JSON",
    "MATCH_MAX_LEVENSHTEIN",
    "MATCH_MIN_TOKEN_SIMILARITY",
]


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so anything load_dotenv writes is undone afterwards
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestLoadSettings:

    def test_defaults(self, clean_env, tmp_path):
        settings = load_settings(tmp_path / "missing.env")

        assert settings.db_path == REPO_ROOT / "customer_resolver.db"
        assert settings.log_level == "INFO"
        assert settings.log_json is False
        assert settings.max_levenshtein_distance == 2
        assert settings.min_token_similarity == 0.85

    def test_environment_overrides(self, clean_env, tmp_path):
        clean_env.setenv("CUSTOMER_RESOLVER_DB", str(tmp_path / "x.db"))
        clean_env.setenv("LOG_LEVEL", "DEBUG")
        clean_env.setenv("LOG_JSON", "true")
        clean_env.setenv("MATCH_MAX_LEVENSHTEIN", "3")
        clean_env.setenv("MATCH_MIN_TOKEN_SIMILARITY", "0.9")

        settings = load_settings(tmp_path / "missing.env")

        assert settings.db_path == Path(tmp_path / "x.db")
        assert settings.log_level == "DEBUG"
        assert settings.log_json is True
        assert settings.max_levenshtein_distance == 3
        assert settings.min_token_similarity == 0.9

    def test_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("MATCH_MAX_LEVENSHTEIN=1\nLOG_JSON=1\n")

        settings = load_settings(env_file)

        assert settings.max_levenshtein_distance == 1
        assert settings.log_json is True

    def test_environment_wins_over_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("LOG_LEVEL=ERROR\n")
        clean_env.setenv("LOG_LEVEL", "WARNING")

        assert load_settings(env_file).log_level == "WARNING"

    def test_invalid_threshold_rejected(self, clean_env, tmp_path):
        clean_env.setenv("MATCH_MIN_TOKEN_SIMILARITY", "1.5")

        with pytest.raises(ValueError):
            load_settings(tmp_path / "missing.env")


class TestMatchingConfig:

    def test_thresholds_carried_over(self):
        config = Settings(max_levenshtein_distance=1, min_token_similarity=0.7).matching_config()

        assert config.max_levenshtein_distance == 1
        assert config.min_token_similarity == 0.7
