"""Application settings.

Reads configuration from environment variables, loading a .env file at the
repository root first if one exists:
- CUSTOMER_RESOLVER_DB: Path to the SQLite database
- LOG_LEVEL: Logging level name (default INFO)
- LOG_JSON: "1"/"true" for JSON log lines
- MATCH_MAX_LEVENSHTEIN: Max edit distance for a fuzzy candidate
- MATCH_MIN_TOKEN_SIMILARITY: Min token similarity for a fuzzy candidate
"""

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field


REPO_ROOT = Path(__file__).resolve().parents[1]

_TRUE_VALUES = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime settings for the customer resolver."""
    db_path: Path = Field(default=REPO_ROOT / "customer_resolver.db")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    max_levenshtein_distance: int = Field(default=2, ge=0)
    min_token_similarity: float = Field(default=0.85, ge=0.0, le=1.0)

    def matching_config(self):
        """Matching thresholds as a MatchingConfig."""
        from customer_resolver.models import MatchingConfig

        return MatchingConfig(
            max_levenshtein_distance=self.max_levenshtein_distance,
            min_token_similarity=self.min_token_similarity,
        )


def load_settings(env_file: Path = REPO_ROOT / ".env") -> Settings:
    """Build settings from the environment (and .env, if present).

    Variables already set in the environment win over the .env file.
    """
    if env_file.exists():
        load_dotenv(env_file, override=False)

    values = {
        "db_path": os.getenv("CUSTOMER_RESOLVER_DB", str(REPO_ROOT / "customer_resolver.db")),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": os.getenv("LOG_JSON", "").strip().lower() in _TRUE_VALUES,
    }
    if os.getenv("MATCH_MAX_LEVENSHTEIN"):
        values["max_levenshtein_distance"] = os.environ["MATCH_MAX_LEVENSHTEIN"]
    if os.getenv("MATCH_MIN_TOKEN_SIMILARITY"):
        values["min_token_similarity"] = os.environ["MATCH_MIN_TOKEN_SIMILARITY"]

    return Settings(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings (loaded once)."""
    return load_settings()
