"""EvalBench application configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """EvalBench application settings.

    All fields can be overridden via environment variables with
    the EVALBENCH_ prefix (e.g., EVALBENCH_DB_PATH).
    """

    db_path: Path = Path("data/evalbench.duckdb")
    export_dir: Path = Path("data/exports")
    prediction_timeout: float = 10.0  # seconds per prediction request
    # Label substituted when a prediction cannot be obtained.
    fallback_strategy: Literal["random", "constant", "none"] = "random"
    fallback_label: int | float | str = 0
    fallback_seed: int | None = None
    behind_proxy: bool = False  # Set EVALBENCH_BEHIND_PROXY=true in Docker

    model_config = {
        "env_prefix": "EVALBENCH_",
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (singleton)."""
    return Settings()
