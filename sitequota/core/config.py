import logging
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process configuration, read from the environment and .env."""

    ENV: str = "development"
    CONFIG_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Self-hosted installs never cap sites
    IS_SELFHOST: bool = False

    # JSON file replacing the built-in standard tiers
    PLAN_CATALOG_PATH: Optional[str] = None

    # Threads for the three usage sub-queries; 1 runs them inline
    USAGE_QUERY_WORKERS: int = 1

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()


def _config_problems(cfg) -> List[str]:
    problems = []
    if not getattr(cfg, "DATABASE_URL", None):
        problems.append("Missing required configuration: DATABASE_URL")
    workers = getattr(cfg, "USAGE_QUERY_WORKERS", 1)
    if workers < 1:
        problems.append(f"USAGE_QUERY_WORKERS must be >= 1 (got {workers})")
    return problems


def validate_config(strict: Optional[bool] = None, settings_obj=None, logger: Optional[logging.Logger] = None) -> bool:
    """Check settings the quota service cannot run without.

    Strict mode raises RuntimeError on the first problem; otherwise each one
    is logged as a warning. Values are never logged, only key names.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("sitequota")
    if strict is None:
        strict = bool(getattr(cfg, "CONFIG_STRICT", False))

    for problem in _config_problems(cfg):
        if strict:
            raise RuntimeError(problem)
        log.warning(problem)
    return True
