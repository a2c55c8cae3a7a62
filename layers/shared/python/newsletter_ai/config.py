from __future__ import annotations

import os
from dataclasses import dataclass


class ConfigError(RuntimeError):
    pass


def _req(name: str) -> str:
    v = os.getenv(name)
    if not v:
        raise ConfigError(f"Missing required env var: {name}")
    return v


def _int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return int(v)
    except ValueError as e:
        raise ConfigError(f"Env var {name} must be an integer, got {v!r}") from e


@dataclass(frozen=True)
class AgentsConfig:
    stage: str
    table_name: str
    model_id: str
    region: str | None
    max_tokens: int
    social_post_ttl_days: int
    log_level: str

    @property
    def social_post_ttl_seconds(self) -> int:
        return self.social_post_ttl_days * 24 * 60 * 60


def load_config() -> AgentsConfig:
    return AgentsConfig(
        stage=os.getenv("STAGE", "dev"),
        table_name=_req("TABLE_NAME"),
        model_id=_req("MODEL_ID"),
        region=(os.getenv("AWS_REGION") or os.getenv("REGION") or "").strip() or None,
        max_tokens=_int("MAX_TOKENS", 10000),
        social_post_ttl_days=_int("SOCIAL_POST_TTL_DAYS", 3),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
