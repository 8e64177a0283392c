"""
Runtime settings read from the environment.

``Settings.from_env()`` is the only place environment variables are read.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

DEFAULT_DATABASE_URL = "sqlite:///stockroom.db"
DEFAULT_AI_MODEL = "llama-3.3-70b-versatile"


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    groq_api_key: str = ""
    ai_model: str = DEFAULT_AI_MODEL
    ai_timeout_seconds: float = 30.0
    over_issue_policy: str = "clamp"

    @property
    def ai_enabled(self) -> bool:
        return bool(self.groq_api_key)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        policy = env.get("STOCKROOM_OVER_ISSUE_POLICY", "clamp").strip().lower()
        if policy not in ("clamp", "reject"):
            raise ValueError(
                f"STOCKROOM_OVER_ISSUE_POLICY must be 'clamp' or 'reject', got {policy!r}"
            )
        return cls(
            database_url=env.get("STOCKROOM_DATABASE_URL", DEFAULT_DATABASE_URL),
            log_level=env.get("STOCKROOM_LOG_LEVEL", "INFO").upper(),
            groq_api_key=env.get("GROQ_API_KEY", ""),
            ai_model=env.get("STOCKROOM_AI_MODEL", DEFAULT_AI_MODEL),
            ai_timeout_seconds=float(env.get("STOCKROOM_AI_TIMEOUT_SECONDS", "30")),
            over_issue_policy=policy,
        )
