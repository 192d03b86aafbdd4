# FILE: config/settings.py
"""
Tutor backend settings, read from the environment.

`.env` is loaded by main.py before anything imports this module. Values are
read once per process through get_settings(); tests build TutorSettings
directly instead of patching the environment.

Environment variables:
- AZURE_OPEN_AI_KEY / OPENAI_API_KEY   provider credential
- AZURE_OPENAI_ENDPOINT                 Azure resource URL (enables Azure client)
- OPENAI_API_VERSION                    Azure API version
- MODEL_CHOICE                          model/deployment used for every turn
- HMAC_KEY                              secret for student pseudonyms (>= 32 chars)
- TUTOR_DATABASE_URL                    interaction log database
- TUTOR_PROMPTS_DIR                     directory holding the instruction files
- TUTOR_COURSE_ID / TUTOR_ASSIGNMENT_ID default interaction log keys
- APP_ENV                               "development" exposes error details
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_API_VERSION = "2025-04-01-preview"
DEFAULT_PROMPTS_DIR = str(Path(__file__).resolve().parent.parent / "app" / "prompts")
MIN_HMAC_KEY_LENGTH = 32


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or default


@dataclass(frozen=True)
class TutorSettings:
    api_key: Optional[str] = field(default_factory=lambda: _env("AZURE_OPEN_AI_KEY") or _env("OPENAI_API_KEY"))
    azure_endpoint: Optional[str] = field(default_factory=lambda: _env("AZURE_OPENAI_ENDPOINT"))
    api_version: str = field(default_factory=lambda: _env("OPENAI_API_VERSION", DEFAULT_API_VERSION))
    model: str = field(default_factory=lambda: _env("MODEL_CHOICE", DEFAULT_MODEL))
    hmac_key: Optional[str] = field(default_factory=lambda: _env("HMAC_KEY"))
    database_url: str = field(
        default_factory=lambda: _env("TUTOR_DATABASE_URL", "sqlite:///./data/tutor_interactions.db")
    )
    prompts_dir: str = field(default_factory=lambda: _env("TUTOR_PROMPTS_DIR", DEFAULT_PROMPTS_DIR))
    course_id: str = field(default_factory=lambda: _env("TUTOR_COURSE_ID", "data8"))
    assignment_id: str = field(default_factory=lambda: _env("TUTOR_ASSIGNMENT_ID", ""))
    app_env: str = field(default_factory=lambda: _env("APP_ENV", "production"))

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() in {"dev", "development", "local"}

    @property
    def uses_azure(self) -> bool:
        return bool(self.azure_endpoint)

    @property
    def hmac_key_ok(self) -> bool:
        return bool(self.hmac_key) and len(self.hmac_key) >= MIN_HMAC_KEY_LENGTH


@lru_cache(maxsize=1)
def get_settings() -> TutorSettings:
    return TutorSettings()
