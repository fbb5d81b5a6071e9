"""
Runtime configuration for the survey platform.

Settings are read from the environment once per process and never mutated
afterwards; every component receives the same frozen instance.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    """
    Attributes:
        table_name: DynamoDB table holding surveys, questions and answers.
        region: AWS region for the DynamoDB resource.
        allow_origin: Value of the Access-Control-Allow-Origin header.
        log_level: Root logger level name for the Lambda handlers.
    """

    table_name: str = "SurveyPlatform"
    region: str = "us-east-1"
    allow_origin: str = "*"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        level = os.environ.get("LOG_LEVEL", "INFO").upper()
        # unknown names would make Logger.setLevel raise at import
        if not isinstance(logging.getLevelName(level), int):
            level = "INFO"
        return cls(
            table_name=os.environ.get("SURVEYS_TABLE", "SurveyPlatform"),
            region=os.environ.get("AWS_REGION", "us-east-1"),
            allow_origin=os.environ.get("ALLOW_ORIGIN", "*"),
            log_level=level,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, reading the environment on first use."""
    return Settings.from_env()
