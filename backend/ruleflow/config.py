"""
RuleFlow configuration.

Settings are read from environment variables prefixed with ``RULEFLOW_``
and may also be loaded from a YAML file:

    ruleflow:
      max_depth: 16
      legacy_or_semantics: true
      fiscal_year_start_month: 10
      holidays: [2024-12-25]
      messages:
        ExceedsMax: "Too long."
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Dict, List

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .messages import MessageCatalog


class RuleFlowSettings(BaseSettings):
    """Settings shared by the parsers, the evaluator and the step engine."""

    max_depth: int = Field(
        default=32,
        ge=1,
        description="Maximum nesting depth of groups and nested action parameters",
    )
    legacy_or_semantics: bool = Field(
        default=True,
        description=(
            "When true an OR group passes if at least one member is false, "
            "matching rules written for the original engine. Set to false for "
            "conventional OR."
        ),
    )
    fiscal_year_start_month: int = Field(default=1, ge=1, le=12)
    holidays: List[date] = Field(
        default_factory=list,
        description="Non-working days skipped by the working-day date anchors",
    )
    log_level: str = Field(default="WARNING")
    messages: Dict[str, str] = Field(default_factory=dict)

    model_config = SettingsConfigDict(
        env_prefix="RULEFLOW_",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return value

    def message_catalog(self) -> MessageCatalog:
        return MessageCatalog(self.messages)

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "RuleFlowSettings":
        """Load settings from YAML content, optionally nested under ``ruleflow``."""
        try:
            data = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid settings YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("Settings YAML must be a mapping")
        section = data.get("ruleflow", data)
        try:
            return cls(**section)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> "RuleFlowSettings":
        if not path.exists():
            raise ConfigurationError(f"Settings file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_yaml(f.read())
