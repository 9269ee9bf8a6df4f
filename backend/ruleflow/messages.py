"""
Validation message catalog.

Holds the human-readable text attached to failed operands and modifiers.
Individual messages can be overridden from settings or a YAML file.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .errors import ConfigurationError


class MessageKey(str, Enum):
    REQUIRED = "Required"
    EQUALS = "Equals"
    GREATER_THAN = "GreaterThan"
    GREATER_THAN_EQ_TO = "GreaterThanEqTo"
    LESS_THAN = "LessThan"
    LESS_THAN_EQ_TO = "LessThanEqTo"
    NOT_EQUAL = "NotEqual"
    INVALID_EMAIL = "InvalidEmail"
    NOT_IN_LIST = "NotInList"
    NOT_BETWEEN = "NotBetween"
    NOT_UPPER = "NotUpper"
    NOT_LOWER = "NotLower"
    EXCEEDS_MAX = "ExceedsMax"
    MINIMUM_NOT_REACHED = "MinimumNotReached"


DEFAULT_MESSAGES: Dict[MessageKey, str] = {
    MessageKey.REQUIRED: "This value is required.",
    MessageKey.EQUALS: "The target value does not equal comparison value.",
    MessageKey.GREATER_THAN: "The value provided is not greater than the expected value.",
    MessageKey.GREATER_THAN_EQ_TO: "The value provided is neither greater than or equal to the expected value.",
    MessageKey.LESS_THAN: "The value provided is not less than the expected value.",
    MessageKey.LESS_THAN_EQ_TO: "The value provided is neither less than or equal to the expected value.",
    MessageKey.NOT_EQUAL: "The value provided must not equal the expected value.",
    MessageKey.INVALID_EMAIL: "The value provided is not a valid email address.",
    MessageKey.NOT_IN_LIST: "The value provided is not within the expected list of values.",
    MessageKey.NOT_BETWEEN: "The value provided is not between the expected values.",
    MessageKey.NOT_UPPER: "The value provided must be all uppercase.",
    MessageKey.NOT_LOWER: "The value provided must be all lowercase.",
    MessageKey.EXCEEDS_MAX: "The value provided has exceeded the set maximum value.",
    MessageKey.MINIMUM_NOT_REACHED: "The value provided is not at or above the minimum value set.",
}


class MessageCatalog:
    """
    Lookup of diagnostic messages by key.

    Unknown override keys are ignored; empty overrides fall back to the
    default text.
    """

    def __init__(self, overrides: Optional[Mapping[str, str]] = None):
        self._messages: Dict[MessageKey, str] = dict(DEFAULT_MESSAGES)
        for key, value in (overrides or {}).items():
            message_key = self._resolve_key(key)
            if message_key is not None and value:
                self._messages[message_key] = str(value)

    @staticmethod
    def _resolve_key(key: str) -> Optional[MessageKey]:
        normalized = str(key).replace("_", "").lower()
        for member in MessageKey:
            if member.value.lower() == normalized:
                return member
        return None

    def get(self, key: MessageKey) -> str:
        return self._messages.get(key, "")

    def to_dict(self) -> Dict[str, str]:
        return {key.value: text for key, text in self._messages.items()}

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "MessageCatalog":
        """Load overrides from YAML content with a top level ``messages`` map."""
        try:
            data = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid messages YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("Messages YAML must be a mapping")
        return cls(data.get("messages", data))

    @classmethod
    def from_file(cls, path: Path) -> "MessageCatalog":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_yaml(f.read())
