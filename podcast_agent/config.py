"""
Configuration and settings for Podcast Agent.
"""

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from podcast_agent.dialogue.phrases import (
    DEFAULT_STOP_PHRASES,
    parse_stop_phrases,
    wake_variants,
)


class ConfigError(ValueError):
    """Invalid or unusable configuration."""


DEFAULT_AGENT_NAME = "Alex"
DEFAULT_MODEL = "gpt-4o-mini-realtime-preview-2024-12-17"
DEFAULT_VOICE = "alloy"
NAME_PLACEHOLDER = "{agentName}"

DEFAULT_SYSTEM_PROMPT = """You are a podcast participant named {agentName}.
Respond briefly and to the point, like in a live conversation.
Speak naturally, you can use colloquial expressions.
Don't start your response with a greeting if it's a continuation of the dialogue."""

VOICES = ["alloy", "ash", "ballad", "coral", "echo", "sage", "shimmer", "verse"]
MODELS = [
    "gpt-4o-mini-realtime-preview-2024-12-17",
    "gpt-4o-realtime-preview-2024-12-17",
]


def get_default_settings_path() -> Path:
    """Get the default settings file location."""
    return Path(
        os.environ.get(
            "PODCAST_AGENT_SETTINGS",
            Path.home() / ".podcast_agent" / "settings.json",
        )
    )


def validate_api_key(api_key: str) -> str:
    """Reject keys that can't possibly be OpenAI keys."""
    key = (api_key or "").strip()
    if not key:
        raise ConfigError("Please enter OpenAI API key")
    if not key.startswith("sk-"):
        raise ConfigError('API key must start with "sk-"')
    return key


class ToolToggles(BaseModel):
    """Which tools the agent may call."""

    web_search: bool = True
    date_time: bool = True
    calculator: bool = True


class TurnDetection(BaseModel):
    """Server-side voice activity detection parameters."""

    threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    prefix_padding_ms: int = Field(default=300, ge=0)
    silence_duration_ms: int = Field(default=1200, ge=0)

    def to_session(self) -> dict[str, Any]:
        return {
            "type": "server_vad",
            "threshold": self.threshold,
            "prefix_padding_ms": self.prefix_padding_ms,
            "silence_duration_ms": self.silence_duration_ms,
            # The engine decides when to respond
            "create_response": False,
        }


class AgentSettings(BaseModel):
    """Per-connection session configuration."""

    api_key: str = Field(default_factory=lambda: os.environ.get("OPENAI_API_KEY", ""))
    agent_name: str = Field(default=DEFAULT_AGENT_NAME)
    model: str = Field(
        default_factory=lambda: os.environ.get("PODCAST_AGENT_MODEL", DEFAULT_MODEL)
    )
    voice: str = Field(default=DEFAULT_VOICE)
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)
    stop_words: list[str] = Field(
        default_factory=lambda: parse_stop_phrases(DEFAULT_STOP_PHRASES)
    )
    tools: ToolToggles = Field(default_factory=ToolToggles)
    tavily_key: str = Field(default_factory=lambda: os.environ.get("TAVILY_API_KEY", ""))

    # Timing
    dialogue_timeout_s: float = Field(default=30.0, gt=0)
    transcript_debounce_ms: int = Field(default=500, ge=0)

    # Session
    transcription_model: str = Field(default="whisper-1")
    turn_detection: TurnDetection = Field(default_factory=TurnDetection)

    @field_validator("agent_name", mode="before")
    @classmethod
    def _default_name(cls, value: Any) -> str:
        name = str(value or "").strip()
        return name or DEFAULT_AGENT_NAME

    @field_validator("stop_words", mode="before")
    @classmethod
    def _normalize_stop_words(cls, value: Any) -> list[str]:
        return parse_stop_phrases(value)

    @field_validator("system_prompt", mode="before")
    @classmethod
    def _default_prompt(cls, value: Any) -> str:
        return value or DEFAULT_SYSTEM_PROMPT

    @property
    def wake_variants(self) -> list[str]:
        """Wake phrases, derived from the current agent name on every access."""
        return wake_variants(self.agent_name)

    @property
    def transcript_debounce_s(self) -> float:
        return self.transcript_debounce_ms / 1000.0

    def instructions(self) -> str:
        """System prompt with the agent name filled in."""
        return self.system_prompt.replace(NAME_PLACEHOLDER, self.agent_name)

    @classmethod
    def from_yaml(cls, path: str) -> dict:
        """Load settings values from a YAML file.

        Returns a dict of known keys → values (not an AgentSettings instance)
        so the caller can merge CLI overrides before constructing. Unknown
        keys are silently ignored.
        """
        import yaml

        yaml_path = Path(path).expanduser()
        try:
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {yaml_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read {yaml_path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigError(f"Expected a mapping in {yaml_path}")

        valid_keys = set(cls.model_fields)
        return {k: v for k, v in raw.items() if k in valid_keys}


# Global config instance
_config: AgentSettings | None = None


def get_config() -> AgentSettings:
    """Get the global settings."""
    global _config
    if _config is None:
        _config = AgentSettings()
    return _config


def set_config(config: AgentSettings) -> None:
    """Set the global settings."""
    global _config
    _config = config
