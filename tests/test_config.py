"""Tests for settings models, YAML loading and API key validation."""

import pytest
from pydantic import ValidationError

from podcast_agent.config import (
    DEFAULT_AGENT_NAME,
    DEFAULT_MODEL,
    DEFAULT_SYSTEM_PROMPT,
    AgentSettings,
    ConfigError,
    TurnDetection,
    get_config,
    set_config,
    validate_api_key,
)

# ---------------------------------------------------------------------------
# AgentSettings
# ---------------------------------------------------------------------------


class TestAgentSettings:
    def test_defaults(self, monkeypatch):
        """Defaults match the documented values."""
        monkeypatch.delenv("PODCAST_AGENT_MODEL", raising=False)
        settings = AgentSettings()
        assert settings.agent_name == DEFAULT_AGENT_NAME
        assert settings.model == DEFAULT_MODEL
        assert settings.voice == "alloy"
        assert settings.stop_words == ["thanks", "stop", "enough", "bye"]
        assert settings.dialogue_timeout_s == 30.0
        assert settings.transcript_debounce_s == 0.5
        assert settings.tools.web_search and settings.tools.calculator

    def test_env_defaults(self, monkeypatch):
        """API keys and model come from the environment when not given."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
        monkeypatch.setenv("TAVILY_API_KEY", "tvly-from-env")
        monkeypatch.setenv("PODCAST_AGENT_MODEL", "gpt-4o-realtime-preview-2024-12-17")
        settings = AgentSettings()
        assert settings.api_key == "sk-from-env"
        assert settings.tavily_key == "tvly-from-env"
        assert settings.model == "gpt-4o-realtime-preview-2024-12-17"

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_name_falls_back(self, name):
        assert AgentSettings(agent_name=name).agent_name == DEFAULT_AGENT_NAME

    def test_stop_words_from_string(self):
        settings = AgentSettings(stop_words="Thank you, That's all ,")
        assert settings.stop_words == ["thank you", "that's all"]

    def test_empty_prompt_restores_default(self):
        assert AgentSettings(system_prompt="").system_prompt == DEFAULT_SYSTEM_PROMPT

    def test_wake_variants_follow_rename(self):
        """Wake phrases are regenerated from the current name on every access."""
        settings = AgentSettings(agent_name="Alex")
        assert "hey alex" in settings.wake_variants
        settings.agent_name = "Sam"
        assert "hey sam" in settings.wake_variants
        assert "hey alex" not in settings.wake_variants

    def test_instructions_substitute_name(self):
        settings = AgentSettings(agent_name="Sam")
        assert "named Sam" in settings.instructions()
        assert "{agentName}" not in settings.instructions()

    def test_custom_prompt_placeholder(self):
        settings = AgentSettings(agent_name="Kim", system_prompt="I am {agentName}. {agentName} out.")
        assert settings.instructions() == "I am Kim. Kim out."

    def test_invalid_timeout(self):
        with pytest.raises(ValidationError):
            AgentSettings(dialogue_timeout_s=0)


class TestTurnDetection:
    def test_session_payload(self):
        """Server VAD never creates responses on its own."""
        assert TurnDetection().to_session() == {
            "type": "server_vad",
            "threshold": 0.6,
            "prefix_padding_ms": 300,
            "silence_duration_ms": 1200,
            "create_response": False,
        }

    def test_threshold_bounds(self):
        with pytest.raises(ValidationError):
            TurnDetection(threshold=1.5)


# ---------------------------------------------------------------------------
# from_yaml()
# ---------------------------------------------------------------------------


class TestFromYaml:
    def test_filters_unknown_keys(self, tmp_path):
        """YAML with bogus_key should not bleed into returned dict."""
        p = tmp_path / "agent.yaml"
        p.write_text("bogus_key: 123\nagent_name: Sam\nvoice: coral\n")
        result = AgentSettings.from_yaml(str(p))
        assert result == {"agent_name": "Sam", "voice": "coral"}

    def test_nested_values(self, tmp_path):
        """Nested sections construct nested models."""
        p = tmp_path / "agent.yaml"
        p.write_text("tools:\n  web_search: false\nturn_detection:\n  threshold: 0.4\n")
        settings = AgentSettings(**AgentSettings.from_yaml(str(p)))
        assert settings.tools.web_search is False
        assert settings.turn_detection.threshold == 0.4

    def test_empty_yaml_returns_empty_dict(self, tmp_path):
        p = tmp_path / "empty.yaml"
        p.write_text("")
        assert AgentSettings.from_yaml(str(p)) == {}

    def test_invalid_yaml(self, tmp_path):
        p = tmp_path / "bad.yaml"
        p.write_text("agent_name: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            AgentSettings.from_yaml(str(p))

    def test_unreadable_path(self, tmp_path):
        """A directory (or unreadable file) is a ConfigError, not an OSError."""
        with pytest.raises(ConfigError, match="Cannot read"):
            AgentSettings.from_yaml(str(tmp_path))

    def test_non_mapping(self, tmp_path):
        p = tmp_path / "list.yaml"
        p.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            AgentSettings.from_yaml(str(p))


# ---------------------------------------------------------------------------
# API key / global config
# ---------------------------------------------------------------------------


class TestApiKey:
    def test_valid_key_trimmed(self):
        assert validate_api_key("  sk-abc  ") == "sk-abc"

    def test_empty_key(self):
        with pytest.raises(ConfigError, match="Please enter"):
            validate_api_key("")

    def test_wrong_prefix(self):
        with pytest.raises(ConfigError, match='start with "sk-"'):
            validate_api_key("pk-abc")


def test_global_config_roundtrip():
    settings = AgentSettings(agent_name="Global")
    set_config(settings)
    try:
        assert get_config() is settings
    finally:
        set_config(None)
