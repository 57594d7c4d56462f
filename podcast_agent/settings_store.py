"""
On-disk persistence for agent settings.

Settings are saved as JSON with a ``savedAt`` timestamp (epoch ms) and expire
after 30 days, at which point the file is removed on the next load.
"""

import json
import logging
import time
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from podcast_agent.config import DEFAULT_SYSTEM_PROMPT, AgentSettings, get_default_settings_path

logger = logging.getLogger(__name__)

MAX_AGE_DAYS = 30


class SettingsStore:
    """Load, save and clear persisted settings."""

    def __init__(self, path: Optional[Path] = None, max_age_days: float = MAX_AGE_DAYS):
        self.path = Path(path) if path is not None else get_default_settings_path()
        self.max_age_ms = max_age_days * 24 * 60 * 60 * 1000

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    def save(self, settings: AgentSettings) -> None:
        data = settings.model_dump(mode="json")
        data["savedAt"] = self._now_ms()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))
        logger.info("Settings saved to %s", self.path)

    def load(self) -> Optional[AgentSettings]:
        """Return saved settings, or None if missing, unreadable or expired."""
        if not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to load settings: %s", e)
            return None

        if not isinstance(data, dict):
            logger.warning("Ignoring malformed settings file %s", self.path)
            return None

        saved_at = data.pop("savedAt", 0)
        if not isinstance(saved_at, (int, float)) or self._now_ms() - saved_at >= self.max_age_ms:
            logger.info("Saved settings expired, removing %s", self.path)
            self.clear()
            return None

        try:
            return AgentSettings(**data)
        except ValidationError as e:
            logger.warning("Invalid saved settings: %s", e)
            return None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    @staticmethod
    def reset_prompt(settings: AgentSettings) -> AgentSettings:
        """Copy of ``settings`` with the default system prompt restored."""
        return settings.model_copy(update={"system_prompt": DEFAULT_SYSTEM_PROMPT})
