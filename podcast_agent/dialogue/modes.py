"""
Dialogue mode state machine.

IDLE is passive listening: utterances are ignored unless they contain a wake
phrase. DIALOGUE answers every utterance until a stop phrase is heard or the
sliding inactivity timeout expires.
"""

import logging
from enum import Enum
from typing import Callable, Optional

from podcast_agent.dialogue.timers import Timer

logger = logging.getLogger(__name__)

DEFAULT_DIALOGUE_TIMEOUT_S = 30.0


class AgentMode(Enum):
    """Agent listening modes."""

    IDLE = "idle"  # Passive, waiting for the agent's name
    DIALOGUE = "dialogue"  # Active conversation


class DialogueModeMachine:
    """Owns the agent mode and the dialogue inactivity timeout."""

    def __init__(
        self,
        timeout_s: float = DEFAULT_DIALOGUE_TIMEOUT_S,
        on_timeout: Optional[Callable[[], None]] = None,
    ):
        self._mode = AgentMode.IDLE
        self._on_timeout = on_timeout
        self._timeout = Timer(timeout_s, self._on_timer, name="dialogue-timeout")

    @property
    def mode(self) -> AgentMode:
        return self._mode

    @property
    def in_dialogue(self) -> bool:
        return self._mode == AgentMode.DIALOGUE

    @property
    def timeout_pending(self) -> bool:
        return self._timeout.pending

    def enter_dialogue(self) -> None:
        """IDLE -> DIALOGUE (wake phrase heard)."""
        if self._mode != AgentMode.DIALOGUE:
            logger.info("Mode: %s -> %s", self._mode.value, AgentMode.DIALOGUE.value)
        self._mode = AgentMode.DIALOGUE
        self._timeout.arm()

    def exit_dialogue(self, reason: str = "stop phrase") -> None:
        """DIALOGUE -> IDLE."""
        if self._mode == AgentMode.DIALOGUE:
            logger.info("Mode: dialogue -> idle (%s)", reason)
        self._mode = AgentMode.IDLE
        self._timeout.cancel()

    def touch(self) -> None:
        """Slide the inactivity window forward. No-op outside DIALOGUE."""
        if self._mode == AgentMode.DIALOGUE:
            self._timeout.arm()

    def enter_idle(self) -> None:
        """Unconditional reset to IDLE (session start or disconnect)."""
        self._mode = AgentMode.IDLE
        self._timeout.cancel()

    def _on_timer(self) -> None:
        if self._mode != AgentMode.DIALOGUE:
            return
        self.exit_dialogue(reason="timeout")
        if self._on_timeout is not None:
            self._on_timeout()
