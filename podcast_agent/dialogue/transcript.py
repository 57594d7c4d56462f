"""
Transcript accumulation with debounced finalization.

Transcription fragments arrive in bursts. They are buffered and handed on as a
single finalized utterance once no new fragment has arrived for the debounce
delay and the user is not speaking.
"""

import logging
from typing import Callable

from podcast_agent.dialogue.timers import Timer

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_S = 0.5


class TranscriptAccumulator:
    """Buffers transcription fragments into finalized utterances."""

    def __init__(
        self,
        on_utterance: Callable[[str], None],
        debounce_s: float = DEFAULT_DEBOUNCE_S,
    ):
        """
        Initialize accumulator.

        Args:
            on_utterance: Called with each finalized, trimmed utterance
            debounce_s: Quiet period before the buffer is finalized
        """
        self._on_utterance = on_utterance
        self._buffer = ""
        self._timer = Timer(debounce_s, self._on_timer, name="transcript-flush")
        self.user_is_speaking = False

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def pending(self) -> bool:
        """True while a finalization is scheduled."""
        return self._timer.pending

    def on_fragment(self, text: str) -> None:
        """Append a transcription fragment and re-arm finalization."""
        if not text or not text.strip():
            return

        self._buffer += " " + text
        logger.debug("Transcript buffer: %s", self._buffer.strip())

        # Held until speech stops when the user is still talking
        if self.user_is_speaking:
            self._timer.cancel()
        else:
            self._timer.arm()

    def on_user_speech_started(self) -> None:
        self.user_is_speaking = True
        self._timer.cancel()

    def on_user_speech_stopped(self) -> None:
        self.user_is_speaking = False
        self._timer.arm()

    def flush_now(self) -> str:
        """Return the trimmed buffer (possibly empty) and clear it."""
        self._timer.cancel()
        text = self._buffer.strip()
        self._buffer = ""
        return text

    def reset(self) -> None:
        """Drop everything not yet finalized (used on disconnect)."""
        self._timer.cancel()
        self._buffer = ""
        self.user_is_speaking = False

    def _on_timer(self) -> None:
        text = self.flush_now()
        if text:
            logger.debug("Finalized utterance: %s", text)
            self._on_utterance(text)
