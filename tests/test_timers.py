"""
Tests for cancellable timers, transcript accumulation and dialogue modes.

Async behaviour is exercised with asyncio.run() and short delays.
"""

import asyncio
import logging

import pytest

from podcast_agent.dialogue.modes import AgentMode, DialogueModeMachine
from podcast_agent.dialogue.timers import Timer
from podcast_agent.dialogue.transcript import TranscriptAccumulator


# ---------------------------------------------------------------------------
# Timer
# ---------------------------------------------------------------------------


class TestTimer:
    """Test the re-armable timer."""

    def test_fires_once(self):
        """Armed timer fires its callback after the delay."""
        fired = []

        async def scenario():
            timer = Timer(0.01, lambda: fired.append(1))
            timer.arm()
            assert timer.pending
            await asyncio.sleep(0.05)
            assert not timer.pending

        asyncio.run(scenario())
        assert fired == [1]

    def test_rearm_does_not_stack(self):
        """Re-arming replaces the previous schedule."""
        fired = []

        async def scenario():
            timer = Timer(0.1, lambda: fired.append(1))
            for _ in range(5):
                timer.arm()
                await asyncio.sleep(0.005)
            await asyncio.sleep(0.25)

        asyncio.run(scenario())
        assert fired == [1]

    def test_cancel_is_idempotent(self):
        """Cancelled timers never fire; cancelling twice is harmless."""
        fired = []

        async def scenario():
            timer = Timer(0.01, lambda: fired.append(1))
            timer.arm()
            timer.cancel()
            timer.cancel()
            await asyncio.sleep(0.03)

        asyncio.run(scenario())
        assert fired == []

    def test_callback_error_is_logged(self, caplog):
        """A failing callback is logged, not raised into the loop."""

        def boom():
            raise RuntimeError("boom")

        async def scenario():
            Timer(0.0, boom, name="boom").arm()
            await asyncio.sleep(0.01)

        with caplog.at_level(logging.ERROR):
            asyncio.run(scenario())
        assert "boom" in caplog.text

    def test_arm_needs_running_loop(self):
        """Arming outside an event loop is a programming error."""
        with pytest.raises(RuntimeError):
            Timer(1.0, lambda: None).arm()


# ---------------------------------------------------------------------------
# TranscriptAccumulator
# ---------------------------------------------------------------------------


class TestTranscriptAccumulator:
    """Test debounced utterance finalization."""

    def test_fragments_join_into_one_utterance(self):
        """Fragments within the debounce window become one trimmed utterance."""
        utterances = []

        async def scenario():
            acc = TranscriptAccumulator(utterances.append, debounce_s=0.02)
            acc.on_fragment("Hey Alex,")
            acc.on_fragment("what do you think?")
            assert acc.buffer == " Hey Alex, what do you think?"
            await asyncio.sleep(0.06)
            assert acc.buffer == ""

        asyncio.run(scenario())
        assert utterances == ["Hey Alex, what do you think?"]

    def test_empty_fragments_ignored(self):
        """Whitespace-only fragments neither buffer nor schedule a flush."""
        utterances = []

        async def scenario():
            acc = TranscriptAccumulator(utterances.append, debounce_s=0.01)
            acc.on_fragment("")
            acc.on_fragment("   ")
            assert not acc.pending
            await asyncio.sleep(0.03)

        asyncio.run(scenario())
        assert utterances == []

    def test_flush_held_while_user_speaks(self):
        """Nothing is finalized until the user stops speaking."""
        utterances = []

        async def scenario():
            acc = TranscriptAccumulator(utterances.append, debounce_s=0.01)
            acc.on_fragment("first part")
            acc.on_user_speech_started()
            assert not acc.pending
            await asyncio.sleep(0.04)
            assert utterances == []
            assert acc.buffer.strip() == "first part"

            acc.on_fragment("second part")
            acc.on_user_speech_stopped()
            await asyncio.sleep(0.04)

        asyncio.run(scenario())
        assert utterances == ["first part second part"]

    def test_speech_stopped_with_empty_buffer(self):
        """An empty buffer produces no utterance."""
        utterances = []

        async def scenario():
            acc = TranscriptAccumulator(utterances.append, debounce_s=0.01)
            acc.on_user_speech_started()
            acc.on_user_speech_stopped()
            await asyncio.sleep(0.03)

        asyncio.run(scenario())
        assert utterances == []

    def test_flush_now(self):
        """flush_now returns the trimmed buffer and clears it."""

        async def scenario():
            acc = TranscriptAccumulator(lambda text: None, debounce_s=1.0)
            acc.on_fragment(" hello ")
            text = acc.flush_now()
            assert not acc.pending
            return text, acc.flush_now()

        assert asyncio.run(scenario()) == ("hello", "")

    def test_reset_drops_buffer(self):
        """reset discards unfinalized speech and cancels the flush."""
        utterances = []

        async def scenario():
            acc = TranscriptAccumulator(utterances.append, debounce_s=0.01)
            acc.on_user_speech_started()
            acc.on_fragment("half a sentence")
            acc.reset()
            assert acc.buffer == ""
            assert not acc.user_is_speaking
            await asyncio.sleep(0.03)

        asyncio.run(scenario())
        assert utterances == []


# ---------------------------------------------------------------------------
# DialogueModeMachine
# ---------------------------------------------------------------------------


class TestDialogueModeMachine:
    """Test IDLE/DIALOGUE transitions and the inactivity timeout."""

    def test_starts_idle(self):
        machine = DialogueModeMachine()
        assert machine.mode == AgentMode.IDLE
        assert not machine.timeout_pending

    def test_enter_and_exit(self):
        """Entering dialogue arms the timeout; exiting cancels it."""

        async def scenario():
            machine = DialogueModeMachine(timeout_s=1.0)
            machine.enter_dialogue()
            assert machine.in_dialogue
            assert machine.timeout_pending
            machine.exit_dialogue()
            assert machine.mode == AgentMode.IDLE
            assert not machine.timeout_pending

        asyncio.run(scenario())

    def test_timeout_returns_to_idle(self):
        """Expiry switches to IDLE and notifies."""
        timeouts = []

        async def scenario():
            machine = DialogueModeMachine(timeout_s=0.02, on_timeout=lambda: timeouts.append(1))
            machine.enter_dialogue()
            await asyncio.sleep(0.06)
            return machine.mode

        assert asyncio.run(scenario()) == AgentMode.IDLE
        assert timeouts == [1]

    def test_touch_slides_window(self):
        """Activity keeps the dialogue open past the first deadline."""

        async def scenario():
            machine = DialogueModeMachine(timeout_s=0.1)
            machine.enter_dialogue()
            for _ in range(4):
                await asyncio.sleep(0.03)
                machine.touch()
            mode_while_active = machine.mode
            await asyncio.sleep(0.25)
            return mode_while_active, machine.mode

        assert asyncio.run(scenario()) == (AgentMode.DIALOGUE, AgentMode.IDLE)

    def test_touch_in_idle_is_noop(self):
        """touch never arms a timeout outside dialogue."""

        async def scenario():
            machine = DialogueModeMachine(timeout_s=1.0)
            machine.touch()
            return machine.timeout_pending

        assert asyncio.run(scenario()) is False

    def test_enter_idle_cancels_timeout(self):
        """enter_idle is an unconditional reset."""
        timeouts = []

        async def scenario():
            machine = DialogueModeMachine(timeout_s=0.02, on_timeout=lambda: timeouts.append(1))
            machine.enter_dialogue()
            machine.enter_idle()
            await asyncio.sleep(0.05)
            return machine.mode

        assert asyncio.run(scenario()) == AgentMode.IDLE
        assert timeouts == []
