"""
Dialogue engine - decides when the agent speaks.

This is the heart of the agent. It ties together:
- Transcript accumulation (debounced utterances)
- Wake/stop phrase detection
- IDLE/DIALOGUE mode switching with an inactivity timeout
- Tool-call round trips that resume the same turn
"""

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from podcast_agent.dialogue.events import (
    AgentTranscriptDelta,
    AgentTranscriptDone,
    ErrorEvent,
    FunctionCallArgumentsDone,
    FunctionCallOutput,
    InboundEvent,
    OutboundCommand,
    ResponseCreate,
    ResponseDone,
    ServerEvent,
    SessionCreated,
    SessionUpdate,
    SessionUpdated,
    SpeechStarted,
    SpeechStopped,
    Status,
    TranscriptionCompleted,
    parse_event,
)
from podcast_agent.dialogue.modes import AgentMode, DialogueModeMachine
from podcast_agent.dialogue.phrases import matches_stop, matches_wake
from podcast_agent.dialogue.transcript import TranscriptAccumulator
from podcast_agent.tools.executor import ToolExecutor

if TYPE_CHECKING:
    from podcast_agent.config import AgentSettings

logger = logging.getLogger(__name__)


class DialogueEngine:
    """
    Orchestrates one Realtime session.

    Inbound server events go in through ``handle()`` (or ``run()`` with a
    queue); outbound commands come out through the ``send`` callable. One
    engine is built per connection and thrown away on disconnect.

    Usage:
        engine = DialogueEngine(settings, send=transport.send)
        engine.on_channel_open()
        async for raw in transport.events():
            await engine.handle(parse_event(raw))
        engine.disconnect()
    """

    def __init__(
        self,
        settings: "AgentSettings",
        send: Callable[[OutboundCommand], None],
        executor: Optional[ToolExecutor] = None,
        on_status: Optional[Callable[[Status, str], None]] = None,
        on_transcript: Optional[Callable[[str, str], None]] = None,
    ):
        """
        Initialize engine.

        Args:
            settings: Session configuration
            send: Receives every outbound command
            executor: Tool executor (built from settings if None)
            on_status: Called with (status, label) on status changes
            on_transcript: Called with (role, text); role is user/agent/system
        """
        self.settings = settings
        self._send = send
        self._executor = executor or ToolExecutor(settings)
        self._on_status = on_status
        self._on_transcript = on_transcript

        self._modes = DialogueModeMachine(
            timeout_s=settings.dialogue_timeout_s,
            on_timeout=self._on_dialogue_timeout,
        )
        self._transcript = TranscriptAccumulator(
            on_utterance=self._on_utterance,
            debounce_s=settings.transcript_debounce_s,
        )

        self.status = Status.CONNECTING
        self._connected = False
        self._closed = False
        self._session_sent = False
        self._agent_is_speaking = False

        # Finalized utterances are numbered for the debug log
        self._utterance_seq = 0

        # In-flight tool calls: task → call_id
        self._tool_tasks: dict[asyncio.Task, str] = {}

        self._handlers: dict[type, Callable[[Any], None]] = {
            SessionCreated: self._on_session_event,
            SessionUpdated: self._on_session_event,
            SpeechStarted: self._on_speech_started,
            SpeechStopped: self._on_speech_stopped,
            TranscriptionCompleted: self._on_transcription,
            AgentTranscriptDelta: lambda event: None,
            AgentTranscriptDone: self._on_agent_transcript,
            ResponseDone: self._on_response_done,
            FunctionCallArgumentsDone: self._on_function_call,
            ErrorEvent: self._on_error,
        }

    # ── State ──

    @property
    def mode(self) -> AgentMode:
        return self._modes.mode

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def agent_is_speaking(self) -> bool:
        return self._agent_is_speaking

    @property
    def user_is_speaking(self) -> bool:
        return self._transcript.user_is_speaking

    @property
    def transcript_buffer(self) -> str:
        return self._transcript.buffer

    @property
    def flush_pending(self) -> bool:
        return self._transcript.pending

    @property
    def dialogue_timeout_pending(self) -> bool:
        return self._modes.timeout_pending

    @property
    def pending_tool_calls(self) -> list[str]:
        return list(self._tool_tasks.values())

    def _set_status(self, status: Status, text: Optional[str] = None) -> None:
        self.status = status
        if self._on_status is not None:
            try:
                self._on_status(status, text or status.label)
            except Exception as e:
                logger.error("on_status callback failed: %s", e)

    def _log_message(self, role: str, text: str) -> None:
        logger.info("[%s] %s", role, text)
        if self._on_transcript is not None:
            try:
                self._on_transcript(role, text)
            except Exception as e:
                logger.error("on_transcript callback failed: %s", e)

    def _emit(self, command: OutboundCommand) -> None:
        if self._closed:
            logger.debug("Not sending %s after disconnect", command.type)
            return
        try:
            self._send(command)
        except Exception as e:
            logger.error("Failed to send %s: %s", command.type, e)
            self._set_status(Status.ERROR, f"Error: {e}")

    # ── Session setup ──

    def session_config(self) -> dict[str, Any]:
        """Payload of the session.update command."""
        return {
            "modalities": ["text", "audio"],
            "instructions": self.settings.instructions(),
            "voice": self.settings.voice,
            "input_audio_transcription": {"model": self.settings.transcription_model},
            "turn_detection": self.settings.turn_detection.to_session(),
            "tools": self._executor.active_definitions(),
        }

    def on_channel_open(self) -> None:
        """Configure the session once the event channel is ready."""
        if self._closed:
            logger.warning("Channel opened on a disconnected engine, ignoring")
            return
        if self._session_sent:
            logger.debug("Session already configured for this connection")
            return

        session = self.session_config()
        self._session_sent = True
        self._connected = True
        self._emit(SessionUpdate(session=session))

        tool_names = [t["name"] for t in session["tools"]]
        if tool_names:
            self._log_message("system", f"Active tools: {', '.join(tool_names)}")
        self._log_message("system", f'Agent "{self.settings.agent_name}" ready')

        self._modes.enter_idle()
        self._set_status(Status.IDLE)

    # ── Event dispatch ──

    async def handle(self, event: Union[InboundEvent, dict, str]) -> None:
        """Process one inbound event. Unknown kinds are ignored."""
        if not isinstance(event, ServerEvent):
            event = parse_event(event)

        if self._closed:
            logger.debug("Ignoring %s after disconnect", event.type)
            return

        handler = self._handlers.get(type(event))
        if handler is None:
            logger.debug("Ignoring event: %s", event.type)
            return
        handler(event)

    async def run(self, inbox: "asyncio.Queue") -> None:
        """Consume events from a queue in order until a None sentinel."""
        try:
            while True:
                item = await inbox.get()
                if item is None:
                    break
                await self.handle(item)
        finally:
            self.disconnect()

    def _on_session_event(self, event: ServerEvent) -> None:
        logger.info("Session event: %s", event.type)

    def _on_speech_started(self, event: SpeechStarted) -> None:
        logger.debug("User started speaking")
        self._transcript.on_user_speech_started()

    def _on_speech_stopped(self, event: SpeechStopped) -> None:
        logger.debug("User stopped speaking")
        self._transcript.on_user_speech_stopped()

    def _on_transcription(self, event: TranscriptionCompleted) -> None:
        logger.debug("Transcript fragment: %s", event.transcript)
        self._transcript.on_fragment(event.transcript)

    def _on_agent_transcript(self, event: AgentTranscriptDone) -> None:
        if event.transcript:
            self._log_message("agent", event.transcript)

    def _on_error(self, event: ErrorEvent) -> None:
        logger.error("API error: %s", event.message)
        self._set_status(Status.ERROR, f"Error: {event.message}")

    # ── Decision logic ──

    def _on_utterance(self, text: str) -> None:
        """Decide what to do with one finalized utterance."""
        if self._closed:
            return

        # Each branch issues at most one response.create per utterance
        self._utterance_seq += 1
        self._log_message("user", text)
        logger.debug("Mode: %s | utterance #%d", self.mode.value, self._utterance_seq)

        if self._modes.in_dialogue:
            if matches_stop(text, self.settings.stop_words):
                self._log_message("system", f"{self.settings.agent_name} ending dialogue")
                self._modes.exit_dialogue(reason="stop phrase")
                self._set_status(Status.IDLE)
                return

            # In dialogue every utterance gets an answer
            self._respond()
            self._modes.touch()
            return

        if matches_wake(text, self.settings.wake_variants):
            self._modes.enter_dialogue()
            self._set_status(Status.DIALOGUE)
            self._respond()
        else:
            logger.debug("Passive: no wake phrase in '%s'", text)

    def _respond(self) -> None:
        """Ask the model to speak (new utterance or tool-result resume)."""
        self._agent_is_speaking = True
        self._set_status(Status.SPEAKING)
        self._emit(ResponseCreate())

    def _on_response_done(self, event: ResponseDone) -> None:
        self._agent_is_speaking = False
        if self._modes.in_dialogue:
            self._set_status(Status.DIALOGUE)
            self._modes.touch()
        else:
            self._set_status(Status.IDLE)

    def _on_dialogue_timeout(self) -> None:
        logger.info("Dialogue timed out after %.0fs of silence", self.settings.dialogue_timeout_s)
        self._set_status(Status.IDLE)

    # ── Tool calls ──

    def _on_function_call(self, event: FunctionCallArgumentsDone) -> None:
        task = asyncio.get_running_loop().create_task(
            self._run_tool_call(event), name=f"tool-{event.name}"
        )
        self._tool_tasks[task] = event.call_id
        task.add_done_callback(lambda t: self._tool_tasks.pop(t, None))

    @staticmethod
    def _parse_arguments(raw: Optional[str]) -> tuple[Optional[dict], Optional[str]]:
        """Returns (arguments, error)."""
        if raw is None or not raw.strip():
            return {}, None
        try:
            args = json.loads(raw)
        except json.JSONDecodeError as e:
            return None, f"Invalid tool arguments: {e}"
        if not isinstance(args, dict):
            return None, "Tool arguments must be a JSON object"
        return args, None

    async def _run_tool_call(self, event: FunctionCallArgumentsDone) -> None:
        args, error = self._parse_arguments(event.arguments)
        if error is not None:
            logger.warning("Tool %s: %s", event.name, error)
            result: dict[str, Any] = {"error": error}
        else:
            try:
                result = await self._executor.execute(event.name, args)
            except Exception as e:
                logger.error("Tool executor failed for %s: %s", event.name, e)
                result = {"error": str(e) or type(e).__name__}

        if self._closed:
            logger.info("Dropping result of %s (%s): session closed", event.name, event.call_id)
            return

        try:
            output = json.dumps(result)
        except (TypeError, ValueError) as e:
            output = json.dumps({"error": f"Tool result is not serializable: {e}"})

        self._emit(FunctionCallOutput(call_id=event.call_id, output=output))
        self._respond()

    async def drain(self) -> None:
        """Wait for every in-flight tool call to finish."""
        while self._tool_tasks:
            tasks = list(self._tool_tasks)
            await asyncio.gather(*tasks, return_exceptions=True)
            for task in tasks:
                self._tool_tasks.pop(task, None)

    # ── Teardown ──

    def disconnect(self) -> None:
        """Cancel timers, drop buffered speech and abandon tool calls."""
        if self._closed:
            return
        self._closed = True
        self._connected = False

        self._transcript.reset()
        self._modes.enter_idle()
        for task in list(self._tool_tasks):
            task.cancel()
        self._agent_is_speaking = False

        self._set_status(Status.DISCONNECTED)
        logger.info("Session disconnected")
