"""
Pydantic models for Realtime session events and commands.
"""

import json
import logging
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class Status(str, Enum):
    """UI-facing connection status."""

    CONNECTING = "connecting"
    IDLE = "idle"
    DIALOGUE = "dialogue"
    SPEAKING = "speaking"
    ERROR = "error"
    DISCONNECTED = "disconnected"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    Status.CONNECTING: "Connecting...",
    Status.IDLE: "Listening (passive)",
    Status.DIALOGUE: "Dialogue active",
    Status.SPEAKING: "Speaking...",
    Status.ERROR: "Connection error",
    Status.DISCONNECTED: "Disconnected",
}


# === Inbound ===


class ServerEvent(BaseModel):
    """Base for events delivered by the Realtime session."""

    model_config = ConfigDict(extra="allow")

    type: str
    event_id: str | None = None


class SessionCreated(ServerEvent):
    pass


class SessionUpdated(ServerEvent):
    pass


class SpeechStarted(ServerEvent):
    pass


class SpeechStopped(ServerEvent):
    pass


class TranscriptionCompleted(ServerEvent):
    """Finished transcription of one user audio segment."""

    transcript: str = ""


class AgentTranscriptDelta(ServerEvent):
    delta: str = ""
    transcript: str = ""


class AgentTranscriptDone(ServerEvent):
    """Full transcript of what the agent said."""

    transcript: str = ""


class ResponseDone(ServerEvent):
    response: dict[str, Any] = Field(default_factory=dict)


class FunctionCallArgumentsDone(ServerEvent):
    """The model finished streaming a tool call."""

    name: str = ""
    arguments: str | None = None
    call_id: str = ""


class ErrorEvent(ServerEvent):
    error: dict[str, Any] | str | None = None

    @field_validator("error", mode="before")
    @classmethod
    def _coerce_error(cls, value: Any) -> Any:
        # Any payload still reports an error
        if value is None or isinstance(value, (dict, str)):
            return value
        return str(value)

    @property
    def message(self) -> str:
        if isinstance(self.error, str):
            return self.error or "Unknown error"
        if self.error and self.error.get("message"):
            return str(self.error["message"])
        return "Unknown error"


class UnknownEvent(ServerEvent):
    """Anything this engine does not act on."""


InboundEvent = Union[
    SessionCreated,
    SessionUpdated,
    SpeechStarted,
    SpeechStopped,
    TranscriptionCompleted,
    AgentTranscriptDelta,
    AgentTranscriptDone,
    ResponseDone,
    FunctionCallArgumentsDone,
    ErrorEvent,
    UnknownEvent,
]

EVENT_TYPES: dict[str, type[ServerEvent]] = {
    "session.created": SessionCreated,
    "session.updated": SessionUpdated,
    "input_audio_buffer.speech_started": SpeechStarted,
    "input_audio_buffer.speech_stopped": SpeechStopped,
    "conversation.item.input_audio_transcription.completed": TranscriptionCompleted,
    "response.audio_transcript.delta": AgentTranscriptDelta,
    "response.audio_transcript.done": AgentTranscriptDone,
    "response.done": ResponseDone,
    "response.function_call_arguments.done": FunctionCallArgumentsDone,
    "error": ErrorEvent,
}


def parse_event(raw: Union[str, bytes, dict]) -> InboundEvent:
    """
    Parse a raw server message into a typed event.

    Unknown kinds and payloads that fail validation become UnknownEvent,
    which the engine treats as a no-op.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Dropping non-JSON server message")
            return UnknownEvent(type="invalid")

    if not isinstance(raw, dict):
        return UnknownEvent(type="invalid")

    event_type = str(raw.get("type", ""))
    model = EVENT_TYPES.get(event_type, UnknownEvent)
    try:
        return model.model_validate({**raw, "type": event_type})
    except ValidationError as e:
        logger.warning("Malformed '%s' event: %s", event_type, e)
        return UnknownEvent(type=event_type)


# === Outbound ===


class ClientCommand(BaseModel):
    """Base for commands sent to the Realtime session."""

    type: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class SessionUpdate(ClientCommand):
    type: str = "session.update"
    session: dict[str, Any]


class ResponseCreate(ClientCommand):
    type: str = "response.create"
    response: dict[str, Any] = Field(
        default_factory=lambda: {"modalities": ["text", "audio"]}
    )


class FunctionCallOutput(ClientCommand):
    """Result of a tool call, correlated by call_id."""

    type: str = "conversation.item.create"
    call_id: str
    output: str  # JSON-encoded result object

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "item": {
                "type": "function_call_output",
                "call_id": self.call_id,
                "output": self.output,
            },
        }


class InputAudioAppend(ClientCommand):
    type: str = "input_audio_buffer.append"
    audio: str  # Base64 PCM16


OutboundCommand = Union[SessionUpdate, ResponseCreate, FunctionCallOutput, InputAudioAppend]
