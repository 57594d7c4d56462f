"""
Transports that connect the dialogue engine to a Realtime session.

- RealtimeTransport: WebSocket connection to the OpenAI Realtime API
- ReplayTransport: replays a recorded JSON-lines event log (no network)

Both expose the same small interface: ``connect()``, ``send(command)``,
``events()`` and ``close()``. Neither makes any dialogue decisions.
"""

import asyncio
import base64
import json
import logging
import math
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Optional, Protocol

import aiohttp

from podcast_agent.config import AgentSettings, validate_api_key
from podcast_agent.dialogue.engine import DialogueEngine
from podcast_agent.dialogue.events import InputAudioAppend, OutboundCommand, Status

logger = logging.getLogger(__name__)

REALTIME_URL = "wss://api.openai.com/v1/realtime"


class Transport(Protocol):
    async def connect(self) -> None: ...

    def send(self, command: OutboundCommand) -> None: ...

    def events(self) -> AsyncIterator[dict]: ...

    async def close(self) -> None: ...


class RealtimeTransport:
    """
    WebSocket client for the Realtime API.

    Commands are queued by ``send()`` (which never blocks, so the engine can
    call it from synchronous handlers) and written by a background task.
    """

    def __init__(self, api_key: str, model: str, url: str = REALTIME_URL):
        self.api_key = validate_api_key(api_key)
        self.model = model
        self.url = url
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(
                self.url, params={"model": self.model}, headers=headers, heartbeat=20.0
            )
        except aiohttp.ClientError:
            await self._session.close()
            self._session = None
            raise
        self._writer = asyncio.create_task(self._write_loop(), name="realtime-writer")
        logger.info("Connected to %s (model %s)", self.url, self.model)

    def send(self, command: OutboundCommand) -> None:
        self._outbox.put_nowait(command.to_wire())

    def send_audio(self, pcm16: bytes) -> None:
        """Append a chunk of 24kHz mono PCM16 audio to the input buffer."""
        self.send(InputAudioAppend(audio=base64.b64encode(pcm16).decode("ascii")))

    async def _write_loop(self) -> None:
        while True:
            payload = await self._outbox.get()
            if not self.is_open:
                logger.warning("Dropping %s: socket closed", payload.get("type"))
                continue
            try:
                await self._ws.send_str(json.dumps(payload))
            except (aiohttp.ClientError, ConnectionResetError) as e:
                logger.error("Send failed: %s", e)

    async def events(self) -> AsyncIterator[dict]:
        if self._ws is None:
            raise RuntimeError("Transport is not connected")

        async for message in self._ws:
            if message.type == aiohttp.WSMsgType.TEXT:
                try:
                    data = json.loads(message.data)
                except json.JSONDecodeError:
                    logger.warning("Dropping non-JSON message")
                    continue
                if isinstance(data, dict):
                    yield data
            elif message.type in (aiohttp.WSMsgType.ERROR, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.CLOSE):
                logger.info("WebSocket closed (%s)", message.type.name)
                break

    async def close(self) -> None:
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._session is not None:
            await self._session.close()
            self._session = None


class ReplayTransport:
    """
    Feeds recorded server events from a JSON-lines file.

    Each line is one server event. An optional ``"delay"`` key (seconds)
    pauses before that event; ``gap_s`` is the pause between events
    otherwise. After the last event the transport waits ``tail_s`` so
    pending timers get a chance to fire.
    """

    def __init__(self, path: Path, gap_s: float = 0.0, tail_s: float = 1.0):
        self.path = Path(path)
        self.gap_s = gap_s
        self.tail_s = tail_s
        self.sent: list[dict[str, Any]] = []

    async def connect(self) -> None:
        if not self.path.exists():
            raise FileNotFoundError(self.path)

    def send(self, command: OutboundCommand) -> None:
        self.sent.append(command.to_wire())

    def _load(self) -> list[tuple[float, dict]]:
        """Returns (delay, event) pairs; unusable lines are skipped."""
        events = []
        for lineno, line in enumerate(self.path.read_text().splitlines(), start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("%s:%d: skipping invalid JSON (%s)", self.path, lineno, e)
                continue
            if not isinstance(event, dict):
                logger.warning("%s:%d: skipping non-object event", self.path, lineno)
                continue

            raw_delay = event.pop("delay", None)
            try:
                delay = self.gap_s if raw_delay is None else float(raw_delay)
            except (TypeError, ValueError):
                delay = math.nan
            if not math.isfinite(delay):
                logger.warning("%s:%d: skipping event with invalid delay %r", self.path, lineno, raw_delay)
                continue
            events.append((max(delay, 0.0), event))
        return events

    async def events(self) -> AsyncIterator[dict]:
        for delay, event in self._load():
            await asyncio.sleep(delay)
            yield event
        await asyncio.sleep(self.tail_s)

    async def close(self) -> None:
        pass


async def run_session(
    settings: AgentSettings,
    transport: Transport,
    on_status: Optional[Callable[[Status, str], None]] = None,
    on_transcript: Optional[Callable[[str, str], None]] = None,
    on_command: Optional[Callable[[OutboundCommand], None]] = None,
) -> DialogueEngine:
    """
    Run one session until the transport closes.

    Returns:
        The (disconnected) engine, for inspection
    """

    def _send(command: OutboundCommand) -> None:
        if on_command is not None:
            on_command(command)
        transport.send(command)

    engine = DialogueEngine(
        settings,
        send=_send,
        on_status=on_status,
        on_transcript=on_transcript,
    )
    if on_status is not None:
        on_status(Status.CONNECTING, Status.CONNECTING.label)

    try:
        await transport.connect()
        engine.on_channel_open()
        async for raw in transport.events():
            await engine.handle(raw)
        await engine.drain()
    finally:
        engine.disconnect()
        await transport.close()

    return engine
