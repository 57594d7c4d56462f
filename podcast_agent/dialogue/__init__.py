"""
Dialogue orchestration: phrase matching, transcript debouncing, mode switching
and the engine that ties them to a Realtime session.
"""

from podcast_agent.dialogue.engine import DialogueEngine
from podcast_agent.dialogue.events import Status, parse_event
from podcast_agent.dialogue.modes import AgentMode

__all__ = ["DialogueEngine", "AgentMode", "Status", "parse_event"]
