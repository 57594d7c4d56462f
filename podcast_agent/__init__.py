"""
Podcast Agent - an AI participant that joins a spoken conversation when addressed by name.
"""

import logging

# aiohttp logs every websocket frame at DEBUG
logging.getLogger("aiohttp").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

__version__ = "0.1.0"

from podcast_agent.dialogue.engine import DialogueEngine

__all__ = ["DialogueEngine", "__version__"]
