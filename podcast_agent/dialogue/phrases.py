"""
Wake and stop phrase matching for the dialogue engine.

Matching is plain substring containment on lower-cased text. There is no
tokenization and no word-boundary check, so "alexander" also wakes "alex".
"""

import logging
from typing import Iterable, Union

logger = logging.getLogger(__name__)

DEFAULT_STOP_PHRASES = "thanks, stop, enough, bye"

# Greeting/imperative templates placed before the agent name
_PREFIX_TEMPLATES = ("hey", "hi", "hello", "listen", "tell me")

# Templates placed after the agent name
_SUFFIX_TEMPLATES = ("tell me", "answer", "what")


def wake_variants(name: str) -> list[str]:
    """
    Build the wake-phrase variants for an agent name.

    Args:
        name: Agent display name (any case)

    Returns:
        Bare lower-cased name followed by every templated variant
    """
    base = name.strip().lower()
    if not base:
        return []

    variants = [base]
    variants.extend(f"{prefix} {base}" for prefix in _PREFIX_TEMPLATES)
    variants.extend(f"{base} {suffix}" for suffix in _SUFFIX_TEMPLATES)
    return variants


def parse_stop_phrases(raw: Union[str, Iterable[str], None]) -> list[str]:
    """Normalize stop phrases: split on commas, trim, lower-case, drop empties."""
    if raw is None:
        return []
    if isinstance(raw, str):
        items = raw.split(",")
    else:
        items = list(raw)
    return [item.strip().lower() for item in items if item and item.strip()]


def _contains_any(text: str, candidates: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(candidate in lowered for candidate in candidates if candidate)


def matches_wake(text: str, variants: Iterable[str]) -> bool:
    """True if any wake variant occurs in the text."""
    return _contains_any(text, variants)


def matches_stop(text: str, stop_phrases: Iterable[str]) -> bool:
    """True if any stop phrase occurs in the text."""
    return _contains_any(text, stop_phrases)
