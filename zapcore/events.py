"""Plain Nostr event model.

Events arrive from relays (as nostr_sdk.Event), embedded in other events as
JSON (zap requests inside a receipt's description tag), or as dicts in tests.
Every constructor here returns None on malformed input instead of raising:
event data comes from an open network and is never trusted.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from nostr_sdk import Event as NostrEvent

log = logging.getLogger(__name__)

KIND_METADATA = 0
KIND_TEXT_NOTE = 1
KIND_ZAP_REQUEST = 9734
KIND_ZAP_RECEIPT = 9735

NOTE_KINDS = (1, 30023, 1063, 9802, 1808)
PERSON_KINDS = (0, 2, 3, 10002)

T = TypeVar("T")


def try_json(fn: Callable[[], T]) -> T | None:
    """Run fn, returning None if it raises a JSON/shape error."""
    try:
        return fn()
    except (ValueError, TypeError, KeyError, AttributeError):
        return None


@dataclass(frozen=True)
class Event:
    """A Nostr event. Tags are kept as raw string lists."""

    pubkey: str
    created_at: int
    kind: int
    tags: list[list[str]] = field(default_factory=list)
    content: str = ""
    id: str = ""
    sig: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> Event | None:
        """Build an Event from a decoded JSON object. None if malformed."""
        if not isinstance(data, dict):
            return None

        pubkey = data.get("pubkey")
        kind = data.get("kind")
        created_at = data.get("created_at", 0)
        content = data.get("content", "")
        raw_tags = data.get("tags", [])

        if not isinstance(pubkey, str) or not pubkey:
            return None
        if isinstance(kind, bool) or not isinstance(kind, int):
            return None
        if isinstance(created_at, bool) or not isinstance(created_at, int):
            return None
        if not isinstance(content, str) or not isinstance(raw_tags, list):
            return None

        tags: list[list[str]] = []
        for tag in raw_tags:
            if not isinstance(tag, list):
                return None
            if not all(isinstance(item, str) for item in tag):
                return None
            tags.append(list(tag))

        return cls(
            pubkey=pubkey,
            created_at=created_at,
            kind=kind,
            tags=tags,
            content=content,
            id=str(data.get("id") or ""),
            sig=str(data.get("sig") or ""),
        )

    @classmethod
    def from_json(cls, raw: str) -> Event | None:
        """Parse a JSON-serialized event. None on any parse failure."""
        data = try_json(lambda: json.loads(raw))
        return cls.from_dict(data)

    @classmethod
    def from_sdk(cls, event: NostrEvent) -> Event | None:
        """Convert a nostr_sdk.Event delivered by a relay client."""
        try:
            raw = event.as_json()
        except Exception:
            log.debug("Could not serialize nostr_sdk event")
            return None
        return cls.from_json(raw)

    @classmethod
    def coerce(cls, value: Event | dict) -> Event | None:
        """Accept an Event or a dict; anything else is None."""
        if isinstance(value, Event):
            return value
        return cls.from_dict(value)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(t) for t in self.tags],
            "content": self.content,
            "sig": self.sig,
        }
