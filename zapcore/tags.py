"""Chainable, read-only queries over Nostr tag lists.

A tag is a list of strings whose first element names its type ("p", "e",
"t", ...). Arity and meaning of the remaining positions depend on the type,
so tags stay as plain lists and the helpers here know which position to read.

    Tags.from_events(event).type("p").values().all()
    Tags.from_events(event).type("e").mark("root").first()

Every query returns a new Tags instance or a plain value; the wrapped list
is never mutated.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable, Sequence
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from nostr_sdk import EventId, PublicKey

from zapcore.events import Event, try_json

_WSS_RE = re.compile(r"^wss://.+")
_WHITESPACE_RE = re.compile(r"\s")
_PORT_RE = re.compile(r":\d+")
_IPV4_RE = re.compile(r"\d+\.\d+\.\d+\.\d+")
_NPUB_PATH_RE = re.compile(r"/npub")
_HEX64_RE = re.compile(r"[a-zA-Z0-9]{64}")
_STRICT_HEX_RE = re.compile(r"^[a-f0-9]{64}$")
_URI_SCHEME_RE = re.compile(r"^[\w+]+:/?/?")

LIKE_CONTENT = ("", "+", "\U0001f919", "\U0001f44d", "❤️", "\U0001f60e", "\U0001f3c5")


def _plural(value: str | Iterable[str]) -> list[str]:
    if isinstance(value, str):
        return [value]
    return list(value)


def _tags_of(event: Event | dict) -> list:
    if isinstance(event, Event):
        return list(event.tags)
    if isinstance(event, dict):
        tags = event.get("tags") or []
        return list(tags) if isinstance(tags, list) else []
    return []


def _last(tag: Any) -> Any:
    if isinstance(tag, (list, tuple)) and tag:
        return tag[-1]
    return None


def _at(tag: Any, i: int) -> Any:
    if isinstance(tag, (list, tuple)) and len(tag) > i:
        return tag[i]
    return None


class Tags:
    """Immutable view over a sequence of tags (or of projected values)."""

    __slots__ = ("_tags",)

    def __init__(self, tags: Iterable[Any]) -> None:
        self._tags: tuple = tuple(t for t in tags if t)

    @classmethod
    def from_events(cls, events: Event | dict | Sequence[Event | dict]) -> Tags:
        """Flatten the tags of one event or many, in event order."""
        if isinstance(events, (Event, dict)):
            events = [events]
        flat: list = []
        for event in events:
            flat.extend(_tags_of(event))
        return cls(flat)

    @classmethod
    def wrap(cls, tags: Iterable[Any]) -> Tags:
        return cls(tags)

    def __repr__(self) -> str:
        return f"Tags({list(self._tags)!r})"

    def __iter__(self):
        return iter(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    # -- Raw access ------------------------------------------------------------

    def all(self) -> list:
        return list(self._tags)

    def count(self) -> int:
        return len(self._tags)

    def exists(self) -> bool:
        return len(self._tags) > 0

    def first(self) -> Any:
        return self._tags[0] if self._tags else None

    def last(self) -> Any:
        return self._tags[-1] if self._tags else None

    def nth(self, i: int) -> Any:
        """Element at i, or None when out of range (negative indexes too)."""
        if 0 <= i < len(self._tags):
            return self._tags[i]
        return None

    # -- Filters ---------------------------------------------------------------

    def filter(self, pred: Callable[[Any], bool]) -> Tags:
        return Tags(t for t in self._tags if pred(t))

    def reject(self, pred: Callable[[Any], bool]) -> Tags:
        return Tags(t for t in self._tags if not pred(t))

    def any(self, pred: Callable[[Any], bool]) -> bool:
        return self.filter(pred).exists()

    def type(self, tag_type: str | Iterable[str]) -> Tags:
        types = _plural(tag_type)
        return self.filter(lambda t: _at(t, 0) in types)

    def equals(self, value: str) -> Tags:
        return self.filter(lambda t: _at(t, 1) == value)

    def mark(self, marker: str | Iterable[str]) -> Tags:
        """Tags whose last element is one of the given markers."""
        markers = _plural(marker)
        return self.filter(lambda t: _last(t) in markers)

    # -- Projections -----------------------------------------------------------

    def values(self) -> Tags:
        return Tags(_at(t, 1) for t in self._tags)

    def drop(self, n: int) -> Tags:
        return Tags(list(t[n:]) for t in self._tags if isinstance(t, (list, tuple)))

    def as_meta(self) -> dict[str, Any]:
        """Map tag type to value. Later duplicates overwrite earlier ones."""
        meta: dict[str, Any] = {}
        for tag in self._tags:
            key = _at(tag, 0)
            if isinstance(key, str):
                meta[key] = _at(tag, 1)
        return meta

    def get_meta(self, key: str) -> Any:
        return self.type(key).values().first()

    def pubkeys(self) -> list[str]:
        return self.type("p").values().all()

    def urls(self) -> list[str]:
        return self.type("r").values().all()

    def topics(self) -> list[str]:
        # Older clients wrote topics with the leading hash
        return [t[1:] if t.startswith("#") else t for t in self.type("t").values().all()]

    def relays(self) -> list[str]:
        """Every element of every tag that looks like a shareable relay URL."""
        seen: dict[str, None] = {}
        for tag in self._tags:
            items = tag if isinstance(tag, (list, tuple)) else [tag]
            for item in items:
                if is_shareable_relay(item):
                    seen.setdefault(item, None)
        return list(seen)


# -- Relay URLs ----------------------------------------------------------------


def is_shareable_relay(url: Any) -> bool:
    """True if url is a plain wss:// relay address worth passing around."""
    if not isinstance(url, str) or not _WSS_RE.match(url):
        return False
    # Buggy clients sometimes concatenate several relay urls
    if url.count("://") != 1:
        return False
    if _WHITESPACE_RE.search(url):
        return False
    rest = url[6:]
    if _PORT_RE.search(rest) or _IPV4_RE.search(rest):
        return False
    # Virtual per-pubkey relays
    return not _NPUB_PATH_RE.search(rest)


def normalize_relay_url(url: str) -> str:
    """Force the wss scheme, drop trailing slashes and lowercase. "" if unparsable."""
    if not _WSS_RE.match(url):
        url = "wss://" + re.sub(r".*://", "", url, count=1)
    try:
        parts = urlsplit(url)
        if not parts.hostname:
            return ""
        href = urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, parts.fragment))
    except ValueError:
        return ""
    return href.rstrip("/").lower()


# -- Identifiers -----------------------------------------------------------------


def is_hex(value: str) -> bool:
    return bool(_STRICT_HEX_RE.match(value))


def to_hex(value: str) -> str | None:
    """Return hex for a hex id, an npub/nprofile or a note/nevent. None otherwise."""
    if _HEX64_RE.search(value):
        return value
    try:
        return PublicKey.parse(value).to_hex()
    except Exception:
        pass
    try:
        return EventId.parse(value).to_hex()
    except Exception:
        return None


def from_nostr_uri(value: str) -> str:
    return _URI_SCHEME_RE.sub("", value, count=1)


def to_nostr_uri(value: str) -> str:
    return f"nostr:{value}"


def is_like(content: str) -> bool:
    return content in LIKE_CONTENT


# -- Labels ----------------------------------------------------------------------


def get_label_quality(label: str, event: Event | dict) -> float | None:
    """Read the quality score from the JSON payload of an "l" tag for label."""
    tag = Tags.from_events(event).type("l").equals(label).first()
    if not tag:
        return None
    data = try_json(lambda: json.loads(tag[-1]))
    if not isinstance(data, dict):
        return None
    quality = data.get("quality")
    if isinstance(quality, bool) or not isinstance(quality, (int, float)):
        return None
    return quality


def get_avg_quality(label: str, events: Iterable[Event | dict]) -> float | None:
    scores = [q for q in (get_label_quality(label, e) for e in events) if q]
    if not scores:
        return None
    return sum(scores) / len(scores)
