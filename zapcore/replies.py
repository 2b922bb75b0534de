"""Thread reply/root resolution (NIP-10).

Two conventions exist for "e" tags:
  - marked: each tag carries a trailing "reply", "root" or "mention" marker
  - legacy (positional): no markers; the last "e" tag is the parent and,
    when there are several, the first one is the thread root
"""

from __future__ import annotations

from dataclasses import dataclass

from zapcore.events import Event
from zapcore.tags import Tags

MARKERS = ("reply", "root")


@dataclass(frozen=True)
class ReplyRoot:
    """The "e" tags an event replies to and roots its thread at, if any."""

    reply: list[str] | None
    root: list[str] | None

    @staticmethod
    def _id(tag: list[str] | None) -> str | None:
        return tag[1] if tag and len(tag) > 1 else None

    @staticmethod
    def _relay(tag: list[str] | None) -> str | None:
        return (tag[2] or None) if tag and len(tag) > 2 else None

    @property
    def reply_id(self) -> str | None:
        return self._id(self.reply)

    @property
    def root_id(self) -> str | None:
        return self._id(self.root)

    @property
    def reply_relay(self) -> str | None:
        return self._relay(self.reply)

    @property
    def root_relay(self) -> str | None:
        return self._relay(self.root)


def find_reply_and_root(event: Event | dict) -> ReplyRoot:
    tags = Tags.from_events(event).type("e").filter(lambda t: t[-1] != "mention")

    # Legacy: nothing is marked, fall back to position
    if not tags.any(lambda t: len(t) > 2 and t[-1] in MARKERS):
        reply = tags.last()
        root = tags.first() if tags.count() > 1 else None
        return ReplyRoot(reply=reply, root=root)

    reply = tags.mark("reply").first()
    root = tags.mark("root").first()
    return ReplyRoot(reply=reply or root, root=root)


def find_reply_and_root_ids(event: Event | dict) -> dict[str, str | None]:
    result = find_reply_and_root(event)
    return {"reply": result.reply_id, "root": result.root_id}


def find_reply(event: Event | dict) -> list[str] | None:
    return find_reply_and_root(event).reply


def find_reply_id(event: Event | dict) -> str | None:
    return find_reply_and_root(event).reply_id


def find_root(event: Event | dict) -> list[str] | None:
    return find_reply_and_root(event).root


def find_root_id(event: Event | dict) -> str | None:
    return find_reply_and_root(event).root_id
