"""Routes relay events to handlers registered by kind.

Handlers are wired explicitly by the owner of the relay client, e.g.:

    router = EventRouter()
    router.on(KIND_METADATA, directory.ingest)
    await client.handle_notifications(router)

Relays can deliver the same event more than once (several relays, or
reconnects), so event ids seen within the last seen_ttl seconds are skipped.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from nostr_sdk import Event as NostrEvent
from nostr_sdk import HandleNotification, RelayMessage, RelayUrl

from zapcore.events import Event

log = logging.getLogger(__name__)

Handler = Callable[[Event], Awaitable[Any]]


class EventRouter(HandleNotification):
    """nostr_sdk notification handler dispatching events by kind."""

    def __init__(self, seen_ttl: float = 600.0, prune_interval: int = 50) -> None:
        self._handlers: dict[int, list[Handler]] = {}
        # event id -> monotonic time first seen
        self._seen_events: dict[str, float] = {}
        self._seen_ttl: float = seen_ttl
        self._seen_check_counter: int = 0
        self._prune_interval: int = prune_interval

    def on(self, kind: int, handler: Handler) -> None:
        self._handlers.setdefault(kind, []).append(handler)

    def _is_duplicate(self, event_id: str) -> bool:
        """True if event_id was already seen. Registers new ids.

        Expired entries are pruned every prune_interval calls.
        """
        now = time.monotonic()

        self._seen_check_counter += 1
        if self._seen_check_counter >= self._prune_interval:
            self._seen_check_counter = 0
            cutoff = now - self._seen_ttl
            stale = [eid for eid, ts in self._seen_events.items() if ts < cutoff]
            for eid in stale:
                del self._seen_events[eid]

        if event_id in self._seen_events:
            return True

        self._seen_events[event_id] = now
        return False

    async def dispatch(self, event: Event) -> None:
        """Run every handler registered for event.kind. Handler errors are logged."""
        for handler in self._handlers.get(event.kind, []):
            try:
                await handler(event)
            except Exception:
                log.exception(
                    "Error handling event %s (kind %d)", event.id[:16], event.kind,
                )

    # -- HandleNotification interface ------------------------------------------

    async def handle(self, relay_url: RelayUrl, subscription_id: str, event: NostrEvent):
        """Convert, dedupe and dispatch. Malformed events are dropped."""
        parsed = Event.from_sdk(event)
        if parsed is None:
            log.debug("Dropping unparsable event from %s", relay_url)
            return

        if parsed.id and self._is_duplicate(parsed.id):
            log.debug("Skipping duplicate event %s", parsed.id[:16])
            return

        log.debug("[event] kind=%d id=%s author=%s", parsed.kind, parsed.id[:16], parsed.pubkey[:16])
        await self.dispatch(parsed)

    async def handle_msg(self, relay_url: RelayUrl, msg: RelayMessage):
        """Required by HandleNotification. No-op."""
        pass
