"""Wires the zapper directory, validator and event router together.

The relay client is owned by the caller: register `core.router` with it and
call `core.validate(...)` whenever zap receipts need checking.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from zapcore.config import Config
from zapcore.events import KIND_METADATA, Event
from zapcore.router import EventRouter
from zapcore.zapper_client import ZapperInfoClient
from zapcore.zappers import ZapperDirectory
from zapcore.zaps import VerifiedZap, ZapValidator

log = logging.getLogger(__name__)


class ZapCore:
    """Zapper directory + zap validator behind one start/close lifecycle."""

    def __init__(
        self,
        client: ZapperInfoClient,
        lock_idle_seconds: float = 300.0,
        seen_events_ttl: float = 600.0,
    ) -> None:
        self.client = client
        self.directory = ZapperDirectory(client, lock_idle_seconds=lock_idle_seconds)
        self.validator = ZapValidator(self.directory)
        self.router = EventRouter(seen_ttl=seen_events_ttl)
        self.router.on(KIND_METADATA, self.directory.ingest)

    @classmethod
    def from_config(cls, config: Config) -> ZapCore:
        client = ZapperInfoClient(
            config.zapper_info_url, timeout=config.http_timeout_seconds,
        )
        return cls(
            client,
            lock_idle_seconds=config.lock_idle_seconds,
            seen_events_ttl=config.seen_events_ttl_seconds,
        )

    async def start(self) -> None:
        await self.client.start()
        log.info("zapcore started")

    async def close(self) -> None:
        await self.client.close()
        removed = self.directory.cleanup_idle_locks()
        log.debug("zapcore closed (%d idle locks dropped)", removed)

    def validate(
        self, receipts: Iterable[Event | dict], recipient_pubkey: str,
    ) -> list[VerifiedZap]:
        return self.validator.validate(receipts, recipient_pubkey)
