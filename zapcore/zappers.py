"""Registry of zap-capable lightning endpoints per pubkey (NIP-57).

A profile's kind 0 metadata names a lightning address (lud16) or a bech32
LNURL (lud06). To validate zap receipts for that profile we need to know
which nostr pubkey the LNURL provider signs receipts with. Ingesting a
kind 0 event resolves that once and caches it as a ZapperRecord:

  1. Read lud16 (or lud06) from the profile JSON
  2. Skip unless the event is newer than the record we already hold
  3. Turn the address into an LNURL-pay endpoint URL
  4. Ask the zapper-info service for the endpoint's metadata; it must
     advertise allowsNostr and a nostrPubkey
  5. Store the record and notify subscribers
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from zapcore.events import KIND_METADATA, Event, try_json
from zapcore.lightning import encode_lnurl, get_lnurl

log = logging.getLogger(__name__)


class ZapperInfoSource(Protocol):
    async def fetch_zapper_info(self, lnurl: str) -> dict: ...


@dataclass(frozen=True)
class ZapperRecord:
    """A recipient's resolved LNURL-pay endpoint."""

    pubkey: str          # recipient
    lnurl: str           # bech32 "lnurl1..." form of the endpoint URL
    callback: str
    min_sendable: int    # msats
    max_sendable: int    # msats
    nostr_pubkey: str    # key the provider signs 9735 receipts with
    created_at: int      # created_at of the kind 0 that produced this
    updated_at: int      # wall clock at resolution


Subscriber = Callable[[ZapperRecord], None]


def _lightning_address(profile: dict) -> str | None:
    for key in ("lud16", "lud06"):
        value = profile.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
    return None


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class ZapperDirectory:
    """In-memory pubkey -> ZapperRecord registry fed by kind 0 events.

    Ingestion for the same pubkey is serialized with a per-pubkey
    asyncio.Lock so the staleness check and the write happen together.
    Different pubkeys ingest concurrently.
    """

    def __init__(
        self,
        client: ZapperInfoSource,
        lock_idle_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._clock = clock
        self._records: dict[str, ZapperRecord] = {}
        self._subscribers: list[Subscriber] = []
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_last_used: dict[str, float] = {}
        self._lock_idle_seconds: float = lock_idle_seconds

    # -- Registry ----------------------------------------------------------------

    def lookup(self, pubkey: str) -> ZapperRecord | None:
        return self._records.get(pubkey)

    get = lookup

    def set(self, record: ZapperRecord) -> None:
        """Store a record unconditionally and notify subscribers."""
        self._records[record.pubkey] = record
        for callback in list(self._subscribers):
            try:
                callback(record)
            except Exception:
                log.exception("Zapper subscriber failed for %s", record.pubkey[:16])

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call callback with every stored record. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def __contains__(self, pubkey: object) -> bool:
        return pubkey in self._records

    def __len__(self) -> int:
        return len(self._records)

    # -- Per-pubkey locks ----------------------------------------------------------

    def _get_lock(self, pubkey: str) -> asyncio.Lock:
        lock = self._locks.get(pubkey)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[pubkey] = lock
        self._lock_last_used[pubkey] = time.monotonic()
        return lock

    def cleanup_idle_locks(self) -> int:
        """Remove unheld locks idle longer than lock_idle_seconds. Returns count removed."""
        now = time.monotonic()
        to_remove = []
        for pubkey, last_used in self._lock_last_used.items():
            if now - last_used > self._lock_idle_seconds:
                lock = self._locks.get(pubkey)
                if lock is not None and not lock.locked():
                    to_remove.append(pubkey)
        for pubkey in to_remove:
            del self._locks[pubkey]
            del self._lock_last_used[pubkey]
        return len(to_remove)

    def _is_stale(self, event: Event) -> bool:
        current = self._records.get(event.pubkey)
        return current is not None and event.created_at <= current.created_at

    # -- Ingestion -----------------------------------------------------------------

    async def ingest(self, event: Event | dict) -> ZapperRecord | None:
        """Process a kind 0 event. Returns the stored record, or None if skipped."""
        parsed = Event.coerce(event)
        if parsed is None or parsed.kind != KIND_METADATA:
            return None

        profile = try_json(lambda: json.loads(parsed.content))
        if not isinstance(profile, dict):
            return None

        address = _lightning_address(profile)
        if address is None:
            return None

        pubkey = parsed.pubkey
        async with self._get_lock(pubkey):
            if self._is_stale(parsed):
                log.debug(
                    "Metadata for %s at %d is not newer than stored record, skipped",
                    pubkey[:16], parsed.created_at,
                )
                return None

            lnurl = get_lnurl(address)
            if not lnurl:
                log.warning("Could not resolve lightning address %r for %s", address, pubkey[:16])
                return None

            try:
                info = await self._client.fetch_zapper_info(lnurl)
            except Exception as e:
                log.warning("Zapper info lookup failed for %s (%s): %s", pubkey[:16], lnurl, e)
                return None

            if not isinstance(info, dict) or info.get("allowsNostr") is not True:
                log.debug("LNURL %s for %s does not allow nostr zaps", lnurl, pubkey[:16])
                return None

            nostr_pubkey = info.get("nostrPubkey")
            if not isinstance(nostr_pubkey, str) or not nostr_pubkey:
                log.debug("LNURL %s for %s has no nostrPubkey", lnurl, pubkey[:16])
                return None

            # set() may have been called while we were waiting on the network
            if self._is_stale(parsed):
                return None

            callback = info.get("callback")
            record = ZapperRecord(
                pubkey=pubkey,
                lnurl=encode_lnurl(lnurl),
                callback=callback if isinstance(callback, str) else "",
                min_sendable=_as_int(info.get("minSendable")),
                max_sendable=_as_int(info.get("maxSendable")),
                nostr_pubkey=nostr_pubkey,
                created_at=parsed.created_at,
                updated_at=int(self._clock()),
            )
            self.set(record)

        log.info("Zapper for %s resolved (signer %s)", pubkey[:16], record.nostr_pubkey[:16])
        return record
