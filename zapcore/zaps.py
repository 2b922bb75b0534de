"""NIP-57 zap receipt filtering for a recipient (no I/O, no side effects).

A kind 9735 receipt is kept for a recipient only if:
  1. bolt11 decodes to an amount and description parses as a 9734 request
  2. The request was not authored by the recipient (self-zaps don't count)
  3. If the request has an 'amount' tag, it equals the bolt11 amount
  4. If the request has an 'lnurl' tag, it equals the recipient's zapper lnurl
  5. The receipt is signed by the recipient zapper's nostrPubkey

Receipts that fail any check are dropped silently: they come from an open
network and junk is expected. Nothing here raises on bad input.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from zapcore.events import Event
from zapcore.lightning import invoice_amount
from zapcore.tags import Tags
from zapcore.zappers import ZapperDirectory, ZapperRecord

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedZap:
    """A zap receipt that passed validation."""

    event: Event            # 9735 receipt
    invoice_amount: int     # msats, from bolt11
    request: Event          # embedded 9734

    @property
    def sender(self) -> str:
        return self.request.pubkey

    @property
    def amount_sats(self) -> int:
        return self.invoice_amount // 1000


def _check_receipt(
    receipt: Event, recipient_pubkey: str, zapper: ZapperRecord,
) -> VerifiedZap | None:
    event_id = receipt.id[:16]

    # -- Parse bolt11 and the embedded request --
    meta = Tags.from_events(receipt).as_meta()
    amount_msats = invoice_amount(meta.get("bolt11"))
    if amount_msats is None:
        log.debug("Zap receipt %s: missing or undecodable bolt11", event_id)
        return None

    description = meta.get("description")
    request = Event.from_json(description) if isinstance(description, str) else None
    if request is None:
        log.debug("Zap receipt %s: description is not a zap request", event_id)
        return None

    # -- Self-zap --
    if request.pubkey == recipient_pubkey:
        log.debug("Zap receipt %s: self-zap by %s", event_id, recipient_pubkey[:16])
        return None

    request_meta = Tags.from_events(request).as_meta()

    # -- Requested amount must be what was invoiced --
    requested = request_meta.get("amount")
    if requested:
        try:
            requested_msats = int(requested)
        except (TypeError, ValueError):
            log.debug("Zap receipt %s: malformed amount tag", event_id)
            return None
        if requested_msats != amount_msats:
            log.debug(
                "Zap receipt %s: amount mismatch, request says %d msats, bolt11 says %d msats",
                event_id, requested_msats, amount_msats,
            )
            return None

    # -- Requested lnurl must be the recipient's --
    requested_lnurl = request_meta.get("lnurl")
    if requested_lnurl and requested_lnurl != zapper.lnurl:
        log.debug("Zap receipt %s: lnurl does not match recipient zapper", event_id)
        return None

    # -- Receipt must be signed by the recipient's provider --
    if receipt.pubkey != zapper.nostr_pubkey:
        log.debug(
            "Zap receipt %s: author %s does not match provider %s",
            event_id, receipt.pubkey[:16], zapper.nostr_pubkey[:16],
        )
        return None

    return VerifiedZap(event=receipt, invoice_amount=amount_msats, request=request)


class ZapValidator:
    """Filters zap receipts against the recipient's cached zapper record."""

    def __init__(self, directory: ZapperDirectory) -> None:
        self._directory = directory

    def validate(
        self, receipts: Iterable[Event | dict], recipient_pubkey: str,
    ) -> list[VerifiedZap]:
        """Return the receipts that are valid zaps for recipient_pubkey, in order."""
        zapper = self._directory.lookup(recipient_pubkey)
        if zapper is None:
            return []

        verified: list[VerifiedZap] = []
        for raw in receipts:
            receipt = Event.coerce(raw)
            if receipt is None:
                continue
            zap = _check_receipt(receipt, recipient_pubkey, zapper)
            if zap is not None:
                verified.append(zap)
        return verified


def process_zaps(
    directory: ZapperDirectory,
    receipts: Iterable[Event | dict],
    recipient_pubkey: str,
) -> list[VerifiedZap]:
    return ZapValidator(directory).validate(receipts, recipient_pubkey)


def total_msats(zaps: Iterable[VerifiedZap]) -> int:
    return sum(z.invoice_amount for z in zaps)
