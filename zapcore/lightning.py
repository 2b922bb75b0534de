"""LNURL and BOLT11 helpers.

LNURLs show up in two forms in kind 0 profiles:
  - lud06: a bech32 string with the "lnurl" prefix wrapping an https URL
  - lud16: a lightning address, name@domain, resolved through the
    /.well-known/lnurlp/<name> convention (LUD-16)
"""

from __future__ import annotations

import logging

import bech32
import bolt11 as bolt11_lib

log = logging.getLogger(__name__)

LNURL_HRP = "lnurl"
LNURL_PREFIX = LNURL_HRP + "1"


def encode_lnurl(url: str) -> str:
    """Bech32-encode a URL with the "lnurl" prefix."""
    data = bech32.convertbits(url.encode("utf-8"), 8, 5)
    return bech32.bech32_encode(LNURL_HRP, data)


def decode_lnurl(value: str) -> str | None:
    """Decode a bech32 "lnurl1..." string back to its URL. None if invalid.

    bech32.bech32_decode caps input at 90 characters, which almost every
    LNURL exceeds, so the checksum and bit conversion are done directly
    with the library's primitives.
    """
    value = value.strip().lower()
    pos = value.rfind("1")
    if pos < 1 or pos + 7 > len(value) or value[:pos] != LNURL_HRP:
        return None

    data: list[int] = []
    for char in value[pos + 1:]:
        idx = bech32.CHARSET.find(char)
        if idx < 0:
            return None
        data.append(idx)

    if not bech32.bech32_verify_checksum(LNURL_HRP, data):
        return None

    decoded = bech32.convertbits(data[:-6], 5, 8, False)
    if decoded is None:
        return None
    try:
        return bytes(decoded).decode("utf-8")
    except UnicodeDecodeError:
        return None


def get_lnurl(address: str) -> str | None:
    """Resolve a lud06/lud16 value to the LNURL-pay endpoint URL."""
    if address.startswith(LNURL_PREFIX):
        return decode_lnurl(address)

    if "@" in address:
        parts = address.split("@")
        name, domain = parts[0], parts[1]
        if name and domain:
            return f"https://{domain}/.well-known/lnurlp/{name}"

    return None


def invoice_amount(invoice: str | None) -> int | None:
    """Amount in millisatoshis encoded in a BOLT11 invoice.

    None when the invoice cannot be decoded or carries no amount.
    """
    if not invoice or not isinstance(invoice, str):
        return None
    try:
        decoded = bolt11_lib.decode(invoice)
    except Exception:
        log.debug("Failed to decode bolt11 %s", invoice[:24])
        return None

    amount_msats: int | None = decoded.amount_msat
    if not amount_msats or amount_msats <= 0:
        return None
    return int(amount_msats)
