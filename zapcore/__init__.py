"""Nostr tag queries, reply resolution and NIP-57 zap receipt validation."""

from zapcore.events import Event
from zapcore.replies import ReplyRoot, find_reply_and_root
from zapcore.tags import Tags, is_shareable_relay
from zapcore.zappers import ZapperDirectory, ZapperRecord
from zapcore.zaps import VerifiedZap, ZapValidator

__all__ = [
    "Event",
    "ReplyRoot",
    "Tags",
    "VerifiedZap",
    "ZapValidator",
    "ZapperDirectory",
    "ZapperRecord",
    "find_reply_and_root",
    "is_shareable_relay",
]
