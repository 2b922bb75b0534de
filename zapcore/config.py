"""
zapcore configuration.

Frozen dataclass loaded from environment variables.
Loads ~/.zapcore/zapcore.env first if it exists, then reads the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from zapcore.tags import is_shareable_relay

_REQUIRED_FIELDS = (
    "ZAPPER_INFO_URL",
)

_DEFAULT_RELAYS = "wss://relay.damus.io,wss://nos.lol,wss://relay.snort.social"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Config:
    """Immutable zapcore configuration."""

    # Zapper-info resolution service
    zapper_info_url: str
    http_timeout_seconds: float

    # Relays handed to the relay client
    nostr_relays: list[str]

    # Housekeeping
    lock_idle_seconds: float
    seen_events_ttl_seconds: float

    # Logging
    log_level: str

    @classmethod
    def load(cls) -> Config:
        """Load configuration from environment variables.

        Reads ~/.zapcore/zapcore.env first (without overriding variables
        already set). Raises ValueError if any required field is missing
        or empty.
        """
        env_file = Path.home() / ".zapcore" / "zapcore.env"
        if env_file.exists():
            load_dotenv(env_file)

        missing = [
            name for name in _REQUIRED_FIELDS
            if not os.environ.get(name, "").strip()
        ]
        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        relay_csv = os.environ.get("NOSTR_RELAYS", _DEFAULT_RELAYS)
        relays = [r.strip() for r in relay_csv.split(",") if is_shareable_relay(r.strip())]

        return cls(
            zapper_info_url=os.environ["ZAPPER_INFO_URL"].strip(),
            http_timeout_seconds=float(os.environ.get("HTTP_TIMEOUT_SECONDS", "15")),
            nostr_relays=relays,
            lock_idle_seconds=float(os.environ.get("LOCK_IDLE_SECONDS", "300")),
            seen_events_ttl_seconds=float(
                os.environ.get("SEEN_EVENTS_TTL_SECONDS", "600")
            ),
            log_level=os.environ.get("LOG_LEVEL", "INFO").strip().upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
    )
