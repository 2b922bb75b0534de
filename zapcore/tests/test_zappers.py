"""Tests for the zapper directory (kind 0 ingestion).

The zapper-info client is an AsyncMock; no network access.
Run: python -m pytest zapcore/tests/test_zappers.py -v
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from zapcore.events import Event
from zapcore.lightning import encode_lnurl
from zapcore.zappers import ZapperDirectory, ZapperRecord

USER_PK: str = "aa" * 32
PROVIDER_PK: str = "bb" * 32
OTHER_PK: str = "cc" * 32

ADDRESS_URL = "https://example.com/.well-known/lnurlp/user"

ZAPPER_INFO: dict = {
    "allowsNostr": True,
    "nostrPubkey": PROVIDER_PK,
    "callback": "https://example.com/lnurlp/user/callback",
    "minSendable": 1000,
    "maxSendable": 100_000_000,
}


def _client(info: dict | None = None) -> MagicMock:
    client = MagicMock()
    client.fetch_zapper_info = AsyncMock(return_value=dict(info or ZAPPER_INFO))
    return client


def _kind0(
    profile: dict | str,
    created_at: int = 100,
    pubkey: str = USER_PK,
    kind: int = 0,
) -> Event:
    content = profile if isinstance(profile, str) else json.dumps(profile)
    return Event(pubkey=pubkey, created_at=created_at, kind=kind, content=content)


def _directory(client: MagicMock | None = None) -> ZapperDirectory:
    return ZapperDirectory(client or _client(), clock=lambda: 1_700_000_000.5)


# -- Happy path --------------------------------------------------------------------


@pytest.mark.asyncio
async def test_ingest_lud16() -> None:
    client = _client()
    directory = _directory(client)

    record = await directory.ingest(_kind0({"lud16": "User@Example.com"}))

    client.fetch_zapper_info.assert_awaited_once_with(ADDRESS_URL)
    assert record is not None
    assert directory.lookup(USER_PK) == record
    assert record == ZapperRecord(
        pubkey=USER_PK,
        lnurl=encode_lnurl(ADDRESS_URL),
        callback="https://example.com/lnurlp/user/callback",
        min_sendable=1000,
        max_sendable=100_000_000,
        nostr_pubkey=PROVIDER_PK,
        created_at=100,
        updated_at=1_700_000_000,
    )


@pytest.mark.asyncio
async def test_ingest_lud06() -> None:
    client = _client()
    directory = _directory(client)
    lud06 = encode_lnurl("https://pay.example.com/lnurlp/abc").upper()

    record = await directory.ingest(_kind0({"lud06": lud06}))

    client.fetch_zapper_info.assert_awaited_once_with("https://pay.example.com/lnurlp/abc")
    assert record is not None
    assert record.lnurl == encode_lnurl("https://pay.example.com/lnurlp/abc")


@pytest.mark.asyncio
async def test_lud16_preferred_over_lud06() -> None:
    client = _client()
    directory = _directory(client)
    lud06 = encode_lnurl("https://pay.example.com/lnurlp/abc")

    await directory.ingest(_kind0({"lud16": "user@example.com", "lud06": lud06}))

    client.fetch_zapper_info.assert_awaited_once_with(ADDRESS_URL)


@pytest.mark.asyncio
async def test_ingest_accepts_dict_event() -> None:
    directory = _directory()
    raw = {
        "id": "ef" * 32,
        "pubkey": USER_PK,
        "created_at": 100,
        "kind": 0,
        "tags": [],
        "content": json.dumps({"lud16": "user@example.com"}),
    }
    assert await directory.ingest(raw) is not None
    assert USER_PK in directory
    assert len(directory) == 1


# -- No-ops ------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_no_address_is_noop() -> None:
    client = _client()
    directory = _directory(client)

    assert await directory.ingest(_kind0({"name": "alice"})) is None
    client.fetch_zapper_info.assert_not_awaited()
    assert directory.lookup(USER_PK) is None


@pytest.mark.asyncio
async def test_bad_json_is_noop() -> None:
    client = _client()
    directory = _directory(client)

    assert await directory.ingest(_kind0("{not json")) is None
    assert await directory.ingest(_kind0("[1, 2]")) is None
    client.fetch_zapper_info.assert_not_awaited()


@pytest.mark.asyncio
async def test_wrong_kind_is_noop() -> None:
    client = _client()
    directory = _directory(client)

    assert await directory.ingest(_kind0({"lud16": "user@example.com"}, kind=1)) is None
    client.fetch_zapper_info.assert_not_awaited()


@pytest.mark.asyncio
async def test_unresolvable_address_is_noop() -> None:
    client = _client()
    directory = _directory(client)

    assert await directory.ingest(_kind0({"lud16": "notanaddress"})) is None
    assert await directory.ingest(_kind0({"lud16": "user@"})) is None
    client.fetch_zapper_info.assert_not_awaited()


# -- Staleness -----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_older_event_does_not_replace_newer() -> None:
    client = _client()
    directory = _directory(client)

    await directory.ingest(_kind0({"lud16": "new@example.com"}, created_at=100))
    assert await directory.ingest(_kind0({"lud16": "old@example.com"}, created_at=50)) is None

    record = directory.lookup(USER_PK)
    assert record is not None
    assert record.created_at == 100
    assert record.lnurl == encode_lnurl("https://example.com/.well-known/lnurlp/new")
    assert client.fetch_zapper_info.await_count == 1


@pytest.mark.asyncio
async def test_equal_timestamp_is_noop() -> None:
    client = _client()
    directory = _directory(client)

    first = await directory.ingest(_kind0({"lud16": "a@example.com"}, created_at=100))
    assert await directory.ingest(_kind0({"lud16": "b@example.com"}, created_at=100)) is None
    assert directory.lookup(USER_PK) == first


@pytest.mark.asyncio
async def test_newer_event_replaces() -> None:
    directory = _directory()

    await directory.ingest(_kind0({"lud16": "a@example.com"}, created_at=100))
    await directory.ingest(_kind0({"lud16": "b@example.com"}, created_at=200))

    record = directory.lookup(USER_PK)
    assert record is not None
    assert record.created_at == 200


@pytest.mark.asyncio
async def test_concurrent_ingest_same_pubkey_keeps_newest() -> None:
    """The slow older event must not overwrite the newer one once it resolves."""
    release_old = asyncio.Event()

    async def fetch(lnurl: str) -> dict:
        if lnurl.endswith("/old"):
            await release_old.wait()
        return dict(ZAPPER_INFO)

    client = MagicMock()
    client.fetch_zapper_info = AsyncMock(side_effect=fetch)
    directory = _directory(client)

    old_task = asyncio.create_task(
        directory.ingest(_kind0({"lud16": "old@example.com"}, created_at=50))
    )
    await asyncio.sleep(0)
    new_task = asyncio.create_task(
        directory.ingest(_kind0({"lud16": "new@example.com"}, created_at=100))
    )
    await asyncio.sleep(0)
    release_old.set()
    await asyncio.gather(old_task, new_task)

    record = directory.lookup(USER_PK)
    assert record is not None
    assert record.created_at == 100


@pytest.mark.asyncio
async def test_different_pubkeys_independent() -> None:
    directory = _directory()

    await directory.ingest(_kind0({"lud16": "a@example.com"}, created_at=100))
    await directory.ingest(_kind0({"lud16": "b@example.com"}, created_at=10, pubkey=OTHER_PK))

    assert directory.lookup(USER_PK) is not None
    assert directory.lookup(OTHER_PK) is not None


# -- Resolution failures ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_resolution_error_leaves_directory_unchanged() -> None:
    client = _client()
    client.fetch_zapper_info.side_effect = httpx.ConnectError("boom")
    directory = _directory(client)

    assert await directory.ingest(_kind0({"lud16": "user@example.com"})) is None
    assert directory.lookup(USER_PK) is None


@pytest.mark.asyncio
async def test_resolution_error_keeps_previous_record() -> None:
    client = _client()
    directory = _directory(client)
    first = await directory.ingest(_kind0({"lud16": "user@example.com"}, created_at=100))

    client.fetch_zapper_info.side_effect = httpx.ReadTimeout("slow")
    assert await directory.ingest(_kind0({"lud16": "user@example.com"}, created_at=200)) is None
    assert directory.lookup(USER_PK) == first


@pytest.mark.asyncio
@pytest.mark.parametrize("info", [
    {**ZAPPER_INFO, "allowsNostr": False},
    {k: v for k, v in ZAPPER_INFO.items() if k != "allowsNostr"},
    {**ZAPPER_INFO, "allowsNostr": "true"},
    {k: v for k, v in ZAPPER_INFO.items() if k != "nostrPubkey"},
    {**ZAPPER_INFO, "nostrPubkey": ""},
])
async def test_incomplete_zapper_info_rejected(info: dict) -> None:
    directory = _directory(_client(info))
    assert await directory.ingest(_kind0({"lud16": "user@example.com"})) is None
    assert directory.lookup(USER_PK) is None


# -- Registry / subscriptions ------------------------------------------------------------


def _record(created_at: int = 1) -> ZapperRecord:
    return ZapperRecord(
        pubkey=USER_PK,
        lnurl="lnurl1xyz",
        callback="",
        min_sendable=0,
        max_sendable=0,
        nostr_pubkey=PROVIDER_PK,
        created_at=created_at,
        updated_at=created_at,
    )


def test_set_and_get() -> None:
    directory = _directory()
    directory.set(_record())
    assert directory.get(USER_PK) == _record()
    assert directory.lookup(OTHER_PK) is None


def test_subscribe_and_unsubscribe() -> None:
    directory = _directory()
    seen: list[ZapperRecord] = []
    unsubscribe = directory.subscribe(seen.append)

    directory.set(_record(1))
    unsubscribe()
    directory.set(_record(2))

    assert seen == [_record(1)]


def test_failing_subscriber_does_not_block_others() -> None:
    directory = _directory()
    seen: list[ZapperRecord] = []
    directory.subscribe(MagicMock(side_effect=RuntimeError("bad subscriber")))
    directory.subscribe(seen.append)

    directory.set(_record())

    assert seen == [_record()]
    assert directory.lookup(USER_PK) == _record()


@pytest.mark.asyncio
async def test_ingest_notifies_subscribers() -> None:
    directory = _directory()
    seen: list[ZapperRecord] = []
    directory.subscribe(seen.append)

    record = await directory.ingest(_kind0({"lud16": "user@example.com"}))

    assert seen == [record]


@pytest.mark.asyncio
async def test_cleanup_idle_locks() -> None:
    directory = ZapperDirectory(_client(), lock_idle_seconds=-1.0)
    await directory.ingest(_kind0({"lud16": "user@example.com"}))
    assert directory.cleanup_idle_locks() == 1
    assert directory.cleanup_idle_locks() == 0
