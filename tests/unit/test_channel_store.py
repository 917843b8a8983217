"""Unit tests for ChannelStore with a mocked asyncpg pool."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import asyncpg
import pytest

from account_service.errors import StoreUnavailableError
from account_service.services.channel_store import ChannelStore


class MockConnection:
    def __init__(self):
        self.fetchrow = AsyncMock()
        self.fetch = AsyncMock()


class MockPool:
    def __init__(self, conn):
        self._conn = conn

    def acquire(self):
        return _MockPoolAcquire(self._conn)


class _MockPoolAcquire:
    def __init__(self, conn):
        self._conn = conn

    async def __aenter__(self):
        return self._conn

    async def __aexit__(self, *args):
        pass


@pytest.fixture
def conn():
    return MockConnection()


@pytest.fixture
def channels(conn):
    return ChannelStore(MockPool(conn))


class TestChannelStats:
    """Tests for channel_stats aggregation."""

    async def test_maps_counts(self, channels, conn):
        conn.fetchrow.return_value = {
            "subscribers_count": 3,
            "channels_subscribed_to_count": 1,
            "is_subscribed": True,
        }
        channel_id, viewer_id = uuid4(), uuid4()

        stats = await channels.channel_stats(channel_id, viewer_id)

        assert stats.subscribers_count == 3
        assert stats.channels_subscribed_to_count == 1
        assert stats.is_subscribed is True
        assert conn.fetchrow.call_args.args[1:] == (channel_id, viewer_id)

    async def test_no_row_means_zero(self, channels, conn):
        conn.fetchrow.return_value = None

        stats = await channels.channel_stats(uuid4(), None)

        assert stats.subscribers_count == 0
        assert stats.is_subscribed is False

    async def test_connection_failure(self, channels, conn):
        conn.fetchrow.side_effect = asyncpg.InterfaceError("pool is closed")

        with pytest.raises(StoreUnavailableError):
            await channels.channel_stats(uuid4(), None)


class TestVideosByIds:
    """Tests for watch history video resolution."""

    async def test_empty_ids_skip_query(self, channels, conn):
        assert await channels.videos_by_ids([]) == []
        conn.fetch.assert_not_called()

    async def test_maps_rows_with_owner(self, channels, conn):
        video_id, owner_id = uuid4(), uuid4()
        conn.fetch.return_value = [
            {
                "id": video_id,
                "title": "Intro",
                "thumbnail": "https://media.test/t.png",
                "duration": 12.5,
                "views": 7,
                "created_at": datetime.now(timezone.utc),
                "owner_id": owner_id,
                "owner_username": "bob",
                "owner_full_name": "Bob",
                "owner_avatar": "https://media.test/b.png",
            }
        ]

        videos = await channels.videos_by_ids([video_id])

        assert len(videos) == 1
        assert videos[0].title == "Intro"
        assert videos[0].owner.id == owner_id
        assert videos[0].owner.username == "bob"
        assert "WITH ORDINALITY" in conn.fetch.call_args.args[0]
        assert conn.fetch.call_args.args[1] == [video_id]
