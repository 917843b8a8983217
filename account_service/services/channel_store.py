"""Read-only queries over subscriptions and videos.

Neither relation is owned by the account core; this module only aggregates
and resolves them.
"""

from typing import Optional, Protocol
from uuid import UUID

import asyncpg
import structlog

from account_service.database import acquire
from account_service.models.account import ChannelStats, VideoOwner, WatchedVideo

logger = structlog.get_logger(__name__)


class ChannelRepository(Protocol):
    """Read-side collaborator for channel statistics and watched videos."""

    async def channel_stats(self, channel_id: UUID, viewer_id: Optional[UUID]) -> ChannelStats:
        ...

    async def videos_by_ids(self, video_ids: list[UUID]) -> list[WatchedVideo]:
        ...


class ChannelStore:
    """Channel aggregation over the ``subscriptions`` and ``videos`` tables."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def channel_stats(self, channel_id: UUID, viewer_id: Optional[UUID]) -> ChannelStats:
        """Count subscribers and subscriptions for a channel.

        Args:
            channel_id: Account viewed as a channel
            viewer_id: Account asking; None means an anonymous viewer

        Returns:
            ChannelStats with both counts and whether the viewer subscribes
        """
        async with acquire(self._pool) as conn:
            row = await conn.fetchrow(
                """
                SELECT
                    (SELECT COUNT(*) FROM subscriptions WHERE channel_id = $1) AS subscribers_count,
                    (SELECT COUNT(*) FROM subscriptions WHERE subscriber_id = $1)
                        AS channels_subscribed_to_count,
                    EXISTS (
                        SELECT 1 FROM subscriptions
                        WHERE channel_id = $1 AND subscriber_id = $2
                    ) AS is_subscribed
                """,
                channel_id,
                viewer_id,
            )

        if row is None:
            return ChannelStats()

        return ChannelStats(
            subscribers_count=row["subscribers_count"],
            channels_subscribed_to_count=row["channels_subscribed_to_count"],
            is_subscribed=bool(row["is_subscribed"]),
        )

    async def videos_by_ids(self, video_ids: list[UUID]) -> list[WatchedVideo]:
        """Resolve video ids with their owners, preserving the input order.

        Ids with no matching video are skipped.
        """
        if not video_ids:
            return []

        async with acquire(self._pool) as conn:
            rows = await conn.fetch(
                """
                SELECT
                    v.id, v.title, v.thumbnail, v.duration, v.views, v.created_at,
                    o.id AS owner_id, o.username AS owner_username,
                    o.full_name AS owner_full_name, o.avatar AS owner_avatar
                FROM unnest($1::uuid[]) WITH ORDINALITY AS h(video_id, position)
                JOIN videos v ON v.id = h.video_id
                JOIN accounts o ON o.id = v.owner_id
                ORDER BY h.position
                """,
                video_ids,
            )

        logger.debug("watched_videos_resolved", requested=len(video_ids), found=len(rows))

        return [
            WatchedVideo(
                id=row["id"],
                title=row["title"],
                thumbnail=row["thumbnail"],
                duration=row["duration"],
                views=row["views"],
                created_at=row["created_at"],
                owner=VideoOwner(
                    id=row["owner_id"],
                    username=row["owner_username"],
                    full_name=row["owner_full_name"],
                    avatar=row["owner_avatar"],
                ),
            )
            for row in rows
        ]
