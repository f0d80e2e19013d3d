"""
SQL persistence for the resilience engine.

Implements the engine's store and notifier contracts on top of SQLAlchemy
async sessions. Each call runs in its own session and commits before
returning.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lucid_core import get_logger
from lucid_core.exceptions import FeedNotFoundError
from lucid_core.schemas import (
    Candidate,
    DiscoveryAttempt,
    FeedHealthPatch,
    FeedRecord,
    HealingAttemptLog,
    HealingProfile,
    HealingProfilePatch,
    HealingStatus,
)
from lucid_core.schemas import FeedNotification as NotificationRecord
from lucid_core.schemas import FeedSubscription as SubscriptionRecord
from lucid_core.services.collaborators import Notifier, ResilienceStore

from .models import (
    FeedCatalog,
    FeedDiscoveryAttempt,
    FeedHealingProfile,
    FeedHealthAttempt,
    FeedNotification,
    FeedSubscription,
    generate_uuid,
)

logger = get_logger(__name__)

SUGGESTION_COOLDOWN = timedelta(hours=48)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; every stored timestamp is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _feed_record(row: FeedCatalog) -> FeedRecord:
    record = FeedRecord.model_validate(row)
    return record.model_copy(
        update={
            "topics": list(row.topics or []),
            "last_fetched_at": _aware(row.last_fetched_at),
            "last_healing_at": _aware(row.last_healing_at),
        }
    )


def _discovery_attempt(row: FeedDiscoveryAttempt) -> DiscoveryAttempt:
    return DiscoveryAttempt(
        id=row.id,
        original_feed_id=row.original_feed_id,
        candidate_feed_id=row.candidate_feed_id,
        candidate_url=row.candidate_url,
        strategy=row.strategy,
        confidence=row.confidence,
        auto_subscribed=row.auto_subscribed,
        accepted=row.accepted,
        user_note=row.user_note,
        metadata=dict(row.attempt_metadata or {}),
        validated_at=_aware(row.validated_at),
        processed_at=_aware(row.processed_at),
        created_at=_aware(row.created_at),
    )


def _healing_profile(row: FeedHealingProfile) -> HealingProfile:
    profile = HealingProfile.model_validate(row)
    return profile.model_copy(update={"last_updated": _aware(row.last_updated)})


def _healing_attempt(row: FeedHealthAttempt) -> HealingAttemptLog:
    return HealingAttemptLog(
        id=row.id,
        feed_id=row.feed_id,
        tactic=row.tactic,
        success=row.success,
        error_message=row.error_message,
        response_time_ms=row.response_time_ms,
        attempted_at=_aware(row.attempted_at),
        metadata=dict(row.attempt_metadata or {}),
    )


class SqlResilienceStore(ResilienceStore):
    """Feed catalog, discovery and healing persistence backed by SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Feed catalog
    # ------------------------------------------------------------------

    async def get_feed_by_id(self, feed_id: str) -> FeedRecord | None:
        async with self.session_factory() as session:
            row = await session.get(FeedCatalog, feed_id)
            return _feed_record(row) if row else None

    async def get_feed_catalog(
        self,
        *,
        active_only: bool = False,
        approved_only: bool = False,
        source_type: str | None = None,
    ) -> list[FeedRecord]:
        stmt = select(FeedCatalog).order_by(FeedCatalog.created_at)
        if active_only:
            stmt = stmt.where(FeedCatalog.is_active.is_(True))
        if approved_only:
            stmt = stmt.where(FeedCatalog.is_approved.is_(True))
        if source_type:
            stmt = stmt.where(FeedCatalog.source_type == source_type)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_feed_record(row) for row in result.scalars().all()]

    async def insert_or_find_catalog_entry(
        self, candidate: Candidate, defaults: FeedRecord | None = None
    ) -> FeedRecord:
        existing = await self._find_by_url(candidate.url)
        if existing is not None:
            return existing

        if defaults is not None:
            name = candidate.title or f"{defaults.name} (Alternative)"
            description = candidate.description or defaults.description or ""
            source_type = candidate.source_type or defaults.source_type
            topics = candidate.topics or list(defaults.topics)
            domain, category = defaults.domain, defaults.category
        else:
            name = candidate.title or candidate.url
            description = candidate.description or ""
            source_type = candidate.source_type or "journal"
            topics = list(candidate.topics)
            domain = category = None

        row = FeedCatalog(
            id=generate_uuid(),
            url=candidate.url,
            name=name,
            description=description,
            source_type=source_type,
            topics=topics,
            domain=domain,
            category=category,
            is_active=True,
            is_approved=True,
        )
        async with self.session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError:
                # Inserted concurrently under the same URL
                await session.rollback()
                existing = await self._find_by_url(candidate.url)
                if existing is None:
                    raise
                return existing
            record = _feed_record(row)

        logger.info(
            "Added alternative feed to catalog",
            extra={"feed_id": record.id, "url": record.url, "strategy": candidate.strategy},
        )
        return record

    async def _find_by_url(self, url: str) -> FeedRecord | None:
        stmt = select(FeedCatalog).where(func.lower(FeedCatalog.url) == url.lower()).limit(1)
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _feed_record(row) if row else None

    async def update_feed_health(self, feed_id: str, patch: FeedHealthPatch) -> None:
        async with self.session_factory() as session:
            row = await session.get(FeedCatalog, feed_id)
            if row is None:
                raise FeedNotFoundError(feed_id)
            for field, value in patch.changes().items():
                setattr(row, field, _column_value(value))
            await session.commit()

    async def get_all_feed_subscriptions(self) -> list[SubscriptionRecord]:
        async with self.session_factory() as session:
            result = await session.execute(select(FeedSubscription))
            return [SubscriptionRecord.model_validate(row) for row in result.scalars().all()]

    async def add_subscription(self, user_id: str, feed_id: str) -> SubscriptionRecord:
        """Subscribe a user to a catalog feed; existing subscriptions are returned as is."""
        async with self.session_factory() as session:
            stmt = select(FeedSubscription).where(
                FeedSubscription.user_id == user_id, FeedSubscription.feed_id == feed_id
            )
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
                row = FeedSubscription(id=generate_uuid(), user_id=user_id, feed_id=feed_id)
                session.add(row)
                await session.commit()
            return SubscriptionRecord.model_validate(row)

    async def auto_subscribe_users_to_alternative(self, old_feed_id: str, new_feed_id: str) -> int:
        if old_feed_id == new_feed_id:
            return 0

        async with self.session_factory() as session:
            old_subs = (
                await session.execute(
                    select(FeedSubscription).where(FeedSubscription.feed_id == old_feed_id)
                )
            ).scalars().all()
            already = set(
                (
                    await session.execute(
                        select(FeedSubscription.user_id).where(
                            FeedSubscription.feed_id == new_feed_id
                        )
                    )
                ).scalars().all()
            )

            moved = 0
            for sub in old_subs:
                if sub.user_id in already:
                    await session.delete(sub)
                    continue
                sub.feed_id = new_feed_id
                already.add(sub.user_id)
                moved += 1
            await session.commit()

        logger.info(
            "Migrated subscribers to alternative feed",
            extra={"old_feed_id": old_feed_id, "new_feed_id": new_feed_id, "moved": moved},
        )
        return moved

    # ------------------------------------------------------------------
    # Discovery attempts
    # ------------------------------------------------------------------

    async def get_discovery_attempt_count(self, feed_id: str) -> int:
        stmt = select(func.count()).select_from(FeedDiscoveryAttempt).where(
            FeedDiscoveryAttempt.original_feed_id == feed_id
        )
        async with self.session_factory() as session:
            return (await session.execute(stmt)).scalar_one()

    async def save_discovery_attempt(self, attempt: DiscoveryAttempt) -> DiscoveryAttempt:
        row = FeedDiscoveryAttempt(
            id=attempt.id or generate_uuid(),
            original_feed_id=attempt.original_feed_id,
            candidate_feed_id=attempt.candidate_feed_id,
            candidate_url=attempt.candidate_url,
            strategy=attempt.strategy,
            confidence=attempt.confidence,
            auto_subscribed=attempt.auto_subscribed,
            accepted=attempt.accepted,
            user_note=attempt.user_note,
            attempt_metadata=attempt.metadata,
            validated_at=attempt.validated_at,
            processed_at=attempt.processed_at,
        )
        async with self.session_factory() as session:
            session.add(row)
            await session.commit()
            return _discovery_attempt(row)

    async def get_discovery_attempts(self, feed_id: str) -> list[DiscoveryAttempt]:
        """Attempts recorded for a broken feed, highest confidence first."""
        stmt = (
            select(FeedDiscoveryAttempt)
            .where(FeedDiscoveryAttempt.original_feed_id == feed_id)
            .order_by(FeedDiscoveryAttempt.confidence.desc(), FeedDiscoveryAttempt.created_at)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_discovery_attempt(row) for row in result.scalars().all()]

    async def mark_discovery_accepted(
        self, attempt_id: str, accepted: bool, note: str | None = None
    ) -> bool:
        async with self.session_factory() as session:
            row = await session.get(FeedDiscoveryAttempt, attempt_id)
            if row is None:
                return False
            row.accepted = accepted
            if note is not None:
                row.user_note = note
            row.processed_at = _utcnow()
            await session.commit()
        return True

    # ------------------------------------------------------------------
    # Healing profiles and attempts
    # ------------------------------------------------------------------

    async def get_healing_profile(self, feed_id: str) -> HealingProfile | None:
        async with self.session_factory() as session:
            row = await session.get(FeedHealingProfile, feed_id)
            return _healing_profile(row) if row else None

    async def update_healing_profile(
        self, feed_id: str, patch: HealingProfilePatch
    ) -> HealingProfile:
        async with self.session_factory() as session:
            row = await session.get(FeedHealingProfile, feed_id)
            if row is None:
                row = FeedHealingProfile(
                    feed_id=feed_id, success_count=0, failure_count=0, avg_recovery_time_ms=0
                )
                session.add(row)
            for field, value in patch.changes().items():
                setattr(row, field, value)
            await session.commit()
            return _healing_profile(row)

    async def log_healing_attempt(self, attempt: HealingAttemptLog) -> HealingAttemptLog:
        row = FeedHealthAttempt(
            id=attempt.id or generate_uuid(),
            feed_id=attempt.feed_id,
            tactic=attempt.tactic,
            success=attempt.success,
            error_message=attempt.error_message,
            response_time_ms=attempt.response_time_ms,
            attempted_at=attempt.attempted_at,
            attempt_metadata=attempt.metadata,
        )
        async with self.session_factory() as session:
            session.add(row)
            await session.commit()
            return _healing_attempt(row)

    async def get_recent_healing_attempts(
        self, feed_id: str, limit: int = 10
    ) -> list[HealingAttemptLog]:
        stmt = (
            select(FeedHealthAttempt)
            .where(FeedHealthAttempt.feed_id == feed_id)
            .order_by(FeedHealthAttempt.attempted_at.desc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_healing_attempt(row) for row in result.scalars().all()]

    async def get_feeds_by_healing_status(self, status: HealingStatus) -> list[FeedRecord]:
        stmt = select(FeedCatalog).where(FeedCatalog.healing_status == _column_value(status))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_feed_record(row) for row in result.scalars().all()]

    async def get_healing_attempts_since(
        self, since: datetime | None = None, limit: int | None = None
    ) -> list[HealingAttemptLog]:
        stmt = select(FeedHealthAttempt).order_by(FeedHealthAttempt.attempted_at.desc())
        if since is not None:
            stmt = stmt.where(FeedHealthAttempt.attempted_at >= since.astimezone(UTC))
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_healing_attempt(row) for row in result.scalars().all()]


class SqlNotifier(Notifier):
    """
    Writes feed notifications for later delivery.

    Suggestions are throttled: a user is told about an alternative for the
    same broken feed at most once every 48 hours. Switch notices always go out.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cooldown: timedelta = SUGGESTION_COOLDOWN,
    ) -> None:
        self.session_factory = session_factory
        self.cooldown = cooldown

    async def notify_users_of_switch(
        self,
        user_ids: list[str],
        old_feed: FeedRecord,
        new_feed: FeedRecord,
        details: dict[str, Any] | None = None,
    ) -> int:
        message = (
            f'Your subscription to "{old_feed.name}" has been automatically switched to a '
            "working alternative because the original feed is no longer available."
        )
        rows = [
            self._notification(user_id, "switch", message, old_feed, new_feed, details)
            for user_id in dict.fromkeys(user_ids)
        ]
        async with self.session_factory() as session:
            session.add_all(rows)
            await session.commit()

        logger.info(
            "Notified users of feed switch",
            extra={"feed_id": old_feed.id, "new_feed_id": new_feed.id, "users": len(rows)},
        )
        return len(rows)

    async def notify_users_of_suggestion(
        self,
        user_ids: list[str],
        old_feed: FeedRecord,
        new_feed: FeedRecord,
        details: dict[str, Any] | None = None,
    ) -> int:
        message = (
            f'Alternative found for "{old_feed.name}": We found a replacement feed: '
            f'"{new_feed.name}". The original feed appears to be broken, would you like '
            "to switch to the alternative?"
        )
        cutoff = _utcnow() - self.cooldown

        async with self.session_factory() as session:
            recent = set(
                (
                    await session.execute(
                        select(FeedNotification.user_id).where(
                            FeedNotification.feed_id == old_feed.id,
                            FeedNotification.notification_type == "suggestion",
                            FeedNotification.created_at >= cutoff,
                        )
                    )
                ).scalars().all()
            )

            rows = []
            for user_id in dict.fromkeys(user_ids):
                if user_id in recent:
                    logger.debug(
                        "Already notified user about alternative recently",
                        extra={"user_id": user_id, "feed_id": old_feed.id},
                    )
                    continue
                rows.append(
                    self._notification(user_id, "suggestion", message, old_feed, new_feed, details)
                )
            session.add_all(rows)
            await session.commit()

        logger.info(
            "Notified users of alternative feed",
            extra={"feed_id": old_feed.id, "new_feed_id": new_feed.id, "users": len(rows)},
        )
        return len(rows)

    @staticmethod
    def _notification(
        user_id: str,
        notification_type: str,
        message: str,
        old_feed: FeedRecord,
        new_feed: FeedRecord,
        details: dict[str, Any] | None,
    ) -> FeedNotification:
        technical_details = {
            "old_feed_id": old_feed.id,
            "old_feed_name": old_feed.name,
            "new_feed_id": new_feed.id,
            "new_feed_name": new_feed.name,
            "new_feed_url": new_feed.url,
            **(details or {}),
        }
        return FeedNotification(
            id=generate_uuid(),
            user_id=user_id,
            feed_id=old_feed.id,
            notification_type=notification_type,
            severity="info",
            message=message,
            technical_details=technical_details,
            is_read=False,
            created_at=_utcnow(),
            updated_at=_utcnow(),
        )

    async def get_user_notifications(
        self, user_id: str, unread_only: bool = False
    ) -> list[NotificationRecord]:
        """A user's notifications, newest first."""
        stmt = (
            select(FeedNotification)
            .where(FeedNotification.user_id == user_id)
            .order_by(FeedNotification.created_at.desc())
        )
        if unread_only:
            stmt = stmt.where(FeedNotification.is_read.is_(False))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [NotificationRecord.model_validate(row) for row in result.scalars().all()]

    async def mark_notifications_read(self, user_id: str, notification_ids: list[str]) -> int:
        """Mark the given notifications of one user as read; return how many changed."""
        async with self.session_factory() as session:
            stmt = select(FeedNotification).where(
                FeedNotification.user_id == user_id,
                FeedNotification.id.in_(notification_ids),
                FeedNotification.is_read.is_(False),
            )
            rows = (await session.execute(stmt)).scalars().all()
            for row in rows:
                row.is_read = True
            await session.commit()
            return len(rows)

