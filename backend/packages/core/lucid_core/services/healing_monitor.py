"""
Healing monitor.

Read-only aggregation over the healing attempt log, healing profiles and
feed catalog: metrics, dashboard, trends, failure clustering and health
reports. Errors propagate to the caller.
"""

from datetime import UTC, datetime, timedelta

from lucid_core import get_logger
from lucid_core.schemas import (
    FailurePattern,
    FeedHealingHistory,
    FeedRecord,
    FetchStatus,
    HealingAttemptLog,
    HealingDashboard,
    HealingHealthReport,
    HealingMetrics,
    HealingStatus,
    OverallHealth,
    SuccessTrendPoint,
    TacticPerformance,
)

from .collaborators import ResilienceStore

logger = get_logger(__name__)

DASHBOARD_WINDOW = 100
DASHBOARD_RECENT = 20
REPORT_WINDOW = 1000
PATTERN_WINDOW = 500
TREND_DAYS = 7
CRITICAL_FAILURES = 5
CRITICAL_FEEDS_LIMIT = 10
TOP_TACTICS_LIMIT = 5
MOST_SUCCESSFUL_LIMIT = 3

TIMEOUT_ERRORS = "Timeout Errors"
NOT_FOUND = "Resource Not Found"
ACCESS_FORBIDDEN = "Access Forbidden"
TLS_ISSUES = "SSL/Certificate Issues"
PARSING_ERRORS = "Parsing Errors"
RATE_LIMITING = "Rate Limiting"
OTHER_ERRORS = "Other Errors"

# Checked in order; first bucket with a matching fragment wins
FAILURE_BUCKETS: list[tuple[str, tuple[str, ...]]] = [
    (TIMEOUT_ERRORS, ("timeout", "etimedout", "timed out")),
    (NOT_FOUND, ("404", "not found")),
    (ACCESS_FORBIDDEN, ("403", "forbidden")),
    (TLS_ISSUES, ("ssl", "certificate", "tls")),
    (PARSING_ERRORS, ("parse", "xml", "json")),
    (RATE_LIMITING, ("rate", "429")),
]

SUGGESTED_ACTIONS = {
    TIMEOUT_ERRORS: "Increase timeout duration or check network connectivity",
    NOT_FOUND: "Feed URL may have changed, consider discovery service",
    ACCESS_FORBIDDEN: "Feed may require authentication or has blocked access",
    TLS_ISSUES: "SSL certificate may be expired or invalid",
    PARSING_ERRORS: "Feed format may have changed, update parsing logic",
    RATE_LIMITING: "Implement backoff strategy or reduce fetch frequency",
    OTHER_ERRORS: "Review logs for specific error details",
}


def classify_error(error: str | None) -> str:
    """Failure bucket for an error message."""
    text = (error or "").lower()
    for bucket, fragments in FAILURE_BUCKETS:
        if any(fragment in text for fragment in fragments):
            return bucket
    return OTHER_ERRORS


def _success_percent(attempts: list[HealingAttemptLog]) -> float:
    if not attempts:
        return 0.0
    return sum(1 for a in attempts if a.success) / len(attempts) * 100


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class HealingMonitor:
    """Metrics and reports over healing activity."""

    def __init__(self, store: ResilienceStore) -> None:
        self.store = store

    async def get_recent_attempts(self, limit: int) -> list[HealingAttemptLog]:
        return await self.store.get_healing_attempts_since(None, limit)

    async def calculate_metrics(self, attempts: list[HealingAttemptLog]) -> HealingMetrics:
        tactic_stats: dict[str, list[int]] = {}
        total_response = 0
        response_count = 0
        for attempt in attempts:
            counts = tactic_stats.setdefault(attempt.tactic, [0, 0])
            counts[1] += 1
            if attempt.success:
                counts[0] += 1
            if attempt.response_time_ms:
                total_response += attempt.response_time_ms
                response_count += 1

        by_tactic = {
            tactic: success / total * 100 for tactic, (success, total) in tactic_stats.items()
        }
        most_successful = [
            tactic
            for tactic, _ in sorted(by_tactic.items(), key=lambda item: item[1], reverse=True)
        ][:MOST_SUCCESSFUL_LIMIT]

        healing = await self.store.get_feeds_by_healing_status(HealingStatus.HEALING)
        healed = await self.store.get_feeds_by_healing_status(HealingStatus.HEALED)
        failed = await self.store.get_feeds_by_healing_status(HealingStatus.FAILED)

        successful = sum(1 for a in attempts if a.success)
        return HealingMetrics(
            total_attempts=len(attempts),
            successful_attempts=successful,
            failed_attempts=len(attempts) - successful,
            average_healing_time=(
                total_response / response_count / 1000 if response_count else 0.0
            ),
            success_rate_by_tactic=by_tactic,
            most_successful_tactics=most_successful,
            feeds_currently_healing=len(healing),
            feeds_healed=len(healed),
            feeds_failed=len(failed),
        )

    async def get_dashboard(self) -> HealingDashboard:
        recent = await self.get_recent_attempts(DASHBOARD_WINDOW)
        return HealingDashboard(
            metrics=await self.calculate_metrics(recent),
            recent_attempts=recent[:DASHBOARD_RECENT],
            active_feeds_under_healing=await self.store.get_feeds_by_healing_status(
                HealingStatus.HEALING
            ),
            critical_feeds=await self.get_critical_feeds(),
            success_trends=await self.calculate_success_trends(TREND_DAYS),
        )

    async def get_success_rate(self, hours: float | None = None, days: float | None = None) -> float:
        """Percentage of successful attempts in the window; 0 when there were none."""
        now = datetime.now(UTC)
        if hours:
            since = now - timedelta(hours=hours)
        elif days:
            since = now - timedelta(days=days)
        else:
            since = now
        attempts = await self.store.get_healing_attempts_since(since)
        return _success_percent(attempts)

    async def get_failure_patterns(self) -> list[FailurePattern]:
        """Cluster recent failures by error category, most frequent first."""
        recent = await self.get_recent_attempts(PATTERN_WINDOW)

        clusters: dict[str, tuple[list[int], list[str]]] = {}
        for attempt in recent:
            if attempt.success:
                continue
            bucket = classify_error(attempt.error_message or "Unknown error")
            frequency, feeds = clusters.setdefault(bucket, ([0], []))
            frequency[0] += 1
            if attempt.feed_id not in feeds:
                feeds.append(attempt.feed_id)

        patterns = [
            FailurePattern(
                pattern=bucket,
                frequency=frequency[0],
                affected_feeds=feeds,
                suggested_action=SUGGESTED_ACTIONS[bucket],
            )
            for bucket, (frequency, feeds) in clusters.items()
        ]
        patterns.sort(key=lambda p: p.frequency, reverse=True)
        return patterns

    async def generate_health_report(self) -> HealingHealthReport:
        recent = await self.get_recent_attempts(REPORT_WINDOW)
        metrics = await self.calculate_metrics(recent)
        failure_patterns = await self.get_failure_patterns()

        success_rate = metrics.success_rate
        if success_rate >= 80:
            overall = OverallHealth.HEALTHY
        elif success_rate >= 50:
            overall = OverallHealth.DEGRADED
        else:
            overall = OverallHealth.CRITICAL

        return HealingHealthReport(
            timestamp=datetime.now(UTC),
            overall_health=overall,
            metrics=metrics,
            recommendations=self.generate_recommendations(metrics, failure_patterns),
            failure_patterns=failure_patterns,
            top_performing_tactics=await self.get_top_performing_tactics(),
            critical_issues=self.identify_critical_issues(metrics, failure_patterns),
        )

    async def get_feed_healing_history(self, feed_id: str, limit: int = 50) -> FeedHealingHistory:
        feed = await self.store.get_feed_by_id(feed_id)
        profile = await self.store.get_healing_profile(feed_id)
        attempts = await self.store.get_recent_healing_attempts(feed_id, limit)

        successes = [a for a in attempts if a.success]
        average_recovery = (
            sum(a.response_time_ms or 0 for a in successes) / len(successes) if successes else 0.0
        )

        tactic_stats: dict[str, list[int]] = {}
        for attempt in attempts:
            counts = tactic_stats.setdefault(attempt.tactic, [0, 0])
            counts[1] += 1
            if attempt.success:
                counts[0] += 1

        most_successful: str | None = None
        best_rate = 0.0
        for tactic, (success, total) in tactic_stats.items():
            rate = success / total
            if rate > best_rate:
                best_rate = rate
                most_successful = tactic

        return FeedHealingHistory(
            feed=feed,
            healing_profile=profile,
            recent_attempts=attempts,
            success_rate=_success_percent(attempts),
            average_recovery_time=average_recovery,
            most_successful_tactic=most_successful,
        )

    async def get_critical_feeds(self) -> list[FeedRecord]:
        feeds = await self.store.get_feed_catalog()
        critical = [
            feed
            for feed in feeds
            if feed.consecutive_failures >= CRITICAL_FAILURES
            or feed.last_fetch_status == FetchStatus.PERMANENT_ERROR
        ]
        return critical[:CRITICAL_FEEDS_LIMIT]

    async def calculate_success_trends(self, days: int) -> list[SuccessTrendPoint]:
        """Success rate per UTC day, oldest first, ending today."""
        today = datetime.now(UTC).replace(hour=0, minute=0, second=0, microsecond=0)
        start = today - timedelta(days=days - 1)
        attempts = await self.store.get_healing_attempts_since(start)

        trends: list[SuccessTrendPoint] = []
        for offset in range(days):
            day_start = start + timedelta(days=offset)
            day_end = day_start + timedelta(days=1)
            day_attempts = [
                a for a in attempts if day_start <= _aware(a.attempted_at) < day_end
            ]
            trends.append(
                SuccessTrendPoint(
                    date=day_start.date().isoformat(),
                    success_rate=_success_percent(day_attempts),
                    attempt_count=len(day_attempts),
                )
            )
        return trends

    async def get_top_performing_tactics(self) -> list[TacticPerformance]:
        attempts = await self.get_recent_attempts(PATTERN_WINDOW)

        stats: dict[str, list[int]] = {}
        for attempt in attempts:
            counts = stats.setdefault(attempt.tactic, [0, 0, 0])  # successes, total, recovery ms
            counts[1] += 1
            if attempt.success:
                counts[0] += 1
                counts[2] += attempt.response_time_ms or 0

        tactics = [
            TacticPerformance(
                tactic=tactic,
                success_rate=success / total * 100,
                avg_recovery_time=recovery / success / 1000 if success else 0.0,
            )
            for tactic, (success, total, recovery) in stats.items()
        ]
        tactics.sort(key=lambda t: t.success_rate, reverse=True)
        return tactics[:TOP_TACTICS_LIMIT]

    @staticmethod
    def generate_recommendations(
        metrics: HealingMetrics, failure_patterns: list[FailurePattern]
    ) -> list[str]:
        recommendations: list[str] = []

        success_rate = metrics.success_rate
        if success_rate < 50:
            recommendations.append(
                "Critical: Overall healing success rate is below 50%. "
                "Immediate investigation required."
            )
        elif success_rate < 80:
            recommendations.append(
                "Warning: Healing success rate is below optimal levels. Review failure patterns."
            )

        if failure_patterns and failure_patterns[0].frequency > 10:
            top = failure_patterns[0]
            recommendations.append(
                f'Address "{top.pattern}" affecting {len(top.affected_feeds)} feeds.'
            )

        if metrics.average_healing_time > 30:
            recommendations.append(
                "Average healing time exceeds 30 seconds. Consider optimizing healing tactics."
            )

        for tactic, rate in metrics.success_rate_by_tactic.items():
            if rate < 30:
                recommendations.append(
                    f'Tactic "{tactic}" has a success rate below 30%. '
                    "Consider removing or improving it."
                )

        if metrics.most_successful_tactics:
            recommendations.append(
                "Prioritize using these successful tactics: "
                + ", ".join(metrics.most_successful_tactics)
            )

        return recommendations

    @staticmethod
    def identify_critical_issues(
        metrics: HealingMetrics, failure_patterns: list[FailurePattern]
    ) -> list[str]:
        issues: list[str] = []

        if metrics.feeds_failed > 10:
            issues.append(
                f"{metrics.feeds_failed} feeds have permanently failed. Manual intervention required."
            )

        if metrics.success_rate < 30:
            issues.append(
                "Critical: Healing success rate is below 30%. System may be experiencing major issues."
            )

        affected = {feed_id for pattern in failure_patterns for feed_id in pattern.affected_feeds}
        if len(affected) > 20:
            issues.append(
                f"{len(affected)} feeds are experiencing healing failures. Possible systemic issue."
            )

        for pattern in failure_patterns:
            if pattern.pattern == ACCESS_FORBIDDEN and pattern.frequency > 5:
                issues.append(
                    "Multiple feeds experiencing access issues. "
                    "May need to update authentication or user agent."
                )
            if pattern.pattern == RATE_LIMITING and pattern.frequency > 3:
                issues.append(
                    "Rate limiting detected. Reduce fetch frequency or implement better backoff strategy."
                )

        return issues

    async def check_and_alert(self) -> float:
        """Log an alert when the last hour's success rate is low; return that rate."""
        success_rate = await self.get_success_rate(hours=1)
        if success_rate < 30:
            logger.error(
                "Healing success rate critically low in the last hour",
                extra={"success_rate": round(success_rate, 1)},
            )
        elif success_rate < 50:
            logger.warning(
                "Healing success rate below 50% in the last hour",
                extra={"success_rate": round(success_rate, 1)},
            )
        return success_rate
