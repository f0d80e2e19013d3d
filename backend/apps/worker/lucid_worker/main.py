"""
arq worker entry point.

Builds the resilience engine over the SQL store at startup, runs its poll
loop for the lifetime of the worker and schedules the periodic tasks.

Run with::

    arq lucid_worker.main.WorkerSettings
"""

from typing import Any

from arq import cron
from arq.connections import RedisSettings

from lucid_core import get_logger, init_logging
from lucid_core.config import resilience_config
from lucid_core.engine import ResilienceEngine
from lucid_database import SqlNotifier, SqlResilienceStore, close_database, init_database

from .tasks.discovery import (
    check_healing_health,
    queue_feed_discovery,
    record_discovery_decision,
    refresh_healing_patterns,
    scan_failing_feeds,
)

logger = get_logger(__name__)


async def startup(ctx: dict[str, Any]) -> None:
    """Initialize the database and start the engine's poll loop."""
    init_logging()
    session_factory = await init_database(resilience_config.database_url)

    engine = ResilienceEngine(
        SqlResilienceStore(session_factory),
        SqlNotifier(session_factory),
        config=resilience_config,
    )
    engine.start()
    ctx["engine"] = engine
    logger.info("Resilience worker started")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Stop the poll loop and release database connections."""
    engine: ResilienceEngine | None = ctx.get("engine")
    if engine is not None:
        await engine.stop()
    await close_database()
    logger.info("Resilience worker stopped")


class WorkerSettings:
    """arq worker configuration."""

    functions = [queue_feed_discovery, record_discovery_decision]

    cron_jobs = [
        cron(scan_failing_feeds, minute={0, 15, 30, 45}, run_at_startup=True),
        cron(refresh_healing_patterns, minute=5),
        cron(check_healing_health, minute=10),
    ]

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = RedisSettings.from_dsn(resilience_config.redis_url)
    max_jobs = 10
    job_timeout = 300
