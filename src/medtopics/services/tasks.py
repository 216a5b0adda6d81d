"""Scheduled pipeline jobs for medtopics.

This module wires the discovery and refresh jobs into Taskiq. The
scheduler stack is an optional extra (``medtopics[scheduler]``) and is
only imported when a broker or scheduler is created.
"""

from dataclasses import asdict
from typing import TYPE_CHECKING, Any

from medtopics.config import PipelineSettings
from medtopics.logging import get_logger
from medtopics.utils.lazy_import import lazy_import

if TYPE_CHECKING:
    from medtopics.orchestrator import MedTopics

__all__ = [
    "DISCOVERY_TASK",
    "REFRESH_TASK",
    "create_broker",
    "create_scheduler",
    "register_jobs",
]

logger = get_logger(__name__)

DISCOVERY_TASK = "medtopics.discover_topics"
REFRESH_TASK = "medtopics.refresh_topics"

_get_stream_broker = lazy_import("taskiq_redis", "RedisStreamBroker", extra="scheduler")
_get_scheduler = lazy_import("taskiq", "TaskiqScheduler", extra="scheduler")
_get_label_source = lazy_import("taskiq.schedule_sources", "LabelScheduleSource", extra="scheduler")


def create_broker(redis_url: str) -> Any:
    """Create Taskiq broker for the pipeline jobs.

    Args:
        redis_url: Redis URL for the task stream

    Returns:
        Configured RedisStreamBroker
    """
    broker = _get_stream_broker()(url=redis_url)
    logger.info("taskiq_broker_created")
    return broker


def create_scheduler(broker: Any) -> Any:
    """Create Taskiq scheduler reading cron labels from registered tasks.

    Args:
        broker: Taskiq broker instance

    Returns:
        Configured TaskiqScheduler
    """
    scheduler = _get_scheduler()(broker, sources=[_get_label_source()(broker)])
    logger.info("taskiq_scheduler_created")
    return scheduler


def register_jobs(
    broker: Any,
    medtopics: "MedTopics",
    settings: PipelineSettings | None = None,
) -> dict[str, Any]:
    """Register the discovery and refresh jobs on a broker.

    The facade must stay connected for the worker's lifetime; its
    per-job locks make an overlapping trigger a logged no-op.

    Args:
        broker: Taskiq broker (or anything exposing ``task(...)``)
        medtopics: Connected MedTopics facade
        settings: Source of the cron expressions

    Returns:
        Mapping of task name to registered task

    Example:
        broker = create_broker("redis://localhost:6379")
        register_jobs(broker, medtopics)
        scheduler = create_scheduler(broker)
    """
    settings = settings or PipelineSettings()

    async def discover_topics() -> dict[str, Any]:
        result = await medtopics.run_ingestion()
        if result is None:
            return {"status": "skipped"}
        return {"status": "completed", **asdict(result)}

    async def refresh_topics() -> dict[str, Any]:
        result = await medtopics.run_refresh()
        if result is None:
            return {"status": "skipped"}
        return {"status": "completed", **asdict(result)}

    tasks = {
        DISCOVERY_TASK: broker.task(
            task_name=DISCOVERY_TASK,
            schedule=[{"cron": settings.discovery_cron}],
        )(discover_topics),
        REFRESH_TASK: broker.task(
            task_name=REFRESH_TASK,
            schedule=[{"cron": settings.refresh_cron}],
        )(refresh_topics),
    }
    logger.info(
        "scheduled_jobs_registered",
        discovery_cron=settings.discovery_cron,
        refresh_cron=settings.refresh_cron,
    )
    return tasks
