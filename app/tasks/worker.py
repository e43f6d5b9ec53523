"""
ARQ worker configuration.

Run worker with: arq app.tasks.worker.WorkerSettings
"""

from typing import Any

from arq.connections import RedisSettings
from arq.worker import func

from app.config import settings
from app.core.logging import configure_logging, get_logger
from app.tasks.email_jobs import send_password_reset_email_job, send_verification_email_job

logger = get_logger(__name__)


async def startup(ctx: dict[str, Any]) -> None:
    configure_logging()
    logger.info("arq_worker_starting", environment=settings.ENVIRONMENT)


async def shutdown(ctx: dict[str, Any]) -> None:
    logger.info("arq_worker_shutdown")


class WorkerSettings:
    """ARQ worker configuration."""

    redis_settings = RedisSettings.from_dsn(settings.ARQ_REDIS_URL)

    max_jobs = 10
    job_timeout = 60  # SMTP send plus retries
    keep_result = settings.ARQ_KEEP_RESULT

    on_startup = startup
    on_shutdown = shutdown

    functions = [
        func(send_verification_email_job, max_tries=settings.ARQ_MAX_TRIES),
        func(send_password_reset_email_job, max_tries=settings.ARQ_MAX_TRIES),
    ]
