"""ARQ worker: background housekeeping."""

import logging

from arq import cron
from arq.connections import RedisSettings

from reelcut.config import get_settings
from reelcut.constants import ARQ_JOB_TIMEOUT, ARQ_MAX_JOBS

logger = logging.getLogger(__name__)


async def purge_reset_tokens_job(ctx: dict) -> int:
    """Cron job: drop expired and redeemed password reset tokens."""
    from reelcut.db.session import async_session_factory
    from reelcut.services.password_service import purge_reset_tokens

    async with async_session_factory() as db:
        removed = await purge_reset_tokens(db)
    logger.info("Purged %d password reset tokens", removed)
    return removed


class WorkerSettings:
    """ARQ worker configuration."""

    functions = [purge_reset_tokens_job]
    cron_jobs = [cron(purge_reset_tokens_job, minute=0)]  # Every hour at :00

    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)

    max_jobs = ARQ_MAX_JOBS
    job_timeout = ARQ_JOB_TIMEOUT
