"""
Background worker that expires overdue payment intents.

Pending intents past their deadline already read as expired through
``PaymentIntent.effective_status``; this job makes the stored state agree
and keeps the pending index small.

Schedule: every hour via ARQ cron.

Usage (with ARQ):
    arq ipspay.workers.expiry_sweep.WorkerSettings
"""
from datetime import datetime

import structlog
from arq import cron
from arq.connections import RedisSettings

from ipspay.config import settings
from ipspay.database import get_async_session
from ipspay.services.ledger_service import LedgerService

logger = structlog.get_logger(__name__)


async def sweep_expired_payments(ctx: dict) -> dict:
    """
    Run one expiry sweep in its own transaction.

    Args:
        ctx: ARQ context. ``session_scope`` may override the session factory.

    Returns:
        Dict with the number of intents expired
    """
    session_scope = ctx.get("session_scope", get_async_session)
    logger.info("expiry_sweep_started", job_id=ctx.get("job_id"))

    try:
        async with session_scope() as db:
            expired = await LedgerService(db).sweep_expired()
    except Exception as e:
        logger.exception("expiry_sweep_failed", exc_info=e)
        raise

    logger.info("expiry_sweep_completed", expired=expired)
    return {"expired": expired, "status": "success"}


class WorkerSettings:
    """
    ARQ worker settings for the payment expiry sweep.

    Usage:
        arq ipspay.workers.expiry_sweep.WorkerSettings
    """

    functions = [sweep_expired_payments]

    cron_jobs = [
        cron(sweep_expired_payments, minute=0, timeout=600),  # every hour at minute 0
    ]

    redis_settings = RedisSettings.from_dsn(str(settings.arq_redis_url))

    keep_result = 86400
    max_jobs = 10
    job_timeout = 600


if __name__ == "__main__":
    """
    Run one sweep manually.

    Usage:
        python -m ipspay.workers.expiry_sweep
    """
    import asyncio

    async def main():
        ctx = {"job_id": f"manual_{datetime.utcnow().isoformat()}"}
        result = await sweep_expired_payments(ctx)
        print(f"Expired {result['expired']} payment intent(s)")

    asyncio.run(main())
