"""Integration tests for the expiry sweep worker."""
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from ipspay.models.payment_intent import PaymentIntent, PaymentIntentStatus
from ipspay.workers.expiry_sweep import WorkerSettings, sweep_expired_payments
from tests.utils.factories import PaymentIntentFactory


def _session_scope(db_session: AsyncSession):
    @asynccontextmanager
    async def scope():
        yield db_session
        await db_session.commit()

    return scope


@pytest.mark.asyncio
async def test_sweep_job_expires_overdue_intents(db_session: AsyncSession) -> None:
    overdue = PaymentIntent(**PaymentIntentFactory.create({"created_at": datetime.utcnow() - timedelta(hours=30)}))
    live = PaymentIntent(**PaymentIntentFactory.create())
    db_session.add_all([overdue, live])
    await db_session.commit()

    ctx = {"job_id": "test_run", "session_scope": _session_scope(db_session)}
    first = await sweep_expired_payments(ctx)
    second = await sweep_expired_payments(ctx)

    assert first == {"expired": 1, "status": "success"}
    assert second["expired"] == 0

    await db_session.refresh(overdue)
    await db_session.refresh(live)
    assert overdue.status == PaymentIntentStatus.EXPIRED
    assert live.status == PaymentIntentStatus.PENDING


def test_worker_schedules_hourly_sweep() -> None:
    assert sweep_expired_payments in WorkerSettings.functions
    assert len(WorkerSettings.cron_jobs) == 1
    assert WorkerSettings.cron_jobs[0].coroutine is sweep_expired_payments
    assert WorkerSettings.redis_settings.database == 1
