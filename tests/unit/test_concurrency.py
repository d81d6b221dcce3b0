"""Concurrent admissions for one user against a file-backed SQLite database."""

import asyncio
from collections import Counter

import pytest
from sqlalchemy import update

from usage_governor.admission.controller import AdmissionController
from usage_governor.admission.cooldown import CooldownGuard
from usage_governor.admission.decisions import Allowed, DecisionStatus
from usage_governor.admission.features import Feature
from usage_governor.admission.quota import QuotaEvaluator
from usage_governor.admission.rate_limiter import RateLimiter
from usage_governor.audit.service import UsageAuditLog
from usage_governor.common.config import GovernorSettings
from usage_governor.common.database import DatabaseManager
from usage_governor.credits.ledger import CreditLedger
from usage_governor.usage.models import UsageRecordModel
from usage_governor.usage.store import UsageRecordStore

USER = "busy-user"


@pytest.fixture
async def db(tmp_path):
    settings = GovernorSettings(db_url=f"sqlite+aiosqlite:///{tmp_path / 'governor.db'}")
    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def controller(db, clock):
    store = UsageRecordStore()
    audit = UsageAuditLog(db)
    return AdmissionController(
        db,
        store,
        RateLimiter(store),
        CooldownGuard(),
        QuotaEvaluator(store),
        CreditLedger(store, audit),
        audit,
        clock=clock,
    )


async def _burst(controller, n, feature):
    return await asyncio.gather(*(controller.admit(USER, feature) for _ in range(n)))


async def _record(controller) -> UsageRecordModel:
    async with controller.db.get_session() as session:
        return await controller.store.require(session, USER)


class TestConcurrentAdmission:
    async def test_rate_limit_never_exceeded(self, controller):
        decisions = await _burst(controller, 150, Feature.AI_SEARCH)
        statuses = Counter(d.status for d in decisions)

        assert statuses[DecisionStatus.RATE_LIMITED] == 50
        assert statuses[DecisionStatus.ALLOWED] + statuses[DecisionStatus.QUOTA_EXCEEDED] == 100
        assert statuses[DecisionStatus.SYSTEM_FAILURE] == 0

        record = await _record(controller)
        assert record.hourly_count == 100
        assert record.daily_count == 100

    async def test_quota_never_exceeded(self, controller):
        decisions = await _burst(controller, 25, Feature.AI_SEARCH)
        allowed = [d for d in decisions if isinstance(d, Allowed)]

        assert len(allowed) == 20
        assert sorted(d.used for d in allowed) == list(range(1, 21))
        assert sum(d.status is DecisionStatus.QUOTA_EXCEEDED for d in decisions) == 5
        assert (await _record(controller)).ai_search_count == 20

    async def test_credits_never_go_negative(self, controller):
        async with controller.db.get_session() as session:
            await controller.store.ensure(session, USER, controller.clock())
            await session.execute(
                update(UsageRecordModel)
                .where(UsageRecordModel.user_id == USER)
                .values(ai_search_count=20)
            )
        async with controller.db.get_session() as session:
            await controller.ledger.grant(session, USER, 10, controller.clock())

        decisions = await _burst(controller, 15, Feature.AI_SEARCH)
        paid = [d for d in decisions if isinstance(d, Allowed)]

        assert len(paid) == 10
        assert all(d.credits_charged == 1 for d in paid)
        assert sorted(d.credits_remaining for d in paid) == list(range(0, 10))
        assert sum(d.status is DecisionStatus.QUOTA_EXCEEDED for d in decisions) == 5

        record = await _record(controller)
        assert record.available_credits == 0
        async with controller.db.get_session() as session:
            transactions = await controller.ledger.get_transactions(session, USER, limit=50)
        assert sum(1 for t in transactions if t.amount == -1) == 10

    async def test_cooldown_admits_one_of_a_burst(self, controller):
        decisions = await _burst(controller, 10, Feature.AI_GRANT_WRITING)
        statuses = Counter(d.status for d in decisions)

        assert statuses[DecisionStatus.ALLOWED] == 1
        assert statuses[DecisionStatus.COOLDOWN_ACTIVE] == 9
        assert (await _record(controller)).ai_grant_writing_count == 1
