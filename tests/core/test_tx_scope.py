# tests/core/test_tx_scope.py
from __future__ import annotations

import pytest
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.tx import TxScope
from app.models.activity_log import ActivityLog
from app.models.supplier import Supplier
from app.services.asn_errors import PersistenceError, StateConflictError
from app.services.asn_gateway import PersistenceGateway
from tests.services._helpers import OPERATOR, activity_actions


async def _supplier_codes(session: AsyncSession) -> list[str]:
    return list((await session.execute(select(Supplier.code).order_by(Supplier.id))).scalars().all())


@pytest.mark.asyncio
async def test_nested_begin_commits_only_at_outermost(session: AsyncSession):
    tx = TxScope(session)

    await tx.begin()
    await tx.begin()
    assert tx.depth == 2
    session.add(Supplier(code="S-NEST", name="nested", is_active=True))
    await session.flush()

    await tx.commit()
    assert tx.depth == 1
    assert session.in_transaction()

    # 外层回滚：内层“提交”的写入一并作废
    await tx.rollback()
    assert tx.depth == 0
    assert await _supplier_codes(session) == []


@pytest.mark.asyncio
async def test_inner_rollback_aborts_whole_scope(session: AsyncSession):
    tx = TxScope(session)

    with pytest.raises(RuntimeError):
        async with tx.atomic():
            session.add(Supplier(code="S-OUTER", name="outer", is_active=True))
            await session.flush()
            async with tx.atomic():
                raise RuntimeError("boom")

    assert tx.depth == 0
    assert not tx.active
    assert await _supplier_codes(session) == []


@pytest.mark.asyncio
async def test_atomic_commits_once(session: AsyncSession):
    tx = TxScope(session)

    async with tx.atomic():
        async with tx.atomic():
            session.add(Supplier(code="S-OK", name="ok", is_active=True))
        assert tx.depth == 1

    assert tx.depth == 0
    await session.rollback()
    assert await _supplier_codes(session) == ["S-OK"]


@pytest.mark.asyncio
async def test_commit_without_begin_is_an_error(session: AsyncSession):
    with pytest.raises(RuntimeError):
        await TxScope(session).commit()


@pytest.mark.asyncio
async def test_gateway_wraps_storage_failures(session: AsyncSession):
    gw = PersistenceGateway(session)

    async def _broken():
        session.add(Supplier(code="S-LOST", name="lost", is_active=True))
        await session.flush()
        await session.execute(text("SELECT * FROM table_that_does_not_exist"))

    with pytest.raises(PersistenceError) as ei:
        await gw.run("asn_probe", _broken, actor=OPERATOR, asn_id=77)

    assert ei.value.message == "Failed to asn probe"
    assert ei.value.status == 500
    assert not gw.tx.active
    assert await _supplier_codes(session) == []

    row = (
        await session.execute(select(ActivityLog).where(ActivityLog.action == "ASN_PROBE_ERROR"))
    ).scalars().one()
    assert row.level == "ERROR"
    assert row.asn_id == 77
    assert row.actor_id == OPERATOR.user_id
    assert "table_that_does_not_exist" in row.payload["error"]


@pytest.mark.asyncio
async def test_nested_run_audits_failure_once(session: AsyncSession):
    gw = PersistenceGateway(session)

    async def _inner():
        raise StateConflictError("inner conflict")

    async def _outer():
        await gw.run("asn_inner", _inner, actor=OPERATOR, asn_id=5)

    with pytest.raises(StateConflictError):
        await gw.run("asn_outer", _outer, actor=OPERATOR, asn_id=5)

    assert await activity_actions(session, 5) == ["ASN_OUTER_ERROR"]
