# tests/services/_helpers.py
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import Actor
from app.models.activity_log import ActivityLog
from app.models.asn import Asn, AsnLine
from app.models.enums import Role
from app.models.inventory import InventoryRecord
from app.models.inventory_transaction import InventoryTransaction

VIEWER = Actor(user_id=1, role=Role.VIEWER)
OPERATOR = Actor(user_id=2, role=Role.OPERATOR)
SUPERVISOR = Actor(user_id=3, role=Role.SUPERVISOR)
MANAGER = Actor(user_id=4, role=Role.MANAGER)


def tomorrow() -> date:
    return date.today() + timedelta(days=1)


async def make_asn(
    session: AsyncSession,
    supplier_id: int,
    *,
    asn_number: str = "ASN-0001",
    status: str = "arrived",
    lines: Sequence[Dict[str, Any]] = (),
) -> Tuple[int, List[int]]:
    """
    直接落库构造 ASN + 行（绕过服务层，用于 arrange）。
    lines 元素：{"sku", "quantity", "received", "processed", "unit_cost", "lot_number", "expiry_date"}
    """
    asn = Asn(
        asn_number=asn_number,
        supplier_id=supplier_id,
        expected_date=tomorrow(),
        shipping_method="Truck",
        priority="normal",
        status=status,
    )
    session.add(asn)
    await session.flush()

    line_ids: List[int] = []
    for i, row in enumerate(lines, start=1):
        ln = AsnLine(
            asn_id=asn.id,
            line_number=i,
            sku=row["sku"],
            description=row.get("description", f"{row['sku']} desc"),
            quantity=int(row["quantity"]),
            received_quantity=int(row.get("received", 0)),
            processed_quantity=int(row.get("processed", 0)),
            unit_cost=row.get("unit_cost"),
            unit_of_measure="EA",
            lot_number=row.get("lot_number"),
            expiry_date=row.get("expiry_date"),
        )
        session.add(ln)
        await session.flush()
        line_ids.append(int(ln.id))

    asn_id = int(asn.id)
    await session.commit()
    return asn_id, line_ids


async def fetch_asn(session: AsyncSession, asn_id: int) -> Asn:
    stmt = select(Asn).where(Asn.id == asn_id).execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalars().one()


async def fetch_line(session: AsyncSession, line_id: int) -> AsnLine:
    stmt = select(AsnLine).where(AsnLine.id == line_id).execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalars().one()


async def fetch_inventory(session: AsyncSession, sku: str) -> Optional[InventoryRecord]:
    stmt = select(InventoryRecord).where(InventoryRecord.sku == sku).execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalars().first()


async def ledger_rows(session: AsyncSession, asn_id: int) -> List[InventoryTransaction]:
    stmt = (
        select(InventoryTransaction)
        .where(InventoryTransaction.reference_type == "asn", InventoryTransaction.reference_id == asn_id)
        .order_by(InventoryTransaction.id)
        .execution_options(populate_existing=True)
    )
    return list((await session.execute(stmt)).scalars().all())


async def count_rows(session: AsyncSession, model) -> int:
    return int((await session.execute(select(func.count()).select_from(model))).scalar() or 0)


async def activity_actions(session: AsyncSession, asn_id: Optional[int] = None) -> List[str]:
    stmt = select(ActivityLog.action).order_by(ActivityLog.id)
    if asn_id is not None:
        stmt = stmt.where(ActivityLog.asn_id == asn_id)
    return list((await session.execute(stmt)).scalars().all())


def assert_line_invariant(line: AsnLine) -> None:
    assert 0 <= line.processed_quantity <= line.received_quantity <= line.quantity
