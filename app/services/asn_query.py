# app/services/asn_query.py
from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.asn import Asn, AsnLine
from app.services.asn_errors import NotFoundError


async def get_asn(session: AsyncSession, asn_id: int, *, for_update: bool = False) -> Asn:
    stmt = select(Asn).where(Asn.id == int(asn_id), Asn.deleted_at.is_(None))
    if for_update:
        stmt = stmt.with_for_update()
    asn = (await session.execute(stmt)).scalars().first()
    if asn is None:
        raise NotFoundError("ASN not found", context={"asn_id": int(asn_id)})
    return asn


async def get_line(session: AsyncSession, asn_id: int, line_id: int, *, for_update: bool = False) -> AsnLine:
    stmt = select(AsnLine).where(
        AsnLine.id == int(line_id),
        AsnLine.asn_id == int(asn_id),
        AsnLine.deleted_at.is_(None),
    )
    if for_update:
        stmt = stmt.with_for_update()
    line = (await session.execute(stmt)).scalars().first()
    if line is None:
        raise NotFoundError("Line item not found", context={"asn_id": int(asn_id), "line_id": int(line_id)})
    return line


async def list_alive_lines(session: AsyncSession, asn_id: int, *, for_update: bool = False) -> List[AsnLine]:
    stmt = (
        select(AsnLine)
        .where(AsnLine.asn_id == int(asn_id), AsnLine.deleted_at.is_(None))
        .order_by(AsnLine.line_number.asc(), AsnLine.id.asc())
    )
    if for_update:
        stmt = stmt.with_for_update()
    return list((await session.execute(stmt)).scalars().all())


async def next_line_number(session: AsyncSession, asn_id: int) -> int:
    """
    行号 = MAX(line_number)+1，软删行也算在内（行号不复用）。
    用 SQL 直接聚合，避免在 async 下触发关系懒加载。
    """
    stmt = select(func.coalesce(func.max(AsnLine.line_number), 0)).where(AsnLine.asn_id == int(asn_id))
    return int((await session.execute(stmt)).scalar() or 0) + 1


async def line_totals(session: AsyncSession, asn_id: int) -> Dict[str, Any]:
    stmt = select(
        func.count(AsnLine.id),
        func.coalesce(func.sum(AsnLine.quantity), 0),
        func.coalesce(func.sum(AsnLine.received_quantity), 0),
        func.coalesce(func.sum(AsnLine.processed_quantity), 0),
        func.coalesce(func.sum(AsnLine.quantity * func.coalesce(AsnLine.unit_cost, 0)), 0),
    ).where(AsnLine.asn_id == int(asn_id), AsnLine.deleted_at.is_(None))
    count, expected, received, processed, value = (await session.execute(stmt)).one()
    return {
        "total_lines": int(count or 0),
        "total_expected": int(expected or 0),
        "total_received": int(received or 0),
        "total_processed": int(processed or 0),
        "total_value": round(float(value or 0), 2),
    }
