# app/services/asn_state.py
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import utcnow
from app.models.asn import Asn, AsnLine
from app.models.enums import AsnStatus, ProcessStatus, ReceiveStatus

log = logging.getLogger("wmsdu.asn")

# 状态迁移表（人工 override 不受此表约束）
TRANSITIONS: Dict[AsnStatus, FrozenSet[AsnStatus]] = {
    AsnStatus.DRAFT: frozenset({AsnStatus.CONFIRMED, AsnStatus.CANCELLED}),
    AsnStatus.CONFIRMED: frozenset({AsnStatus.IN_TRANSIT, AsnStatus.CANCELLED}),
    AsnStatus.IN_TRANSIT: frozenset({AsnStatus.ARRIVED, AsnStatus.CANCELLED}),
    AsnStatus.ARRIVED: frozenset({AsnStatus.RECEIVING, AsnStatus.COMPLETED, AsnStatus.CANCELLED}),
    AsnStatus.RECEIVING: frozenset({AsnStatus.COMPLETED, AsnStatus.CANCELLED}),
    AsnStatus.COMPLETED: frozenset(),
    AsnStatus.CANCELLED: frozenset(),
}

EDITABLE: FrozenSet[AsnStatus] = frozenset({AsnStatus.DRAFT, AsnStatus.CONFIRMED})
PROCESSABLE: FrozenSet[AsnStatus] = frozenset({AsnStatus.ARRIVED, AsnStatus.RECEIVING})
TERMINAL: FrozenSet[AsnStatus] = frozenset(s for s, nxt in TRANSITIONS.items() if not nxt)


def can_transition(current: AsnStatus | str, target: AsnStatus | str) -> bool:
    return AsnStatus(target) in TRANSITIONS[AsnStatus(current)]


def is_editable(asn: Asn) -> bool:
    return AsnStatus(asn.status) in EDITABLE


def is_processable(asn: Asn) -> bool:
    return AsnStatus(asn.status) in PROCESSABLE


def receive_status(line: AsnLine) -> ReceiveStatus:
    received = int(line.received_quantity or 0)
    if received >= int(line.quantity or 0):
        return ReceiveStatus.COMPLETE
    if received > 0:
        return ReceiveStatus.PARTIAL
    return ReceiveStatus.PENDING


def process_status(line: AsnLine) -> ProcessStatus:
    received = int(line.received_quantity or 0)
    if received == 0:
        return ProcessStatus.NOT_PROCESSED
    if int(line.processed_quantity or 0) < received:
        return ProcessStatus.PARTIAL_PROCESSED
    return ProcessStatus.FULLY_PROCESSED


def set_status(asn: Asn, target: AsnStatus, *, actor_id: Optional[int]) -> None:
    now = utcnow()
    asn.status = target.value
    if target is AsnStatus.COMPLETED:
        asn.completed_at = now
    asn.updated_by = actor_id
    asn.updated_at = now


async def recompute_status(session: AsyncSession, asn: Asn, *, actor_id: Optional[int]) -> AsnStatus:
    """
    上架后重算 ASN 状态（同一事务内）：

    - 所有 received > 0 的行都满足 processed >= received → completed（盖 completed_at）
    - 否则 arrived → receiving
    """
    alive = and_(AsnLine.asn_id == asn.id, AsnLine.deleted_at.is_(None))
    open_count = (
        await session.execute(
            select(func.count(AsnLine.id)).where(
                alive,
                AsnLine.received_quantity > 0,
                AsnLine.processed_quantity < AsnLine.received_quantity,
            )
        )
    ).scalar() or 0
    received_count = (
        await session.execute(
            select(func.count(AsnLine.id)).where(alive, AsnLine.received_quantity > 0)
        )
    ).scalar() or 0

    current = AsnStatus(asn.status)
    if open_count == 0 and received_count > 0:
        target = AsnStatus.COMPLETED
    else:
        target = AsnStatus.RECEIVING

    if target is current:
        return current
    if not can_transition(current, target):
        log.warning("asn %s: skip auto transition %s -> %s", asn.id, current.value, target.value)
        return current

    set_status(asn, target, actor_id=actor_id)
    log.info("asn %s: auto transition %s -> %s", asn.id, current.value, target.value)
    return target
