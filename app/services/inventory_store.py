# app/services/inventory_store.py
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import utcnow
from app.models.enums import StockCondition
from app.models.inventory import InventoryRecord

log = logging.getLogger("wmsdu.inventory")


class InventoryStore:
    """
    SKU 级库存主记录的读写（只在 ASN 上架时被改）。

    读改写前一律 SELECT ... FOR UPDATE，避免两个并发上架丢失更新。
    """

    async def _select_for_update(self, session: AsyncSession, sku: str) -> Optional[InventoryRecord]:
        stmt = select(InventoryRecord).where(InventoryRecord.sku == sku).with_for_update()
        return (await session.execute(stmt)).scalars().first()

    async def lock_or_create(
        self,
        session: AsyncSession,
        *,
        sku: str,
        description: Optional[str] = None,
        unit_of_measure: Optional[str] = None,
        unit_cost: Optional[float] = None,
        actor_id: Optional[int] = None,
    ) -> InventoryRecord:
        """
        锁定 SKU 的库存行；不存在则懒创建（保存点内插入，唯一键冲突时重新加锁读取）。
        已软删的行直接复活，不另起新行（sku 全局唯一）。
        """
        rec = await self._select_for_update(session, sku)
        if rec is None:
            rec = InventoryRecord(
                sku=sku,
                description=description,
                unit_of_measure=unit_of_measure or "EA",
                on_hand_quantity=0,
                available_quantity=0,
                reserved_quantity=0,
                unit_cost=unit_cost,
                created_by=actor_id,
            )
            try:
                async with session.begin_nested():
                    session.add(rec)
                    await session.flush()
                log.info("inventory record created for sku=%s", sku)
            except IntegrityError:
                # 并发首建：对方已插入，改为加锁读取
                rec = await self._select_for_update(session, sku)
                if rec is None:
                    raise
        elif rec.deleted_at is not None:
            rec.deleted_at = None
            log.warning("inventory record revived for sku=%s", sku)
        return rec

    def apply_receipt(
        self,
        rec: InventoryRecord,
        *,
        quantity: int,
        condition: StockCondition,
        location: str,
        unit_cost: Optional[float] = None,
        actor_id: Optional[int] = None,
        received_on: Optional[date] = None,
    ) -> None:
        """
        上架入账：
        - on_hand 一律 += quantity
        - available 只有 good 才 += quantity
        - location 直接覆盖（不做多库位合并）
        """
        q = int(quantity)
        rec.on_hand_quantity = int(rec.on_hand_quantity or 0) + q
        if StockCondition(condition) is StockCondition.GOOD:
            rec.available_quantity = int(rec.available_quantity or 0) + q
        rec.location = location
        if unit_cost is not None:
            rec.unit_cost = unit_cost
        rec.last_received_date = received_on or date.today()
        rec.updated_by = actor_id
        rec.updated_at = utcnow()

    async def by_skus(self, session: AsyncSession, skus: Iterable[str]) -> Dict[str, InventoryRecord]:
        keys = sorted({s for s in skus if s})
        if not keys:
            return {}
        stmt = select(InventoryRecord).where(
            InventoryRecord.sku.in_(keys),
            InventoryRecord.deleted_at.is_(None),
        )
        return {r.sku: r for r in (await session.execute(stmt)).scalars().all()}
