from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, ClassVar, Dict, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.asn import AsnLine
from app.models.enums import StockCondition, TransactionType
from app.models.inventory_transaction import InventoryTransaction


@dataclass(frozen=True)
class AsnLineRef:
    """来源引用：ASN 行（reference_type='asn'）。"""

    asn_id: int
    line_id: int

    reference_type: ClassVar[str] = "asn"

    def columns(self) -> Dict[str, Any]:
        return {
            "reference_type": self.reference_type,
            "reference_id": int(self.asn_id),
            "reference_line_id": int(self.line_id),
        }


# 新的来源单据类型在这里并入 Union
LedgerRef = Union[AsnLineRef]


async def write_receipt(
    session: AsyncSession,
    *,
    inventory_id: int,
    ref: LedgerRef,
    quantity: int,
    condition: StockCondition,
    location: str,
    unit_cost: Optional[float] = None,
    lot_number: Optional[str] = None,
    expiry_date: Optional[date] = None,
    notes: Optional[str] = None,
    created_by: Optional[int] = None,
) -> int:
    """
    追加一条 receipt 流水（只增不改），返回流水 id。
    """
    if int(quantity) <= 0:
        raise ValueError("ledger receipt quantity must be positive")

    row = InventoryTransaction(
        inventory_id=int(inventory_id),
        transaction_type=TransactionType.RECEIPT.value,
        quantity=int(quantity),
        unit_cost=unit_cost,
        location=location,
        lot_number=lot_number or None,
        expiry_date=expiry_date,
        condition_status=StockCondition(condition).value,
        notes=notes or None,
        created_by=created_by,
        **ref.columns(),
    )
    session.add(row)
    await session.flush()
    return int(row.id)


async def count_for_reference(session: AsyncSession, *, reference_type: str, reference_id: int) -> int:
    stmt = select(func.count(InventoryTransaction.id)).where(
        InventoryTransaction.reference_type == reference_type,
        InventoryTransaction.reference_id == int(reference_id),
    )
    return int((await session.execute(stmt)).scalar() or 0)


async def history_for_asn(session: AsyncSession, asn_id: int) -> List[Dict[str, Any]]:
    """
    ASN 的收货流水（新 → 旧），附带行上的 SKU / 描述。
    """
    stmt = (
        select(InventoryTransaction, AsnLine.sku, AsnLine.description)
        .join(AsnLine, AsnLine.id == InventoryTransaction.reference_line_id)
        .where(
            InventoryTransaction.reference_type == AsnLineRef.reference_type,
            InventoryTransaction.reference_id == int(asn_id),
        )
        .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
    )
    out: List[Dict[str, Any]] = []
    for tx, sku, description in (await session.execute(stmt)).all():
        out.append(
            {
                "id": tx.id,
                "inventory_id": tx.inventory_id,
                "transaction_type": tx.transaction_type,
                "quantity": tx.quantity,
                "unit_cost": tx.unit_cost,
                "reference_id": tx.reference_id,
                "reference_line_id": tx.reference_line_id,
                "location": tx.location,
                "lot_number": tx.lot_number,
                "expiry_date": tx.expiry_date,
                "condition_status": tx.condition_status,
                "notes": tx.notes,
                "created_by": tx.created_by,
                "created_at": tx.created_at,
                "sku": sku,
                "description": description,
            }
        )
    return out
