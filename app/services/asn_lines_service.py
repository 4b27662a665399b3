# app/services/asn_lines_service.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from app.core.actor import Actor
from app.db.base import utcnow
from app.models.asn import Asn, AsnLine
from app.services import activity_logger
from app.services.asn_errors import StateConflictError, ValidationError
from app.services.asn_gateway import PersistenceGateway
from app.services.asn_query import get_asn, get_line, list_alive_lines, next_line_number
from app.services.asn_state import is_editable, is_processable, process_status, receive_status
from app.services.inventory_store import InventoryStore

log = logging.getLogger("wmsdu.asn")

SKU_MAX_LEN = 50


def _clean(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _validate_line_fields(sku: Optional[str], quantity: Any) -> List[str]:
    errors: List[str] = []
    sku_s = _clean(sku)
    if not sku_s:
        errors.append("SKU is required")
    elif len(sku_s) > SKU_MAX_LEN:
        errors.append(f"SKU cannot exceed {SKU_MAX_LEN} characters")
    try:
        q = int(quantity)
    except (TypeError, ValueError):
        q = 0
    if q <= 0:
        errors.append("Quantity must be greater than 0")
    return errors


def _require_editable(asn: Asn) -> None:
    if not is_editable(asn):
        raise StateConflictError(
            "ASN cannot be edited in current status",
            context={"asn_id": asn.id, "status": asn.status},
        )


class AsnLinesService:
    """
    ASN 行维护：增 / 改 / 删（软删） / 收货登记 / 列表。

    - 增改删只在 draft / confirmed 下允许
    - 收货只在 arrived / receiving 下允许，且只改 received_quantity（不动库存）
    """

    def __init__(self, gateway: PersistenceGateway, inventory: Optional[InventoryStore] = None):
        self.gw = gateway
        self.inventory = inventory or InventoryStore()

    async def add_line(
        self,
        asn_id: int,
        *,
        actor: Actor,
        sku: str,
        quantity: int,
        description: Optional[str] = None,
        unit_cost: Optional[float] = None,
        unit_of_measure: Optional[str] = None,
        lot_number: Optional[str] = None,
        expiry_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> int:
        session = self.gw.session

        async def _do() -> int:
            asn = await get_asn(session, asn_id, for_update=True)
            _require_editable(asn)
            errors = _validate_line_fields(sku, quantity)
            if errors:
                raise ValidationError(errors)

            line = AsnLine(
                asn_id=asn.id,
                line_number=await next_line_number(session, asn.id),
                sku=_clean(sku),
                description=_clean(description),
                quantity=int(quantity),
                received_quantity=0,
                processed_quantity=0,
                unit_cost=unit_cost,
                unit_of_measure=_clean(unit_of_measure) or "EA",
                lot_number=_clean(lot_number),
                expiry_date=expiry_date,
                notes=_clean(notes),
                created_by=actor.user_id,
            )
            session.add(line)
            await session.flush()
            await activity_logger.record(
                session,
                action="ASN_LINE_ADDED",
                actor=actor,
                asn_id=asn.id,
                payload={"line_id": line.id, "sku": line.sku, "quantity": line.quantity},
            )
            return int(line.id)

        return await self.gw.run(
            "asn_line_add", _do, actor=actor, asn_id=asn_id, payload={"sku": sku, "quantity": quantity}
        )

    async def update_line(
        self,
        asn_id: int,
        line_id: int,
        *,
        actor: Actor,
        sku: str,
        quantity: int,
        description: Optional[str] = None,
        unit_cost: Optional[float] = None,
        unit_of_measure: Optional[str] = None,
        lot_number: Optional[str] = None,
        expiry_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> bool:
        session = self.gw.session

        async def _do() -> bool:
            asn = await get_asn(session, asn_id, for_update=True)
            _require_editable(asn)
            line = await get_line(session, asn.id, line_id, for_update=True)

            errors = _validate_line_fields(sku, quantity)
            if not errors and int(quantity) < int(line.received_quantity or 0):
                errors.append("Quantity cannot be less than received quantity")
            if errors:
                raise ValidationError(errors)

            line.sku = _clean(sku)
            line.description = _clean(description)
            line.quantity = int(quantity)
            line.unit_cost = unit_cost
            line.unit_of_measure = _clean(unit_of_measure) or "EA"
            line.lot_number = _clean(lot_number)
            line.expiry_date = expiry_date
            line.notes = _clean(notes)
            line.updated_by = actor.user_id
            line.updated_at = utcnow()
            await session.flush()

            await activity_logger.record(
                session,
                action="ASN_LINE_UPDATED",
                actor=actor,
                asn_id=asn.id,
                payload={"line_id": line.id, "sku": line.sku, "quantity": line.quantity},
            )
            return True

        return await self.gw.run(
            "asn_line_update",
            _do,
            actor=actor,
            asn_id=asn_id,
            payload={"line_id": line_id, "sku": sku, "quantity": quantity},
        )

    async def delete_line(self, asn_id: int, line_id: int, *, actor: Actor) -> bool:
        session = self.gw.session

        async def _do() -> bool:
            asn = await get_asn(session, asn_id, for_update=True)
            _require_editable(asn)
            line = await get_line(session, asn.id, line_id, for_update=True)
            if int(line.received_quantity or 0) > 0:
                raise StateConflictError(
                    "Cannot delete line with received quantity",
                    context={"line_id": line.id, "received_quantity": line.received_quantity},
                )

            now = utcnow()
            line.deleted_at = now
            line.deleted_by = actor.user_id
            line.updated_at = now
            await session.flush()

            await activity_logger.record(
                session,
                action="ASN_LINE_DELETED",
                actor=actor,
                asn_id=asn.id,
                payload={"line_id": line.id, "sku": line.sku},
            )
            return True

        return await self.gw.run("asn_line_delete", _do, actor=actor, asn_id=asn_id, payload={"line_id": line_id})

    async def receive(self, asn_id: int, line_id: int, received_quantity: int, *, actor: Actor) -> bool:
        """
        收货登记：直接覆盖 received_quantity（不是累加），不动库存。
        """
        session = self.gw.session

        async def _do() -> bool:
            asn = await get_asn(session, asn_id, for_update=True)
            line = await get_line(session, asn.id, line_id, for_update=True)
            if not is_processable(asn):
                raise StateConflictError(
                    "ASN cannot be received in current status",
                    context={"asn_id": asn.id, "status": asn.status},
                )

            try:
                q = int(received_quantity)
            except (TypeError, ValueError):
                q = -1
            if q < 0 or q > int(line.quantity):
                raise ValidationError({"received_quantity": "Invalid received quantity"})
            if q < int(line.processed_quantity or 0):
                raise StateConflictError(
                    "Received quantity cannot be less than processed quantity",
                    context={"line_id": line.id, "processed_quantity": line.processed_quantity},
                )

            before = int(line.received_quantity or 0)
            line.received_quantity = q
            line.updated_by = actor.user_id
            line.updated_at = utcnow()
            await session.flush()

            await activity_logger.record(
                session,
                action="ASN_LINE_RECEIVED",
                actor=actor,
                asn_id=asn.id,
                payload={"line_id": line.id, "sku": line.sku, "before": before, "after": q},
            )
            return True

        return await self.gw.run(
            "asn_line_receive",
            _do,
            actor=actor,
            asn_id=asn_id,
            payload={"line_id": line_id, "received_quantity": received_quantity},
        )

    async def list_lines(self, asn_id: int) -> List[Dict[str, Any]]:
        """
        行列表（按行号），附派生的收货 / 上架状态和当前库存快照。只读。
        """
        session = self.gw.session
        asn = await get_asn(session, asn_id)
        lines = await list_alive_lines(session, asn.id)
        stock = await self.inventory.by_skus(session, (ln.sku for ln in lines))

        out: List[Dict[str, Any]] = []
        for ln in lines:
            rec = stock.get(ln.sku)
            out.append(
                {
                    "id": ln.id,
                    "asn_id": ln.asn_id,
                    "line_number": ln.line_number,
                    "sku": ln.sku,
                    "description": ln.description,
                    "quantity": ln.quantity,
                    "received_quantity": ln.received_quantity,
                    "processed_quantity": ln.processed_quantity,
                    "unprocessed_quantity": ln.unprocessed_quantity,
                    "unit_cost": ln.unit_cost,
                    "unit_of_measure": ln.unit_of_measure,
                    "lot_number": ln.lot_number,
                    "expiry_date": ln.expiry_date,
                    "notes": ln.notes,
                    "processed_location": ln.processed_location,
                    "processed_condition": ln.processed_condition,
                    "receive_status": receive_status(ln).value,
                    "process_status": process_status(ln).value,
                    "current_stock": int(rec.on_hand_quantity) if rec else 0,
                    "available_stock": int(rec.available_quantity) if rec else 0,
                    "current_location": rec.location if rec else None,
                }
            )
        return out
