# app/services/asn_process_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from app.core.actor import Actor
from app.core.logging import scrub_secrets
from app.db.base import utcnow
from app.metrics import BULK_LINE_FAILURES, LINES_PROCESSED, UNITS_PROCESSED
from app.models.asn import Asn, AsnLine
from app.models.enums import StockCondition
from app.services import activity_logger
from app.services import ledger_writer
from app.services.asn_errors import StateConflictError, ValidationError
from app.services.asn_gateway import PersistenceGateway
from app.services.asn_query import get_asn, get_line, list_alive_lines
from app.services.asn_state import is_processable, recompute_status
from app.services.inventory_store import InventoryStore
from app.services.ledger_writer import AsnLineRef

log = logging.getLogger("wmsdu.asn")

BULK_NOTES = "Bulk processed from ASN"


@dataclass
class ProcessResult:
    processed_quantity: int
    total_processed: int
    transaction_id: int
    asn_status: str


@dataclass
class BulkProcessResult:
    processed_lines: int
    total_quantity: int
    failed_lines: List[int]
    asn_status: str


def _parse_condition(raw: Any) -> Optional[StockCondition]:
    try:
        return StockCondition(str(raw or StockCondition.GOOD.value).strip().lower())
    except ValueError:
        return None


def _require_processable(asn: Asn) -> None:
    if not is_processable(asn):
        raise StateConflictError(
            "ASN cannot be processed in current status",
            context={"asn_id": asn.id, "status": asn.status},
        )


class AsnProcessService:
    """
    上架（收货 → 库存）：

    单行 process_line：一个事务，库存 / 流水 / 行 / ASN 状态要么全写要么全不写。
    批量 process_all：外层一个事务，每行一个保存点；单行失败只回滚本行并跳过，
    全部失败则整体回滚并报错。
    """

    def __init__(self, gateway: PersistenceGateway, inventory: Optional[InventoryStore] = None):
        self.gw = gateway
        self.inventory = inventory or InventoryStore()

    async def _apply_line(
        self,
        asn: Asn,
        line: AsnLine,
        *,
        quantity: int,
        location: str,
        condition: StockCondition,
        lot_number: Optional[str],
        expiry_date: Optional[date],
        notes: Optional[str],
        actor: Actor,
    ) -> int:
        """
        单行入账（调用方负责事务 / 保存点与行锁）：
          1) 锁定或懒建库存行
          2) on_hand / available / location / unit_cost
          3) 追加 receipt 流水
          4) processed_quantity += q
        返回流水 id。
        """
        session = self.gw.session

        rec = await self.inventory.lock_or_create(
            session,
            sku=line.sku,
            description=line.description,
            unit_of_measure=line.unit_of_measure,
            unit_cost=line.unit_cost,
            actor_id=actor.user_id,
        )
        self.inventory.apply_receipt(
            rec,
            quantity=quantity,
            condition=condition,
            location=location,
            unit_cost=line.unit_cost,
            actor_id=actor.user_id,
        )
        await session.flush()

        tx_id = await ledger_writer.write_receipt(
            session,
            inventory_id=rec.id,
            ref=AsnLineRef(asn_id=asn.id, line_id=line.id),
            quantity=quantity,
            condition=condition,
            location=location,
            unit_cost=line.unit_cost,
            lot_number=lot_number,
            expiry_date=expiry_date,
            notes=notes,
            created_by=actor.user_id,
        )

        line.processed_quantity = int(line.processed_quantity or 0) + int(quantity)
        line.processed_location = location
        line.processed_condition = condition.value
        line.updated_by = actor.user_id
        line.updated_at = utcnow()
        await session.flush()
        return tx_id

    async def process_line(
        self,
        asn_id: int,
        line_id: int,
        *,
        actor: Actor,
        process_quantity: int,
        location: str,
        condition: str | StockCondition = StockCondition.GOOD,
        lot_number: Optional[str] = None,
        expiry_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> ProcessResult:
        session = self.gw.session

        async def _do() -> ProcessResult:
            asn = await get_asn(session, asn_id, for_update=True)
            line = await get_line(session, asn.id, line_id, for_update=True)
            _require_processable(asn)

            errors: List[str] = []
            try:
                q = int(process_quantity)
            except (TypeError, ValueError):
                q = 0
            if q <= 0:
                errors.append("Process quantity must be greater than 0")
            elif q > line.unprocessed_quantity:
                errors.append("Process quantity cannot exceed unprocessed received quantity")
            loc = (location or "").strip()
            if not loc:
                errors.append("Location is required")
            cond = _parse_condition(condition)
            if cond is None:
                errors.append("Invalid condition")
            if errors:
                raise ValidationError(
                    errors,
                    context={"line_id": line.id, "unprocessed_quantity": line.unprocessed_quantity},
                )

            tx_id = await self._apply_line(
                asn,
                line,
                quantity=q,
                location=loc,
                condition=cond,
                lot_number=(lot_number or "").strip() or None,
                expiry_date=expiry_date,
                notes=(notes or "").strip() or None,
                actor=actor,
            )
            status = await recompute_status(session, asn, actor_id=actor.user_id)

            await activity_logger.record(
                session,
                action="ASN_LINE_PROCESSED",
                actor=actor,
                asn_id=asn.id,
                payload={
                    "line_id": line.id,
                    "sku": line.sku,
                    "quantity": q,
                    "location": loc,
                    "condition": cond.value,
                    "transaction_id": tx_id,
                    "asn_status": status.value,
                },
            )
            return ProcessResult(
                processed_quantity=q,
                total_processed=int(line.processed_quantity),
                transaction_id=tx_id,
                asn_status=status.value,
            )

        result = await self.gw.run(
            "asn_line_process",
            _do,
            actor=actor,
            asn_id=asn_id,
            payload={"line_id": line_id, "process_quantity": process_quantity, "location": location},
        )
        cond_label = str(_parse_condition(condition) or condition)
        LINES_PROCESSED.labels("single", cond_label).inc()
        UNITS_PROCESSED.labels(cond_label).inc(result.processed_quantity)
        return result

    async def process_all(
        self,
        asn_id: int,
        *,
        actor: Actor,
        default_location: str,
        default_condition: str | StockCondition = StockCondition.GOOD,
    ) -> BulkProcessResult:
        """
        批量上架：所有 received > processed 的行，按剩余量全部上架。
        批次使用行上的 lot / expiry，notes 固定为 BULK_NOTES。
        """
        session = self.gw.session

        async def _do() -> BulkProcessResult:
            errors: List[str] = []
            loc = (default_location or "").strip()
            if not loc:
                errors.append("Default location is required")
            cond = _parse_condition(default_condition)
            if cond is None:
                errors.append("Invalid condition")
            if errors:
                raise ValidationError(errors)

            asn = await get_asn(session, asn_id, for_update=True)
            _require_processable(asn)

            alive = await list_alive_lines(session, asn.id, for_update=True)
            lines = [ln for ln in alive if ln.unprocessed_quantity > 0]
            if not lines:
                raise StateConflictError(
                    "No lines available for processing",
                    context={"asn_id": asn.id, "processed_lines": 0, "total_quantity": 0},
                )

            processed: List[Dict[str, Any]] = []
            failed: List[int] = []
            for line in lines:
                # 回滚保存点会让 ORM 对象过期，先取出要用的字段
                line_id, sku, qty = int(line.id), line.sku, line.unprocessed_quantity
                try:
                    async with session.begin_nested():
                        tx_id = await self._apply_line(
                            asn,
                            line,
                            quantity=qty,
                            location=loc,
                            condition=cond,
                            lot_number=line.lot_number,
                            expiry_date=line.expiry_date,
                            notes=BULK_NOTES,
                            actor=actor,
                        )
                except Exception as e:  # 单行失败只跳过
                    failed.append(line_id)
                    BULK_LINE_FAILURES.inc()
                    log.warning(
                        "bulk process: asn=%s line=%s sku=%s skipped: %s", asn_id, line_id, sku, scrub_secrets(str(e))
                    )
                    await activity_logger.record(
                        session,
                        action="ASN_BULK_LINE_ERROR",
                        actor=actor,
                        asn_id=asn_id,
                        payload={"line_id": line_id, "sku": sku, "quantity": qty, "error": str(e)},
                        level="WARNING",
                    )
                    continue
                processed.append({"line_id": line_id, "sku": sku, "quantity": qty, "transaction_id": tx_id})

            if not processed:
                raise StateConflictError(
                    "No lines were processed",
                    context={"asn_id": asn_id, "failed_lines": failed},
                )

            status = await recompute_status(session, asn, actor_id=actor.user_id)
            total = sum(p["quantity"] for p in processed)
            await activity_logger.record(
                session,
                action="ASN_BULK_PROCESSED",
                actor=actor,
                asn_id=asn.id,
                payload={
                    "processed_lines": len(processed),
                    "total_quantity": total,
                    "failed_lines": failed,
                    "location": loc,
                    "condition": cond.value,
                    "asn_status": status.value,
                },
            )
            return BulkProcessResult(
                processed_lines=len(processed),
                total_quantity=total,
                failed_lines=failed,
                asn_status=status.value,
            )

        result = await self.gw.run(
            "asn_bulk_process",
            _do,
            actor=actor,
            asn_id=asn_id,
            payload={"default_location": default_location, "default_condition": str(default_condition)},
        )
        cond_label = str(_parse_condition(default_condition))
        LINES_PROCESSED.labels("bulk", cond_label).inc(result.processed_lines)
        UNITS_PROCESSED.labels(cond_label).inc(result.total_quantity)
        return result

    async def transaction_history(self, asn_id: int) -> List[Dict[str, Any]]:
        asn = await get_asn(self.gw.session, asn_id)
        return await ledger_writer.history_for_asn(self.gw.session, asn.id)
