# app/services/asn_delete_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from app.core.actor import Actor
from app.core.config import get_settings
from app.db.base import utcnow
from app.models.asn import Asn
from app.models.asn_deletion_audit import AsnDeletionAudit
from app.models.enums import AsnStatus
from app.models.supplier import Supplier
from app.services import activity_logger
from app.services import ledger_writer
from app.services.asn_errors import StateConflictError, ValidationError
from app.services.asn_gateway import PersistenceGateway
from app.services.asn_query import get_asn, line_totals, list_alive_lines
from app.services.ledger_writer import AsnLineRef

log = logging.getLogger("wmsdu.asn")

# 已开始收货 / 已完成的 ASN 不可删
_LOCKED_STATUSES = frozenset({AsnStatus.RECEIVING, AsnStatus.COMPLETED})

_ASN_SNAPSHOT_FIELDS = (
    "id",
    "asn_number",
    "reference_number",
    "supplier_id",
    "expected_date",
    "shipping_method",
    "tracking_number",
    "priority",
    "warehouse_location",
    "contact_person",
    "contact_phone",
    "special_instructions",
    "notes",
    "status",
    "completed_at",
    "created_by",
    "created_at",
    "updated_at",
)

_LINE_SNAPSHOT_FIELDS = (
    "id",
    "line_number",
    "sku",
    "description",
    "quantity",
    "received_quantity",
    "processed_quantity",
    "unit_cost",
    "unit_of_measure",
    "lot_number",
    "expiry_date",
    "notes",
    "processed_location",
    "processed_condition",
)


def _jsonable(v: Any) -> Any:
    if isinstance(v, (date, datetime)):
        return v.isoformat()
    if isinstance(v, Decimal):
        return float(v)
    return v


def _snapshot(obj: Any, fields: tuple[str, ...]) -> Dict[str, Any]:
    return {f: _jsonable(getattr(obj, f, None)) for f in fields}


@dataclass
class DeletionCheck:
    can_delete: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    totals: Dict[str, Any] = field(default_factory=dict)


class AsnDeleteService:
    """
    ASN 删除（软删 + 审计快照）：

    阻断：receiving / completed、已有上架量、已有关联库存流水
    告警：已有收货量（删除后收货记录随 ASN 一起作废）
    """

    def __init__(self, gateway: PersistenceGateway):
        self.gw = gateway

    async def _evaluate(self, asn: Asn) -> DeletionCheck:
        session = self.gw.session
        totals = await line_totals(session, asn.id)
        ledger_count = await ledger_writer.count_for_reference(
            session, reference_type=AsnLineRef.reference_type, reference_id=asn.id
        )
        totals["ledger_entries"] = ledger_count

        errors: List[str] = []
        warnings: List[str] = []
        if AsnStatus(asn.status) in _LOCKED_STATUSES:
            errors.append("ASN cannot be deleted because it has been received or completed")
        if totals["total_processed"] > 0:
            errors.append("ASN cannot be deleted because some items have been processed into inventory")
        if ledger_count > 0:
            errors.append("ASN cannot be deleted because it has related inventory transactions")
        if totals["total_received"] > 0:
            warnings.append("ASN has received quantities that will be lost")

        return DeletionCheck(can_delete=not errors, errors=errors, warnings=warnings, totals=totals)

    async def deletion_check(self, asn_id: int) -> DeletionCheck:
        """删除预检（只读）。"""
        asn = await get_asn(self.gw.session, asn_id)
        return await self._evaluate(asn)

    async def delete_asn(self, asn_id: int, reason: str, *, actor: Actor, force: bool = False) -> int:
        """
        删除 ASN：行全部软删 → 写审计快照 → ASN 软删，同一事务。返回 audit_id。

        force 只是操作者对告警（已有收货量）的确认标记，记入审计；阻断项照样阻断。
        """
        session = self.gw.session
        min_len = int(get_settings().ASN_DELETE_REASON_MIN_LEN)

        async def _do() -> int:
            why = (reason or "").strip()
            if len(why) < min_len:
                raise ValidationError(
                    {"reason": f"Deletion reason must be at least {min_len} characters"},
                )

            asn = await get_asn(session, asn_id, for_update=True)
            check = await self._evaluate(asn)
            if not check.can_delete:
                raise StateConflictError(check.errors, context={"asn_id": asn.id, "asn_number": asn.asn_number})

            lines = await list_alive_lines(session, asn.id, for_update=True)
            supplier_name: Optional[str] = (
                await session.execute(select(Supplier.name).where(Supplier.id == asn.supplier_id))
            ).scalar()

            audit = AsnDeletionAudit(
                asn_id=asn.id,
                asn_number=asn.asn_number,
                supplier_id=asn.supplier_id,
                supplier_name=supplier_name,
                status_at_deletion=asn.status,
                line_count=check.totals["total_lines"],
                total_quantity=check.totals["total_expected"],
                total_received=check.totals["total_received"],
                total_processed=check.totals["total_processed"],
                deletion_reason=why,
                force_deleted=bool(force),
                asn_data=_snapshot(asn, _ASN_SNAPSHOT_FIELDS),
                line_items_data=[_snapshot(ln, _LINE_SNAPSHOT_FIELDS) for ln in lines],
                deleted_by=actor.user_id,
            )
            session.add(audit)

            now = utcnow()
            for ln in lines:
                ln.deleted_at = now
                ln.deleted_by = actor.user_id
            asn.deleted_at = now
            asn.deleted_by = actor.user_id
            asn.updated_at = now
            await session.flush()

            await activity_logger.record(
                session,
                action="ASN_DELETED",
                actor=actor,
                asn_id=asn.id,
                payload={
                    "asn_number": asn.asn_number,
                    "audit_id": audit.id,
                    "line_count": len(lines),
                    "warnings": check.warnings,
                    "force_deleted": bool(force),
                },
                level="WARNING" if check.warnings else "INFO",
            )
            log.info("asn %s deleted by %s (audit=%s)", asn.asn_number, actor.user_id, audit.id)
            return int(audit.id)

        return await self.gw.run(
            "asn_delete", _do, actor=actor, asn_id=asn_id, payload={"reason": reason, "force_deleted": bool(force)}
        )
