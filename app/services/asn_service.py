# app/services/asn_service.py
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import select

from app.core.actor import Actor
from app.db.base import utcnow
from app.models.asn import Asn
from app.models.enums import AsnPriority, AsnStatus, Role
from app.models.supplier import Supplier
from app.services import activity_logger
from app.services.asn_errors import PermissionDeniedError, StateConflictError, ValidationError
from app.services.asn_gateway import PersistenceGateway
from app.services.asn_query import get_asn, line_totals
from app.services.asn_state import can_transition, is_editable, set_status

log = logging.getLogger("wmsdu.asn")

ASN_NUMBER_RE = re.compile(r"^[A-Za-z0-9\-_]+$")

# 头字段 → 最大长度（None = 不限）
_HEADER_FIELDS: Dict[str, Optional[int]] = {
    "asn_number": 50,
    "reference_number": 100,
    "supplier_id": None,
    "expected_date": None,
    "shipping_method": 100,
    "tracking_number": 100,
    "priority": None,
    "warehouse_location": 100,
    "contact_person": 100,
    "contact_phone": 20,
    "special_instructions": None,
    "notes": None,
}


def _norm(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k in _HEADER_FIELDS:
        v = data.get(k)
        if isinstance(v, str):
            v = v.strip() or None
        out[k] = v
    if out["priority"] is None:
        out["priority"] = AsnPriority.NORMAL.value
    return out


async def _validate_header(
    session,
    d: Dict[str, Any],
    *,
    exclude_id: Optional[int] = None,
    check_past_date: bool = True,
) -> None:
    """
    逐字段校验，一次性抛出（字段 → 消息）。
    格式类错误全部通过后，才做唯一性 / 供应商 / 日期等查询类校验。
    """
    errs: Dict[str, str] = {}

    num = d["asn_number"]
    if not num:
        errs["asn_number"] = "ASN number is required"
    elif len(num) < 3 or len(num) > 50:
        errs["asn_number"] = "ASN number must be between 3 and 50 characters"
    elif not ASN_NUMBER_RE.match(num):
        errs["asn_number"] = "ASN number can only contain letters, numbers, hyphens, and underscores"

    if d["supplier_id"] is None:
        errs["supplier_id"] = "Supplier is required"
    else:
        try:
            d["supplier_id"] = int(d["supplier_id"])
        except (TypeError, ValueError):
            errs["supplier_id"] = "Invalid or inactive supplier selected"

    if d["expected_date"] is None:
        errs["expected_date"] = "Expected date is required"
    elif isinstance(d["expected_date"], str):
        try:
            d["expected_date"] = date.fromisoformat(d["expected_date"])
        except ValueError:
            errs["expected_date"] = "Invalid expected date"
    if not d["shipping_method"]:
        errs["shipping_method"] = "Shipping method is required"

    for field, limit in _HEADER_FIELDS.items():
        v = d.get(field)
        if field not in errs and limit and isinstance(v, str) and len(v) > limit:
            errs[field] = f"{field.replace('_', ' ').capitalize()} cannot exceed {limit} characters"

    if errs:
        raise ValidationError(errs)

    stmt = select(Asn.id).where(Asn.asn_number == num, Asn.deleted_at.is_(None))
    if exclude_id is not None:
        stmt = stmt.where(Asn.id != int(exclude_id))
    if (await session.execute(stmt)).scalar() is not None:
        errs["asn_number"] = "ASN number already exists"

    supplier_ok = (
        await session.execute(
            select(Supplier.id).where(
                Supplier.id == d["supplier_id"],
                Supplier.is_active.is_(True),
                Supplier.deleted_at.is_(None),
            )
        )
    ).scalar()
    if supplier_ok is None:
        errs["supplier_id"] = "Invalid or inactive supplier selected"

    if check_past_date and d["expected_date"] < date.today():
        errs["expected_date"] = "Expected date cannot be in the past"

    if d["priority"] not in {p.value for p in AsnPriority}:
        errs["priority"] = "Invalid priority level"

    if errs:
        raise ValidationError(errs)


class AsnService:
    """ASN 头：创建 / 编辑 / 状态变更 / 汇总。"""

    def __init__(self, gateway: PersistenceGateway):
        self.gw = gateway

    async def create_asn(self, data: Mapping[str, Any], *, actor: Actor) -> Asn:
        session = self.gw.session
        d = _norm(data)

        async def _do() -> Asn:
            await _validate_header(session, d)
            asn = Asn(
                **d,
                status=AsnStatus.DRAFT.value,
                created_by=actor.user_id,
                updated_by=actor.user_id,
            )
            session.add(asn)
            await session.flush()
            await activity_logger.record(
                session,
                action="ASN_CREATED",
                actor=actor,
                asn_id=asn.id,
                payload={"asn_number": asn.asn_number, "supplier_id": asn.supplier_id},
            )
            return asn

        return await self.gw.run("asn_create", _do, actor=actor, payload={"asn_number": d["asn_number"]})

    async def update_asn(self, asn_id: int, data: Mapping[str, Any], *, actor: Actor) -> Asn:
        """编辑头字段：只在 draft / confirmed 下允许；编辑时不校验“日期已过”。"""
        session = self.gw.session
        d = _norm(data)

        async def _do() -> Asn:
            asn = await get_asn(session, asn_id, for_update=True)
            if not is_editable(asn):
                raise StateConflictError(
                    "ASN cannot be edited in current status",
                    context={"asn_id": asn.id, "status": asn.status},
                )
            await _validate_header(session, d, exclude_id=asn.id, check_past_date=False)

            for k, v in d.items():
                setattr(asn, k, v)
            asn.updated_by = actor.user_id
            asn.updated_at = utcnow()
            await session.flush()

            await activity_logger.record(
                session,
                action="ASN_UPDATED",
                actor=actor,
                asn_id=asn.id,
                payload={"asn_number": asn.asn_number},
            )
            return asn

        return await self.gw.run(
            "asn_update", _do, actor=actor, asn_id=asn_id, payload={"asn_number": d["asn_number"]}
        )

    async def change_status(
        self,
        asn_id: int,
        new_status: str,
        *,
        actor: Actor,
        override: bool = False,
    ) -> Asn:
        """
        状态变更：
        - 常规：必须在迁移表内
        - override：需 supervisor 及以上，可跳到任意合法状态（WARNING 审计）
        """
        session = self.gw.session

        async def _do() -> Asn:
            try:
                target = AsnStatus(str(new_status or "").strip().lower())
            except ValueError:
                raise ValidationError({"status": "Invalid status"}) from None

            if override and not actor.has(Role.SUPERVISOR):
                raise PermissionDeniedError("Status override requires supervisor role")

            asn = await get_asn(session, asn_id, for_update=True)
            current = AsnStatus(asn.status)
            if not override and not can_transition(current, target):
                raise StateConflictError(
                    f"Cannot change status from {current.value} to {target.value}",
                    context={"asn_id": asn.id, "from": current.value, "to": target.value},
                )

            set_status(asn, target, actor_id=actor.user_id)
            await session.flush()

            await activity_logger.record(
                session,
                action="ASN_STATUS_OVERRIDDEN" if override else "ASN_STATUS_CHANGED",
                actor=actor,
                asn_id=asn.id,
                payload={"asn_number": asn.asn_number, "old_status": current.value, "new_status": target.value},
                level="WARNING" if override else "INFO",
            )
            return asn

        return await self.gw.run(
            "asn_status_change",
            _do,
            actor=actor,
            asn_id=asn_id,
            payload={"new_status": new_status, "override": override},
        )

    async def get_asn_summary(self, asn_id: int) -> Dict[str, Any]:
        session = self.gw.session
        asn = await get_asn(session, asn_id)
        totals = await line_totals(session, asn.id)
        supplier_name = (
            await session.execute(select(Supplier.name).where(Supplier.id == asn.supplier_id))
        ).scalar()

        received = totals["total_received"]
        progress = round(totals["total_processed"] / received * 100, 1) if received > 0 else 0.0
        return {
            "id": asn.id,
            "asn_number": asn.asn_number,
            "reference_number": asn.reference_number,
            "supplier_id": asn.supplier_id,
            "supplier_name": supplier_name,
            "expected_date": asn.expected_date,
            "shipping_method": asn.shipping_method,
            "tracking_number": asn.tracking_number,
            "priority": asn.priority,
            "warehouse_location": asn.warehouse_location,
            "contact_person": asn.contact_person,
            "contact_phone": asn.contact_phone,
            "special_instructions": asn.special_instructions,
            "notes": asn.notes,
            "status": asn.status,
            "completed_at": asn.completed_at,
            "created_at": asn.created_at,
            "updated_at": asn.updated_at,
            **totals,
            "progress_percentage": progress,
        }
