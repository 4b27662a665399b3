# app/api/routers/asn_process.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from app.api.deps import get_process_service, require_role
from app.core.actor import Actor
from app.models.enums import Role
from app.schemas.asn import (
    AsnTransactionOut,
    ProcessAllIn,
    ProcessAllOut,
    ProcessLineIn,
    ProcessLineOut,
)
from app.services.asn_process_service import AsnProcessService

router = APIRouter(prefix="/asns/{asn_id}", tags=["asn-process"])


@router.post("/lines/{line_id}/process", response_model=ProcessLineOut)
async def process_line(
    asn_id: int,
    line_id: int,
    payload: ProcessLineIn,
    actor: Actor = Depends(require_role(Role.OPERATOR)),
    svc: AsnProcessService = Depends(get_process_service),
) -> ProcessLineOut:
    """
    单行上架：库存 / 流水 / 行 / ASN 状态同一事务。
    """
    res = await svc.process_line(
        asn_id,
        line_id,
        actor=actor,
        process_quantity=payload.process_quantity,
        location=payload.location or "",
        condition=payload.condition,
        lot_number=payload.lot_number,
        expiry_date=payload.expiry_date,
        notes=payload.notes,
    )
    return ProcessLineOut(
        processed_quantity=res.processed_quantity,
        total_processed=res.total_processed,
        transaction_id=res.transaction_id,
        asn_status=res.asn_status,
    )


@router.post("/process-all", response_model=ProcessAllOut)
async def process_all(
    asn_id: int,
    payload: ProcessAllIn,
    actor: Actor = Depends(require_role(Role.OPERATOR)),
    svc: AsnProcessService = Depends(get_process_service),
) -> ProcessAllOut:
    """
    批量上架：逐行保存点，失败行跳过并在 failed_lines 中返回。
    """
    res = await svc.process_all(
        asn_id,
        actor=actor,
        default_location=payload.default_location or "",
        default_condition=payload.default_condition,
    )
    return ProcessAllOut(
        processed_lines=res.processed_lines,
        total_quantity=res.total_quantity,
        failed_lines=res.failed_lines,
        asn_status=res.asn_status,
    )


@router.get("/transactions", response_model=List[AsnTransactionOut])
async def transaction_history(
    asn_id: int,
    _actor: Actor = Depends(require_role(Role.VIEWER)),
    svc: AsnProcessService = Depends(get_process_service),
) -> List[AsnTransactionOut]:
    return [AsnTransactionOut.model_validate(row) for row in await svc.transaction_history(asn_id)]
