# app/api/routers/asn.py
from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from app.api.deps import get_asn_service, get_delete_service, require_role
from app.core.actor import Actor
from app.models.enums import Role
from app.schemas.asn import (
    AsnDeleteIn,
    AsnDeleteOut,
    AsnHeaderIn,
    AsnOut,
    AsnStatusIn,
    AsnSummaryOut,
    DeletionCheckOut,
)
from app.services.asn_delete_service import AsnDeleteService
from app.services.asn_service import AsnService

router = APIRouter(prefix="/asns", tags=["asn"])


@router.post("", response_model=AsnOut, status_code=201)
async def create_asn(
    payload: AsnHeaderIn,
    actor: Actor = Depends(require_role(Role.OPERATOR)),
    svc: AsnService = Depends(get_asn_service),
) -> AsnOut:
    asn = await svc.create_asn(payload.model_dump(), actor=actor)
    return AsnOut.model_validate(asn)


@router.get("/{asn_id}", response_model=AsnSummaryOut)
async def get_asn_summary(
    asn_id: int,
    _actor: Actor = Depends(require_role(Role.VIEWER)),
    svc: AsnService = Depends(get_asn_service),
) -> AsnSummaryOut:
    """ASN 头 + 行汇总（期望 / 收货 / 上架 / 金额 / 进度）。"""
    return AsnSummaryOut.model_validate(await svc.get_asn_summary(asn_id))


@router.patch("/{asn_id}", response_model=AsnOut)
async def update_asn(
    asn_id: int,
    payload: AsnHeaderIn,
    actor: Actor = Depends(require_role(Role.OPERATOR)),
    svc: AsnService = Depends(get_asn_service),
) -> AsnOut:
    asn = await svc.update_asn(asn_id, payload.model_dump(), actor=actor)
    return AsnOut.model_validate(asn)


@router.post("/{asn_id}/status", response_model=AsnOut)
async def change_status(
    asn_id: int,
    payload: AsnStatusIn,
    actor: Actor = Depends(require_role(Role.OPERATOR)),
    svc: AsnService = Depends(get_asn_service),
) -> AsnOut:
    """
    状态变更：override=true 需 supervisor（服务层校验）。
    """
    asn = await svc.change_status(asn_id, payload.status, actor=actor, override=payload.override)
    return AsnOut.model_validate(asn)


@router.get("/{asn_id}/deletion-check", response_model=DeletionCheckOut)
async def deletion_check(
    asn_id: int,
    _actor: Actor = Depends(require_role(Role.MANAGER)),
    svc: AsnDeleteService = Depends(get_delete_service),
) -> DeletionCheckOut:
    check = await svc.deletion_check(asn_id)
    return DeletionCheckOut(
        can_delete=check.can_delete,
        errors=check.errors,
        warnings=check.warnings,
        totals=check.totals,
    )


@router.delete("/{asn_id}", response_model=AsnDeleteOut)
async def delete_asn(
    asn_id: int,
    payload: AsnDeleteIn = Body(...),
    actor: Actor = Depends(require_role(Role.MANAGER)),
    svc: AsnDeleteService = Depends(get_delete_service),
) -> AsnDeleteOut:
    audit_id = await svc.delete_asn(asn_id, payload.reason, actor=actor, force=payload.force_delete)
    return AsnDeleteOut(audit_id=audit_id)
