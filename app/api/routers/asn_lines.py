# app/api/routers/asn_lines.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from app.api.deps import get_lines_service, require_role
from app.core.actor import Actor
from app.models.enums import Role
from app.schemas.asn import AsnLineCreatedOut, AsnLineIn, AsnLineOut, OkOut, ReceiveIn
from app.services.asn_lines_service import AsnLinesService

router = APIRouter(prefix="/asns/{asn_id}/lines", tags=["asn-lines"])


@router.get("", response_model=List[AsnLineOut])
async def list_lines(
    asn_id: int,
    _actor: Actor = Depends(require_role(Role.VIEWER)),
    svc: AsnLinesService = Depends(get_lines_service),
) -> List[AsnLineOut]:
    return [AsnLineOut.model_validate(row) for row in await svc.list_lines(asn_id)]


@router.post("", response_model=AsnLineCreatedOut, status_code=201)
async def add_line(
    asn_id: int,
    payload: AsnLineIn,
    actor: Actor = Depends(require_role(Role.OPERATOR)),
    svc: AsnLinesService = Depends(get_lines_service),
) -> AsnLineCreatedOut:
    line_id = await svc.add_line(asn_id, actor=actor, **payload.model_dump())
    return AsnLineCreatedOut(line_id=line_id)


@router.put("/{line_id}", response_model=OkOut)
async def update_line(
    asn_id: int,
    line_id: int,
    payload: AsnLineIn,
    actor: Actor = Depends(require_role(Role.OPERATOR)),
    svc: AsnLinesService = Depends(get_lines_service),
) -> OkOut:
    await svc.update_line(asn_id, line_id, actor=actor, **payload.model_dump())
    return OkOut()


@router.delete("/{line_id}", response_model=OkOut)
async def delete_line(
    asn_id: int,
    line_id: int,
    actor: Actor = Depends(require_role(Role.OPERATOR)),
    svc: AsnLinesService = Depends(get_lines_service),
) -> OkOut:
    await svc.delete_line(asn_id, line_id, actor=actor)
    return OkOut()


@router.post("/{line_id}/receive", response_model=OkOut)
async def receive_line(
    asn_id: int,
    line_id: int,
    payload: ReceiveIn,
    actor: Actor = Depends(require_role(Role.OPERATOR)),
    svc: AsnLinesService = Depends(get_lines_service),
) -> OkOut:
    """收货登记（覆盖 received_quantity，不动库存）。"""
    await svc.receive(asn_id, line_id, payload.received_quantity, actor=actor)
    return OkOut()
