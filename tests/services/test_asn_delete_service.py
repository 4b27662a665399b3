# tests/services/test_asn_delete_service.py
from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.asn_deletion_audit import AsnDeletionAudit
from app.models.inventory import InventoryRecord
from app.models.inventory_transaction import InventoryTransaction
from app.services.asn_delete_service import AsnDeleteService
from app.services.asn_errors import NotFoundError, StateConflictError, ValidationError
from app.services.asn_gateway import PersistenceGateway
from tests.services._helpers import MANAGER, fetch_asn, fetch_line, make_asn

REASON = "Supplier cancelled the shipment"


def _svc(session: AsyncSession) -> AsnDeleteService:
    return AsnDeleteService(PersistenceGateway(session))


@pytest.mark.asyncio
async def test_delete_draft_asn_writes_audit_and_soft_deletes(session: AsyncSession, supplier_id: int):
    asn_id, (l1, l2) = await make_asn(
        session,
        supplier_id,
        status="draft",
        lines=[{"sku": "SKU-1", "quantity": 10, "unit_cost": 1.5}, {"sku": "SKU-2", "quantity": 4}],
    )
    svc = _svc(session)

    check = await svc.deletion_check(asn_id)
    assert check.can_delete is True
    assert check.errors == [] and check.warnings == []

    audit_id = await svc.delete_asn(asn_id, f"  {REASON}  ", actor=MANAGER)

    audit = (
        await session.execute(select(AsnDeletionAudit).where(AsnDeletionAudit.id == audit_id))
    ).scalars().one()
    assert audit.asn_id == asn_id
    assert audit.asn_number == "ASN-0001"
    assert audit.supplier_name == "Acme Supplies"
    assert audit.status_at_deletion == "draft"
    assert audit.line_count == 2
    assert audit.total_quantity == 14
    assert audit.deletion_reason == REASON
    assert audit.deleted_by == MANAGER.user_id
    assert audit.force_deleted is False
    assert audit.asn_data["asn_number"] == "ASN-0001"
    assert {ln["sku"] for ln in audit.line_items_data} == {"SKU-1", "SKU-2"}

    asn = await fetch_asn(session, asn_id)
    assert asn.deleted_at is not None
    assert asn.deleted_by == MANAGER.user_id
    assert (await fetch_line(session, l1)).deleted_at is not None
    assert (await fetch_line(session, l2)).deleted_at is not None

    with pytest.raises(NotFoundError):
        await svc.deletion_check(asn_id)


@pytest.mark.asyncio
async def test_delete_requires_meaningful_reason(session: AsyncSession, supplier_id: int):
    asn_id, _ = await make_asn(session, supplier_id, status="draft")

    with pytest.raises(ValidationError) as ei:
        await _svc(session).delete_asn(asn_id, "   too short ", actor=MANAGER)
    assert "reason" in ei.value.field_errors
    assert (await fetch_asn(session, asn_id)).deleted_at is None


@pytest.mark.asyncio
async def test_received_quantities_warn_but_do_not_block(session: AsyncSession, supplier_id: int):
    asn_id, _ = await make_asn(session, supplier_id, lines=[{"sku": "SKU-W", "quantity": 10, "received": 3}])
    svc = _svc(session)

    check = await svc.deletion_check(asn_id)
    assert check.can_delete is True
    assert check.warnings == ["ASN has received quantities that will be lost"]
    assert check.totals["total_received"] == 3

    audit_id = await svc.delete_asn(asn_id, REASON, actor=MANAGER, force=True)
    audit = (
        await session.execute(select(AsnDeletionAudit).where(AsnDeletionAudit.id == audit_id))
    ).scalars().one()
    assert audit.force_deleted is True
    assert audit.total_received == 3


@pytest.mark.asyncio
async def test_processed_asn_cannot_be_deleted(session: AsyncSession, supplier_id: int):
    asn_id, (line_id,) = await make_asn(
        session,
        supplier_id,
        status="completed",
        lines=[{"sku": "SKU-Z", "quantity": 10, "received": 10, "processed": 10}],
    )
    inv = InventoryRecord(sku="SKU-Z", on_hand_quantity=10, available_quantity=10, reserved_quantity=0)
    session.add(inv)
    await session.flush()
    session.add(
        InventoryTransaction(
            inventory_id=inv.id,
            transaction_type="receipt",
            quantity=10,
            reference_type="asn",
            reference_id=asn_id,
            reference_line_id=line_id,
            location="A-01-01",
            condition_status="good",
        )
    )
    await session.commit()
    svc = _svc(session)

    check = await svc.deletion_check(asn_id)
    assert check.can_delete is False
    assert check.errors == [
        "ASN cannot be deleted because it has been received or completed",
        "ASN cannot be deleted because some items have been processed into inventory",
        "ASN cannot be deleted because it has related inventory transactions",
    ]

    with pytest.raises(StateConflictError) as ei:
        await svc.delete_asn(asn_id, REASON, actor=MANAGER)
    assert ei.value.reasons == check.errors

    # force 只确认告警，不越过阻断项
    with pytest.raises(StateConflictError):
        await svc.delete_asn(asn_id, REASON, actor=MANAGER, force=True)

    assert (await fetch_asn(session, asn_id)).deleted_at is None
    assert (await session.execute(select(AsnDeletionAudit))).scalars().first() is None
