# app/models/asn.py
from __future__ import annotations

from datetime import date as date_type
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, utcnow
from app.models.enums import AsnPriority, AsnStatus


class Asn(Base):
    """
    ASN 头（到货预报）

    - status 走 AsnStatus 状态机
    - 只做软删（deleted_at），删除时另写 asn_deletion_audit 快照
    """

    __tablename__ = "asn"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    asn_number: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    supplier_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("suppliers.id", ondelete="RESTRICT"),
        nullable=False,
    )

    expected_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    shipping_method: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=AsnPriority.NORMAL.value)

    warehouse_location: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    contact_person: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    special_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=AsnStatus.DRAFT.value)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        # 未删除范围内 asn_number 唯一
        Index(
            "uq_asn_number_alive",
            "asn_number",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("ix_asn_status", "status"),
    )


class AsnLine(Base):
    """
    ASN 行：expected / received / processed 三个数量

    不变量：0 <= processed_quantity <= received_quantity <= quantity
    """

    __tablename__ = "asn_lines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    asn_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("asn.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    received_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    unit_cost: Mapped[Optional[float]] = mapped_column(Numeric(12, 2), nullable=True)
    unit_of_measure: Mapped[str] = mapped_column(String(16), nullable=False, default="EA")

    lot_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    expiry_date: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    processed_location: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    processed_condition: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "processed_quantity >= 0 AND processed_quantity <= received_quantity "
            "AND received_quantity <= quantity",
            name="ck_asn_lines_qty_chain",
        ),
        Index("ix_asn_lines_asn_line_no", "asn_id", "line_number"),
        Index("ix_asn_lines_sku", "sku"),
    )

    @property
    def unprocessed_quantity(self) -> int:
        return int(self.received_quantity or 0) - int(self.processed_quantity or 0)
