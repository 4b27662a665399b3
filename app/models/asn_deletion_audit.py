# app/models/asn_deletion_audit.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, utcnow


class AsnDeletionAudit(Base):
    """
    ASN 删除审计：删除瞬间的头 + 行完整快照（合规 / 恢复用）
    """

    __tablename__ = "asn_deletion_audit"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    asn_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    asn_number: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    supplier_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status_at_deletion: Mapped[str] = mapped_column(String(16), nullable=False)

    line_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    deletion_reason: Mapped[str] = mapped_column(Text, nullable=False)
    force_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))

    asn_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    line_items_data: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)

    deleted_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    deleted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
