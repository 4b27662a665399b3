# app/models/inventory_transaction.py
from __future__ import annotations

from datetime import date, datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base, utcnow


class InventoryTransaction(Base):
    """
    库存流水（只增不改）

    - reference_type / reference_id / reference_line_id：弱引用来源单据，
      不建外键，只用于回查（例如 'asn' + asn.id + asn_lines.id）
    """

    __tablename__ = "inventory_transactions"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    inventory_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("inventory.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    transaction_type: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    unit_cost: Mapped[float | None] = mapped_column(sa.Numeric(12, 2), nullable=True)

    reference_type: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    reference_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reference_line_id: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)

    location: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    lot_number: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(sa.Date, nullable=True)
    condition_status: Mapped[str | None] = mapped_column(sa.String(16), nullable=True)
    notes: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    created_by: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        sa.Index("ix_inv_tx_reference", "reference_type", "reference_id", "reference_line_id"),
        sa.Index("ix_inv_tx_created_at", "created_at"),
    )
