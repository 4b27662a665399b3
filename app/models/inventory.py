# app/models/inventory.py
from __future__ import annotations

from datetime import date as date_type
from datetime import datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Integer, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, utcnow


class InventoryRecord(Base):
    """
    库存主记录：一个 SKU 一行（首次上架时懒创建）

    - on_hand_quantity    在库（含残次/过期/隔离）
    - available_quantity  可用（只有 good 入库会加）
    - location            最近一次上架库位（不做多库位合并）
    """

    __tablename__ = "inventory"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    unit_of_measure: Mapped[str] = mapped_column(String(16), nullable=False, default="EA")

    on_hand_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    location: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    unit_cost: Mapped[Optional[float]] = mapped_column(Numeric(12, 2), nullable=True)
    last_received_date: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)

    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (UniqueConstraint("sku", name="uq_inventory_sku"),)
