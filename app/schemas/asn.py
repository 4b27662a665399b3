# app/schemas/asn.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import StockCondition

# 入参只做类型层面的约束；业务规则（长度 / 范围 / 唯一性）统一在服务层校验，
# 以便按字段给出一致的错误信息。


class AsnHeaderIn(BaseModel):
    asn_number: Optional[str] = Field(None, description="ASN 号（3~50，字母数字/-/_）")
    reference_number: Optional[str] = None
    supplier_id: Optional[int] = Field(None, description="供应商（需启用）")
    expected_date: Optional[date] = Field(None, description="预计到货日期")
    shipping_method: Optional[str] = None
    tracking_number: Optional[str] = None
    priority: Optional[str] = Field(None, description="low / normal / high / urgent，默认 normal")
    warehouse_location: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    special_instructions: Optional[str] = None
    notes: Optional[str] = None


class AsnOut(BaseModel):
    id: int
    asn_number: str
    reference_number: Optional[str] = None
    supplier_id: int
    expected_date: date
    shipping_method: Optional[str] = None
    tracking_number: Optional[str] = None
    priority: str
    warehouse_location: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    special_instructions: Optional[str] = None
    notes: Optional[str] = None
    status: str
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AsnSummaryOut(AsnOut):
    supplier_name: Optional[str] = None
    total_lines: int = 0
    total_expected: int = 0
    total_received: int = 0
    total_processed: int = 0
    total_value: float = 0.0
    progress_percentage: float = Field(0.0, description="processed / received × 100，保留 1 位")


class AsnStatusIn(BaseModel):
    status: str
    override: bool = False


class AsnDeleteIn(BaseModel):
    reason: str = Field(..., description="删除原因（去空白后至少 ASN_DELETE_REASON_MIN_LEN 个字符）")
    force_delete: bool = Field(False, description="确认告警后删除（记入审计）")


class AsnDeleteOut(BaseModel):
    ok: bool = True
    audit_id: int


class DeletionCheckOut(BaseModel):
    can_delete: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    totals: Dict[str, Any] = Field(default_factory=dict)


class AsnLineIn(BaseModel):
    sku: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[int] = None
    unit_cost: Optional[float] = None
    unit_of_measure: Optional[str] = Field(None, description="默认 EA")
    lot_number: Optional[str] = None
    expiry_date: Optional[date] = None
    notes: Optional[str] = None


class AsnLineCreatedOut(BaseModel):
    ok: bool = True
    line_id: int


class AsnLineOut(BaseModel):
    id: int
    asn_id: int
    line_number: int
    sku: str
    description: Optional[str] = None
    quantity: int
    received_quantity: int
    processed_quantity: int
    unprocessed_quantity: int
    unit_cost: Optional[float] = None
    unit_of_measure: str
    lot_number: Optional[str] = None
    expiry_date: Optional[date] = None
    notes: Optional[str] = None
    processed_location: Optional[str] = None
    processed_condition: Optional[str] = None

    receive_status: str = Field(..., description="pending / partial / complete")
    process_status: str = Field(..., description="not_processed / partial_processed / fully_processed")

    current_stock: int = 0
    available_stock: int = 0
    current_location: Optional[str] = None


class ReceiveIn(BaseModel):
    received_quantity: int = Field(..., description="收货数量（覆盖，不是累加）")


class ProcessLineIn(BaseModel):
    process_quantity: int
    location: Optional[str] = None
    condition: str = Field(StockCondition.GOOD.value, description="good / damaged / expired / quarantine")
    lot_number: Optional[str] = None
    expiry_date: Optional[date] = None
    notes: Optional[str] = None


class ProcessLineOut(BaseModel):
    ok: bool = True
    processed_quantity: int
    total_processed: int
    transaction_id: int
    asn_status: str


class ProcessAllIn(BaseModel):
    default_location: Optional[str] = None
    default_condition: str = StockCondition.GOOD.value


class ProcessAllOut(BaseModel):
    ok: bool = True
    processed_lines: int
    total_quantity: int
    failed_lines: List[int] = Field(default_factory=list)
    asn_status: str


class OkOut(BaseModel):
    ok: bool = True


class AsnTransactionOut(BaseModel):
    id: int
    inventory_id: int
    transaction_type: str
    quantity: int
    unit_cost: Optional[float] = None
    reference_id: int
    reference_line_id: Optional[int] = None
    location: Optional[str] = None
    lot_number: Optional[str] = None
    expiry_date: Optional[date] = None
    condition_status: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime
    sku: str
    description: Optional[str] = None
