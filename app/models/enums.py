# app/models/enums.py
from __future__ import annotations

from enum import StrEnum


class AsnStatus(StrEnum):
    """
    ASN 生命周期：

    draft → confirmed → in_transit → arrived → receiving → completed
    cancelled：任意非终态可由人工取消
    """

    DRAFT = "draft"
    CONFIRMED = "confirmed"
    IN_TRANSIT = "in_transit"
    ARRIVED = "arrived"
    RECEIVING = "receiving"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AsnPriority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class StockCondition(StrEnum):
    """
    入库货品质量状态：
    - good        计入可用
    - damaged / expired / quarantine  只计在库，不计可用
    """

    GOOD = "good"
    DAMAGED = "damaged"
    EXPIRED = "expired"
    QUARANTINE = "quarantine"


class TransactionType(StrEnum):
    # 目前 ASN 链路只落 receipt
    RECEIPT = "receipt"


class ReceiveStatus(StrEnum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETE = "complete"


class ProcessStatus(StrEnum):
    NOT_PROCESSED = "not_processed"
    PARTIAL_PROCESSED = "partial_processed"
    FULLY_PROCESSED = "fully_processed"


class Role(StrEnum):
    """操作者角色（由外部认证层给出），数值越大权限越高。"""

    VIEWER = "viewer"
    OPERATOR = "operator"
    SUPERVISOR = "supervisor"
    MANAGER = "manager"
    ADMIN = "admin"


ROLE_LEVELS: dict[Role, int] = {
    Role.VIEWER: 1,
    Role.OPERATOR: 2,
    Role.SUPERVISOR: 3,
    Role.MANAGER: 4,
    Role.ADMIN: 5,
}
