# app/services/asn_errors.py
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union


class AsnError(Exception):
    code = "ASN_ERROR"
    status = 400

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status: int | None = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        if code:
            self.code = code
        if status:
            self.status = status
        self.message = message
        self.context = dict(context or {})

    def details(self) -> List[Dict[str, Any]]:
        return []


class ValidationError(AsnError):
    """
    入参不合法：逐条/逐字段收集后一次性抛出，未做任何写入。
    errors 可以是 ["msg", ...] 或 {"field": "msg"}。
    """

    code = "ASN_VALIDATION_FAILED"
    status = 422

    def __init__(
        self,
        errors: Union[Sequence[str], Mapping[str, str], str],
        *,
        context: Optional[Dict[str, Any]] = None,
    ):
        if isinstance(errors, str):
            errors = [errors]
        if isinstance(errors, Mapping):
            self.field_errors: Dict[str, str] = dict(errors)
            self.errors: List[str] = list(self.field_errors.values())
        else:
            self.field_errors = {}
            self.errors = list(errors)
        super().__init__(", ".join(self.errors) or "validation failed", context=context)

    def details(self) -> List[Dict[str, Any]]:
        if self.field_errors:
            return [{"type": "validation", "path": k, "reason": v} for k, v in self.field_errors.items()]
        return [{"type": "validation", "reason": e} for e in self.errors]


class StateConflictError(AsnError):
    """状态 / 不变量冲突（例如超量上架、删除已收货行）。"""

    code = "ASN_STATE_CONFLICT"
    status = 409

    def __init__(
        self,
        reason: Union[str, Sequence[str]],
        *,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.reasons: List[str] = [reason] if isinstance(reason, str) else list(reason)
        super().__init__("; ".join(self.reasons), context=context)

    def details(self) -> List[Dict[str, Any]]:
        return [{"type": "state", "reason": r} for r in self.reasons]


class NotFoundError(AsnError):
    code = "ASN_NOT_FOUND"
    status = 404

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context=context)


class PermissionDeniedError(AsnError):
    code = "ASN_PERMISSION_DENIED"
    status = 403

    def __init__(self, message: str = "Permission denied", *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context=context)


class PersistenceError(AsnError):
    """
    存储层失败：对外只给通用信息，具体原因只进日志（已脱敏）。
    """

    code = "ASN_PERSISTENCE_ERROR"
    status = 500

    def __init__(self, operation: str, *, context: Optional[Dict[str, Any]] = None):
        self.operation = operation
        super().__init__(f"Failed to {operation.replace('_', ' ')}", context=context)
