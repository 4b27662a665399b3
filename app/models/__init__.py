"""
统一导出 ORM 模型。
"""

from importlib import import_module


def _export(module_name: str, class_name: str) -> None:
    module = import_module(module_name)
    globals()[class_name] = getattr(module, class_name)


MODEL_SPECS = [
    # -------- 主数据 --------
    ("app.models.supplier", "Supplier"),
    # -------- ASN --------
    ("app.models.asn", "Asn"),
    ("app.models.asn", "AsnLine"),
    ("app.models.asn_deletion_audit", "AsnDeletionAudit"),
    # -------- 库存 / 流水 --------
    ("app.models.inventory", "InventoryRecord"),
    ("app.models.inventory_transaction", "InventoryTransaction"),
    # -------- 审计 --------
    ("app.models.activity_log", "ActivityLog"),
]

for _mod, _cls in MODEL_SPECS:
    _export(_mod, _cls)

__all__ = [cls for _, cls in MODEL_SPECS]
