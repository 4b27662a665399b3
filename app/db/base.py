# app/db/base.py
from __future__ import annotations

import importlib
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("wmsdu.models")

# FK 目标表在前
MODEL_MODULES = (
    "app.models.supplier",
    "app.models.asn",
    "app.models.inventory",
    "app.models.inventory_transaction",
    "app.models.asn_deletion_audit",
    "app.models.activity_log",
)

_initialized = False


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""


def init_models() -> None:
    """导入全部模型并固化映射（重复调用无副作用）。"""
    global _initialized
    if _initialized:
        return
    for mod in MODEL_MODULES:
        importlib.import_module(mod)
    configure_mappers()
    _initialized = True
    log.info("ORM mappers configured (%d model modules)", len(MODEL_MODULES))
