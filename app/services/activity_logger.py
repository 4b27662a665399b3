# app/services/activity_logger.py
from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import Actor
from app.core.logging import scrub_secrets
from app.models.activity_log import ActivityLog

logger = logging.getLogger("wmsdu.audit")


def _sanitize(payload: Mapping[str, Any] | None) -> dict[str, Any]:
    """payload 统一过一遍 JSON（date/Decimal → str）并脱敏字符串值。"""
    raw = json.loads(json.dumps(dict(payload or {}), ensure_ascii=False, default=str))
    return {k: scrub_secrets(v) if isinstance(v, str) else v for k, v in raw.items()}


def log_event(action: str, key: str, extra: Mapping[str, Any] | None = None, *, level: int = logging.INFO) -> None:
    """
    轻量审计（本地日志）。落表由 record / record_failure 完成。
    """
    logger.log(level, "[audit] %s | %s | %s", action, key, json.dumps(_sanitize(extra), ensure_ascii=False))


async def record(
    session: AsyncSession,
    *,
    action: str,
    actor: Optional[Actor],
    asn_id: Optional[int] = None,
    payload: Mapping[str, Any] | None = None,
    level: str = "INFO",
) -> None:
    """
    在当前事务内追加一条 activity_log（随业务一起提交 / 回滚）。
    """
    clean = _sanitize(payload)
    session.add(
        ActivityLog(
            action=action,
            level=level,
            actor_id=actor.user_id if actor else None,
            asn_id=asn_id,
            payload=clean,
        )
    )
    log_event(action, f"asn={asn_id}", clean, level=logging.getLevelName(level))


async def record_failure(
    session: AsyncSession,
    *,
    action: str,
    actor: Optional[Actor],
    asn_id: Optional[int],
    error: str,
    payload: Mapping[str, Any] | None = None,
) -> None:
    """
    失败审计：业务事务已回滚后单独提交一条 ERROR 记录。
    审计自身失败只记日志，不能盖住原始异常。
    """
    data = dict(payload or {})
    data["error"] = scrub_secrets(error)
    try:
        await record(session, action=action, actor=actor, asn_id=asn_id, payload=data, level="ERROR")
        await session.commit()
    except SQLAlchemyError as e:
        logger.warning("activity_log write failed for %s: %s", action, scrub_secrets(str(e)))
        await session.rollback()
