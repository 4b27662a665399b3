# app/services/asn_gateway.py
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import Actor
from app.core.logging import scrub_secrets
from app.core.tx import TxScope
from app.metrics import OP_ERRORS
from app.services import activity_logger
from app.services.asn_errors import AsnError, PersistenceError

log = logging.getLogger("wmsdu.asn")

T = TypeVar("T")


class PersistenceGateway:
    """
    持久化网关：一个 AsyncSession + 一个引用计数事务作用域。

    服务层通过构造参数拿到网关（不走全局单例），
    每个顶层操作经 run() 获得唯一的原子单元。
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.tx = TxScope(session)

    async def run(
        self,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        *,
        actor: Optional[Actor],
        asn_id: Optional[int] = None,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> T:
        """
        统一执行：TxScope.atomic() 包住 fn。

        - AsnError：回滚后原样抛出
        - SQLAlchemyError：回滚，原因脱敏进日志，对外抛 PersistenceError
        - 只有最外层调用负责写失败审计（嵌套调用直接透传）
        """
        outermost = not self.tx.active
        try:
            async with self.tx.atomic():
                return await fn()
        except AsnError as e:
            if outermost:
                await self._on_failure(operation, actor, asn_id, e.code, e.message, payload)
            raise
        except SQLAlchemyError as e:
            if not outermost:
                raise
            log.error("%s failed (asn=%s): %s", operation, asn_id, scrub_secrets(str(e)))
            err = PersistenceError(operation, context={"asn_id": asn_id})
            await self._on_failure(operation, actor, asn_id, err.code, str(e), payload)
            raise err from e

    async def _on_failure(
        self,
        operation: str,
        actor: Optional[Actor],
        asn_id: Optional[int],
        code: str,
        cause: str,
        payload: Optional[Mapping[str, Any]],
    ) -> None:
        OP_ERRORS.labels(operation, code).inc()
        await activity_logger.record_failure(
            self.session,
            action=f"{operation.upper()}_ERROR",
            actor=actor,
            asn_id=asn_id,
            error=cause,
            payload=payload,
        )
