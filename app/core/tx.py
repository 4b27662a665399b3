# app/core/tx.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

log = logging.getLogger("wmsdu.tx")


class TxScope:
    """
    引用计数的事务作用域（嵌套 begin 共享同一个库事务）：

    - begin：depth 从 0 → 1 时才真正开启事务，其余只做 depth += 1
    - commit：depth 回到 0 时才真正提交
    - rollback：任意层级都立即回滚整个事务，depth 归零

    子操作各自 begin/commit，外层入口拿到的仍是一个原子单元。
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.depth = 0

    @property
    def active(self) -> bool:
        return self.depth > 0

    async def begin(self) -> None:
        if self.depth == 0 and not self.session.in_transaction():
            await self.session.begin()
            log.debug("tx begin")
        self.depth += 1

    async def commit(self) -> None:
        if self.depth == 0:
            raise RuntimeError("commit() without matching begin()")
        self.depth -= 1
        if self.depth == 0:
            await self.session.commit()
            log.debug("tx commit")

    async def rollback(self) -> None:
        if self.depth == 0 and not self.session.in_transaction():
            return
        self.depth = 0
        await self.session.rollback()
        log.warning("tx rollback")

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator["TxScope"]:
        """begin → yield → commit；异常时 rollback 后原样抛出。"""
        await self.begin()
        try:
            yield self
        except BaseException:
            await self.rollback()
            raise
        else:
            # 内层已 rollback 过（depth 归零）时不再提交
            if self.depth > 0:
                await self.commit()
