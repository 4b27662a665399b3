# tests/conftest.py
from __future__ import annotations

import os
from typing import AsyncGenerator

# ============================================================
# ★★ 关键：在 import app.* 之前固定测试库 DSN ★★
#   配置由 get_settings() 缓存，engine 在 app.db.session 导入时创建
# ============================================================
os.environ.setdefault("WMS_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.db.base import Base, init_models  # noqa: E402
from app.db.session import build_engine, get_session  # noqa: E402
from app.main import app  # noqa: E402
from app.models.supplier import Supplier  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =========================================
# 每用例独立内存库（StaticPool：同一连接，表结构随 engine 存活）
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    init_models()
    engine = build_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as sess:
        try:
            yield sess
        finally:
            if sess.in_transaction():
                await sess.rollback()


# =========================================
# 最小种子：一个启用的供应商 + 一个停用的供应商
# =========================================
@pytest_asyncio.fixture(scope="function")
async def supplier_id(async_session_maker) -> int:
    async with async_session_maker() as sess:
        active = Supplier(code="SUP-ACME", name="Acme Supplies", is_active=True)
        inactive = Supplier(code="SUP-OLD", name="Old Vendor", is_active=False)
        sess.add_all([active, inactive])
        await sess.commit()
        return int(active.id)


@pytest_asyncio.fixture(scope="function")
async def inactive_supplier_id(async_session_maker, supplier_id: int) -> int:
    async with async_session_maker() as sess:
        return int((await sess.execute(select(Supplier.id).where(Supplier.code == "SUP-OLD"))).scalar_one())


# =========================================
# FastAPI / httpx AsyncClient（get_session 指向测试库）
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(async_session_maker) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with async_session_maker() as sess:
            yield sess

    app.dependency_overrides[get_session] = _override_session
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(
            transport=transport,
            base_url="http://testserver",
            timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=5.0, pool=5.0),
        ) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_session, None)
