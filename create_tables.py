# create_tables.py
import asyncio

from app.core.config import get_settings
from app.core.logging import setup_logging
from app.db import Base, async_engine, init_models


async def main() -> None:
    # 导入所有模型，确保它们的元数据被注册
    init_models()
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await async_engine.dispose()


if __name__ == "__main__":
    setup_logging(get_settings().LOG_LEVEL)
    print("正在创建所有数据库表...")
    asyncio.run(main())
    print("所有数据库表创建完成！")
