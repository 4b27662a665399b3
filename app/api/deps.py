# app/api/deps.py
from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import Actor
from app.db.session import get_session
from app.models.enums import Role
from app.services.asn_delete_service import AsnDeleteService
from app.services.asn_errors import PermissionDeniedError
from app.services.asn_gateway import PersistenceGateway
from app.services.asn_lines_service import AsnLinesService
from app.services.asn_process_service import AsnProcessService
from app.services.asn_service import AsnService

# ---------------------------
# 当前操作者
# ---------------------------


async def get_actor(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Actor:
    """
    操作者由上游认证层解析后通过请求头传入：
    - X-User-Id   用户 id
    - X-User-Role viewer / operator / supervisor / manager / admin
    缺省或无法识别的角色按 viewer 处理。
    """
    try:
        role = Role((x_user_role or Role.VIEWER.value).strip().lower())
    except ValueError:
        role = Role.VIEWER
    return Actor(user_id=x_user_id, role=role)


def require_role(required: Role) -> Callable[..., Actor]:
    """路由级角色门槛：不足时抛 PermissionDeniedError（→ 403 Problem）。"""

    async def _dep(actor: Actor = Depends(get_actor)) -> Actor:
        if not actor.has(required):
            raise PermissionDeniedError(
                f"{required.value} role required",
                context={"required": required.value, "actual": actor.role.value},
            )
        return actor

    return _dep


# ---------------------------
# 网关 / 服务（每请求一份，显式注入）
# ---------------------------


async def get_gateway(session: AsyncSession = Depends(get_session)) -> PersistenceGateway:
    return PersistenceGateway(session)


async def get_asn_service(gw: PersistenceGateway = Depends(get_gateway)) -> AsnService:
    return AsnService(gw)


async def get_lines_service(gw: PersistenceGateway = Depends(get_gateway)) -> AsnLinesService:
    return AsnLinesService(gw)


async def get_process_service(gw: PersistenceGateway = Depends(get_gateway)) -> AsnProcessService:
    return AsnProcessService(gw)


async def get_delete_service(gw: PersistenceGateway = Depends(get_gateway)) -> AsnDeleteService:
    return AsnDeleteService(gw)
