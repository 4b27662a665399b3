# app/core/actor.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.models.enums import ROLE_LEVELS, Role


@dataclass(frozen=True)
class Actor:
    """
    当前操作者（由外部认证层解析后注入，核心逻辑只认 user_id + role）。
    """

    user_id: Optional[int]
    role: Role = Role.VIEWER

    def has(self, required: Role | str) -> bool:
        need = ROLE_LEVELS.get(Role(required), max(ROLE_LEVELS.values()))
        return ROLE_LEVELS.get(self.role, 0) >= need

