"""副作用与操作结果模型

BookingCoordinator 不直接投递通知或实时事件，而是返回 SideEffect 列表，
由外部层选择推送或轮询方式投递。
"""

from typing import Any

from pydantic import BaseModel, Field

from .assignment import RoleRequest
from .enums import SideEffectType


class SideEffect(BaseModel):
    """待外部投递的副作用"""

    type: SideEffectType
    project_id: str
    request_id: str
    recipient_ids: list[str] = Field(default_factory=list, description="接收方 ID")
    payload: dict[str, Any] = Field(default_factory=dict)


class BookingOutcome(BaseModel):
    """Coordinator 操作结果

    changed=False 表示幂等命中（例如 AI 已正确绑定），此时 side_effects 为空。
    """

    request: RoleRequest
    side_effects: list[SideEffect] = Field(default_factory=list)
    changed: bool = True

    def effects_of(self, effect_type: SideEffectType) -> list[SideEffect]:
        return [e for e in self.side_effects if e.type == effect_type]
