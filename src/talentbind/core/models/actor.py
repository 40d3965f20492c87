"""Actor 与 Catalog 领域模型

Actor 与 RoleProfile 由外部入职 / 目录管理流程维护，本引擎只读。
AI 执行者的 actor_id 约定等于其岗位的 profile_id。
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .assignment import normalize_tags
from .enums import ActorKind, ActorStatus, Seniority


class Actor(BaseModel):
    """执行者（人类候选人或 AI 资源）"""

    actor_id: str = Field(description="执行者 ID，与 AI 岗位 ID 共享命名空间")
    kind: ActorKind = Field(default=ActorKind.HUMAN)
    profile_id: str = Field(description="岗位 ID")
    seniority: Seniority
    languages: frozenset[str] = Field(default_factory=frozenset)
    expertise: frozenset[str] = Field(default_factory=frozenset)
    status: ActorStatus = Field(default=ActorStatus.AVAILABLE)

    @field_validator("languages", "expertise", mode="before")
    @classmethod
    def _normalize_tags(cls, value):
        return normalize_tags(value)

    @model_validator(mode="after")
    def _ai_identity(self) -> "Actor":
        if self.kind == ActorKind.AI and self.actor_id != self.profile_id:
            raise ValueError("AI actor_id must equal its profile_id")
        return self

    @property
    def is_available(self) -> bool:
        """AI 始终可用；人类需处于 available"""
        return self.kind == ActorKind.AI or self.status == ActorStatus.AVAILABLE


class RoleProfile(BaseModel):
    """目录中的岗位条目"""

    profile_id: str
    name: str = Field(default="")
    is_ai: bool = Field(default=False)
    seniority_options: frozenset[Seniority] = Field(
        default_factory=lambda: frozenset(Seniority),
        description="该岗位允许的资历等级",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
