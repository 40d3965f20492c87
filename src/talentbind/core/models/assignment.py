"""Role Request（Assignment）领域模型

一个 Role Request 描述项目对某个岗位的需求（profile + seniority +
语言/专长要求），以及当前绑定的执行者与状态。

不变量：
- 绑定一致：status == ACCEPTED 当且仅当 bound_actor_id 非空
- AI 身份：AI 请求处于 ACCEPTED 时，bound_actor_id == profile_id
- DRAFT 请求对 Matcher 不可见
"""

from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .enums import AssignmentStatus, Seniority


def normalize_tag(value: str) -> str:
    """语言/专长标签统一为去空白 + casefold"""
    return value.strip().casefold()


def normalize_tags(values: Iterable[str] | None) -> frozenset[str]:
    """批量标准化标签，空字符串丢弃"""
    if not values:
        return frozenset()
    return frozenset(t for t in (normalize_tag(v) for v in values) if t)


class RoleRequest(BaseModel):
    """Role Request 数据模型

    status / bound_actor_id 只能由 BookingCoordinator 与 ConsistencyAuditor
    通过 CAS 写入修改；revision 在每次写入时递增。
    """

    request_id: str = Field(description="唯一标识，ULID 格式")
    project_id: str = Field(description="所属项目 ID（外部拥有）")
    profile_id: str = Field(description="岗位 ID")
    seniority: Seniority = Field(description="要求的资历等级")
    required_languages: frozenset[str] = Field(
        default_factory=frozenset, description="必须全部满足的语言"
    )
    required_expertise: frozenset[str] = Field(
        default_factory=frozenset, description="必须全部满足的专长"
    )
    bound_actor_id: str | None = Field(default=None, description="当前绑定的执行者")
    status: AssignmentStatus = Field(default=AssignmentStatus.SEARCHING)
    is_ai_request: bool = Field(default=False, description="岗位是否由 AI 承担")
    invited_actor_ids: frozenset[str] = Field(
        default_factory=frozenset,
        description="邀请白名单，为空表示对所有合格执行者开放",
    )
    revision: int = Field(default=1, ge=1, description="乐观并发版本号")
    created_at: datetime
    updated_at: datetime

    @field_validator("required_languages", "required_expertise", mode="before")
    @classmethod
    def _normalize_requirements(cls, value):
        return normalize_tags(value)

    @property
    def is_open(self) -> bool:
        """可被接受：SEARCHING 且未绑定"""
        return self.status == AssignmentStatus.SEARCHING and self.bound_actor_id is None

    def invariant_errors(self) -> list[str]:
        """返回当前快照违反的不变量描述，空列表表示一致"""
        errors: list[str] = []
        accepted = self.status == AssignmentStatus.ACCEPTED
        if accepted and self.bound_actor_id is None:
            errors.append("binding: ACCEPTED without bound actor")
        if not accepted and self.bound_actor_id is not None:
            errors.append(f"binding: bound actor on {self.status} request")
        if (
            self.is_ai_request
            and accepted
            and self.bound_actor_id is not None
            and self.bound_actor_id != self.profile_id
        ):
            errors.append("ai identity: AI request bound to foreign actor")
        return errors


class RequirementChanges(BaseModel):
    """需求变更（None 表示该项不变）"""

    seniority: Seniority | None = None
    required_languages: frozenset[str] | None = None
    required_expertise: frozenset[str] | None = None

    @field_validator("required_languages", "required_expertise", mode="before")
    @classmethod
    def _normalize(cls, value):
        if value is None:
            return None
        return normalize_tags(value)

    def is_empty(self) -> bool:
        return (
            self.seniority is None
            and self.required_languages is None
            and self.required_expertise is None
        )
