"""一致性巡检模型"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import AssignmentStatus, ViolationKind


class Violation(BaseModel):
    """巡检时观察到的违规快照"""

    request_id: str
    kind: ViolationKind
    observed_status: AssignmentStatus
    observed_actor_id: str | None = None
    observed_revision: int
    detected_at: datetime
    raw_status: str | None = Field(
        default=None, description="存储中的原始状态拼写，仅 LEGACY_STATUS 携带"
    )


class RepairResult(BaseModel):
    """单条修复结果

    applied=False 表示违规已不存在（被并发写入修复或从未发生），属于幂等成功。
    """

    violation: Violation
    applied: bool
    final_status: AssignmentStatus
    final_actor_id: str | None = None
    detail: str = Field(default="")


class SweepReport(BaseModel):
    """一次完整巡检的汇总"""

    started_at: datetime
    finished_at: datetime
    scanned: int = 0
    violations: list[Violation] = Field(default_factory=list)
    repaired: list[RepairResult] = Field(default_factory=list)
    failed: dict[str, str] = Field(
        default_factory=dict, description="request_id -> 错误类型"
    )
    undecodable: dict[str, str] = Field(
        default_factory=dict, description="无法解码的行：request_id -> 解码错误"
    )
