"""TalentBind Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .actor import Actor, RoleProfile
from .aliases import normalize_status, to_external
from .assignment import RequirementChanges, RoleRequest, normalize_tag, normalize_tags
from .effects import BookingOutcome, SideEffect
from .enums import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ActorKind,
    ActorStatus,
    AssignmentStatus,
    EventSource,
    EventType,
    Seniority,
    SideEffectType,
    ViolationKind,
    validate_transition,
)
from .event import AssignmentEvent
from .payloads import (
    RepairAppliedPayload,
    RequestCreatedPayload,
    RequirementsChangedPayload,
    StateTransitionPayload,
)
from .violation import RepairResult, SweepReport, Violation

__all__ = [
    # 枚举
    "AssignmentStatus",
    "Seniority",
    "ActorKind",
    "ActorStatus",
    "EventType",
    "EventSource",
    "SideEffectType",
    "ViolationKind",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # 状态翻译
    "normalize_status",
    "to_external",
    # Role Request
    "RoleRequest",
    "RequirementChanges",
    "normalize_tag",
    "normalize_tags",
    # Actor / Catalog
    "Actor",
    "RoleProfile",
    # Event
    "AssignmentEvent",
    # Effects
    "SideEffect",
    "BookingOutcome",
    # 巡检
    "Violation",
    "RepairResult",
    "SweepReport",
    # Payloads
    "RequestCreatedPayload",
    "StateTransitionPayload",
    "RequirementsChangedPayload",
    "RepairAppliedPayload",
]
