"""枚举定义 -- Assignment 状态机与领域枚举

包含 AssignmentStatus 状态机、Seniority、ActorKind、ActorStatus、
EventType、EventSource、SideEffectType、ViolationKind 枚举，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class AssignmentStatus(StrEnum):
    """Role Request 状态机"""

    DRAFT = "DRAFT"
    SEARCHING = "SEARCHING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"

    # 预留状态：仅由外部项目生命周期事件写入，引擎内无流转
    COMPLETED = "COMPLETED"


# 合法状态流转（引擎内）
VALID_TRANSITIONS: dict[AssignmentStatus, set[AssignmentStatus]] = {
    AssignmentStatus.DRAFT: {AssignmentStatus.SEARCHING},
    AssignmentStatus.SEARCHING: {
        AssignmentStatus.ACCEPTED,
        AssignmentStatus.DECLINED,
    },
    AssignmentStatus.ACCEPTED: {
        AssignmentStatus.SEARCHING,
        AssignmentStatus.DECLINED,
    },
    # 终态不可再流转
    AssignmentStatus.DECLINED: set(),
    AssignmentStatus.COMPLETED: set(),
}

TERMINAL_STATES: set[AssignmentStatus] = {
    AssignmentStatus.DECLINED,
    AssignmentStatus.COMPLETED,
}


class Seniority(StrEnum):
    """资历等级"""

    JUNIOR = "junior"
    INTERMEDIATE = "intermediate"
    SENIOR = "senior"


class ActorKind(StrEnum):
    """执行者类型"""

    HUMAN = "human"
    AI = "ai"


class ActorStatus(StrEnum):
    """执行者可用状态"""

    AVAILABLE = "available"
    QUALIFICATION = "qualification"
    PAUSED = "paused"


class EventType(StrEnum):
    """Assignment 事件类型"""

    REQUEST_CREATED = "REQUEST_CREATED"
    STATE_TRANSITION = "STATE_TRANSITION"
    REQUIREMENTS_CHANGED = "REQUIREMENTS_CHANGED"
    REPAIR_APPLIED = "REPAIR_APPLIED"


class EventSource(StrEnum):
    """写入方"""

    PROJECT_SETUP = "project_setup"
    CANDIDATE = "candidate"
    AI = "ai"
    OWNER = "owner"
    AUDITOR = "auditor"
    SYSTEM = "system"


class SideEffectType(StrEnum):
    """交由外部投递层执行的副作用"""

    NOTIFY_PROJECT_OWNER = "notify_project_owner"
    NOTIFY_SLOT_CLOSED = "notify_slot_closed"
    NOTIFY_SLOT_OPENED = "notify_slot_opened"
    NOTIFY_ACTOR_RELEASED = "notify_actor_released"
    PUBLISH_ASSIGNMENT_CHANGED = "publish_assignment_changed"


class ViolationKind(StrEnum):
    """一致性巡检发现的违规类型"""

    # ACCEPTED 但没有绑定执行者
    ORPHAN_ACCEPTED = "orphan_accepted"
    # 非 ACCEPTED 却残留绑定执行者
    STRAY_BINDING = "stray_binding"
    # AI 请求停留在 SEARCHING
    AI_UNBOUND = "ai_unbound"
    # AI 请求绑定的不是自身 profile_id
    AI_WRONG_ACTOR = "ai_wrong_actor"
    # 外部直接写入的非规范状态拼写（"booké"、"pending" ...）
    LEGACY_STATUS = "legacy_status"


def validate_transition(
    from_status: AssignmentStatus, to_status: AssignmentStatus
) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
