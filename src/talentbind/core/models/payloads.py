"""Assignment Event Payload 子类型"""

from pydantic import BaseModel, Field

from .enums import AssignmentStatus, Seniority, ViolationKind


class RequestCreatedPayload(BaseModel):
    """REQUEST_CREATED 事件 payload"""

    project_id: str
    profile_id: str
    seniority: Seniority
    required_languages: list[str] = Field(default_factory=list)
    required_expertise: list[str] = Field(default_factory=list)
    status: AssignmentStatus
    is_ai_request: bool = False


class StateTransitionPayload(BaseModel):
    """STATE_TRANSITION 事件 payload"""

    from_status: AssignmentStatus
    to_status: AssignmentStatus
    from_actor_id: str | None = None
    to_actor_id: str | None = None
    reason: str = Field(default="")


class RequirementsChangedPayload(BaseModel):
    """REQUIREMENTS_CHANGED 事件 payload"""

    previous_seniority: Seniority
    new_seniority: Seniority
    previous_languages: list[str] = Field(default_factory=list)
    new_languages: list[str] = Field(default_factory=list)
    previous_expertise: list[str] = Field(default_factory=list)
    new_expertise: list[str] = Field(default_factory=list)
    released_actor_id: str | None = Field(
        default=None, description="因不再满足要求而被释放的执行者"
    )
    reason: str = Field(default="")


class RepairAppliedPayload(BaseModel):
    """REPAIR_APPLIED 事件 payload"""

    violation: ViolationKind
    from_status: AssignmentStatus
    to_status: AssignmentStatus
    from_actor_id: str | None = None
    to_actor_id: str | None = None
