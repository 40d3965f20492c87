"""SideEffect 构造

项目所有者由外部按 project_id 解析，因此 NOTIFY_PROJECT_OWNER 不携带接收方。
"""

from talentbind.core.models import RoleRequest, SideEffect, SideEffectType


def _effect(
    effect_type: SideEffectType,
    request: RoleRequest,
    recipient_ids: list[str] | None = None,
    **payload,
) -> SideEffect:
    return SideEffect(
        type=effect_type,
        project_id=request.project_id,
        request_id=request.request_id,
        recipient_ids=recipient_ids or [],
        payload=payload,
    )


def actor_released(request: RoleRequest, actor_id: str, reason: str) -> SideEffect:
    return _effect(
        SideEffectType.NOTIFY_ACTOR_RELEASED, request, [actor_id], reason=reason
    )


def assignment_changed(request: RoleRequest, reason: str) -> SideEffect:
    """实时订阅者（项目的 assignment 列表）需要刷新"""
    return _effect(
        SideEffectType.PUBLISH_ASSIGNMENT_CHANGED,
        request,
        status=request.status.value,
        bound_actor_id=request.bound_actor_id,
        revision=request.revision,
        reason=reason,
    )


def accepted(request: RoleRequest, other_candidate_ids: list[str]) -> list[SideEffect]:
    effects = [
        _effect(
            SideEffectType.NOTIFY_PROJECT_OWNER,
            request,
            event="accepted",
            actor_id=request.bound_actor_id,
            is_ai=request.is_ai_request,
        )
    ]
    if other_candidate_ids:
        effects.append(
            _effect(SideEffectType.NOTIFY_SLOT_CLOSED, request, other_candidate_ids)
        )
    effects.append(assignment_changed(request, "accepted"))
    return effects


def reopened(
    request: RoleRequest,
    released_actor_id: str | None,
    candidate_ids: list[str],
    reason: str,
) -> list[SideEffect]:
    effects = [
        _effect(
            SideEffectType.NOTIFY_PROJECT_OWNER,
            request,
            event=reason,
            actor_id=released_actor_id,
        )
    ]
    if released_actor_id is not None:
        effects.append(actor_released(request, released_actor_id, reason))
    if candidate_ids:
        effects.append(_effect(SideEffectType.NOTIFY_SLOT_OPENED, request, candidate_ids))
    effects.append(assignment_changed(request, reason))
    return effects


def opened(request: RoleRequest, candidate_ids: list[str]) -> list[SideEffect]:
    effects: list[SideEffect] = []
    if candidate_ids:
        effects.append(_effect(SideEffectType.NOTIFY_SLOT_OPENED, request, candidate_ids))
    effects.append(assignment_changed(request, "opened"))
    return effects


def withdrawn(
    request: RoleRequest,
    released_actor_id: str | None,
    reason: str,
) -> list[SideEffect]:
    effects: list[SideEffect] = []
    if released_actor_id is not None:
        effects.append(actor_released(request, released_actor_id, reason))
    effects.append(assignment_changed(request, "withdrawn"))
    return effects
