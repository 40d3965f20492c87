"""BookingCoordinator -- 接受 / 拒绝 / AI 自动绑定 / 撤回业务逻辑

每个操作都是一次以 request_id 为键的 CAS 读-改-写：
1. 持有 write_lock 重新读取请求
2. 在最新快照上校验前置条件（状态、资格、身份）
3. CAS 写入 role_requests + 审计事件（同一事务）
4. 返回 BookingOutcome，副作用交由外部层投递

CAS 未命中（其他进程并发写入）时重新读取并重新评估，
重新评估后请求已被占用则抛出 AlreadyBoundError，不会静默重试同一 accept。
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from talentbind.core.config import get_cas_max_retries
from talentbind.core.exceptions import (
    AlreadyBoundError,
    BookingError,
    InvalidTransitionError,
    NotEligibleError,
    NotFoundError,
    UnavailableError,
)
from talentbind.core.models import (
    TERMINAL_STATES,
    Actor,
    ActorKind,
    ActorStatus,
    AssignmentEvent,
    AssignmentStatus,
    BookingOutcome,
    EventSource,
    EventType,
    RequestCreatedPayload,
    RequirementChanges,
    RequirementsChangedPayload,
    RoleRequest,
    Seniority,
    StateTransitionPayload,
    normalize_tags,
    validate_transition,
)
from talentbind.core.store import (
    RevisionConflictError,
    StoreGroup,
    change_requirements_with_event,
    create_request_with_event,
    transition_with_event,
    translate_store_errors,
)
from talentbind.core.store.protocols import ActorDirectory, Catalog, EventStore
from ulid import ULID

from . import effects
from .matcher import Matcher

log = structlog.get_logger()

# decide(current) -> 目标快照；None 表示幂等命中，不写入
Decision = Callable[[RoleRequest], Awaitable[RoleRequest | None]]
PayloadFactory = Callable[[RoleRequest, RoleRequest], dict[str, Any]]


def _now() -> datetime:
    return datetime.now(UTC)


def build_event(
    request_id: str,
    event_type: EventType,
    source: EventSource,
    payload: dict[str, Any],
) -> Callable[[int], AssignmentEvent]:
    """按 request_seq 延迟构造审计事件（seq 在写事务内分配）"""

    def build(seq: int) -> AssignmentEvent:
        return AssignmentEvent(
            event_id=str(ULID()),
            request_id=request_id,
            request_seq=seq,
            ts=_now(),
            type=event_type,
            source=source,
            payload=payload,
            trace_id=f"trace-{request_id}",
        )

    return build


class BookingCoordinator:
    """Role Request 绑定协调器"""

    def __init__(
        self,
        store_group: StoreGroup,
        catalog: Catalog | None = None,
        actor_directory: ActorDirectory | None = None,
        matcher: Matcher | None = None,
        event_store: EventStore | None = None,
        max_retries: int | None = None,
    ) -> None:
        if max_retries is None:
            max_retries = get_cas_max_retries()
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        self._stores = store_group
        self._catalog = catalog or store_group.catalog
        self._actors = actor_directory or store_group.actor_directory
        self._matcher = matcher or Matcher(store_group.assignment_store, self._actors)
        self._events = event_store or store_group.event_store
        self._max_retries = max_retries

    @property
    def matcher(self) -> Matcher:
        return self._matcher

    @property
    def event_store(self) -> EventStore:
        return self._events

    # ------------------------------------------------------------------
    # 项目创建入口
    # ------------------------------------------------------------------

    async def open_request(
        self,
        project_id: str,
        profile_id: str,
        seniority: Seniority | str,
        required_languages: list[str] | frozenset[str] = (),
        required_expertise: list[str] | frozenset[str] = (),
        status: AssignmentStatus = AssignmentStatus.SEARCHING,
        invited_actor_ids: list[str] | frozenset[str] = (),
        request_id: str | None = None,
    ) -> BookingOutcome:
        """创建 Role Request（项目初始化调用）

        is_ai_request 由目录推导；以 SEARCHING 创建的 AI 请求立即自动绑定。

        Raises:
            NotFoundError: 岗位不在目录中
            ValueError: 初始状态不是 DRAFT / SEARCHING，或资历不在岗位选项内
        """
        if status not in (AssignmentStatus.DRAFT, AssignmentStatus.SEARCHING):
            raise ValueError(f"Requests are created in DRAFT or SEARCHING, not {status}")
        seniority = Seniority(seniority)

        with translate_store_errors("open_request"):
            profile = await self._catalog.get_capability_requirements(profile_id)
        if seniority not in profile.seniority_options:
            raise ValueError(
                f"Seniority {seniority} is not offered for profile {profile_id}"
            )

        now = _now()
        request = RoleRequest(
            request_id=request_id or str(ULID()),
            project_id=project_id,
            profile_id=profile_id,
            seniority=seniority,
            required_languages=normalize_tags(required_languages),
            required_expertise=normalize_tags(required_expertise),
            status=status,
            is_ai_request=profile.is_ai,
            invited_actor_ids=frozenset(invited_actor_ids),
            created_at=now,
            updated_at=now,
        )
        event = AssignmentEvent(
            event_id=str(ULID()),
            request_id=request.request_id,
            request_seq=1,
            ts=now,
            type=EventType.REQUEST_CREATED,
            source=EventSource.PROJECT_SETUP,
            payload=RequestCreatedPayload(
                project_id=project_id,
                profile_id=profile_id,
                seniority=seniority,
                required_languages=sorted(request.required_languages),
                required_expertise=sorted(request.required_expertise),
                status=status,
                is_ai_request=request.is_ai_request,
            ).model_dump(mode="json"),
            trace_id=f"trace-{request.request_id}",
        )

        with translate_store_errors("open_request"):
            async with self._stores.write_lock:
                await create_request_with_event(
                    self._stores.conn,
                    self._stores.assignment_store,
                    self._events,
                    request,
                    event,
                )

        log.info(
            "assignment_request_opened",
            request_id=request.request_id,
            project_id=project_id,
            profile_id=profile_id,
            status=status.value,
            is_ai_request=request.is_ai_request,
        )

        if status == AssignmentStatus.DRAFT:
            return BookingOutcome(
                request=request,
                side_effects=[effects.assignment_changed(request, "created")],
            )
        return await self._after_opened(request)

    async def activate(self, request_id: str) -> BookingOutcome:
        """DRAFT -> SEARCHING；AI 请求随即自动绑定"""

        async def decide(current: RoleRequest) -> RoleRequest | None:
            if current.status != AssignmentStatus.DRAFT:
                raise InvalidTransitionError(request_id, current.status, "activate")
            return self._target(current, status=AssignmentStatus.SEARCHING)

        _, committed, _ = await self.transition(
            request_id, "activate", decide, EventSource.OWNER, reason="activated"
        )
        log.info("assignment_activated", request_id=request_id)
        return await self._after_opened(committed)

    # ------------------------------------------------------------------
    # 绑定生命周期
    # ------------------------------------------------------------------

    async def accept(self, request_id: str, actor_id: str) -> BookingOutcome:
        """执行者接受请求（先接受者得）

        Raises:
            NotFoundError: 请求或执行者不存在
            AlreadyBoundError: 请求已被接受或已关闭
            InvalidTransitionError: 请求仍是 DRAFT
            NotEligibleError: 执行者不满足要求
        """
        with translate_store_errors("accept"):
            if await self._stores.assignment_store.get_request(request_id) is None:
                raise NotFoundError("request", request_id)
            actor = await self._actors.get_actor(actor_id)

        async def decide(current: RoleRequest) -> RoleRequest | None:
            self._ensure_open(current)
            reasons = self._matcher.explain(actor, current)
            if reasons:
                log.info(
                    "accept_not_eligible",
                    request_id=request_id,
                    actor_id=actor_id,
                    reasons=reasons,
                )
                raise NotEligibleError(request_id, actor_id, reasons)
            return self._target(
                current, status=AssignmentStatus.ACCEPTED, bound_actor_id=actor_id
            )

        source = EventSource.AI if actor.kind == ActorKind.AI else EventSource.CANDIDATE
        _, committed, _ = await self.transition(
            request_id, "accept", decide, source, reason="accepted"
        )
        log.info(
            "assignment_accepted",
            request_id=request_id,
            actor_id=actor_id,
            revision=committed.revision,
        )

        others = await self._other_candidates(committed, exclude={actor_id})
        return BookingOutcome(
            request=committed, side_effects=effects.accepted(committed, others)
        )

    async def decline(
        self,
        request_id: str,
        actor_id: str,
        override: bool = False,
        reason: str = "declined",
    ) -> BookingOutcome:
        """绑定执行者放弃请求，请求重新开放（ACCEPTED -> SEARCHING）

        override=True 表示外部已授权的取消方代为释放，不校验身份。
        AI 请求被释放后立即重新自动绑定。
        """

        async def decide(current: RoleRequest) -> RoleRequest | None:
            if current.status != AssignmentStatus.ACCEPTED:
                raise InvalidTransitionError(request_id, current.status, "decline")
            if not override and current.bound_actor_id != actor_id:
                raise InvalidTransitionError(
                    request_id,
                    current.status,
                    "decline",
                    f"{actor_id} is not the bound actor",
                )
            return self._target(
                current, status=AssignmentStatus.SEARCHING, bound_actor_id=None
            )

        source = EventSource.OWNER if override else EventSource.CANDIDATE
        before, committed, _ = await self.transition(
            request_id, "decline", decide, source, reason=reason
        )
        released = before.bound_actor_id
        log.info(
            "assignment_declined",
            request_id=request_id,
            released_actor_id=released,
            override=override,
        )
        return await self._after_reopened(committed, released, reason)

    async def auto_bind_ai(
        self,
        request_id: str,
        source: EventSource = EventSource.AI,
    ) -> BookingOutcome:
        """AI 请求绑定到 actor_id == profile_id 的 AI 执行者

        已正确绑定时为幂等成功（changed=False，无副作用）。
        绑定到错误执行者的 ACCEPTED 请求会被改绑。
        """

        async def decide(current: RoleRequest) -> RoleRequest | None:
            if not current.is_ai_request:
                raise InvalidTransitionError(
                    request_id, current.status, "auto_bind_ai", "not an AI request"
                )
            if current.status in (AssignmentStatus.DRAFT, *TERMINAL_STATES):
                raise InvalidTransitionError(request_id, current.status, "auto_bind_ai")
            if (
                current.status == AssignmentStatus.ACCEPTED
                and current.bound_actor_id == current.profile_id
            ):
                return None
            return self._target(
                current,
                status=AssignmentStatus.ACCEPTED,
                bound_actor_id=current.profile_id,
            )

        before, committed, changed = await self.transition(
            request_id, "auto_bind_ai", decide, source, reason="ai_auto_bind"
        )
        if not changed:
            return BookingOutcome(request=committed, changed=False)

        log.info(
            "assignment_ai_bound",
            request_id=request_id,
            profile_id=committed.profile_id,
            previous_actor_id=before.bound_actor_id,
        )
        side_effects = effects.accepted(committed, [])
        displaced = before.bound_actor_id
        if displaced is not None and displaced != committed.profile_id:
            side_effects.insert(
                1, effects.actor_released(committed, displaced, "ai_rebound")
            )
        return BookingOutcome(request=committed, side_effects=side_effects)

    async def withdraw(self, request_id: str, reason: str = "withdrawn") -> BookingOutcome:
        """项目撤下岗位：SEARCHING / ACCEPTED -> DECLINED（终态）"""

        async def decide(current: RoleRequest) -> RoleRequest | None:
            if not validate_transition(current.status, AssignmentStatus.DECLINED):
                raise InvalidTransitionError(request_id, current.status, "withdraw")
            return self._target(
                current, status=AssignmentStatus.DECLINED, bound_actor_id=None
            )

        before, committed, _ = await self.transition(
            request_id, "withdraw", decide, EventSource.OWNER, reason=reason
        )
        log.info(
            "assignment_withdrawn",
            request_id=request_id,
            released_actor_id=before.bound_actor_id,
            reason=reason,
        )
        released = before.bound_actor_id if not committed.is_ai_request else None
        return BookingOutcome(
            request=committed,
            side_effects=effects.withdrawn(committed, released, reason),
        )

    async def modify_requirements(
        self,
        request_id: str,
        changes: RequirementChanges,
        reason: str = "",
    ) -> BookingOutcome:
        """修改请求的能力要求

        若请求已被接受且绑定的人类执行者不再满足新要求，释放绑定并重新开放；
        否则保留绑定。

        Raises:
            ValueError: 变更为空，或新资历不在岗位选项内
            InvalidTransitionError: 请求已处于终态
        """
        if changes.is_empty():
            raise ValueError("No requirement changes given")

        existing = await self._load_outside_lock(request_id, "modify_requirements")
        if changes.seniority is not None:
            with translate_store_errors("modify_requirements"):
                profile = await self._catalog.get_capability_requirements(
                    existing.profile_id
                )
            if changes.seniority not in profile.seniority_options:
                raise ValueError(
                    f"Seniority {changes.seniority} is not offered for "
                    f"profile {existing.profile_id}"
                )

        released: dict[str, str | None] = {"actor_id": None}

        async def decide(current: RoleRequest) -> RoleRequest | None:
            if current.status in TERMINAL_STATES:
                raise InvalidTransitionError(
                    request_id, current.status, "modify_requirements"
                )
            update: dict[str, Any] = {}
            if changes.seniority is not None:
                update["seniority"] = changes.seniority
            if changes.required_languages is not None:
                update["required_languages"] = changes.required_languages
            if changes.required_expertise is not None:
                update["required_expertise"] = changes.required_expertise
            target = self._target(current, **update)

            released["actor_id"] = None
            bound = current.bound_actor_id
            if (
                current.status == AssignmentStatus.ACCEPTED
                and bound is not None
                and not current.is_ai_request
                and not await self._still_eligible(bound, target)
            ):
                released["actor_id"] = bound
                target = target.model_copy(
                    update={"status": AssignmentStatus.SEARCHING, "bound_actor_id": None}
                )
            return target

        def payload(current: RoleRequest, target: RoleRequest) -> dict[str, Any]:
            return RequirementsChangedPayload(
                previous_seniority=current.seniority,
                new_seniority=target.seniority,
                previous_languages=sorted(current.required_languages),
                new_languages=sorted(target.required_languages),
                previous_expertise=sorted(current.required_expertise),
                new_expertise=sorted(target.required_expertise),
                released_actor_id=released["actor_id"],
                reason=reason,
            ).model_dump(mode="json")

        _, committed, _ = await self.transition(
            request_id,
            "modify_requirements",
            decide,
            EventSource.OWNER,
            reason=reason,
            event_type=EventType.REQUIREMENTS_CHANGED,
            payload_factory=payload,
        )
        log.info(
            "assignment_requirements_changed",
            request_id=request_id,
            released_actor_id=released["actor_id"],
        )

        if released["actor_id"] is not None:
            return await self._after_reopened(
                committed, released["actor_id"], "requirements_changed"
            )
        side_effects = [effects.assignment_changed(committed, "requirements_changed")]
        if committed.is_open:
            candidates = await self._other_candidates(committed, exclude=set())
            side_effects = effects.opened(committed, candidates)
        return BookingOutcome(request=committed, side_effects=side_effects)

    # ------------------------------------------------------------------
    # CAS 写入通道（ConsistencyAuditor 共用）
    # ------------------------------------------------------------------

    async def transition(
        self,
        request_id: str,
        operation: str,
        decide: Decision,
        source: EventSource,
        reason: str = "",
        event_type: EventType = EventType.STATE_TRANSITION,
        payload_factory: PayloadFactory | None = None,
    ) -> tuple[RoleRequest, RoleRequest, bool]:
        """在最新快照上评估 decide 并 CAS 写入

        Returns:
            (写入前快照, 写入后快照, 是否写入)

        Raises:
            decide 抛出的业务异常；UnavailableError；
            BookingError: 连续 CAS 冲突超过重试上限
        """
        for attempt in range(1, self._max_retries + 1):
            with translate_store_errors(operation):
                async with self._stores.write_lock:
                    current = await self._load(request_id)
                    target = await decide(current)
                    if target is None:
                        return current, current, False

                    if payload_factory is not None:
                        payload = payload_factory(current, target)
                    else:
                        payload = StateTransitionPayload(
                            from_status=current.status,
                            to_status=target.status,
                            from_actor_id=current.bound_actor_id,
                            to_actor_id=target.bound_actor_id,
                            reason=reason,
                        ).model_dump(mode="json")

                    # 需求变更会改写能力字段，其余写入只改 status / bound_actor_id
                    writer = (
                        change_requirements_with_event
                        if event_type == EventType.REQUIREMENTS_CHANGED
                        else transition_with_event
                    )
                    try:
                        committed = await writer(
                            self._stores.conn,
                            self._stores.assignment_store,
                            self._events,
                            current,
                            target,
                            build_event(request_id, event_type, source, payload),
                            operation=operation,
                        )
                    except RevisionConflictError:
                        log.warning(
                            "assignment_cas_conflict_retry",
                            request_id=request_id,
                            operation=operation,
                            attempt=attempt,
                        )
                        continue
                    return current, committed, True

        raise BookingError(
            f"{operation} on {request_id} kept conflicting after "
            f"{self._max_retries} attempts",
            recoverable=True,
        )

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    @staticmethod
    def _target(current: RoleRequest, **update: Any) -> RoleRequest:
        return current.model_copy(update={**update, "updated_at": _now()})

    @staticmethod
    def _ensure_open(current: RoleRequest) -> None:
        if current.status == AssignmentStatus.DRAFT:
            raise InvalidTransitionError(
                current.request_id, current.status, "accept", "request is not active"
            )
        if not current.is_open:
            raise AlreadyBoundError(
                current.request_id, current.status, current.bound_actor_id
            )

    async def _load(self, request_id: str) -> RoleRequest:
        request = await self._stores.assignment_store.get_request(request_id)
        if request is None:
            raise NotFoundError("request", request_id)
        return request

    async def _load_outside_lock(self, request_id: str, operation: str) -> RoleRequest:
        with translate_store_errors(operation):
            return await self._load(request_id)

    async def _still_eligible(self, actor_id: str, target: RoleRequest) -> bool:
        try:
            actor: Actor = await self._actors.get_actor(actor_id)
        except NotFoundError:
            return False
        # 资格复核只看能力，不因执行者暂停接单而解除已有绑定
        capability_only = actor.model_copy(update={"status": ActorStatus.AVAILABLE})
        return self._matcher.is_eligible(capability_only, target)

    async def _other_candidates(
        self, request: RoleRequest, exclude: set[str]
    ) -> list[str]:
        """候选人通知名单，只在写入提交之后调用

        写入已经生效，目录查询失败不能再让调用方看到可重试错误，
        此时记录日志并返回空名单，通知降级为仅通知项目方。
        """
        if request.is_ai_request:
            return []
        try:
            with translate_store_errors("find_candidates"):
                candidates = await self._matcher.find_candidates_for(
                    request.model_copy(update={"status": AssignmentStatus.SEARCHING})
                )
        except UnavailableError as e:
            log.warning(
                "side_effect_enrichment_failed",
                request_id=request.request_id,
                status=request.status.value,
                error=str(e),
            )
            return []
        return [a.actor_id for a in candidates if a.actor_id not in exclude]

    async def _after_opened(self, request: RoleRequest) -> BookingOutcome:
        """请求进入 SEARCHING 之后：AI 自动绑定，人类岗位通知候选人"""
        if request.is_ai_request:
            opened = [effects.assignment_changed(request, "opened")]
            bound = await self._bind_ai_after_commit(request)
            if bound is None:
                return BookingOutcome(request=request, side_effects=opened)
            return BookingOutcome(
                request=bound.request,
                side_effects=opened + bound.side_effects,
                changed=True,
            )
        candidates = await self._other_candidates(request, exclude=set())
        return BookingOutcome(request=request, side_effects=effects.opened(request, candidates))

    async def _after_reopened(
        self,
        request: RoleRequest,
        released_actor_id: str | None,
        reason: str,
    ) -> BookingOutcome:
        """绑定被释放之后：AI 请求立即改回自身 AI，人类岗位重新通知候选人"""
        if request.is_ai_request:
            reopened = effects.reopened(request, None, [], reason)
            bound = await self._bind_ai_after_commit(request)
            if bound is None:
                return BookingOutcome(request=request, side_effects=reopened)
            return BookingOutcome(
                request=bound.request,
                side_effects=reopened + bound.side_effects,
            )
        candidates = await self._other_candidates(request, exclude=set())
        others = [c for c in candidates if c != released_actor_id]
        return BookingOutcome(
            request=request,
            side_effects=effects.reopened(request, released_actor_id, others, reason),
        )

    async def _bind_ai_after_commit(self, request: RoleRequest) -> BookingOutcome | None:
        """已提交的 SEARCHING AI 请求随即自动绑定

        前一次写入已经生效；自动绑定失败时不向调用方抛出，
        请求保持 SEARCHING，由 ConsistencyAuditor 按 AI_UNBOUND 补绑。
        """
        try:
            return await self.auto_bind_ai(request.request_id, source=EventSource.SYSTEM)
        except BookingError as e:
            log.warning(
                "ai_auto_bind_deferred",
                request_id=request.request_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None
