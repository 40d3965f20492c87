"""Matcher -- 资格判定与开放请求检索

资格关系（不存储，按需推导）：
- profile_id 完全一致
- seniority 完全一致
- 执行者 languages / expertise 是请求要求的超集
- 执行者处于可用状态（AI 始终可用）
- 请求设置了邀请白名单时，执行者必须在白名单内
- AI 请求只能由 actor_id == profile_id 的 AI 执行者承担

Matcher 只读，无副作用。
"""

from talentbind.core.models import Actor, RoleRequest
from talentbind.core.store.protocols import ActorDirectory, AssignmentStore


def eligibility_failures(actor: Actor, request: RoleRequest) -> list[str]:
    """返回不满足的判定项，空列表表示合格"""
    failures: list[str] = []
    if actor.profile_id != request.profile_id:
        failures.append("profile")
    if actor.seniority != request.seniority:
        failures.append("seniority")
    missing_languages = request.required_languages - actor.languages
    if missing_languages:
        failures.append(f"languages missing {sorted(missing_languages)}")
    missing_expertise = request.required_expertise - actor.expertise
    if missing_expertise:
        failures.append(f"expertise missing {sorted(missing_expertise)}")
    if not actor.is_available:
        failures.append(f"actor status {actor.status}")
    if request.invited_actor_ids and actor.actor_id not in request.invited_actor_ids:
        failures.append("not invited")
    if request.is_ai_request and actor.actor_id != request.profile_id:
        failures.append("ai request reserved for its own ai actor")
    return failures


def is_eligible(actor: Actor, request: RoleRequest) -> bool:
    """资格判定纯函数，Matcher 与 BookingCoordinator 共用"""
    return not eligibility_failures(actor, request)


class Matcher:
    """基于 AssignmentStore / ActorDirectory 快照的只读匹配器"""

    def __init__(
        self,
        assignment_store: AssignmentStore,
        actor_directory: ActorDirectory,
    ) -> None:
        self._assignments = assignment_store
        self._actors = actor_directory

    @staticmethod
    def is_eligible(actor: Actor, request: RoleRequest) -> bool:
        return is_eligible(actor, request)

    @staticmethod
    def explain(actor: Actor, request: RoleRequest) -> list[str]:
        return eligibility_failures(actor, request)

    async def find_open_requests_for(self, actor: Actor) -> list[RoleRequest]:
        """执行者可接受的所有开放请求，按创建顺序

        DRAFT 请求不会出现在结果中；先接受者得，不做优先级排序。
        """
        if not actor.is_available:
            return []
        candidates = await self._assignments.list_open_requests(
            actor.profile_id, actor.seniority
        )
        return [r for r in candidates if r.is_open and is_eligible(actor, r)]

    async def find_candidates_for(self, request: RoleRequest) -> list[Actor]:
        """请求的所有合格执行者（用于开放 / 重新开放时通知候选人）"""
        actors = await self._actors.list_actors(request.profile_id, request.seniority)
        return [a for a in actors if is_eligible(a, request)]
