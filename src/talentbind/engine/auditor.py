"""ConsistencyAuditor -- 不变量巡检与修复

扫描 role_requests 中绑定不一致或 AI 请求未自动绑定的行，
在最新快照上重新确认后通过 BookingCoordinator 的 CAS 通道修复，
每次修复写入一条 REPAIR_APPLIED 审计事件。

修复策略：
- ORPHAN_ACCEPTED: 回退到 SEARCHING
- STRAY_BINDING: 清除残留的 bound_actor_id，状态不变
- AI_UNBOUND / AI_WRONG_ACTOR: 绑定到 profile_id 对应的 AI 执行者
- LEGACY_STATUS: 外部写入的状态拼写改写为规范枚举值
修复后仍停留在 SEARCHING 的 AI 请求随即自动绑定。
"""

import asyncio
from datetime import UTC, datetime
from typing import Any

import structlog
from talentbind.core.exceptions import BookingError, NotFoundError, SweepInProgressError
from talentbind.core.models import (
    AssignmentStatus,
    EventSource,
    EventType,
    RepairAppliedPayload,
    RepairResult,
    RoleRequest,
    SweepReport,
    Violation,
    ViolationKind,
)
from talentbind.core.store import (
    StoreGroup,
    rewrite_status_with_event,
    translate_store_errors,
)

from .booking import BookingCoordinator, build_event

log = structlog.get_logger()


def classify(request: RoleRequest) -> ViolationKind | None:
    """判定单个快照的违规类型，一致时返回 None

    同一行可能同时违反多条规则，此处按修复顺序取第一条；
    修复后的下一轮巡检会处理剩余问题。
    """
    accepted = request.status == AssignmentStatus.ACCEPTED
    if accepted and request.bound_actor_id is None:
        return ViolationKind.ORPHAN_ACCEPTED
    if not accepted and request.bound_actor_id is not None:
        return ViolationKind.STRAY_BINDING
    if request.is_ai_request and request.status == AssignmentStatus.SEARCHING:
        return ViolationKind.AI_UNBOUND
    if request.is_ai_request and accepted and request.bound_actor_id != request.profile_id:
        return ViolationKind.AI_WRONG_ACTOR
    return None


def repair_update(kind: ViolationKind, current: RoleRequest) -> dict[str, Any]:
    """违规快照的修复字段

    不凭空构造人类绑定：ORPHAN_ACCEPTED 只回退到 SEARCHING。
    """
    if kind in (ViolationKind.AI_UNBOUND, ViolationKind.AI_WRONG_ACTOR):
        return {"status": AssignmentStatus.ACCEPTED, "bound_actor_id": current.profile_id}
    if kind == ViolationKind.ORPHAN_ACCEPTED:
        return {"status": AssignmentStatus.SEARCHING}
    return {"bound_actor_id": None}


class ConsistencyAuditor:
    """周期性一致性巡检器"""

    def __init__(self, store_group: StoreGroup, coordinator: BookingCoordinator) -> None:
        self._stores = store_group
        self._coordinator = coordinator
        self._sweep_lock = asyncio.Lock()

    async def inspect(self) -> tuple[list[Violation], dict[str, str]]:
        """只读扫描

        Returns:
            (违规快照, 无法解码的行 request_id -> 解码错误)
        """
        with translate_store_errors("scan"):
            rows, undecodable = await self._stores.assignment_store.list_inconsistent()
            legacy = await self._stores.assignment_store.list_legacy_statuses()

        detected_at = datetime.now(UTC)
        violations: list[Violation] = []
        for request in rows:
            kinds: list[ViolationKind] = []
            # LEGACY_STATUS 排在最前：其余修复的 CAS 按规范状态匹配
            if request.request_id in legacy:
                kinds.append(ViolationKind.LEGACY_STATUS)
            binding_kind = classify(request)
            if binding_kind is not None:
                kinds.append(binding_kind)
            for kind in kinds:
                violations.append(
                    Violation(
                        request_id=request.request_id,
                        kind=kind,
                        observed_status=request.status,
                        observed_actor_id=request.bound_actor_id,
                        observed_revision=request.revision,
                        detected_at=detected_at,
                        raw_status=(
                            legacy[request.request_id]
                            if kind == ViolationKind.LEGACY_STATUS
                            else None
                        ),
                    )
                )

        for request_id, error in undecodable.items():
            log.error("undecodable_request_row", request_id=request_id, error=error)
        log.info(
            "consistency_scan_completed",
            violations=len(violations),
            undecodable=len(undecodable),
        )
        return violations, undecodable

    async def scan(self) -> list[Violation]:
        """只读扫描，返回所有违规快照；无法解码的行只记录日志"""
        violations, _ = await self.inspect()
        return violations

    async def repair(self, violation: Violation) -> RepairResult:
        """修复单条违规

        在最新快照上重新分类；违规已消失或类型已变化时不写入（applied=False）。
        """
        kind = violation.kind
        if kind == ViolationKind.LEGACY_STATUS:
            return await self._rewrite_spelling(violation)

        async def decide(current: RoleRequest) -> RoleRequest | None:
            if classify(current) != kind:
                return None
            return current.model_copy(
                update={**repair_update(kind, current), "updated_at": datetime.now(UTC)}
            )

        def payload(current: RoleRequest, target: RoleRequest) -> dict[str, Any]:
            return RepairAppliedPayload(
                violation=kind,
                from_status=current.status,
                to_status=target.status,
                from_actor_id=current.bound_actor_id,
                to_actor_id=target.bound_actor_id,
            ).model_dump(mode="json")

        _, committed, applied = await self._coordinator.transition(
            violation.request_id,
            f"repair_{kind.value}",
            decide,
            EventSource.AUDITOR,
            event_type=EventType.REPAIR_APPLIED,
            payload_factory=payload,
        )

        if not applied:
            log.info(
                "repair_skipped",
                request_id=violation.request_id,
                violation=kind.value,
            )
            return RepairResult(
                violation=violation,
                applied=False,
                final_status=committed.status,
                final_actor_id=committed.bound_actor_id,
                detail="violation no longer present",
            )

        log.warning(
            "repair_applied",
            request_id=violation.request_id,
            violation=kind.value,
            from_status=violation.observed_status.value,
            to_status=committed.status.value,
            to_actor_id=committed.bound_actor_id,
        )
        detail = ""
        if committed.is_ai_request and committed.status == AssignmentStatus.SEARCHING:
            bound = await self._coordinator.auto_bind_ai(
                committed.request_id, source=EventSource.AUDITOR
            )
            committed = bound.request
            detail = "ai rebound"

        return RepairResult(
            violation=violation,
            applied=True,
            final_status=committed.status,
            final_actor_id=committed.bound_actor_id,
            detail=detail,
        )

    async def _rewrite_spelling(self, violation: Violation) -> RepairResult:
        """原始拼写仍未变化时改写为规范值，同一事务写入 REPAIR_APPLIED 事件"""
        request_id = violation.request_id
        status = violation.observed_status
        payload = RepairAppliedPayload(
            violation=ViolationKind.LEGACY_STATUS,
            from_status=status,
            to_status=status,
            from_actor_id=violation.observed_actor_id,
            to_actor_id=violation.observed_actor_id,
        ).model_dump(mode="json")

        with translate_store_errors("repair_legacy_status"):
            async with self._stores.write_lock:
                applied = await rewrite_status_with_event(
                    self._stores.conn,
                    self._stores.assignment_store,
                    self._coordinator.event_store,
                    request_id,
                    violation.raw_status,
                    status,
                    datetime.now(UTC).isoformat(),
                    build_event(
                        request_id,
                        EventType.REPAIR_APPLIED,
                        EventSource.AUDITOR,
                        payload,
                    ),
                )
            current = await self._stores.assignment_store.get_request(request_id)
        if current is None:
            raise NotFoundError("request", request_id)

        if not applied:
            log.info(
                "repair_skipped",
                request_id=request_id,
                violation=ViolationKind.LEGACY_STATUS.value,
            )
            return RepairResult(
                violation=violation,
                applied=False,
                final_status=current.status,
                final_actor_id=current.bound_actor_id,
                detail="violation no longer present",
            )

        log.warning(
            "repair_applied",
            request_id=request_id,
            violation=ViolationKind.LEGACY_STATUS.value,
            raw_status=violation.raw_status,
            to_status=current.status.value,
        )
        return RepairResult(
            violation=violation,
            applied=True,
            final_status=current.status,
            final_actor_id=current.bound_actor_id,
            detail=f"status spelling {violation.raw_status!r} normalized",
        )

    async def sweep(self) -> SweepReport:
        """完整巡检：scan 后逐条 repair

        单条修复失败会记录在报告中并继续处理其余违规；
        无法解码的行记入 report.undecodable，不中断巡检。

        Raises:
            SweepInProgressError: 已有巡检在运行
        """
        if self._sweep_lock.locked():
            raise SweepInProgressError()

        async with self._sweep_lock:
            started_at = datetime.now(UTC)
            with translate_store_errors("sweep"):
                scanned = await self._stores.assignment_store.count_requests()
            violations, undecodable = await self.inspect()

            repaired: list[RepairResult] = []
            failed: dict[str, str] = {}
            for violation in violations:
                try:
                    repaired.append(await self.repair(violation))
                except BookingError as e:
                    log.error(
                        "repair_failed",
                        request_id=violation.request_id,
                        violation=violation.kind.value,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    failed[violation.request_id] = type(e).__name__

            report = SweepReport(
                started_at=started_at,
                finished_at=datetime.now(UTC),
                scanned=scanned,
                violations=violations,
                repaired=repaired,
                failed=failed,
                undecodable=undecodable,
            )
            log.info(
                "consistency_sweep_completed",
                scanned=scanned,
                violations=len(violations),
                applied=sum(1 for r in repaired if r.applied),
                failed=len(failed),
                undecodable=len(undecodable),
            )
            return report

