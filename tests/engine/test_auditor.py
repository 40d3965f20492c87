"""ConsistencyAuditor 单元测试

通过原始 SQL 制造违规行，验证扫描分类、修复策略、幂等性与巡检互斥。
"""

import asyncio

import pytest
from talentbind.core.exceptions import SweepInProgressError
from talentbind.core.models import (
    AssignmentStatus,
    EventSource,
    EventType,
    Seniority,
    ViolationKind,
)
from talentbind.engine import classify


async def _corrupt(store_group, request_id: str, status: str, actor_id: str | None):
    await store_group.conn.execute(
        "UPDATE role_requests SET status = ?, bound_actor_id = ? WHERE request_id = ?",
        (status, actor_id, request_id),
    )
    await store_group.conn.commit()


async def _ai_request(coordinator):
    outcome = await coordinator.open_request(
        project_id="proj-ai",
        profile_id="ai-translator",
        seniority=Seniority.SENIOR,
    )
    return outcome.request


class TestScan:
    async def test_clean_database(self, auditor, seo_request, coordinator):
        await _ai_request(coordinator)
        assert await auditor.scan() == []

    async def test_classifies_each_kind(self, auditor, coordinator, store_group):
        """四类违规各自被识别"""
        ids = {}
        for kind in ("orphan", "stray"):
            outcome = await coordinator.open_request(
                project_id=f"proj-{kind}",
                profile_id="seo-writer",
                seniority=Seniority.SENIOR,
            )
            ids[kind] = outcome.request.request_id
        ids["ai_unbound"] = (await _ai_request(coordinator)).request_id
        ids["ai_wrong"] = (await _ai_request(coordinator)).request_id

        await _corrupt(store_group, ids["orphan"], "ACCEPTED", None)
        await _corrupt(store_group, ids["stray"], "SEARCHING", "actor-a")
        await _corrupt(store_group, ids["ai_unbound"], "SEARCHING", None)
        await _corrupt(store_group, ids["ai_wrong"], "ACCEPTED", "actor-a")

        violations = {v.request_id: v for v in await auditor.scan()}
        assert violations[ids["orphan"]].kind == ViolationKind.ORPHAN_ACCEPTED
        assert violations[ids["stray"]].kind == ViolationKind.STRAY_BINDING
        assert violations[ids["stray"]].observed_actor_id == "actor-a"
        assert violations[ids["ai_unbound"]].kind == ViolationKind.AI_UNBOUND
        assert violations[ids["ai_wrong"]].kind == ViolationKind.AI_WRONG_ACTOR
        assert len(violations) == 4

    async def test_classify_healthy_returns_none(self, seo_request):
        assert classify(seo_request) is None


class TestRepair:
    async def test_orphan_demoted_to_searching(
        self, auditor, seo_request, store_group
    ):
        """ACCEPTED 但无执行者：回退 SEARCHING，不凭空构造绑定"""
        await _corrupt(store_group, seo_request.request_id, "ACCEPTED", None)
        [violation] = await auditor.scan()

        result = await auditor.repair(violation)
        assert result.applied is True
        assert result.final_status == AssignmentStatus.SEARCHING
        assert result.final_actor_id is None

        events = await store_group.event_store.get_events_for_request(
            seo_request.request_id
        )
        repair_event = events[-1]
        assert repair_event.type == EventType.REPAIR_APPLIED
        assert repair_event.source == EventSource.AUDITOR
        assert repair_event.payload["violation"] == "orphan_accepted"
        assert repair_event.payload["to_status"] == "SEARCHING"

    async def test_stray_binding_cleared(self, auditor, seo_request, store_group):
        """残留绑定被清除，状态不变"""
        await _corrupt(store_group, seo_request.request_id, "DECLINED", "actor-a")
        [violation] = await auditor.scan()

        result = await auditor.repair(violation)
        assert result.applied is True
        assert result.final_status == AssignmentStatus.DECLINED
        assert result.final_actor_id is None

    async def test_ai_orphan_rebound(self, auditor, coordinator, store_group):
        """AI 请求回退后立即绑定回自身 AI"""
        ai = await _ai_request(coordinator)
        await _corrupt(store_group, ai.request_id, "ACCEPTED", None)
        [violation] = await auditor.scan()

        result = await auditor.repair(violation)
        assert result.final_status == AssignmentStatus.ACCEPTED
        assert result.final_actor_id == "ai-translator"
        assert result.detail == "ai rebound"

    @pytest.mark.parametrize(
        "status,actor_id,kind",
        [
            ("SEARCHING", None, ViolationKind.AI_UNBOUND),
            ("ACCEPTED", "actor-a", ViolationKind.AI_WRONG_ACTOR),
        ],
    )
    async def test_ai_binding_repaired(
        self, auditor, coordinator, store_group, status, actor_id, kind
    ):
        ai = await _ai_request(coordinator)
        await _corrupt(store_group, ai.request_id, status, actor_id)
        [violation] = await auditor.scan()
        assert violation.kind == kind

        result = await auditor.repair(violation)
        assert result.applied is True
        assert result.final_status == AssignmentStatus.ACCEPTED
        assert result.final_actor_id == "ai-translator"

        request = await store_group.assignment_store.get_request(ai.request_id)
        assert request.invariant_errors() == []

    async def test_repair_twice_is_idempotent(self, auditor, seo_request, store_group):
        """同一违规修复两次与修复一次结果相同"""
        await _corrupt(store_group, seo_request.request_id, "ACCEPTED", None)
        [violation] = await auditor.scan()

        first = await auditor.repair(violation)
        after_first = await store_group.assignment_store.get_request(
            seo_request.request_id
        )
        second = await auditor.repair(violation)
        after_second = await store_group.assignment_store.get_request(
            seo_request.request_id
        )

        assert first.applied is True
        assert second.applied is False
        assert after_second == after_first

    async def test_violation_healed_concurrently(
        self, auditor, coordinator, seo_request, store_group
    ):
        """扫描后违规被正常流量修复：repair 不写入"""
        await _corrupt(store_group, seo_request.request_id, "SEARCHING", "actor-a")
        [violation] = await auditor.scan()
        await _corrupt(store_group, seo_request.request_id, "SEARCHING", None)
        await coordinator.accept(seo_request.request_id, "actor-c")

        result = await auditor.repair(violation)
        assert result.applied is False
        assert result.final_actor_id == "actor-c"


class TestSweep:
    async def test_sweep_repairs_everything(
        self, auditor, coordinator, seo_request, store_group
    ):
        ai = await _ai_request(coordinator)
        await _corrupt(store_group, seo_request.request_id, "ACCEPTED", None)
        await _corrupt(store_group, ai.request_id, "ACCEPTED", "actor-a")

        report = await auditor.sweep()
        assert report.scanned == 2
        assert len(report.violations) == 2
        assert all(r.applied for r in report.repaired)
        assert report.failed == {}
        assert await auditor.scan() == []

    async def test_overlapping_sweep_rejected(self, auditor, seo_request):
        """同一时刻只允许一个巡检"""
        await auditor._sweep_lock.acquire()
        try:
            with pytest.raises(SweepInProgressError):
                await auditor.sweep()
        finally:
            auditor._sweep_lock.release()

    async def test_concurrent_sweeps(self, auditor, seo_request, store_group):
        """并发巡检：一个完成，其余被拒绝"""
        await _corrupt(store_group, seo_request.request_id, "ACCEPTED", None)
        results = await asyncio.gather(
            auditor.sweep(), auditor.sweep(), return_exceptions=True
        )
        reports = [r for r in results if not isinstance(r, BaseException)]
        rejected = [r for r in results if isinstance(r, SweepInProgressError)]
        assert len(reports) == 1
        assert len(rejected) == 1
        assert reports[0].repaired[0].applied is True


async def _raw_status(store_group, request_id: str) -> str:
    cursor = await store_group.conn.execute(
        "SELECT status FROM role_requests WHERE request_id = ?", (request_id,)
    )
    row = await cursor.fetchone()
    return row[0]


class TestLegacyStatus:
    async def test_scan_flags_spelling(self, auditor, seo_request, store_group):
        """别名拼写的行按翻译后的状态分类，并单独报告拼写问题"""
        await _corrupt(store_group, seo_request.request_id, "booké", "actor-a")

        [violation] = await auditor.scan()
        assert violation.kind == ViolationKind.LEGACY_STATUS
        assert violation.raw_status == "booké"
        assert violation.observed_status == AssignmentStatus.ACCEPTED

    async def test_sweep_normalizes_spelling(self, auditor, seo_request, store_group):
        await _corrupt(store_group, seo_request.request_id, "booké", "actor-a")

        report = await auditor.sweep()
        [result] = report.repaired
        assert result.applied is True
        assert result.final_status == AssignmentStatus.ACCEPTED
        assert result.final_actor_id == "actor-a"
        assert await _raw_status(store_group, seo_request.request_id) == "ACCEPTED"

        events = await store_group.event_store.get_events_for_request(
            seo_request.request_id
        )
        assert events[-1].type == EventType.REPAIR_APPLIED
        assert events[-1].source == EventSource.AUDITOR
        assert events[-1].payload["violation"] == "legacy_status"
        assert await auditor.scan() == []

    async def test_sweep_fixes_spelling_then_binding(
        self, auditor, seo_request, store_group
    ):
        """拼写改写后，同一行的绑定违规在同一次巡检中修复"""
        await _corrupt(store_group, seo_request.request_id, "booké", None)

        report = await auditor.sweep()
        assert [v.kind for v in report.violations] == [
            ViolationKind.LEGACY_STATUS,
            ViolationKind.ORPHAN_ACCEPTED,
        ]
        assert all(r.applied for r in report.repaired)
        assert report.failed == {}

        stored = await store_group.assignment_store.get_request(seo_request.request_id)
        assert stored.status == AssignmentStatus.SEARCHING
        assert stored.bound_actor_id is None
        assert await _raw_status(store_group, seo_request.request_id) == "SEARCHING"

    async def test_legacy_ai_request_rebound(self, auditor, coordinator, store_group):
        ai = await _ai_request(coordinator)
        await _corrupt(store_group, ai.request_id, "recherche", None)

        report = await auditor.sweep()
        assert report.failed == {}
        stored = await store_group.assignment_store.get_request(ai.request_id)
        assert stored.status == AssignmentStatus.ACCEPTED
        assert stored.bound_actor_id == "ai-translator"

    async def test_undecodable_row_does_not_abort_sweep(
        self, auditor, coordinator, seo_request, store_group
    ):
        """无法解码的行记入报告，其余违规照常修复"""
        other = await coordinator.open_request(
            project_id="proj-2",
            profile_id="seo-writer",
            seniority=Seniority.SENIOR,
        )
        await _corrupt(store_group, seo_request.request_id, "en cours", "actor-a")
        await _corrupt(store_group, other.request.request_id, "SEARCHING", "actor-c")

        report = await auditor.sweep()
        assert list(report.undecodable) == [seo_request.request_id]
        [result] = report.repaired
        assert result.violation.request_id == other.request.request_id
        assert result.applied is True
        assert await _raw_status(store_group, seo_request.request_id) == "en cours"
