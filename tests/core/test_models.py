"""领域模型单元测试

测试内容：
1. RoleRequest 标签标准化与不变量检查
2. Actor 可用状态与 AI 身份约定
3. RequirementChanges / BookingOutcome 辅助方法
"""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError
from talentbind.core.models import (
    Actor,
    ActorKind,
    ActorStatus,
    AssignmentStatus,
    BookingOutcome,
    RequirementChanges,
    RoleProfile,
    RoleRequest,
    Seniority,
    SideEffect,
    SideEffectType,
    normalize_tags,
)


def _request(**overrides) -> RoleRequest:
    now = datetime.now(UTC)
    fields = {
        "request_id": "req-001",
        "project_id": "proj-1",
        "profile_id": "seo-writer",
        "seniority": Seniority.SENIOR,
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return RoleRequest(**fields)


class TestRoleRequest:
    def test_defaults(self):
        """默认 SEARCHING、未绑定、revision=1"""
        request = _request()
        assert request.status == AssignmentStatus.SEARCHING
        assert request.bound_actor_id is None
        assert request.revision == 1
        assert request.is_open is True
        assert request.invited_actor_ids == frozenset()

    def test_requirements_normalized(self):
        """语言/专长标签去空白、忽略大小写、去重"""
        request = _request(
            required_languages=[" EN", "en", "Fr "],
            required_expertise=["SEO", ""],
        )
        assert request.required_languages == frozenset({"en", "fr"})
        assert request.required_expertise == frozenset({"seo"})

    def test_revision_must_be_positive(self):
        with pytest.raises(ValidationError):
            _request(revision=0)

    def test_consistent_snapshots(self):
        """一致快照没有不变量错误"""
        assert _request().invariant_errors() == []
        assert (
            _request(
                status=AssignmentStatus.ACCEPTED, bound_actor_id="actor-a"
            ).invariant_errors()
            == []
        )
        assert (
            _request(
                profile_id="ai-translator",
                is_ai_request=True,
                status=AssignmentStatus.ACCEPTED,
                bound_actor_id="ai-translator",
            ).invariant_errors()
            == []
        )

    def test_accepted_without_actor_violates_i1(self):
        errors = _request(status=AssignmentStatus.ACCEPTED).invariant_errors()
        assert len(errors) == 1
        assert errors[0].startswith("binding")

    def test_stray_binding_violates_i1(self):
        errors = _request(bound_actor_id="actor-a").invariant_errors()
        assert len(errors) == 1
        assert errors[0].startswith("binding")

    def test_ai_bound_to_foreign_actor_violates_i2(self):
        errors = _request(
            profile_id="ai-translator",
            is_ai_request=True,
            status=AssignmentStatus.ACCEPTED,
            bound_actor_id="actor-a",
        ).invariant_errors()
        assert errors == ["ai identity: AI request bound to foreign actor"]

    def test_bound_request_not_open(self):
        assert _request(
            status=AssignmentStatus.ACCEPTED, bound_actor_id="actor-a"
        ).is_open is False
        assert _request(status=AssignmentStatus.DRAFT).is_open is False


class TestActor:
    def test_tags_normalized(self):
        actor = Actor(
            actor_id="actor-a",
            profile_id="seo-writer",
            seniority=Seniority.SENIOR,
            languages=["EN", "Fr"],
        )
        assert actor.languages == frozenset({"en", "fr"})
        assert actor.expertise == frozenset()

    @pytest.mark.parametrize(
        "status,available",
        [
            (ActorStatus.AVAILABLE, True),
            (ActorStatus.QUALIFICATION, False),
            (ActorStatus.PAUSED, False),
        ],
    )
    def test_human_availability(self, status: ActorStatus, available: bool):
        actor = Actor(
            actor_id="actor-x",
            profile_id="seo-writer",
            seniority=Seniority.JUNIOR,
            status=status,
        )
        assert actor.is_available is available

    def test_ai_always_available(self):
        """AI 执行者不受可用状态影响"""
        actor = Actor(
            actor_id="ai-translator",
            kind=ActorKind.AI,
            profile_id="ai-translator",
            seniority=Seniority.SENIOR,
            status=ActorStatus.PAUSED,
        )
        assert actor.is_available is True

    def test_ai_identity_enforced(self):
        """AI 执行者的 actor_id 必须等于 profile_id"""
        with pytest.raises(ValidationError, match="AI actor_id must equal"):
            Actor(
                actor_id="some-bot",
                kind=ActorKind.AI,
                profile_id="ai-translator",
                seniority=Seniority.SENIOR,
            )


class TestHelpers:
    def test_normalize_tags_empty(self):
        assert normalize_tags(None) == frozenset()
        assert normalize_tags([]) == frozenset()

    def test_requirement_changes_is_empty(self):
        assert RequirementChanges().is_empty() is True
        assert RequirementChanges(seniority=Seniority.JUNIOR).is_empty() is False
        # 空集合是有效变更：清空要求
        changes = RequirementChanges(required_languages=[])
        assert changes.is_empty() is False
        assert changes.required_languages == frozenset()

    def test_profile_defaults_to_all_seniorities(self):
        profile = RoleProfile(profile_id="seo-writer")
        assert profile.seniority_options == frozenset(Seniority)
        assert profile.is_ai is False

    def test_outcome_effects_of(self):
        request = _request()
        effect = SideEffect(
            type=SideEffectType.NOTIFY_SLOT_OPENED,
            project_id="proj-1",
            request_id=request.request_id,
            recipient_ids=["actor-a"],
        )
        outcome = BookingOutcome(request=request, side_effects=[effect])
        assert outcome.effects_of(SideEffectType.NOTIFY_SLOT_OPENED) == [effect]
        assert outcome.effects_of(SideEffectType.NOTIFY_SLOT_CLOSED) == []
