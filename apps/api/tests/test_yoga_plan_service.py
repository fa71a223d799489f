"""
Service-level tests against a real (SQLite) database.

Covers plan exclusivity, tenant isolation, the review queue, the approval
workflow through the store, and atomic session bookkeeping.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from core.config import settings
from models import Member, PlanRevisionRequest, YogaPlan
from services.yoga_plan.constants import ProviderKind
from services.yoga_plan.errors import (
    ActivePlanExistsError,
    EmailInUseError,
    InvalidSessionError,
    InvalidTransitionError,
    NotFoundError,
    ProviderUnavailableError,
    SafetyViolationError,
    ValidationError,
)
from services.yoga_plan.service import YogaPlanService

from fixtures.yoga_fixtures import (
    OTHER_TENANT,
    TENANT,
    ComposingRichProvider,
    FailingProvider,
    make_catalog,
    make_orchestrator,
)

BEGINNER = {"experience_level": "beginner", "primary_goals": ["flexibility"]}


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def plan_count(db_session) -> int:
    return db_session.query(YogaPlan).count()


# ============ Generation ============

class TestGeneratePlan:

    def test_creates_pending_plan(self, plan_service, member):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)

        assert plan.id is not None
        assert plan.tenant_id == TENANT
        assert plan.user_id == member.id
        assert plan.approval_status == "pending"
        assert plan.title == "Beginner Yoga Plan"
        assert plan.description == "Personalized 3x/week program"
        assert plan.duration_weeks == 4
        assert plan.sessions_per_week == 3
        assert plan.total_sessions == 12
        assert plan.sessions_completed == 0
        assert plan.completion_rate == 0.0
        assert plan.plan_structure["total_sessions"] == 12
        assert plan.user_assessment["session_duration"] == 30
        assert plan.ai_metadata["model_used"] == "local_composer"
        assert plan.ai_metadata["safety_checks_passed"] is True

    def test_records_fitness_level_on_member(self, plan_service, member, db_session):
        plan_service.generate_plan(TENANT, member.id, {"experience_level": "intermediate"})
        db_session.refresh(member)
        assert member.fitness_level == "intermediate"

    def test_second_active_plan_refused(self, plan_service, member, db_session):
        first = plan_service.generate_plan(TENANT, member.id, BEGINNER)

        with pytest.raises(ActivePlanExistsError) as exc_info:
            plan_service.generate_plan(TENANT, member.id, BEGINNER)

        assert exc_info.value.existing_plan_id == first.id
        assert plan_count(db_session) == 1

    def test_approved_plan_also_blocks(self, plan_service, member):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        plan_service.review_plan(TENANT, plan.id, "approved", "instr-1")
        with pytest.raises(ActivePlanExistsError):
            plan_service.generate_plan(TENANT, member.id, BEGINNER)

    def test_new_plan_allowed_after_rejection(self, plan_service, member, db_session):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        plan_service.review_plan(TENANT, plan.id, "rejected", "instr-1", notes="no")

        replacement = plan_service.generate_plan(TENANT, member.id, BEGINNER)

        assert replacement.id != plan.id
        assert plan_count(db_session) == 2

    def test_same_user_in_other_tenant_is_independent(self, plan_service, member):
        plan_service.generate_plan(TENANT, member.id, BEGINNER)
        other = plan_service.generate_plan(OTHER_TENANT, member.id, BEGINNER)
        assert other.tenant_id == OTHER_TENANT

    def test_user_without_member_record(self, plan_service):
        plan = plan_service.generate_plan(TENANT, "walk-in", BEGINNER)
        assert plan.user_id == "walk-in"

    @pytest.mark.parametrize("assessment", [
        {"experience_level": "guru"},
        {"sessions_per_week": 0},
        {"sessions_per_week": 8},
        {"session_duration": 0},
        {"duration_weeks": 0},
        {"injuries_limitations": [{"type": ""}]},
        {"injuries_limitations": [{"type": "knee", "severity": "extreme"}]},
        {"session_duration": "long"},
        {"injuries_limitations": 7},
        {"primary_goals": 5},
        {"preferred_styles": 3},
    ])
    def test_invalid_assessment(self, plan_service, member, db_session, assessment):
        with pytest.raises(ValidationError):
            plan_service.generate_plan(TENANT, member.id, assessment)
        assert plan_count(db_session) == 0

    def test_missing_identity(self, plan_service):
        with pytest.raises(ValidationError):
            plan_service.generate_plan(TENANT, "", BEGINNER)
        with pytest.raises(ValidationError):
            plan_service.generate_plan("", "member-1", BEGINNER)

    def test_defaults_applied(self, plan_service, member):
        plan = plan_service.generate_plan(TENANT, member.id, {})
        assert plan.user_assessment["experience_level"] == "beginner"
        assert (plan.duration_weeks, plan.sessions_per_week) == (4, 3)

    def test_safety_violation_writes_nothing(self, store, member, db_session):
        service = YogaPlanService(
            store, make_orchestrator(rich=ComposingRichProvider(catalog=make_catalog()))
        )
        assessment = {
            "experience_level": "beginner",
            "session_duration": 40,
            "injuries_limitations": [{"type": "knee"}],
        }
        with pytest.raises(SafetyViolationError):
            service.generate_plan(TENANT, member.id, assessment)
        assert plan_count(db_session) == 0

    def test_provider_failure_writes_nothing(self, store, member, db_session):
        service = YogaPlanService(store, make_orchestrator(rich=FailingProvider()))
        with pytest.raises(ProviderUnavailableError):
            service.generate_plan(TENANT, member.id, {"experience_level": "advanced"})
        assert plan_count(db_session) == 0

    def test_rich_path_metadata_persisted(self, store, member):
        service = YogaPlanService(store, make_orchestrator(rich=ComposingRichProvider(tokens=4321)))
        plan = service.generate_plan(
            TENANT, member.id,
            {"experience_level": "beginner", "injuries_limitations": [{"type": "wrist", "severity": "mild"}]},
        )
        assert plan.ai_metadata["model_used"] == "fake-model"
        assert plan.ai_metadata["tokens_consumed"] == 4321
        assert plan.user_assessment["injuries_limitations"][0]["type"] == "wrist"


class TestActivePlanIndex:
    """The partial unique index backs up the service pre-check."""

    def test_store_refuses_second_active_row(self, plan_service, store, member):
        first = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        duplicate = YogaPlan(
            tenant_id=TENANT,
            user_id=member.id,
            title="Duplicate",
            duration_weeks=1,
            sessions_per_week=1,
            difficulty_level="beginner",
            total_sessions=1,
            plan_structure={},
            user_assessment={},
            ai_metadata={},
            approval_status="pending",
        )
        with pytest.raises(ActivePlanExistsError) as exc_info:
            with store.transaction():
                store.add_plan(duplicate)
        assert exc_info.value.existing_plan_id == first.id


# ============ Queries ============

class TestQueries:

    def test_get_active_plan(self, plan_service, member):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        assert plan_service.get_active_plan(TENANT, member.id).id == plan.id

    def test_get_active_plan_none(self, plan_service, member):
        with pytest.raises(NotFoundError):
            plan_service.get_active_plan(TENANT, member.id)

    def test_rejected_plan_is_not_active(self, plan_service, member):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        plan_service.review_plan(TENANT, plan.id, "rejected", "instr-1")
        with pytest.raises(NotFoundError):
            plan_service.get_active_plan(TENANT, member.id)

    def test_get_plan_by_id(self, plan_service, member):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        assert plan_service.get_plan_by_id(TENANT, str(plan.id)).id == plan.id

    def test_plan_in_other_tenant_looks_missing(self, plan_service, member):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        with pytest.raises(NotFoundError):
            plan_service.get_plan_by_id(OTHER_TENANT, plan.id)
        with pytest.raises(NotFoundError):
            plan_service.get_active_plan(OTHER_TENANT, member.id)

    def test_malformed_plan_id_is_not_found(self, plan_service):
        with pytest.raises(NotFoundError):
            plan_service.get_plan_by_id(TENANT, "not-a-uuid")

    def test_user_progress(self, plan_service, member):
        progress = plan_service.get_user_progress(TENANT, member.id)
        assert progress["sessions_completed"] == 0
        assert progress["achievements"] == []

    def test_user_progress_unknown_member(self, plan_service):
        with pytest.raises(NotFoundError):
            plan_service.get_user_progress(TENANT, "nobody")

    def test_user_progress_other_tenant(self, plan_service, member):
        with pytest.raises(NotFoundError):
            plan_service.get_user_progress(OTHER_TENANT, member.id)


class TestReviewQueue:

    def _generate_for(self, plan_service, count, tenant=TENANT):
        return [
            plan_service.generate_plan(tenant, f"user-{i}", BEGINNER)
            for i in range(count)
        ]

    def test_newest_first_with_total(self, plan_service):
        plans = self._generate_for(plan_service, 3)
        queue = plan_service.list_pending_plans(TENANT)
        assert queue.total == 3
        assert [p.id for p in queue.plans] == [p.id for p in reversed(plans)]

    def test_pagination(self, plan_service):
        plans = self._generate_for(plan_service, 5)
        queue = plan_service.list_pending_plans(TENANT, page=2, page_size=2)
        assert queue.total == 5
        assert queue.pages == 3
        assert [p.id for p in queue.plans] == [plans[2].id, plans[1].id]

    def test_only_pending_in_queue(self, plan_service):
        plans = self._generate_for(plan_service, 3)
        plan_service.review_plan(TENANT, plans[0].id, "approved", "instr-1")
        plan_service.review_plan(TENANT, plans[1].id, "revision_requested", "instr-1")
        queue = plan_service.list_pending_plans(TENANT)
        assert queue.total == 1
        assert queue.plans[0].id == plans[2].id

    def test_queue_is_tenant_scoped(self, plan_service):
        self._generate_for(plan_service, 2)
        self._generate_for(plan_service, 1, tenant=OTHER_TENANT)
        assert plan_service.list_pending_plans(OTHER_TENANT).total == 1

    def test_page_size_clamped(self, plan_service):
        self._generate_for(plan_service, 2)
        queue = plan_service.list_pending_plans(TENANT, page=1, page_size=10_000)
        assert len(queue.plans) == 2
        assert queue.page_size == settings.MAX_PAGE_SIZE

    def test_default_page_size(self, plan_service):
        queue = plan_service.list_pending_plans(TENANT)
        assert queue.page_size == settings.DEFAULT_PAGE_SIZE
        assert queue.pages == 0

    def test_plan_owners_included(self, plan_service, member):
        plan_service.generate_plan(TENANT, member.id, BEGINNER)
        plan_service.generate_plan(TENANT, "walk-in", BEGINNER)

        queue = plan_service.list_pending_plans(TENANT)

        assert set(queue.members) == {member.id}
        assert queue.members[member.id].email == "member1@example.com"


# ============ Member profile ============

class TestUpdateMemberProfile:

    def test_updates_only_sent_fields(self, plan_service, member, db_session):
        updated = plan_service.update_member_profile(TENANT, member.id, {
            "name": "Renamed Member",
            "profile": {"age": 41, "medical_conditions": ["asthma"]},
        })

        db_session.refresh(member)
        assert updated.name == member.name == "Renamed Member"
        assert member.email == "member1@example.com"
        assert member.profile == {"age": 41, "medical_conditions": ["asthma"]}
        assert member.preferences == {}

    def test_profile_block_is_replaced(self, plan_service, member, db_session):
        plan_service.update_member_profile(TENANT, member.id, {"profile": {"age": 41, "height": 170}})
        plan_service.update_member_profile(TENANT, member.id, {"profile": {"weight": 60}})
        db_session.refresh(member)
        assert member.profile == {"weight": 60}

    def test_email_is_normalised(self, plan_service, member):
        updated = plan_service.update_member_profile(TENANT, member.id, {"email": "  New@Example.com "})
        assert updated.email == "new@example.com"

    def test_email_taken_within_tenant(self, plan_service, member, db_session):
        db_session.add(Member(id="member-2", tenant_id=TENANT, name="Other", email="taken@example.com"))
        db_session.commit()

        with pytest.raises(EmailInUseError):
            plan_service.update_member_profile(TENANT, member.id, {"email": "taken@example.com", "name": "X"})

        db_session.refresh(member)
        assert member.email == "member1@example.com"
        assert member.name == "Test Member"

    def test_same_email_in_other_tenant_is_fine(self, plan_service, member, db_session):
        db_session.add(Member(id="member-9", tenant_id=OTHER_TENANT, name="Elsewhere", email="shared@example.com"))
        db_session.commit()
        updated = plan_service.update_member_profile(TENANT, member.id, {"email": "shared@example.com"})
        assert updated.email == "shared@example.com"

    def test_progress_ledger_not_editable(self, plan_service, member, db_session):
        with pytest.raises(ValidationError):
            plan_service.update_member_profile(TENANT, member.id, {"sessions_completed": 99})
        db_session.refresh(member)
        assert member.sessions_completed == 0

    def test_blank_name_rejected(self, plan_service, member):
        with pytest.raises(ValidationError):
            plan_service.update_member_profile(TENANT, member.id, {"name": "   "})

    def test_member_in_other_tenant_looks_missing(self, plan_service, member):
        with pytest.raises(NotFoundError):
            plan_service.update_member_profile(OTHER_TENANT, member.id, {"name": "Nope"})


# ============ Review ============

class TestReviewPlan:

    def test_approve(self, plan_service, member, db_session):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        reviewed = plan_service.review_plan(TENANT, plan.id, "approved", "instr-1", notes="Good")

        db_session.expire_all()
        stored = db_session.get(YogaPlan, reviewed.id)
        assert stored.approval_status == "approved"
        assert stored.reviewed_by == "instr-1"
        assert stored.review_notes == "Good"
        assert stored.approved_at is not None

    def test_invalid_status(self, plan_service, member):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        with pytest.raises(InvalidTransitionError):
            plan_service.review_plan(TENANT, plan.id, "archived", "instr-1")

    def test_terminal_state_cannot_be_reviewed(self, plan_service, member, db_session):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        plan_service.review_plan(TENANT, plan.id, "approved", "instr-1")
        with pytest.raises(InvalidTransitionError):
            plan_service.review_plan(TENANT, plan.id, "rejected", "instr-2")

        db_session.expire_all()
        assert db_session.get(YogaPlan, plan.id).approval_status == "approved"

    def test_reviewer_required(self, plan_service, member):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        with pytest.raises(ValidationError):
            plan_service.review_plan(TENANT, plan.id, "approved", "")

    def test_unknown_plan(self, plan_service):
        with pytest.raises(NotFoundError):
            plan_service.review_plan(
                TENANT, "00000000-0000-0000-0000-000000000000", "approved", "instr-1"
            )

    def test_revision_history_persisted(self, plan_service, member, db_session):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        plan_service.review_plan(
            TENANT, plan.id, "revision_requested", "instr-1",
            reason="Too long", changes_requested="Shorter sessions",
        )
        plan_service.review_plan(TENANT, plan.id, "revision_requested", "instr-2", notes="Still long")

        rows = (
            db_session.query(PlanRevisionRequest)
            .filter(PlanRevisionRequest.plan_id == plan.id)
            .order_by(PlanRevisionRequest.id)
            .all()
        )
        assert [(r.requested_by, r.reason) for r in rows] == [
            ("instr-1", "Too long"),
            ("instr-2", "Still long"),
        ]
        assert rows[0].changes_requested == "Shorter sessions"

    def test_revision_then_approve(self, plan_service, member):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        plan_service.review_plan(TENANT, plan.id, "revision_requested", "instr-1", reason="tweak")
        approved = plan_service.review_plan(TENANT, plan.id, "approved", "instr-1")
        assert approved.approval_status == "approved"
        assert len(approved.revision_requests) == 1

    def test_approving_revision_while_replacement_active(self, plan_service, member, db_session):
        old = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        plan_service.review_plan(TENANT, old.id, "revision_requested", "instr-1", reason="redo")
        replacement = plan_service.generate_plan(TENANT, member.id, BEGINNER)

        with pytest.raises(ActivePlanExistsError) as exc_info:
            plan_service.review_plan(TENANT, old.id, "approved", "instr-1")

        assert exc_info.value.existing_plan_id == replacement.id
        db_session.expire_all()
        assert db_session.get(YogaPlan, old.id).approval_status == "revision_requested"

    def test_other_tenant_cannot_review(self, plan_service, member):
        plan = plan_service.generate_plan(TENANT, member.id, BEGINNER)
        with pytest.raises(NotFoundError):
            plan_service.review_plan(OTHER_TENANT, plan.id, "approved", "instr-x")


# ============ Session completion ============

class TestRecordSessionCompletion:

    @pytest.fixture
    def clock(self):
        return FakeClock(datetime(2026, 3, 2, 7, 0, tzinfo=timezone.utc))

    @pytest.fixture
    def service(self, store, orchestrator, clock):
        return YogaPlanService(store, orchestrator, clock=clock)

    @pytest.fixture
    def plan(self, service, member):
        plan = service.generate_plan(TENANT, member.id, BEGINNER)
        return service.review_plan(TENANT, plan.id, "approved", "instr-1")

    def test_updates_plan_and_member(self, service, plan, member, db_session):
        ack = service.record_session_completion(TENANT, plan.id, member.id, 1, 30)

        assert ack.plan_sessions_completed == 1
        assert ack.plan_total_practice_time == 30
        assert ack.completion_rate == pytest.approx(1 / 12, abs=1e-4)
        assert ack.member_sessions_completed == 1
        assert ack.member_total_minutes == 30
        assert ack.current_streak == 1
        assert [a["name"] for a in ack.achievements_earned] == ["First Flow"]

        db_session.expire_all()
        stored_plan = db_session.get(YogaPlan, plan.id)
        stored_member = db_session.get(Member, member.id)
        assert stored_plan.sessions_completed == 1
        assert stored_plan.last_session_date is not None
        assert stored_member.total_minutes == 30
        assert stored_member.achievements[0]["name"] == "First Flow"

    def test_streak_across_days(self, service, plan, member, clock):
        service.record_session_completion(TENANT, plan.id, member.id, 1, 30)
        clock.advance(days=1)
        ack = service.record_session_completion(TENANT, plan.id, member.id, 2, 30)
        assert ack.current_streak == 2
        clock.advance(days=3)
        ack = service.record_session_completion(TENANT, plan.id, member.id, 3, 30)
        assert ack.current_streak == 1
        assert ack.longest_streak == 2

    def test_progress_reflects_completions(self, service, plan, member):
        service.record_session_completion(TENANT, plan.id, member.id, 1, 45)
        progress = service.get_user_progress(TENANT, member.id)
        assert progress["sessions_completed"] == 1
        assert progress["total_minutes"] == 45
        assert progress["last_session_date"] is not None

    @pytest.mark.parametrize("session_number", [0, 4, -1])
    def test_session_number_must_exist(self, service, plan, member, session_number, db_session):
        with pytest.raises(InvalidSessionError):
            service.record_session_completion(TENANT, plan.id, member.id, session_number, 30)
        db_session.expire_all()
        assert db_session.get(YogaPlan, plan.id).sessions_completed == 0
        assert db_session.get(Member, member.id).sessions_completed == 0

    def test_negative_duration(self, service, plan, member):
        with pytest.raises(ValidationError):
            service.record_session_completion(TENANT, plan.id, member.id, 1, -5)

    def test_zero_duration_allowed(self, service, plan, member):
        ack = service.record_session_completion(TENANT, plan.id, member.id, 1, 0)
        assert ack.plan_sessions_completed == 1
        assert ack.plan_total_practice_time == 0

    def test_other_users_plan_is_not_found(self, service, plan, db_session):
        db_session.add(Member(id="member-2", tenant_id=TENANT, name="Other", email="o@example.com"))
        db_session.commit()
        with pytest.raises(NotFoundError):
            service.record_session_completion(TENANT, plan.id, "member-2", 1, 30)

    def test_other_tenant_is_not_found(self, service, plan, member):
        with pytest.raises(NotFoundError):
            service.record_session_completion(OTHER_TENANT, plan.id, member.id, 1, 30)

    def test_unknown_member(self, store, orchestrator):
        service = YogaPlanService(store, orchestrator)
        plan = service.generate_plan(TENANT, "ghost", BEGINNER)
        with pytest.raises(NotFoundError):
            service.record_session_completion(TENANT, plan.id, "ghost", 1, 30)

    def test_failure_mid_update_rolls_back_both_sides(self, service, plan, member, db_session):
        def half_update(plan_row, member_row, duration, now):
            plan_row.sessions_completed += 1
            member_row.total_minutes += duration
            raise RuntimeError("disk full")

        with patch("services.yoga_plan.service.apply_session_completion", side_effect=half_update):
            with pytest.raises(RuntimeError):
                service.record_session_completion(TENANT, plan.id, member.id, 1, 30)

        db_session.expire_all()
        assert db_session.get(YogaPlan, plan.id).sessions_completed == 0
        assert db_session.get(Member, member.id).total_minutes == 0

    def test_completion_rate_capped(self, service, member, db_session, clock):
        plan = service.generate_plan(
            TENANT, member.id, {"duration_weeks": 1, "sessions_per_week": 1}
        )
        for _ in range(3):
            ack = service.record_session_completion(TENANT, plan.id, member.id, 1, 10)
            clock.advance(days=1)
        assert ack.plan_sessions_completed == 3
        assert ack.completion_rate == 1.0

    def test_same_session_twice_counts_twice_on_both_sides(self, service, plan, member, db_session):
        service.record_session_completion(TENANT, plan.id, member.id, 1, 30)
        service.record_session_completion(TENANT, plan.id, member.id, 1, 30)

        db_session.expire_all()
        stored_plan = db_session.get(YogaPlan, plan.id)
        stored_member = db_session.get(Member, member.id)
        assert stored_plan.sessions_completed == 2
        assert stored_plan.total_practice_time == 60
        assert stored_member.sessions_completed == 2
        assert stored_member.total_minutes == 60


# ============ End to end ============

class TestEndToEnd:

    def test_beginner_assessment_through_default_catalog(self, store, member):
        from services.yoga_plan.orchestrator import GenerationOrchestrator
        from services.yoga_plan.providers import LocalComposerProvider
        from services.yoga_plan.structures import PlanStructure

        orchestrator = GenerationOrchestrator.default()
        rich = ComposingRichProvider()
        orchestrator.providers[ProviderKind.RICH] = rich
        service = YogaPlanService(store, orchestrator)

        plan = service.generate_plan(TENANT, member.id, {
            "experience_level": "beginner",
            "sessions_per_week": 3,
            "session_duration": 30,
            "duration_weeks": 4,
            "injuries_limitations": [],
        })

        assert isinstance(orchestrator.providers[ProviderKind.LOCAL], LocalComposerProvider)
        assert rich.calls == []
        assert plan.ai_metadata["model_used"] == "local_composer"
        assert plan.total_sessions == 12
        assert plan.difficulty_level == "beginner"

        structure = PlanStructure.from_dict(plan.plan_structure)
        for week in structure.weeks:
            for session in week.sessions:
                total = sum(block.duration_minutes for _, block in session.phases())
                assert total <= 30

    def test_advanced_assessment_takes_rich_path(self, store, member):
        rich = ComposingRichProvider()
        service = YogaPlanService(store, make_orchestrator(rich=rich))
        plan = service.generate_plan(TENANT, member.id, {"experience_level": "advanced"})
        assert len(rich.calls) == 1
        assert plan.difficulty_level == "advanced"
