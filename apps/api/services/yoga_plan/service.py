"""
Yoga Plan Service

The engine's external operations, composed from the orchestrator, the
approval workflow and the ledger over an injected PlanStore:

    generate_plan             assessment -> pending plan
    get_active_plan           pending/approved plan for a member
    get_plan_by_id
    review_plan               instructor decision
    list_pending_plans        review queue
    record_session_completion usage + progress ledger
    get_user_progress
    update_member_profile     name, email, profile, preferences

Each mutating operation is one transaction: it commits fully or not at all.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import UUID

from core.config import settings
from models import Member, YogaPlan

from .constants import ApprovalStatus, REVIEW_TARGETS
from .errors import (
    ActivePlanExistsError,
    EmailInUseError,
    InvalidSessionError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from .ledger import apply_session_completion
from .orchestrator import GenerationOrchestrator
from .store import PlanStore
from .structures import Assessment, PlanStructure
from .workflow import apply_review

logger = logging.getLogger(__name__)


@dataclass
class SessionCompletionAck:
    plan_id: UUID
    session_number: int
    plan_sessions_completed: int
    plan_total_practice_time: int
    completion_rate: float
    member_sessions_completed: int
    member_total_minutes: int
    current_streak: int
    longest_streak: int
    achievements_earned: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class ReviewQueuePage:
    plans: List[YogaPlan]
    total: int
    page: int
    page_size: int
    # Plan owners keyed by user id; walk-in users without a record are absent
    members: Dict[str, Member] = field(default_factory=dict)

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size)


PROFILE_FIELDS = ("name", "email", "profile", "preferences")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_plan_id(plan_id: Union[str, UUID]) -> Optional[UUID]:
    if isinstance(plan_id, UUID):
        return plan_id
    try:
        return UUID(str(plan_id))
    except (TypeError, ValueError):
        return None


class YogaPlanService:
    """
    Usage:
        service = YogaPlanService(SqlAlchemyPlanStore(db), GenerationOrchestrator.default())
        plan = service.generate_plan(tenant_id, user_id, assessment_dict)
    """

    def __init__(
        self,
        store: PlanStore,
        orchestrator: GenerationOrchestrator,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.clock = clock

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_plan(
        self,
        tenant_id: str,
        user_id: str,
        assessment: Union[Assessment, Dict[str, Any]],
    ) -> YogaPlan:
        """
        Generate a plan and store it pending review.

        Raises:
            ValidationError, ActivePlanExistsError,
            ProviderUnavailableError, SafetyViolationError
        """
        if not tenant_id or not user_id:
            raise ValidationError("tenant_id and user_id are required")
        if isinstance(assessment, Assessment):
            assessment.validate()
        else:
            assessment = Assessment.from_dict(assessment)

        existing = self.store.find_active_plan(tenant_id, user_id)
        if existing is not None:
            raise ActivePlanExistsError(existing.id)

        # Nothing is written until generation and the safety check succeed
        result = self.orchestrator.generate(assessment, tenant_id)
        structure = result.structure

        with self.store.transaction():
            plan = YogaPlan(
                tenant_id=tenant_id,
                user_id=user_id,
                title=f"{assessment.experience_level.capitalize()} Yoga Plan",
                description=f"Personalized {assessment.sessions_per_week}x/week program",
                duration_weeks=structure.duration_weeks,
                sessions_per_week=structure.sessions_per_week,
                difficulty_level=structure.difficulty_level,
                total_sessions=structure.total_sessions,
                plan_structure=structure.to_dict(),
                user_assessment=assessment.to_dict(),
                ai_metadata=result.metadata.to_dict(),
                approval_status=ApprovalStatus.PENDING.value,
                sessions_completed=0,
                total_practice_time=0,
                completion_rate=0.0,
            )
            self.store.add_plan(plan)

            member = self.store.get_member(tenant_id, user_id)
            if member is not None:
                member.fitness_level = assessment.experience_level

        logger.info(
            f"Created plan {plan.id} for tenant={tenant_id} user={user_id}",
            extra={"extra_fields": {
                "tenant_id": tenant_id,
                "plan_id": str(plan.id),
                "total_sessions": plan.total_sessions,
            }},
        )
        return plan

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_active_plan(self, tenant_id: str, user_id: str) -> YogaPlan:
        plan = self.store.find_active_plan(tenant_id, user_id)
        if plan is None:
            raise NotFoundError("No active plan found for user")
        return plan

    def get_plan_by_id(self, tenant_id: str, plan_id: Union[str, UUID]) -> YogaPlan:
        return self._require_plan(tenant_id, plan_id)

    def list_pending_plans(
        self,
        tenant_id: str,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> ReviewQueuePage:
        """
        One page of the review queue, newest first.

        page_size defaults to DEFAULT_PAGE_SIZE and is clamped to
        [1, MAX_PAGE_SIZE]; the page reports the size actually used.
        """
        page = max(1, page or 1)
        page_size = page_size or settings.DEFAULT_PAGE_SIZE
        page_size = max(1, min(page_size, settings.MAX_PAGE_SIZE))
        plans, total = self.store.list_plans_by_status(
            tenant_id,
            ApprovalStatus.PENDING.value,
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        members = self.store.get_members(tenant_id, (p.user_id for p in plans))
        return ReviewQueuePage(
            plans=plans,
            total=total,
            page=page,
            page_size=page_size,
            members=members,
        )

    def get_user_progress(self, tenant_id: str, user_id: str) -> Dict[str, Any]:
        member = self.store.get_member(tenant_id, user_id)
        if member is None:
            raise NotFoundError("User not found")
        return {
            "sessions_completed": member.sessions_completed or 0,
            "total_minutes": member.total_minutes or 0,
            "current_streak": member.current_streak or 0,
            "longest_streak": member.longest_streak or 0,
            "last_session_date": member.last_session_date,
            "achievements": list(member.achievements or []),
        }

    def update_member_profile(
        self,
        tenant_id: str,
        user_id: str,
        updates: Dict[str, Any],
    ) -> Member:
        """
        Update a member's name, email, profile or preferences.

        Only keys present in `updates` change. profile and preferences are
        replaced as whole blocks. Role and the progress ledger are not
        editable here.

        Raises:
            NotFoundError, ValidationError, EmailInUseError
        """
        unknown = set(updates) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")

        with self.store.transaction():
            member = self.store.get_member(tenant_id, user_id, for_update=True)
            if member is None:
                raise NotFoundError("User not found")

            if "name" in updates:
                name = (updates["name"] or "").strip()
                if not name:
                    raise ValidationError("name must not be empty", field="name")
                member.name = name
            if "email" in updates:
                email = (updates["email"] or "").lower().strip()
                if not email:
                    raise ValidationError("email must not be empty", field="email")
                if email != member.email:
                    existing = self.store.find_member_by_email(tenant_id, email)
                    if existing is not None and existing.id != member.id:
                        raise EmailInUseError("Email already in use")
                    member.email = email
            if "profile" in updates:
                member.profile = dict(updates["profile"] or {})
            if "preferences" in updates:
                member.preferences = dict(updates["preferences"] or {})

            self.store.flush_member(member)

        logger.info(
            f"Updated profile for tenant={tenant_id} member={user_id}",
            extra={"extra_fields": {"tenant_id": tenant_id, "fields": sorted(updates)}},
        )
        return member

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def review_plan(
        self,
        tenant_id: str,
        plan_id: Union[str, UUID],
        target_status: str,
        reviewer_id: str,
        notes: Optional[str] = None,
        reason: Optional[str] = None,
        changes_requested: Optional[str] = None,
    ) -> YogaPlan:
        """
        Apply an instructor decision.

        Raises:
            InvalidTransitionError, NotFoundError, ActivePlanExistsError
        """
        if target_status not in REVIEW_TARGETS:
            raise InvalidTransitionError(
                "Invalid status. Must be: approved, rejected, or revision_requested"
            )
        if not reviewer_id:
            raise ValidationError("reviewer_id is required", field="reviewer_id")

        with self.store.transaction():
            plan = self._require_plan(tenant_id, plan_id, for_update=True)

            if (
                target_status == ApprovalStatus.APPROVED.value
                and plan.approval_status == ApprovalStatus.REVISION_REQUESTED.value
            ):
                # A replacement may have been generated while this one was out for revision
                other = self.store.find_active_plan(tenant_id, plan.user_id)
                if other is not None and other.id != plan.id:
                    raise ActivePlanExistsError(other.id)

            apply_review(
                plan,
                target_status,
                reviewer_id,
                notes=notes,
                reason=reason,
                changes_requested=changes_requested,
                now=self.clock(),
            )
            self.store.flush_plan(plan)

        return plan

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def record_session_completion(
        self,
        tenant_id: str,
        plan_id: Union[str, UUID],
        user_id: str,
        session_number: int,
        duration_minutes: int,
    ) -> SessionCompletionAck:
        """
        Count a finished session on the plan and on the member, atomically.

        Raises:
            NotFoundError, InvalidSessionError, ValidationError
        """
        if duration_minutes is None or duration_minutes < 0:
            raise ValidationError("duration must be zero or more minutes", field="duration")

        with self.store.transaction():
            plan = self._require_plan(tenant_id, plan_id, for_update=True)
            if plan.user_id != user_id:
                raise NotFoundError("Plan not found")

            member = self.store.get_member(tenant_id, user_id, for_update=True)
            if member is None:
                raise NotFoundError("User not found")

            structure = PlanStructure.from_dict(plan.plan_structure)
            if session_number not in structure.session_numbers():
                raise InvalidSessionError(
                    f"Session {session_number} does not exist in this plan"
                )

            awarded = apply_session_completion(plan, member, duration_minutes, self.clock())

        logger.info(
            f"Session {session_number} completed on plan {plan.id} by {user_id}",
            extra={"extra_fields": {
                "tenant_id": tenant_id,
                "plan_id": str(plan.id),
                "duration_minutes": duration_minutes,
                "current_streak": member.current_streak,
            }},
        )

        return SessionCompletionAck(
            plan_id=plan.id,
            session_number=session_number,
            plan_sessions_completed=plan.sessions_completed,
            plan_total_practice_time=plan.total_practice_time,
            completion_rate=plan.completion_rate,
            member_sessions_completed=member.sessions_completed,
            member_total_minutes=member.total_minutes,
            current_streak=member.current_streak,
            longest_streak=member.longest_streak,
            achievements_earned=awarded,
        )

    # ------------------------------------------------------------------

    def _require_plan(
        self,
        tenant_id: str,
        plan_id: Union[str, UUID],
        for_update: bool = False,
    ) -> YogaPlan:
        parsed = _parse_plan_id(plan_id)
        plan = self.store.get_plan(tenant_id, parsed, for_update=for_update) if parsed else None
        if plan is None:
            raise NotFoundError("Plan not found")
        return plan
