"""
Yoga Plans API Router

Endpoints for:
- Generating a plan from a member assessment
- Fetching a member's active plan, or any plan by id
- Instructor review queue and approval decisions
- Session completion tracking

All routes are tenant-scoped through the X-Tenant-ID header.
"""

import logging
from functools import lru_cache
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from core.tenant import get_tenant_id
from schemas import (
    GeneratePlanRequest,
    GeneratePlanResponse,
    Pagination,
    PendingPlanOut,
    PendingPlansResponse,
    ReviewPlanRequest,
    ReviewPlanResponse,
    SessionCompleteRequest,
    SessionCompleteResponse,
    YogaPlanResponse,
)
from services.yoga_plan import errors
from services.yoga_plan.orchestrator import GenerationOrchestrator
from services.yoga_plan.service import YogaPlanService
from services.yoga_plan.store import SqlAlchemyPlanStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/yoga-plans", tags=["Yoga Plans"])


# ============ Dependencies ============

@lru_cache(maxsize=1)
def get_orchestrator() -> GenerationOrchestrator:
    """One orchestrator (and provider clients) per process."""
    return GenerationOrchestrator.default()


def get_plan_service(db: Session = Depends(get_db)) -> YogaPlanService:
    return YogaPlanService(SqlAlchemyPlanStore(db), get_orchestrator())


def raise_for_engine_error(e: errors.PlanEngineError) -> NoReturn:
    """Translate an engine outcome into the API's error responses."""
    if isinstance(e, errors.NotFoundError):
        raise NotFoundError(str(e))
    if isinstance(e, errors.ActivePlanExistsError):
        raise ConflictError(str(e), error_code="ACTIVE_PLAN_EXISTS")
    if isinstance(e, errors.ValidationError):
        raise ValidationError(str(e), field=e.field)
    if isinstance(e, errors.InvalidTransitionError):
        raise BadRequestError(str(e), error_code="INVALID_TRANSITION")
    if isinstance(e, errors.InvalidSessionError):
        raise BadRequestError(str(e), error_code="INVALID_SESSION")
    if isinstance(e, errors.EmailInUseError):
        raise BadRequestError(str(e), error_code="EMAIL_IN_USE")
    if isinstance(e, errors.ProviderUnavailableError):
        raise ServiceUnavailableError(
            "Plan generation is temporarily unavailable. Please retry shortly.",
            error_code="PROVIDER_UNAVAILABLE",
        )
    if isinstance(e, errors.SafetyViolationError):
        # Pose/limitation detail stays in the logs
        raise ValidationError(
            "We could not generate a plan that is safe for the limitations you reported. "
            "An instructor can help build one with you.",
            error_code="SAFETY_VIOLATION",
        )
    raise e


# ============ Endpoints ============

@router.post("/generate", response_model=GeneratePlanResponse, status_code=status.HTTP_201_CREATED)
def generate_plan(
    request: GeneratePlanRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: YogaPlanService = Depends(get_plan_service),
):
    """Generate a new plan for a member; it starts pending instructor review."""
    try:
        plan = service.generate_plan(tenant_id, request.userId, request.assessment.model_dump())
    except errors.PlanEngineError as e:
        logger.info(f"Plan generation refused for user {request.userId}: {type(e).__name__}")
        raise_for_engine_error(e)
    return GeneratePlanResponse(plan=YogaPlanResponse.from_plan(plan))


@router.get("/review/pending", response_model=PendingPlansResponse)
def list_pending_plans(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    tenant_id: str = Depends(get_tenant_id),
    service: YogaPlanService = Depends(get_plan_service),
):
    """Plans awaiting review, newest first, with who each plan belongs to."""
    queue = service.list_pending_plans(tenant_id, page, limit)
    return PendingPlansResponse(
        plans=[PendingPlanOut.from_queue(p, queue.members.get(p.user_id)) for p in queue.plans],
        pagination=Pagination(
            page=queue.page,
            limit=queue.page_size,
            total=queue.total,
            pages=queue.pages,
        ),
    )


@router.get("/user/{user_id}", response_model=YogaPlanResponse)
def get_user_plan(
    user_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: YogaPlanService = Depends(get_plan_service),
):
    """The member's current pending or approved plan."""
    try:
        plan = service.get_active_plan(tenant_id, user_id)
    except errors.PlanEngineError as e:
        raise_for_engine_error(e)
    return YogaPlanResponse.from_plan(plan)


@router.get("/{plan_id}", response_model=YogaPlanResponse)
def get_plan(
    plan_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: YogaPlanService = Depends(get_plan_service),
):
    try:
        plan = service.get_plan_by_id(tenant_id, plan_id)
    except errors.PlanEngineError as e:
        raise_for_engine_error(e)
    return YogaPlanResponse.from_plan(plan)


@router.patch("/{plan_id}/approval", response_model=ReviewPlanResponse)
def review_plan(
    plan_id: str,
    request: ReviewPlanRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: YogaPlanService = Depends(get_plan_service),
):
    """Instructor decision: approved, rejected or revision_requested."""
    try:
        plan = service.review_plan(
            tenant_id,
            plan_id,
            request.status,
            request.reviewerId,
            notes=request.reviewNotes,
            reason=request.reason,
            changes_requested=request.changesRequested,
        )
    except errors.PlanEngineError as e:
        raise_for_engine_error(e)
    return ReviewPlanResponse(
        plan=YogaPlanResponse.from_plan(plan),
        message=f"Plan {request.status} successfully",
    )


@router.post("/{plan_id}/session-complete", response_model=SessionCompleteResponse)
def complete_session(
    plan_id: str,
    request: SessionCompleteRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: YogaPlanService = Depends(get_plan_service),
):
    try:
        ack = service.record_session_completion(
            tenant_id,
            plan_id,
            request.userId,
            request.sessionNumber,
            request.duration,
        )
    except errors.PlanEngineError as e:
        raise_for_engine_error(e)
    return SessionCompleteResponse(
        sessions_completed=ack.plan_sessions_completed,
        total_practice_time=ack.plan_total_practice_time,
        completion_rate=ack.completion_rate,
        current_streak=ack.current_streak,
        longest_streak=ack.longest_streak,
        achievements_earned=ack.achievements_earned,
    )
