"""
Members API.

Read side of the progress ledger that session completions update, and
profile updates for a member of the tenant.
"""

from fastapi import APIRouter, Depends

from core.tenant import get_tenant_id
from routers.yoga_plans import get_plan_service, raise_for_engine_error
from schemas import MemberResponse, MemberUpdate, UserProgressResponse
from services.yoga_plan import errors
from services.yoga_plan.service import YogaPlanService

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/{user_id}/progress", response_model=UserProgressResponse)
def get_user_progress(
    user_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: YogaPlanService = Depends(get_plan_service),
):
    """Sessions, minutes, streaks and achievements for a member."""
    try:
        progress = service.get_user_progress(tenant_id, user_id)
    except errors.PlanEngineError as e:
        raise_for_engine_error(e)
    return UserProgressResponse(**progress)


@router.patch("/{user_id}", response_model=MemberResponse)
def update_member(
    user_id: str,
    member_update: MemberUpdate,
    tenant_id: str = Depends(get_tenant_id),
    service: YogaPlanService = Depends(get_plan_service),
):
    """
    Update a member's profile.

    Only fields sent in the body change; profile and preferences are
    replaced as whole blocks.
    """
    try:
        member = service.update_member_profile(
            tenant_id,
            user_id,
            member_update.model_dump(exclude_unset=True),
        )
    except errors.PlanEngineError as e:
        raise_for_engine_error(e)
    return MemberResponse.model_validate(member)
