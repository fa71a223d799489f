from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from uuid import UUID
from typing import Optional, List, Dict, Any, Literal

from models import Member, YogaPlan


# ============ Assessment ============

class LimitationIn(BaseModel):
    type: str = Field(min_length=1)
    severity: Literal["mild", "moderate", "severe"] = "moderate"
    notes: Optional[str] = None


class AssessmentIn(BaseModel):
    """Member intake. Omitted cadence fields take the engine defaults."""
    experience_level: Literal["beginner", "intermediate", "advanced"] = "beginner"
    primary_goals: List[str] = []
    injuries_limitations: List[LimitationIn] = []
    preferred_styles: List[str] = []
    session_duration: Optional[int] = None
    sessions_per_week: Optional[int] = None
    duration_weeks: Optional[int] = None
    additional_notes: Optional[str] = None


class GeneratePlanRequest(BaseModel):
    userId: str = Field(min_length=1)
    assessment: AssessmentIn


# ============ Review ============

class ReviewPlanRequest(BaseModel):
    status: str
    reviewerId: str = Field(min_length=1)
    reviewNotes: Optional[str] = None
    reason: Optional[str] = None
    changesRequested: Optional[str] = None


# ============ Usage ============

class SessionCompleteRequest(BaseModel):
    userId: str = Field(min_length=1)
    sessionNumber: int
    duration: int = Field(ge=0)


class SessionCompleteResponse(BaseModel):
    success: bool = True
    message: str = "Session completed successfully"
    sessions_completed: int
    total_practice_time: int
    completion_rate: float
    current_streak: int
    longest_streak: int
    achievements_earned: List[Dict[str, Any]] = []


class Achievement(BaseModel):
    name: str
    earned_date: str
    description: str


class UserProgressResponse(BaseModel):
    sessions_completed: int
    total_minutes: int
    current_streak: int
    longest_streak: int
    last_session_date: Optional[datetime] = None
    achievements: List[Achievement] = []


# ============ Plan document ============

class RevisionRequestOut(BaseModel):
    requested_by: str
    requested_at: datetime
    reason: Optional[str] = None
    changes_requested: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ApprovalWorkflowOut(BaseModel):
    status: str
    reviewed_by: Optional[str] = None
    review_notes: Optional[str] = None
    approved_at: Optional[datetime] = None
    revision_requests: List[RevisionRequestOut] = []


class UsageOut(BaseModel):
    sessions_completed: int
    total_practice_time: int
    last_session_date: Optional[datetime] = None
    completion_rate: float


class YogaPlanResponse(BaseModel):
    """Plan document in the shape existing clients consume."""
    id: UUID
    tenantId: str
    userId: str
    title: str
    description: Optional[str] = None
    planStructure: Dict[str, Any]
    userAssessment: Dict[str, Any]
    aiMetadata: Dict[str, Any]
    approvalWorkflow: ApprovalWorkflowOut
    usage: UsageOut
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_plan(cls, plan: YogaPlan) -> "YogaPlanResponse":
        return cls(
            id=plan.id,
            tenantId=plan.tenant_id,
            userId=plan.user_id,
            title=plan.title,
            description=plan.description,
            planStructure=plan.plan_structure,
            userAssessment=plan.user_assessment,
            aiMetadata=plan.ai_metadata,
            approvalWorkflow=ApprovalWorkflowOut(
                status=plan.approval_status,
                reviewed_by=plan.reviewed_by,
                review_notes=plan.review_notes,
                approved_at=plan.approved_at,
                revision_requests=[
                    RevisionRequestOut.model_validate(r) for r in plan.revision_requests
                ],
            ),
            usage=UsageOut(
                sessions_completed=plan.sessions_completed or 0,
                total_practice_time=plan.total_practice_time or 0,
                last_session_date=plan.last_session_date,
                completion_rate=plan.completion_rate or 0.0,
            ),
            createdAt=plan.created_at,
            updatedAt=plan.updated_at,
        )


class GeneratePlanResponse(BaseModel):
    success: bool = True
    plan: YogaPlanResponse
    message: str = "Yoga plan generated successfully"


class ReviewPlanResponse(BaseModel):
    success: bool = True
    plan: YogaPlanResponse
    message: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


# ============ Members ============

class EmergencyContact(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None


class MemberProfile(BaseModel):
    age: Optional[int] = Field(None, ge=0)
    height: Optional[float] = Field(None, gt=0)
    weight: Optional[float] = Field(None, gt=0)
    medical_conditions: List[str] = []
    emergency_contact: Optional[EmergencyContact] = None


class NotificationPreferences(BaseModel):
    email: bool = True
    push: bool = True
    reminder_time: Optional[str] = None


class PrivacyPreferences(BaseModel):
    share_progress: bool = False
    public_profile: bool = False


class MemberPreferences(BaseModel):
    notifications: NotificationPreferences = NotificationPreferences()
    privacy: PrivacyPreferences = PrivacyPreferences()


class MemberUpdate(BaseModel):
    """Schema for updating a member's profile. Omitted fields are left alone."""
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, min_length=3)  # Stored lower-cased
    profile: Optional[MemberProfile] = None
    preferences: Optional[MemberPreferences] = None

    model_config = ConfigDict(extra="forbid")


class MemberResponse(BaseModel):
    id: str
    name: str
    email: str
    role: str
    fitness_level: Optional[str] = None
    profile: Dict[str, Any] = {}
    preferences: Dict[str, Any] = {}

    model_config = ConfigDict(from_attributes=True)


class MemberSummary(BaseModel):
    """Who a queued plan belongs to, for the reviewing instructor."""
    name: str
    email: str


class PendingPlanOut(YogaPlanResponse):
    member: Optional[MemberSummary] = None  # None for users without a member record

    @classmethod
    def from_queue(cls, plan: YogaPlan, member: Optional[Member]) -> "PendingPlanOut":
        summary = MemberSummary(name=member.name, email=member.email) if member else None
        return cls(**YogaPlanResponse.from_plan(plan).model_dump(), member=summary)


class PendingPlansResponse(BaseModel):
    plans: List[PendingPlanOut]
    pagination: Pagination
