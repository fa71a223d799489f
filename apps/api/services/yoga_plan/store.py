"""
Plan Store

Tenant-scoped persistence capability consumed by the plan service.
Every lookup filters by tenant before id, so "belongs to another tenant"
and "does not exist" look the same to callers.

PlanStore is the interface; SqlAlchemyPlanStore is the production
implementation over a request-scoped Session.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Member, YogaPlan

from .constants import ACTIVE_STATUSES
from .errors import ActivePlanExistsError, EmailInUseError

logger = logging.getLogger(__name__)


class PlanStore(ABC):

    @abstractmethod
    def find_active_plan(self, tenant_id: str, user_id: str) -> Optional[YogaPlan]:
        """Most recent pending/approved plan for the user."""

    @abstractmethod
    def get_plan(self, tenant_id: str, plan_id: UUID, for_update: bool = False) -> Optional[YogaPlan]:
        ...

    @abstractmethod
    def list_plans_by_status(
        self, tenant_id: str, status: str, offset: int, limit: int
    ) -> Tuple[List[YogaPlan], int]:
        """Newest first, with the total count for the status."""

    @abstractmethod
    def get_member(self, tenant_id: str, user_id: str, for_update: bool = False) -> Optional[Member]:
        ...

    @abstractmethod
    def get_members(self, tenant_id: str, user_ids: Iterable[str]) -> Dict[str, Member]:
        """Members of the tenant keyed by id; unknown ids are left out."""

    @abstractmethod
    def find_member_by_email(self, tenant_id: str, email: str) -> Optional[Member]:
        ...

    @abstractmethod
    def flush_member(self, member: Member) -> None:
        """Push pending changes; EmailInUseError on a duplicate email."""

    @abstractmethod
    def add_plan(self, plan: YogaPlan) -> YogaPlan:
        """Insert a plan; ActivePlanExistsError if it would be a second active plan."""

    @abstractmethod
    def flush_plan(self, plan: YogaPlan) -> None:
        """Push pending changes; ActivePlanExistsError on an exclusivity conflict."""

    @abstractmethod
    def transaction(self):
        """Context manager: commit on success, roll back everything on error."""


class SqlAlchemyPlanStore(PlanStore):

    def __init__(self, db: Session):
        self.db = db

    def find_active_plan(self, tenant_id: str, user_id: str) -> Optional[YogaPlan]:
        return (
            self.db.query(YogaPlan)
            .filter(
                YogaPlan.tenant_id == tenant_id,
                YogaPlan.user_id == user_id,
                YogaPlan.approval_status.in_(ACTIVE_STATUSES),
            )
            .order_by(YogaPlan.created_at.desc())
            .first()
        )

    def get_plan(self, tenant_id: str, plan_id: UUID, for_update: bool = False) -> Optional[YogaPlan]:
        query = self.db.query(YogaPlan).filter(
            YogaPlan.tenant_id == tenant_id,
            YogaPlan.id == plan_id,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def list_plans_by_status(
        self, tenant_id: str, status: str, offset: int, limit: int
    ) -> Tuple[List[YogaPlan], int]:
        base = self.db.query(YogaPlan).filter(
            YogaPlan.tenant_id == tenant_id,
            YogaPlan.approval_status == status,
        )
        total = base.with_entities(func.count(YogaPlan.id)).scalar() or 0
        plans = (
            base.order_by(YogaPlan.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return plans, total

    def get_member(self, tenant_id: str, user_id: str, for_update: bool = False) -> Optional[Member]:
        query = self.db.query(Member).filter(
            Member.tenant_id == tenant_id,
            Member.id == user_id,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_members(self, tenant_id: str, user_ids: Iterable[str]) -> Dict[str, Member]:
        ids = set(user_ids)
        if not ids:
            return {}
        members = (
            self.db.query(Member)
            .filter(Member.tenant_id == tenant_id, Member.id.in_(ids))
            .all()
        )
        return {m.id: m for m in members}

    def find_member_by_email(self, tenant_id: str, email: str) -> Optional[Member]:
        return (
            self.db.query(Member)
            .filter(Member.tenant_id == tenant_id, Member.email == email)
            .first()
        )

    def flush_member(self, member: Member) -> None:
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Duplicate email for tenant={member.tenant_id} member={member.id}")
            raise EmailInUseError("Email already in use")

    def add_plan(self, plan: YogaPlan) -> YogaPlan:
        self.db.add(plan)
        self.flush_plan(plan)
        return plan

    def flush_plan(self, plan: YogaPlan) -> None:
        try:
            self.db.flush()
        except IntegrityError:
            # Lost a race against another request for the same user
            self.db.rollback()
            existing = self.find_active_plan(plan.tenant_id, plan.user_id)
            if existing is None:
                raise
            logger.warning(
                f"Active plan conflict for tenant={plan.tenant_id} user={plan.user_id}; "
                f"existing plan {existing.id}"
            )
            raise ActivePlanExistsError(existing.id)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
