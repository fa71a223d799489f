"""
Typed outcomes of the yoga plan engine.

These are local, expected failures. The HTTP layer maps them onto
core.exceptions; anything else (store faults) propagates unchanged.
"""

from typing import Optional


class PlanEngineError(Exception):
    """Base class for expected engine failures."""


class ValidationError(PlanEngineError):
    """Malformed or out-of-range input. Caller's fault, do not retry."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ActivePlanExistsError(PlanEngineError):
    """The user already has a pending or approved plan."""

    def __init__(self, existing_plan_id=None):
        super().__init__("User already has an active plan")
        self.existing_plan_id = existing_plan_id


class ProviderUnavailableError(PlanEngineError):
    """The generation provider failed, timed out or replied with unusable content."""


class SafetyViolationError(PlanEngineError):
    """A generated plan contains a pose contraindicated for a stated limitation."""

    def __init__(self, pose_name: str, limitation_type: str):
        super().__init__(
            f"Pose '{pose_name}' is contraindicated for limitation '{limitation_type}'"
        )
        self.pose_name = pose_name
        self.limitation_type = limitation_type


class NotFoundError(PlanEngineError):
    """Entity absent or outside the caller's tenant."""


class InvalidTransitionError(PlanEngineError):
    """Review target status is unknown or not reachable from the current status."""


class InvalidSessionError(PlanEngineError):
    """Session number does not exist in the plan."""


class EmailInUseError(PlanEngineError):
    """Another member of the tenant already has this email."""
