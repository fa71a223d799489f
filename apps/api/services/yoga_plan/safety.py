"""
Safety Validator

Cross-checks every pose of a plan against the member's stated limitations.

Matching is a case-insensitive substring test: a limitation of type "wrist"
is caught by a "wrist injury" contraindication tag. The walk is depth-first
in practice order and stops at the first offending pose.

The validator reports; it never raises. The orchestrator decides what a
failed result means.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .structures import Assessment, Limitation, PlanStructure, Pose


@dataclass(frozen=True)
class SafetyResult:
    passed: bool
    pose: Optional[Pose] = None
    limitation: Optional[Limitation] = None
    week_number: Optional[int] = None
    session_number: Optional[int] = None
    phase: Optional[str] = None

    def __bool__(self) -> bool:
        return self.passed

    def describe(self) -> Dict[str, Any]:
        """Diagnostics for logs."""
        if self.passed:
            return {"passed": True}
        return {
            "passed": False,
            "pose": self.pose.name,
            "limitation": self.limitation.type,
            "severity": self.limitation.severity,
            "week": self.week_number,
            "session": self.session_number,
            "phase": self.phase,
        }


def is_contraindicated(pose: Pose, limitation: Limitation) -> bool:
    needle = limitation.type.strip().lower()
    if not needle:
        return False
    return any(needle in tag.lower() for tag in pose.contraindications)


def validate(structure: PlanStructure, assessment: Assessment) -> SafetyResult:
    """Return the first (pose, limitation) conflict, or a passing result."""
    if not assessment.injuries_limitations:
        return SafetyResult(passed=True)

    for week, session, phase_name, pose in structure.iter_poses():
        for limitation in assessment.injuries_limitations:
            if is_contraindicated(pose, limitation):
                return SafetyResult(
                    passed=False,
                    pose=pose,
                    limitation=limitation,
                    week_number=week.week_number,
                    session_number=session.session_number,
                    phase=phase_name,
                )
    return SafetyResult(passed=True)
