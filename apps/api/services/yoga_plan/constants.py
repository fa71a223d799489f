"""
Constants for yoga plan generation.

Tier names, workflow states, composer tables and ledger milestones.
"""

from enum import Enum
from typing import Dict, List


class ExperienceLevel(str, Enum):
    """Practitioner experience tiers (also the plan difficulty level)."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Severity(str, Enum):
    """Self-reported severity of a limitation."""
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class ApprovalStatus(str, Enum):
    """Approval workflow states."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISION_REQUESTED = "revision_requested"


class ProviderKind(str, Enum):
    """Which generation path handles an assessment."""
    RICH = "rich"
    LOCAL = "local"


# Statuses that make a plan the user's "active" plan
ACTIVE_STATUSES = (ApprovalStatus.PENDING.value, ApprovalStatus.APPROVED.value)

# Statuses a reviewer may move a plan into
REVIEW_TARGETS = (
    ApprovalStatus.APPROVED.value,
    ApprovalStatus.REJECTED.value,
    ApprovalStatus.REVISION_REQUESTED.value,
)

# Assessment defaults (applied when the intake omits a field)
DEFAULT_SESSION_DURATION = 30
DEFAULT_SESSIONS_PER_WEEK = 3
DEFAULT_DURATION_WEEKS = 4

# Assessment bounds
MAX_SESSIONS_PER_WEEK = 7
MAX_SESSION_DURATION = 180
MAX_DURATION_WEEKS = 52


# ---------------------------------------------------------------------------
# Composer tables
# ---------------------------------------------------------------------------

# Phase allocation
WARM_UP_SHARE = 0.25
WARM_UP_CAP_MINUTES = 8
MAIN_SEQUENCE_SHARE = 0.6
MINUTES_PER_MAIN_POSE = 10
WARM_UP_POSE_CAP = 2
WARM_UP_BENEFIT_KEYWORDS = ("warm", "mobility")

# Leftover minutes at or above this become a meditation phase
MIN_MEDITATION_MINUTES = 5
DEFAULT_MEDITATION_TYPE = "breath awareness"

# Ordered weekly themes per tier. Week N uses entry N-1.
WEEK_THEMES: Dict[str, List[str]] = {
    ExperienceLevel.BEGINNER.value: [
        "Foundations & Breath",
        "Building Stability",
        "Opening & Flexibility",
        "Flow & Integration",
    ],
    ExperienceLevel.INTERMEDIATE.value: [
        "Alignment Refresh",
        "Strength & Balance",
        "Hips & Heart Opening",
        "Sustained Flow",
        "Twists & Detox",
        "Integration",
    ],
    ExperienceLevel.ADVANCED.value: [
        "Core Power",
        "Arm Balances",
        "Deep Backbends",
        "Inversions",
        "Peak Pose Sequencing",
        "Restorative Integration",
    ],
}

FALLBACK_THEME = "Week {week} - Progressive Practice"

# Week number -> focus area tags
WEEK_FOCUS_AREAS: Dict[int, List[str]] = {
    1: ["breath awareness", "alignment"],
    2: ["strength", "balance"],
    3: ["flexibility", "hip opening"],
    4: ["flow", "integration"],
    5: ["core strength", "twists"],
    6: ["backbends", "heart opening"],
    7: ["inversions", "focus"],
    8: ["restoration", "mindfulness"],
}

DEFAULT_FOCUS_AREAS = ["general practice"]


# ---------------------------------------------------------------------------
# Generation metadata for the local composer
# ---------------------------------------------------------------------------

LOCAL_MODEL_NAME = "local_composer"
LOCAL_CONFIDENCE_SCORE = 0.95
LOCAL_TOKENS_CONSUMED = 0


# ---------------------------------------------------------------------------
# Ledger milestones
# ---------------------------------------------------------------------------

# name -> (description, sessions threshold)
SESSION_MILESTONES = {
    "First Flow": ("Completed your first session", 1),
    "Dedicated Practitioner": ("Completed 10 sessions", 10),
    "Committed Yogi": ("Completed 50 sessions", 50),
    "Century Club": ("Completed 100 sessions", 100),
}

# name -> (description, streak threshold in days)
STREAK_MILESTONES = {
    "One Week Streak": ("Practiced 7 days in a row", 7),
    "Monthly Devotion": ("Practiced 30 days in a row", 30),
}

# name -> (description, minutes threshold)
MINUTE_MILESTONES = {
    "Thousand Minutes": ("Practiced for 1000 minutes", 1000),
}
