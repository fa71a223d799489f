"""
Plan Composer

Deterministic, local assembly of a multi-week program from an assessment
and a pose catalog. No randomness: the same assessment and catalog snapshot
always produce an identical structure.

Session layout:
    warm-up    min(8, 25% of session)   poses tagged warming/mobility (max 2)
    main       60% of session           first session_duration // 10 poses
    cool-down  min(8, 25% of session)   the catalog's relaxation pose
    meditation whatever remains, when it is at least 5 minutes
"""

import logging
import math
from typing import List, Sequence

from .constants import (
    DEFAULT_FOCUS_AREAS,
    DEFAULT_MEDITATION_TYPE,
    FALLBACK_THEME,
    MAIN_SEQUENCE_SHARE,
    MIN_MEDITATION_MINUTES,
    MINUTES_PER_MAIN_POSE,
    WARM_UP_BENEFIT_KEYWORDS,
    WARM_UP_CAP_MINUTES,
    WARM_UP_POSE_CAP,
    WARM_UP_SHARE,
    WEEK_FOCUS_AREAS,
    WEEK_THEMES,
)
from .pose_catalog import PoseCatalog
from .structures import (
    Assessment,
    Meditation,
    PhaseBlock,
    PlanStructure,
    Pose,
    Session,
    Week,
)

logger = logging.getLogger(__name__)


def week_theme(tier: str, week_number: int) -> str:
    themes = WEEK_THEMES.get(tier, [])
    if 1 <= week_number <= len(themes):
        return themes[week_number - 1]
    return FALLBACK_THEME.format(week=week_number)


def week_focus_areas(week_number: int) -> List[str]:
    return list(WEEK_FOCUS_AREAS.get(week_number, DEFAULT_FOCUS_AREAS))


def phase_minutes(session_duration: int):
    """
    Split a session into (warm_up, main, cool_down, remaining) minutes.

    The main sequence is clamped so the three phases never exceed the
    session; short sessions would otherwise overshoot (30 min -> 7+18+7).
    """
    edge = min(WARM_UP_CAP_MINUTES, math.floor(session_duration * WARM_UP_SHARE))
    main = math.floor(session_duration * MAIN_SEQUENCE_SHARE)
    main = max(0, min(main, session_duration - 2 * edge))
    remaining = session_duration - 2 * edge - main
    return edge, main, edge, remaining


def _is_warm_up_pose(pose: Pose) -> bool:
    return any(
        keyword in benefit.lower()
        for benefit in pose.benefits
        for keyword in WARM_UP_BENEFIT_KEYWORDS
    )


class PlanComposer:
    """
    Local generator behind the "local" provider path.

    Usage:
        composer = PlanComposer(default_catalog())
        structure = composer.compose(assessment)
    """

    def __init__(self, catalog: PoseCatalog):
        self.catalog = catalog

    def compose(self, assessment: Assessment) -> PlanStructure:
        tier = self.catalog.resolve_tier(assessment.experience_level)
        poses = self.catalog.lookup(tier)

        logger.debug(
            f"Composing {tier} plan: {assessment.duration_weeks}w x "
            f"{assessment.sessions_per_week}/wk x {assessment.session_duration}min"
        )

        weeks = []
        for week_number in range(1, assessment.duration_weeks + 1):
            sessions = [
                self._build_session(session_number, assessment, poses)
                for session_number in range(1, assessment.sessions_per_week + 1)
            ]
            weeks.append(Week(
                week_number=week_number,
                theme=week_theme(tier, week_number),
                focus_areas=week_focus_areas(week_number),
                sessions=sessions,
            ))

        return PlanStructure(
            duration_weeks=assessment.duration_weeks,
            sessions_per_week=assessment.sessions_per_week,
            difficulty_level=tier,
            total_sessions=assessment.duration_weeks * assessment.sessions_per_week,
            weeks=weeks,
        )

    def _build_session(
        self,
        session_number: int,
        assessment: Assessment,
        poses: Sequence[Pose],
    ) -> Session:
        duration = assessment.session_duration
        warm_minutes, main_minutes, cool_minutes, remaining = phase_minutes(duration)

        warm_up_poses = [p for p in poses if _is_warm_up_pose(p)][:WARM_UP_POSE_CAP]
        main_poses = list(poses[:duration // MINUTES_PER_MAIN_POSE])

        meditation = None
        if remaining >= MIN_MEDITATION_MINUTES:
            style = assessment.preferred_styles[0] if assessment.preferred_styles else DEFAULT_MEDITATION_TYPE
            meditation = Meditation(
                duration_minutes=remaining,
                type=style,
                instructions=(
                    f"Sit comfortably for {remaining} minutes. "
                    "Close the eyes and follow the natural rhythm of the breath."
                ),
            )

        return Session(
            session_number=session_number,
            duration_minutes=duration,
            warm_up=PhaseBlock(warm_minutes, [p.copy() for p in warm_up_poses]),
            main_sequence=PhaseBlock(main_minutes, [p.copy() for p in main_poses]),
            cool_down=PhaseBlock(cool_minutes, [self.catalog.relaxation_pose().copy()]),
            meditation=meditation,
        )


def compose(assessment: Assessment, catalog: PoseCatalog) -> PlanStructure:
    """Functional entry point: compose(assessment, catalog) -> PlanStructure."""
    return PlanComposer(catalog).compose(assessment)
