"""
Plan Structures

Value objects flowing through generation: the member's assessment, poses,
sessions, weeks, the assembled plan structure and its generation metadata.

Dict conversion uses the persisted document field names so stored plans
keep the shape existing clients already read.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .constants import (
    ExperienceLevel,
    Severity,
    DEFAULT_DURATION_WEEKS,
    DEFAULT_SESSION_DURATION,
    DEFAULT_SESSIONS_PER_WEEK,
    MAX_DURATION_WEEKS,
    MAX_SESSION_DURATION,
    MAX_SESSIONS_PER_WEEK,
)
from .errors import ValidationError

PHASE_NAMES = ("warm_up", "main_sequence", "cool_down")


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def _str_tuple(values, name: str) -> Tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        return (values,)
    if not isinstance(values, (list, tuple)):
        raise ValidationError(f"{name} must be a list", field=name)
    return tuple(str(v) for v in values)


# ---------------------------------------------------------------------------
# Assessment
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Limitation:
    """An injury or limitation reported at intake."""
    type: str
    severity: str = Severity.MODERATE.value
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "severity": self.severity, "notes": self.notes}


@dataclass(frozen=True)
class Assessment:
    """
    Member intake. Immutable once submitted; plans keep a frozen copy.
    """
    experience_level: str = ExperienceLevel.BEGINNER.value
    primary_goals: Tuple[str, ...] = ()
    preferred_styles: Tuple[str, ...] = ()
    session_duration: int = DEFAULT_SESSION_DURATION
    sessions_per_week: int = DEFAULT_SESSIONS_PER_WEEK
    duration_weeks: int = DEFAULT_DURATION_WEEKS
    injuries_limitations: Tuple[Limitation, ...] = ()
    additional_notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Assessment":
        """
        Build and validate an assessment from an intake payload.

        Missing cadence fields take the documented defaults; anything
        present but malformed raises ValidationError.
        """
        if not isinstance(data, dict):
            raise ValidationError("Assessment must be an object")

        raw_limitations = data.get("injuries_limitations") or []
        if not isinstance(raw_limitations, (list, tuple)):
            raise ValidationError("injuries_limitations must be a list", field="injuries_limitations")

        limitations = []
        for raw in raw_limitations:
            if not isinstance(raw, dict):
                raise ValidationError("Each limitation must be an object", field="injuries_limitations")
            limitations.append(Limitation(
                type=str(raw.get("type") or "").strip(),
                severity=raw.get("severity") or Severity.MODERATE.value,
                notes=raw.get("notes"),
            ))

        def _int(name: str, default: int) -> int:
            value = data.get(name)
            if value is None:
                return default
            if isinstance(value, bool):
                raise ValidationError(f"{name} must be an integer", field=name)
            try:
                return int(value)
            except (TypeError, ValueError):
                raise ValidationError(f"{name} must be an integer", field=name)

        assessment = cls(
            experience_level=data.get("experience_level") or ExperienceLevel.BEGINNER.value,
            primary_goals=_str_tuple(data.get("primary_goals"), "primary_goals"),
            preferred_styles=_str_tuple(data.get("preferred_styles"), "preferred_styles"),
            session_duration=_int("session_duration", DEFAULT_SESSION_DURATION),
            sessions_per_week=_int("sessions_per_week", DEFAULT_SESSIONS_PER_WEEK),
            duration_weeks=_int("duration_weeks", DEFAULT_DURATION_WEEKS),
            injuries_limitations=tuple(limitations),
            additional_notes=data.get("additional_notes"),
        )
        assessment.validate()
        return assessment

    def validate(self) -> None:
        levels = [level.value for level in ExperienceLevel]
        if self.experience_level not in levels:
            raise ValidationError(
                f"experience_level must be one of {', '.join(levels)}",
                field="experience_level",
            )
        if not 1 <= self.sessions_per_week <= MAX_SESSIONS_PER_WEEK:
            raise ValidationError(
                f"sessions_per_week must be between 1 and {MAX_SESSIONS_PER_WEEK}",
                field="sessions_per_week",
            )
        if not 1 <= self.session_duration <= MAX_SESSION_DURATION:
            raise ValidationError(
                f"session_duration must be between 1 and {MAX_SESSION_DURATION} minutes",
                field="session_duration",
            )
        if not 1 <= self.duration_weeks <= MAX_DURATION_WEEKS:
            raise ValidationError(
                f"duration_weeks must be between 1 and {MAX_DURATION_WEEKS}",
                field="duration_weeks",
            )
        severities = [s.value for s in Severity]
        for limitation in self.injuries_limitations:
            # An empty type would substring-match every contraindication
            if not limitation.type.strip():
                raise ValidationError("Limitation type is required", field="injuries_limitations")
            if limitation.severity not in severities:
                raise ValidationError(
                    f"Limitation severity must be one of {', '.join(severities)}",
                    field="injuries_limitations",
                )

    @property
    def has_limitations(self) -> bool:
        return len(self.injuries_limitations) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experience_level": self.experience_level,
            "primary_goals": list(self.primary_goals),
            "preferred_styles": list(self.preferred_styles),
            "session_duration": self.session_duration,
            "sessions_per_week": self.sessions_per_week,
            "duration_weeks": self.duration_weeks,
            "injuries_limitations": [lim.to_dict() for lim in self.injuries_limitations],
            "additional_notes": self.additional_notes,
        }


# ---------------------------------------------------------------------------
# Poses and sessions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Pose:
    """
    A single pose. Held either in seconds or in breaths.

    contraindications are free-text tags matched case-insensitively
    against limitation types by the safety validator.
    """
    name: str
    sanskrit_name: Optional[str] = None
    duration_seconds: Optional[int] = None
    duration_breaths: Optional[int] = None
    instructions: Tuple[str, ...] = ()
    modifications: Tuple[str, ...] = ()
    contraindications: Tuple[str, ...] = ()
    benefits: Tuple[str, ...] = ()
    difficulty_level: str = ExperienceLevel.BEGINNER.value
    image_url: Optional[str] = None

    def copy(self) -> "Pose":
        """Independent copy for placing into a session."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "name": self.name,
            "sanskrit_name": self.sanskrit_name,
            "duration_seconds": self.duration_seconds,
            "duration_breaths": self.duration_breaths,
            "instructions": list(self.instructions),
            "modifications": list(self.modifications),
            "contraindications": list(self.contraindications),
            "benefits": list(self.benefits),
            "difficulty_level": self.difficulty_level,
            "image_url": self.image_url,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pose":
        name = data["name"]
        if not isinstance(name, str) or not name.strip():
            raise ValueError("pose name must be a non-empty string")
        seconds = data.get("duration_seconds")
        breaths = data.get("duration_breaths")
        return cls(
            name=name,
            sanskrit_name=data.get("sanskrit_name"),
            duration_seconds=int(seconds) if seconds is not None else None,
            duration_breaths=int(breaths) if breaths is not None else None,
            instructions=_str_tuple(data.get("instructions"), "instructions"),
            modifications=_str_tuple(data.get("modifications"), "modifications"),
            contraindications=_str_tuple(data.get("contraindications"), "contraindications"),
            benefits=_str_tuple(data.get("benefits"), "benefits"),
            difficulty_level=data.get("difficulty_level") or ExperienceLevel.BEGINNER.value,
            image_url=data.get("image_url"),
        )


@dataclass
class PhaseBlock:
    """Warm-up, main sequence or cool-down."""
    duration_minutes: int
    poses: List[Pose] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration_minutes": self.duration_minutes,
            "poses": [p.to_dict() for p in self.poses],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhaseBlock":
        return cls(
            duration_minutes=int(data["duration_minutes"]),
            poses=[Pose.from_dict(p) for p in data.get("poses") or []],
        )


@dataclass
class Meditation:
    duration_minutes: int
    type: str
    instructions: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration_minutes": self.duration_minutes,
            "type": self.type,
            "instructions": self.instructions,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Meditation":
        return cls(
            duration_minutes=int(data["duration_minutes"]),
            type=str(data.get("type") or ""),
            instructions=str(data.get("instructions") or ""),
        )


@dataclass
class Session:
    session_number: int
    duration_minutes: int
    warm_up: PhaseBlock
    main_sequence: PhaseBlock
    cool_down: PhaseBlock
    meditation: Optional[Meditation] = None

    def phases(self) -> List[Tuple[str, PhaseBlock]]:
        """The three required phases in practice order."""
        return [(name, getattr(self, name)) for name in PHASE_NAMES]

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "session_number": self.session_number,
            "duration_minutes": self.duration_minutes,
            "warm_up": self.warm_up.to_dict(),
            "main_sequence": self.main_sequence.to_dict(),
            "cool_down": self.cool_down.to_dict(),
        }
        if self.meditation is not None:
            data["meditation"] = self.meditation.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        meditation = data.get("meditation")
        return cls(
            session_number=int(data["session_number"]),
            duration_minutes=int(data["duration_minutes"]),
            warm_up=PhaseBlock.from_dict(data["warm_up"]),
            main_sequence=PhaseBlock.from_dict(data["main_sequence"]),
            cool_down=PhaseBlock.from_dict(data["cool_down"]),
            meditation=Meditation.from_dict(meditation) if meditation else None,
        )


@dataclass
class Week:
    week_number: int
    theme: str
    focus_areas: List[str]
    sessions: List[Session]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "week_number": self.week_number,
            "theme": self.theme,
            "focus_areas": list(self.focus_areas),
            "sessions": [s.to_dict() for s in self.sessions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Week":
        return cls(
            week_number=int(data["week_number"]),
            theme=str(data.get("theme") or ""),
            focus_areas=list(_str_tuple(data.get("focus_areas"), "focus_areas")),
            sessions=[Session.from_dict(s) for s in data["sessions"]],
        )


@dataclass
class PlanStructure:
    """The generated multi-week program."""
    duration_weeks: int
    sessions_per_week: int
    difficulty_level: str
    total_sessions: int
    weeks: List[Week]

    def iter_poses(self) -> Iterator[Tuple[Week, Session, str, Pose]]:
        """Every pose, depth-first in practice order."""
        for week in self.weeks:
            for session in week.sessions:
                for phase_name, block in session.phases():
                    for pose in block.poses:
                        yield week, session, phase_name, pose

    def session_numbers(self) -> List[int]:
        return sorted({s.session_number for w in self.weeks for s in w.sessions})

    def check_consistency(self) -> None:
        """
        Enforce total_sessions == weeks * sessions/week == sessions present,
        with 1-based numbering unique within the plan/week.

        Raises:
            ValueError on any mismatch
        """
        expected = self.duration_weeks * self.sessions_per_week
        actual = sum(len(w.sessions) for w in self.weeks)
        if self.total_sessions != expected or actual != expected:
            raise ValueError(
                f"session count mismatch: total_sessions={self.total_sessions}, "
                f"expected={expected}, present={actual}"
            )
        if len(self.weeks) != self.duration_weeks:
            raise ValueError(f"expected {self.duration_weeks} weeks, got {len(self.weeks)}")
        if sorted(w.week_number for w in self.weeks) != list(range(1, self.duration_weeks + 1)):
            raise ValueError("week numbers must be 1..duration_weeks")
        for week in self.weeks:
            numbers = sorted(s.session_number for s in week.sessions)
            if numbers != list(range(1, self.sessions_per_week + 1)):
                raise ValueError(f"week {week.week_number}: session numbers must be 1..sessions_per_week")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration_weeks": self.duration_weeks,
            "sessions_per_week": self.sessions_per_week,
            "difficulty_level": self.difficulty_level,
            "total_sessions": self.total_sessions,
            "weeks": [w.to_dict() for w in self.weeks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlanStructure":
        weeks = [Week.from_dict(w) for w in data["weeks"]]
        duration_weeks = int(data.get("duration_weeks", len(weeks)))
        sessions_per_week = int(data["sessions_per_week"])
        return cls(
            duration_weeks=duration_weeks,
            sessions_per_week=sessions_per_week,
            difficulty_level=str(data["difficulty_level"]),
            total_sessions=int(data.get("total_sessions", duration_weeks * sessions_per_week)),
            weeks=weeks,
        )


# ---------------------------------------------------------------------------
# Generation metadata
# ---------------------------------------------------------------------------

@dataclass
class GenerationMetadata:
    """
    Bookkeeping for one generation attempt.

    Only generation_time_ms is rewritten after creation, once the
    orchestrator knows the final wall-clock latency.
    """
    model_used: str
    confidence_score: float
    generation_time_ms: int
    tokens_consumed: int
    prompt_version: str
    safety_checks_passed: bool

    def record_latency(self, elapsed_ms: int) -> None:
        self.generation_time_ms = int(elapsed_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_used": self.model_used,
            "confidence_score": self.confidence_score,
            "generation_time_ms": self.generation_time_ms,
            "tokens_consumed": self.tokens_consumed,
            "prompt_version": self.prompt_version,
            "safety_checks_passed": self.safety_checks_passed,
        }
