"""
Pose Catalog

Immutable, tiered reference data for the local composer. A catalog is
constructed explicitly and injected wherever poses are needed, so tests can
substitute a fixture catalog.

Usage:
    catalog = default_catalog()
    poses = catalog.lookup("intermediate")
    savasana = catalog.relaxation_pose()
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Tuple

from .constants import ExperienceLevel
from .structures import Pose

logger = logging.getLogger(__name__)


class PoseCatalog:
    """Read-only tier -> ordered poses mapping plus the fixed cool-down pose."""

    def __init__(self, tiers: Mapping[str, Iterable[Pose]], relaxation_pose: Pose):
        if ExperienceLevel.BEGINNER.value not in tiers:
            raise ValueError("catalog requires a beginner tier")
        self._tiers: Mapping[str, Tuple[Pose, ...]] = MappingProxyType(
            {tier: tuple(poses) for tier, poses in tiers.items()}
        )
        self._relaxation_pose = relaxation_pose

    @property
    def tiers(self) -> Tuple[str, ...]:
        return tuple(self._tiers.keys())

    def resolve_tier(self, tier: str) -> str:
        """Unknown tiers fall back to beginner."""
        if tier in self._tiers:
            return tier
        logger.debug(f"Unknown pose tier '{tier}', using beginner")
        return ExperienceLevel.BEGINNER.value

    def lookup(self, tier: str) -> Tuple[Pose, ...]:
        return self._tiers[self.resolve_tier(tier)]

    def relaxation_pose(self) -> Pose:
        return self._relaxation_pose


# ---------------------------------------------------------------------------
# Built-in catalog data
# ---------------------------------------------------------------------------

SAVASANA = Pose(
    name="Corpse Pose",
    sanskrit_name="Savasana",
    duration_seconds=300,
    instructions=(
        "Lie flat on your back",
        "Let the feet fall open and arms rest by your sides",
        "Release control of the breath",
    ),
    modifications=("Place a bolster under the knees", "Cover the eyes with a cloth"),
    contraindications=(),
    benefits=("relaxation", "nervous system recovery"),
    difficulty_level=ExperienceLevel.BEGINNER.value,
)

BEGINNER_POSES = (
    Pose(
        name="Mountain Pose",
        sanskrit_name="Tadasana",
        duration_seconds=30,
        instructions=("Stand tall with feet hip-width apart", "Lengthen through the crown", "Breathe deeply"),
        modifications=("Stand with your back against a wall",),
        contraindications=("severe vertigo",),
        benefits=("improves posture", "grounding"),
    ),
    Pose(
        name="Warrior II",
        sanskrit_name="Virabhadrasana II",
        duration_breaths=5,
        instructions=("Step feet wide apart", "Bend the front knee over the ankle", "Extend arms parallel to the floor"),
        modifications=("Shorten the stance", "Rest hands on hips"),
        contraindications=("knee injury", "hip injury"),
        benefits=("builds leg strength", "stamina"),
    ),
    Pose(
        name="Tree Pose",
        sanskrit_name="Vrksasana",
        duration_breaths=5,
        instructions=("Shift weight into one foot", "Place the other sole on calf or inner thigh", "Bring palms together"),
        modifications=("Keep the toes on the floor", "Use a wall for balance"),
        contraindications=("ankle injury", "severe vertigo"),
        benefits=("balance", "focus"),
    ),
    Pose(
        name="Bridge Pose",
        sanskrit_name="Setu Bandhasana",
        duration_breaths=5,
        instructions=("Lie on your back with knees bent", "Press into the feet", "Lift the hips"),
        modifications=("Place a block under the sacrum",),
        contraindications=("neck injury", "shoulder injury"),
        benefits=("strengthens glutes", "opens the chest"),
    ),
    Pose(
        name="Cat-Cow",
        sanskrit_name="Marjaryasana-Bitilasana",
        duration_breaths=8,
        instructions=("Come to hands and knees", "Inhale to arch the back", "Exhale to round the spine"),
        modifications=("Use fists or forearms to spare the wrists", "Pad the knees"),
        contraindications=("wrist injury", "knee injury"),
        benefits=("spinal mobility", "warms the spine"),
    ),
    Pose(
        name="Seated Side Bend",
        sanskrit_name="Parsva Sukhasana",
        duration_breaths=5,
        instructions=("Sit cross-legged", "Reach one arm overhead", "Lean to the opposite side"),
        modifications=("Sit on a folded blanket",),
        contraindications=(),
        benefits=("warms the side body", "rib mobility"),
    ),
    Pose(
        name="Cobra Pose",
        sanskrit_name="Bhujangasana",
        duration_breaths=5,
        instructions=("Lie on your belly", "Place hands under the shoulders", "Lift the chest gently"),
        modifications=("Stay low in baby cobra", "Use forearms (Sphinx)"),
        contraindications=("lower back injury", "pregnancy", "wrist injury"),
        benefits=("spinal extension", "opens the chest"),
    ),
    Pose(
        name="Child's Pose",
        sanskrit_name="Balasana",
        duration_seconds=60,
        instructions=("Kneel and sit back on the heels", "Fold forward", "Rest the forehead down"),
        modifications=("Widen the knees", "Place a bolster under the torso"),
        contraindications=("knee injury", "pregnancy"),
        benefits=("relaxation", "gentle back release"),
    ),
)

INTERMEDIATE_POSES = (
    Pose(
        name="Downward-Facing Dog",
        sanskrit_name="Adho Mukha Svanasana",
        duration_breaths=5,
        instructions=("Start on hands and knees", "Lift the hips up and back", "Press the heels toward the floor"),
        modifications=("Bend the knees", "Use forearms (Dolphin)"),
        contraindications=("wrist injury", "carpal tunnel", "high blood pressure"),
        benefits=("lengthens hamstrings", "strengthens shoulders"),
        difficulty_level=ExperienceLevel.INTERMEDIATE.value,
    ),
    Pose(
        name="Warrior I",
        sanskrit_name="Virabhadrasana I",
        duration_breaths=5,
        instructions=("Step one foot back", "Square the hips forward", "Raise the arms overhead"),
        modifications=("Hands on hips", "Shorten the stance"),
        contraindications=("knee injury", "shoulder injury"),
        benefits=("builds strength", "opens the hip flexors"),
        difficulty_level=ExperienceLevel.INTERMEDIATE.value,
    ),
    Pose(
        name="Triangle Pose",
        sanskrit_name="Trikonasana",
        duration_breaths=5,
        instructions=("Stand wide with the front foot turned out", "Hinge at the hip", "Reach the top arm up"),
        modifications=("Rest the lower hand on a block", "Look down instead of up"),
        contraindications=("neck injury", "low blood pressure"),
        benefits=("stretches the hamstrings", "side body length"),
        difficulty_level=ExperienceLevel.INTERMEDIATE.value,
    ),
    Pose(
        name="Chair Pose",
        sanskrit_name="Utkatasana",
        duration_breaths=5,
        instructions=("Bend the knees as if sitting back", "Reach the arms up", "Keep weight in the heels"),
        modifications=("Keep the hands at the heart", "Bend less deeply"),
        contraindications=("knee injury", "ankle injury"),
        benefits=("leg strength", "core engagement"),
        difficulty_level=ExperienceLevel.INTERMEDIATE.value,
    ),
    Pose(
        name="Low Lunge",
        sanskrit_name="Anjaneyasana",
        duration_breaths=5,
        instructions=("Step one foot forward", "Lower the back knee", "Sink the hips"),
        modifications=("Pad the back knee", "Hands on blocks"),
        contraindications=("knee injury",),
        benefits=("hip mobility", "warms the hip flexors"),
        difficulty_level=ExperienceLevel.INTERMEDIATE.value,
    ),
    Pose(
        name="Sun Salutation A",
        sanskrit_name="Surya Namaskar A",
        duration_breaths=12,
        instructions=("Move one breath per movement", "Flow from standing to plank to dog", "Return to standing"),
        modifications=("Step instead of jump", "Lower the knees in plank"),
        contraindications=("wrist injury", "lower back injury"),
        benefits=("full-body warm-up", "builds heat"),
        difficulty_level=ExperienceLevel.INTERMEDIATE.value,
    ),
    Pose(
        name="Pigeon Pose",
        sanskrit_name="Eka Pada Rajakapotasana",
        duration_seconds=60,
        instructions=("Bring one shin forward", "Extend the back leg", "Fold over the front leg"),
        modifications=("Place a block under the hip", "Practice Figure Four on your back"),
        contraindications=("knee injury", "sacroiliac joint dysfunction"),
        benefits=("hip opening", "releases the glutes"),
        difficulty_level=ExperienceLevel.INTERMEDIATE.value,
    ),
    Pose(
        name="Seated Forward Fold",
        sanskrit_name="Paschimottanasana",
        duration_seconds=60,
        instructions=("Sit with legs extended", "Hinge from the hips", "Reach toward the feet"),
        modifications=("Bend the knees", "Sit on a folded blanket"),
        contraindications=("lower back injury", "herniated disc"),
        benefits=("stretches the hamstrings", "calming"),
        difficulty_level=ExperienceLevel.INTERMEDIATE.value,
    ),
)

ADVANCED_POSES = (
    Pose(
        name="Crow Pose",
        sanskrit_name="Bakasana",
        duration_breaths=5,
        instructions=("Squat and plant the hands", "Place the knees on the backs of the arms", "Shift forward and lift the feet"),
        modifications=("Keep one foot down", "Place a block under the feet"),
        contraindications=("wrist injury", "carpal tunnel", "pregnancy"),
        benefits=("arm strength", "core strength"),
        difficulty_level=ExperienceLevel.ADVANCED.value,
    ),
    Pose(
        name="Headstand",
        sanskrit_name="Salamba Sirsasana",
        duration_seconds=60,
        instructions=("Interlace the fingers and cradle the head", "Walk the feet in", "Lift the legs with control"),
        modifications=("Practice against a wall", "Stay in Dolphin"),
        contraindications=("neck injury", "high blood pressure", "glaucoma", "pregnancy"),
        benefits=("core strength", "focus"),
        difficulty_level=ExperienceLevel.ADVANCED.value,
    ),
    Pose(
        name="Wheel Pose",
        sanskrit_name="Urdhva Dhanurasana",
        duration_breaths=5,
        instructions=("Lie on your back with hands by the ears", "Press into hands and feet", "Lift into a full backbend"),
        modifications=("Stay in Bridge", "Use blocks against a wall"),
        contraindications=("lower back injury", "wrist injury", "shoulder injury"),
        benefits=("spinal extension", "opens the shoulders"),
        difficulty_level=ExperienceLevel.ADVANCED.value,
    ),
    Pose(
        name="Side Plank",
        sanskrit_name="Vasisthasana",
        duration_breaths=5,
        instructions=("From plank roll onto one hand", "Stack the feet", "Lift the top arm"),
        modifications=("Lower the bottom knee", "Use the forearm"),
        contraindications=("wrist injury", "shoulder injury"),
        benefits=("oblique strength", "balance"),
        difficulty_level=ExperienceLevel.ADVANCED.value,
    ),
    Pose(
        name="Revolved Half Moon",
        sanskrit_name="Parivrtta Ardha Chandrasana",
        duration_breaths=5,
        instructions=("Balance on one leg", "Place the opposite hand down", "Rotate the chest open"),
        modifications=("Hand on a block", "Back foot against a wall"),
        contraindications=("ankle injury", "low blood pressure", "severe vertigo"),
        benefits=("balance", "spinal rotation"),
        difficulty_level=ExperienceLevel.ADVANCED.value,
    ),
    Pose(
        name="Dynamic Sun Salutation B",
        sanskrit_name="Surya Namaskar B",
        duration_breaths=17,
        instructions=("Link Chair, Chaturanga and Warrior I", "One breath per movement", "Repeat on both sides"),
        modifications=("Lower the knees in Chaturanga", "Step instead of jump"),
        contraindications=("wrist injury", "shoulder injury"),
        benefits=("full-body warm-up", "cardiovascular endurance"),
        difficulty_level=ExperienceLevel.ADVANCED.value,
    ),
    Pose(
        name="Hip Circles in Lunge",
        sanskrit_name="Anjaneyasana Variation",
        duration_breaths=8,
        instructions=("Lower into a lunge", "Circle the hips slowly", "Switch direction"),
        modifications=("Pad the back knee",),
        contraindications=("knee injury",),
        benefits=("hip mobility", "warms the pelvis"),
        difficulty_level=ExperienceLevel.ADVANCED.value,
    ),
    Pose(
        name="Shoulder Stand",
        sanskrit_name="Salamba Sarvangasana",
        duration_seconds=90,
        instructions=("Lie back with a blanket under the shoulders", "Lift the legs and hips", "Support the back with the hands"),
        modifications=("Legs up the wall",),
        contraindications=("neck injury", "high blood pressure", "glaucoma"),
        benefits=("calming", "inversion"),
        difficulty_level=ExperienceLevel.ADVANCED.value,
    ),
)


def default_catalog() -> PoseCatalog:
    """Build the built-in catalog."""
    tiers: Dict[str, Tuple[Pose, ...]] = {
        ExperienceLevel.BEGINNER.value: BEGINNER_POSES,
        ExperienceLevel.INTERMEDIATE.value: INTERMEDIATE_POSES,
        ExperienceLevel.ADVANCED.value: ADVANCED_POSES,
    }
    return PoseCatalog(tiers=tiers, relaxation_pose=SAVASANA)
