"""
Generation Providers

Every source of plan content sits behind GenerationProvider:

    LocalComposerProvider   deterministic PlanComposer, no network
    AnthropicPlanProvider   Claude messages API
    OpenAIPlanProvider      chat completions API

Rich providers share one prompt and one reply parser. A failed call, a
timeout, or a reply that does not parse into a consistent PlanStructure is
reported as ProviderUnavailableError. Nothing here falls back to another
provider.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import anthropic
import openai

from core.config import settings

from .composer import PlanComposer
from .constants import (
    LOCAL_CONFIDENCE_SCORE,
    LOCAL_MODEL_NAME,
    LOCAL_TOKENS_CONSUMED,
)
from .errors import ProviderUnavailableError, ValidationError
from .structures import Assessment, PlanStructure

logger = logging.getLogger(__name__)

# Rich providers do not score themselves unless the reply says so
RICH_DEFAULT_CONFIDENCE = 0.85


@dataclass
class ProviderOutput:
    structure: PlanStructure
    model_used: str
    tokens_consumed: int
    confidence_score: float


class GenerationProvider(ABC):
    """A pluggable generator of plan content."""

    name: str = "provider"

    @abstractmethod
    def generate(self, assessment: Assessment) -> ProviderOutput:
        """Produce a plan structure for the assessment."""


class LocalComposerProvider(GenerationProvider):
    name = "local"

    def __init__(self, composer: PlanComposer):
        self.composer = composer

    def generate(self, assessment: Assessment) -> ProviderOutput:
        return ProviderOutput(
            structure=self.composer.compose(assessment),
            model_used=LOCAL_MODEL_NAME,
            tokens_consumed=LOCAL_TOKENS_CONSUMED,
            confidence_score=LOCAL_CONFIDENCE_SCORE,
        )


# ---------------------------------------------------------------------------
# Prompt and reply handling shared by rich providers
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """You are an experienced, safety-conscious yoga teacher designing a structured home practice program.

CRITICAL RULES:
- NEVER include a pose that is contraindicated for any of the member's limitations.
- List every known contraindication of each pose in its "contraindications" array, even ones that do not apply to this member.
- Every session MUST contain "warm_up", "main_sequence" and "cool_down" phases, each with "duration_minutes" and "poses".
- The three phase durations must not add up to more than the session duration.
- Give each pose an English "name" and its Sanskrit "sanskrit_name".
- Give each pose step-by-step "instructions" and at least one entry in "modifications".
- Hold each pose for either "duration_seconds" or "duration_breaths", not both.
- Respond with a single JSON object and nothing else."""

REPLY_SCHEMA = """{
  "duration_weeks": <int>,
  "sessions_per_week": <int>,
  "difficulty_level": "beginner" | "intermediate" | "advanced",
  "total_sessions": <int>,
  "weeks": [
    {
      "week_number": <int, 1-based>,
      "theme": "<string>",
      "focus_areas": ["<string>"],
      "sessions": [
        {
          "session_number": <int, 1-based within the week>,
          "duration_minutes": <int>,
          "warm_up": {"duration_minutes": <int>, "poses": [<pose>]},
          "main_sequence": {"duration_minutes": <int>, "poses": [<pose>]},
          "cool_down": {"duration_minutes": <int>, "poses": [<pose>]},
          "meditation": {"duration_minutes": <int>, "type": "<string>", "instructions": "<string>"}
        }
      ]
    }
  ]
}

<pose> = {"name": "<English>", "sanskrit_name": "<Sanskrit>", "duration_seconds": <int> or "duration_breaths": <int>,
          "instructions": ["<step>"], "modifications": ["<string>"], "contraindications": ["<string>"],
          "benefits": ["<string>"], "difficulty_level": "<tier>"}"""


def _format_list(values) -> str:
    return ", ".join(values) if values else "none stated"


def build_plan_prompt(assessment: Assessment) -> str:
    """User prompt embedding the full assessment."""
    if assessment.injuries_limitations:
        limitation_lines = "\n".join(
            f"- {lim.type} (severity: {lim.severity})" + (f": {lim.notes}" if lim.notes else "")
            for lim in assessment.injuries_limitations
        )
    else:
        limitation_lines = "- none reported"

    notes = f"\nADDITIONAL NOTES FROM THE MEMBER:\n{assessment.additional_notes}\n" if assessment.additional_notes else ""

    return f"""Design a {assessment.duration_weeks}-week yoga program.

MEMBER ASSESSMENT:
- Experience level: {assessment.experience_level}
- Goals: {_format_list(assessment.primary_goals)}
- Preferred styles: {_format_list(assessment.preferred_styles)}
- Session duration: {assessment.session_duration} minutes
- Sessions per week: {assessment.sessions_per_week}
- Program length: {assessment.duration_weeks} weeks

INJURIES AND LIMITATIONS (never include a pose contraindicated for any of these):
{limitation_lines}
{notes}
The program must have exactly {assessment.duration_weeks} weeks with exactly {assessment.sessions_per_week} sessions each
({assessment.duration_weeks * assessment.sessions_per_week} sessions in total), every session {assessment.session_duration} minutes long.

Return JSON in exactly this shape:
{REPLY_SCHEMA}
"""


def parse_plan_reply(text: Optional[str], assessment: Assessment) -> tuple:
    """
    Parse a provider reply into a PlanStructure.

    Returns:
        (structure, confidence_score or None)

    Raises:
        ProviderUnavailableError if the reply is empty, not JSON, or does not
        describe the requested weeks x sessions.
    """
    if not text or "{" not in text or "}" not in text:
        raise ProviderUnavailableError("Provider returned no plan content")

    json_start = text.find("{")
    json_end = text.rfind("}") + 1
    try:
        data = json.loads(text[json_start:json_end])
    except json.JSONDecodeError as e:
        raise ProviderUnavailableError(f"Provider returned unparsable plan content: {e}") from e

    if not isinstance(data, dict):
        raise ProviderUnavailableError("Provider returned unparsable plan content")

    # Some models wrap the plan, e.g. {"planStructure": {...}}
    for wrapper in ("planStructure", "plan_structure", "plan"):
        if isinstance(data.get(wrapper), dict):
            data = data[wrapper]
            break

    try:
        structure = PlanStructure.from_dict(data)
        structure.check_consistency()
    except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as e:
        raise ProviderUnavailableError(f"Provider returned a malformed plan: {e}") from e

    if (structure.duration_weeks, structure.sessions_per_week) != (
        assessment.duration_weeks,
        assessment.sessions_per_week,
    ):
        raise ProviderUnavailableError(
            f"Provider returned {structure.duration_weeks}x{structure.sessions_per_week}, "
            f"requested {assessment.duration_weeks}x{assessment.sessions_per_week}"
        )

    confidence = data.get("confidence_score")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool) and 0 <= confidence <= 1:
        return structure, float(confidence)
    return structure, None


# ---------------------------------------------------------------------------
# Rich providers
# ---------------------------------------------------------------------------

class AnthropicPlanProvider(GenerationProvider):
    """Plan generation through the Anthropic messages API."""

    name = "anthropic"

    def __init__(
        self,
        client: Any = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout_s: Optional[float] = None,
    ):
        self.model = model or settings.GENERATION_MODEL_ANTHROPIC
        self.max_tokens = max_tokens or settings.GENERATION_MAX_TOKENS
        self.timeout_s = timeout_s or settings.GENERATION_TIMEOUT_S
        self.client = client
        if self.client is None and settings.ANTHROPIC_API_KEY:
            self.client = anthropic.Anthropic(
                api_key=settings.ANTHROPIC_API_KEY,
                timeout=self.timeout_s,
            )
            logger.info("Anthropic client initialized for plan generation")

    def generate(self, assessment: Assessment) -> ProviderOutput:
        if not self.client:
            raise ProviderUnavailableError("Anthropic provider is not configured")

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_plan_prompt(assessment)}],
                timeout=self.timeout_s,
            )
        except anthropic.APIError as e:
            logger.error(f"Claude API error during plan generation: {e}")
            raise ProviderUnavailableError(f"Anthropic request failed: {type(e).__name__}") from e

        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )
        structure, confidence = parse_plan_reply(text, assessment)

        tokens = 0
        usage = getattr(response, "usage", None)
        if usage is not None:
            tokens = (usage.input_tokens or 0) + (usage.output_tokens or 0)

        return ProviderOutput(
            structure=structure,
            model_used=self.model,
            tokens_consumed=tokens,
            confidence_score=confidence if confidence is not None else RICH_DEFAULT_CONFIDENCE,
        )


class OpenAIPlanProvider(GenerationProvider):
    """Plan generation through the OpenAI chat completions API."""

    name = "openai"

    def __init__(
        self,
        client: Any = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout_s: Optional[float] = None,
    ):
        self.model = model or settings.GENERATION_MODEL_OPENAI
        self.max_tokens = max_tokens or settings.GENERATION_MAX_TOKENS
        self.timeout_s = timeout_s or settings.GENERATION_TIMEOUT_S
        self.client = client
        if self.client is None and settings.OPENAI_API_KEY:
            self.client = openai.OpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=self.timeout_s,
            )
            logger.info("OpenAI client initialized for plan generation")

    def generate(self, assessment: Assessment) -> ProviderOutput:
        if not self.client:
            raise ProviderUnavailableError("OpenAI provider is not configured")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_plan_prompt(assessment)},
                ],
                response_format={"type": "json_object"},
                timeout=self.timeout_s,
            )
        except openai.APIError as e:
            logger.error(f"OpenAI API error during plan generation: {e}")
            raise ProviderUnavailableError(f"OpenAI request failed: {type(e).__name__}") from e

        if not response.choices:
            raise ProviderUnavailableError("Provider returned no plan content")
        structure, confidence = parse_plan_reply(response.choices[0].message.content, assessment)

        usage = getattr(response, "usage", None)
        tokens = (usage.total_tokens or 0) if usage is not None else 0

        return ProviderOutput(
            structure=structure,
            model_used=self.model,
            tokens_consumed=tokens,
            confidence_score=confidence if confidence is not None else RICH_DEFAULT_CONFIDENCE,
        )


def rich_provider_from_settings() -> GenerationProvider:
    """The configured rich provider (RICH_PROVIDER)."""
    choice = settings.RICH_PROVIDER.lower()
    if choice == "openai":
        return OpenAIPlanProvider()
    if choice != "anthropic":
        logger.warning(f"Unknown RICH_PROVIDER '{settings.RICH_PROVIDER}', using anthropic")
    return AnthropicPlanProvider()
