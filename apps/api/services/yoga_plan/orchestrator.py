"""
Generation Orchestrator

Chooses a provider for an assessment, runs it, times it, and refuses to
hand back a plan that fails the safety check.

Selection policy:
    rich   - any reported limitation, or an advanced practitioner
    local  - everyone else

Usage:
    orchestrator = GenerationOrchestrator.default()
    result = orchestrator.generate(assessment, tenant_id)
    result.structure, result.metadata
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

from core.config import settings

from .composer import PlanComposer
from .constants import ExperienceLevel, ProviderKind
from .errors import SafetyViolationError
from .pose_catalog import PoseCatalog, default_catalog
from .providers import (
    GenerationProvider,
    LocalComposerProvider,
    rich_provider_from_settings,
)
from .safety import validate
from .structures import Assessment, GenerationMetadata, PlanStructure

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    structure: PlanStructure
    metadata: GenerationMetadata


def select_provider(assessment: Assessment) -> ProviderKind:
    if assessment.has_limitations or assessment.experience_level == ExperienceLevel.ADVANCED.value:
        return ProviderKind.RICH
    return ProviderKind.LOCAL


class GenerationOrchestrator:
    """
    Provider dispatch plus timing, metadata and safety enforcement.

    Providers are keyed by ProviderKind; adding one means registering it
    here and teaching select_provider when to pick it.
    """

    def __init__(
        self,
        providers: Dict[ProviderKind, GenerationProvider],
        prompt_version: Optional[str] = None,
    ):
        missing = [kind.value for kind in ProviderKind if kind not in providers]
        if missing:
            raise ValueError(f"missing providers: {', '.join(missing)}")
        self.providers = dict(providers)
        self.prompt_version = prompt_version or settings.PROMPT_VERSION

    @classmethod
    def default(cls, catalog: Optional[PoseCatalog] = None) -> "GenerationOrchestrator":
        composer = PlanComposer(catalog or default_catalog())
        return cls({
            ProviderKind.LOCAL: LocalComposerProvider(composer),
            ProviderKind.RICH: rich_provider_from_settings(),
        })

    def generate(self, assessment: Assessment, tenant_id: str) -> GenerationResult:
        """
        Generate and safety-check a plan structure.

        Raises:
            ProviderUnavailableError: provider failed or replied with unusable content
            SafetyViolationError: a pose is contraindicated for a stated limitation
        """
        kind = select_provider(assessment)
        provider = self.providers[kind]
        start_time = time.time()

        logger.info(
            f"Generating plan via {kind.value} provider ({provider.name})",
            extra={"extra_fields": {
                "tenant_id": tenant_id,
                "provider": provider.name,
                "experience_level": assessment.experience_level,
                "limitations": len(assessment.injuries_limitations),
            }},
        )

        output = provider.generate(assessment)
        safety = validate(output.structure, assessment)

        metadata = GenerationMetadata(
            model_used=output.model_used,
            confidence_score=output.confidence_score,
            generation_time_ms=0,
            tokens_consumed=output.tokens_consumed,
            prompt_version=self.prompt_version,
            safety_checks_passed=safety.passed,
        )
        metadata.record_latency(round((time.time() - start_time) * 1000))

        if not safety.passed:
            logger.warning(
                f"Generated plan failed safety check: pose '{safety.pose.name}' "
                f"vs limitation '{safety.limitation.type}'",
                extra={"extra_fields": {
                    "tenant_id": tenant_id,
                    "provider": provider.name,
                    **safety.describe(),
                }},
            )
            raise SafetyViolationError(safety.pose.name, safety.limitation.type)

        logger.info(
            f"Plan generated in {metadata.generation_time_ms}ms via {metadata.model_used}",
            extra={"extra_fields": {"tenant_id": tenant_id, **metadata.to_dict()}},
        )
        return GenerationResult(structure=output.structure, metadata=metadata)
