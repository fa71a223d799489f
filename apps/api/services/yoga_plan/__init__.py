# Yoga Plan Engine
#
# Generation, safety validation, approval workflow and usage accounting
# for personalized yoga programs.
#
# Architecture:
# - Pose catalog: immutable, injectable reference data
# - Composer: deterministic local plan assembly
# - Providers: local composer or a rich LLM behind one interface
# - Orchestrator: provider selection, timing, safety enforcement
# - Workflow: explicit approval state machine
# - Ledger: plan usage + member progress, updated together
# - Store/Service: tenant-scoped persistence and the external operations

from .constants import ApprovalStatus, ExperienceLevel, ProviderKind, Severity
from .errors import (
    PlanEngineError,
    ValidationError,
    ActivePlanExistsError,
    ProviderUnavailableError,
    SafetyViolationError,
    NotFoundError,
    InvalidTransitionError,
    InvalidSessionError,
    EmailInUseError,
)
from .structures import (
    Assessment,
    Limitation,
    Pose,
    PhaseBlock,
    Meditation,
    Session,
    Week,
    PlanStructure,
    GenerationMetadata,
)
from .pose_catalog import PoseCatalog, default_catalog
from .composer import PlanComposer, compose
from .safety import SafetyResult, validate
from .providers import (
    GenerationProvider,
    LocalComposerProvider,
    AnthropicPlanProvider,
    OpenAIPlanProvider,
    ProviderOutput,
)
from .orchestrator import GenerationOrchestrator, GenerationResult, select_provider
from .store import PlanStore, SqlAlchemyPlanStore
from .service import YogaPlanService, SessionCompletionAck, ReviewQueuePage

__all__ = [
    # Constants
    'ApprovalStatus',
    'ExperienceLevel',
    'ProviderKind',
    'Severity',

    # Errors
    'PlanEngineError',
    'ValidationError',
    'ActivePlanExistsError',
    'ProviderUnavailableError',
    'SafetyViolationError',
    'NotFoundError',
    'InvalidTransitionError',
    'InvalidSessionError',
    'EmailInUseError',

    # Structures
    'Assessment',
    'Limitation',
    'Pose',
    'PhaseBlock',
    'Meditation',
    'Session',
    'Week',
    'PlanStructure',
    'GenerationMetadata',

    # Generation
    'PoseCatalog',
    'default_catalog',
    'PlanComposer',
    'compose',
    'SafetyResult',
    'validate',
    'GenerationProvider',
    'LocalComposerProvider',
    'AnthropicPlanProvider',
    'OpenAIPlanProvider',
    'ProviderOutput',
    'GenerationOrchestrator',
    'GenerationResult',
    'select_provider',

    # Persistence + service
    'PlanStore',
    'SqlAlchemyPlanStore',
    'YogaPlanService',
    'SessionCompletionAck',
    'ReviewQueuePage',
]
