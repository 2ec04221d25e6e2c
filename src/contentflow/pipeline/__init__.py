"""Generation backends and the guided pipeline built on the workflow engine."""

from .backends import (
    SYSTEM_PROMPTS,
    ChatGenerationBackend,
    GenerationBackend,
    GenerationResult,
    MockGenerationBackend,
    build_backend,
    format_step_inputs,
)
from .orchestrator import (
    UPSTREAM_INPUT_KEYS,
    PipelineOrchestrator,
    StepNotEligibleError,
    StepOutcome,
    StepRunner,
    pipeline_order,
)

__all__ = [
    "SYSTEM_PROMPTS",
    "ChatGenerationBackend",
    "GenerationBackend",
    "GenerationResult",
    "MockGenerationBackend",
    "build_backend",
    "format_step_inputs",
    "UPSTREAM_INPUT_KEYS",
    "PipelineOrchestrator",
    "StepNotEligibleError",
    "StepOutcome",
    "StepRunner",
    "pipeline_order",
]
