"""Graph state types for the guided pipeline."""

from .states import PipelineState, StepRecord

__all__ = ["PipelineState", "StepRecord"]
