"""Tweak module initialization."""

from .catalog import available_tweaks, describe
from .pipeline import PipelineResult, PipelineStage, TweakPipeline

__all__ = [
    # catalog
    "available_tweaks",
    "describe",
    # pipeline
    "PipelineResult",
    "PipelineStage",
    "TweakPipeline",
]
