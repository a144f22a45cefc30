"""
Data Models
===========

Pydantic models shared across the pipeline components.
"""

from .schemas import (
    BrowserOptions,
    PipelineConfig,
    PipelineResult,
    PipelineState,
    RenderResult,
    RenderTask,
    ResourceSet,
    output_path_for,
)

__all__ = [
    "BrowserOptions",
    "PipelineConfig",
    "PipelineResult",
    "PipelineState",
    "RenderResult",
    "RenderTask",
    "ResourceSet",
    "output_path_for",
]
