"""Pipeline module for quatbuild.

Provides orchestration from structure files to rebuilt assemblies.
"""

from quatbuild.pipeline.pipeline import (
    AssemblyPipeline,
    AssemblyResult,
    AssemblySummary,
    PipelineStats,
    create_pipeline,
    get_biological_assembly,
)

__all__ = [
    "AssemblyPipeline",
    "AssemblyResult",
    "AssemblySummary",
    "PipelineStats",
    "create_pipeline",
    "get_biological_assembly",
]
