"""quatbuild: biological assembly reconstruction for macromolecular structures.

This package provides tools for:
- Parsing mmCIF asymmetric units and their assembly definitions
- Resolving operator expressions into symmetry transforms
- Rebuilding biological assemblies (multi-model or flattened)
- Writing assemblies back to mmCIF
"""

from quatbuild.config import Config
from quatbuild.pipeline.pipeline import AssemblyPipeline, create_pipeline, get_biological_assembly

__version__ = "0.1.0"
__all__ = [
    "Config",
    "AssemblyPipeline",
    "create_pipeline",
    "get_biological_assembly",
    "__version__",
]
