"""Biological assembly reconstruction.

Provides:
- Operator tables and 4x4 transforms
- Operator expression resolution
- Transformation list building
- Quaternary structure reconstruction
"""

from quatbuild.assembly.builder import (
    AssemblyBuilderConfig,
    BiologicalAssemblyBuilder,
    ChainMatching,
    Placement,
    get_assembly_statistics,
    order_transformations,
)
from quatbuild.assembly.expression import (
    BinaryOperators,
    OperatorExpressionError,
    UnaryOperators,
    resolve_operator_expression,
)
from quatbuild.assembly.operators import OperatorTable, TransformMatrix
from quatbuild.assembly.transformations import (
    COMPOSED_OPERATOR_SEPARATOR,
    SYM_CHAIN_ID_SEPARATOR,
    AssemblyGenerationRecord,
    AssemblyInfo,
    AssemblyNotFoundError,
    AssemblyTables,
    BiologicalAssemblyTransformation,
    build_transformation_list,
    get_bio_unit_transformation_list,
    get_transformations_for_assembly,
)

__all__ = [
    # Reconstruction
    "AssemblyBuilderConfig",
    "BiologicalAssemblyBuilder",
    "ChainMatching",
    "Placement",
    "get_assembly_statistics",
    "order_transformations",
    # Expressions
    "BinaryOperators",
    "OperatorExpressionError",
    "UnaryOperators",
    "resolve_operator_expression",
    # Operators
    "OperatorTable",
    "TransformMatrix",
    # Transformation lists
    "COMPOSED_OPERATOR_SEPARATOR",
    "SYM_CHAIN_ID_SEPARATOR",
    "AssemblyGenerationRecord",
    "AssemblyInfo",
    "AssemblyNotFoundError",
    "AssemblyTables",
    "BiologicalAssemblyTransformation",
    "build_transformation_list",
    "get_bio_unit_transformation_list",
    "get_transformations_for_assembly",
]
