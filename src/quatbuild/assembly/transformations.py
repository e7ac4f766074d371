"""Transformation list building for biological assemblies.

For a requested assembly id, every ``_pdbx_struct_assembly_gen`` record is
cross-referenced with the operator table to produce an ordered list of
(chain id, transform id, matrix) triples. Unary operators contribute their
matrix directly; composed operators "(A)(B)" contribute M(a) @ M(b) with the
transform id ``a + COMPOSED_OPERATOR_SEPARATOR + b``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from quatbuild.assembly.expression import (
    BinaryOperators,
    OperatorExpressionError,
    UnaryOperators,
    resolve_operator_expression,
)
from quatbuild.assembly.operators import OperatorTable, TransformMatrix


logger = logging.getLogger(__name__)


# The character separating the original chain identifier from the transform id
SYM_CHAIN_ID_SEPARATOR = "_"

# The character separating operator ids that are composed
COMPOSED_OPERATOR_SEPARATOR = "x"


class AssemblyNotFoundError(LookupError):
    """Raised when a requested assembly index or id is not declared."""


@dataclass(frozen=True)
class AssemblyGenerationRecord:
    """One ``_pdbx_struct_assembly_gen`` row.

    Attributes:
        assembly_id: Assembly this generator group belongs to
        chain_ids: Internal chain ids the operators apply to
        oper_expression: Raw operator expression
    """
    assembly_id: str
    chain_ids: Tuple[str, ...]
    oper_expression: str

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> "AssemblyGenerationRecord":
        """Create from a raw row with a comma separated ``asym_id_list``."""
        chain_ids = tuple(
            c.strip() for c in row.get("asym_id_list", "").split(",") if c.strip()
        )
        return cls(
            assembly_id=row.get("assembly_id", ""),
            chain_ids=chain_ids,
            oper_expression=row.get("oper_expression", ""),
        )


@dataclass(frozen=True)
class AssemblyInfo:
    """One ``_pdbx_struct_assembly`` row.

    Attributes:
        assembly_id: Unique identifier (e.g., "1", "2")
        details: Description from PDB (e.g., "author_defined_assembly")
        method_details: How assembly was determined (author, software)
        oligomeric_details: Oligomeric state (e.g., "dimeric")
        oligomeric_count: Number of chains in the assembly
    """
    assembly_id: str
    details: Optional[str] = None
    method_details: Optional[str] = None
    oligomeric_details: Optional[str] = None
    oligomeric_count: Optional[int] = None


@dataclass
class AssemblyTables:
    """Everything a structure file declares about its assemblies."""
    operator_table: OperatorTable = field(default_factory=OperatorTable)
    assemblies: List[AssemblyInfo] = field(default_factory=list)
    generation_records: List[AssemblyGenerationRecord] = field(default_factory=list)

    @property
    def assembly_ids(self) -> List[str]:
        """Declared assembly ids, falling back to those used by generators."""
        if self.assemblies:
            return [a.assembly_id for a in self.assemblies]
        seen: Dict[str, None] = {}
        for record in self.generation_records:
            seen.setdefault(record.assembly_id, None)
        return list(seen)

    def get_assembly(self, assembly_id: str) -> Optional[AssemblyInfo]:
        for assembly in self.assemblies:
            if assembly.assembly_id == assembly_id:
                return assembly
        return None


@dataclass(frozen=True)
class BiologicalAssemblyTransformation:
    """A transform to apply to one chain of the asymmetric unit.

    Attributes:
        chain_id: Chain the transform applies to
        transform_id: Operator id, or "id1xid2" for composed operators
        matrix: Transform to apply
    """
    chain_id: str
    transform_id: str
    matrix: TransformMatrix

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        return self.matrix.transform_points(points)


def build_transformation_list(
    assembly_id: str,
    records: Iterable[AssemblyGenerationRecord],
    operator_table: OperatorTable,
) -> List[BiologicalAssemblyTransformation]:
    """Build the flat transformation list for one assembly id.

    Records with a malformed expression are skipped with a warning, as are
    single operators or pairs missing from the operator table.

    Args:
        assembly_id: Assembly to build
        records: All generation records of the file
        operator_table: Operator id to matrix

    Returns:
        Unary-derived transformations followed by binary-derived ones
    """
    unary: List[BiologicalAssemblyTransformation] = []
    binary: List[BiologicalAssemblyTransformation] = []

    for record in records:
        if record.assembly_id != assembly_id:
            continue

        try:
            resolved = resolve_operator_expression(record.oper_expression)
        except OperatorExpressionError as e:
            logger.warning(
                f"Skipping generator for chains {','.join(record.chain_ids)} of "
                f"assembly {assembly_id}: {e}"
            )
            continue

        logger.debug(
            f"Assembly {assembly_id}: expression '{record.oper_expression}' -> "
            f"{len(resolved)} operators for {len(record.chain_ids)} chains"
        )

        if isinstance(resolved, UnaryOperators):
            unary.extend(_unary_transformations(assembly_id, record, resolved, operator_table))
        elif isinstance(resolved, BinaryOperators):
            binary.extend(_binary_transformations(assembly_id, record, resolved, operator_table))

    return unary + binary


def _unary_transformations(
    assembly_id: str,
    record: AssemblyGenerationRecord,
    operators: UnaryOperators,
    operator_table: OperatorTable,
) -> List[BiologicalAssemblyTransformation]:
    transformations = []
    for chain_id in record.chain_ids:
        for oper_id in operators.ids:
            matrix = operator_table.get(oper_id)
            if matrix is None:
                logger.warning(
                    f"Could not find matrix operator for operator id {oper_id}. "
                    f"Assembly id {assembly_id} will not contain the operator."
                )
                continue
            transformations.append(BiologicalAssemblyTransformation(
                chain_id=chain_id,
                transform_id=oper_id,
                matrix=matrix,
            ))
    return transformations


def _binary_transformations(
    assembly_id: str,
    record: AssemblyGenerationRecord,
    operators: BinaryOperators,
    operator_table: OperatorTable,
) -> List[BiologicalAssemblyTransformation]:
    transformations = []
    # Composed matrices are shared by every chain of the record
    composed: Dict[Tuple[str, str], Optional[TransformMatrix]] = {}
    for chain_id in record.chain_ids:
        for pair in operators.pairs:
            if pair not in composed:
                first = operator_table.get(pair[0])
                second = operator_table.get(pair[1])
                if first is None or second is None:
                    logger.warning(
                        f"Could not find matrix operator for operator id {pair[0]} or {pair[1]}. "
                        f"Assembly id {assembly_id} will not contain the composed operator."
                    )
                    composed[pair] = None
                else:
                    composed[pair] = first.compose(second)

            matrix = composed[pair]
            if matrix is None:
                continue
            transformations.append(BiologicalAssemblyTransformation(
                chain_id=chain_id,
                transform_id=f"{pair[0]}{COMPOSED_OPERATOR_SEPARATOR}{pair[1]}",
                matrix=matrix,
            ))
    return transformations


def get_bio_unit_transformation_list(
    tables: AssemblyTables,
    assembly_index: int,
) -> List[BiologicalAssemblyTransformation]:
    """Return the transformation list of the assembly at a position.

    Raises:
        AssemblyNotFoundError: If the index is outside the assembly table
    """
    assembly_ids = tables.assembly_ids
    if not 0 <= assembly_index < len(assembly_ids):
        raise AssemblyNotFoundError(
            f"Assembly index {assembly_index} out of range; "
            f"{len(assembly_ids)} assemblies declared"
        )
    return build_transformation_list(
        assembly_ids[assembly_index],
        tables.generation_records,
        tables.operator_table,
    )


def get_transformations_for_assembly(
    tables: AssemblyTables,
    assembly_id: str,
) -> List[BiologicalAssemblyTransformation]:
    """Return the transformation list of an assembly by id.

    Raises:
        AssemblyNotFoundError: If the id is not declared in the file
    """
    if assembly_id not in tables.assembly_ids:
        raise AssemblyNotFoundError(
            f"Assembly {assembly_id} not declared; available: {tables.assembly_ids}"
        )
    return build_transformation_list(
        assembly_id,
        tables.generation_records,
        tables.operator_table,
    )


def count_copies(transformations: Sequence[BiologicalAssemblyTransformation]) -> int:
    """Number of distinct transform ids (symmetry copies) in a list."""
    return len({t.transform_id for t in transformations})
