"""Rigid-body operators and the per-file operator table.

An operator is a 4x4 homogeneous transform whose upper 3x4 block holds a
rotation matrix R and a translation vector t. It is applied to a point as
x' = R @ x + t. Composition ``a.compose(b)`` is the matrix product a @ b,
i.e. b is applied first and a second.

The operator table maps ``_pdbx_struct_oper_list.id`` values to transforms.
It is built once per input file and is read-only afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Iterator, Optional, Sequence

import numpy as np


logger = logging.getLogger(__name__)


# Tolerance for floating point comparisons
ROTATION_TOLERANCE = 1e-6
TRANSLATION_TOLERANCE = 1e-4

_HOMOGENEOUS_ROW = np.array([0.0, 0.0, 0.0, 1.0])

# mmCIF item names for the twelve matrix components, row-major
MATRIX_ITEMS = [f"matrix[{i}][{j}]" for i in range(1, 4) for j in range(1, 4)]
VECTOR_ITEMS = [f"vector[{i}]" for i in range(1, 4)]


class TransformMatrix:
    """Immutable 4x4 affine transform.

    Row 3 is always (0, 0, 0, 1). The underlying array is flagged
    read-only, so neither composition nor application can modify it.
    """

    __slots__ = ("_matrix",)

    def __init__(self, matrix: Any):
        matrix = np.array(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Transform must be (4, 4), got {matrix.shape}")
        matrix[3] = _HOMOGENEOUS_ROW
        matrix.setflags(write=False)
        self._matrix = matrix

    @classmethod
    def from_rotation_translation(
        cls,
        rotation: Any,
        translation: Any,
    ) -> "TransformMatrix":
        """Build from a 3x3 rotation and a 3-vector translation."""
        rotation = np.asarray(rotation, dtype=np.float64)
        translation = np.asarray(translation, dtype=np.float64)
        if rotation.shape != (3, 3):
            raise ValueError(f"Rotation must be (3, 3), got {rotation.shape}")
        if translation.shape != (3,):
            raise ValueError(f"Translation must be (3,), got {translation.shape}")
        matrix = np.eye(4, dtype=np.float64)
        matrix[:3, :3] = rotation
        matrix[:3, 3] = translation
        return cls(matrix)

    @classmethod
    def identity(cls) -> "TransformMatrix":
        return cls(np.eye(4, dtype=np.float64))

    @classmethod
    def translation_only(cls, dx: float, dy: float, dz: float) -> "TransformMatrix":
        """Create a pure translation."""
        return cls.from_rotation_translation(np.eye(3), [dx, dy, dz])

    @property
    def matrix(self) -> np.ndarray:
        """Read-only 4x4 array."""
        return self._matrix

    @property
    def rotation(self) -> np.ndarray:
        return self._matrix[:3, :3]

    @property
    def translation(self) -> np.ndarray:
        return self._matrix[:3, 3]

    @property
    def is_identity(self) -> bool:
        """Check if this is an identity operation."""
        return (
            np.allclose(self.rotation, np.eye(3), atol=ROTATION_TOLERANCE) and
            np.allclose(self.translation, np.zeros(3), atol=TRANSLATION_TOLERANCE)
        )

    @property
    def rotation_angle(self) -> float:
        """Calculate rotation angle in degrees."""
        cos_angle = (np.trace(self.rotation) - 1) / 2
        # Clamp to [-1, 1] to handle numerical errors
        cos_angle = np.clip(cos_angle, -1, 1)
        return float(np.degrees(np.arccos(cos_angle)))

    def compose(self, other: "TransformMatrix") -> "TransformMatrix":
        """Return self @ other: ``other`` is applied first, then ``self``."""
        return TransformMatrix(self._matrix @ other._matrix)

    def transform_point(self, point: np.ndarray) -> np.ndarray:
        """Apply transformation to a single 3D point."""
        return self.rotation @ point + self.translation

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """Apply transformation to multiple 3D points.

        Args:
            points: Array of shape (N, 3)

        Returns:
            Transformed points of shape (N, 3)
        """
        points = np.asarray(points, dtype=np.float64)
        return points @ self.rotation.T + self.translation

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TransformMatrix):
            return NotImplemented
        return bool(np.array_equal(self._matrix, other._matrix))

    def __hash__(self) -> int:
        return hash(self._matrix.tobytes())

    def __repr__(self) -> str:
        rows = np.array2string(self._matrix[:3], precision=4, suppress_small=True)
        return f"TransformMatrix({rows})"


class OperatorTable(Mapping):
    """Read-only mapping from operator id to TransformMatrix.

    Example usage:
        >>> table = OperatorTable.from_rows(rows)
        >>> table["1"].is_identity
        True
    """

    def __init__(self, operators: Optional[Dict[str, TransformMatrix]] = None):
        self._operators: Dict[str, TransformMatrix] = dict(operators or {})

    @classmethod
    def from_rows(cls, rows: Iterable[Dict[str, str]]) -> "OperatorTable":
        """Build the table from ``_pdbx_struct_oper_list`` rows.

        Each row maps item names (``id``, ``matrix[1][1]`` ... ``vector[3]``)
        to raw strings. A row whose components do not all parse as numbers
        is dropped with a warning, making its id unresolvable.
        """
        operators: Dict[str, TransformMatrix] = {}
        for row in rows:
            oper_id = row.get("id", "")
            try:
                values = [float(row[item]) for item in MATRIX_ITEMS + VECTOR_ITEMS]
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(
                    f"Could not parse a matrix value from pdbx_struct_oper_list "
                    f"for id {oper_id}. The operator id will be ignored. Error: {e}"
                )
                continue

            operators[oper_id] = TransformMatrix.from_rotation_translation(
                np.array(values[:9]).reshape(3, 3),
                values[9:],
            )

        return cls(operators)

    @classmethod
    def from_matrices(cls, matrices: Dict[str, Sequence[Sequence[float]]]) -> "OperatorTable":
        """Build the table from 4x4 (or 3x4) nested sequences."""
        operators = {}
        for oper_id, matrix in matrices.items():
            matrix = np.asarray(matrix, dtype=np.float64)
            if matrix.shape == (3, 4):
                matrix = np.vstack([matrix, _HOMOGENEOUS_ROW])
            operators[oper_id] = TransformMatrix(matrix)
        return cls(operators)

    def __getitem__(self, oper_id: str) -> TransformMatrix:
        return self._operators[oper_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._operators)

    def __len__(self) -> int:
        return len(self._operators)

    def __repr__(self) -> str:
        return f"OperatorTable(ids={list(self._operators)})"
