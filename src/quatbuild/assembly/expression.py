"""Parsing of ``_pdbx_struct_assembly_gen.oper_expression`` strings.

PDB uses expressions like:
- "1"            single operator
- "1,2,3"        list of operators
- "(1-5)"        range of operators
- "(1,2)(3-5)"   composition: every operator of the first group combined
                 with every operator of the second group (e.g. 1M4X uses
                 "(1-60)(61-88)")

A flat list resolves to ``UnaryOperators``; two parenthesized groups resolve
to ``BinaryOperators``. Anything else is malformed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple, Union


class OperatorExpressionError(ValueError):
    """Raised when an operator expression violates the grammar."""


@dataclass(frozen=True)
class UnaryOperators:
    """Ordered operator ids, each applied on its own."""
    ids: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.ids)


@dataclass(frozen=True)
class BinaryOperators:
    """Ordered (id1, id2) pairs; the transform of a pair is M(id1) @ M(id2)."""
    pairs: Tuple[Tuple[str, str], ...]

    def __len__(self) -> int:
        return len(self.pairs)


ResolvedOperators = Union[UnaryOperators, BinaryOperators]


_GROUP_RE = re.compile(r"\(([^()]*)\)")
_GROUPS_RE = re.compile(r"(?:\([^()]*\))+")


def resolve_operator_expression(expression: str) -> ResolvedOperators:
    """Resolve an operator expression into unary ids or binary pairs.

    Args:
        expression: Raw operator expression string

    Returns:
        UnaryOperators for a flat list, BinaryOperators for "(A)(B)"

    Raises:
        OperatorExpressionError: If the expression is malformed
    """
    compact = "".join(expression.split())
    if not compact:
        raise OperatorExpressionError("Empty operator expression")

    if "(" not in compact and ")" not in compact:
        return UnaryOperators(tuple(_parse_group(compact)))

    if not _GROUPS_RE.fullmatch(compact):
        raise OperatorExpressionError(
            f"Unbalanced or misplaced parentheses in operator expression '{expression}'"
        )

    groups = _GROUP_RE.findall(compact)
    if len(groups) == 1:
        return UnaryOperators(tuple(_parse_group(groups[0])))
    if len(groups) == 2:
        first = _parse_group(groups[0])
        second = _parse_group(groups[1])
        return BinaryOperators(tuple((a, b) for a in first for b in second))

    raise OperatorExpressionError(
        f"Operator expression '{expression}' has {len(groups)} groups, at most 2 are supported"
    )


def _parse_group(group: str) -> List[str]:
    """Parse a comma separated list of ids and ranges."""
    operator_ids = []

    for token in group.split(","):
        if not token:
            raise OperatorExpressionError(f"Empty operator id in '{group}'")

        if "-" in token:
            # Range like "1-5"
            start, _, end = token.partition("-")
            try:
                first, last = int(start), int(end)
            except ValueError:
                raise OperatorExpressionError(
                    f"Non-numeric range bounds in '{token}'"
                ) from None
            if last < first:
                raise OperatorExpressionError(f"Descending range '{token}'")
            operator_ids.extend(str(i) for i in range(first, last + 1))
        else:
            operator_ids.append(token)

    return operator_ids
