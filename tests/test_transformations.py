"""Tests for building transformation lists from generation records."""

import logging

import numpy as np
import pytest


def _record(assembly_id, chains, expression):
    from quatbuild.assembly.transformations import AssemblyGenerationRecord

    return AssemblyGenerationRecord(assembly_id, tuple(chains), expression)


# =============================================================================
# Generation Records
# =============================================================================

class TestAssemblyGenerationRecord:
    """Tests for generator rows."""

    def test_from_row_splits_chain_list(self):
        """The asym_id_list is split on commas, ignoring blanks."""
        from quatbuild.assembly.transformations import AssemblyGenerationRecord

        record = AssemblyGenerationRecord.from_row({
            "assembly_id": "1",
            "oper_expression": "(1-2)",
            "asym_id_list": "A, B,,C",
        })

        assert record.assembly_id == "1"
        assert record.chain_ids == ("A", "B", "C")
        assert record.oper_expression == "(1-2)"


# =============================================================================
# Transformation List Builder
# =============================================================================

class TestBuildTransformationList:
    """Tests for build_transformation_list."""

    def test_unary_scenario(self, operator_table):
        """Chains A,B with "1,2" give four transformations in chain-major order."""
        from quatbuild.assembly.transformations import build_transformation_list

        transformations = build_transformation_list(
            "1", [_record("1", "AB", "1,2")], operator_table
        )

        assert [(t.chain_id, t.transform_id) for t in transformations] == [
            ("A", "1"), ("A", "2"), ("B", "1"), ("B", "2"),
        ]
        assert transformations[0].matrix.is_identity
        np.testing.assert_allclose(transformations[1].matrix.translation, [10.0, 0.0, 0.0])

    def test_unary_count_has_no_duplicates(self):
        """Count equals chains x operators when every id resolves."""
        from quatbuild.assembly.operators import OperatorTable, TransformMatrix
        from quatbuild.assembly.transformations import build_transformation_list

        table = OperatorTable({
            str(i): TransformMatrix.translation_only(float(i), 0.0, 0.0) for i in range(1, 13)
        })

        transformations = build_transformation_list(
            "1", [_record("1", "ABC", "(1-12)")], table
        )

        keys = [(t.chain_id, t.transform_id) for t in transformations]
        assert len(keys) == 3 * 12
        assert len(set(keys)) == len(keys)

    def test_binary_transform_ids_and_count(self, operator_table):
        """Composed operators are named "id1xid2"."""
        from quatbuild.assembly.transformations import build_transformation_list

        transformations = build_transformation_list(
            "1", [_record("1", "A", "(1,2)(2)")], operator_table
        )

        assert [t.transform_id for t in transformations] == ["1x2", "2x2"]

    def test_binary_identity_then_translation(self, operator_table):
        """identity @ translate(dx, dy, dz) maps the origin to (dx, dy, dz)."""
        from quatbuild.assembly.operators import OperatorTable, TransformMatrix
        from quatbuild.assembly.transformations import build_transformation_list

        table = OperatorTable({
            "1": TransformMatrix.identity(),
            "2": TransformMatrix.translation_only(3.0, -4.0, 12.5),
        })

        (transformation,) = build_transformation_list("1", [_record("1", "A", "(1)(2)")], table)

        np.testing.assert_allclose(
            transformation.matrix.transform_point(np.zeros(3)), [3.0, -4.0, 12.5]
        )

    def test_binary_composition_order(self, rotation_z90):
        """The second operator is applied first: M(1) @ M(2)."""
        from quatbuild.assembly.operators import OperatorTable, TransformMatrix
        from quatbuild.assembly.transformations import build_transformation_list

        table = OperatorTable({
            "1": rotation_z90,
            "2": TransformMatrix.translation_only(1.0, 0.0, 0.0),
        })

        (transformation,) = build_transformation_list("1", [_record("1", "A", "(1)(2)")], table)

        # Translate to (1, 0, 0), then rotate to (0, 1, 0)
        np.testing.assert_allclose(
            transformation.matrix.transform_point(np.zeros(3)), [0.0, 1.0, 0.0], atol=1e-12
        )
        np.testing.assert_allclose(
            transformation.matrix.matrix, rotation_z90.matrix @ table["2"].matrix
        )

    def test_transformation_transforms_points(self, rotation_z90):
        """A transformation moves a batch of points the same way as its matrix."""
        from quatbuild.assembly.operators import OperatorTable, TransformMatrix
        from quatbuild.assembly.transformations import build_transformation_list

        table = OperatorTable({
            "1": rotation_z90,
            "2": TransformMatrix.translation_only(0.0, 0.0, 2.0),
        })
        points = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 1.0]])

        (transformation,) = build_transformation_list("1", [_record("1", "A", "(1)(2)")], table)

        np.testing.assert_allclose(
            transformation.transform_points(points),
            [[0.0, 1.0, 2.0], [-1.0, 0.0, 2.0], [-1.0, 1.0, 3.0]],
            atol=1e-12,
        )

    def test_unary_before_binary(self, operator_table):
        """Unary-derived transformations precede binary-derived ones."""
        from quatbuild.assembly.transformations import build_transformation_list

        records = [
            _record("1", "A", "(1)(2)"),
            _record("1", "B", "1"),
        ]

        transformations = build_transformation_list("1", records, operator_table)

        assert [(t.chain_id, t.transform_id) for t in transformations] == [
            ("B", "1"), ("A", "1x2"),
        ]

    def test_filters_by_assembly_id(self, operator_table):
        """Only records of the requested assembly contribute."""
        from quatbuild.assembly.transformations import build_transformation_list

        records = [_record("1", "A", "1"), _record("2", "B", "1,2")]

        transformations = build_transformation_list("2", records, operator_table)

        assert {t.chain_id for t in transformations} == {"B"}
        assert len(transformations) == 2

    def test_missing_operator_is_skipped(self, operator_table, caplog):
        """An unknown unary id drops only that operator."""
        from quatbuild.assembly.transformations import build_transformation_list

        with caplog.at_level(logging.WARNING):
            transformations = build_transformation_list(
                "1", [_record("1", "A", "1,9,2")], operator_table
            )

        assert [t.transform_id for t in transformations] == ["1", "2"]
        assert "operator id 9" in caplog.text
        assert "Assembly id 1" in caplog.text

    def test_missing_pair_operand_is_skipped(self, operator_table, caplog):
        """A pair with an unknown operand drops only that pair."""
        from quatbuild.assembly.transformations import build_transformation_list

        with caplog.at_level(logging.WARNING):
            transformations = build_transformation_list(
                "1", [_record("1", "AB", "(1,9)(2)")], operator_table
            )

        assert [(t.chain_id, t.transform_id) for t in transformations] == [
            ("A", "1x2"), ("B", "1x2"),
        ]
        assert "9" in caplog.text

    def test_malformed_record_is_skipped(self, operator_table, caplog):
        """A malformed expression skips its record, not the assembly."""
        from quatbuild.assembly.transformations import build_transformation_list

        records = [
            _record("1", "A", "(1)(2)(1)"),
            _record("1", "B", "2"),
        ]

        with caplog.at_level(logging.WARNING):
            transformations = build_transformation_list("1", records, operator_table)

        assert [(t.chain_id, t.transform_id) for t in transformations] == [("B", "2")]
        assert "assembly 1" in caplog.text

    def test_every_matrix_is_in_table(self, operator_table):
        """Unary transformations reference table matrices only."""
        from quatbuild.assembly.transformations import build_transformation_list

        transformations = build_transformation_list(
            "1", [_record("1", "AB", "1,2,3,4")], operator_table
        )

        table_matrices = list(operator_table.values())
        assert all(t.matrix in table_matrices for t in transformations)

    def test_reproducible(self, operator_table):
        """The same input always gives the same list."""
        from quatbuild.assembly.transformations import build_transformation_list

        records = [_record("1", "AB", "(1,2)(1,2)")]

        first = build_transformation_list("1", records, operator_table)
        second = build_transformation_list("1", records, operator_table)

        assert first == second


# =============================================================================
# Assembly Lookup
# =============================================================================

class TestAssemblyLookup:
    """Tests for retrieving transformation lists from assembly tables."""

    @pytest.fixture
    def tables(self, operator_table):
        from quatbuild.assembly.transformations import AssemblyInfo, AssemblyTables

        return AssemblyTables(
            operator_table=operator_table,
            assemblies=[AssemblyInfo("1"), AssemblyInfo("2")],
            generation_records=[
                _record("1", "A", "1"),
                _record("2", "AB", "1,2"),
            ],
        )

    def test_by_index(self, tables):
        """Index 1 is the second declared assembly."""
        from quatbuild.assembly.transformations import get_bio_unit_transformation_list

        transformations = get_bio_unit_transformation_list(tables, 1)

        assert len(transformations) == 4

    @pytest.mark.parametrize("index", [-1, 2, 10])
    def test_index_out_of_range(self, tables, index):
        """Out-of-range indices are a caller error."""
        from quatbuild.assembly.transformations import (
            AssemblyNotFoundError,
            get_bio_unit_transformation_list,
        )

        with pytest.raises(AssemblyNotFoundError):
            get_bio_unit_transformation_list(tables, index)

    def test_by_id(self, tables):
        """Assemblies can be looked up by id."""
        from quatbuild.assembly.transformations import get_transformations_for_assembly

        transformations = get_transformations_for_assembly(tables, "1")

        assert [(t.chain_id, t.transform_id) for t in transformations] == [("A", "1")]

    def test_unknown_id(self, tables):
        """An undeclared id raises a LookupError."""
        from quatbuild.assembly.transformations import get_transformations_for_assembly

        with pytest.raises(LookupError):
            get_transformations_for_assembly(tables, "7")

    def test_ids_fall_back_to_generators(self, operator_table):
        """Without _pdbx_struct_assembly, generator ids are used in order."""
        from quatbuild.assembly.transformations import AssemblyTables

        tables = AssemblyTables(
            operator_table=operator_table,
            generation_records=[_record("2", "A", "1"), _record("1", "A", "1"), _record("2", "B", "1")],
        )

        assert tables.assembly_ids == ["2", "1"]

    def test_count_copies(self, tables):
        """Copies are counted by distinct transform id."""
        from quatbuild.assembly.transformations import count_copies, get_transformations_for_assembly

        assert count_copies(get_transformations_for_assembly(tables, "2")) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
