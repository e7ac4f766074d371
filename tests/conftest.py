"""Pytest configuration and fixtures for quatbuild tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Callable, Generator, List, Sequence

import numpy as np
import pytest

from quatbuild.assembly.operators import OperatorTable, TransformMatrix
from quatbuild.data.parsers.structure import (
    Atom,
    Chain,
    EntityInfo,
    EntityType,
    Residue,
    Structure,
)


# =============================================================================
# Structure Fixtures
# =============================================================================


@pytest.fixture
def make_chain() -> Callable[..., Chain]:
    """Factory for small chains with one atom per residue."""
    def _make_chain(
        chain_id: str,
        entity: EntityInfo,
        coords: Sequence[Sequence[float]],
        name: str = "",
        res_name: str = "ALA",
        atom_name: str = "CA",
    ) -> Chain:
        residues: List[Residue] = []
        for i, xyz in enumerate(coords, start=1):
            atom = Atom(name=atom_name, element=atom_name[0], coords=np.array(xyz, dtype=np.float64))
            residues.append(Residue(
                name=res_name,
                seq_id=i,
                atoms={atom_name: atom},
                label_seq_id=i if entity.entity_type == EntityType.POLYMER else None,
            ))
        chain = Chain(chain_id=chain_id, name=name or chain_id, residues=residues, entity_info=entity)
        entity.add_chain(chain)
        return chain
    return _make_chain


@pytest.fixture
def asym_unit(make_chain) -> Structure:
    """Asymmetric unit with two copies (A, B) of one polymer entity."""
    protein = EntityInfo(mol_id=1, entity_type=EntityType.POLYMER, description="Test protein")
    chain_a = make_chain("A", protein, [[0.0, 0.0, 0.0], [1.5, 0.0, 0.0]])
    chain_b = make_chain("B", protein, [[0.0, 5.0, 0.0], [1.5, 5.0, 0.0]])
    return Structure(
        pdb_id="TEST",
        models=[[chain_a, chain_b]],
        entity_infos=[protein],
        resolution=2.0,
        method="X-RAY DIFFRACTION",
        title="Test dimer",
    )


@pytest.fixture
def ligand_asym_unit(make_chain) -> Structure:
    """Asymmetric unit where public id 'A' spans a polymer, a ligand and waters."""
    protein = EntityInfo(mol_id=1, entity_type=EntityType.POLYMER, description="Test protein")
    heme = EntityInfo(mol_id=2, entity_type=EntityType.NON_POLYMER, description="HEME")
    water = EntityInfo(mol_id=3, entity_type=EntityType.WATER, description="water")

    chain_a = make_chain("A", protein, [[0.0, 0.0, 0.0], [1.5, 0.0, 0.0]])
    chain_b = make_chain("B", protein, [[0.0, 5.0, 0.0], [1.5, 5.0, 0.0]])
    chain_c = make_chain("C", heme, [[3.0, 0.0, 0.0]], name="A", res_name="HEM", atom_name="FE")
    chain_d = make_chain("D", water, [[4.0, 0.0, 0.0], [5.0, 0.0, 0.0]], name="A", res_name="HOH", atom_name="O")

    return Structure(
        pdb_id="LIGS",
        models=[[chain_a, chain_b, chain_c, chain_d]],
        entity_infos=[protein, heme, water],
    )


# =============================================================================
# Operator Fixtures
# =============================================================================


@pytest.fixture
def operator_table() -> OperatorTable:
    """Identity '1' and a translation of (10, 0, 0) as '2'."""
    return OperatorTable({
        "1": TransformMatrix.identity(),
        "2": TransformMatrix.translation_only(10.0, 0.0, 0.0),
    })


@pytest.fixture
def rotation_z90() -> TransformMatrix:
    """Rotation by 90 degrees about the z axis."""
    return TransformMatrix.from_rotation_translation(
        [[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]],
        [0.0, 0.0, 0.0],
    )


# =============================================================================
# mmCIF Fixtures
# =============================================================================


SAMPLE_MMCIF = """data_TEST
#
_entry.id   TEST
#
_struct.entry_id   TEST
_struct.title      'Test dimer with heme'
#
_exptl.method           'X-RAY DIFFRACTION'
#
_refine.ls_d_res_high   2.00
#
loop_
_entity.id
_entity.type
_entity.pdbx_description
1 polymer     'Test protein'
2 non-polymer 'PROTOPORPHYRIN IX CONTAINING FE'
3 water       water
#
loop_
_pdbx_struct_assembly.id
_pdbx_struct_assembly.details
_pdbx_struct_assembly.method_details
_pdbx_struct_assembly.oligomeric_details
_pdbx_struct_assembly.oligomeric_count
1 author_defined_assembly   ?    dimeric    2
2 software_defined_assembly PISA tetrameric 4
#
loop_
_pdbx_struct_assembly_gen.assembly_id
_pdbx_struct_assembly_gen.oper_expression
_pdbx_struct_assembly_gen.asym_id_list
1 1   A,B,C,D
2 1,2 A,B,C,D
#
loop_
_pdbx_struct_oper_list.id
_pdbx_struct_oper_list.type
_pdbx_struct_oper_list.name
_pdbx_struct_oper_list.matrix[1][1]
_pdbx_struct_oper_list.matrix[1][2]
_pdbx_struct_oper_list.matrix[1][3]
_pdbx_struct_oper_list.vector[1]
_pdbx_struct_oper_list.matrix[2][1]
_pdbx_struct_oper_list.matrix[2][2]
_pdbx_struct_oper_list.matrix[2][3]
_pdbx_struct_oper_list.vector[2]
_pdbx_struct_oper_list.matrix[3][1]
_pdbx_struct_oper_list.matrix[3][2]
_pdbx_struct_oper_list.matrix[3][3]
_pdbx_struct_oper_list.vector[3]
1 'identity operation'         1_555 1.0 0.0 0.0 0.0  0.0 1.0 0.0 0.0 0.0 0.0 1.0 0.0
2 'crystal symmetry operation' 2_655 1.0 0.0 0.0 10.0 0.0 1.0 0.0 0.0 0.0 0.0 1.0 0.0
3 'crystal symmetry operation' 3_555 ?   0.0 0.0 0.0  0.0 1.0 0.0 0.0 0.0 0.0 1.0 0.0
#
loop_
_atom_site.group_PDB
_atom_site.id
_atom_site.type_symbol
_atom_site.label_atom_id
_atom_site.label_alt_id
_atom_site.label_comp_id
_atom_site.label_asym_id
_atom_site.label_entity_id
_atom_site.label_seq_id
_atom_site.pdbx_PDB_ins_code
_atom_site.Cartn_x
_atom_site.Cartn_y
_atom_site.Cartn_z
_atom_site.occupancy
_atom_site.B_iso_or_equiv
_atom_site.pdbx_formal_charge
_atom_site.auth_seq_id
_atom_site.auth_asym_id
_atom_site.pdbx_PDB_model_num
ATOM   1 N  N  . ALA A 1 1 ? 0.000 0.000 0.000 1.00 10.00 ? 1   A 1
ATOM   2 C  CA . ALA A 1 1 ? 1.458 0.000 0.000 1.00 10.00 ? 1   A 1
ATOM   3 N  N  . ALA B 1 1 ? 0.000 5.000 0.000 1.00 10.00 ? 1   B 1
ATOM   4 C  CA . ALA B 1 1 ? 1.458 5.000 0.000 1.00 10.00 ? 1   B 1
HETATM 5 FE FE . HEM C 2 . ? 3.000 0.000 0.000 1.00 20.00 ? 101 A 1
HETATM 6 O  O  . HOH D 3 . ? 4.000 0.000 0.000 1.00 30.00 ? 201 A 1
#
"""


@pytest.fixture
def sample_mmcif_content() -> str:
    """mmCIF with two assemblies, a broken operator row and a ligand and water."""
    return SAMPLE_MMCIF


@pytest.fixture
def sample_mmcif_path(temp_dir: Path, sample_mmcif_content: str) -> Path:
    """The sample mmCIF written to a temporary file."""
    path = temp_dir / "test.cif"
    path.write_text(sample_mmcif_content)
    return path


# =============================================================================
# Temporary Directory Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_output_dir(temp_dir: Path) -> Path:
    """Create a temporary directory for output files."""
    output_dir = temp_dir / "output"
    output_dir.mkdir()
    return output_dir


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests that run the full pipeline or CLI"
    )


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def assert_arrays_equal():
    """Fixture providing array comparison helper."""
    def _assert_arrays_equal(a: np.ndarray, b: np.ndarray, atol: float = 1e-6):
        np.testing.assert_allclose(a, b, atol=atol)
    return _assert_arrays_equal
