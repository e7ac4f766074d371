"""mmCIF writer for asymmetric units and rebuilt assemblies.

Writes the categories needed to read a structure back with
``MMCIFParser``: ``_entry``, ``_entity``, ``_atom_site`` (one
``pdbx_PDB_model_num`` per model) and, for generated assemblies, a
``_pdbx_struct_assembly`` row describing the assembly.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from quatbuild.data.parsers.structure import Structure
from quatbuild.utils import atomic_write


_NEEDS_QUOTES_RE = re.compile(r"[\s'\"]|^[_#$;\[\]]|^(data_|loop_|save_|global_|stop_)", re.I)


def format_value(value: object) -> str:
    """Render a single mmCIF value, quoting where the grammar requires."""
    if value is None or value == "":
        return "?"
    text = str(value)
    if "\n" in text:
        return _text_field(text)
    if text in (".", "?") or _NEEDS_QUOTES_RE.search(text):
        if "'" not in text:
            return f"'{text}'"
        if '"' not in text:
            return f'"{text}"'
        # Neither quote style can hold both quote characters
        return _text_field(text)
    return text


def _text_field(text: str) -> str:
    return f"\n;{text}\n;\n"


def write_block(category: str, items: Sequence[str], rows: Iterable[Sequence[object]]) -> str:
    """Render a category as key-value pairs (one row) or a loop."""
    rows = [list(row) for row in rows]
    if not rows:
        return ""

    if len(rows) == 1:
        width = max(len(item) for item in items) + len(category) + 2
        lines = [
            f"{f'_{category}.{item}':<{width}} {format_value(value)}"
            for item, value in zip(items, rows[0])
        ]
    else:
        lines = ["loop_"]
        lines.extend(f"_{category}.{item}" for item in items)
        lines.extend(" ".join(format_value(value) for value in row) for row in rows)

    return "\n".join(lines) + "\n#\n"


ATOM_SITE_ITEMS = [
    "group_PDB",
    "id",
    "type_symbol",
    "label_atom_id",
    "label_alt_id",
    "label_comp_id",
    "label_asym_id",
    "label_entity_id",
    "label_seq_id",
    "pdbx_PDB_ins_code",
    "Cartn_x",
    "Cartn_y",
    "Cartn_z",
    "occupancy",
    "B_iso_or_equiv",
    "pdbx_formal_charge",
    "auth_seq_id",
    "auth_asym_id",
    "pdbx_PDB_model_num",
]


def structure_to_mmcif(structure: Structure, precision: int = 3) -> str:
    """Render a structure as mmCIF text.

    Args:
        structure: Structure to write
        precision: Decimal places for coordinates

    Returns:
        mmCIF document
    """
    blocks: List[str] = [f"data_{structure.pdb_id}\n#\n"]
    blocks.append(write_block("entry", ["id"], [[structure.pdb_id]]))

    if structure.title:
        blocks.append(write_block("struct", ["entry_id", "title"], [[structure.pdb_id, structure.title]]))

    blocks.append(write_block(
        "entity",
        ["id", "type", "pdbx_description"],
        [
            [entity.mol_id, entity.entity_type.value, entity.description]
            for entity in structure.entity_infos
        ],
    ))

    if structure.is_biological_assembly:
        blocks.append(write_block(
            "pdbx_struct_assembly",
            ["id", "details", "oligomeric_count"],
            [["1", "generated_biological_assembly", _count_polymer_chains(structure)]],
        ))

    atom_rows = []
    serial = 0
    for model_num, model in enumerate(structure.models, start=1):
        for chain in model:
            entity_id = chain.entity_info.mol_id if chain.entity_info is not None else "."
            for residue in chain.residues:
                for atom in residue.atoms.values():
                    serial += 1
                    x, y, z = atom.coords
                    atom_rows.append([
                        "HETATM" if atom.is_hetero else "ATOM",
                        serial,
                        atom.element,
                        atom.name,
                        atom.alt_loc or ".",
                        residue.name,
                        chain.chain_id,
                        entity_id,
                        residue.label_seq_id if residue.label_seq_id is not None else ".",
                        residue.insertion_code or "?",
                        f"{x:.{precision}f}",
                        f"{y:.{precision}f}",
                        f"{z:.{precision}f}",
                        f"{atom.occupancy:.2f}",
                        f"{atom.b_factor:.2f}",
                        atom.charge,
                        residue.seq_id,
                        chain.name,
                        model_num,
                    ])

    blocks.append(_write_atom_site(atom_rows))
    return "".join(blocks)


def _write_atom_site(rows: List[List[object]]) -> str:
    # Always a loop, even for a single atom, to keep column layout stable
    lines = ["loop_"]
    lines.extend(f"_atom_site.{item}" for item in ATOM_SITE_ITEMS)
    lines.extend(" ".join(_atom_site_value(value) for value in row) for row in rows)
    return "\n".join(lines) + "\n#\n"


def _atom_site_value(value: object) -> str:
    # '.' and '?' are written bare here: they mean "not applicable" and "unknown"
    if value in (".", "?"):
        return str(value)
    return format_value(value)


def write_mmcif(
    structure: Structure,
    path: Union[str, Path],
    precision: int = 3,
    compress: Optional[bool] = None,
) -> Path:
    """Write a structure to an mmCIF file.

    Args:
        structure: Structure to write
        path: Output path; a ``.gz`` suffix enables gzip compression
        precision: Decimal places for coordinates
        compress: Force gzip on or off regardless of suffix

    Returns:
        The path written
    """
    path = Path(path)
    if compress is None:
        compress = path.suffix == ".gz"

    with atomic_write(path, compress=compress) as f:
        f.write(structure_to_mmcif(structure, precision=precision))
    return path


def _count_polymer_chains(structure: Structure) -> int:
    return sum(chain.is_polymer for model in structure.models for chain in model)
