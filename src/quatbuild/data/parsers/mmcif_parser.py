"""mmCIF file parser for asymmetric units and their assembly definitions.

This module reads the parts of an mmCIF file needed to rebuild biological
assemblies:
- ``_atom_site``: models, chains, residues and atoms of the asymmetric unit
- ``_entity``: entity metadata shared by chemically identical chains
- ``_pdbx_struct_oper_list``: operator id to rotation + translation
- ``_pdbx_struct_assembly``: declared assemblies
- ``_pdbx_struct_assembly_gen``: which operators apply to which chains

Categories may be written either as a ``loop_`` or as single key-value
pairs; both forms produce a list of row dictionaries.
"""

from __future__ import annotations

import gzip
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, TextIO, Tuple, Union

import numpy as np

from quatbuild.assembly.operators import OperatorTable
from quatbuild.assembly.transformations import (
    AssemblyGenerationRecord,
    AssemblyInfo,
    AssemblyTables,
)
from quatbuild.data.parsers.structure import (
    Atom,
    Chain,
    EntityInfo,
    EntityType,
    Residue,
    Structure,
    WATER_RESIDUE_NAMES,
)


logger = logging.getLogger(__name__)


Rows = List[Dict[str, str]]

# Quoted strings close only on a quote followed by whitespace or end of line
_TOKEN_RE = re.compile(r"""'(.*?)'(?=\s|$)|"(.*?)"(?=\s|$)|(#.*)|(\S+)""")

_NULL_VALUES = (".", "?")


class MMCIFParseError(ValueError):
    """Raised when a file lacks the data needed to build a structure."""


class MMCIFParser:
    """Parser for mmCIF format files.

    Example usage:
        >>> parser = MMCIFParser()
        >>> structure, tables = parser.parse_with_assemblies("1abc.cif.gz")
    """

    def __init__(
        self,
        first_model_only: bool = False,
        remove_hydrogens: bool = False,
        remove_waters: bool = False,
    ):
        """Initialize the parser.

        Args:
            first_model_only: Keep only the first model of multi-model files
            remove_hydrogens: Remove hydrogen atoms
            remove_waters: Remove water chains
        """
        self.first_model_only = first_model_only
        self.remove_hydrogens = remove_hydrogens
        self.remove_waters = remove_waters

    def parse(self, file_or_path: Union[str, Path, TextIO]) -> Structure:
        """Parse an mmCIF file into a structure.

        Args:
            file_or_path: Path to mmCIF file or file-like object

        Returns:
            Parsed Structure object (the asymmetric unit)
        """
        structure, _ = self.parse_with_assemblies(file_or_path)
        return structure

    def parse_with_assemblies(
        self,
        file_or_path: Union[str, Path, TextIO],
    ) -> Tuple[Structure, AssemblyTables]:
        """Parse the structure and its assembly tables in a single pass."""
        data = self.parse_mmcif_data(self._read_file(file_or_path))
        return self._build_structure(data), self._build_assembly_tables(data)

    def get_assembly_tables(self, file_or_path: Union[str, Path, TextIO]) -> AssemblyTables:
        """Parse only the assembly definitions of an mmCIF file."""
        data = self.parse_mmcif_data(self._read_file(file_or_path))
        return self._build_assembly_tables(data)

    def _read_file(self, file_or_path: Union[str, Path, TextIO]) -> str:
        """Read file content from path or file object."""
        if isinstance(file_or_path, (str, Path)):
            path = Path(file_or_path)
            if path.suffix == ".gz":
                with gzip.open(path, "rt") as f:
                    return f.read()
            else:
                with open(path) as f:
                    return f.read()
        else:
            return file_or_path.read()

    # -------------------------------------------------------------------------
    # Tokenizing
    # -------------------------------------------------------------------------

    def parse_mmcif_data(self, content: str) -> Dict[str, Rows]:
        """Parse the first data block into category name -> rows.

        Category names drop the leading underscore (``atom_site``); row keys
        are item names (``Cartn_x``). Unquoted '.' and '?' become "".
        """
        tokens = self._tokenize(content)
        data: Dict[str, Rows] = {}
        i = 0
        n = len(tokens)

        while i < n:
            value, quoted = tokens[i]

            if not quoted and value.startswith("data_"):
                if "_entry_id" in data:
                    break
                data["_entry_id"] = [{"id": value[5:]}]
                i += 1
                continue

            if not quoted and value == "loop_":
                i = self._read_loop(tokens, i + 1, data)
                continue

            if not quoted and value.startswith("_"):
                if i + 1 >= n:
                    raise MMCIFParseError(f"Missing value for {value}")
                category, item = _split_tag(value)
                rows = data.setdefault(category, [{}])
                rows[0][item] = _clean_token(tokens[i + 1])
                i += 2
                continue

            logger.debug(f"Ignoring stray token {value!r}")
            i += 1

        return data

    def _read_loop(self, tokens: List[Tuple[str, bool]], i: int, data: Dict[str, Rows]) -> int:
        """Read a loop starting after ``loop_``; return the next token index."""
        headers: List[str] = []
        while i < len(tokens) and not tokens[i][1] and tokens[i][0].startswith("_"):
            headers.append(tokens[i][0])
            i += 1

        if not headers:
            raise MMCIFParseError("loop_ without item names")

        values: List[str] = []
        while i < len(tokens):
            value, quoted = tokens[i]
            if not quoted and (
                value.startswith("_") or value == "loop_" or value.startswith("data_")
            ):
                break
            values.append(_clean_token(tokens[i]))
            i += 1

        category = _split_tag(headers[0])[0]
        items = [_split_tag(h)[1] for h in headers]
        if len(values) % len(items):
            logger.warning(
                f"Loop {category} has {len(values)} values for {len(items)} items; "
                f"dropping the incomplete last row"
            )

        rows = data.setdefault(category, [])
        for start in range(0, len(values) - len(items) + 1, len(items)):
            rows.append(dict(zip(items, values[start:start + len(items)])))
        return i

    def _tokenize(self, content: str) -> List[Tuple[str, bool]]:
        """Split content into (value, quoted) tokens, handling ';' text fields."""
        tokens: List[Tuple[str, bool]] = []
        lines = content.splitlines()
        i = 0

        while i < len(lines):
            line = lines[i]

            # Multi-line text field
            if line.startswith(";"):
                text = [line[1:]]
                i += 1
                while i < len(lines) and not lines[i].startswith(";"):
                    text.append(lines[i])
                    i += 1
                tokens.append(("\n".join(text).strip(), True))
                i += 1
                continue

            for match in _TOKEN_RE.finditer(line):
                single, double, comment, bare = match.groups()
                if comment is not None:
                    break
                if bare is not None:
                    tokens.append((bare, False))
                else:
                    tokens.append((single if single is not None else double, True))
            i += 1

        return tokens

    # -------------------------------------------------------------------------
    # Structure
    # -------------------------------------------------------------------------

    def _build_structure(self, data: Dict[str, Rows]) -> Structure:
        entities = self._parse_entities(data)
        models = self._parse_atom_site(data, entities)

        if self.first_model_only:
            models = models[:1]

        for model in models:
            if self.remove_waters:
                model[:] = [chain for chain in model if not chain.is_water]
            if self.remove_hydrogens:
                for chain in model:
                    for residue in chain.residues:
                        residue.atoms = {
                            name: atom for name, atom in residue.atoms.items()
                            if not atom.is_hydrogen
                        }

        # Entity membership follows the first model
        for chain in models[0]:
            if chain.entity_info is not None:
                chain.entity_info.add_chain(chain)

        return Structure(
            pdb_id=self._extract_pdb_id(data),
            models=models,
            entity_infos=list(entities.values()),
            resolution=self._extract_resolution(data),
            method=self._extract_method(data),
            release_date=self._extract_release_date(data),
            title=_first_value(data, "struct", "title"),
        )

    def _parse_entities(self, data: Dict[str, Rows]) -> Dict[str, EntityInfo]:
        """Parse ``_entity`` rows into EntityInfo records keyed by entity id."""
        entities: Dict[str, EntityInfo] = {}
        for row in data.get("entity", []):
            entity_id = row.get("id", "")
            mol_id = _parse_int(entity_id)
            if mol_id is None:
                logger.warning(f"Ignoring entity with non-numeric id {entity_id!r}")
                continue
            entities[entity_id] = EntityInfo(
                mol_id=mol_id,
                entity_type=EntityType.from_mmcif(row.get("type", "")),
                description=row.get("pdbx_description") or None,
            )
        return entities

    def _parse_atom_site(
        self,
        data: Dict[str, Rows],
        entities: Dict[str, EntityInfo],
    ) -> List[List[Chain]]:
        """Parse _atom_site records into models of Chain objects."""
        records = data.get("atom_site")
        if not records:
            raise MMCIFParseError("No _atom_site records found")

        for field in ("Cartn_x", "Cartn_y", "Cartn_z"):
            if field not in records[0]:
                raise MMCIFParseError(f"Missing required field: {field}")

        models: Dict[str, Dict[str, Chain]] = {}
        residues: Dict[Tuple[str, str, str, str], Residue] = {}

        for record in records:
            try:
                coords = np.array(
                    [float(record["Cartn_x"]), float(record["Cartn_y"]), float(record["Cartn_z"])],
                    dtype=np.float64,
                )
            except (KeyError, ValueError):
                continue

            model_num = record.get("pdbx_PDB_model_num") or "1"
            auth_chain = record.get("auth_asym_id", "")
            chain_id = record.get("label_asym_id") or auth_chain
            res_name = record.get("label_comp_id") or record.get("auth_comp_id") or "UNK"
            seq_raw = record.get("auth_seq_id") or record.get("label_seq_id") or "0"
            ins_code = record.get("pdbx_PDB_ins_code", "")
            atom_name = record.get("label_atom_id") or record.get("auth_atom_id", "")

            atom = Atom(
                name=atom_name,
                element=record.get("type_symbol", ""),
                coords=coords,
                occupancy=_parse_float(record.get("occupancy"), 1.0),
                b_factor=_parse_float(record.get("B_iso_or_equiv"), 0.0),
                charge=_parse_int(record.get("pdbx_formal_charge", "")) or 0,
                is_hetero=record.get("group_PDB") == "HETATM",
                alt_loc=record.get("label_alt_id", ""),
                serial=_parse_int(record.get("id", "")) or 0,
            )

            # Get or create chain
            chains = models.setdefault(model_num, {})
            if chain_id not in chains:
                chains[chain_id] = Chain(
                    chain_id=chain_id,
                    name=auth_chain or chain_id,
                    entity_info=self._entity_for(record, res_name, entities),
                )

            # Get or create residue
            res_key = (model_num, chain_id, seq_raw, ins_code)
            residue = residues.get(res_key)
            if residue is None:
                residue = Residue(
                    name=res_name,
                    seq_id=_parse_int(seq_raw) or 0,
                    insertion_code=ins_code,
                    label_seq_id=_parse_int(record.get("label_seq_id", "")),
                )
                residues[res_key] = residue
                chains[chain_id].residues.append(residue)

            # Handle alternative locations - keep highest occupancy
            existing = residue.atoms.get(atom_name)
            if existing is None or atom.occupancy > existing.occupancy:
                residue.atoms[atom_name] = atom

        return [list(chains.values()) for chains in models.values()]

    def _entity_for(
        self,
        record: Dict[str, str],
        res_name: str,
        entities: Dict[str, EntityInfo],
    ) -> EntityInfo:
        """Look up the chain's entity, registering one if ``_entity`` lacks it."""
        entity_id = record.get("label_entity_id", "")
        entity = entities.get(entity_id)
        if entity is not None:
            return entity

        if res_name in WATER_RESIDUE_NAMES:
            entity_type = EntityType.WATER
        elif record.get("label_seq_id"):
            entity_type = EntityType.POLYMER
        else:
            entity_type = EntityType.NON_POLYMER

        mol_id = _parse_int(entity_id)
        if mol_id is None:
            mol_id = max((e.mol_id for e in entities.values()), default=0) + 1
        entity = EntityInfo(mol_id=mol_id, entity_type=entity_type)
        entities[entity_id] = entity
        logger.debug(f"Entity {entity_id!r} missing from _entity; inferred {entity_type.value}")
        return entity

    def _extract_pdb_id(self, data: Dict[str, Rows]) -> str:
        """Extract PDB ID from parsed data."""
        pdb_id = _first_value(data, "entry", "id") or _first_value(data, "_entry_id", "id")
        return (pdb_id or "UNKNOWN").upper()

    def _extract_resolution(self, data: Dict[str, Rows]) -> Optional[float]:
        """Extract resolution from parsed data."""
        for category, item in [
            ("refine", "ls_d_res_high"),
            ("em_3d_reconstruction", "resolution"),
            ("reflns", "d_resolution_high"),
        ]:
            value = _parse_float(_first_value(data, category, item), None)
            if value is not None:
                return value
        return None

    def _extract_method(self, data: Dict[str, Rows]) -> Optional[str]:
        """Extract experimental method from parsed data."""
        method = _first_value(data, "exptl", "method")
        return method.upper() if method else None

    def _extract_release_date(self, data: Dict[str, Rows]) -> Optional[str]:
        """Extract release date from parsed data."""
        return (
            _first_value(data, "pdbx_database_status", "recvd_initial_deposition_date")
            or _first_value(data, "database_PDB_rev", "date_original")
        )

    # -------------------------------------------------------------------------
    # Assemblies
    # -------------------------------------------------------------------------

    def _build_assembly_tables(self, data: Dict[str, Rows]) -> AssemblyTables:
        """Extract the operator, assembly and generator tables."""
        assemblies = []
        for row in data.get("pdbx_struct_assembly", []):
            assembly_id = row.get("id")
            if not assembly_id:
                continue
            assemblies.append(AssemblyInfo(
                assembly_id=assembly_id,
                details=row.get("details") or None,
                method_details=row.get("method_details") or None,
                oligomeric_details=row.get("oligomeric_details") or None,
                oligomeric_count=_parse_int(row.get("oligomeric_count", "")),
            ))

        records = [
            AssemblyGenerationRecord.from_row(row)
            for row in data.get("pdbx_struct_assembly_gen", [])
            if row.get("assembly_id")
        ]

        return AssemblyTables(
            operator_table=OperatorTable.from_rows(data.get("pdbx_struct_oper_list", [])),
            assemblies=assemblies,
            generation_records=records,
        )


def _split_tag(tag: str) -> Tuple[str, str]:
    """Split '_category.item' into ('category', 'item')."""
    category, _, item = tag[1:].partition(".")
    return category, item


def _clean_token(token: Tuple[str, bool]) -> str:
    value, quoted = token
    if not quoted and value in _NULL_VALUES:
        return ""
    return value


def _first_value(data: Dict[str, Rows], category: str, item: str) -> Optional[str]:
    rows = data.get(category)
    if rows:
        return rows[0].get(item) or None
    return None


def _parse_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_float(value: Optional[str], default: Optional[float]) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_mmcif(path: Union[str, Path]) -> Structure:
    """Convenience function to parse an mmCIF file with default settings."""
    parser = MMCIFParser()
    return parser.parse(path)


def get_assembly_tables(path: Union[str, Path]) -> AssemblyTables:
    """Convenience function to read assembly definitions from an mmCIF file."""
    parser = MMCIFParser()
    return parser.get_assembly_tables(path)
