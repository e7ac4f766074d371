"""Core structure data classes for representing macromolecular structures.

This module provides dataclasses for atoms, residues, chains, entities and
complete (possibly multi-model) structures. The same ``Structure`` class
represents both an asymmetric unit read from a file and a biological
assembly generated from it.

Chains carry two identifiers, following mmCIF conventions:
- ``chain_id``: the internal identifier (``label_asym_id``), unique per chain
- ``name``: the public, author-facing identifier (``auth_asym_id``), which
  may be shared by a polymer chain, its ligands and its waters
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np


class EntityType(Enum):
    """Entity types as declared in ``_entity.type``."""
    POLYMER = "polymer"
    NON_POLYMER = "non-polymer"
    BRANCHED = "branched"
    WATER = "water"
    MACROLIDE = "macrolide"

    @classmethod
    def from_mmcif(cls, value: str) -> "EntityType":
        """Map an mmCIF entity type string, defaulting to non-polymer."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.NON_POLYMER


WATER_RESIDUE_NAMES = {"HOH", "DOD", "WAT"}


@dataclass(eq=False)
class Atom:
    """Represents a single atom in a structure.

    Attributes:
        name: Atom name (e.g., 'CA', 'N', 'C1')
        element: Element symbol (e.g., 'C', 'N', 'O')
        coords: 3D coordinates in Angstroms
        occupancy: Occupancy factor (0-1)
        b_factor: Temperature factor
        charge: Formal charge
        is_hetero: Whether this is a HETATM
        alt_loc: Alternative location indicator
        serial: Atom serial number
    """
    name: str
    element: str
    coords: np.ndarray  # Shape (3,)
    occupancy: float = 1.0
    b_factor: float = 0.0
    charge: int = 0
    is_hetero: bool = False
    alt_loc: str = ""
    serial: int = 0

    def __post_init__(self):
        if not isinstance(self.coords, np.ndarray) or self.coords.dtype != np.float64:
            self.coords = np.array(self.coords, dtype=np.float64)
        assert self.coords.shape == (3,), f"Coords must be shape (3,), got {self.coords.shape}"

    @property
    def is_hydrogen(self) -> bool:
        """Check if this is a hydrogen atom."""
        return self.element in ("H", "D")


@dataclass
class Residue:
    """Represents a residue (amino acid, nucleotide, ligand or water).

    Attributes:
        name: Residue name (e.g., 'ALA', 'DA', 'HOH')
        seq_id: Author residue number
        label_seq_id: Entity sequence position (None for non-polymers)
        insertion_code: PDB insertion code
        atoms: Dictionary of atom name to Atom
    """
    name: str
    seq_id: int
    atoms: Dict[str, Atom] = field(default_factory=dict)
    insertion_code: str = ""
    label_seq_id: Optional[int] = None

    @property
    def num_atoms(self) -> int:
        """Number of atoms in this residue."""
        return len(self.atoms)

    @property
    def is_water(self) -> bool:
        return self.name in WATER_RESIDUE_NAMES


@dataclass
class EntityInfo:
    """Metadata shared by all chemically identical chains.

    In a generated assembly exactly one EntityInfo instance exists per
    ``mol_id`` and every chain copy of that entity references it.

    Attributes:
        mol_id: Stable entity identifier (``_entity.id``)
        entity_type: Polymer, non-polymer, water, ...
        description: Molecule name (``_entity.pdbx_description``)
        chains: Member chains referencing this entity
    """
    mol_id: int
    entity_type: EntityType = EntityType.POLYMER
    description: Optional[str] = None
    chains: List["Chain"] = field(default_factory=list, repr=False, compare=False)

    def copy_without_chains(self) -> "EntityInfo":
        """Return a copy of the metadata with an empty member list."""
        return EntityInfo(
            mol_id=self.mol_id,
            entity_type=self.entity_type,
            description=self.description,
        )

    def add_chain(self, chain: "Chain") -> None:
        self.chains.append(chain)

    def get_chain_ids(self) -> List[str]:
        return [chain.chain_id for chain in self.chains]


@dataclass(eq=False)
class Chain:
    """Represents a molecular chain.

    Attributes:
        chain_id: Internal chain identifier (label_asym_id, e.g. 'A', 'B')
        name: Public chain identifier (auth_asym_id)
        residues: List of residues in sequence order
        entity_info: Shared entity metadata (not owned by the chain)
    """
    chain_id: str
    name: str = ""
    residues: List[Residue] = field(default_factory=list)
    entity_info: Optional[EntityInfo] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if not self.name:
            self.name = self.chain_id

    @property
    def entity_type(self) -> EntityType:
        """Entity type, inferred from residue names if no entity is linked."""
        if self.entity_info is not None:
            return self.entity_info.entity_type
        if self.residues and all(res.is_water for res in self.residues):
            return EntityType.WATER
        return EntityType.POLYMER

    @property
    def is_polymer(self) -> bool:
        return self.entity_type == EntityType.POLYMER

    @property
    def is_water(self) -> bool:
        return self.entity_type == EntityType.WATER

    @property
    def num_residues(self) -> int:
        """Number of residues in chain."""
        return len(self.residues)

    @property
    def num_atoms(self) -> int:
        """Total number of atoms in chain."""
        return sum(res.num_atoms for res in self.residues)

    def iter_atoms(self):
        for residue in self.residues:
            yield from residue.atoms.values()

    def get_coords(self) -> np.ndarray:
        """Get all atom coordinates as Nx3 array."""
        coords = [atom.coords for atom in self.iter_atoms()]
        if coords:
            return np.stack(coords)
        return np.zeros((0, 3), dtype=np.float64)

    def clone(self) -> "Chain":
        """Deep copy residues and atoms; keep the entity reference shared."""
        return Chain(
            chain_id=self.chain_id,
            name=self.name,
            residues=copy.deepcopy(self.residues),
            entity_info=self.entity_info,
        )


@dataclass
class Structure:
    """Represents a complete macromolecular structure.

    Attributes:
        pdb_id: PDB identifier
        models: List of models, each an ordered list of chains
        entity_infos: Entity records referenced by the chains
        resolution: Structure resolution in Angstroms
        method: Experimental method (X-RAY, NMR, CRYO-EM)
        release_date: PDB release date
        title: Entry title
        is_biological_assembly: True for generated assemblies
    """
    pdb_id: str
    models: List[List[Chain]] = field(default_factory=lambda: [[]])
    entity_infos: List[EntityInfo] = field(default_factory=list)
    resolution: Optional[float] = None
    method: Optional[str] = None
    release_date: Optional[str] = None
    title: Optional[str] = None
    is_biological_assembly: bool = False

    @property
    def chains(self) -> List[Chain]:
        """Chains of the first model."""
        return self.models[0] if self.models else []

    @property
    def num_models(self) -> int:
        return len(self.models)

    @property
    def num_chains(self) -> int:
        """Number of chains across all models."""
        return sum(len(model) for model in self.models)

    @property
    def num_atoms(self) -> int:
        """Total number of atoms across all models."""
        return sum(chain.num_atoms for model in self.models for chain in model)

    def get_chain(self, chain_id: str, model: int = 0) -> Optional[Chain]:
        """Get chain by internal ID."""
        for chain in self.models[model]:
            if chain.chain_id == chain_id:
                return chain
        return None

    def get_chain_ids(self, model: int = 0) -> List[str]:
        return [chain.chain_id for chain in self.models[model]]

    def get_poly_chain_by_name(self, name: str, model: int = 0) -> Optional[Chain]:
        """Get the polymer chain carrying the given public ID."""
        for chain in self.models[model]:
            if chain.name == name and chain.is_polymer:
                return chain
        return None

    def get_non_poly_chains_by_name(self, name: str, model: int = 0) -> List[Chain]:
        """Get ligand chains carrying the given public ID."""
        return [
            chain for chain in self.models[model]
            if chain.name == name and not chain.is_polymer and not chain.is_water
        ]

    def get_water_chain_by_name(self, name: str, model: int = 0) -> Optional[Chain]:
        """Get the water chain carrying the given public ID."""
        for chain in self.models[model]:
            if chain.name == name and chain.is_water:
                return chain
        return None

    def get_entity_info(self, mol_id: int) -> Optional[EntityInfo]:
        for entity in self.entity_infos:
            if entity.mol_id == mol_id:
                return entity
        return None

    def add_chain(self, chain: Chain, model: int = 0) -> None:
        """Append a chain to an existing model."""
        self.models[model].append(chain)

    def add_model(self, chains: List[Chain]) -> None:
        self.models.append(list(chains))

    def add_entity_info(self, entity: EntityInfo) -> None:
        self.entity_infos.append(entity)

    def reset_models(self) -> None:
        """Drop all models, leaving a single empty one."""
        self.models = [[]]

    def copy_header(self) -> "Structure":
        """Return a structure with the same metadata and no chains or entities."""
        return Structure(
            pdb_id=self.pdb_id,
            resolution=self.resolution,
            method=self.method,
            release_date=self.release_date,
            title=self.title,
            is_biological_assembly=self.is_biological_assembly,
        )
