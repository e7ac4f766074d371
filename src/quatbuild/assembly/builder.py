"""Reconstruction of biological assemblies from an asymmetric unit.

This module rebuilds the quaternary structure of a macromolecule by applying
a list of ``BiologicalAssemblyTransformation`` to copies of the chains of
the asymmetric unit.

Key concepts:
- Asymmetric unit: The minimal set of chains stored in a structure file
- Bioassembly: The biologically relevant oligomeric form of a structure
- Transform id: Operator id (or composed "id1xid2") that generated a copy

Two placement modes are supported:
- Multi-model: one model per distinct transform id
- Flattened: a single model whose chains are renamed "<id>_<transform id>"

The asymmetric unit is never modified; every output chain is a clone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from quatbuild.assembly.transformations import (
    SYM_CHAIN_ID_SEPARATOR,
    BiologicalAssemblyTransformation,
)
from quatbuild.data.parsers.structure import Chain, EntityInfo, Structure


logger = logging.getLogger(__name__)


class ChainMatching(str, Enum):
    """How transformation chain ids are matched to asymmetric unit chains."""
    BY_INTERNAL_ID = "by-internal-id"  # label_asym_id, needed for mmCIF data
    BY_PUBLIC_ID = "by-public-id"      # auth_asym_id, needed for PDB data


class Placement(str, Enum):
    """Where transformed chains are placed in the output structure."""
    MULTI_MODEL = "multi-model"
    FLATTENED = "flattened"


@dataclass
class AssemblyBuilderConfig:
    """Configuration for assembly reconstruction.

    Attributes:
        chain_matching: Match chains by internal or public id
        placement: One model per transform id, or a single renamed model
        max_atoms: Warn when the rebuilt assembly exceeds this many atoms
    """
    chain_matching: ChainMatching = ChainMatching.BY_INTERNAL_ID
    placement: Placement = Placement.MULTI_MODEL
    max_atoms: int = 2_000_000


@dataclass
class ModelRegistry:
    """Maps transform ids to model slots, in first-seen order.

    Scoped to a single reconstruction run.
    """
    transform_ids: List[str] = field(default_factory=list)
    _slots: Dict[str, int] = field(default_factory=dict)

    def slot_for(self, transform_id: str) -> int:
        slot = self._slots.get(transform_id)
        if slot is None:
            slot = len(self.transform_ids)
            self.transform_ids.append(transform_id)
            self._slots[transform_id] = slot
        return slot


@dataclass
class EntityRegistry:
    """One shared EntityInfo per entity id, scoped to a single run."""
    entities: Dict[int, EntityInfo] = field(default_factory=dict)

    def link(self, chain: Chain, structure: Structure) -> None:
        """Re-point the chain at the shared entity, creating it on first use."""
        source = chain.entity_info
        if source is None:
            return

        entity = self.entities.get(source.mol_id)
        if entity is None:
            entity = source.copy_without_chains()
            self.entities[source.mol_id] = entity
            structure.add_entity_info(entity)

        chain.entity_info = entity
        entity.add_chain(chain)


def order_transformations(
    asym_unit: Structure,
    transformations: Sequence[BiologicalAssemblyTransformation],
) -> List[BiologicalAssemblyTransformation]:
    """Sort by transform id, then by chain position in the asymmetric unit.

    The sort is stable, so equal keys keep their input order. Chains not
    present in the asymmetric unit sort after all known chains.
    """
    positions = {chain_id: i for i, chain_id in enumerate(asym_unit.get_chain_ids())}
    unknown = len(positions)
    return sorted(
        transformations,
        key=lambda t: (t.transform_id, positions.get(t.chain_id, unknown)),
    )


class BiologicalAssemblyBuilder:
    """Rebuilds the quaternary structure from an asymmetric unit.

    Example usage:
        >>> builder = BiologicalAssemblyBuilder()
        >>> assembly = builder.rebuild_quaternary_structure(asym_unit, transformations)
    """

    def __init__(self, config: Optional[AssemblyBuilderConfig] = None):
        """Initialize builder with configuration.

        Args:
            config: Reconstruction configuration (uses defaults if None)
        """
        self.config = config or AssemblyBuilderConfig()

    def rebuild_quaternary_structure(
        self,
        asym_unit: Structure,
        transformations: Sequence[BiologicalAssemblyTransformation],
        chain_matching: Optional[ChainMatching] = None,
        placement: Optional[Placement] = None,
    ) -> Structure:
        """Build a biological assembly.

        Only the first model of the asymmetric unit contributes chains; the
        output contains only transformed copies.

        Args:
            asym_unit: Input structure (asymmetric unit), left unmodified
            transformations: Transformations for the requested assembly
            chain_matching: Overrides the configured chain matching mode
            placement: Overrides the configured placement mode

        Returns:
            New structure flagged as a biological assembly
        """
        chain_matching = ChainMatching(chain_matching or self.config.chain_matching)
        placement = Placement(placement or self.config.placement)

        ordered = order_transformations(asym_unit, transformations)

        assembly = asym_unit.copy_header()
        assembly.reset_models()
        assembly.entity_infos = []

        models = ModelRegistry()
        entities = EntityRegistry()

        for transformation in ordered:
            sources = self._resolve_chains(asym_unit, transformation.chain_id, chain_matching)
            if not sources:
                logger.warning(
                    f"Chain {transformation.chain_id} referenced by transform "
                    f"{transformation.transform_id} not found in {asym_unit.pdb_id}"
                )
                continue

            for source in sources:
                chain = source.clone()
                _transform_chain(chain, transformation)

                if placement == Placement.MULTI_MODEL:
                    _add_chain_multi_model(assembly, chain, models.slot_for(transformation.transform_id))
                else:
                    _add_chain_flattened(assembly, chain, transformation.transform_id)

                entities.link(chain, assembly)

        total_atoms = assembly.num_atoms
        if total_atoms > self.config.max_atoms:
            logger.warning(
                f"Assembly of {asym_unit.pdb_id} has {total_atoms} atoms, "
                f"exceeding limit of {self.config.max_atoms}"
            )

        logger.debug(
            f"Rebuilt {asym_unit.pdb_id}: {len(ordered)} transformations, "
            f"{assembly.num_models} models, {assembly.num_chains} chains"
        )

        assembly.is_biological_assembly = True
        return assembly

    def _resolve_chains(
        self,
        asym_unit: Structure,
        chain_id: str,
        chain_matching: ChainMatching,
    ) -> List[Chain]:
        """Find the asymmetric unit chains a transformation applies to."""
        if chain_matching == ChainMatching.BY_INTERNAL_ID:
            chain = asym_unit.get_chain(chain_id)
            return [chain] if chain is not None else []

        # A public id spans the polymer, its ligands and its waters
        chains: List[Chain] = []
        poly_chain = asym_unit.get_poly_chain_by_name(chain_id)
        if poly_chain is not None:
            chains.append(poly_chain)
        chains.extend(asym_unit.get_non_poly_chains_by_name(chain_id))
        water_chain = asym_unit.get_water_chain_by_name(chain_id)
        if water_chain is not None:
            chains.append(water_chain)
        return chains


def _transform_chain(chain: Chain, transformation: BiologicalAssemblyTransformation) -> None:
    """Apply the transform in place to every atom of a cloned chain."""
    for residue in chain.residues:
        atoms = list(residue.atoms.values())
        if not atoms:
            continue
        coords = transformation.transform_points([atom.coords for atom in atoms])
        for atom, xyz in zip(atoms, coords):
            atom.coords = xyz


def _add_chain_multi_model(assembly: Structure, chain: Chain, slot: int) -> None:
    if slot < assembly.num_models:
        assembly.add_chain(chain, slot)
    else:
        assembly.add_model([chain])


def _add_chain_flattened(assembly: Structure, chain: Chain, transform_id: str) -> None:
    chain.chain_id = f"{chain.chain_id}{SYM_CHAIN_ID_SEPARATOR}{transform_id}"
    chain.name = f"{chain.name}{SYM_CHAIN_ID_SEPARATOR}{transform_id}"
    assembly.add_chain(chain)


def get_assembly_statistics(
    asym_unit: Structure,
    assembly: Structure,
    transformations: Sequence[BiologicalAssemblyTransformation],
) -> Dict[str, float]:
    """Get statistics about assembly reconstruction.

    Args:
        asym_unit: Original asymmetric unit
        assembly: Rebuilt assembly
        transformations: Transformations used for the rebuild

    Returns:
        Dictionary of statistics
    """
    original_chains = len(asym_unit.chains)
    return {
        "original_chains": original_chains,
        "assembly_chains": assembly.num_chains,
        "expansion_factor": assembly.num_chains / max(1, original_chains),
        "original_atoms": sum(chain.num_atoms for chain in asym_unit.chains),
        "assembly_atoms": assembly.num_atoms,
        "num_models": assembly.num_models,
        "num_operations": len({t.transform_id for t in transformations}),
    }
