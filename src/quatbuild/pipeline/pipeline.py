"""Assembly pipeline orchestration.

Runs the full reconstruction workflow for structure files:
1. Parse the asymmetric unit and its assembly tables (mmCIF)
2. Build the transformation list for the requested assembly
3. Rebuild the quaternary structure
4. Write the assembly (mmCIF)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from quatbuild.assembly.builder import (
    BiologicalAssemblyBuilder,
    ChainMatching,
    Placement,
    get_assembly_statistics,
)
from quatbuild.assembly.transformations import (
    AssemblyTables,
    count_copies,
    get_transformations_for_assembly,
)
from quatbuild.config import Config
from quatbuild.data.parsers.mmcif_parser import MMCIFParser
from quatbuild.data.parsers.structure import Structure
from quatbuild.data.writers.mmcif_writer import write_mmcif
from quatbuild.utils import Timer


logger = logging.getLogger(__name__)


# Assembly id meaning "the asymmetric unit itself"
ASYMMETRIC_UNIT_ID = "0"

STRUCTURE_SUFFIXES = (".cif", ".cif.gz", ".mmcif", ".mmcif.gz")


@dataclass
class PipelineStats:
    """Statistics for pipeline execution."""
    total_structures: int = 0
    processed_successfully: int = 0
    failed: int = 0

    errors: List[str] = field(default_factory=list)


@dataclass
class AssemblySummary:
    """One declared assembly of a structure file."""
    assembly_id: str
    details: Optional[str]
    oligomeric_count: Optional[int]
    num_copies: int
    num_transformations: int


@dataclass
class AssemblyResult:
    """A rebuilt assembly with its provenance."""
    pdb_id: str
    assembly_id: str
    assembly: Structure
    statistics: Dict[str, float] = field(default_factory=dict)
    output_path: Optional[Path] = None


class AssemblyPipeline:
    """Parses structure files and rebuilds their biological assemblies."""

    def __init__(self, config: Optional[Config] = None):
        """Initialize the pipeline.

        Args:
            config: Pipeline configuration (defaults if None)
        """
        self.config = config or Config()
        self.parser = MMCIFParser(
            first_model_only=self.config.parser.first_model_only,
            remove_hydrogens=self.config.parser.remove_hydrogens,
            remove_waters=self.config.parser.remove_waters,
        )
        self.builder = BiologicalAssemblyBuilder(self.config.assembly.to_builder_config())
        self.stats = PipelineStats()

    def load(self, path: Union[str, Path]) -> Tuple[Structure, AssemblyTables]:
        """Parse a structure file into its asymmetric unit and assembly tables."""
        return self.parser.parse_with_assemblies(path)

    def list_assemblies(self, path: Union[str, Path]) -> List[AssemblySummary]:
        """Summarise every assembly declared by a structure file."""
        tables = self.parser.get_assembly_tables(path)
        summaries = []
        for assembly_id in tables.assembly_ids:
            transformations = get_transformations_for_assembly(tables, assembly_id)
            info = tables.get_assembly(assembly_id)
            summaries.append(AssemblySummary(
                assembly_id=assembly_id,
                details=info.details if info else None,
                oligomeric_count=info.oligomeric_count if info else None,
                num_copies=count_copies(transformations),
                num_transformations=len(transformations),
            ))
        return summaries

    def build(
        self,
        path: Union[str, Path],
        assembly_id: Optional[str] = None,
        output_path: Optional[Union[str, Path]] = None,
    ) -> AssemblyResult:
        """Rebuild one assembly of a structure file.

        Args:
            path: Input mmCIF file
            assembly_id: Assembly to build (configured default if None)
            output_path: Write the assembly here if given

        Returns:
            AssemblyResult with the rebuilt structure

        Raises:
            AssemblyNotFoundError: If the assembly is not declared
        """
        assembly_id = assembly_id or self.config.assembly.assembly_id
        asym_unit, tables = self.load(path)

        with Timer(f"assembly {assembly_id} of {asym_unit.pdb_id}", log_level=logging.DEBUG):
            transformations = get_transformations_for_assembly(tables, assembly_id)
            assembly = self.builder.rebuild_quaternary_structure(asym_unit, transformations)

        result = AssemblyResult(
            pdb_id=asym_unit.pdb_id,
            assembly_id=assembly_id,
            assembly=assembly,
            statistics=get_assembly_statistics(asym_unit, assembly, transformations),
        )

        if output_path is not None:
            result.output_path = write_mmcif(
                assembly,
                output_path,
                precision=self.config.output.coordinate_precision,
                compress=self.config.output.compress or None,
            )
            logger.info(f"Wrote assembly {assembly_id} of {asym_unit.pdb_id} to {result.output_path}")

        return result

    def process_directory(
        self,
        input_dir: Union[str, Path],
        output_dir: Union[str, Path],
        assembly_id: Optional[str] = None,
        max_structures: Optional[int] = None,
    ) -> PipelineStats:
        """Rebuild one assembly for every structure file in a directory.

        Failures are recorded in the returned stats; processing continues
        with the next file.
        """
        self.stats = PipelineStats()
        output_dir = Path(output_dir)

        for i, path in enumerate(iter_structure_files(input_dir)):
            if max_structures is not None and i >= max_structures:
                break

            self.stats.total_structures += 1
            try:
                self.build(path, assembly_id, output_dir / self.output_name(path, assembly_id))
                self.stats.processed_successfully += 1
            except Exception as e:
                logger.error(f"Failed to process {path}: {e}")
                self.stats.failed += 1
                self.stats.errors.append(f"{path.name}: {e}")

        return self.stats

    def output_name(self, path: Path, assembly_id: Optional[str]) -> str:
        """Default output file name for an input file and assembly id."""
        assembly_id = assembly_id or self.config.assembly.assembly_id
        stem = path.name.split(".")[0]
        suffix = ".cif.gz" if self.config.output.compress else ".cif"
        return f"{stem}-assembly{assembly_id}{suffix}"


def iter_structure_files(directory: Union[str, Path]) -> Iterator[Path]:
    """Yield structure files in a directory in sorted order."""
    for path in sorted(Path(directory).iterdir()):
        if path.is_file() and path.name.lower().endswith(STRUCTURE_SUFFIXES):
            yield path


def get_biological_assembly(
    source: Union[str, Path, Structure],
    assembly_id: Optional[str] = "1",
    multi_model: bool = True,
    chain_matching: ChainMatching = ChainMatching.BY_INTERNAL_ID,
    tables: Optional[AssemblyTables] = None,
) -> Structure:
    """Return one biological assembly of a structure file or parsed structure.

    Args:
        source: mmCIF file, or an already parsed asymmetric unit
        assembly_id: Assembly to build; "0" or None returns the asymmetric unit
        multi_model: One model per transform id, or one model of renamed chains
        chain_matching: How generator chain ids are matched
        tables: Assembly tables; required when source is a Structure

    Returns:
        The rebuilt assembly (or the asymmetric unit)
    """
    if isinstance(source, Structure):
        asym_unit = source
    else:
        asym_unit, tables = MMCIFParser().parse_with_assemblies(source)
    if assembly_id is None or assembly_id == ASYMMETRIC_UNIT_ID:
        return asym_unit

    if tables is None:
        raise ValueError("Assembly tables are required to rebuild a parsed structure")

    transformations = get_transformations_for_assembly(tables, assembly_id)
    builder = BiologicalAssemblyBuilder()
    return builder.rebuild_quaternary_structure(
        asym_unit,
        transformations,
        chain_matching=chain_matching,
        placement=Placement.MULTI_MODEL if multi_model else Placement.FLATTENED,
    )


def create_pipeline(config_path: Optional[str] = None) -> AssemblyPipeline:
    """Create a pipeline from a YAML configuration file.

    Args:
        config_path: Path to configuration file (defaults if None)

    Returns:
        Configured AssemblyPipeline
    """
    config = Config.from_yaml(config_path) if config_path else Config()
    return AssemblyPipeline(config)
