"""Configuration management for quatbuild.

This module defines the configuration options for reading structure files,
rebuilding biological assemblies and writing the results.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from quatbuild.assembly.builder import AssemblyBuilderConfig, ChainMatching, Placement


class ParserConfig(BaseModel):
    """Options for reading mmCIF files."""

    first_model_only: bool = Field(
        default=False, description="Discard all models after the first while reading"
    )
    remove_hydrogens: bool = Field(default=False, description="Remove hydrogen atoms")
    remove_waters: bool = Field(default=False, description="Remove water chains")


class AssemblyConfig(BaseModel):
    """Options for assembly reconstruction."""

    assembly_id: str = Field(default="1", description="Assembly to build")
    chain_matching: ChainMatching = Field(
        default=ChainMatching.BY_INTERNAL_ID,
        description="Match generator chain ids against internal or public chain ids",
    )
    placement: Placement = Field(
        default=Placement.MULTI_MODEL,
        description="One model per transform id, or a single model of renamed chains",
    )
    max_atoms: int = Field(
        default=2_000_000, gt=0, description="Warn when an assembly exceeds this many atoms"
    )

    def to_builder_config(self) -> AssemblyBuilderConfig:
        return AssemblyBuilderConfig(
            chain_matching=self.chain_matching,
            placement=self.placement,
            max_atoms=self.max_atoms,
        )


class OutputConfig(BaseModel):
    """Options for writing rebuilt assemblies."""

    output_dir: Optional[Path] = Field(default=None, description="Directory for output files")
    compress: bool = Field(default=False, description="Write gzip-compressed mmCIF")
    coordinate_precision: int = Field(
        default=3, ge=0, le=8, description="Decimal places for coordinates"
    )


class Config(BaseSettings):
    """Main configuration for quatbuild."""

    parser: ParserConfig = Field(default_factory=ParserConfig)
    assembly: AssemblyConfig = Field(default_factory=AssemblyConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    log_level: str = Field(default="INFO", description="Logging level")

    model_config = {"env_prefix": "QUATBUILD_", "env_nested_delimiter": "__"}

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)

    def to_dict(self) -> dict:
        """Convert configuration to a plain dictionary."""
        return self.model_dump(mode="json")
