"""Command-line interface for quatbuild.

Provides CLI commands for:
- Rebuilding biological assemblies from mmCIF files
- Listing the assemblies a file declares
- Managing configuration
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from quatbuild.assembly.builder import ChainMatching, Placement
from quatbuild.assembly.transformations import AssemblyNotFoundError
from quatbuild.config import Config
from quatbuild.data.parsers.mmcif_parser import MMCIFParseError
from quatbuild.pipeline.pipeline import AssemblyPipeline
from quatbuild.utils import setup_logging


logger = logging.getLogger("quatbuild.cli")


def _load_config(args: argparse.Namespace) -> Config:
    """Load the configuration file if given, then apply command-line overrides."""
    config = Config.from_yaml(args.config) if args.config else Config()

    if getattr(args, "flatten", False):
        config.assembly.placement = Placement.FLATTENED
    if getattr(args, "by_public_id", False):
        config.assembly.chain_matching = ChainMatching.BY_PUBLIC_ID
    if getattr(args, "assembly", None):
        config.assembly.assembly_id = args.assembly

    return config


def _setup_logging(args: argparse.Namespace, config: Optional[Config] = None) -> None:
    level = "DEBUG" if args.verbose else (config.log_level if config else "INFO")
    setup_logging(level)


def cmd_build(args: argparse.Namespace) -> int:
    """Build assembly command."""
    try:
        config = _load_config(args)
    except (OSError, ValueError) as e:
        _setup_logging(args)
        logger.error(f"Could not load configuration: {e}")
        return 1

    _setup_logging(args, config)
    pipeline = AssemblyPipeline(config)
    input_path = Path(args.input)
    assembly_id = config.assembly.assembly_id

    if input_path.is_dir():
        output_dir = Path(args.output or config.output.output_dir or "assemblies")
        logger.info(f"Building assembly {assembly_id} for structures in {input_path}")
        stats = pipeline.process_directory(input_path, output_dir, assembly_id)
        logger.info(f"Processed {stats.processed_successfully}/{stats.total_structures} structures")
        if stats.failed > 0:
            logger.warning(f"Failed: {stats.failed}")
            return 1
        return 0

    if not input_path.is_file():
        logger.error(f"Input not found: {input_path}")
        return 1

    output_path = args.output
    if output_path is None:
        output_dir = Path(config.output.output_dir or ".")
        output_path = output_dir / pipeline.output_name(input_path, assembly_id)

    try:
        result = pipeline.build(input_path, assembly_id, output_path)
    except (AssemblyNotFoundError, MMCIFParseError, OSError) as e:
        logger.error(f"Failed to build assembly {assembly_id} of {input_path}: {e}")
        return 1

    stats = result.statistics
    logger.info(
        f"Built assembly {assembly_id} of {result.pdb_id}: "
        f"{stats['assembly_chains']} chains in {stats['num_models']} models, "
        f"{stats['assembly_atoms']} atoms"
    )
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List assemblies command."""
    _setup_logging(args)
    pipeline = AssemblyPipeline()

    try:
        summaries = pipeline.list_assemblies(args.input)
    except (MMCIFParseError, OSError) as e:
        logger.error(f"Could not read {args.input}: {e}")
        return 1

    if not summaries:
        print(f"No assemblies declared in {args.input}")
        return 0

    print(f"{'id':<6} {'copies':>6} {'count':>6}  details")
    for summary in summaries:
        count = summary.oligomeric_count if summary.oligomeric_count is not None else "-"
        print(
            f"{summary.assembly_id:<6} {summary.num_copies:>6} {count:>6}  "
            f"{summary.details or ''}"
        )
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Configuration command."""
    _setup_logging(args)

    if args.subcmd == "show":
        config = Config()
        print(yaml.dump(config.to_dict(), default_flow_style=False))

    elif args.subcmd == "init":
        config = Config()
        output_path = Path(args.output or "quatbuild.yaml")
        config.to_yaml(str(output_path))
        print(f"Created configuration file: {output_path}")

    else:
        logger.error("Specify a config subcommand: show or init")
        return 1

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    parser = argparse.ArgumentParser(
        prog="quatbuild",
        description="quatbuild - Biological assembly reconstruction",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        parents=[common],
        help="Rebuild a biological assembly",
    )
    build_parser.add_argument(
        "input",
        help="Input mmCIF file or directory",
    )
    build_parser.add_argument(
        "-a", "--assembly",
        help="Assembly id to build (default from configuration)",
    )
    build_parser.add_argument(
        "--flatten",
        action="store_true",
        help="Write one model with renamed chains instead of one model per operator",
    )
    build_parser.add_argument(
        "--by-public-id",
        action="store_true",
        help="Match generator chain ids against public (author) chain ids",
    )
    build_parser.add_argument(
        "-o", "--output",
        help="Output file (or directory when the input is a directory)",
    )
    build_parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to configuration file",
    )
    build_parser.set_defaults(func=cmd_build)

    # List command
    list_parser = subparsers.add_parser(
        "list",
        parents=[common],
        help="List the assemblies declared in a file",
    )
    list_parser.add_argument(
        "input",
        help="Input mmCIF file",
    )
    list_parser.set_defaults(func=cmd_list)

    # Config command
    cfg_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Configuration operations",
    )
    cfg_subparsers = cfg_parser.add_subparsers(dest="subcmd")

    cfg_subparsers.add_parser("show", help="Show configuration")
    cfg_init = cfg_subparsers.add_parser("init", help="Initialize config file")
    cfg_init.add_argument("-o", "--output", help="Output file path")

    cfg_parser.set_defaults(func=cmd_config)

    # Parse arguments
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
