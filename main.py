#!/usr/bin/env python3
"""
EDI Spec Compiler - Main Entry Point

Compiles EDIFACT directory pages and SAP IDoc definitions into message
structures, and generates ixDOC format descriptors and Data Normalizer
files from them.
"""
import argparse
import sys
import time
from pathlib import Path
from typing import Dict, Optional

from edi_spec_compiler.compiler_service import (
    SpecCompilerService,
    directory_detail_source,
    structure_names,
)
from edi_spec_compiler.config import DEFAULT_CONFIG, load_config
from edi_spec_compiler.errors import CompilerError
from edi_spec_compiler.logger import setup_logger


def read_listings(listing_dir: str, documents) -> Dict[str, Optional[str]]:
    """Read <listing_dir>/<DOCUMENT>.html for every requested document."""
    folder = Path(listing_dir)
    listings = {}
    for document in documents:
        document = document.upper()
        candidate = folder / f"{document}.html"
        listings[document] = candidate.read_text(encoding="utf-8", errors="ignore") if candidate.exists() else None
    return listings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compile EDI message structures into ixDOC format descriptors",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example usage:
  python main.py extract --revision D97A --documents ORDERS INVOIC --listing-dir pages --segments-dir pages/segments
  python main.py generate --json-file output/D97A/ORDERS.json --dialect EDIFACT
  python main.py normalizer --type edi --standard X12 --revision 004010 --message 850
  python main.py idoc --definition input/ORDERS05.txt --document ORDERS05
        """
    )

    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Configuration file path (default: $EDI_COMPILER_CONFIG or config.yaml)"
    )
    parser.add_argument(
        "--logs", "-l",
        default=None,
        help="Log directory (default: log_dir from the configuration)"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    extract = commands.add_parser("extract", help="Extract and assemble message structures")
    extract.add_argument("--standard", default="EDIFACT", help="Standard name (default: EDIFACT)")
    extract.add_argument("--revision", required=True, help="Directory revision, e.g. D97A")
    extract.add_argument("--documents", nargs="+", required=True, help="Message codes, e.g. ORDERS INVOIC")
    extract.add_argument("--listing-dir", required=True, help="Folder with <DOCUMENT>.html listing pages")
    extract.add_argument("--segments-dir", required=True, help="Folder with <TAG>.html or <TAG>.txt segment pages")
    extract.add_argument("--output", "-o", default=None, help="Output directory for structure JSON")

    generate = commands.add_parser("generate", help="Generate a format descriptor from a structure JSON")
    generate.add_argument("--json-file", required=True, help="Structure JSON produced by 'extract'")
    generate.add_argument("--dialect", required=True, help="EDIFACT, X12 or IDOC")
    generate.add_argument("--format", dest="output_format", choices=["xml", "json"], default="xml")
    generate.add_argument("--output", "-o", default=None, help="Output directory")
    generate.add_argument("--ixpath", action="store_true", help="Also write into the iXpath SFEDI tree")

    normalizer = commands.add_parser("normalizer", help="Generate a Data Normalizer file")
    normalizer.add_argument("--type", dest="dn_type", choices=["edi", "idoc", "csv"], required=True)
    normalizer.add_argument("--message", default="", help="Message code, e.g. ORDERS or 850")
    normalizer.add_argument("--standard", default=None, help="EDIFACT or X12 (edi only)")
    normalizer.add_argument("--revision", default=None, help="Revision (edi only)")
    normalizer.add_argument("--output", "-o", default=None, help="Output directory")

    idoc = commands.add_parser("idoc", help="Compile an SAP IDoc definition into an IDOC format descriptor")
    idoc.add_argument("--definition", required=True, help="IDoc documentation text or definition workbook")
    idoc.add_argument("--document", required=True, help="IDoc message type, e.g. ORDERS05")
    idoc.add_argument("--format", dest="output_format", choices=["xml", "json"], default="xml")
    idoc.add_argument("--output", "-o", default=None, help="Output directory")
    idoc.add_argument("--ixpath", action="store_true", help="Also write into the iXpath SFEDI tree")

    return parser


def run_extract(service: SpecCompilerService, args, logger) -> int:
    listings = read_listings(args.listing_dir, args.documents)
    detail_source = directory_detail_source(args.segments_dir)

    structures = service.compile_messages(args.standard, args.revision, listings, detail_source)
    for document in structure_names(structures):
        service.save_structure(structures[document], args.output)

    failed = [document for document, structure in structures.items() if structure is None]
    if failed:
        logger.error(f"Failed documents: {', '.join(failed)}")
        return 1
    return 0


def run_generate(service: SpecCompilerService, args, logger) -> int:
    structure = service.load_structure(args.json_file)
    descriptor = service.generate_format(structure, args.dialect, args.output_format)
    service.write_output(descriptor.content, descriptor.file_name, args.output)

    if args.ixpath:
        service.write_to_ixpath(descriptor.content, args.dialect, structure.revision, structure.document,
                                args.output_format)
    return 0


def run_normalizer(service: SpecCompilerService, args, logger) -> int:
    dn = service.generate_data_normalizer(args.dn_type, args.message, args.standard, args.revision)
    service.write_output(dn.content, dn.file_name, args.output)
    return 0


def run_idoc(service: SpecCompilerService, args, logger) -> int:
    structure = service.load_idoc_definition(args.definition, args.document)
    service.save_structure(structure, args.output)
    descriptor = service.generate_format(structure, "IDOC", args.output_format)
    service.write_output(descriptor.content, descriptor.file_name, args.output)

    if args.ixpath:
        service.write_to_ixpath(descriptor.content, "IDOC", structure.revision, structure.document,
                                args.output_format)
    return 0


COMMANDS = {
    "extract": run_extract,
    "generate": run_generate,
    "normalizer": run_normalizer,
    "idoc": run_idoc,
}


def main(argv=None):
    """Main entry point for the EDI Spec Compiler."""
    args = build_parser().parse_args(argv)

    config_error = None
    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        config, config_error = dict(DEFAULT_CONFIG), e

    # Initialize logger
    logger = setup_logger(
        log_dir=args.logs or config["log_dir"],
        log_retention_days=config["log_retention_days"],
        console_level=config["log_level"],
    )
    logger.info("=" * 60)
    logger.info(f"EDI Spec Compiler Started ({args.command})")
    logger.info("=" * 60)

    start_time = time.time()

    if config_error is not None:
        logger.error(f"Configuration error: {config_error}")
        return 1

    try:
        service = SpecCompilerService(config)

        status = COMMANDS[args.command](service, args, logger)

        logger.info("=" * 60)
        logger.info(f"Processing time: {time.time() - start_time:.2f} seconds")
        logger.info("=" * 60)
        return status

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1

    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 1

    except CompilerError as e:
        logger.error(f"Compilation failed: {e}")
        return 1

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
