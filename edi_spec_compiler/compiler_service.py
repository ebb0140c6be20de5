"""
Compiler Service
Wires extraction, assembly and generation together so the CLI stays thin.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional

from edi_spec_compiler.config import DEFAULT_CONFIG
from edi_spec_compiler.extraction.assembler import assemble_structure, log_summary
from edi_spec_compiler.extraction.directory import DetailSource, DirectoryExtractor
from edi_spec_compiler.extraction.idoc_definition import IdocDefinitionLoader
from edi_spec_compiler.extraction.segment_detail import extract_segment_details
from edi_spec_compiler.generation.data_normalizer import DataNormalizer, build_data_normalizer
from edi_spec_compiler.generation.dialects import clean_revision
from edi_spec_compiler.generation.format_emitter import OUTPUT_XML, FormatDescriptor, FormatEmitter
from edi_spec_compiler.logger import get_logger
from edi_spec_compiler.models import MANDATORY, MessageStructure, Segment
from edi_spec_compiler.parallel_executor import ParallelExecutor

DETAIL_SUFFIXES = (".html", ".htm", ".txt")


def directory_detail_source(segments_dir: str) -> DetailSource:
    """
    Detail source backed by a folder of saved segment pages (<TAG>.html or <TAG>.txt).
    """
    folder = Path(segments_dir)

    def _lookup(tag: str) -> Optional[str]:
        for suffix in DETAIL_SUFFIXES:
            candidate = folder / f"{tag}{suffix}"
            if candidate.exists():
                return candidate.read_text(encoding="utf-8", errors="ignore")
        return None
    return _lookup


class SpecCompilerService:
    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = dict(DEFAULT_CONFIG)
        if config:
            self.config.update(config)
        self.logger = get_logger()
        self.emitter = FormatEmitter(self.config["default_group_max"])

    # ------------------------------------------------------------------ #
    #  Extraction                                                        #
    # ------------------------------------------------------------------ #

    def is_service_segment(self, document: str) -> bool:
        return document.upper() in self.config["service_segments"]

    def compile_service_segment(self, standard: str, revision: str, document: str,
                                detail_source: DetailSource) -> MessageStructure:
        """A service segment document is its own single mandatory segment."""
        tag = document.upper()
        text = detail_source(tag)
        if text is None:
            self.logger.warning(f"No detail available for service segment {tag}")
            elements = []
        else:
            elements = extract_segment_details(text, self.config["tab_width"])["Elements"]

        segment = Segment(
            min_occurs="1",
            max_occurs="1",
            position="0010",
            tag=tag,
            name=tag,
            description=f"Service segment {tag}",
            requirement=MANDATORY,
            elements=elements,
        )
        structure = MessageStructure(standard=standard, revision=revision, document=tag, segments=[segment])
        log_summary(structure)
        return structure

    def compile_message(self, standard: str, revision: str, document: str,
                        directory_markup: Optional[str], detail_source: DetailSource) -> MessageStructure:
        """
        Extract and assemble one message.

        Args:
            standard: e.g. "EDIFACT"
            revision: e.g. "D97A"
            document: e.g. "ORDERS"
            directory_markup: Listing markup of the message (unused for service segments)
            detail_source: Returns the detail block of a segment tag

        Raises:
            ValueError: If a listing is needed but missing
            AssemblyInvariantViolation: If the group nesting cannot be assembled
        """
        self.logger.info(f"Compiling {standard} {revision} {document}")

        if self.is_service_segment(document):
            return self.compile_service_segment(standard, revision, document, detail_source)

        if not directory_markup:
            raise ValueError(f"Directory listing for {document} is empty")

        extractor = DirectoryExtractor(detail_source, tab_width=self.config["tab_width"])
        listing = extractor.extract(directory_markup)
        return assemble_structure(standard, revision, document, listing)

    def compile_messages(self, standard: str, revision: str, listings: Dict[str, Optional[str]],
                         detail_source: DetailSource) -> Dict[str, Optional[MessageStructure]]:
        """
        Compile several documents concurrently. A document that fails maps to None.
        """
        executor = ParallelExecutor(max_threads=self.config["max_threads"])
        return executor.run_parallel(
            listings,
            lambda document, markup: self.compile_message(standard, revision, document, markup, detail_source),
        )

    def load_idoc_definition(self, path: str, document: str, revision: str = "") -> MessageStructure:
        structure = IdocDefinitionLoader(path).load(document, revision)
        log_summary(structure)
        return structure

    # ------------------------------------------------------------------ #
    #  Generation                                                        #
    # ------------------------------------------------------------------ #

    def generate_format(self, structure: MessageStructure, dialect: str,
                        output_format: str = OUTPUT_XML) -> FormatDescriptor:
        return self.emitter.emit(structure, dialect, output_format)

    def generate_data_normalizer(self, dn_type: str, message: str, standard: Optional[str] = None,
                                 revision: Optional[str] = None) -> DataNormalizer:
        return build_data_normalizer(
            dn_type,
            message,
            standard=standard,
            revision=revision,
            format_root=self.config["sfedi_format_root"],
        )

    # ------------------------------------------------------------------ #
    #  Persistence                                                       #
    # ------------------------------------------------------------------ #

    def save_structure(self, structure: MessageStructure, output_dir: Optional[str] = None) -> Path:
        """Write the interchange JSON to <output>/<revision>/<document>.json."""
        base = Path(output_dir or self.config["output_dir"])
        target_dir = base / clean_revision(structure.revision) if structure.revision else base
        target_dir.mkdir(parents=True, exist_ok=True)

        target = target_dir / f"{structure.document}.json"
        target.write_text(structure.to_json(), encoding="utf-8")
        self.logger.info(f"Saved structure to {target}")
        return target

    def load_structure(self, path: str) -> MessageStructure:
        """
        Raises:
            FileNotFoundError: If the file does not exist
            pydantic.ValidationError: If the JSON is not a message structure
        """
        source = Path(path)
        if not source.exists():
            raise FileNotFoundError(f"Structure file not found: {path}")
        return MessageStructure.from_json(source.read_text(encoding="utf-8"))

    def write_to_ixpath(self, content: str, standard: str, revision: str, document: str,
                        fmt: str = OUTPUT_XML, ixpath_folder: Optional[str] = None) -> Path:
        """
        Write generated content into an iXpath SFEDI tree:
        <ixpath>/SFEDI/format/<standard>/<REVISION>/<DOCUMENT>.<fmt>

        Raises:
            ValueError: If no iXpath folder is configured
        """
        folder = ixpath_folder or self.config.get("ixpath_folder")
        if not folder:
            raise ValueError("No iXpath folder configured (set ixpath_folder or IXPATH_FOLDER)")

        target_dir = Path(folder) / "SFEDI" / "format" / standard.lower() / clean_revision(revision).upper()
        target_dir.mkdir(parents=True, exist_ok=True)

        target = target_dir / f"{document.upper()}.{fmt}"
        target.write_text(content, encoding="utf-8")
        self.logger.info(f"Written to iXpath: {target}")
        return target

    def write_output(self, content: str, file_name: str, output_dir: Optional[str] = None) -> Path:
        target_dir = Path(output_dir or self.config["output_dir"])
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / file_name
        target.write_text(content, encoding="utf-8")
        self.logger.info(f"Output written to {target}")
        return target


def structure_names(structures: Dict[str, Optional[MessageStructure]]) -> List[str]:
    """Documents that compiled successfully, in request order."""
    return [document for document, structure in structures.items() if structure is not None]
