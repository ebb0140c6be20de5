"""
IDoc Definition Loader.
Reads an SAP IDoc type definition, either the documentation text export
(``NAME : description`` blocks) or a workbook with one row per field, and
builds the MessageStructure the IDOC emitter linearizes.
"""
import re
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

from edi_spec_compiler.logger import get_logger
from edi_spec_compiler.models import MANDATORY, CONDITIONAL, Element, MessageStructure, Segment

IDOC_STANDARD = "IDOC"

REQUIRED_COLS = [
    "Segment name", "Segment description", "Status",
    "Element name", "Element description", "Data type",
    "External length",
]

# Block header: "E1EDK01 : IDoc: Document header general data"
REGEX_START = re.compile(r'^([A-Z0-9/_]+)\s+:\s+(.+)$')

# Field / segment metadata
REGEX_STATUS = re.compile(r'Status\s*:\s*([A-Za-z]+)', re.IGNORECASE)
REGEX_MAX_NUMBER = re.compile(r'max\.\s*number\s*:\s*(\d+)', re.IGNORECASE)
REGEX_DATA_TYPE = re.compile(r'internal data type\s*:\s*([A-Z0-9]+)', re.IGNORECASE)
REGEX_INTERNAL_LENGTH = re.compile(r'Internal length\s*:\s*(\d+)', re.IGNORECASE)
REGEX_POSITION = re.compile(r'Position in segment\s*:\s*(\d+)', re.IGNORECASE)
REGEX_EXTERNAL_LENGTH = re.compile(r'external length\s*:\s*(\d+)', re.IGNORECASE)

# Lines that look like block headers but are metadata
_NOT_A_HEADER = ("min. number", "max. number", "Segment definition", "Released since")

REGEX_WHOLE_FLOAT = re.compile(r"(?<=\d)\.0+$")


def _is_header(line: str) -> bool:
    return REGEX_START.match(line) is not None and not any(marker in line for marker in _NOT_A_HEADER)


def parse_idoc_documentation(text: str) -> List[Dict[str, str]]:
    """
    Parse the IDoc documentation export into one row per field.

    Returns:
        Rows keyed like the definition workbook columns, plus "Max number"
    """
    rows: List[Dict[str, str]] = []
    segment_status: Dict[str, str] = {}
    segment_max: Dict[str, str] = {}
    current = {"name": None, "desc": None}

    def process_block(name: str, desc: str, lines_in_block: List[str]) -> None:
        full_text = " ".join(lines_in_block)

        # Segment from the overview section
        m_status = REGEX_STATUS.search(full_text)
        if m_status:
            segment_status[name] = m_status.group(1)
            m_max = REGEX_MAX_NUMBER.search(full_text)
            if m_max:
                segment_max[name] = m_max.group(1)
            current["name"], current["desc"] = name, desc
            return

        # Segment from the details section
        if "Segment definition" in full_text:
            current["name"], current["desc"] = name, desc
            return

        # Field
        m_type = REGEX_DATA_TYPE.search(full_text)
        if not m_type or not current["name"]:
            return

        segment = current["name"]
        row = {
            "Segment name": segment,
            "Segment description": current["desc"],
            "Status": segment_status.get(segment, "Optional"),
            "Max number": segment_max.get(segment, "1"),
            "Element name": name,
            "Element description": desc,
            "Data type": m_type.group(1),
            "Internal length": "",
            "Position in segment": "",
            "External length": "",
        }
        for key, regex in (("Internal length", REGEX_INTERNAL_LENGTH),
                           ("Position in segment", REGEX_POSITION),
                           ("External length", REGEX_EXTERNAL_LENGTH)):
            match = regex.search(full_text)
            if match:
                row[key] = match.group(1)
        rows.append(row)

    block_header = None
    block_lines: List[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if _is_header(line):
            if block_header:
                process_block(*block_header, block_lines)
            match = REGEX_START.match(line)
            block_header = (match.group(1), match.group(2))
            block_lines = []
        elif block_header:
            block_lines.append(line)

    if block_header:
        process_block(*block_header, block_lines)

    return rows


def _clean_number(value: Any) -> str:
    """Workbook cells may come back as floats ("3.0")."""
    text = str(value if value is not None else "").strip()
    return REGEX_WHOLE_FLOAT.sub("", text)


def build_idoc_structure(rows: List[Dict[str, Any]], document: str, revision: str = "") -> MessageStructure:
    """
    Group field rows by segment (first appearance order) into a MessageStructure.
    """
    segments: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        name = str(row.get("Segment name", "")).strip()
        if not name:
            continue
        entry = segments.setdefault(name, {"row": row, "fields": []})
        entry["fields"].append(row)

    built = []
    for index, (name, entry) in enumerate(segments.items()):
        head = entry["row"]
        status = str(head.get("Status", "")).strip().lower()
        requirement = MANDATORY if status == "mandatory" else CONDITIONAL

        elements = []
        for field_index, row in enumerate(entry["fields"]):
            length = _clean_number(row.get("External length", "")) or _clean_number(row.get("Internal length", ""))
            position = _clean_number(row.get("Position in segment", "")) or str(field_index + 1)
            elements.append(Element(
                position=position.zfill(3),
                code=str(row.get("Element name", "")).strip(),
                name=str(row.get("Element description", "")).strip(),
                data_type=str(row.get("Data type", "")).strip(),
                max_length=length,
            ))

        built.append(Segment(
            max_occurs=_clean_number(head.get("Max number", "")) or "1",
            position=str((index + 1) * 10).zfill(4),
            tag=name,
            name=name,
            description=str(head.get("Segment description", "")).strip(),
            requirement=requirement,
            elements=elements,
            segment_type=name,
        ))

    return MessageStructure(standard=IDOC_STANDARD, revision=revision, document=document, segments=built)


class IdocDefinitionLoader:
    """Loads an IDoc definition from a documentation export or a workbook."""

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = get_logger()

    def load_rows(self) -> List[Dict[str, Any]]:
        """
        Raises:
            FileNotFoundError: If the definition file is missing
            ValueError: If a workbook lacks required columns
        """
        if not self.path.exists():
            raise FileNotFoundError(f"IDoc definition not found: {self.path}")

        if self.path.suffix.lower() in (".xlsx", ".xlsm"):
            return self._load_workbook()

        text = self.path.read_text(encoding="utf-8", errors="ignore")
        rows = parse_idoc_documentation(text)
        self.logger.info(f"Parsed {len(rows)} IDoc fields from {self.path.name}")
        return rows

    def _load_workbook(self) -> List[Dict[str, Any]]:
        df = pd.read_excel(self.path, dtype=str, engine="openpyxl")
        df.columns = [str(c).strip() for c in df.columns]

        missing = [c for c in REQUIRED_COLS if c not in df.columns]
        if missing:
            raise ValueError(f"IDoc definition workbook missing columns: {missing}")

        # Empty cells come back as NaN
        df = df.fillna("")
        rows = df.astype(str).to_dict(orient="records")
        self.logger.info(f"Loaded {len(rows)} IDoc fields from {self.path.name}")
        return rows

    def load(self, document: str, revision: str = "") -> MessageStructure:
        return build_idoc_structure(self.load_rows(), document, revision)
