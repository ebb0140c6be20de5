"""
Dialect table.
Separators, envelope wrapper and fragment layout for each supported standard.
Every dialect-dependent decision in the emitter and the Data Normalizer
builder reads from here.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from edi_spec_compiler.errors import UnsupportedDialect

EDIFACT = "EDIFACT"
X12 = "X12"
IDOC = "IDOC"

# Placeholder for the message body entity inside the fragment list
MESSAGE_FRAGMENT = "{message}"


@dataclass(frozen=True)
class Dialect:
    name: str
    segment_terminator: Optional[str]
    field_separator: Optional[str]
    component_separator: Optional[str]
    root_wrapper: str
    # Entity names included around the message body, in wire order
    fragments: Tuple[str, ...]
    # Entity name of the message body; {message} is the document code
    message_entity: str
    # Directory of the fragments below the SFEDI format root
    fragment_dir: str
    fixed_width: bool = False

    @property
    def is_edi(self) -> bool:
        return not self.fixed_width

    def ixdoc_attributes(self) -> Tuple[Tuple[str, str], ...]:
        """Attributes of the ixDOC root of a Data Normalizer file."""
        if self.fixed_width:
            return (("format", "variable"), ("end", "\\r\\n or \\n"))
        return (
            ("format", "variable"),
            ("segChar", self.segment_terminator),
            ("elChar", self.field_separator),
            ("compChar", self.component_separator),
            ("emptyEnd", "true"),
            ("lastEnd", "false"),
        )


DIALECTS: Dict[str, Dialect] = {
    EDIFACT: Dialect(
        name=EDIFACT,
        segment_terminator="'",
        field_separator="+",
        component_separator=":",
        root_wrapper="INTERCHANGE",
        fragments=("unb", MESSAGE_FRAGMENT, "unz"),
        message_entity="{message}",
        fragment_dir="edifact",
    ),
    X12: Dialect(
        name=X12,
        # Written as the two-character escape the validator expects
        segment_terminator="\\n",
        field_separator="|",
        component_separator=">",
        root_wrapper="INTERCHANGE",
        fragments=("isa", "gs", MESSAGE_FRAGMENT, "ge", "iea"),
        message_entity="x{message}",
        fragment_dir="x12",
    ),
    IDOC: Dialect(
        name=IDOC,
        segment_terminator=None,
        field_separator=None,
        component_separator=None,
        root_wrapper="TRANSACTION",
        fragments=(),
        message_entity="{message}",
        fragment_dir="idoc",
        fixed_width=True,
    ),
}


def get_dialect(name: str) -> Dialect:
    """
    Look up a dialect by name (case-insensitive).

    Raises:
        UnsupportedDialect: If the name is not in the table
    """
    dialect = DIALECTS.get((name or "").strip().upper())
    if dialect is None:
        raise UnsupportedDialect(name)
    return dialect


def clean_revision(revision: Optional[str]) -> str:
    """'D97A (1997)' -> 'D97A'."""
    return (revision or "").strip().split(" ")[0]


def idoc_reference_name(message: str) -> str:
    """
    Internal reference name of an IDoc message: the message code without its
    last character, so ORDERS02 -> ORDERS0 and the DN file for ORDERS02 is
    DN__IDoc-Fixed-ORDERS02-ORDERS0.xml. Dropping two characters would give
    ORDERS and break that file name.
    """
    return message[:-1] if len(message) > 1 else message


def derive_file_name(dialect: str, standard: str, revision: str, document: str) -> str:
    """
    Output file name for a message.

    EDI:  DN__<Standard>-<Revision>-<Document>.xml
    IDOC: DN__IDoc-Fixed-<Document>-<reference>.xml
    """
    resolved = get_dialect(dialect)
    if resolved.fixed_width:
        return f"DN__IDoc-Fixed-{document}-{idoc_reference_name(document)}.xml"
    return f"DN__{standard}-{clean_revision(revision)}-{document}.xml"
