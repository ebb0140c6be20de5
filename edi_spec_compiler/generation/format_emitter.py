"""
Format Descriptor Emitter.
Compiles a MessageStructure into the ixDOC schema of one dialect.

EDIFACT and X12 share one nested layout (segment -> TAG + elements/composites,
groups as wrappers) and differ only in separators. IDOC is fixed-width: a
constant EDI_DC40 control record followed by the linearized segments.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from lxml import etree

from edi_spec_compiler.errors import InvalidModel
from edi_spec_compiler.generation.dialects import Dialect, derive_file_name, get_dialect
from edi_spec_compiler.logger import get_logger
from edi_spec_compiler.models import (
    Composite,
    Element,
    Group,
    IdocRecord,
    MessageStructure,
    Segment,
)

DEFAULT_GROUP_MAX = "10"

GROUP_BEGIN = "_GROUP_BEGIN"
GROUP_END = "_GROUP_END"

OUTPUT_XML = "xml"
OUTPUT_JSON = "json"

# SAP control record EDI_DC40: (name, length, key, mandatory, content)
CONTROL_RECORD_FIELDS: Tuple[Tuple[str, int, bool, bool, Optional[str]], ...] = (
    ("TABNAM", 10, True, True, "EDI_DC40_U"),
    ("MANDT", 3, False, False, None),
    ("DOCNUM", 16, False, False, None),
    ("DOCREL", 4, False, False, None),
    ("STATUS", 2, False, False, None),
    ("DIRECT", 1, False, False, None),
    ("OUTMOD", 1, False, False, None),
    ("EXPRSS", 1, False, False, None),
    ("TEST", 1, False, False, None),
    ("IDOCTYP", 30, False, False, None),
    ("CIMTYP", 30, False, False, None),
    ("MESTYP", 30, False, False, None),
    ("MESCOD", 3, False, False, None),
    ("MESFCT", 3, False, False, None),
    ("STD", 1, False, False, None),
    ("STDVRS", 6, False, False, None),
    ("STDMES", 6, False, False, None),
    ("SNDPOR", 10, False, False, None),
    ("SNDPRT", 2, False, False, None),
    ("SNDPFC", 2, False, False, None),
    ("SNDPRN", 10, False, False, None),
    ("SNDSAD", 21, False, False, None),
    ("SNDLAD", 70, False, False, None),
    ("RCVPOR", 10, False, False, None),
    ("RCVPRT", 2, False, False, None),
    ("RCVPFC", 2, False, False, None),
    ("RCVPRN", 10, False, False, None),
    ("RCVSAD", 21, False, False, None),
    ("RCVLAD", 70, False, False, None),
    ("CREDAT", 8, False, False, None),
    ("CRETIM", 6, False, False, None),
    ("REFINT", 14, False, False, None),
    ("REFGRP", 14, False, False, None),
    ("REFMES", 14, False, False, None),
    ("ARCKEY", 70, False, False, None),
    ("SERIAL", 20, False, False, None),
)

# Administrative fields written after SEGNAM in every IDoc segment
SEGMENT_HEADER_FIELDS = ("MANDT", "DOCNUM", "SEGNUM", "PSGNUM", "HLEVEL")
FIELD_LENGTHS = {"DOCNUM": 16, "MANDT": 3}
DEFAULT_FIELD_LENGTH = 6
SEGNAM_LENGTH = 30

_INVALID_NAME_CHARS = re.compile(r'[^A-Za-z0-9_.\-]')


@dataclass(frozen=True)
class FormatDescriptor:
    content: str
    file_name: str


def _xml_name(value: str) -> str:
    """Element name safe for XML (/GLB/E1EDK01 -> _GLB_E1EDK01)."""
    name = _INVALID_NAME_CHARS.sub("_", value.strip())
    if not name or not (name[0].isalpha() or name[0] == "_"):
        name = f"_{name}"
    return name


def _sub_element(parent: etree._Element, name: str, attributes: Sequence[Tuple[str, Optional[str]]],
                 text: Optional[str] = None) -> etree._Element:
    """Append a child, setting non-empty attributes in the given order."""
    element = etree.SubElement(parent, _xml_name(name))
    for key, value in attributes:
        if value is not None and value != "":
            element.set(key, value)
    if text:
        element.text = text
    return element


def _message_root(structure: MessageStructure) -> etree._Element:
    root = etree.Element("MESSAGE")
    root.set("format", "none")
    root.set("max", "n")
    root.set("requirement", "mandatory")
    label = f"{structure.standard}-{structure.revision}-{structure.document}"
    # Comments may not contain "--" or end with "-"
    root.append(etree.Comment(re.sub(r"-{2,}", "-", label).rstrip("-")))
    return root


# ---------------------------------------------------------------------- #
#  EDIFACT / X12                                                         #
# ---------------------------------------------------------------------- #

def _emit_field(parent: etree._Element, element: Element, end: str) -> None:
    _sub_element(parent, f"E{element.code}", [
        ("end", end),
        ("maxSize", element.max_length),
        ("min", "1" if element.is_mandatory else None),
    ])


def _emit_segment(parent: etree._Element, segment: Segment, dialect: Dialect) -> None:
    max_occurs = segment.max_occurs if segment.max_occurs not in ("", "1") else None
    segment_element = _sub_element(parent, segment.tag, [
        ("end", dialect.segment_terminator),
        ("lastEnd", "true"),
        ("emptyEnd", "false"),
        ("errorLevel", "true"),
        ("requirement", segment.requirement.lower()),
        ("min", "1" if segment.is_mandatory else None),
        ("max", max_occurs),
    ])

    _sub_element(segment_element, "TAG", [
        ("end", dialect.field_separator),
        ("key", "true"),
        ("min", "1"),
    ], text=segment.tag)

    for child in segment.elements:
        if isinstance(child, Composite):
            composite_element = _sub_element(segment_element, child.code, [
                ("end", dialect.field_separator),
                ("min", "1" if child.is_mandatory else None),
            ])
            for sub_element in child.elements:
                _emit_field(composite_element, sub_element, dialect.component_separator)
        else:
            _emit_field(segment_element, child, dialect.field_separator)


def _emit_nodes(parent: etree._Element, nodes: Iterable[Union[Segment, Group]], dialect: Dialect,
                default_group_max: str) -> None:
    for node in nodes:
        if isinstance(node, Group):
            group_element = _sub_element(parent, node.code, [
                ("format", "none"),
                ("max", node.max_occurs or default_group_max),
            ])
            _emit_nodes(group_element, node.segments, dialect, default_group_max)
        else:
            _emit_segment(parent, node, dialect)


# ---------------------------------------------------------------------- #
#  IDOC                                                                  #
# ---------------------------------------------------------------------- #

def _emit_fixed_field(parent: etree._Element, name: str, length: int, key: bool = False,
                      mandatory: bool = False, content: Optional[str] = None,
                      description: Optional[str] = None) -> None:
    _sub_element(parent, name, [
        ("format", "fixed"),
        ("length", str(length)),
        ("key", "true" if key else None),
        ("min", "1" if mandatory else None),
        ("description", description),
    ], text=content)


def linearize(nodes: Iterable[Union[Segment, Group]]) -> List[IdocRecord]:
    """
    Flatten a segment/group tree into IDoc layout records: group begin/end
    markers around group content, one record per segment followed by one per
    field (composite members are flattened in order).
    """
    records: List[IdocRecord] = []
    for node in nodes:
        if isinstance(node, Group):
            records.append(IdocRecord(position=f"{node.code}{GROUP_BEGIN}", max_occurs=node.max_occurs or "1"))
            records.extend(linearize(node.segments))
            records.append(IdocRecord(position=f"{node.code}{GROUP_END}"))
            continue

        records.append(IdocRecord(
            position=node.position,
            segment=node.tag,
            segment_type=node.segment_type or node.tag,
            max_occurs=node.max_occurs,
        ))
        for child in node.elements:
            members = child.elements if isinstance(child, Composite) else [child]
            for member in members:
                records.append(IdocRecord(
                    field_name=member.code,
                    length=int(member.max_length) if member.max_length.isdigit() else None,
                    description=member.name or None,
                ))
    return records


def emit_idoc_records(parent: etree._Element, records: Sequence[IdocRecord]) -> etree._Element:
    """
    Write the TRANSACTION wrapper: control record, then the records.

    Raises:
        InvalidModel: If a group end marker has no open group
    """
    transaction = _sub_element(parent, "TRANSACTION", [("format", "none"), ("max", "n")])

    header = _sub_element(transaction, "EDI_DC40", [("min", "1"), ("errorLevel", "true")])
    for name, length, key, mandatory, content in CONTROL_RECORD_FIELDS:
        _emit_fixed_field(header, name, length, key=key, mandatory=mandatory, content=content)

    stack = [transaction]
    open_segment: Optional[etree._Element] = None

    for record in records:
        position = record.position or ""

        if position.endswith(GROUP_END):
            open_segment = None
            if len(stack) == 1:
                raise InvalidModel(f"Group end without matching begin: {position}")
            stack.pop()
        elif position.endswith(GROUP_BEGIN):
            open_segment = None
            max_occurs = (record.max_occurs or "1").lower()
            group = _sub_element(stack[-1], position[:-len("_BEGIN")], [
                ("format", "none"),
                ("max", max_occurs if max_occurs != "1" else None),
            ])
            stack.append(group)
        elif record.segment:
            max_occurs = (record.max_occurs or "1").lower()
            open_segment = _sub_element(stack[-1], record.segment_type or record.segment, [
                ("max", max_occurs if max_occurs != "1" else None),
                ("errorLevel", "true"),
            ])
            _emit_fixed_field(open_segment, "SEGNAM", SEGNAM_LENGTH, key=True, mandatory=True,
                              content=record.segment)
            for name in SEGMENT_HEADER_FIELDS:
                _emit_fixed_field(open_segment, name, FIELD_LENGTHS.get(name, DEFAULT_FIELD_LENGTH))
        elif record.field_name:
            target = open_segment if open_segment is not None else stack[-1]
            length = record.length or FIELD_LENGTHS.get(record.field_name, DEFAULT_FIELD_LENGTH)
            _emit_fixed_field(target, record.field_name, length, description=record.description)

    if len(stack) > 1:
        raise InvalidModel(f"Unclosed IDoc group: {stack[-1].tag}")
    return transaction


# ---------------------------------------------------------------------- #
#  Output                                                                #
# ---------------------------------------------------------------------- #

def _element_to_json(element: etree._Element) -> Any:
    """xml2js-style projection: '$' attributes, '_' text, children as lists."""
    children = [child for child in element if isinstance(child.tag, str)]
    text = (element.text or "").strip()
    attributes = dict(element.attrib)

    if not children and not attributes:
        return text
    node: Dict[str, Any] = {}
    if text:
        node["_"] = text
    if attributes:
        node["$"] = attributes
    for child in children:
        node.setdefault(child.tag, []).append(_element_to_json(child))
    return node


def schema_to_json(root: etree._Element) -> str:
    return json.dumps({root.tag: _element_to_json(root)}, indent=2, ensure_ascii=False)


class FormatEmitter:
    """Table-driven emitter; holds only configuration, no per-call state."""

    def __init__(self, default_group_max: str = DEFAULT_GROUP_MAX):
        self.default_group_max = default_group_max
        self.logger = get_logger()

    def build_tree(self, structure: MessageStructure, dialect: str) -> etree._Element:
        """
        Raises:
            UnsupportedDialect: If the dialect is not in the table
            InvalidModel: If the structure has no segments
        """
        resolved = get_dialect(dialect)
        if structure is None or not structure.segments:
            raise InvalidModel("Message structure has no segments to emit")

        root = _message_root(structure)
        if resolved.fixed_width:
            emit_idoc_records(root, linearize(structure.segments))
        else:
            _emit_nodes(root, structure.segments, resolved, self.default_group_max)
        return root

    def emit(self, structure: MessageStructure, dialect: str, output_format: str = OUTPUT_XML) -> FormatDescriptor:
        """
        Compile a message structure into a format descriptor.

        Args:
            structure: Assembled or loaded message structure
            dialect: EDIFACT, X12 or IDOC
            output_format: "xml" (ixDOC schema) or "json" (attribute/children projection)

        Returns:
            FormatDescriptor with the schema text and the derived file name
        """
        if output_format not in (OUTPUT_XML, OUTPUT_JSON):
            raise ValueError(f"Unsupported output format: {output_format}")

        root = self.build_tree(structure, dialect)
        if output_format == OUTPUT_XML:
            content = etree.tostring(root, pretty_print=True, encoding="unicode")
        else:
            content = schema_to_json(root)

        file_name = derive_file_name(dialect, get_dialect(dialect).name, structure.revision, structure.document)
        self.logger.info(f"Generated {get_dialect(dialect).name} format for {structure.document} ({len(content)} chars)")
        return FormatDescriptor(content=content, file_name=file_name)


def emit_format_descriptor(structure: MessageStructure, dialect: str,
                           default_group_max: str = DEFAULT_GROUP_MAX,
                           output_format: str = OUTPUT_XML) -> FormatDescriptor:
    """Module-level shortcut for FormatEmitter(...).emit(...)."""
    return FormatEmitter(default_group_max).emit(structure, dialect, output_format)
