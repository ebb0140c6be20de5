"""
Segment Detail Extractor.
Parses the pre-formatted composite/element block of one segment into a local
Composite/Element tree. Nesting is recovered from indentation only.

A detail block looks like:

    C002  DOCUMENT/MESSAGE NAME                        C
       1001  Document name code                        C    an..3
       1131  Code list identification code             C    an..17
    1004  Document identifier                          C    an..35
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from bs4 import BeautifulSoup

from edi_spec_compiler.errors import ParseSkipped
from edi_spec_compiler.logger import get_logger
from edi_spec_compiler.models import (
    COMPOSITE_TYPE,
    Composite,
    Element,
    normalize_requirement,
)

DEFAULT_TAB_WIDTH = 3
POSITION_STEP = 10

COMPOSITE = "composite"
ELEMENT = "element"

RE_COMPOSITE_CODE = re.compile(r'^[SC]\d{3,4}')
RE_ELEMENT_CODE = re.compile(r'^\d{4}')
RE_ELEMENT_LINE = re.compile(r'^(\d{4})\s+(.+?)\s+([MC])\s+(?:\d+\s+)?((?:an|a|n)[\d.]+)')
RE_COMPOSITE_LINE = re.compile(r'^([SC]\d{3,4})\s+(.+?)(?:\s+([MC]))?(?:\s+\d+)?\s*$')
RE_FORMAT = re.compile(r'^(an|a|n)(\d+)?(\.\.)?(\d+)$')

TYPE_LABELS = {
    "an": "String (AN)",
    "n": "Numeric (N)",
    "a": "Alpha (A)",
}


@dataclass(frozen=True)
class ClassifiedLine:
    """Result of classify_line: what the line is, how deep, and the trimmed text."""
    kind: str
    indent: int
    payload: str


@dataclass
class _OpenNode:
    line: ClassifiedLine
    children: List["_OpenNode"] = field(default_factory=list)


def classify_line(line: str, tab_width: int = DEFAULT_TAB_WIDTH) -> ClassifiedLine:
    """
    Classify one raw line of a detail block.

    Raises:
        ParseSkipped: If the line is blank or starts with neither a composite
            nor an element code
    """
    payload = line.strip()
    if not payload:
        raise ParseSkipped(line, "blank line")

    leading_spaces = len(line) - len(line.lstrip(' \t'))
    indent = leading_spaces // tab_width

    if RE_COMPOSITE_CODE.match(payload):
        return ClassifiedLine(COMPOSITE, indent, payload)
    if RE_ELEMENT_CODE.match(payload):
        return ClassifiedLine(ELEMENT, indent, payload)
    raise ParseSkipped(line)


def parse_format(token: str) -> Tuple[str, str, str]:
    """
    Split a format token into (type label, min length, max length).

    an..35 -> ("String (AN)", "1", "35")
    n3     -> ("Numeric (N)", "1", "3")
    an1..3 -> ("String (AN)", "1", "3")
    """
    match = RE_FORMAT.match(token)
    if not match:
        raise ParseSkipped(token, "unrecognized format token")

    letter_class, low, dots, high = match.groups()
    if low and not dots:
        # an35 style: the digits belong to the max
        high, low = low + high if high else low, None
    return TYPE_LABELS[letter_class], low or "1", high


def _build_element(payload: str, position: str) -> Element:
    match = RE_ELEMENT_LINE.match(payload)
    if not match:
        raise ParseSkipped(payload, "element line without requirement/format")

    code, name, requirement, token = match.groups()
    data_type, min_length, max_length = parse_format(token)
    return Element(
        position=position,
        code=code,
        name=name.strip(),
        requirement=normalize_requirement(requirement),
        data_type=data_type,
        min_length=min_length,
        max_length=max_length,
    )


def _build_composite(node: _OpenNode, position: str) -> Composite:
    payload = node.line.payload
    match = RE_COMPOSITE_LINE.match(payload)
    if match:
        code, name, requirement = match.group(1), match.group(2), match.group(3)
    else:
        code, _, name = payload.partition(' ')
        requirement = None

    logger = get_logger()
    elements = []
    for child in node.children:
        if child.line.kind != ELEMENT:
            logger.debug(f"Nested composite ignored inside {code}: {child.line.payload}")
            continue
        child_position = position + str(len(elements) + 1).zfill(3)
        try:
            elements.append(_build_element(child.line.payload, child_position))
        except ParseSkipped as e:
            logger.debug(str(e))

    return Composite(
        position=position,
        code=code,
        name=name.strip(),
        requirement=normalize_requirement(requirement),
        data_type=COMPOSITE_TYPE,
        elements=elements,
    )


def build_tree(lines: List[ClassifiedLine]) -> List[_OpenNode]:
    """Attach each classified line to its nearest open composite by indent."""
    root = _OpenNode(ClassifiedLine("root", -1, ""))
    stack = [root]

    for line in lines:
        while len(stack) > line.indent + 1:
            stack.pop()
        node = _OpenNode(line)
        stack[-1].children.append(node)
        if line.kind == COMPOSITE:
            stack.append(node)

    return root.children


def extract_pre_text(markup: str) -> str:
    """Return the detail block text, unwrapping the popup markup if given."""
    if "<pre" not in markup.lower():
        return markup
    soup = BeautifulSoup(markup, "html.parser")
    pre = soup.select_one(".segment-content pre") or soup.find("pre")
    return pre.get_text() if pre else ""


def extract_segment_details(text: str, tab_width: int = DEFAULT_TAB_WIDTH) -> Dict[str, List[Union[Element, Composite]]]:
    """
    Parse one segment's detail block into its ordered Element/Composite list.

    Args:
        text: Pre-formatted block, or the popup markup holding it
        tab_width: Leading spaces per indentation level

    Returns:
        {"Elements": [...]} in document order
    """
    logger = get_logger()
    block = extract_pre_text(text)

    classified = []
    for raw in block.split('\n'):
        if not raw.strip():
            continue
        try:
            classified.append(classify_line(raw.rstrip('\r'), tab_width))
        except ParseSkipped as e:
            logger.debug(str(e))

    elements: List[Union[Element, Composite]] = []
    counter = POSITION_STEP
    for node in build_tree(classified):
        if node.line.indent > 0:
            # Indented line with no open composite above it
            logger.debug(f"Orphan line skipped: {node.line.payload}")
            continue
        position = str(counter).zfill(3)
        try:
            if node.line.kind == COMPOSITE:
                elements.append(_build_composite(node, position))
            else:
                elements.append(_build_element(node.line.payload, position))
        except ParseSkipped as e:
            logger.debug(str(e))
            continue
        counter += POSITION_STEP

    logger.debug(f"Extracted {len(elements)} top-level elements/composites")
    return {"Elements": elements}


def segment_detail_source(details: Dict[str, str]):
    """Wrap a tag -> markup mapping as the callable the directory extractor expects."""
    def _lookup(tag: str) -> Optional[str]:
        return details.get(tag)
    return _lookup
