"""
Directory Extractor.
Reads a message's directory listing markup into an ordered sequence of group
and segment markers, and resolves which group each entry is nested under.

Listing entries are `.isotope-container` blocks. A group heading carries an
`SG<n>` token and a `C(<n>)` repeat count; a segment entry carries its tag in
`h3.deep a` and an `M(<n>)`/`C(<n>)` annotation. Entries nested under a group
live in a `.collapse` region preceded by that group's `h3`.
"""
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from bs4 import BeautifulSoup
from bs4.element import Tag

from edi_spec_compiler.errors import ParseSkipped
from edi_spec_compiler.extraction.segment_detail import DEFAULT_TAB_WIDTH, extract_segment_details
from edi_spec_compiler.logger import get_logger
from edi_spec_compiler.models import CONDITIONAL, MANDATORY, Composite, Element

GROUP = "group"
SEGMENT = "segment"

RE_GROUP_CODE = re.compile(r'SG(\d+)')
RE_GROUP_REPEAT = re.compile(r'C\((\d+)\)')
RE_SEGMENT_REPEAT = re.compile(r'([MC])\((\d+)\)')
RE_SEGMENT_TAG = re.compile(r'\b([A-Z][A-Z0-9]{2})\b')

DetailSource = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class DirectoryMarker:
    """One listing entry, in source order."""
    kind: str
    code: str
    original_position: int
    description: str = ""
    requirement: str = CONDITIONAL
    max_occurs: str = "1"
    parent_group: Optional[str] = None
    elements: Tuple[Union[Element, Composite], ...] = ()

    @property
    def position(self) -> str:
        """4-digit position derived from the source ordinal (0010, 0020, ...)."""
        return str((self.original_position + 1) * 10).zfill(4)


@dataclass
class DirectoryListing:
    """Markers plus the group nesting discovered on the page."""
    markers: List[DirectoryMarker] = field(default_factory=list)
    # group code -> enclosing group code
    parent_of: Dict[str, str] = field(default_factory=dict)

    def group_children(self) -> Dict[str, List[str]]:
        """parent group -> child groups, children in source order."""
        children: Dict[str, List[str]] = {}
        for marker in self.markers:
            if marker.kind != GROUP:
                continue
            parent = self.parent_of.get(marker.code)
            if parent:
                children.setdefault(parent, []).append(marker.code)
        return children


def _enclosing_group(entry: Tag) -> Optional[str]:
    """Code of the group whose collapsible region holds this entry."""
    collapse = entry.find_parent(class_="collapse")
    if collapse is None:
        return None
    heading = collapse.find_previous_sibling("h3")
    if heading is None:
        return None
    match = RE_GROUP_CODE.search(heading.get_text(" ", strip=True))
    return f"SG{match.group(1)}" if match else None


def _parse_entry(entry: Tag, index: int) -> DirectoryMarker:
    heading = entry.find("h3")
    title = heading.get_text(" ", strip=True) if heading else ""
    paragraph = entry.find("p")
    description = paragraph.get_text(" ", strip=True) if paragraph else ""
    parent = _enclosing_group(entry)

    group_match = RE_GROUP_CODE.search(title)
    if group_match:
        repeat = RE_GROUP_REPEAT.search(title)
        return DirectoryMarker(
            kind=GROUP,
            code=f"SG{group_match.group(1)}",
            original_position=index,
            description=description,
            requirement=CONDITIONAL,
            max_occurs=repeat.group(1) if repeat else "1",
            parent_group=parent,
        )

    anchor = entry.select_one("h3.deep a")
    anchor_text = anchor.get_text(strip=True) if anchor else ""
    tag_match = RE_SEGMENT_TAG.search(anchor_text)
    if not tag_match:
        raise ParseSkipped(title or entry.get_text(" ", strip=True), "neither group nor segment entry")

    after_title = entry.get_text(" ", strip=True).replace(title, "", 1)
    repeat = RE_SEGMENT_REPEAT.search(after_title)
    return DirectoryMarker(
        kind=SEGMENT,
        code=tag_match.group(1),
        original_position=index,
        description=description,
        requirement=MANDATORY if repeat and repeat.group(1) == "M" else CONDITIONAL,
        max_occurs=repeat.group(2) if repeat else "1",
        parent_group=parent,
    )


def parse_listing(markup: str) -> DirectoryListing:
    """
    Read listing markup into markers and the group parent map.
    Segment markers come back without elements.
    """
    logger = get_logger()
    soup = BeautifulSoup(markup, "html.parser")

    listing = DirectoryListing()
    for index, entry in enumerate(soup.select(".isotope-container")):
        try:
            marker = _parse_entry(entry, index)
        except ParseSkipped as e:
            logger.debug(str(e))
            continue

        listing.markers.append(marker)
        if marker.kind == GROUP and marker.parent_group:
            listing.parent_of[marker.code] = marker.parent_group
            logger.info(f"Relationship detected: {marker.parent_group} is parent of {marker.code}")

    logger.info(
        f"Listing parsed: {sum(1 for m in listing.markers if m.kind == GROUP)} groups, "
        f"{sum(1 for m in listing.markers if m.kind == SEGMENT)} segments"
    )
    return listing


class DirectoryExtractor:
    """
    Builds the full marker sequence for one message: listing markers with each
    segment's Element/Composite tree attached.
    """

    def __init__(self, detail_source: DetailSource, tab_width: int = DEFAULT_TAB_WIDTH):
        """
        Args:
            detail_source: Returns the detail text/markup for a segment tag,
                or None when it is not available
            tab_width: Leading spaces per indentation level in detail blocks
        """
        self.detail_source = detail_source
        self.tab_width = tab_width
        self.logger = get_logger()

    def extract(self, markup: str) -> DirectoryListing:
        listing = parse_listing(markup)
        details_cache: Dict[str, Tuple[Union[Element, Composite], ...]] = {}

        markers = []
        for marker in listing.markers:
            if marker.kind == SEGMENT:
                if marker.code not in details_cache:
                    details_cache[marker.code] = self.segment_elements(marker.code)
                marker = DirectoryMarker(
                    kind=marker.kind,
                    code=marker.code,
                    original_position=marker.original_position,
                    description=marker.description,
                    requirement=marker.requirement,
                    max_occurs=marker.max_occurs,
                    parent_group=marker.parent_group,
                    elements=details_cache[marker.code],
                )
            markers.append(marker)

        return DirectoryListing(markers=markers, parent_of=dict(listing.parent_of))

    def segment_elements(self, tag: str) -> Tuple[Union[Element, Composite], ...]:
        """Run the detail extractor on one segment's detail text."""
        self.logger.info(f"Retrieving segment details: {tag}")
        text = self.detail_source(tag)
        if text is None:
            self.logger.warning(f"No detail available for segment {tag}; keeping it without elements")
            return ()
        return tuple(extract_segment_details(text, self.tab_width)["Elements"])
