"""
Order-Preserving Assembler.
Merges the listing's groups and segments into one MessageStructure tree.

Only top-level groups are placed at the root; every sub-group is attached
beneath its parent exactly once. Sibling order at every depth follows the
entries' original listing positions.
"""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Union

from edi_spec_compiler.errors import AssemblyInvariantViolation
from edi_spec_compiler.extraction.directory import GROUP, SEGMENT, DirectoryListing, DirectoryMarker
from edi_spec_compiler.logger import get_logger
from edi_spec_compiler.models import (
    CONDITIONAL,
    MANDATORY,
    Group,
    MessageStructure,
    Segment,
    count_segments,
)


@dataclass
class _WorkNode:
    """Mutable node used while assembling; original_position never leaves this module."""
    original_position: int
    marker: DirectoryMarker
    children: List["_WorkNode"] = field(default_factory=list)


def _segment_from_marker(marker: DirectoryMarker) -> Segment:
    return Segment(
        min_occurs="1" if marker.requirement == MANDATORY else "0",
        max_occurs=marker.max_occurs,
        position=marker.position,
        tag=marker.code,
        name=marker.code,
        description=marker.description,
        requirement=marker.requirement,
        elements=list(marker.elements),
    )


def _freeze(node: _WorkNode) -> Union[Segment, Group]:
    """Sort children by original position (stable) and build the immutable node."""
    marker = node.marker
    if marker.kind == SEGMENT:
        return _segment_from_marker(marker)

    ordered = sorted(node.children, key=lambda child: child.original_position)
    return Group(
        min_occurs="0",
        max_occurs=marker.max_occurs,
        position=marker.position,
        code=marker.code,
        name=marker.code,
        description=marker.description,
        requirement=CONDITIONAL,
        segments=[_freeze(child) for child in ordered],
    )


def attach_group(
    code: str,
    parent_children: List[_WorkNode],
    groups: Dict[str, _WorkNode],
    group_children: Dict[str, List[str]],
    emitted: FrozenSet[str],
) -> FrozenSet[str]:
    """
    Attach a group and, depth-first, all of its sub-groups.

    Returns:
        The emitted set extended with every group attached here

    Raises:
        AssemblyInvariantViolation: If a group would be attached a second time
    """
    if code in emitted:
        raise AssemblyInvariantViolation(f"Group {code} would appear twice in the message tree")

    node = groups[code]
    parent_children.append(node)
    emitted = emitted | {code}

    for child_code in group_children.get(code, []):
        if child_code not in groups:
            continue
        emitted = attach_group(child_code, node.children, groups, group_children, emitted)
    return emitted


def assemble_structure(
    standard: str,
    revision: str,
    document: str,
    listing: DirectoryListing,
) -> MessageStructure:
    """
    Build the ordered message tree from the listing markers.

    Args:
        standard: e.g. "EDIFACT"
        revision: e.g. "D97A"
        document: e.g. "ORDERS"
        listing: Markers (segments carrying their elements) plus parent map

    Raises:
        AssemblyInvariantViolation: If a group ends up nested twice, or a
            sub-group can never be reached from the root
    """
    logger = get_logger()
    group_children = listing.group_children()
    sub_groups = {child for children in group_children.values() for child in children}

    groups: Dict[str, _WorkNode] = {}
    for marker in listing.markers:
        if marker.kind == GROUP:
            groups[marker.code] = _WorkNode(marker.original_position, marker)

    root: List[_WorkNode] = []
    emitted: FrozenSet[str] = frozenset()

    for marker in listing.markers:
        if marker.kind == SEGMENT:
            node = _WorkNode(marker.original_position, marker)
            parent: Optional[_WorkNode] = groups.get(marker.parent_group) if marker.parent_group else None
            if parent is not None:
                logger.debug(f"Segment {marker.code} added to group: {marker.parent_group}")
                parent.children.append(node)
            else:
                logger.debug(f"Segment {marker.code} added to main structure")
                root.append(node)
        elif marker.code not in sub_groups and marker.code not in emitted:
            logger.debug(f"Top-level group added to structure: {marker.code}")
            emitted = attach_group(marker.code, root, groups, group_children, emitted)

    unreached = sorted(set(groups) - emitted)
    if unreached:
        raise AssemblyInvariantViolation(
            f"Groups never reachable from the message root: {', '.join(unreached)}"
        )

    root.sort(key=lambda node: node.original_position)
    structure = MessageStructure(
        standard=standard,
        revision=revision,
        document=document,
        segments=[_freeze(node) for node in root],
    )
    log_summary(structure)
    return structure


def log_summary(structure: MessageStructure) -> int:
    """Log per-entry segment counts; returns the grand total."""
    logger = get_logger()
    logger.info(f"Total number of top-level segments/groups: {len(structure.segments)}")

    total = 0
    for node in structure.segments:
        count = count_segments(node)
        code = node.code if isinstance(node, Group) else node.tag
        logger.debug(f"{code} : {count} segments (including sub-groups)")
        total += count
    logger.info(f"Total of all segments: {total}")
    return total
