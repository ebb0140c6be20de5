"""
Message structure model.

Immutable tree of Group / Segment / Composite / Element nodes rooted at a
MessageStructure. Field aliases are the keys of the persisted JSON artifact
(Min, Max, Scope, Position, Segment, Name, ...), so a model dumped with
``by_alias=True`` is the interchange file and a loaded interchange file is a
model again.
"""
import json
import re
from typing import Annotated, Any, Dict, Iterator, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, model_validator

MANDATORY = "Mandatory"
CONDITIONAL = "Conditional"
UNBOUNDED = "unbounded"
SCOPE_USED = "Used"
COMPOSITE_TYPE = "Composite (composite)"

_COMPOSITE_CODE = re.compile(r'^[SC]\d{3,4}$')
_GROUP_CODE = re.compile(r'^SG\d+$')


def normalize_requirement(value: Optional[str]) -> str:
    """Map M/C/mandatory/... onto the two requirement labels."""
    if value and value.strip().lower() in ("m", "mandatory"):
        return MANDATORY
    return CONDITIONAL


class _Node(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    @property
    def is_mandatory(self) -> bool:
        return self.requirement == MANDATORY

    @model_validator(mode="before")
    @classmethod
    def _normalize_requirement(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for key in ("Requirement", "requirement"):
                if key in data:
                    data = {**data, key: normalize_requirement(data[key])}
        return data


class Element(_Node):
    """Leaf field of a segment or composite."""

    scope: str = Field(SCOPE_USED, alias="Scope")
    position: str = Field("", alias="Position")
    code: str = Field(alias="Element")
    name: str = Field("", alias="Name")
    description: str = Field("", alias="Description")
    requirement: str = Field(CONDITIONAL, alias="Requirement")
    data_type: str = Field("", alias="Type")
    min_length: str = Field("1", alias="Min")
    max_length: str = Field("", alias="Max")


class Composite(_Node):
    """Group of elements sharing one wire position."""

    scope: str = Field(SCOPE_USED, alias="Scope")
    position: str = Field("", alias="Position")
    code: str = Field(alias="Element")
    name: str = Field("", alias="Name")
    description: str = Field("", alias="Description")
    requirement: str = Field(CONDITIONAL, alias="Requirement")
    data_type: str = Field(COMPOSITE_TYPE, alias="Type")
    elements: List[Element] = Field(default_factory=list, alias="Elements")


def _segment_child_kind(value: Any) -> str:
    if isinstance(value, dict):
        code = str(value.get("Element", value.get("code", "")))
        if "Elements" in value or "elements" in value or _COMPOSITE_CODE.match(code):
            return "composite"
        return "element"
    return "composite" if isinstance(value, Composite) else "element"


SegmentChild = Annotated[
    Union[
        Annotated[Composite, Tag("composite")],
        Annotated[Element, Tag("element")],
    ],
    Discriminator(_segment_child_kind),
]


def _default_min_occurs(data: Any) -> Any:
    """Mandatory nodes occur at least once, conditional ones may be absent."""
    if isinstance(data, dict) and "Min" not in data and "min_occurs" not in data:
        requirement = data.get("Requirement", data.get("requirement"))
        data = {**data, "Min": "1" if normalize_requirement(requirement) == MANDATORY else "0"}
    return data


class Segment(_Node):
    """One structural line of the message, identified by its tag."""

    min_occurs: str = Field("0", alias="Min")
    max_occurs: str = Field("1", alias="Max")
    scope: str = Field(SCOPE_USED, alias="Scope")
    position: str = Field("", alias="Position")
    tag: str = Field(alias="Segment")
    name: str = Field("", alias="Name")
    description: str = Field("", alias="Description")
    requirement: str = Field(CONDITIONAL, alias="Requirement")
    elements: List[SegmentChild] = Field(default_factory=list, alias="Elements")
    # IDoc segment type (E2EDK01005 style); EDI segments leave it unset
    segment_type: Optional[str] = Field(None, alias="Type")

    @model_validator(mode="before")
    @classmethod
    def _min_from_requirement(cls, data: Any) -> Any:
        return _default_min_occurs(data)

    @model_validator(mode="after")
    def _check_min_occurs(self) -> "Segment":
        if self.is_mandatory and self.min_occurs in ("", "0"):
            raise ValueError(f"Mandatory segment {self.tag} must have Min of at least 1")
        if not self.is_mandatory and self.min_occurs != "0":
            raise ValueError(f"Conditional segment {self.tag} must have Min 0, got {self.min_occurs}")
        return self


class Group(_Node):
    """Repeatable block (SG<n>) of segments and nested groups."""

    min_occurs: str = Field("0", alias="Min")
    max_occurs: Optional[str] = Field(None, alias="Max")
    scope: str = Field(SCOPE_USED, alias="Scope")
    position: str = Field("", alias="Position")
    code: str = Field(alias="Segment")
    name: str = Field("", alias="Name")
    description: str = Field("", alias="Description")
    requirement: str = Field(CONDITIONAL, alias="Requirement")
    segments: List["SegmentOrGroup"] = Field(default_factory=list, alias="Segments")

    @model_validator(mode="after")
    def _check_min_occurs(self) -> "Group":
        if self.min_occurs != "0":
            raise ValueError(f"Group {self.code} must have Min 0, got {self.min_occurs}")
        return self


def _structure_child_kind(value: Any) -> str:
    if isinstance(value, dict):
        code = str(value.get("Segment", value.get("code", value.get("tag", ""))))
        if "Segments" in value or "segments" in value or _GROUP_CODE.match(code):
            return "group"
        return "segment"
    return "group" if isinstance(value, Group) else "segment"


SegmentOrGroup = Annotated[
    Union[
        Annotated[Group, Tag("group")],
        Annotated[Segment, Tag("segment")],
    ],
    Discriminator(_structure_child_kind),
]

Group.model_rebuild()


class MessageStructure(BaseModel):
    """Root of one compiled message definition."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    standard: str = Field(alias="Standard")
    revision: str = Field("", alias="Revision")
    document: str = Field(alias="Document")
    segments: List[SegmentOrGroup] = Field(default_factory=list, alias="Segments")

    def to_dict(self) -> Dict[str, Any]:
        """Projection used as the persisted interchange file."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "MessageStructure":
        return cls.model_validate(json.loads(text))


class IdocRecord(BaseModel):
    """
    One line of the linear IDoc layout: a group marker
    (Position = <code>_GROUP_BEGIN / <code>_GROUP_END), a segment or a field.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    position: str = Field("", alias="Position")
    segment: Optional[str] = Field(None, alias="Segment")
    segment_type: Optional[str] = Field(None, alias="Type")
    max_occurs: str = Field("1", alias="Max")
    field_name: Optional[str] = Field(None, alias="Field")
    length: Optional[int] = Field(None, alias="Length")
    description: Optional[str] = Field(None, alias="Description")


def iter_groups(nodes: List[Union[Segment, Group]]) -> Iterator[Group]:
    """Yield every group in the subtree, depth-first in document order."""
    for node in nodes:
        if isinstance(node, Group):
            yield node
            yield from iter_groups(node.segments)


def count_segments(node: Union[Segment, Group]) -> int:
    """Count a node plus everything nested below it."""
    if isinstance(node, Segment) or not node.segments:
        return 1
    return 1 + sum(count_segments(child) for child in node.segments)
