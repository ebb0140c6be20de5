"""
Pytest configuration and shared fixtures for the EDI Spec Compiler.

Provides a small ORDERS-like directory listing (service segments, two
top-level groups, one nested group) and the detail blocks of its segments,
laid out with the 3-space indentation of the real pages.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from edi_spec_compiler.extraction.segment_detail import segment_detail_source
from edi_spec_compiler.models import (
    CONDITIONAL,
    MANDATORY,
    Composite,
    Element,
    Group,
    MessageStructure,
    Segment,
)


def _segment_entry(tag: str, title: str, annotation: str, description: str = "") -> str:
    return (
        '<div class="isotope-container">'
        f'<h3 class="deep"><a href="#{tag}">{tag}</a> {title}</h3>'
        f'<span class="status">{annotation}</span>'
        f'<p>{description}</p>'
        '</div>'
    )


def _group_entry(number: int, repeat: int, description: str, children: str) -> str:
    return (
        '<div class="isotope-container">'
        f'<h3>Segment group {number} SG{number} C({repeat})</h3>'
        f'<p>{description}</p>'
        f'<div class="collapse">{children}</div>'
        '</div>'
    )


ORDERS_LISTING = (
    '<div class="listing">'
    + _segment_entry("UNH", "Message header", "M(1)", "To head, identify and specify a message.")
    + _segment_entry("BGM", "Beginning of message", "M(1)", "To indicate the type and function of a message.")
    + _segment_entry("DTM", "Date/time/period", "M(35)", "To specify date, and/or time, or period.")
    + _group_entry(
        1, 99, "A group of segments for specifying references.",
        _segment_entry("RFF", "Reference", "M(1)", "To specify a reference.")
        + _segment_entry("DTM", "Date/time/period", "C(5)", "Reference date."),
    )
    + _group_entry(
        2, 99, "A group of segments identifying the parties.",
        _segment_entry("NAD", "Name and address", "M(1)", "To specify the name/address.")
        + _group_entry(
            3, 9, "A group of segments giving contact details.",
            _segment_entry("CTA", "Contact information", "M(1)", "To identify a person or department."),
        ),
    )
    + _segment_entry("UNT", "Message trailer", "M(1)", "To end and check the completeness of a message.")
    + '</div>'
)

BGM_DETAIL = "\n".join([
    "C002  DOCUMENT/MESSAGE NAME                        C",
    "   1001  Document name code                        C    an..3",
    "   1131  Code list identification code             C    an..17",
    "   3055  Code list responsible agency code         C    an..3",
    "   1000  Document name                             C    an..35",
    "1004  Document identifier                          C    an..35",
    "1225  Message function code                        C    an..3",
    "4343  Response type code                           C    an..3",
])

UNH_DETAIL = "\n".join([
    "0062  Message reference number                     M    an..14",
    "S009  MESSAGE IDENTIFIER                           M",
    "   0065  Message type                              M    an..6",
    "   0052  Message version number                    M    an..3",
    "   0054  Message release number                    M    an..3",
    "   0051  Controlling agency, coded                 M    an..3",
])

DTM_DETAIL = "\n".join([
    "C507  DATE/TIME/PERIOD                             M",
    "   2005  Date or time or period function code qualifier  M    an..3",
    "   2380  Date or time or period value                    C    an..35",
    "   2379  Date or time or period format code              C    an..3",
])

RFF_DETAIL = "\n".join([
    "C506  REFERENCE                                    M",
    "   1153  Reference code qualifier                  M    an..3",
    "   1154  Reference identifier                      C    an..70",
])

NAD_DETAIL = "\n".join([
    "3035  Party function code qualifier                M    an..3",
    "C082  PARTY IDENTIFICATION DETAILS                 C",
    "   3039  Party identifier                          M    an..35",
])

CTA_DETAIL = "\n".join([
    "3139  Contact function code                        C    an..3",
])

UNT_DETAIL = "\n".join([
    "0074  Number of segments in a message              M    n..10",
    "0062  Message reference number                     M    an..14",
])

SEGMENT_DETAILS = {
    "UNH": UNH_DETAIL,
    "BGM": BGM_DETAIL,
    "DTM": DTM_DETAIL,
    "RFF": RFF_DETAIL,
    "NAD": NAD_DETAIL,
    "CTA": CTA_DETAIL,
    "UNT": UNT_DETAIL,
}


@pytest.fixture
def orders_listing() -> str:
    return ORDERS_LISTING


@pytest.fixture
def segment_details():
    return dict(SEGMENT_DETAILS)


@pytest.fixture
def detail_source(segment_details):
    return segment_detail_source(segment_details)


@pytest.fixture
def bgm_structure() -> MessageStructure:
    """Minimal EDIFACT message: one mandatory BGM with a composite and a bare element."""
    return MessageStructure(
        standard="EDIFACT",
        revision="D97A",
        document="ORDERS",
        segments=[
            Segment(
                position="0010",
                tag="BGM",
                name="BGM",
                description="Beginning of message",
                requirement=MANDATORY,
                elements=[
                    Composite(
                        position="010",
                        code="C002",
                        name="DOCUMENT/MESSAGE NAME",
                        requirement=CONDITIONAL,
                        elements=[
                            Element(position="010001", code="1001", name="Document name code",
                                    data_type="String (AN)", max_length="3"),
                        ],
                    ),
                    Element(position="020", code="1004", name="Document identifier",
                            data_type="String (AN)", max_length="35"),
                ],
            ),
        ],
    )


@pytest.fixture
def grouped_structure() -> MessageStructure:
    """UNH, SG1(RFF), UNT with a mandatory composite inside the group."""
    return MessageStructure(
        standard="EDIFACT",
        revision="D97A",
        document="ORDERS",
        segments=[
            Segment(position="0010", tag="UNH", requirement=MANDATORY,
                    elements=[Element(position="010", code="0062", requirement=MANDATORY, max_length="14")]),
            Group(
                position="0020",
                code="SG1",
                max_occurs="99",
                segments=[
                    Segment(
                        position="0030",
                        tag="RFF",
                        requirement=MANDATORY,
                        elements=[
                            Composite(position="010", code="C506", requirement=MANDATORY, elements=[
                                Element(position="010001", code="1153", requirement=MANDATORY, max_length="3"),
                                Element(position="010002", code="1154", max_length="70"),
                            ]),
                        ],
                    ),
                ],
            ),
            Segment(position="0040", tag="UNT", requirement=MANDATORY, max_occurs="1"),
        ],
    )
