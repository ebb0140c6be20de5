import pytest

from edi_spec_compiler.errors import ParseSkipped
from edi_spec_compiler.extraction.segment_detail import (
    COMPOSITE,
    ELEMENT,
    classify_line,
    extract_pre_text,
    extract_segment_details,
    parse_format,
)
from edi_spec_compiler.models import COMPOSITE_TYPE, CONDITIONAL, MANDATORY, Composite, Element


def test_classify_composite_and_element_lines():
    composite = classify_line("C002  DOCUMENT/MESSAGE NAME   C")
    assert composite.kind == COMPOSITE
    assert composite.indent == 0

    element = classify_line("   1001  Document name code   C   an..3")
    assert element.kind == ELEMENT
    assert element.indent == 1
    assert element.payload.startswith("1001")


def test_classify_uses_configured_tab_width():
    assert classify_line("    1001  Name   C   an3", tab_width=4).indent == 1
    assert classify_line("    1001  Name   C   an3", tab_width=2).indent == 2


@pytest.mark.parametrize("line", ["", "   ", "Note: this segment is deprecated", "X123 nothing"])
def test_classify_rejects_unrecognized_lines(line):
    with pytest.raises(ParseSkipped):
        classify_line(line)


@pytest.mark.parametrize(
    "token, expected",
    [
        ("an..35", ("String (AN)", "1", "35")),
        ("n..14", ("Numeric (N)", "1", "14")),
        ("a1", ("Alpha (A)", "1", "1")),
        ("an3", ("String (AN)", "1", "3")),
        ("an35", ("String (AN)", "1", "35")),
        ("an1..3", ("String (AN)", "1", "3")),
    ],
)
def test_parse_format(token, expected):
    assert parse_format(token) == expected


def test_parse_format_rejects_unknown_class():
    with pytest.raises(ParseSkipped):
        parse_format("x..3")


def test_bgm_detail_builds_composite_then_elements(segment_details):
    elements = extract_segment_details(segment_details["BGM"])["Elements"]

    assert [e.code for e in elements] == ["C002", "1004", "1225", "4343"]
    assert [e.position for e in elements] == ["010", "020", "030", "040"]

    composite = elements[0]
    assert isinstance(composite, Composite)
    assert composite.name == "DOCUMENT/MESSAGE NAME"
    assert composite.requirement == CONDITIONAL
    assert composite.data_type == COMPOSITE_TYPE
    assert [e.code for e in composite.elements] == ["1001", "1131", "3055", "1000"]
    assert [e.position for e in composite.elements] == ["010001", "010002", "010003", "010004"]


def test_element_fields_are_parsed(segment_details):
    elements = extract_segment_details(segment_details["UNH"])["Elements"]
    reference = elements[0]

    assert isinstance(reference, Element)
    assert reference.code == "0062"
    assert reference.name == "Message reference number"
    assert reference.requirement == MANDATORY
    assert reference.data_type == "String (AN)"
    assert reference.min_length == "1"
    assert reference.max_length == "14"

    identifier = elements[1]
    assert isinstance(identifier, Composite)
    assert identifier.requirement == MANDATORY
    assert len(identifier.elements) == 4


def test_unrecognized_lines_are_skipped():
    text = "\n".join([
        "Segment notes: used to identify the document",
        "1004  Document identifier    C    an..35",
        "",
        "--------------------------------",
        "1225  Message function code  C    an..3",
    ])
    elements = extract_segment_details(text)["Elements"]
    assert [e.code for e in elements] == ["1004", "1225"]
    assert [e.position for e in elements] == ["010", "020"]


def test_orphan_indented_line_is_skipped():
    text = "\n".join([
        "   1001  Document name code   C    an..3",
        "1004  Document identifier     C    an..35",
    ])
    elements = extract_segment_details(text)["Elements"]
    assert [e.code for e in elements] == ["1004"]


def test_indentation_returns_to_top_level_after_composite():
    text = "\n".join([
        "C082  PARTY IDENTIFICATION DETAILS   C",
        "   3039  Party identifier            M    an..35",
        "3035  Party function code qualifier  M    an..3",
    ])
    elements = extract_segment_details(text)["Elements"]
    assert isinstance(elements[0], Composite)
    assert [e.code for e in elements[0].elements] == ["3039"]
    assert isinstance(elements[1], Element)
    assert elements[1].code == "3035"


def test_popup_markup_uses_pre_block(segment_details):
    markup = (
        '<div class="segment-popup"><h2>BGM</h2>'
        f'<div class="segment-content"><pre>{segment_details["BGM"]}</pre></div></div>'
    )
    assert extract_pre_text(markup) == segment_details["BGM"]
    elements = extract_segment_details(markup)["Elements"]
    assert [e.code for e in elements] == ["C002", "1004", "1225", "4343"]


def test_plain_text_passes_through_unchanged():
    assert extract_pre_text("1004  Document identifier  C  an..35") == "1004  Document identifier  C  an..35"
