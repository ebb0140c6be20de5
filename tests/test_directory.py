from edi_spec_compiler.extraction.directory import (
    GROUP,
    SEGMENT,
    DirectoryExtractor,
    parse_listing,
)
from edi_spec_compiler.models import CONDITIONAL, MANDATORY, Composite


def test_listing_markers_keep_source_order(orders_listing):
    listing = parse_listing(orders_listing)
    codes = [m.code for m in listing.markers]
    assert codes == ["UNH", "BGM", "DTM", "SG1", "RFF", "DTM", "SG2", "NAD", "SG3", "CTA", "UNT"]
    assert [m.original_position for m in listing.markers] == list(range(11))


def test_segment_marker_fields(orders_listing):
    markers = parse_listing(orders_listing).markers

    dtm = markers[2]
    assert dtm.kind == SEGMENT
    assert dtm.requirement == MANDATORY
    assert dtm.max_occurs == "35"
    assert dtm.position == "0030"
    assert dtm.description == "To specify date, and/or time, or period."
    assert dtm.parent_group is None

    nested_dtm = markers[5]
    assert nested_dtm.requirement == CONDITIONAL
    assert nested_dtm.max_occurs == "5"
    assert nested_dtm.parent_group == "SG1"


def test_group_marker_fields(orders_listing):
    markers = {m.code: m for m in parse_listing(orders_listing).markers if m.kind == GROUP}

    assert markers["SG1"].max_occurs == "99"
    assert markers["SG1"].requirement == CONDITIONAL
    assert markers["SG1"].parent_group is None
    assert markers["SG3"].max_occurs == "9"
    assert markers["SG3"].parent_group == "SG2"


def test_group_parent_map(orders_listing):
    listing = parse_listing(orders_listing)
    assert listing.parent_of == {"SG3": "SG2"}
    assert listing.group_children() == {"SG2": ["SG3"]}


def test_entries_without_group_or_tag_are_skipped():
    markup = (
        '<div class="isotope-container"><h3>Introduction</h3><p>Some prose.</p></div>'
        '<div class="isotope-container"><h3 class="deep"><a href="#">BGM</a> Beginning</h3> M(1)<p>d</p></div>'
    )
    listing = parse_listing(markup)
    assert [m.code for m in listing.markers] == ["BGM"]
    assert listing.markers[0].original_position == 1


def test_segment_without_annotation_defaults_to_conditional_once():
    markup = '<div class="isotope-container"><h3 class="deep"><a href="#">FTX</a> Free text</h3><p>x</p></div>'
    marker = parse_listing(markup).markers[0]
    assert marker.requirement == CONDITIONAL
    assert marker.max_occurs == "1"


def test_extractor_attaches_segment_details(orders_listing, detail_source):
    listing = DirectoryExtractor(detail_source).extract(orders_listing)
    bgm = listing.markers[1]

    assert bgm.code == "BGM"
    assert isinstance(bgm.elements[0], Composite)
    assert [e.code for e in bgm.elements] == ["C002", "1004", "1225", "4343"]
    assert all(m.elements == () for m in listing.markers if m.kind == GROUP)


def test_extractor_memoizes_details_per_tag(orders_listing, segment_details):
    calls = []

    def source(tag):
        calls.append(tag)
        return segment_details.get(tag)

    DirectoryExtractor(source).extract(orders_listing)
    assert calls.count("DTM") == 1
    assert sorted(calls) == sorted(set(calls))


def test_missing_detail_keeps_segment_without_elements(orders_listing):
    listing = DirectoryExtractor(lambda tag: None).extract(orders_listing)
    segments = [m for m in listing.markers if m.kind == SEGMENT]
    assert len(segments) == 8
    assert all(m.elements == () for m in segments)
