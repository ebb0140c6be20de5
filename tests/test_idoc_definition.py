import pandas as pd
import pytest

from edi_spec_compiler.extraction.idoc_definition import (
    REQUIRED_COLS,
    IdocDefinitionLoader,
    build_idoc_structure,
    parse_idoc_documentation,
)
from edi_spec_compiler.generation.format_emitter import emit_format_descriptor
from edi_spec_compiler.models import CONDITIONAL, MANDATORY

IDOC_DOCUMENTATION = """
E1EDK01 : IDoc: Document header general data
Status : Mandatory , min. number : 1 , max. number : 1

E1EDKA1 : IDoc: Document Header Partner Information
Status : Optional , min. number : 1 , max. number : 99

E1EDK01 : IDoc: Document header general data
Segment definition E2EDK01005 Released since Release 46C

ACTION : Action code for the whole EDI message
internal data type : CHAR
Internal length : 000003 characters
Position in segment : 002, Offset : 0063. external length : 000003

CURCY : Currency
internal data type : CUKY
Internal length : 000005 characters
Position in segment : 003, Offset : 0066. external length : 000003

E1EDKA1 : IDoc: Document Header Partner Information
Segment definition E2EDKA1003 Released since Release 45A

PARVW : Partner function (e.g. sold-to party, ship-to party, ...)
internal data type : CHAR
Internal length : 000003 characters
Position in segment : 002, Offset : 0063. external length : 000003
"""


def test_documentation_rows():
    rows = parse_idoc_documentation(IDOC_DOCUMENTATION)

    assert [(r["Segment name"], r["Element name"]) for r in rows] == [
        ("E1EDK01", "ACTION"), ("E1EDK01", "CURCY"), ("E1EDKA1", "PARVW"),
    ]
    action = rows[0]
    assert action["Status"] == "Mandatory"
    assert action["Data type"] == "CHAR"
    assert action["External length"] == "000003"
    assert action["Position in segment"] == "002"
    assert rows[2]["Max number"] == "99"


def test_structure_from_documentation():
    structure = build_idoc_structure(parse_idoc_documentation(IDOC_DOCUMENTATION), "ORDERS05")

    assert structure.standard == "IDOC"
    assert [s.tag for s in structure.segments] == ["E1EDK01", "E1EDKA1"]
    assert [s.position for s in structure.segments] == ["0010", "0020"]

    header, partner = structure.segments
    assert header.requirement == MANDATORY
    assert header.min_occurs == "1"
    assert partner.requirement == CONDITIONAL
    assert partner.max_occurs == "99"
    assert [(e.code, e.position, e.max_length) for e in header.elements] == [
        ("ACTION", "002", "000003"), ("CURCY", "003", "000003"),
    ]


def test_documentation_compiles_to_idoc_descriptor():
    structure = build_idoc_structure(parse_idoc_documentation(IDOC_DOCUMENTATION), "ORDERS05")
    descriptor = emit_format_descriptor(structure, "IDOC")

    assert descriptor.file_name == "DN__IDoc-Fixed-ORDERS05-ORDERS0.xml"
    assert "<SEGNAM" in descriptor.content
    assert 'length="3"' in descriptor.content


def test_workbook_loader(tmp_path):
    path = tmp_path / "ORDERS05.xlsx"
    pd.DataFrame([
        {"Segment name": "E1EDK01", "Segment description": "Header", "Status": "Mandatory",
         "Element name": "ACTION", "Element description": "Action code", "Data type": "CHAR",
         "External length": 3},
        {"Segment name": "E1EDK01", "Segment description": "Header", "Status": "Mandatory",
         "Element name": "BELNR", "Element description": "Document number", "Data type": "CHAR",
         "External length": 35},
        {"Segment name": "E1EDP01", "Segment description": "Item", "Status": "Optional",
         "Element name": "POSEX", "Element description": "Item number", "Data type": "CHAR",
         "External length": None},
    ]).to_excel(path, index=False)

    structure = IdocDefinitionLoader(str(path)).load("ORDERS05")

    assert [s.tag for s in structure.segments] == ["E1EDK01", "E1EDP01"]
    header = structure.segments[0]
    assert header.requirement == MANDATORY
    assert header.description == "Header"
    assert [e.code for e in header.elements] == ["ACTION", "BELNR"]
    assert [e.position for e in header.elements] == ["001", "002"]
    assert [e.max_length for e in header.elements] == ["3", "35"]
    assert structure.segments[1].elements[0].max_length == ""


def test_workbook_missing_columns(tmp_path):
    path = tmp_path / "broken.xlsx"
    pd.DataFrame([{"Segment name": "E1EDK01"}]).to_excel(path, index=False)

    with pytest.raises(ValueError, match="missing columns"):
        IdocDefinitionLoader(str(path)).load("ORDERS05")


def test_missing_definition_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        IdocDefinitionLoader(str(tmp_path / "nope.txt")).load_rows()


def test_required_columns_match_workbook_layout():
    assert REQUIRED_COLS[0] == "Segment name"
    assert "External length" in REQUIRED_COLS
