"""
Data Normalizer (DN) builder.
Fills the fixed ixDOC skeleton that points the validator at a message's
format descriptor fragments. Pure lookup and substitution; no parsing.
"""
from dataclasses import dataclass
from typing import Optional

from edi_spec_compiler.generation.dialects import (
    EDIFACT,
    IDOC,
    MESSAGE_FRAGMENT,
    X12,
    clean_revision,
    derive_file_name,
    get_dialect,
    idoc_reference_name,
)

DN_EDI = "edi"
DN_IDOC = "idoc"
DN_CSV = "csv"

DEFAULT_FORMAT_ROOT = "./../../SFEDI/format"
CSV_FILE_NAME = "DN__CSV-Fixed.xml"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


@dataclass(frozen=True)
class DataNormalizer:
    content: str
    file_name: str


def _attributes(pairs) -> str:
    return " ".join(f'{key}="{value}"' for key, value in pairs)


def _edi_normalizer(standard: str, revision: str, message: str, format_root: str) -> DataNormalizer:
    dialect = get_dialect(standard)
    revision = clean_revision(revision)
    body_entity = dialect.message_entity.format(message=message)
    base = f"{format_root}/{dialect.fragment_dir}"

    entities = []
    references = []
    for fragment in dialect.fragments:
        if fragment == MESSAGE_FRAGMENT:
            entities.append(f'    <!ENTITY {body_entity} SYSTEM "{base}/{revision}/{message}.xml">')
            references.append(f"        &{body_entity};")
        else:
            entities.append(f'    <!ENTITY {fragment} SYSTEM "{base}/{fragment}.xml">')
            references.append(f"        &{fragment};")

    content = "\n".join([
        XML_DECLARATION,
        "<!DOCTYPE doc [",
        *entities,
        "]>",
        f"<ixDOC {_attributes(dialect.ixdoc_attributes())}>",
        f'    <{dialect.root_wrapper} format="none" max="n">',
        *references,
        f"    </{dialect.root_wrapper}>",
        "</ixDOC>",
    ])
    return DataNormalizer(content=content, file_name=derive_file_name(dialect.name, dialect.name, revision, message))


def _idoc_normalizer(message: str) -> DataNormalizer:
    dialect = get_dialect(IDOC)
    reference = idoc_reference_name(message)
    content = "\n".join([
        XML_DECLARATION,
        "<!DOCTYPE doc [",
        f'    <!ENTITY {reference} SYSTEM "./{dialect.fragment_dir}/{message}.xml">',
        "]>",
        f"<ixDOC {_attributes(dialect.ixdoc_attributes())}>",
        f"    &{reference};",
        "</ixDOC>",
    ])
    return DataNormalizer(content=content, file_name=derive_file_name(IDOC, IDOC, "", message))


def _csv_normalizer() -> DataNormalizer:
    content = "\n".join([
        XML_DECLARATION,
        '<ixDOC format="variable">',
        '    <FORMAT type="csv">',
        "        <!-- Custom definition for csv -->",
        "    </FORMAT>",
        "</ixDOC>",
    ])
    return DataNormalizer(content=content, file_name=CSV_FILE_NAME)


def build_data_normalizer(dn_type: str, message: str, standard: Optional[str] = None,
                          revision: Optional[str] = None,
                          format_root: str = DEFAULT_FORMAT_ROOT) -> DataNormalizer:
    """
    Build the DN file for one message.

    Args:
        dn_type: "edi", "idoc" or "csv"
        message: Message code (ORDERS, 850, ORDERS05)
        standard: EDIFACT or X12 (edi only)
        revision: Directory revision, labels such as "D97A (1997)" are accepted
        format_root: Prefix of the EDI fragment paths

    Raises:
        ValueError: If a required argument is missing or the type is unknown
        UnsupportedDialect: If an edi standard is neither EDIFACT nor X12
    """
    kind = (dn_type or "").strip().lower()
    if kind == DN_CSV:
        return _csv_normalizer()
    if not message:
        raise ValueError("Message is required to build a Data Normalizer")
    if kind == DN_IDOC:
        return _idoc_normalizer(message)
    if kind == DN_EDI:
        if not standard or not revision:
            raise ValueError("Standard and revision are required for an EDI Data Normalizer")
        if standard.strip().upper() not in (EDIFACT, X12):
            raise ValueError(f"EDI Data Normalizer needs EDIFACT or X12, got {standard}")
        return _edi_normalizer(standard, revision, message, format_root.rstrip("/"))
    raise ValueError(f"Unknown Data Normalizer type: {dn_type}")
