"""
String Table Resolver
======================

Resolves byte offsets into NUL-terminated strings held by ``SHT_STRTAB``
sections.  Used for section names (through ``e_shstrndx``), symbol names
(through the symbol table's ``sh_link``) and string-valued dynamic tags.

A damaged string table never aborts a parse: the resolver returns the
best string it can together with a diagnostic.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

from elfscope.core.diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from elfscope.parsers import constants as c

if TYPE_CHECKING:
    from elfscope.core.models import SectionHeader


PLACEHOLDER_NO_STRINGS: str = "<no-strings>"
PLACEHOLDER_CORRUPT: str = "<corrupt>"


def resolve(
    data: bytes,
    offset: int,
    section_index: Optional[int] = None,
) -> tuple[str, Diagnostics]:
    """Read the NUL-terminated string starting at *offset* in *data*.

    Args:
        data: Raw bytes of the string table section.
        offset: Byte offset of the first character.
        section_index: Index of the string table, for diagnostics.

    Returns:
        ``(text, diagnostics)``.  An offset past the table yields
        :data:`PLACEHOLDER_CORRUPT`; a string running off the end of the
        table yields the truncated text.
    """
    if offset < 0 or offset >= len(data):
        return PLACEHOLDER_CORRUPT, [Diagnostic(
            kind=DiagnosticKind.OUT_OF_BOUNDS,
            message=(
                f"string offset 0x{offset:x} outside string table of "
                f"0x{len(data):x} bytes"
            ),
            section_index=section_index,
            offset=offset,
        )]

    end = data.find(b"\x00", offset)
    if end == -1:
        text = data[offset:].decode("utf-8", errors="replace")
        return text, [Diagnostic(
            kind=DiagnosticKind.UNTERMINATED_STRING,
            message=f"string at 0x{offset:x} runs off the end of its table",
            section_index=section_index,
            offset=offset,
        )]
    return data[offset:end].decode("utf-8", errors="replace"), []


def section_data(buffer: bytes, section: SectionHeader) -> tuple[bytes, Diagnostics]:
    """Return the in-bounds file bytes of *section*.

    ``SHT_NOBITS`` sections have no file bytes.  A section extending past the
    buffer yields the bytes that exist plus a ``TRUNCATED_TABLE`` diagnostic.
    """
    if not section.has_file_data:
        return b"", []
    start = section.file_offset
    end = start + section.size
    if start > len(buffer):
        return b"", [Diagnostic(
            kind=DiagnosticKind.OUT_OF_BOUNDS,
            message=(
                f"section data at 0x{start:x} starts past the end of the file"
            ),
            section_index=section.index,
            offset=start,
        )]
    if end > len(buffer):
        return bytes(buffer[start:]), [Diagnostic(
            kind=DiagnosticKind.TRUNCATED_TABLE,
            message=(
                f"section data 0x{start:x}..0x{end:x} extends past the end "
                f"of the file (0x{len(buffer):x})"
            ),
            section_index=section.index,
            offset=start,
        )]
    return bytes(buffer[start:end]), []


def load_string_table(
    buffer: bytes,
    sections: Sequence[SectionHeader],
    index: int,
    purpose: str,
) -> tuple[Optional[bytes], Diagnostics]:
    """Fetch the bytes of the string table at section *index*.

    Args:
        buffer: The whole file.
        sections: Decoded section headers.
        index: Section index expected to hold a string table.
        purpose: What the table is used for, for the diagnostic text.

    Returns:
        ``(bytes or None, diagnostics)``.  ``None`` means names must fall
        back to :data:`PLACEHOLDER_NO_STRINGS`.
    """
    if index == c.SHN_UNDEF or index >= len(sections):
        return None, [Diagnostic(
            kind=DiagnosticKind.MISSING_STRING_TABLE,
            message=f"{purpose}: string table index {index} is not a valid section",
            section_index=index,
        )]
    sh = sections[index]
    if sh.section_type != c.SHT_STRTAB:
        return None, [Diagnostic(
            kind=DiagnosticKind.MISSING_STRING_TABLE,
            message=(
                f"{purpose}: section {index} is {sh.type_name}, not a string table"
            ),
            section_index=index,
        )]
    data, diagnostics = section_data(buffer, sh)
    return data, diagnostics
