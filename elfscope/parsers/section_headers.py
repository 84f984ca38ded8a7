"""
Section Header Table Parser
============================

Decodes the section descriptors of the section header table, including
the *extended numbering* convention: when a file has too many sections
(or segments) for the 16-bit header fields, ``e_shnum`` is 0,
``e_shstrndx`` is ``SHN_XINDEX`` and ``e_phnum`` is ``PN_XNUM``, and the
real values live in ``sh_size``, ``sh_link`` and ``sh_info`` of section 0.

Names are *not* resolved here.  The raw ``sh_name`` offset is stored and
the aggregator resolves it once the section-name string table is known,
so a missing or damaged string table cannot block this stage.

References:
    - TIS Committee. (1995). ELF Specification v1.2, "Sections".
    - Oracle. Linker and Libraries Guide, "Extended Section Header".
"""

from __future__ import annotations

from typing import Optional

from elfscope.core.diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from elfscope.core.errors import OutOfBounds
from elfscope.core.models import ElfHeader, SectionHeader
from elfscope.parsers import constants as c
from elfscope.parsers.reader import DecodeContext, read_struct
from elfscope.parsers.tables import (
    DEFAULT_LIMITS,
    EntryBudget,
    ParseLimits,
    plan_table,
)


def _decode_section(
    buffer: bytes, context: DecodeContext, offset: int, index: int
) -> SectionHeader:
    if context.is_64bit:
        # Elf64_Shdr: 64 bytes
        fmt = f"{context.endian}IIQQQQIIQQ"
    else:
        # Elf32_Shdr: 40 bytes
        fmt = f"{context.endian}IIIIIIIIII"
    (
        sh_name, sh_type, sh_flags, sh_addr,
        sh_offset, sh_size, sh_link, sh_info,
        sh_addralign, sh_entsize,
    ) = read_struct(buffer, offset, fmt)
    return SectionHeader(
        index=index,
        name_offset=sh_name,
        section_type=sh_type,
        flags=sh_flags,
        address=sh_addr,
        file_offset=sh_offset,
        size=sh_size,
        linked_section_index=sh_link,
        info=sh_info,
        alignment=sh_addralign,
        entry_size=sh_entsize,
    )


def _check_null_entry(header: ElfHeader, sh: SectionHeader) -> Diagnostics:
    """Section 0 must be all zeros, bar the extended-numbering fields."""
    fields = {
        "sh_name": sh.name_offset,
        "sh_type": sh.section_type,
        "sh_flags": sh.flags,
        "sh_addr": sh.address,
        "sh_offset": sh.file_offset,
        "sh_addralign": sh.alignment,
        "sh_entsize": sh.entry_size,
    }
    if header.section_header_count != 0:
        fields["sh_size"] = sh.size
    if header.string_table_section_index != c.SHN_XINDEX:
        fields["sh_link"] = sh.linked_section_index
    if header.program_header_count != c.PN_XNUM:
        fields["sh_info"] = sh.info

    nonzero = [name for name, value in fields.items() if value != 0]
    if not nonzero:
        return []
    return [Diagnostic(
        kind=DiagnosticKind.MALFORMED_SECTION_TABLE,
        message=(
            "section 0 should be the all-zero null entry but has non-zero "
            + ", ".join(nonzero)
        ),
        section_index=0,
        offset=header.section_header_offset,
    )]


def section_count(
    buffer: bytes, context: DecodeContext, header: ElfHeader
) -> tuple[int, Diagnostics]:
    """Return the real number of sections, honouring extended numbering."""
    if header.section_header_offset == 0:
        return 0, []
    if header.section_header_count != 0:
        return header.section_header_count, []
    try:
        sh0 = _decode_section(buffer, context, header.section_header_offset, 0)
    except OutOfBounds as exc:
        return 0, [Diagnostic(
            kind=DiagnosticKind.TRUNCATED_TABLE,
            message=f"section header 0 unreadable for extended numbering: {exc}",
            offset=header.section_header_offset,
        )]
    return sh0.size, []


def parse_section_headers(
    buffer: bytes,
    context: DecodeContext,
    header: ElfHeader,
    limits: ParseLimits = DEFAULT_LIMITS,
    budget: Optional[EntryBudget] = None,
) -> tuple[list[SectionHeader], Diagnostics]:
    """Decode the section header table.

    Args:
        buffer: The whole file.
        context: Width and byte order from the file header.
        header: The file header (table location and extended numbering).
        limits: Declared-size bounds.
        budget: Running entry total shared with the other tables.

    Returns:
        ``(sections, diagnostics)``.  A table running past the buffer
        yields the entries that are fully in bounds plus a
        ``TRUNCATED_TABLE`` diagnostic.
    """
    if header.section_header_offset == 0:
        if header.section_header_count:
            return [], [Diagnostic(
                kind=DiagnosticKind.MALFORMED_SECTION_TABLE,
                message=(
                    f"{header.section_header_count} sections declared but "
                    f"e_shoff is 0"
                ),
            )]
        return [], []

    count, diagnostics = section_count(buffer, context, header)
    plan, plan_diagnostics = plan_table(
        len(buffer), "section header table", header.section_header_offset,
        count, header.section_header_entry_size,
        c.SHDR_SIZE[context.is_64bit], limits, budget=budget,
    )
    diagnostics.extend(plan_diagnostics)

    sections: list[SectionHeader] = []
    for i in range(plan.count):
        sections.append(
            _decode_section(buffer, context, plan.offset + i * plan.stride, i)
        )

    if sections:
        diagnostics.extend(_check_null_entry(header, sections[0]))
    return sections, diagnostics


def resolve_extended_counts(
    header: ElfHeader, sections: list[SectionHeader]
) -> tuple[int, int]:
    """Return ``(program header count, section-name string table index)``.

    Both fall back to the raw header values when section 0 is absent.
    """
    phnum = header.program_header_count
    shstrndx = header.string_table_section_index
    if sections:
        if phnum == c.PN_XNUM:
            phnum = sections[0].info
        if shstrndx == c.SHN_XINDEX:
            shstrndx = sections[0].linked_section_index
    return phnum, shstrndx
