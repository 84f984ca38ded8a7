"""
Symbol Table Parser
====================

Decodes ``SHT_SYMTAB`` and ``SHT_DYNSYM`` sections into :class:`Symbol`
records, resolving names through the string table named by the section's
``sh_link``.

``st_info`` packs binding (high nibble) and type (low nibble); the low two
bits of ``st_other`` hold the visibility.  ``st_shndx`` is either an
ordinary section index or a value from the reserved range
``SHN_LORESERVE..SHN_HIRESERVE``, which is mapped to a
:class:`~elfscope.core.models.SpecialSection` marker instead of being used
as an index.  ``SHN_XINDEX`` symbols take their real index from a parallel
``SHT_SYMTAB_SHNDX`` section; without one (or past its end) the marker is kept
and the symbol is reported as a dangling section reference.

A bad string-table link or a dangling section index produces diagnostics;
the symbol records themselves are always kept.

References:
    - TIS Committee. (1995). ELF Specification v1.2, "Symbol Table".
    - System V ABI, Edition 4.1, "Symbol Table" and "Extended Section Indexes".
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence, Union

from elfscope.core.diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from elfscope.core.models import SectionHeader, SpecialSection, Symbol, SymbolTable
from elfscope.parsers import constants as c
from elfscope.parsers.reader import DecodeContext, read_struct, read_uint
from elfscope.parsers.strtab import (
    PLACEHOLDER_NO_STRINGS,
    load_string_table,
    resolve,
    section_data,
)
from elfscope.parsers.tables import (
    DEFAULT_LIMITS,
    EntryBudget,
    ParseLimits,
    plan_section_table,
)


_SPECIAL_INDICES: dict[int, SpecialSection] = {
    c.SHN_UNDEF: SpecialSection.UNDEFINED,
    c.SHN_ABS: SpecialSection.ABSOLUTE,
    c.SHN_COMMON: SpecialSection.COMMON,
    c.SHN_XINDEX: SpecialSection.XINDEX,
}


def classify_section_index(shndx: int) -> Union[int, SpecialSection]:
    """Map a raw ``st_shndx`` to an ordinary index or a special marker."""
    if shndx in _SPECIAL_INDICES:
        return _SPECIAL_INDICES[shndx]
    if c.SHN_LORESERVE <= shndx <= c.SHN_HIRESERVE:
        return SpecialSection.RESERVED
    return shndx


def extended_index_sections(
    sections: Sequence[SectionHeader],
) -> dict[int, SectionHeader]:
    """Map each symbol table index to the ``SHT_SYMTAB_SHNDX`` section linked to it.

    The first such section wins when several name the same table.
    """
    found: dict[int, SectionHeader] = {}
    for sh in sections:
        if sh.section_type == c.SHT_SYMTAB_SHNDX:
            found.setdefault(sh.linked_section_index, sh)
    return found


def load_extended_indices(
    buffer: bytes,
    context: DecodeContext,
    section: Optional[SectionHeader],
) -> tuple[Optional[list[int]], Diagnostics]:
    """Read a ``SHT_SYMTAB_SHNDX`` array of 32-bit section indices.

    Returns:
        ``(indices or None, diagnostics)``; ``None`` when *section* is
        ``None``.
    """
    if section is None:
        return None, []
    data, diagnostics = section_data(buffer, section)
    indices = [
        read_uint(data, pos, 32, context.endian)
        for pos in range(0, len(data) - 3, 4)
    ]
    return indices, diagnostics


def _decode_symbol(
    buffer: bytes, context: DecodeContext, offset: int
) -> tuple[int, int, int, int, int, int]:
    """Return ``(st_name, st_value, st_size, st_info, st_other, st_shndx)``."""
    if context.is_64bit:
        # Elf64_Sym: 24 bytes
        st_name, st_info, st_other, st_shndx, st_value, st_size = read_struct(
            buffer, offset, f"{context.endian}IBBHQQ"
        )
    else:
        # Elf32_Sym: 16 bytes
        st_name, st_value, st_size, st_info, st_other, st_shndx = read_struct(
            buffer, offset, f"{context.endian}IIIBBH"
        )
    return st_name, st_value, st_size, st_info, st_other, st_shndx


def parse_symbol_table(
    buffer: bytes,
    context: DecodeContext,
    sections: Sequence[SectionHeader],
    section: SectionHeader,
    limits: ParseLimits = DEFAULT_LIMITS,
    extended: Optional[Mapping[int, SectionHeader]] = None,
    budget: Optional[EntryBudget] = None,
) -> tuple[SymbolTable, Diagnostics]:
    """Decode one symbol table section.

    Args:
        buffer: The whole file.
        context: Width and byte order from the file header.
        sections: All section headers (for the string table and range checks).
        section: The ``SHT_SYMTAB`` / ``SHT_DYNSYM`` section to decode.
        limits: Declared-size bounds.
        extended: Result of :func:`extended_index_sections`; computed from
            *sections* when omitted.
        budget: Running entry total shared with the other tables.

    Returns:
        ``(table, diagnostics)``.
    """
    diagnostics: Diagnostics = []
    link = section.linked_section_index
    if extended is None:
        extended = extended_index_sections(sections)

    strtab, strtab_diagnostics = load_string_table(
        buffer, sections, link, f"symbol table in section {section.index}"
    )
    diagnostics.extend(strtab_diagnostics)

    xindex, xindex_diagnostics = load_extended_indices(
        buffer, context, extended.get(section.index)
    )
    diagnostics.extend(xindex_diagnostics)

    plan, plan_diagnostics = plan_section_table(
        len(buffer), "symbol table", section.index, section.file_offset,
        section.size, section.entry_size, c.SYM_SIZE[context.is_64bit], limits,
        budget,
    )
    diagnostics.extend(plan_diagnostics)

    symbols: list[Symbol] = []
    for i in range(plan.count):
        entry_offset = plan.offset + i * plan.stride
        (
            st_name, st_value, st_size, st_info, st_other, st_shndx,
        ) = _decode_symbol(buffer, context, entry_offset)

        if strtab is None:
            name = PLACEHOLDER_NO_STRINGS
        elif st_name == 0:
            name = ""
        else:
            name, name_diagnostics = resolve(strtab, st_name, link)
            diagnostics.extend(name_diagnostics)

        ref = classify_section_index(st_shndx)
        if ref == SpecialSection.XINDEX:
            if xindex is not None and i < len(xindex):
                ref = xindex[i]
            else:
                where = (
                    "the file has no SHT_SYMTAB_SHNDX section for it"
                    if xindex is None
                    else f"the SHT_SYMTAB_SHNDX section holds {len(xindex)} entries"
                )
                diagnostics.append(Diagnostic(
                    kind=DiagnosticKind.DANGLING_SECTION_REFERENCE,
                    message=(
                        f"symbol {i} ({name!r}) uses an extended section "
                        f"index, but {where}"
                    ),
                    section_index=section.index,
                    offset=entry_offset,
                ))
        if isinstance(ref, int) and ref >= len(sections):
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.DANGLING_SECTION_REFERENCE,
                message=(
                    f"symbol {i} ({name!r}) refers to section {ref}, but the "
                    f"file has {len(sections)} sections"
                ),
                section_index=section.index,
                offset=entry_offset,
            ))

        symbols.append(Symbol(
            index=i,
            name_offset=st_name,
            name=name,
            value=st_value,
            size=st_size,
            binding=(st_info >> 4) & 0xF,
            symbol_type=st_info & 0xF,
            visibility=st_other & 0x3,
            other=st_other,
            raw_section_index=st_shndx,
            section_ref=ref,
        ))

    table = SymbolTable(
        section_index=section.index,
        string_table_index=link,
        symbols=symbols,
    )
    return table, diagnostics


def parse_symbol_tables(
    buffer: bytes,
    context: DecodeContext,
    sections: Sequence[SectionHeader],
    limits: ParseLimits = DEFAULT_LIMITS,
    budget: Optional[EntryBudget] = None,
) -> tuple[list[SymbolTable], Diagnostics]:
    """Decode every ``SHT_SYMTAB`` and ``SHT_DYNSYM`` section, in table order."""
    tables: list[SymbolTable] = []
    diagnostics: Diagnostics = []
    extended = extended_index_sections(sections)
    for sh in sections:
        if sh.section_type in (c.SHT_SYMTAB, c.SHT_DYNSYM):
            table, table_diagnostics = parse_symbol_table(
                buffer, context, sections, sh, limits, extended, budget
            )
            tables.append(table)
            diagnostics.extend(table_diagnostics)
    return tables, diagnostics
