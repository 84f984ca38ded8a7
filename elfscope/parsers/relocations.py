"""
Relocation Table Parser
========================

Decodes ``SHT_REL`` and ``SHT_RELA`` sections.  REL entries are
``(r_offset, r_info)``; RELA entries append a signed ``r_addend``.

``r_info`` is split into symbol index and type code by the
:class:`~elfscope.parsers.machines.RelocationArch` selected from
``e_machine``, and the type code is labelled from that machine's table.
Type codes are carried as numbers; no relocation is ever applied.

Each relocation section carries two links: ``sh_link`` names the symbol
table its symbol indices refer to, ``sh_info`` names the section being
patched.  Symbols are resolved lazily through
:meth:`~elfscope.core.models.ElfModel.relocation_symbol`; this parser only
checks that indices fall inside the linked table.

References:
    - TIS Committee. (1995). ELF Specification v1.2, "Relocation".
    - System V ABI, Edition 4.1, "Relocation".
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from elfscope.core.diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from elfscope.core.models import (
    RelocationEntry,
    RelocationKind,
    RelocationTable,
    SectionHeader,
)
from elfscope.parsers import constants as c
from elfscope.parsers.machines import arch_for_machine
from elfscope.parsers.reader import DecodeContext, read_struct
from elfscope.parsers.tables import (
    DEFAULT_LIMITS,
    EntryBudget,
    ParseLimits,
    plan_section_table,
)


_KINDS: dict[int, RelocationKind] = {
    c.SHT_REL: RelocationKind.REL,
    c.SHT_RELA: RelocationKind.RELA,
}


def _entry_format(context: DecodeContext, kind: RelocationKind) -> tuple[str, int]:
    """Return the struct format and natural size of one entry."""
    word = "Q" if context.is_64bit else "I"
    if kind is RelocationKind.RELA:
        addend = "q" if context.is_64bit else "i"
        return f"{context.endian}{word}{word}{addend}", c.RELA_SIZE[context.is_64bit]
    return f"{context.endian}{word}{word}", c.REL_SIZE[context.is_64bit]


def parse_relocation_table(
    buffer: bytes,
    context: DecodeContext,
    sections: Sequence[SectionHeader],
    section: SectionHeader,
    symbol_counts: Mapping[int, int],
    limits: ParseLimits = DEFAULT_LIMITS,
    budget: Optional[EntryBudget] = None,
) -> tuple[RelocationTable, Diagnostics]:
    """Decode one REL or RELA section.

    Args:
        buffer: The whole file.
        context: Width, byte order and machine from the file header.
        sections: All section headers.
        section: The relocation section.
        symbol_counts: Section index -> number of symbols, for every decoded
            symbol table.
        limits: Declared-size bounds.
        budget: Running entry total shared with the other tables.

    Returns:
        ``(table, diagnostics)``.
    """
    kind = _KINDS[section.section_type]
    arch = arch_for_machine(context.machine)
    fmt, natural = _entry_format(context, kind)
    diagnostics: Diagnostics = []

    link = section.linked_section_index
    symbol_count = symbol_counts.get(link)
    if symbol_count is None and link != 0:
        diagnostics.append(Diagnostic(
            kind=DiagnosticKind.MISSING_SYMBOL_TABLE,
            message=(
                f"relocation section {section.index} links section {link}, "
                f"which is not a symbol table"
            ),
            section_index=section.index,
        ))

    target = section.info
    if target >= len(sections):
        diagnostics.append(Diagnostic(
            kind=DiagnosticKind.DANGLING_SECTION_REFERENCE,
            message=(
                f"relocation section {section.index} applies to section "
                f"{target}, but the file has {len(sections)} sections"
            ),
            section_index=section.index,
        ))

    plan, plan_diagnostics = plan_section_table(
        len(buffer), "relocation table", section.index, section.file_offset,
        section.size, section.entry_size, natural, limits, budget,
    )
    diagnostics.extend(plan_diagnostics)

    entries: list[RelocationEntry] = []
    for i in range(plan.count):
        entry_offset = plan.offset + i * plan.stride
        fields = read_struct(buffer, entry_offset, fmt)
        r_offset, r_info = fields[0], fields[1]
        addend = fields[2] if kind is RelocationKind.RELA else None
        symbol_index, type_code = arch.split_info(r_info, context)

        if symbol_index != 0 and symbol_count is not None and symbol_index >= symbol_count:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.DANGLING_SYMBOL_REFERENCE,
                message=(
                    f"relocation {i} refers to symbol {symbol_index}, but "
                    f"section {link} holds {symbol_count} symbols"
                ),
                section_index=section.index,
                offset=entry_offset,
            ))

        entries.append(RelocationEntry(
            index=i,
            offset=r_offset,
            info=r_info,
            symbol_index=symbol_index,
            type_code=type_code,
            type_name=arch.label(type_code),
            addend=addend,
        ))

    table = RelocationTable(
        section_index=section.index,
        kind=kind,
        symbol_table_index=link,
        target_section_index=target,
        entries=entries,
    )
    return table, diagnostics


def parse_relocation_tables(
    buffer: bytes,
    context: DecodeContext,
    sections: Sequence[SectionHeader],
    symbol_counts: Mapping[int, int],
    limits: ParseLimits = DEFAULT_LIMITS,
    budget: Optional[EntryBudget] = None,
) -> tuple[list[RelocationTable], Diagnostics]:
    """Decode every REL and RELA section, in table order."""
    tables: list[RelocationTable] = []
    diagnostics: Diagnostics = []
    for sh in sections:
        if sh.section_type in _KINDS:
            table, table_diagnostics = parse_relocation_table(
                buffer, context, sections, sh, symbol_counts, limits, budget
            )
            tables.append(table)
            diagnostics.extend(table_diagnostics)
    return tables, diagnostics
