"""
Dynamic Section Parser
=======================

Decodes the ``(d_tag, d_un)`` pairs of the dynamic-linking table.  Reading
stops at the ``DT_NULL`` sentinel (kept as the final entry) or when the
declared size is exhausted, whichever comes first.

String-valued tags (``DT_NEEDED``, ``DT_SONAME``, ``DT_RPATH``,
``DT_RUNPATH``, ...) are resolved against the dynamic string table.  When
the file has a ``SHT_DYNAMIC`` section, that table is the section's
``sh_link``.  Stripped files without section headers are handled the way
the dynamic loader sees them: the table is found through ``PT_DYNAMIC`` and
strings through ``DT_STRTAB``/``DT_STRSZ`` mapped to file offsets via the
``PT_LOAD`` segments.

References:
    - TIS Committee. (1995). ELF Specification v1.2, "Dynamic Section".
    - System V ABI, Edition 4.1, Figure 5-10 "Dynamic Array Tags".
"""

from __future__ import annotations

from typing import Optional, Sequence

from elfscope.core.diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from elfscope.core.models import (
    DynamicEntry,
    DynamicSection,
    DynamicValueKind,
    ProgramHeader,
    SectionHeader,
)
from elfscope.parsers import constants as c
from elfscope.parsers.reader import DecodeContext, read_struct
from elfscope.parsers.strtab import (
    PLACEHOLDER_NO_STRINGS,
    load_string_table,
    resolve,
)
from elfscope.parsers.tables import (
    DEFAULT_LIMITS,
    EntryBudget,
    ParseLimits,
    TablePlan,
    plan_section_table,
    plan_table,
)


def value_kind(tag: int) -> DynamicValueKind:
    """Classify how the value of *tag* is interpreted."""
    if tag in c.DT_STRING_TAGS:
        return DynamicValueKind.STRING
    if tag in c.DT_ADDRESS_TAGS:
        return DynamicValueKind.ADDRESS
    if tag in c.DT_FLAG_TAGS:
        return DynamicValueKind.FLAGS
    return DynamicValueKind.INTEGER


def _read_pairs(
    buffer: bytes, context: DecodeContext, plan: TablePlan
) -> list[tuple[int, int]]:
    """Read raw pairs up to and including ``DT_NULL``."""
    if context.is_64bit:
        fmt = f"{context.endian}qQ"  # Elf64_Dyn: d_tag (int64) + d_val (uint64)
    else:
        fmt = f"{context.endian}iI"  # Elf32_Dyn: d_tag (int32) + d_val (uint32)

    pairs: list[tuple[int, int]] = []
    for i in range(plan.count):
        d_tag, d_val = read_struct(buffer, plan.offset + i * plan.stride, fmt)
        pairs.append((d_tag, d_val))
        if d_tag == c.DT_NULL:
            break
    return pairs


def _build_entries(
    pairs: list[tuple[int, int]],
    strtab: Optional[bytes],
    strtab_index: Optional[int],
    missing: Diagnostics,
) -> tuple[list[DynamicEntry], Diagnostics]:
    """Attach kinds and resolved strings to raw pairs.

    *missing* holds the diagnostics explaining why *strtab* is ``None``;
    they are reported only if some tag actually needs a string.
    """
    diagnostics: Diagnostics = []
    entries: list[DynamicEntry] = []
    for d_tag, d_val in pairs:
        kind = value_kind(d_tag)
        string: Optional[str] = None
        if kind is DynamicValueKind.STRING:
            if strtab is None:
                string = PLACEHOLDER_NO_STRINGS
                if missing:
                    diagnostics.extend(missing)
                    missing = []
            else:
                string, string_diagnostics = resolve(strtab, d_val, strtab_index)
                diagnostics.extend(string_diagnostics)
        entries.append(DynamicEntry(tag=d_tag, value=d_val, kind=kind, string=string))
    return entries, diagnostics


def parse_dynamic_section(
    buffer: bytes,
    context: DecodeContext,
    sections: Sequence[SectionHeader],
    section: SectionHeader,
    limits: ParseLimits = DEFAULT_LIMITS,
    budget: Optional[EntryBudget] = None,
) -> tuple[DynamicSection, Diagnostics]:
    """Decode a ``SHT_DYNAMIC`` section.

    Returns:
        ``(dynamic, diagnostics)``.
    """
    diagnostics: Diagnostics = []
    plan, plan_diagnostics = plan_section_table(
        len(buffer), "dynamic section", section.index, section.file_offset,
        section.size, section.entry_size, c.DYN_SIZE[context.is_64bit], limits,
        budget,
    )
    diagnostics.extend(plan_diagnostics)
    pairs = _read_pairs(buffer, context, plan)

    link = section.linked_section_index
    strtab, missing = load_string_table(
        buffer, sections, link, f"dynamic section {section.index}"
    )
    if strtab is not None:
        diagnostics.extend(missing)
        missing = []
    entries, entry_diagnostics = _build_entries(pairs, strtab, link, missing)
    diagnostics.extend(entry_diagnostics)

    dynamic = DynamicSection(
        section_index=section.index,
        file_offset=section.file_offset,
        entries=entries,
    )
    return dynamic, diagnostics


def address_to_offset(
    program_headers: Sequence[ProgramHeader], address: int
) -> Optional[int]:
    """Map a virtual address to a file offset through the ``PT_LOAD`` segments."""
    for ph in program_headers:
        if ph.segment_type == c.PT_LOAD and ph.contains_address(address):
            return ph.file_offset + (address - ph.virtual_address)
    return None


def _segment_string_table(
    buffer: bytes,
    program_headers: Sequence[ProgramHeader],
    pairs: list[tuple[int, int]],
) -> tuple[Optional[bytes], Diagnostics]:
    """Locate the dynamic string table from ``DT_STRTAB``/``DT_STRSZ``."""
    values = dict(pairs)
    address = values.get(c.DT_STRTAB)
    if address is None:
        return None, [Diagnostic(
            kind=DiagnosticKind.MISSING_STRING_TABLE,
            message="dynamic segment has no DT_STRTAB entry",
        )]
    offset = address_to_offset(program_headers, address)
    if offset is None or offset >= len(buffer):
        return None, [Diagnostic(
            kind=DiagnosticKind.MISSING_STRING_TABLE,
            message=f"DT_STRTAB address 0x{address:x} is not mapped by any PT_LOAD segment",
        )]
    size = values.get(c.DT_STRSZ, len(buffer) - offset)
    return bytes(buffer[offset:offset + size]), []


def parse_dynamic_segment(
    buffer: bytes,
    context: DecodeContext,
    program_headers: Sequence[ProgramHeader],
    limits: ParseLimits = DEFAULT_LIMITS,
    budget: Optional[EntryBudget] = None,
) -> tuple[Optional[DynamicSection], Diagnostics]:
    """Decode the dynamic table through ``PT_DYNAMIC``, for files without sections.

    Returns:
        ``(dynamic or None, diagnostics)``; ``None`` when there is no
        ``PT_DYNAMIC`` segment.
    """
    segment = next(
        (ph for ph in program_headers if ph.segment_type == c.PT_DYNAMIC), None
    )
    if segment is None:
        return None, []

    natural = c.DYN_SIZE[context.is_64bit]
    plan, diagnostics = plan_table(
        len(buffer), "dynamic segment", segment.file_offset,
        segment.file_size // natural, natural, natural, limits, budget=budget,
    )
    pairs = _read_pairs(buffer, context, plan)
    strtab, missing = _segment_string_table(buffer, program_headers, pairs)
    entries, entry_diagnostics = _build_entries(pairs, strtab, None, missing)
    diagnostics.extend(entry_diagnostics)

    dynamic = DynamicSection(
        section_index=None,
        file_offset=segment.file_offset,
        entries=entries,
    )
    return dynamic, diagnostics
