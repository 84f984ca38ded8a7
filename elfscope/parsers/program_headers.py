"""
Program Header Table Parser
============================

Decodes the segment descriptors of the program header table.  On-disk
order is preserved: load order matters to consumers even though segment
overlap is not validated here.

Note the field order differs between classes: ELF64 moves ``p_flags`` up
next to ``p_type`` to keep the 8-byte fields aligned.

References:
    - TIS Committee. (1995). ELF Specification v1.2, "Program Header".
"""

from __future__ import annotations

from typing import Optional

from elfscope.core.diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from elfscope.core.models import ProgramHeader
from elfscope.parsers import constants as c
from elfscope.parsers.reader import DecodeContext, read_struct
from elfscope.parsers.tables import (
    DEFAULT_LIMITS,
    EntryBudget,
    ParseLimits,
    plan_table,
)


def parse_program_headers(
    buffer: bytes,
    context: DecodeContext,
    offset: int,
    count: int,
    entry_size: int,
    limits: ParseLimits = DEFAULT_LIMITS,
    budget: Optional[EntryBudget] = None,
) -> tuple[list[ProgramHeader], Diagnostics]:
    """Decode *count* program headers starting at *offset*.

    Args:
        buffer: The whole file.
        context: Width and byte order from the file header.
        offset: ``e_phoff``.
        count: Number of entries, after extended numbering is applied.
        entry_size: ``e_phentsize``.
        limits: Declared-size bounds.
        budget: Running entry total shared with the other tables.

    Returns:
        ``(headers, diagnostics)``; a table running past the buffer yields
        the entries that are fully in bounds.
    """
    if count == 0:
        return [], []
    if offset == 0:
        return [], [Diagnostic(
            kind=DiagnosticKind.MALFORMED_SECTION_TABLE,
            message=f"{count} program headers declared but e_phoff is 0",
        )]

    plan, diagnostics = plan_table(
        len(buffer), "program header table", offset, count, entry_size,
        c.PHDR_SIZE[context.is_64bit], limits, budget=budget,
    )

    headers: list[ProgramHeader] = []
    for i in range(plan.count):
        entry_offset = plan.offset + i * plan.stride
        if context.is_64bit:
            # Elf64_Phdr: 56 bytes
            (
                p_type, p_flags, p_offset, p_vaddr,
                p_paddr, p_filesz, p_memsz, p_align,
            ) = read_struct(buffer, entry_offset, f"{context.endian}IIQQQQQQ")
        else:
            # Elf32_Phdr: 32 bytes
            (
                p_type, p_offset, p_vaddr, p_paddr,
                p_filesz, p_memsz, p_flags, p_align,
            ) = read_struct(buffer, entry_offset, f"{context.endian}IIIIIIII")

        headers.append(ProgramHeader(
            index=i,
            segment_type=p_type,
            flags=p_flags,
            file_offset=p_offset,
            file_size=p_filesz,
            virtual_address=p_vaddr,
            physical_address=p_paddr,
            mem_size=p_memsz,
            alignment=p_align,
        ))

    return headers, diagnostics


def read_interpreter(
    buffer: bytes, headers: list[ProgramHeader]
) -> tuple[str | None, Diagnostics]:
    """Return the ``PT_INTERP`` path (the dynamic linker), if any.

    Returns:
        ``(path or None, diagnostics)``.
    """
    for ph in headers:
        if ph.segment_type != c.PT_INTERP:
            continue
        start = ph.file_offset
        end = start + ph.file_size
        if end > len(buffer):
            return None, [Diagnostic(
                kind=DiagnosticKind.OUT_OF_BOUNDS,
                message=(
                    f"PT_INTERP segment 0x{start:x}..0x{end:x} extends past "
                    f"the end of the file"
                ),
                offset=start,
            )]
        raw = bytes(buffer[start:end])
        return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace"), []
    return None, []
