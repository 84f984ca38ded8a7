"""
ELF Parser
===========

Manual struct-based ELF decoder that ties the component parsers together
and assembles the :class:`~elfscope.core.models.ElfModel`.

Both ELF32 and ELF64, little- and big-endian, are supported.  The parser
is a pure function of the buffer: nothing is cached between calls, so the
same buffer always yields equal models and equal diagnostics, and
independent buffers may be parsed from many threads at once.

Pipeline:
    1. File header and identification (fatal on failure)
    2. Section header table (extended numbering applied)
    3. Program header table
    4. Section names, via ``e_shstrndx``
    5. Symbol tables (``.symtab``, ``.dynsym``)
    6. Relocation tables (REL, RELA)
    7. Dynamic section, or the ``PT_DYNAMIC`` segment when sections are absent
    8. ``PT_INTERP`` interpreter path

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - System V Application Binary Interface, Edition 4.1.
    - Linux man page: elf(5).
"""

from __future__ import annotations

from typing import Callable, TypeVar

from elfscope.core.diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from elfscope.core.errors import OutOfBounds
from elfscope.core.models import (
    DynamicSection,
    ElfModel,
    ParseResult,
    ProgramHeader,
    RelocationTable,
    SectionHeader,
    SymbolTable,
)
from elfscope.parsers import constants as c
from elfscope.parsers.dynamic import parse_dynamic_section, parse_dynamic_segment
from elfscope.parsers.header import parse_header
from elfscope.parsers.program_headers import parse_program_headers, read_interpreter
from elfscope.parsers.relocations import parse_relocation_tables
from elfscope.parsers.section_headers import (
    parse_section_headers,
    resolve_extended_counts,
)
from elfscope.parsers.strtab import (
    PLACEHOLDER_NO_STRINGS,
    load_string_table,
    resolve,
    section_data,
)
from elfscope.parsers.symbols import parse_symbol_tables
from elfscope.parsers.tables import DEFAULT_LIMITS, EntryBudget, ParseLimits


T = TypeVar("T")


class ELFParser:
    """Decode one ELF buffer into an :class:`ElfModel` plus diagnostics.

    Usage::

        result = ELFParser(raw_bytes).parse()
        for sh in result.model.section_headers:
            print(sh.index, sh.name, sh.type_name)
        for diagnostic in result.diagnostics:
            print(diagnostic)

    Fatal problems (not ELF, unsupported class or encoding, truncated file
    header, declared sizes over *limits*, or more table entries in total than
    ``limits.max_entries``) raise
    :class:`~elfscope.core.errors.ElfFatalError`.  Everything else is
    reported through ``result.diagnostics``.
    """

    def __init__(self, data: bytes, limits: ParseLimits = DEFAULT_LIMITS) -> None:
        """Initialise the parser.

        Args:
            data: Complete ELF file contents.
            limits: Upper bounds on declared table sizes.
        """
        self._data: bytes = bytes(data)
        self._limits: ParseLimits = limits

    def parse(self) -> ParseResult:
        """Run every stage and assemble the model."""
        data = self._data
        limits = self._limits
        budget = EntryBudget(limits)
        diagnostics: Diagnostics = []

        header, context = parse_header(data)

        sections: list[SectionHeader] = self._stage(
            diagnostics, "section header table", list,
            lambda: parse_section_headers(data, context, header, limits, budget),
        )
        phnum, shstrndx = resolve_extended_counts(header, sections)

        program_headers: list[ProgramHeader] = self._stage(
            diagnostics, "program header table", list,
            lambda: parse_program_headers(
                data, context, header.program_header_offset, phnum,
                header.program_header_entry_size, limits, budget,
            ),
        )

        sections = self._name_sections(sections, shstrndx, diagnostics)

        symbol_tables: list[SymbolTable] = self._stage(
            diagnostics, "symbol tables", list,
            lambda: parse_symbol_tables(data, context, sections, limits, budget),
        )
        symbol_counts = {t.section_index: len(t.symbols) for t in symbol_tables}

        relocation_tables: list[RelocationTable] = self._stage(
            diagnostics, "relocation tables", list,
            lambda: parse_relocation_tables(
                data, context, sections, symbol_counts, limits, budget
            ),
        )

        dynamic: DynamicSection | None = self._stage(
            diagnostics, "dynamic section", lambda: None,
            lambda: self._parse_dynamic(context, sections, program_headers, budget),
        )

        interpreter, interp_diagnostics = read_interpreter(data, program_headers)
        diagnostics.extend(interp_diagnostics)

        # Problems in these tables were already reported by their users.
        string_tables = {
            sh.index: section_data(data, sh)[0]
            for sh in sections
            if sh.section_type == c.SHT_STRTAB
        }

        model = ElfModel(
            header=header,
            program_headers=program_headers,
            section_headers=sections,
            symbol_tables=symbol_tables,
            relocation_tables=relocation_tables,
            dynamic=dynamic,
            interpreter=interpreter,
            string_tables=string_tables,
        )
        return ParseResult(model=model, diagnostics=diagnostics)

    # ------------------------------------------------------------------ #
    #  Stages
    # ------------------------------------------------------------------ #

    @staticmethod
    def _stage(
        diagnostics: Diagnostics,
        what: str,
        default: Callable[[], T],
        run: Callable[[], tuple[T, Diagnostics]],
    ) -> T:
        """Run one stage, turning a stray out-of-bounds read into a diagnostic."""
        try:
            value, stage_diagnostics = run()
        except OutOfBounds as exc:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.OUT_OF_BOUNDS,
                message=f"{what}: {exc}",
                offset=exc.offset,
            ))
            return default()
        diagnostics.extend(stage_diagnostics)
        return value

    def _name_sections(
        self,
        sections: list[SectionHeader],
        shstrndx: int,
        diagnostics: Diagnostics,
    ) -> list[SectionHeader]:
        """Resolve every ``sh_name`` against the section-name string table."""
        if not sections:
            return sections

        strtab, strtab_diagnostics = load_string_table(
            self._data, sections, shstrndx, "section names"
        )
        diagnostics.extend(strtab_diagnostics)

        named: list[SectionHeader] = []
        for sh in sections:
            if strtab is None:
                name = PLACEHOLDER_NO_STRINGS
            elif sh.index == 0 and sh.name_offset == 0:
                name = ""
            else:
                name, name_diagnostics = resolve(strtab, sh.name_offset, shstrndx)
                diagnostics.extend(name_diagnostics)
            named.append(sh.model_copy(update={"name": name}))
        return named

    def _parse_dynamic(
        self,
        context,
        sections: list[SectionHeader],
        program_headers: list[ProgramHeader],
        budget: EntryBudget,
    ) -> tuple[DynamicSection | None, Diagnostics]:
        for sh in sections:
            if sh.section_type == c.SHT_DYNAMIC:
                return parse_dynamic_section(
                    self._data, context, sections, sh, self._limits, budget
                )
        if sections:
            return None, []
        return parse_dynamic_segment(
            self._data, context, program_headers, self._limits, budget
        )


def parse_elf(data: bytes, limits: ParseLimits = DEFAULT_LIMITS) -> ParseResult:
    """Module-level convenience wrapper around :meth:`ELFParser.parse`."""
    return ELFParser(data, limits).parse()
