"""
elfscope Console Output
========================

Rich-powered terminal display of an :class:`~elfscope.core.models.ElfModel`,
laid out after ``readelf``: the file header as a key/value block, then one
table per selected part (segments, sections, symbols, relocations, dynamic
entries) and finally the diagnostics collected while decoding.

Uses the :class:`~shared.console.ElfscopeConsole` abstraction for
consistent styling.

References:
    - GNU Binutils ``readelf`` output format.
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from shared.console import ElfscopeConsole

from elfscope.core.diagnostics import Diagnostic
from elfscope.core.models import (
    DynamicEntry,
    DynamicValueKind,
    ElfModel,
    InspectionReport,
    RelocationKind,
    SpecialSection,
    Symbol,
)
from elfscope.parsers import constants as c


_DATA_NAMES: dict[str, str] = {
    "little": "2's complement, little endian",
    "big": "2's complement, big endian",
}

# String-valued dynamic tags readelf annotates with a label.
_DYNAMIC_STRING_LABELS: dict[int, str] = {
    c.DT_NEEDED: "Shared library",
    c.DT_SONAME: "Library soname",
    c.DT_RPATH: "Library rpath",
    c.DT_RUNPATH: "Library runpath",
}


@dataclass(frozen=True)
class DisplaySelection:
    """Which parts of the model to print."""

    file_header: bool = True
    program_headers: bool = False
    section_headers: bool = False
    symbols: bool = False
    relocations: bool = False
    dynamic: bool = False

    @classmethod
    def everything(cls) -> DisplaySelection:
        return cls(True, True, True, True, True, True)


def _hex(value: int, width: int) -> str:
    return f"{value:0{width}x}"


class ElfConsoleOutput:
    """Render inspection reports to the terminal.

    Usage::

        output = ElfConsoleOutput()
        output.display(report, DisplaySelection.everything())
    """

    def __init__(
        self,
        console: ElfscopeConsole | None = None,
        *,
        show_diagnostics: bool = True,
        max_rows: int = 0,
    ) -> None:
        """Initialise the renderer.

        Args:
            console: Console to print to.  A new one is created if not provided.
            show_diagnostics: Print the diagnostics table after the model.
            max_rows: Limit on rows per table; ``0`` means unlimited.
        """
        self._console: ElfscopeConsole = console or ElfscopeConsole()
        self._show_diagnostics = show_diagnostics
        self._max_rows = max_rows

    # ------------------------------------------------------------------ #
    #  Entry point
    # ------------------------------------------------------------------ #

    def display(
        self,
        report: InspectionReport,
        selection: DisplaySelection = DisplaySelection(),
        *,
        show_path: bool = False,
    ) -> None:
        """Display one inspection report.

        Args:
            report: Engine output for one file.
            selection: Parts of the model to print.
            show_path: Print a ``File:`` rule first (used for multiple files).
        """
        if show_path:
            self._console.section(f"File: {report.path}")

        if report.result is None:
            self._console.error(f"{report.path}: {report.error}")
            return

        model = report.result.model
        if selection.file_header:
            self.display_file_header(model)
        if selection.program_headers:
            self.display_program_headers(model)
        if selection.section_headers:
            self.display_section_headers(model)
        if selection.symbols:
            self.display_symbols(model)
        if selection.relocations:
            self.display_relocations(model)
        if selection.dynamic:
            self.display_dynamic(model)
        if self._show_diagnostics and report.result.diagnostics:
            self.display_diagnostics(report.result.diagnostics)

    # ------------------------------------------------------------------ #
    #  File header
    # ------------------------------------------------------------------ #

    def header_fields(self, model: ElfModel) -> list[tuple[str, str]]:
        """Return the ELF header block as ``(label, value)`` pairs."""
        header = model.header
        identity = header.identity
        sections = model.section_headers

        phnum = str(header.program_header_count)
        if header.program_header_count == c.PN_XNUM:
            phnum += f" ({len(model.program_headers)})"
        shnum = str(header.section_header_count)
        if header.section_header_count == 0 and sections:
            shnum += f" ({len(sections)})"
        shstrndx = str(header.string_table_section_index)
        if header.string_table_section_index == c.SHN_XINDEX and sections:
            shstrndx += f" ({sections[0].linked_section_index})"

        version = str(identity.version)
        if identity.version == c.EV_CURRENT:
            version += " (current)"

        return [
            ("Magic", identity.raw.hex(" ")),
            ("Class", f"ELF{identity.elf_class.value}"),
            ("Data", _DATA_NAMES[identity.endianness.value]),
            ("Version", version),
            ("OS/ABI", identity.os_abi_name),
            ("ABI Version", str(identity.abi_version)),
            ("Type", header.file_type_name),
            ("Machine", header.machine_name),
            ("Version", f"0x{header.version:x}"),
            ("Entry point address", f"0x{header.entry_point:x}"),
            ("Start of program headers", f"{header.program_header_offset} (bytes into file)"),
            ("Start of section headers", f"{header.section_header_offset} (bytes into file)"),
            ("Flags", f"0x{header.flags:x}"),
            ("Size of this header", f"{header.header_size} (bytes)"),
            ("Size of program headers", f"{header.program_header_entry_size} (bytes)"),
            ("Number of program headers", phnum),
            ("Size of section headers", f"{header.section_header_entry_size} (bytes)"),
            ("Number of section headers", shnum),
            ("Section header string table index", shstrndx),
        ]

    def display_file_header(self, model: ElfModel) -> None:
        self._console.section("ELF Header")
        self._console.key_values(self.header_fields(model))
        if model.interpreter is not None:
            self._console.key_values([("Program interpreter", model.interpreter)])
        self._console.blank()

    # ------------------------------------------------------------------ #
    #  Tables
    # ------------------------------------------------------------------ #

    def _rows(self, rows: Sequence[Sequence[Any]]) -> tuple[Sequence[Sequence[Any]], str | None]:
        """Apply ``max_rows`` and return the rows plus an overflow caption."""
        if self._max_rows and len(rows) > self._max_rows:
            hidden = len(rows) - self._max_rows
            return rows[: self._max_rows], f"... {hidden} more row(s) not shown"
        return rows, None

    def _table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        justify: Sequence[str] | None = None,
    ) -> None:
        shown, caption = self._rows(rows)
        self._console.table(title, columns, shown, caption=caption, justify=justify)
        self._console.blank()

    def display_program_headers(self, model: ElfModel) -> None:
        self._console.section("Program Headers")
        if not model.program_headers:
            self._console.info("There are no program headers in this file.")
            return
        width = 16 if model.header.is_64bit else 8
        rows = [
            (
                ph.type_name,
                f"0x{_hex(ph.file_offset, 6)}",
                f"0x{_hex(ph.virtual_address, width)}",
                f"0x{_hex(ph.physical_address, width)}",
                f"0x{_hex(ph.file_size, 6)}",
                f"0x{_hex(ph.mem_size, 6)}",
                ph.flags_str,
                f"0x{ph.alignment:x}",
            )
            for ph in model.program_headers
        ]
        self._table(
            f"{len(rows)} program header(s)",
            ("Type", "Offset", "VirtAddr", "PhysAddr", "FileSiz", "MemSiz", "Flg", "Align"),
            rows,
        )

    def display_section_headers(self, model: ElfModel) -> None:
        self._console.section("Section Headers")
        if not model.section_headers:
            self._console.info("There are no sections in this file.")
            return
        width = 16 if model.header.is_64bit else 8
        rows = [
            (
                sh.index,
                sh.name,
                sh.type_name,
                _hex(sh.address, width),
                _hex(sh.file_offset, 6),
                _hex(sh.size, 6),
                _hex(sh.entry_size, 2),
                sh.flags_str,
                sh.linked_section_index,
                sh.info,
                sh.alignment,
            )
            for sh in model.section_headers
        ]
        self._table(
            f"{len(rows)} section header(s), starting at offset "
            f"0x{model.header.section_header_offset:x}",
            ("Nr", "Name", "Type", "Address", "Off", "Size", "ES", "Flg", "Lk", "Inf", "Al"),
            rows,
            justify=("right",) + ("left",) * 7 + ("right",) * 3,
        )

    @staticmethod
    def _ndx(symbol: Symbol) -> str:
        if isinstance(symbol.section_ref, SpecialSection):
            return symbol.section_ref.value
        return str(symbol.section_ref)

    def display_symbols(self, model: ElfModel) -> None:
        self._console.section("Symbol Tables")
        if not model.symbol_tables:
            self._console.info("No symbol tables in this file.")
            return
        width = 16 if model.header.is_64bit else 8
        for table in model.symbol_tables:
            rows = [
                (
                    sym.index,
                    _hex(sym.value, width),
                    sym.size,
                    sym.type_name,
                    sym.binding_name,
                    sym.visibility_name,
                    self._ndx(sym),
                    sym.name,
                )
                for sym in table.symbols
            ]
            self._table(
                f"Symbol table '{model.section_name(table.section_index)}' "
                f"contains {len(rows)} entries",
                ("Num", "Value", "Size", "Type", "Bind", "Vis", "Ndx", "Name"),
                rows,
                justify=("right", "left", "right", "left", "left", "left", "right", "left"),
            )

    def display_relocations(self, model: ElfModel) -> None:
        self._console.section("Relocations")
        if not model.relocation_tables:
            self._console.info("There are no relocations in this file.")
            return
        width = 16 if model.header.is_64bit else 8
        for table in model.relocation_tables:
            rela = table.kind is RelocationKind.RELA
            rows = []
            for entry in table.entries:
                symbol = model.relocation_symbol(table, entry)
                row: list[Any] = [
                    _hex(entry.offset, width),
                    _hex(entry.info, width),
                    entry.type_name or f"<unknown: 0x{entry.type_code:x}>",
                    _hex(symbol.value, width) if symbol is not None else "",
                    symbol.name if symbol is not None else "",
                ]
                if rela:
                    row.append(f"{entry.addend:+#x}" if entry.addend is not None else "")
                rows.append(row)

            columns = ["Offset", "Info", "Type", "Sym. Value", "Sym. Name"]
            if rela:
                columns.append("Addend")
            section = model.section(table.section_index)
            offset = section.file_offset if section is not None else 0
            self._table(
                f"Relocation section '{model.section_name(table.section_index)}' "
                f"at offset 0x{offset:x} contains {len(rows)} entries",
                columns,
                rows,
            )

    @staticmethod
    def _dynamic_value(entry: DynamicEntry) -> str:
        if entry.kind is DynamicValueKind.STRING:
            label = _DYNAMIC_STRING_LABELS.get(entry.tag)
            if label is not None:
                return f"{label}: [{entry.string}]"
            return entry.string or ""
        if entry.kind in (DynamicValueKind.ADDRESS, DynamicValueKind.FLAGS):
            return f"0x{entry.value:x}"
        return str(entry.value)

    def display_dynamic(self, model: ElfModel) -> None:
        self._console.section("Dynamic Section")
        dynamic = model.dynamic
        if dynamic is None:
            self._console.info("There is no dynamic section in this file.")
            return
        width = 16 if model.header.is_64bit else 8
        rows = [
            (
                f"0x{_hex(entry.tag & ((1 << (width * 4)) - 1), width)}",
                f"({entry.tag_name})",
                self._dynamic_value(entry),
            )
            for entry in dynamic.entries
        ]
        self._table(
            f"Dynamic section at offset 0x{dynamic.file_offset:x} "
            f"contains {len(rows)} entries",
            ("Tag", "Type", "Name/Value"),
            rows,
        )

    # ------------------------------------------------------------------ #
    #  Diagnostics
    # ------------------------------------------------------------------ #

    def display_diagnostics(self, diagnostics: Sequence[Diagnostic]) -> None:
        self._console.section("Diagnostics")
        rows = [
            (
                d.kind.value,
                "" if d.section_index is None else d.section_index,
                "" if d.offset is None else f"0x{d.offset:x}",
                d.message,
            )
            for d in diagnostics
        ]
        self._table(
            f"{len(rows)} diagnostic(s)",
            ("Kind", "Section", "Offset", "Message"),
            rows,
        )
