"""
elfscope Data Models
=====================

Pydantic-based data models for the decoded contents of an ELF object:
identification, file header, program and section header tables, symbol
tables, relocation tables and the dynamic section, aggregated into a single
:class:`ElfModel`.

Every structural model is frozen.  Cross references (section names, the
string table of a symbol table, the symbol behind a relocation) are kept as
integer indices and resolved on demand through :class:`ElfModel`, so no
entity holds a back-reference to another.

References:
    - Evans, E. (2003). Domain-Driven Design. Addison-Wesley.
    - TIS Committee. (1995). Executable and Linkable Format (ELF) Specification.
    - System V Application Binary Interface, Edition 4.1.
"""

from __future__ import annotations

import datetime as _dt
import enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from elfscope.core.diagnostics import Diagnostic
from elfscope.parsers import constants as c
from elfscope.parsers.strtab import PLACEHOLDER_NO_STRINGS, resolve


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ElfClass(int, enum.Enum):
    """Address width of the object file."""
    ELF32 = 32
    ELF64 = 64


class Endianness(str, enum.Enum):
    """Byte order of multi-byte fields."""
    LITTLE = "little"
    BIG = "big"


class SpecialSection(str, enum.Enum):
    """Reserved ``st_shndx`` values a symbol may carry instead of an index."""
    UNDEFINED = "UND"
    ABSOLUTE = "ABS"
    COMMON = "COM"
    XINDEX = "XINDEX"
    RESERVED = "RSV"


class RelocationKind(str, enum.Enum):
    """REL entries have an implicit addend, RELA entries store it."""
    REL = "REL"
    RELA = "RELA"


class DynamicValueKind(str, enum.Enum):
    """How the ``d_un`` value of a dynamic entry is interpreted."""
    INTEGER = "integer"
    ADDRESS = "address"
    STRING = "string"
    FLAGS = "flags"


_FROZEN = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# File header
# ---------------------------------------------------------------------------

class ElfIdentity(BaseModel):
    """The ``e_ident`` block: the first 16 bytes of every ELF file.

    Attributes:
        elf_class: 32- or 64-bit layout.
        endianness: Byte order of all multi-byte fields.
        version: ``EI_VERSION`` byte.
        os_abi: ``EI_OSABI`` byte.
        abi_version: ``EI_ABIVERSION`` byte.
        raw: The 16 identification bytes as found on disk.
    """
    model_config = _FROZEN

    elf_class: ElfClass
    endianness: Endianness
    version: int = 0
    os_abi: int = 0
    abi_version: int = 0
    raw: bytes = b""

    @field_serializer("raw", when_used="json")
    def _raw_as_hex(self, raw: bytes) -> str:
        return raw.hex(" ")

    @property
    def is_64bit(self) -> bool:
        return self.elf_class is ElfClass.ELF64

    @property
    def os_abi_name(self) -> str:
        return c.osabi_name(self.os_abi)


class ElfHeader(BaseModel):
    """The ELF file header.

    Offsets, counts and sizes are stored exactly as found on disk.  They are
    not checked against the buffer length here; each table parser checks the
    extent it is about to read.

    Attributes:
        identity: Parsed identification block.
        file_type: ``e_type`` (REL, EXEC, DYN, CORE, ...).
        machine: ``e_machine`` architecture code.
        version: ``e_version``.
        entry_point: ``e_entry`` virtual address.
        flags: Processor-specific ``e_flags``.
        header_size: ``e_ehsize``.
        program_header_offset: ``e_phoff``.
        program_header_entry_size: ``e_phentsize``.
        program_header_count: ``e_phnum``.
        section_header_offset: ``e_shoff``.
        section_header_entry_size: ``e_shentsize``.
        section_header_count: ``e_shnum``.
        string_table_section_index: ``e_shstrndx``.
    """
    model_config = _FROZEN

    identity: ElfIdentity
    file_type: int = 0
    machine: int = 0
    version: int = 0
    entry_point: int = 0
    flags: int = 0
    header_size: int = 0
    program_header_offset: int = 0
    program_header_entry_size: int = 0
    program_header_count: int = 0
    section_header_offset: int = 0
    section_header_entry_size: int = 0
    section_header_count: int = 0
    string_table_section_index: int = 0

    @property
    def is_64bit(self) -> bool:
        return self.identity.is_64bit

    @property
    def file_type_name(self) -> str:
        return c.file_type_name(self.file_type)

    @property
    def machine_name(self) -> str:
        return c.machine_name(self.machine)


# ---------------------------------------------------------------------------
# Segments and sections
# ---------------------------------------------------------------------------

class ProgramHeader(BaseModel):
    """One segment descriptor of the program header table."""
    model_config = _FROZEN

    index: int = 0
    segment_type: int = 0
    flags: int = 0
    file_offset: int = 0
    file_size: int = 0
    virtual_address: int = 0
    physical_address: int = 0
    mem_size: int = 0
    alignment: int = 0

    @property
    def type_name(self) -> str:
        return c.segment_type_name(self.segment_type)

    @property
    def flags_str(self) -> str:
        return c.segment_flags_str(self.flags)

    def contains_address(self, address: int) -> bool:
        """Whether *address* falls inside the file-backed part of the segment."""
        return self.virtual_address <= address < self.virtual_address + self.file_size


class SectionHeader(BaseModel):
    """One section descriptor of the section header table.

    ``name`` is empty as produced by the table parser and filled in by the
    aggregator once the section-name string table is known.
    """
    model_config = _FROZEN

    index: int = 0
    name_offset: int = 0
    name: str = ""
    section_type: int = 0
    flags: int = 0
    address: int = 0
    file_offset: int = 0
    size: int = 0
    linked_section_index: int = 0
    info: int = 0
    alignment: int = 0
    entry_size: int = 0

    @property
    def type_name(self) -> str:
        return c.section_type_name(self.section_type)

    @property
    def flags_str(self) -> str:
        return c.section_flags_str(self.flags)

    @property
    def has_file_data(self) -> bool:
        """NOBITS and NULL sections occupy no bytes in the file."""
        return self.section_type not in (c.SHT_NOBITS, c.SHT_NULL)


# ---------------------------------------------------------------------------
# Symbols
# ---------------------------------------------------------------------------

class Symbol(BaseModel):
    """A symbol table entry.

    Attributes:
        index: Position within its symbol table.
        name_offset: ``st_name``.
        name: Resolved name, or a placeholder when unresolvable.
        value: ``st_value``.
        size: ``st_size``.
        binding: High nibble of ``st_info``.
        symbol_type: Low nibble of ``st_info``.
        visibility: Low two bits of ``st_other``.
        other: The full ``st_other`` byte.
        raw_section_index: ``st_shndx`` as stored.
        section_ref: Ordinary section index, or a :class:`SpecialSection`.
    """
    model_config = _FROZEN

    index: int = 0
    name_offset: int = 0
    name: str = ""
    value: int = 0
    size: int = 0
    binding: int = 0
    symbol_type: int = 0
    visibility: int = 0
    other: int = 0
    raw_section_index: int = 0
    section_ref: Union[int, SpecialSection] = SpecialSection.UNDEFINED

    @property
    def binding_name(self) -> str:
        return c.binding_name(self.binding)

    @property
    def type_name(self) -> str:
        return c.symbol_type_name(self.symbol_type)

    @property
    def visibility_name(self) -> str:
        return c.visibility_name(self.visibility)

    @property
    def is_undefined(self) -> bool:
        return self.section_ref == SpecialSection.UNDEFINED


class SymbolTable(BaseModel):
    """All symbols of one ``SHT_SYMTAB`` or ``SHT_DYNSYM`` section."""
    model_config = _FROZEN

    section_index: int
    string_table_index: int
    symbols: list[Symbol] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Relocations
# ---------------------------------------------------------------------------

class RelocationEntry(BaseModel):
    """One REL or RELA entry.

    Attributes:
        index: Position within its relocation section.
        offset: ``r_offset``.
        info: ``r_info`` as stored.
        symbol_index: Index into the linked symbol table.
        type_code: Machine-specific relocation type.
        type_name: Label for *type_code* when the machine is known.
        addend: ``r_addend`` for RELA, ``None`` for REL.
    """
    model_config = _FROZEN

    index: int = 0
    offset: int = 0
    info: int = 0
    symbol_index: int = 0
    type_code: int = 0
    type_name: Optional[str] = None
    addend: Optional[int] = None


class RelocationTable(BaseModel):
    """One relocation section with its two linkages.

    Attributes:
        section_index: Index of the relocation section itself.
        kind: REL or RELA.
        symbol_table_index: ``sh_link``, the symbol table used.
        target_section_index: ``sh_info``, the section being patched.
        entries: Decoded entries in on-disk order.
    """
    model_config = _FROZEN

    section_index: int
    kind: RelocationKind
    symbol_table_index: int = 0
    target_section_index: int = 0
    entries: list[RelocationEntry] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Dynamic linking
# ---------------------------------------------------------------------------

class DynamicEntry(BaseModel):
    """A tag/value pair of the dynamic section."""
    model_config = _FROZEN

    tag: int
    value: int
    kind: DynamicValueKind = DynamicValueKind.INTEGER
    string: Optional[str] = None

    @property
    def tag_name(self) -> str:
        return c.dynamic_tag_name(self.tag)


class DynamicSection(BaseModel):
    """Decoded dynamic section.

    ``section_index`` is ``None`` when the table was located through the
    ``PT_DYNAMIC`` segment because the file has no section headers.
    """
    model_config = _FROZEN

    section_index: Optional[int] = None
    file_offset: int = 0
    entries: list[DynamicEntry] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

class ElfModel(BaseModel):
    """Everything decoded from one ELF buffer.

    Lookups are index-bounded: an index outside a table yields ``None``
    rather than an exception.

    Attributes:
        header: The file header.
        program_headers: Segment descriptors in table order.
        section_headers: Section descriptors in table order, names resolved.
        symbol_tables: One entry per symbol table section.
        relocation_tables: One entry per REL/RELA section.
        dynamic: The dynamic section, if the file has one.
        interpreter: ``PT_INTERP`` path, if present.
        string_tables: Raw bytes of every string table, keyed by section
            index.  Excluded from serialisation.
    """
    model_config = _FROZEN

    header: ElfHeader
    program_headers: list[ProgramHeader] = Field(default_factory=list)
    section_headers: list[SectionHeader] = Field(default_factory=list)
    symbol_tables: list[SymbolTable] = Field(default_factory=list)
    relocation_tables: list[RelocationTable] = Field(default_factory=list)
    dynamic: Optional[DynamicSection] = None
    interpreter: Optional[str] = None
    string_tables: dict[int, bytes] = Field(default_factory=dict, exclude=True)

    # ------------------------------------------------------------------ #
    #  Sections
    # ------------------------------------------------------------------ #

    def section(self, index: int) -> Optional[SectionHeader]:
        """Return the section at *index*, or ``None`` if out of range."""
        if 0 <= index < len(self.section_headers):
            return self.section_headers[index]
        return None

    def section_by_name(self, name: str) -> Optional[SectionHeader]:
        """Return the first section called *name*."""
        for sh in self.section_headers:
            if sh.name == name:
                return sh
        return None

    def section_name(self, index: int) -> str:
        """Return the name of the section at *index*, or ``""``."""
        sh = self.section(index)
        return sh.name if sh is not None else ""

    def resolve_string(self, strtab_index: int, offset: int) -> str:
        """Resolve *offset* in the string table section *strtab_index*."""
        data = self.string_tables.get(strtab_index)
        if data is None:
            return PLACEHOLDER_NO_STRINGS
        text, _ = resolve(data, offset)
        return text

    # ------------------------------------------------------------------ #
    #  Symbols
    # ------------------------------------------------------------------ #

    def symbol_table(self, section_index: int) -> Optional[SymbolTable]:
        """Return the symbol table decoded from section *section_index*."""
        for table in self.symbol_tables:
            if table.section_index == section_index:
                return table
        return None

    def symbol(self, symtab_index: int, symbol_index: int) -> Optional[Symbol]:
        """Return symbol *symbol_index* of the table in section *symtab_index*."""
        table = self.symbol_table(symtab_index)
        if table is None or not 0 <= symbol_index < len(table.symbols):
            return None
        return table.symbols[symbol_index]

    def symbol_section(self, symbol: Symbol) -> Optional[SectionHeader]:
        """Return the section a symbol is defined in, if it names one."""
        if isinstance(symbol.section_ref, SpecialSection):
            return None
        return self.section(symbol.section_ref)

    @property
    def symbols(self) -> list[Symbol]:
        """Symbols of ``.symtab`` then ``.dynsym`` tables, in table order."""
        return [sym for table in self.symbol_tables for sym in table.symbols]

    # ------------------------------------------------------------------ #
    #  Relocations
    # ------------------------------------------------------------------ #

    def relocation_symbol(
        self, table: RelocationTable, entry: RelocationEntry
    ) -> Optional[Symbol]:
        """Resolve the symbol an entry refers to through its table's link."""
        return self.symbol(table.symbol_table_index, entry.symbol_index)

    def relocation_target(self, table: RelocationTable) -> Optional[SectionHeader]:
        """Return the section a relocation table applies to (``sh_info``)."""
        if table.target_section_index == 0:
            return None
        return self.section(table.target_section_index)

    # ------------------------------------------------------------------ #
    #  Dynamic linking
    # ------------------------------------------------------------------ #

    def _dynamic_strings(self, tag: int) -> list[str]:
        if self.dynamic is None:
            return []
        return [
            entry.string for entry in self.dynamic.entries
            if entry.tag == tag and entry.string is not None
        ]

    @property
    def needed_libraries(self) -> list[str]:
        """``DT_NEEDED`` names in table order."""
        return self._dynamic_strings(c.DT_NEEDED)

    @property
    def soname(self) -> Optional[str]:
        names = self._dynamic_strings(c.DT_SONAME)
        return names[0] if names else None

    @property
    def rpath(self) -> Optional[str]:
        names = self._dynamic_strings(c.DT_RPATH)
        return names[0] if names else None

    @property
    def runpath(self) -> Optional[str]:
        names = self._dynamic_strings(c.DT_RUNPATH)
        return names[0] if names else None


class ParseResult(BaseModel):
    """The model together with the recoverable problems met building it."""
    model_config = _FROZEN

    model: ElfModel
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics


# ---------------------------------------------------------------------------
# Engine output
# ---------------------------------------------------------------------------

class InspectionReport(BaseModel):
    """Outcome of inspecting one file.

    Exactly one of *result* and *error* is set once inspection finishes.

    Attributes:
        path: The inspected file, or a label for in-memory buffers.
        size: Buffer length in bytes.
        sha256: SHA-256 of the buffer.
        started: UTC timestamp when inspection began.
        finished: UTC timestamp when inspection ended.
        result: Model and diagnostics, when the buffer is ELF.
        error: Message of the fatal failure, when it is not.
        error_kind: Class name of the fatal failure.
    """
    model_config = ConfigDict(validate_assignment=True)

    path: str
    size: int = 0
    sha256: str = ""
    started: _dt.datetime = Field(
        default_factory=lambda: _dt.datetime.now(_dt.timezone.utc)
    )
    finished: Optional[_dt.datetime] = None
    result: Optional[ParseResult] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def parsed(self) -> bool:
        return self.result is not None

    @property
    def duration_seconds(self) -> float | None:
        """Elapsed inspection time in seconds, or ``None`` if unfinished."""
        if self.finished is None:
            return None
        return (self.finished - self.started).total_seconds()
