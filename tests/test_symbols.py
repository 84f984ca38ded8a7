"""Unit tests for symbol table decoding."""
# pylint: disable=missing-function-docstring
# pylint: disable=missing-class-docstring

import struct
import unittest

from elfscope.core.diagnostics import DiagnosticKind
from elfscope.core.models import SpecialSection
from elfscope.parsers import constants as c
from elfscope.parsers.elf_parser import parse_elf
from elfscope.parsers.symbols import classify_section_index

from tests.elf_builder import ElfBuilder, StringTableBuilder, st_info


def _object_with_symbols(builder: ElfBuilder, symbols: list[dict], link: int = 2,
                         extra: bytes = b"") -> int:
    """Add .text (1), .strtab (2) and .symtab (3); return the symtab index."""
    names = StringTableBuilder()
    encoded = builder.symbol()  # null symbol
    for sym in symbols:
        sym = dict(sym)
        name = sym.pop("name", "")
        encoded += builder.symbol(name=names.add(name) if name else 0, **sym)
    builder.add_section(".text", c.SHT_PROGBITS, b"\xc3" * 16,
                        flags=c.SHF_ALLOC | c.SHF_EXECINSTR)
    builder.add_section(".strtab", c.SHT_STRTAB, names.data())
    return builder.add_section(
        ".symtab", c.SHT_SYMTAB, encoded + extra, link=link, info=1,
        entsize=c.SYM_SIZE[builder.is_64bit], align=8,
    )


class SymbolTableTest(unittest.TestCase):

    def _check_layout(self, builder: ElfBuilder) -> None:
        symtab = _object_with_symbols(builder, [
            {"name": "main", "value": 0x10, "size": 4,
             "info": st_info(c.STB_GLOBAL, c.STT_FUNC), "shndx": 1},
            {"name": "buf", "value": 8, "size": 64,
             "info": st_info(c.STB_GLOBAL, c.STT_OBJECT), "shndx": c.SHN_COMMON},
            {"name": "answer", "value": 42,
             "info": st_info(c.STB_LOCAL, c.STT_NOTYPE), "shndx": c.SHN_ABS},
            {"name": "puts", "info": st_info(c.STB_GLOBAL, c.STT_NOTYPE),
             "other": c.STV_HIDDEN},
        ])
        result = parse_elf(builder.build())
        self.assertEqual(result.diagnostics, [])
        model = result.model

        self.assertEqual(len(model.symbol_tables), 1)
        table = model.symbol_tables[0]
        self.assertEqual(table.section_index, symtab)
        self.assertEqual(table.string_table_index, 2)
        self.assertEqual([s.name for s in table.symbols],
                         ["", "main", "buf", "answer", "puts"])

        null = table.symbols[0]
        self.assertEqual(null.section_ref, SpecialSection.UNDEFINED)
        self.assertTrue(null.is_undefined)

        main = table.symbols[1]
        self.assertEqual(main.index, 1)
        self.assertEqual(main.value, 0x10)
        self.assertEqual(main.size, 4)
        self.assertEqual(main.binding_name, "GLOBAL")
        self.assertEqual(main.type_name, "FUNC")
        self.assertEqual(main.section_ref, 1)
        self.assertEqual(model.symbol_section(main).name, ".text")

        self.assertEqual(table.symbols[2].section_ref, SpecialSection.COMMON)
        self.assertIsNone(model.symbol_section(table.symbols[2]))
        self.assertEqual(table.symbols[3].section_ref, SpecialSection.ABSOLUTE)
        self.assertEqual(table.symbols[3].value, 42)

        puts = table.symbols[4]
        self.assertTrue(puts.is_undefined)
        self.assertEqual(puts.visibility, c.STV_HIDDEN)
        self.assertEqual(puts.raw_section_index, c.SHN_UNDEF)

        self.assertEqual(model.symbol(symtab, 1), main)
        self.assertIsNone(model.symbol(symtab, 99))

    def test_elf64_little_endian(self) -> None:
        self._check_layout(ElfBuilder())

    def test_elf32_big_endian(self) -> None:
        self._check_layout(ElfBuilder(is_64bit=False, little_endian=False, machine=c.EM_MIPS))

    def test_missing_string_table(self) -> None:
        b = ElfBuilder()
        _object_with_symbols(b, [{"name": "main", "shndx": 1}], link=0)
        result = parse_elf(b.build())
        names = [s.name for s in result.model.symbol_tables[0].symbols]
        self.assertEqual(names, ["<no-strings>", "<no-strings>"])
        self.assertEqual([d.kind for d in result.diagnostics],
                         [DiagnosticKind.MISSING_STRING_TABLE])

    def test_link_to_non_string_section(self) -> None:
        b = ElfBuilder()
        _object_with_symbols(b, [{"name": "main", "shndx": 1}], link=1)
        result = parse_elf(b.build())
        self.assertEqual(result.model.symbol_tables[0].symbols[1].name, "<no-strings>")
        self.assertEqual([d.kind for d in result.diagnostics],
                         [DiagnosticKind.MISSING_STRING_TABLE])

    def test_bad_name_offset(self) -> None:
        b = ElfBuilder()
        names = StringTableBuilder()
        names.add("x")
        b.add_section(".text", c.SHT_PROGBITS, b"\0")
        b.add_section(".strtab", c.SHT_STRTAB, names.data())
        b.add_section(".symtab", c.SHT_SYMTAB,
                      b.symbol() + b.symbol(name=500, shndx=1), link=2, entsize=24)
        result = parse_elf(b.build())
        self.assertEqual(result.model.symbol_tables[0].symbols[1].name, "<corrupt>")
        self.assertEqual([d.kind for d in result.diagnostics], [DiagnosticKind.OUT_OF_BOUNDS])

    def test_dangling_section_reference(self) -> None:
        b = ElfBuilder()
        _object_with_symbols(b, [{"name": "ghost", "shndx": 50}])
        result = parse_elf(b.build())
        ghost = result.model.symbol_tables[0].symbols[1]
        self.assertEqual(ghost.section_ref, 50)
        self.assertIsNone(result.model.symbol_section(ghost))
        self.assertEqual([d.kind for d in result.diagnostics],
                         [DiagnosticKind.DANGLING_SECTION_REFERENCE])

    def test_extended_section_index(self) -> None:
        b = ElfBuilder()
        symtab = _object_with_symbols(b, [{"name": "far", "shndx": c.SHN_XINDEX}])
        b.add_section(".symtab_shndx", c.SHT_SYMTAB_SHNDX,
                      struct.pack("<II", 0, 1), link=symtab, entsize=4)
        result = parse_elf(b.build())
        self.assertEqual(result.diagnostics, [])
        far = result.model.symbol_tables[0].symbols[1]
        self.assertEqual(far.raw_section_index, c.SHN_XINDEX)
        self.assertEqual(far.section_ref, 1)

    def test_extended_index_without_table(self) -> None:
        b = ElfBuilder()
        _object_with_symbols(b, [{"name": "far", "shndx": c.SHN_XINDEX}])
        result = parse_elf(b.build())
        self.assertEqual(result.model.symbol_tables[0].symbols[1].section_ref,
                         SpecialSection.XINDEX)
        self.assertEqual([d.kind for d in result.diagnostics],
                         [DiagnosticKind.DANGLING_SECTION_REFERENCE])
        self.assertIn("no SHT_SYMTAB_SHNDX", result.diagnostics[0].message)

    def test_extended_index_past_table_end(self) -> None:
        b = ElfBuilder()
        symtab = _object_with_symbols(b, [
            {"name": "near", "shndx": 1},
            {"name": "far", "shndx": c.SHN_XINDEX},
        ])
        b.add_section(".symtab_shndx", c.SHT_SYMTAB_SHNDX,
                      struct.pack("<II", 0, 0), link=symtab, entsize=4)
        result = parse_elf(b.build())
        symbols = result.model.symbol_tables[0].symbols
        self.assertEqual(symbols[1].section_ref, 1)
        self.assertEqual(symbols[2].section_ref, SpecialSection.XINDEX)
        self.assertEqual([d.kind for d in result.diagnostics],
                         [DiagnosticKind.DANGLING_SECTION_REFERENCE])
        self.assertEqual(result.diagnostics[0].section_index, symtab)
        self.assertIn("holds 2 entries", result.diagnostics[0].message)

    def test_truncated_table(self) -> None:
        b = ElfBuilder()
        names = StringTableBuilder()
        b.add_section(".strtab", c.SHT_STRTAB, names.data())
        b.add_section(".symtab", c.SHT_SYMTAB, b.symbol(), link=1, entsize=24,
                      size=24 * 10_000)
        result = parse_elf(b.build())
        kinds = [d.kind for d in result.diagnostics]
        self.assertIn(DiagnosticKind.TRUNCATED_TABLE, kinds)
        self.assertLess(len(result.model.symbol_tables[0].symbols), 10_000)

    def test_dynsym_is_decoded(self) -> None:
        b = ElfBuilder(file_type=c.ET_DYN)
        names = StringTableBuilder()
        off = names.add("printf")
        b.add_section(".dynstr", c.SHT_STRTAB, names.data())
        b.add_section(".dynsym", c.SHT_DYNSYM,
                      b.symbol() + b.symbol(name=off, info=st_info(c.STB_GLOBAL, c.STT_FUNC)),
                      link=1, entsize=24)
        model = parse_elf(b.build()).model
        self.assertEqual([s.name for s in model.symbols], ["", "printf"])


class ClassifySectionIndexTest(unittest.TestCase):

    def test_special_values(self) -> None:
        self.assertEqual(classify_section_index(0), SpecialSection.UNDEFINED)
        self.assertEqual(classify_section_index(c.SHN_ABS), SpecialSection.ABSOLUTE)
        self.assertEqual(classify_section_index(c.SHN_COMMON), SpecialSection.COMMON)
        self.assertEqual(classify_section_index(c.SHN_XINDEX), SpecialSection.XINDEX)
        self.assertEqual(classify_section_index(0xFF20), SpecialSection.RESERVED)

    def test_ordinary_index(self) -> None:
        self.assertEqual(classify_section_index(7), 7)
        self.assertEqual(classify_section_index(c.SHN_LORESERVE - 1), c.SHN_LORESERVE - 1)


if __name__ == "__main__":
    unittest.main()
