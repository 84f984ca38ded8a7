"""End-to-end tests of the aggregating parser."""
# pylint: disable=missing-function-docstring
# pylint: disable=missing-class-docstring

import struct
import unittest
from concurrent.futures import ThreadPoolExecutor

from elfscope.core.diagnostics import DiagnosticKind
from elfscope.core.errors import (
    BadMagic,
    DeclaredSizeTooLarge,
    ElfFatalError,
    TruncatedHeader,
)
from elfscope.parsers import constants as c
from elfscope.parsers.elf_parser import ELFParser, parse_elf
from elfscope.parsers.tables import ParseLimits

from tests.elf_builder import ElfBuilder, StringTableBuilder, sample_executable


class ElfParserTest(unittest.TestCase):

    def test_complete_file(self) -> None:
        result = ELFParser(sample_executable()).parse()
        self.assertEqual(result.diagnostics, [])
        self.assertTrue(result.ok)
        model = result.model

        self.assertEqual(model.header.file_type, c.ET_EXEC)
        self.assertEqual(model.header.entry_point, 0x401000)
        self.assertEqual(len(model.program_headers), 3)
        self.assertEqual(model.interpreter, "/lib64/ld-linux-x86-64.so.2")

        self.assertEqual(
            [sh.name for sh in model.section_headers],
            ["", ".interp", ".text", ".dynstr", ".dynamic", ".strtab",
             ".symtab", ".rela.text", ".bss", ".shstrtab"],
        )
        self.assertEqual(model.section_by_name(".bss").size, 0x100)
        self.assertIsNone(model.section_by_name(".data"))
        self.assertEqual(model.section_name(2), ".text")
        self.assertEqual(model.section_name(99), "")

        self.assertEqual([s.name for s in model.symbols], ["", "_start", "puts"])
        table = model.relocation_tables[0]
        entry = table.entries[0]
        self.assertEqual(entry.type_name, "R_X86_64_PLT32")
        self.assertEqual(model.relocation_symbol(table, entry).name, "puts")
        self.assertEqual(model.relocation_target(table).name, ".text")

        self.assertEqual(model.needed_libraries, ["libc.so.6"])
        self.assertEqual(model.resolve_string(5, 1), "_start")
        self.assertEqual(model.resolve_string(2, 1), "<no-strings>")

    def test_elf32_big_endian(self) -> None:
        data = sample_executable(ElfBuilder(
            is_64bit=False, little_endian=False, machine=c.EM_PPC,
            file_type=c.ET_EXEC, entry=0x10000,
        ))
        result = parse_elf(data)
        self.assertEqual(result.diagnostics, [])
        model = result.model
        self.assertFalse(model.header.is_64bit)
        self.assertEqual(model.needed_libraries, ["libc.so.6"])
        self.assertEqual([s.name for s in model.symbols], ["", "_start", "puts"])
        entry = model.relocation_tables[0].entries[0]
        self.assertEqual((entry.symbol_index, entry.addend), (2, -4))

    def test_repeatable(self) -> None:
        data = sample_executable()
        self.assertEqual(parse_elf(data), parse_elf(data))

    def test_concurrent_parses(self) -> None:
        data = sample_executable()
        expected = parse_elf(data)
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(parse_elf, [data] * 8))
        for result in results:
            self.assertEqual(result, expected)

    def test_header_only(self) -> None:
        result = parse_elf(ElfBuilder().build(with_sections=False))
        self.assertEqual(result.diagnostics, [])
        self.assertEqual(result.model.section_headers, [])
        self.assertEqual(result.model.program_headers, [])
        self.assertIsNone(result.model.dynamic)
        self.assertIsNone(result.model.interpreter)

    def test_missing_section_names(self) -> None:
        b = ElfBuilder()
        b.add_section(".text", c.SHT_PROGBITS, b"\0")
        result = parse_elf(b.build(e_shstrndx=0))
        self.assertEqual({sh.name for sh in result.model.section_headers}, {"<no-strings>"})
        self.assertEqual([d.kind for d in result.diagnostics],
                         [DiagnosticKind.MISSING_STRING_TABLE])

    def test_extended_numbering_names(self) -> None:
        b = ElfBuilder()
        b.add_section(".text", c.SHT_PROGBITS, b"\0")
        data = bytearray(b.build(e_shnum=0, e_shstrndx=c.SHN_XINDEX))
        shoff = struct.unpack_from("<Q", data, 0x28)[0]
        struct.pack_into("<Q", data, shoff + 32, 3)
        struct.pack_into("<I", data, shoff + 40, 2)
        result = parse_elf(bytes(data))
        self.assertEqual(result.diagnostics, [])
        self.assertEqual(result.model.header.section_header_count, 0)
        self.assertEqual([sh.name for sh in result.model.section_headers],
                         ["", ".text", ".shstrtab"])

    def test_truncated_file(self) -> None:
        data = sample_executable()
        cut = data[:300]
        result = parse_elf(cut)
        self.assertEqual(result.model.section_headers, [])
        kinds = {d.kind for d in result.diagnostics}
        self.assertIn(DiagnosticKind.TRUNCATED_TABLE, kinds)
        self.assertEqual(len(result.model.program_headers), 3)

    def test_declared_size_limits(self) -> None:
        data = sample_executable()
        with self.assertRaises(DeclaredSizeTooLarge) as ctx:
            parse_elf(data, ParseLimits(max_entries=4))
        self.assertEqual(ctx.exception.limit, 4)
        with self.assertRaises(DeclaredSizeTooLarge):
            parse_elf(data, ParseLimits(max_table_bytes=128))

    def test_huge_declared_count(self) -> None:
        data = ElfBuilder().build(with_sections=False, e_phoff=64, e_phnum=0xFFFE,
                                  e_phentsize=0xFFFF)
        with self.assertRaises(DeclaredSizeTooLarge):
            parse_elf(data, ParseLimits(max_table_bytes=1 << 20))

    def test_aliased_tables_share_the_entry_limit(self) -> None:
        b = ElfBuilder()
        names = StringTableBuilder()
        symbols = b.symbol() + b"".join(
            b.symbol(name=names.add(f"sym{i}")) for i in range(99)
        )
        strtab = b.add_section(".strtab", c.SHT_STRTAB, names.data())
        symtab = b.add_section(".symtab", c.SHT_SYMTAB, symbols, link=strtab,
                               entsize=c.SYM_SIZE[True])
        for _ in range(20):
            b.add_section(".symtab", c.SHT_SYMTAB, alias_of=symtab, link=strtab,
                          entsize=c.SYM_SIZE[True])
        data = b.build()

        # 24 section headers plus 21 tables of 100 symbols.
        with self.assertRaises(DeclaredSizeTooLarge) as ctx:
            parse_elf(data, ParseLimits(max_entries=1000))
        self.assertEqual(ctx.exception.limit, 1000)
        self.assertIn("all tables", ctx.exception.what)

        result = parse_elf(data, ParseLimits(max_entries=2124))
        self.assertEqual(result.diagnostics, [])
        tables = result.model.symbol_tables
        self.assertEqual(len(tables), 21)
        self.assertTrue(all(len(t.symbols) == 100 for t in tables))
        self.assertEqual(tables[-1].symbols[99].name, "sym98")

    def test_fatal_errors(self) -> None:
        with self.assertRaises(BadMagic):
            parse_elf(b"MZ\x90\x00" + b"\0" * 60)
        with self.assertRaises(TruncatedHeader):
            parse_elf(sample_executable()[:40])
        with self.assertRaises(ElfFatalError):
            parse_elf(b"")


if __name__ == "__main__":
    unittest.main()
