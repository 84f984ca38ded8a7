"""Unit tests for REL/RELA decoding and the per-machine r_info conventions."""
# pylint: disable=missing-function-docstring
# pylint: disable=missing-class-docstring

import unittest

from elfscope.core.diagnostics import DiagnosticKind
from elfscope.core.models import RelocationKind
from elfscope.parsers import constants as c
from elfscope.parsers.elf_parser import parse_elf
from elfscope.parsers.machines import GENERIC, arch_for_machine
from elfscope.parsers.reader import DecodeContext

from tests.elf_builder import ElfBuilder, StringTableBuilder, st_info


def _relocatable(builder: ElfBuilder, relocations: bytes, rela: bool = True,
                 link: int = 3, info: int = 1) -> int:
    """.text (1), .strtab (2), .symtab (3) with four symbols, then the relocations."""
    names = StringTableBuilder()
    symbols = builder.symbol()
    for name in ("counter", "helper", "target"):
        symbols += builder.symbol(
            name=names.add(name), info=st_info(c.STB_GLOBAL, c.STT_FUNC), shndx=1
        )
    builder.add_section(".text", c.SHT_PROGBITS, b"\0" * 32,
                        flags=c.SHF_ALLOC | c.SHF_EXECINSTR)
    builder.add_section(".strtab", c.SHT_STRTAB, names.data())
    builder.add_section(".symtab", c.SHT_SYMTAB, symbols, link=2, info=1,
                        entsize=c.SYM_SIZE[builder.is_64bit])
    sh_type = c.SHT_RELA if rela else c.SHT_REL
    size_table = c.RELA_SIZE if rela else c.REL_SIZE
    return builder.add_section(
        ".rela.text" if rela else ".rel.text", sh_type, relocations,
        link=link, info=info, entsize=size_table[builder.is_64bit],
    )


class RelocationTableTest(unittest.TestCase):

    def test_rela_x86_64(self) -> None:
        b = ElfBuilder()
        index = _relocatable(b, b.rela(8, 3, 1, 16) + b.rela(0x14, 2, 4, -4))
        result = parse_elf(b.build())
        self.assertEqual(result.diagnostics, [])
        model = result.model

        table = model.relocation_tables[0]
        self.assertEqual(table.section_index, index)
        self.assertEqual(table.kind, RelocationKind.RELA)
        self.assertEqual(table.symbol_table_index, 3)
        self.assertEqual(model.relocation_target(table).name, ".text")

        first, second = table.entries
        self.assertEqual(first.offset, 8)
        self.assertEqual(first.symbol_index, 3)
        self.assertEqual(first.type_code, 1)
        self.assertEqual(first.type_name, "R_X86_64_64")
        self.assertEqual(first.addend, 16)
        self.assertEqual(model.relocation_symbol(table, first).name, "target")

        self.assertEqual(second.type_name, "R_X86_64_PLT32")
        self.assertEqual(second.addend, -4)
        self.assertEqual(model.relocation_symbol(table, second).name, "helper")

    def test_rel_i386(self) -> None:
        b = ElfBuilder(is_64bit=False, machine=c.EM_386)
        _relocatable(b, b.rel(4, 1, 2), rela=False)
        result = parse_elf(b.build())
        self.assertEqual(result.diagnostics, [])
        table = result.model.relocation_tables[0]
        self.assertEqual(table.kind, RelocationKind.REL)
        entry = table.entries[0]
        self.assertEqual(entry.symbol_index, 1)
        self.assertEqual(entry.type_name, "R_386_PC32")
        self.assertIsNone(entry.addend)

    def test_rela_big_endian_32(self) -> None:
        b = ElfBuilder(is_64bit=False, little_endian=False, machine=c.EM_PPC)
        _relocatable(b, b.rela(0x10, 2, 10, -8))
        entry = parse_elf(b.build()).model.relocation_tables[0].entries[0]
        self.assertEqual((entry.symbol_index, entry.type_code, entry.addend), (2, 10, -8))
        self.assertEqual(entry.type_name, "R_PPC_REL24")

    def test_unknown_machine_has_no_labels(self) -> None:
        b = ElfBuilder(machine=0x1234)
        _relocatable(b, b.rela(0, 1, 7, 0))
        entry = parse_elf(b.build()).model.relocation_tables[0].entries[0]
        self.assertEqual(entry.type_code, 7)
        self.assertIsNone(entry.type_name)

    def test_dangling_symbol(self) -> None:
        b = ElfBuilder()
        _relocatable(b, b.rela(0, 10, 1, 0) + b.rela(8, 0, 8, 0x40))
        result = parse_elf(b.build())
        table = result.model.relocation_tables[0]
        self.assertEqual(len(table.entries), 2)
        self.assertIsNone(result.model.relocation_symbol(table, table.entries[0]))
        self.assertEqual([d.kind for d in result.diagnostics],
                         [DiagnosticKind.DANGLING_SYMBOL_REFERENCE])

    def test_link_not_a_symbol_table(self) -> None:
        b = ElfBuilder()
        _relocatable(b, b.rela(0, 1, 1, 0), link=1)
        result = parse_elf(b.build())
        self.assertEqual(len(result.model.relocation_tables[0].entries), 1)
        self.assertEqual([d.kind for d in result.diagnostics],
                         [DiagnosticKind.MISSING_SYMBOL_TABLE])

    def test_no_symbol_table_link(self) -> None:
        b = ElfBuilder()
        _relocatable(b, b.rela(0, 0, 8, 0x1000), link=0, info=0)
        result = parse_elf(b.build())
        self.assertEqual(result.diagnostics, [])
        table = result.model.relocation_tables[0]
        self.assertIsNone(result.model.relocation_target(table))

    def test_dangling_target_section(self) -> None:
        b = ElfBuilder()
        _relocatable(b, b.rela(0, 1, 1, 0), info=40)
        result = parse_elf(b.build())
        self.assertEqual([d.kind for d in result.diagnostics],
                         [DiagnosticKind.DANGLING_SECTION_REFERENCE])


class MachineConventionTest(unittest.TestCase):

    le64 = DecodeContext(is_64bit=True, endian="<")
    be64 = DecodeContext(is_64bit=True, endian=">")
    le32 = DecodeContext(is_64bit=False, endian="<")

    def test_generic_split(self) -> None:
        self.assertEqual(GENERIC.split_info((7 << 32) | 0x1234, self.le64), (7, 0x1234))
        self.assertEqual(GENERIC.split_info((9 << 8) | 7, self.le32), (9, 7))
        self.assertIs(arch_for_machine(0x7777), GENERIC)

    def test_mips64_little_endian(self) -> None:
        mips = arch_for_machine(c.EM_MIPS)
        info = 5 | (18 << 56)
        self.assertEqual(mips.split_info(info, self.le64), (5, 18))
        self.assertEqual(mips.label(18), "R_MIPS_64")

    def test_mips64_big_endian(self) -> None:
        mips = arch_for_machine(c.EM_MIPS)
        self.assertEqual(mips.split_info((5 << 32) | 2, self.be64), (5, 2))

    def test_mips32_uses_generic_split(self) -> None:
        mips = arch_for_machine(c.EM_MIPS)
        self.assertEqual(mips.split_info((3 << 8) | 4, self.le32), (3, 4))

    def test_sparcv9_type_bits(self) -> None:
        sparc = arch_for_machine(c.EM_SPARCV9)
        info = (7 << 32) | (0x123456 << 8) | 33
        self.assertEqual(sparc.split_info(info, self.be64), (7, 33))
        self.assertEqual(sparc.label(33), "R_SPARC_OLO10")

    def test_labels(self) -> None:
        self.assertEqual(arch_for_machine(c.EM_X86_64).label(2), "R_X86_64_PC32")
        self.assertEqual(arch_for_machine(c.EM_AARCH64).label(1026), "R_AARCH64_JUMP_SLOT")
        self.assertEqual(arch_for_machine(c.EM_ARM).label(2), "R_ARM_ABS32")
        self.assertIsNone(arch_for_machine(c.EM_X86_64).label(999))


if __name__ == "__main__":
    unittest.main()
