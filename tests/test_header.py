"""Unit tests for the ELF identification and file header parser."""
# pylint: disable=missing-function-docstring
# pylint: disable=missing-class-docstring

import unittest

from elfscope.core.errors import (
    BadMagic,
    ElfFatalError,
    TruncatedHeader,
    UnsupportedClass,
    UnsupportedEncoding,
)
from elfscope.core.models import ElfClass, Endianness
from elfscope.parsers import constants as c
from elfscope.parsers.header import parse_header, parse_identity

from tests.elf_builder import minimal_header


class IdentityTest(unittest.TestCase):

    def test_short_buffers(self) -> None:
        with self.assertRaises(BadMagic):
            parse_identity(b"")
        with self.assertRaises(BadMagic):
            parse_identity(b"\x7fEL")
        with self.assertRaises(TruncatedHeader):
            parse_identity(b"\x7fELF\x02\x01\x01")

    def test_bad_magic(self) -> None:
        with self.assertRaises(BadMagic) as ctx:
            parse_header(b"MZ\x90\x00" + b"\x00" * 60)
        self.assertEqual(ctx.exception.found, b"MZ\x90\x00")

    def test_unsupported_class(self) -> None:
        data = bytearray(minimal_header())
        data[c.EI_CLASS] = 3
        with self.assertRaises(UnsupportedClass) as ctx:
            parse_header(bytes(data))
        self.assertEqual(ctx.exception.value, 3)

    def test_unsupported_encoding(self) -> None:
        data = bytearray(minimal_header())
        data[c.EI_DATA] = 0
        with self.assertRaises(UnsupportedEncoding):
            parse_header(bytes(data))

    def test_fatal_errors_share_a_base(self) -> None:
        for exc in (BadMagic, TruncatedHeader, UnsupportedClass, UnsupportedEncoding):
            self.assertTrue(issubclass(exc, ElfFatalError))


class HeaderTest(unittest.TestCase):

    def test_minimal_le64(self) -> None:
        header, ctx = parse_header(minimal_header(e_entry=0x401000, e_machine=c.EM_X86_64))
        self.assertEqual(header.identity.elf_class, ElfClass.ELF64)
        self.assertEqual(header.identity.endianness, Endianness.LITTLE)
        self.assertEqual(header.entry_point, 0x401000)
        self.assertEqual(header.machine, c.EM_X86_64)
        self.assertEqual(header.header_size, 64)
        self.assertEqual(header.section_header_count, 0)
        self.assertTrue(ctx.is_64bit)
        self.assertEqual(ctx.endian, "<")
        self.assertEqual(ctx.machine, c.EM_X86_64)

    def test_big_endian_32(self) -> None:
        data = minimal_header(
            is_64bit=False, little_endian=False,
            e_type=c.ET_EXEC, e_machine=c.EM_MIPS, e_entry=0x80001000,
            e_flags=0x70001007,
        )
        header, ctx = parse_header(data)
        self.assertEqual(header.identity.elf_class, ElfClass.ELF32)
        self.assertEqual(header.identity.endianness, Endianness.BIG)
        self.assertEqual(header.file_type, c.ET_EXEC)
        self.assertEqual(header.machine, c.EM_MIPS)
        self.assertEqual(header.entry_point, 0x80001000)
        self.assertEqual(header.flags, 0x70001007)
        self.assertEqual(header.header_size, 52)
        self.assertFalse(ctx.is_64bit)
        self.assertEqual(ctx.endian, ">")

    def test_raw_values_are_kept(self) -> None:
        header, _ = parse_header(
            minimal_header(e_shoff=0x1234, e_shnum=7, e_shstrndx=6, e_phnum=3)
        )
        self.assertEqual(header.section_header_offset, 0x1234)
        self.assertEqual(header.section_header_count, 7)
        self.assertEqual(header.string_table_section_index, 6)
        self.assertEqual(header.program_header_count, 3)

    def test_truncated_fixed_header(self) -> None:
        with self.assertRaises(TruncatedHeader) as ctx:
            parse_header(minimal_header()[:40])
        self.assertEqual(ctx.exception.required, 64)
        self.assertEqual(ctx.exception.length, 40)
        with self.assertRaises(TruncatedHeader):
            parse_header(minimal_header(is_64bit=False)[:51])

    def test_identity_fields(self) -> None:
        header, _ = parse_header(minimal_header())
        self.assertEqual(header.identity.raw[:4], b"\x7fELF")
        self.assertEqual(header.identity.version, 1)
        self.assertEqual(header.identity.os_abi_name, "UNIX - System V")

    def test_names(self) -> None:
        header, _ = parse_header(minimal_header(e_type=c.ET_DYN))
        self.assertEqual(header.file_type_name, "DYN (Shared object file)")
        self.assertEqual(header.machine_name, "Advanced Micro Devices X86-64")


if __name__ == "__main__":
    unittest.main()
