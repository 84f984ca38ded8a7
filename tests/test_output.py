"""Tests for the console renderer and the JSON report generator."""
# pylint: disable=missing-function-docstring
# pylint: disable=missing-class-docstring

import io
import json
import struct
import tempfile
import unittest
from pathlib import Path

from shared.console import ElfscopeConsole

from elfscope.core.models import InspectionReport
from elfscope.output.console import DisplaySelection, ElfConsoleOutput
from elfscope.output.report import ElfReportGenerator
from elfscope.parsers import constants as c
from elfscope.parsers.elf_parser import parse_elf

from tests.elf_builder import ElfBuilder, sample_executable


def _report(data: bytes, path: str = "a.out") -> InspectionReport:
    return InspectionReport(path=path, size=len(data), result=parse_elf(data))


def _failed(path: str = "broken") -> InspectionReport:
    return InspectionReport(path=path, error="not an ELF file", error_kind="BadMagic")


class ConsoleOutputTest(unittest.TestCase):

    def setUp(self) -> None:
        self.stream = io.StringIO()
        self.console = ElfscopeConsole(file=self.stream, width=250)

    def _render(self, report: InspectionReport, selection: DisplaySelection, **kwargs) -> str:
        ElfConsoleOutput(self.console, **kwargs).display(report, selection)
        return self.stream.getvalue()

    def test_header_fields(self) -> None:
        model = parse_elf(sample_executable()).model
        fields = dict(ElfConsoleOutput(self.console).header_fields(model))
        self.assertTrue(fields["Magic"].startswith("7f 45 4c 46 02 01 01"))
        self.assertEqual(fields["Class"], "ELF64")
        self.assertEqual(fields["Data"], "2's complement, little endian")
        self.assertEqual(fields["OS/ABI"], "UNIX - System V")
        self.assertEqual(fields["Type"], "EXEC (Executable file)")
        self.assertEqual(fields["Machine"], "Advanced Micro Devices X86-64")
        self.assertEqual(fields["Entry point address"], "0x401000")
        self.assertEqual(fields["Start of program headers"], "64 (bytes into file)")
        self.assertEqual(fields["Number of program headers"], "3")
        self.assertEqual(fields["Number of section headers"], "10")

    def test_header_fields_extended_numbering(self) -> None:
        b = ElfBuilder()
        b.add_section(".text", c.SHT_PROGBITS, b"\0")
        data = bytearray(b.build(e_shnum=0, e_shstrndx=c.SHN_XINDEX))
        shoff = struct.unpack_from("<Q", data, 0x28)[0]
        struct.pack_into("<Q", data, shoff + 32, 3)
        struct.pack_into("<I", data, shoff + 40, 2)
        model = parse_elf(bytes(data)).model
        fields = dict(ElfConsoleOutput(self.console).header_fields(model))
        self.assertEqual(fields["Number of section headers"], "0 (3)")
        self.assertEqual(fields["Section header string table index"], "65535 (2)")

    def test_everything(self) -> None:
        text = self._render(_report(sample_executable()), DisplaySelection.everything())
        for expected in (
            "ELF Header",
            "Program interpreter",
            "/lib64/ld-linux-x86-64.so.2",
            "Program Headers",
            "INTERP",
            "Section Headers",
            ".rela.text",
            "NOBITS",
            "Symbol table '.symtab' contains 3 entries",
            "_start",
            "Relocation section '.rela.text'",
            "R_X86_64_PLT32",
            "-0x4",
            "Dynamic Section",
            "Shared library: [libc.so.6]",
        ):
            self.assertIn(expected, text)
        self.assertNotIn("Diagnostics", text)

    def test_default_selection_is_header_only(self) -> None:
        text = self._render(_report(sample_executable()), DisplaySelection())
        self.assertIn("ELF Header", text)
        self.assertNotIn("Section Headers", text)
        self.assertNotIn("Symbol Tables", text)

    def test_empty_parts(self) -> None:
        data = ElfBuilder().build(with_sections=False)
        text = self._render(_report(data), DisplaySelection.everything())
        self.assertIn("There are no program headers in this file.", text)
        self.assertIn("There are no sections in this file.", text)
        self.assertIn("There is no dynamic section in this file.", text)

    def test_names_are_not_markup(self) -> None:
        b = ElfBuilder()
        b.add_section("[bold]evil[/bold]", c.SHT_PROGBITS, b"\0")
        text = self._render(_report(b.build()), DisplaySelection(section_headers=True))
        self.assertIn("[bold]evil[/bold]", text)

    def test_diagnostics_table(self) -> None:
        b = ElfBuilder()
        b.add_section(".text", c.SHT_PROGBITS, b"\0")
        report = _report(b.build(e_shstrndx=0))
        text = self._render(report, DisplaySelection())
        self.assertIn("Diagnostics", text)
        self.assertIn("missing_string_table", text)

        self.stream.truncate(0)
        self.stream.seek(0)
        text = self._render(report, DisplaySelection(), show_diagnostics=False)
        self.assertNotIn("missing_string_table", text)

    def test_max_rows(self) -> None:
        text = self._render(
            _report(sample_executable()), DisplaySelection(file_header=False, section_headers=True),
            max_rows=4,
        )
        self.assertIn("... 6 more row(s) not shown", text)
        self.assertNotIn(".shstrtab", text)

    def test_failed_report(self) -> None:
        text = self._render(_failed("broken.bin"), DisplaySelection.everything())
        self.assertIn("ERROR:", text)
        self.assertIn("broken.bin: not an ELF file", text)
        self.assertNotIn("ELF Header", text)


class ReportGeneratorTest(unittest.TestCase):

    def test_build(self) -> None:
        reports = [_report(sample_executable()), _failed()]
        document = ElfReportGenerator().build(reports)
        self.assertEqual(document["report_type"], "elfscope_inspection")
        self.assertEqual(document["file_count"], 2)
        self.assertEqual(document["failed_count"], 1)

        parsed, failed = document["files"]
        summary = parsed["summary"]
        self.assertEqual(summary["class"], "ELF64")
        self.assertEqual(summary["endianness"], "little")
        self.assertEqual(summary["machine"], "Advanced Micro Devices X86-64")
        self.assertEqual(summary["entry_point"], "0x401000")
        self.assertEqual(summary["interpreter"], "/lib64/ld-linux-x86-64.so.2")
        self.assertEqual(summary["needed"], ["libc.so.6"])
        self.assertEqual(summary["section_count"], 10)

        model = parsed["result"]["model"]
        self.assertNotIn("string_tables", model)
        self.assertTrue(model["header"]["identity"]["raw"].startswith("7f 45 4c 46"))
        self.assertEqual(model["symbol_tables"][0]["symbols"][0]["section_ref"], "UND")

        self.assertIsNone(failed["summary"])
        self.assertEqual(failed["error_kind"], "BadMagic")

    def test_to_json_and_file(self) -> None:
        reports = [_report(sample_executable())]
        generator = ElfReportGenerator(indent=4)
        document = json.loads(generator.to_json(reports))
        self.assertEqual(document["files"][0]["path"], "a.out")

        with tempfile.TemporaryDirectory() as tmp:
            written = generator.generate_json(reports, Path(tmp) / "out" / "report.json")
            self.assertTrue(Path(written).is_file())
            on_disk = json.loads(Path(written).read_text(encoding="utf-8"))
        self.assertEqual(on_disk["file_count"], 1)


if __name__ == "__main__":
    unittest.main()
