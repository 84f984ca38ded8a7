"""Tests for the command-line interface."""
# pylint: disable=missing-function-docstring
# pylint: disable=missing-class-docstring

import json
import tempfile
import unittest
from pathlib import Path

from click.testing import CliRunner

from elfscope import __version__
from elfscope.cli import elfscope_cli

from tests.elf_builder import sample_executable


class CliTest(unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.dir = Path(self._tmp.name)
        self.binary = self.dir / "prog"
        self.binary.write_bytes(sample_executable())
        self.runner = CliRunner()

    def _run(self, *args: str):
        return self.runner.invoke(elfscope_cli, list(args), catch_exceptions=False)

    def test_file_header_by_default(self) -> None:
        result = self._run("-f", str(self.binary))
        self.assertEqual(result.exit_code, 0)
        self.assertIn("ELF Header", result.output)
        self.assertIn("Advanced Micro Devices X86-64", result.output)
        self.assertNotIn("Section Headers", result.output)

    def test_selected_parts(self) -> None:
        result = self._run("-f", str(self.binary), "-S", "-r", "-d", "-W")
        self.assertEqual(result.exit_code, 0)
        self.assertNotIn("ELF Header", result.output)
        self.assertIn(".rela.text", result.output)
        self.assertIn("R_X86_64_PLT32", result.output)
        self.assertIn("Shared library: [libc.so.6]", result.output)

    def test_all(self) -> None:
        result = self._run("--file", str(self.binary), "--all", "--wide")
        self.assertEqual(result.exit_code, 0)
        for heading in ("ELF Header", "Program Headers", "Section Headers",
                        "Symbol Tables", "Relocations", "Dynamic Section"):
            self.assertIn(heading, result.output)

    def test_json(self) -> None:
        result = self._run("-f", str(self.binary), "--json")
        self.assertEqual(result.exit_code, 0)
        document = json.loads(result.stdout)
        self.assertEqual(document["file_count"], 1)
        self.assertEqual(document["files"][0]["summary"]["needed"], ["libc.so.6"])

    def test_output_file(self) -> None:
        target = self.dir / "reports" / "prog.json"
        result = self._run("-f", str(self.binary), "-o", str(target))
        self.assertEqual(result.exit_code, 0)
        document = json.loads(target.read_text(encoding="utf-8"))
        self.assertEqual(document["files"][0]["path"], str(self.binary))

    def test_several_files(self) -> None:
        other = self.dir / "notes.txt"
        other.write_text("hello\n", encoding="utf-8")
        result = self._run("-f", str(self.binary), "-f", str(other), "-W")
        self.assertEqual(result.exit_code, 1)
        self.assertIn(f"File: {self.binary}", result.output)
        self.assertIn(f"File: {other}", result.output)
        self.assertIn("bad magic", result.output)

    def test_missing_file(self) -> None:
        result = self._run("-f", str(self.dir / "absent"), "-W")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("ERROR", result.output)

    def test_config_file(self) -> None:
        config = self.dir / "elfscope.toml"
        config.write_text("[output]\nmax_rows = 2\nwide = true\n", encoding="utf-8")
        result = self._run("-f", str(self.binary), "-S", "-c", str(config))
        self.assertEqual(result.exit_code, 0)
        self.assertIn("more row(s) not shown", result.output)

    def test_missing_config(self) -> None:
        result = self._run("-f", str(self.binary), "-c", str(self.dir / "nope.toml"))
        self.assertEqual(result.exit_code, 2)
        self.assertIn("--config", result.output)

    def test_file_is_required(self) -> None:
        result = self._run()
        self.assertEqual(result.exit_code, 2)

    def test_version(self) -> None:
        result = self._run("--version")
        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.output)


if __name__ == "__main__":
    unittest.main()
