"""
elfscope Report Generator
==========================

Builds the machine-readable JSON form of one or more inspection reports.

Each file entry is the Pydantic JSON dump of its
:class:`~elfscope.core.models.InspectionReport` (model, diagnostics, timing,
hash or error) plus a short ``summary`` block with the values people most
often grep for: machine, type, entry point, interpreter and needed
libraries.  Raw string-table bytes are excluded from the dump.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from elfscope import __version__
from elfscope.core.models import InspectionReport


class ElfReportGenerator:
    """Serialise inspection reports to JSON.

    Usage::

        generator = ElfReportGenerator()
        text = generator.to_json(reports)
        generator.generate_json(reports, "report.json")
    """

    def __init__(self, indent: int = 2) -> None:
        self._indent = indent

    @staticmethod
    def summary(report: InspectionReport) -> dict[str, Any] | None:
        """Return the headline values of a parsed report, or ``None``."""
        if report.result is None:
            return None
        model = report.result.model
        header = model.header
        return {
            "class": f"ELF{header.identity.elf_class.value}",
            "endianness": header.identity.endianness.value,
            "type": header.file_type_name,
            "machine": header.machine_name,
            "entry_point": f"0x{header.entry_point:x}",
            "interpreter": model.interpreter,
            "soname": model.soname,
            "needed": model.needed_libraries,
            "section_count": len(model.section_headers),
            "segment_count": len(model.program_headers),
            "symbol_count": len(model.symbols),
            "diagnostic_count": len(report.result.diagnostics),
        }

    def build(self, reports: Sequence[InspectionReport]) -> dict[str, Any]:
        """Assemble the complete report document."""
        files: list[dict[str, Any]] = []
        for report in reports:
            entry = report.model_dump(mode="json")
            entry["summary"] = self.summary(report)
            entry["duration_seconds"] = report.duration_seconds
            files.append(entry)

        return {
            "report_type": "elfscope_inspection",
            "version": __version__,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "file_count": len(files),
            "failed_count": sum(1 for r in reports if not r.parsed),
            "files": files,
        }

    def to_json(self, reports: Sequence[InspectionReport]) -> str:
        return json.dumps(
            self.build(reports), indent=self._indent, ensure_ascii=False, default=str
        )

    def generate_json(
        self, reports: Sequence[InspectionReport], output_path: str | Path
    ) -> str:
        """Write the JSON report to *output_path*.

        Returns:
            The absolute path of the generated report.
        """
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(reports), encoding="utf-8")
        return str(path.resolve())
