"""
elfscope Diagnostics
=====================

Recoverable conditions found while decoding an ELF buffer.  A diagnostic
never aborts a parse: the surrounding structure is still decoded, with a
placeholder or partial value standing in for the damaged part.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DiagnosticKind(str, enum.Enum):
    """Category of a recoverable decoding problem."""
    TRUNCATED_TABLE = "truncated_table"
    DANGLING_SECTION_REFERENCE = "dangling_section_reference"
    DANGLING_SYMBOL_REFERENCE = "dangling_symbol_reference"
    MISSING_STRING_TABLE = "missing_string_table"
    MISSING_SYMBOL_TABLE = "missing_symbol_table"
    UNTERMINATED_STRING = "unterminated_string"
    MALFORMED_SECTION_TABLE = "malformed_section_table"
    OUT_OF_BOUNDS = "out_of_bounds"


class Diagnostic(BaseModel):
    """A single recoverable problem.

    Attributes:
        kind: Category of the problem.
        message: Human-readable description.
        section_index: Section the problem was found in, when known.
        offset: File or string-table offset involved, when known.
    """
    model_config = ConfigDict(frozen=True)

    kind: DiagnosticKind
    message: str
    section_index: Optional[int] = None
    offset: Optional[int] = None

    def __str__(self) -> str:
        where = ""
        if self.section_index is not None:
            where = f" [section {self.section_index}]"
        return f"{self.kind.value}{where}: {self.message}"


Diagnostics = list[Diagnostic]
