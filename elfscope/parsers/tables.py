"""
Table Extent Planning
======================

Every ELF table is an array of fixed-size records described by an offset,
an entry count (or a byte size) and an entry size.  Before a decoder reads
a single record it asks :func:`plan_table` how many records it may read,
which turns oversized declarations into a fatal error and short buffers or
undersized entries into diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from elfscope.core.diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from elfscope.core.errors import DeclaredSizeTooLarge


@dataclass(frozen=True, slots=True)
class ParseLimits:
    """Upper bounds on declared table sizes.

    Attributes:
        max_entries: Largest entry count accepted for any one table, and
            for all tables of a file together (see :class:`EntryBudget`).
        max_table_bytes: Largest byte extent accepted for any one table.
    """
    max_entries: int = 1_000_000
    max_table_bytes: int = 256 * 1024 * 1024


DEFAULT_LIMITS = ParseLimits()


class EntryBudget:
    """Running count of table entries decoded from one file.

    Several section headers may describe the same bytes, so bounding each
    table on its own does not bound the model.  One budget is shared by
    every table of a parse and caps their combined entry count at
    ``limits.max_entries``.
    """

    __slots__ = ("limits", "used")

    def __init__(self, limits: ParseLimits = DEFAULT_LIMITS) -> None:
        self.limits = limits
        self.used = 0

    def charge(self, what: str, count: int) -> None:
        """Account for *count* more entries read from *what*.

        Raises:
            DeclaredSizeTooLarge: If the running total passes ``max_entries``.
        """
        self.used += count
        if self.used > self.limits.max_entries:
            raise DeclaredSizeTooLarge(
                f"all tables (through the {what})",
                self.used, self.limits.max_entries,
            )


@dataclass(frozen=True, slots=True)
class TablePlan:
    """How to walk a table: where it starts, its stride, how many entries."""
    offset: int
    stride: int
    count: int


def plan_table(
    buffer_length: int,
    what: str,
    offset: int,
    count: int,
    entry_size: int,
    natural_size: int,
    limits: ParseLimits,
    section_index: Optional[int] = None,
    budget: Optional[EntryBudget] = None,
) -> tuple[TablePlan, Diagnostics]:
    """Work out how many entries of a table can be decoded.

    Args:
        buffer_length: Length of the whole file.
        what: Table name used in messages.
        offset: File offset of the first entry.
        count: Declared number of entries.
        entry_size: Declared entry size; 0 means "use the natural size".
        natural_size: Size of the structure being decoded.
        limits: Declared-size bounds.
        section_index: Section holding the table, for diagnostics.
        budget: Shared running total for the whole file, charged with the
            entries the plan will read.

    Returns:
        ``(plan, diagnostics)``.  Excess bytes in larger-than-natural
        entries are skipped; smaller-than-natural entries make the table
        unreadable (``plan.count == 0``).

    Raises:
        DeclaredSizeTooLarge: If *count* or the table's byte extent exceeds
            *limits*, or the table takes *budget* past ``max_entries``.
    """
    stride = entry_size or natural_size
    if count > limits.max_entries:
        raise DeclaredSizeTooLarge(f"{what} entry count", count, limits.max_entries)
    if count * stride > limits.max_table_bytes:
        raise DeclaredSizeTooLarge(
            f"{what} size", count * stride, limits.max_table_bytes
        )

    plan, diagnostics = _fit(
        buffer_length, what, offset, count, entry_size, stride,
        natural_size, section_index,
    )
    if budget is not None:
        budget.charge(what, plan.count)
    return plan, diagnostics


def _fit(
    buffer_length: int,
    what: str,
    offset: int,
    count: int,
    entry_size: int,
    stride: int,
    natural_size: int,
    section_index: Optional[int],
) -> tuple[TablePlan, Diagnostics]:
    if stride < natural_size:
        return TablePlan(offset, natural_size, 0), [Diagnostic(
            kind=DiagnosticKind.MALFORMED_SECTION_TABLE,
            message=(
                f"{what}: entry size {entry_size} is smaller than the "
                f"{natural_size}-byte structure"
            ),
            section_index=section_index,
            offset=offset,
        )]

    if count == 0 or offset + (count - 1) * stride + natural_size <= buffer_length:
        return TablePlan(offset, stride, count), []

    if offset + natural_size > buffer_length:
        readable = 0
    else:
        readable = min(count, (buffer_length - offset - natural_size) // stride + 1)
    return TablePlan(offset, stride, readable), [Diagnostic(
        kind=DiagnosticKind.TRUNCATED_TABLE,
        message=(
            f"{what}: {count} entries declared at 0x{offset:x}, only "
            f"{readable} fit in the file (0x{buffer_length:x} bytes)"
        ),
        section_index=section_index,
        offset=offset,
    )]


def plan_section_table(
    buffer_length: int,
    what: str,
    section_index: int,
    file_offset: int,
    size: int,
    entry_size: int,
    natural_size: int,
    limits: ParseLimits,
    budget: Optional[EntryBudget] = None,
) -> tuple[TablePlan, Diagnostics]:
    """:func:`plan_table` for a table stored as the contents of a section."""
    count = size // max(entry_size, natural_size)
    return plan_table(
        buffer_length, what, file_offset, count, entry_size,
        natural_size, limits, section_index, budget,
    )
