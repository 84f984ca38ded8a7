"""
elfscope Console Interface
===========================

Rich-powered console abstraction used by the CLI and the report renderer.

The class wraps :class:`rich.console.Console` and adds helpers for section
rules, severity-coloured messages, key/value blocks and tables, all with
one consistent palette.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import IO, Any, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

# ---------------------------------------------------------------------------
# Theme
# ---------------------------------------------------------------------------
_ELFSCOPE_THEME = Theme(
    {
        "elf.section": "bold bright_magenta",
        "elf.success": "bold green",
        "elf.warning": "bold yellow",
        "elf.error": "bold red",
        "elf.info": "bold bright_blue",
        "elf.dim": "dim white",
        "elf.key": "bold bright_white",
        "elf.value": "bright_cyan",
        "elf.address": "bright_green",
    }
)


class ElfscopeConsole:
    """Console front end shared by every elfscope output path.

    Usage::

        con = ElfscopeConsole()
        con.section("ELF Header")
        con.key_values([("Class", "ELF64"), ("Data", "little endian")])
        con.warning("section 7: truncated table")
    """

    def __init__(
        self,
        *,
        quiet: bool = False,
        record: bool = False,
        stderr: bool = False,
        file: IO[str] | None = None,
        width: int | None = None,
    ) -> None:
        """Initialise the console.

        Args:
            quiet:  Suppress all output.
            record: Enable Rich recording for text / HTML export.
            stderr: Write to stderr instead of stdout.
            file:   Explicit output stream (overrides *stderr*).
            width:  Fixed width; ``None`` lets Rich detect the terminal.
        """
        self._console = Console(
            theme=_ELFSCOPE_THEME,
            quiet=quiet,
            record=record,
            stderr=stderr,
            file=file,
            width=width,
            highlight=False,
        )

    @property
    def rich(self) -> Console:
        """Direct access to the underlying Rich Console instance."""
        return self._console

    # ------------------------------------------------------------------ #
    #  Headings and messages
    # ------------------------------------------------------------------ #

    def section(self, title: str) -> None:
        """Print a section rule."""
        self._console.rule(f"  {escape(title)}  ", style="elf.section", characters="─")

    def _message(self, style: str, prefix: str, message: str) -> None:
        # Messages quote names read from the file; never parse them as markup.
        self._console.print(f"[{style}]{prefix}:[/{style}] ", end="")
        self._console.print(message, markup=False)

    def success(self, message: str) -> None:
        self._message("elf.success", "OK", message)

    def warning(self, message: str) -> None:
        self._message("elf.warning", "WARNING", message)

    def error(self, message: str) -> None:
        self._message("elf.error", "ERROR", message)

    def info(self, message: str) -> None:
        self._message("elf.info", "INFO", message)

    # ------------------------------------------------------------------ #
    #  Structured blocks
    # ------------------------------------------------------------------ #

    def key_values(self, pairs: Sequence[tuple[str, Any]], *, indent: int = 2) -> None:
        """Print aligned ``Key:  value`` lines, readelf style.

        Values are printed without markup interpretation so that names
        taken from the file cannot inject styles.
        """
        if not pairs:
            return
        width = max(len(key) for key, _ in pairs) + 1
        pad = " " * indent
        for key, value in pairs:
            label = f"{key}:".ljust(width + 1)
            self._console.print(f"{pad}[elf.key]{label}[/elf.key]", end="")
            self._console.print(str(value), markup=False)

    def table(
        self,
        title: str | None,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        caption: str | None = None,
        justify: Sequence[str] | None = None,
    ) -> None:
        """Render a Rich table.

        Args:
            title:    Table title.
            columns:  Column header labels.
            rows:     Row tuples; each cell is stringified as plain text.
            caption:  Optional footer caption.
            justify:  Optional per-column justification (``"left"``/``"right"``).
        """
        tbl = Table(
            title=escape(title) if title else None,
            caption=caption,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            show_lines=False,
            padding=(0, 1),
        )
        for idx, name in enumerate(columns):
            align = justify[idx] if justify and idx < len(justify) else "left"
            tbl.add_column(name, justify=align)  # type: ignore[arg-type]
        for row in rows:
            tbl.add_row(*(Text(str(cell)) for cell in row))
        self._console.print(tbl)

    # ------------------------------------------------------------------ #
    #  Utility
    # ------------------------------------------------------------------ #

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Proxy to :meth:`rich.console.Console.print`."""
        self._console.print(*args, **kwargs)

    def blank(self, count: int = 1) -> None:
        for _ in range(count):
            self._console.print()

    def export_text(self) -> str:
        """Export recorded output as plain text (requires ``record=True``)."""
        return self._console.export_text()
