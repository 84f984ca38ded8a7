"""
elfscope CLI -- ELF Object File Inspector
==========================================

Click-based command-line interface.  Reads one or more files, decodes each
with :class:`~elfscope.core.engine.ElfEngine` and prints the selected parts
in a readelf-like layout, or emits a JSON report.

Usage::

    # File header (the default)
    elfscope --file /bin/ls

    # Everything, for two files
    elfscope -f /bin/ls -f /lib/x86_64-linux-gnu/libc.so.6 --all

    # Sections and symbols, without truncating wide columns
    elfscope -f foo.o -S -s --wide

    # JSON to stdout, or to a file
    elfscope -f /bin/ls --json
    elfscope -f /bin/ls --all --output report.json

The exit status is 0 when every file decoded, 1 otherwise.

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import asyncio
import sys

import click

from shared.config import ElfscopeConfig
from shared.console import ElfscopeConsole
from shared.logger import ElfscopeLogger

from elfscope import __version__
from elfscope.core.engine import ElfEngine
from elfscope.output.console import DisplaySelection, ElfConsoleOutput
from elfscope.output.report import ElfReportGenerator


_WIDE_COLUMNS = 250


def _load_config(config_path: str | None) -> ElfscopeConfig:
    try:
        return ElfscopeConfig.load(config_path)
    except (OSError, ValueError) as exc:
        raise click.BadParameter(str(exc), param_hint="--config") from exc


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------

@click.command("elfscope")
@click.option(
    "--file", "-f",
    "files",
    multiple=True,
    required=True,
    type=click.Path(dir_okay=False),
    help="ELF file to inspect.  May be given more than once.",
)
@click.option("--file-header", "-h", is_flag=True, help="Display the ELF file header.")
@click.option("--program-headers", "-l", "--segments", is_flag=True, help="Display the program headers.")
@click.option("--section-headers", "-S", "--sections", is_flag=True, help="Display the section headers.")
@click.option("--symbols", "-s", "--syms", is_flag=True, help="Display the symbol tables.")
@click.option("--relocs", "-r", is_flag=True, help="Display the relocations.")
@click.option("--dynamic", "-d", is_flag=True, help="Display the dynamic section.")
@click.option("--all", "-a", "show_all", is_flag=True, help="Equivalent to -h -l -S -s -r -d.")
@click.option("--wide", "-W", is_flag=True, help="Allow output lines wider than the terminal.")
@click.option("--json", "json_output", is_flag=True, help="Print a JSON report instead of tables.")
@click.option(
    "--output", "-o",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write a JSON report to this path.",
)
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="TOML configuration file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(__version__, prog_name="elfscope")
def elfscope_cli(
    files: tuple[str, ...],
    file_header: bool,
    program_headers: bool,
    section_headers: bool,
    symbols: bool,
    relocs: bool,
    dynamic: bool,
    show_all: bool,
    wide: bool,
    json_output: bool,
    output_path: str | None,
    config_path: str | None,
    verbose: bool,
) -> None:
    """Inspect ELF object files.

    With no display option only the file header is shown.
    """
    config = _load_config(config_path)
    logger = ElfscopeLogger.from_config("engine", config, verbose=verbose)
    engine = ElfEngine(config=config, logger=logger)

    if show_all:
        selection = DisplaySelection.everything()
    elif any((file_header, program_headers, section_headers, symbols, relocs, dynamic)):
        selection = DisplaySelection(
            file_header=file_header,
            program_headers=program_headers,
            section_headers=section_headers,
            symbols=symbols,
            relocations=relocs,
            dynamic=dynamic,
        )
    else:
        selection = DisplaySelection()

    try:
        reports = asyncio.run(engine.inspect_many(files))
    except KeyboardInterrupt:
        ElfscopeConsole(stderr=True).warning("Inspection interrupted by user.")
        sys.exit(130)

    generator = ElfReportGenerator(indent=config.output.json_indent)

    if json_output:
        click.echo(generator.to_json(reports))
    else:
        wide = wide or config.output.wide
        console = ElfscopeConsole(width=_WIDE_COLUMNS if wide else None)
        renderer = ElfConsoleOutput(
            console,
            show_diagnostics=config.output.show_diagnostics,
            max_rows=config.output.max_rows,
        )
        for report in reports:
            renderer.display(report, selection, show_path=len(reports) > 1)

    if output_path:
        written = generator.generate_json(reports, output_path)
        ElfscopeConsole(stderr=True).success(f"JSON report saved: {written}")

    if not all(report.parsed for report in reports):
        sys.exit(1)


# ---------------------------------------------------------------------------
# Module entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for the ``elfscope`` console script."""
    elfscope_cli()


if __name__ == "__main__":
    main()
