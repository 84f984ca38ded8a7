"""
elfscope Inspection Engine
===========================

Wraps the pure decoder with everything that touches the outside world:
reading files, enforcing the configured size limit, hashing, timing,
logging diagnostics, and inspecting many files concurrently.

The decoder itself (:mod:`elfscope.parsers`) never sees a path and never
logs; the engine is the only place where a diagnostic becomes a log record.
A bad file never raises out of the engine: the returned
:class:`~elfscope.core.models.InspectionReport` carries the failure.

Pipeline per file:
    1. Check the file exists and is within ``parser.max_file_size``
    2. Read the bytes and compute SHA-256
    3. Decode with :class:`~elfscope.parsers.elf_parser.ELFParser`
       in a worker thread
    4. Log each diagnostic at WARNING, fatal failures at ERROR
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from shared.config import ElfscopeConfig
from shared.logger import ElfscopeLogger

from elfscope.core.errors import ElfFatalError, FileTooLarge
from elfscope.core.models import InspectionReport
from elfscope.parsers.elf_parser import ELFParser


class ElfEngine:
    """Inspect ELF files and in-memory buffers.

    Usage::

        engine = ElfEngine()
        report = await engine.inspect("/usr/bin/ls")
        if report.parsed:
            print(report.result.model.header.machine_name)

    Or synchronously::

        report = engine.inspect_sync("/usr/bin/ls")
    """

    def __init__(
        self,
        config: ElfscopeConfig | None = None,
        logger: ElfscopeLogger | None = None,
    ) -> None:
        """Initialise the engine.

        Args:
            config: elfscope configuration.  Defaults are used if not provided.
            logger: Logger instance.  A new one is created if not provided.
        """
        self._config: ElfscopeConfig = config or ElfscopeConfig()
        self._logger: ElfscopeLogger = logger or ElfscopeLogger(
            "engine", log_level=self._config.global_settings.log_level
        )

    @property
    def config(self) -> ElfscopeConfig:
        return self._config

    # ------------------------------------------------------------------ #
    #  In-memory buffers
    # ------------------------------------------------------------------ #

    def inspect_data(self, data: bytes, label: str = "<memory>") -> InspectionReport:
        """Decode *data* and return a finished report.

        Args:
            data: Complete file contents.
            label: Name recorded as the report's path.

        Returns:
            InspectionReport with either ``result`` or ``error`` set.
        """
        report = InspectionReport(
            path=label,
            size=len(data),
            sha256=hashlib.sha256(data).hexdigest(),
        )

        with self._logger.target(label):
            try:
                with self._logger.timed(f"decode {label}"):
                    result = ELFParser(data, self._config.parser.limits()).parse()
            except ElfFatalError as exc:
                report.error = str(exc)
                report.error_kind = type(exc).__name__
                self._logger.error(
                    "%s: %s", label, exc, error_kind=report.error_kind
                )
            else:
                report.result = result
                for diagnostic in result.diagnostics:
                    self._logger.warning(
                        "%s: %s", label, diagnostic,
                        kind=diagnostic.kind.value,
                        section_index=diagnostic.section_index,
                        offset=diagnostic.offset,
                    )
                self._logger.debug(
                    "%s: %d sections, %d segments, %d diagnostics",
                    label,
                    len(result.model.section_headers),
                    len(result.model.program_headers),
                    len(result.diagnostics),
                )

        report.finished = datetime.now(timezone.utc)
        return report

    # ------------------------------------------------------------------ #
    #  Files
    # ------------------------------------------------------------------ #

    def _read(self, path: Path) -> bytes:
        """Read *path*, refusing files over the configured size limit."""
        size = path.stat().st_size
        max_size = self._config.parser.max_file_size
        if size > max_size:
            raise FileTooLarge(size, max_size)
        return path.read_bytes()

    def _failed(self, label: str, exc: Exception) -> InspectionReport:
        report = InspectionReport(
            path=label,
            error=str(exc),
            error_kind=type(exc).__name__,
            finished=datetime.now(timezone.utc),
        )
        self._logger.error("%s: %s", label, exc, error_kind=report.error_kind)
        return report

    async def inspect(self, file_path: str | Path) -> InspectionReport:
        """Read and decode one file.

        File reading and decoding run in the default executor so that
        :meth:`inspect_many` can overlap them.

        Args:
            file_path: Path to the file.

        Returns:
            InspectionReport.  Missing, unreadable and oversized files are
            reported through ``error``.
        """
        path = Path(file_path)
        label = str(path)
        loop = asyncio.get_running_loop()

        try:
            data = await loop.run_in_executor(None, self._read, path)
        except (OSError, FileTooLarge) as exc:
            return self._failed(label, exc)

        return await loop.run_in_executor(None, self.inspect_data, data, label)

    def inspect_sync(self, file_path: str | Path) -> InspectionReport:
        """Synchronous wrapper around :meth:`inspect`.

        Works both with and without a running event loop.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop and loop.is_running():
            # Already in an async context; run on a fresh loop in a thread.
            with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
                return pool.submit(asyncio.run, self.inspect(file_path)).result()
        return asyncio.run(self.inspect(file_path))

    async def inspect_many(
        self, file_paths: Iterable[str | Path]
    ) -> list[InspectionReport]:
        """Inspect several files concurrently.

        At most ``global.max_workers`` files are in flight at once.  Reports
        are returned in the order of *file_paths*.
        """
        paths = list(file_paths)
        semaphore = asyncio.Semaphore(max(1, self._config.global_settings.max_workers))

        async def _bounded(path: str | Path) -> InspectionReport:
            async with semaphore:
                return await self.inspect(path)

        with self._logger.timed(f"inspection of {len(paths)} file(s)"):
            reports = await asyncio.gather(*(_bounded(p) for p in paths))

        failed = sum(1 for r in reports if not r.parsed)
        self._logger.info(
            "Inspected %d file(s), %d failed", len(reports), failed
        )
        return list(reports)
