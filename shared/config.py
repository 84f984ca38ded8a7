"""
elfscope Configuration Management
==================================

Centralized configuration for the elfscope toolkit using Python dataclasses
and TOML-based persistence.

Architecture follows the Twelve-Factor App methodology for configuration
management (Wiggins, 2011), separating config from code.

Example ``config.toml``::

    [global]
    log_level = "DEBUG"
    log_file = "elfscope.log"
    max_workers = 8

    [parser]
    max_file_size = 268435456
    max_entries = 500000

    [output]
    show_diagnostics = true

References:
    - Wiggins, A. (2011). The Twelve-Factor App. https://12factor.net/
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[no-redef]

from elfscope.parsers.tables import ParseLimits


# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "config.toml"


# ============================ Section Configs ==============================


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Global settings: logging verbosity, log destination and concurrency."""

    log_level: str = "WARNING"
    log_file: str | None = None
    log_json: bool = False
    max_workers: int = 4
    debug: bool = False
    version: str = "1.0.0"


@dataclass(frozen=False, slots=True)
class ParserConfig:
    """Bounds applied while reading and decoding ELF files.

    ``max_file_size`` is enforced by the engine before a file is read;
    ``max_entries`` and ``max_table_bytes`` are handed to the decoder as
    :class:`~elfscope.parsers.tables.ParseLimits`.
    """

    max_file_size: int = 536_870_912  # 512 MiB
    max_entries: int = 1_000_000
    max_table_bytes: int = 268_435_456  # 256 MiB

    def limits(self) -> ParseLimits:
        """Build the decoder limits from this section."""
        return ParseLimits(
            max_entries=self.max_entries,
            max_table_bytes=self.max_table_bytes,
        )


@dataclass(frozen=False, slots=True)
class OutputConfig:
    """Console and report rendering options."""

    show_diagnostics: bool = True
    max_rows: int = 0  # 0 = unlimited
    json_indent: int = 2
    wide: bool = False


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class ElfscopeConfig:
    """Master configuration aggregating every section.

    Usage:
        >>> config = ElfscopeConfig.load()                  # from default path
        >>> config = ElfscopeConfig.load("custom.toml")     # from custom path
        >>> config.parser.max_entries
        1000000
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # ------------------------------------------------------------------ #
    #  TOML Loading
    # ------------------------------------------------------------------ #

    @classmethod
    def load(cls, path: str | Path | None = None) -> ElfscopeConfig:
        """Load configuration from a TOML file.

        If *path* is ``None`` the loader looks for ``config.toml`` in the
        project root.  Missing keys fall back to dataclass defaults.

        Args:
            path: Filesystem path to a TOML configuration file.

        Returns:
            A fully-populated :class:`ElfscopeConfig` instance.

        Raises:
            FileNotFoundError: If the specified path does not exist
                *and* was explicitly provided by the caller.
            tomllib.TOMLDecodeError: If the file is not valid TOML.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(
                    f"Configuration file not found: {config_path}"
                )
            return cls()

        with open(config_path, "rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)

        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ElfscopeConfig:
        """Build a configuration from an already-parsed TOML mapping."""
        return cls(
            global_settings=cls._build_section(GlobalConfig, raw.get("global", {})),
            parser=cls._build_section(ParserConfig, raw.get("parser", {})),
            output=cls._build_section(OutputConfig, raw.get("output", {})),
        )

    # ------------------------------------------------------------------ #
    #  Serialisation helpers
    # ------------------------------------------------------------------ #

    def to_dict(self) -> dict[str, Any]:
        """Serialise the entire configuration tree to a plain dictionary."""
        return asdict(self)

    # ------------------------------------------------------------------ #
    #  Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _build_section(cls: type, data: dict[str, Any]) -> Any:
        """Instantiate a dataclass *cls* using only the keys it declares.

        Unknown keys in the TOML source are ignored so that newer config
        files still load.
        """
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)
