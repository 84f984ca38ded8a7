"""
elfscope -- ELF Object File Inspector
======================================

Decodes ELF32 and ELF64 object files of either byte order into a validated,
navigable in-memory model: file header, program headers, section headers,
symbol tables, relocations and the dynamic section.  Damaged or hostile
input never crashes the decoder; recoverable problems are returned as
diagnostics next to everything that could still be read.

Capabilities:
    - Struct-based decoding of every ELF table with lazy bounds checks
    - Extended section and segment numbering (``PN_XNUM``, ``SHN_XINDEX``)
    - Per-machine relocation type labels (x86, ARM, AArch64, RISC-V, MIPS,
      PowerPC, SPARC, s390)
    - Dynamic-section decoding with or without section headers
    - readelf-style console output and JSON reports

References:
    - TIS Committee. (1995). Executable and Linkable Format (ELF) Specification.
    - System V Application Binary Interface, Edition 4.1.
"""

__version__ = "1.0.0"
