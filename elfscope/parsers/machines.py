"""
Machine-Specific Relocation Semantics
======================================

A closed set of :class:`RelocationArch` variants, one per supported
``e_machine`` family.  Each variant fixes two things:

- how ``r_info`` splits into a symbol index and a type code, and
- a code -> label table for the relocation types of that machine.

Most machines use the generic split (ELF32: ``sym = info >> 8``,
``type = info & 0xff``; ELF64: ``sym = info >> 32``,
``type = info & 0xffffffff``).  Two exceptions are modelled:

- SPARC V9 keeps only the low 8 bits of the ELF64 type field; the
  next 24 bits carry ``R_SPARC_OLO10`` type data.
- MIPS64 does not use a single xword at all: ``r_info`` is a 32-bit symbol
  followed by four one-byte fields (``r_ssym``, ``r_type3``, ``r_type2``,
  ``r_type``), so on little-endian files the primary type sits in the top
  byte of the little-endian xword.

Unknown machines fall back to the generic split with no labels.

References:
    - System V ABI AMD64 Architecture Processor Supplement, 4.4.
    - System V ABI Intel386 Architecture Processor Supplement.
    - ELF for the Arm Architecture (IHI 0044) and for the Arm 64-bit
      Architecture (IHI 0056).
    - RISC-V ELF psABI specification.
    - 64-bit ELF Object File Specification (MIPS), draft 2.5.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Mapping

from elfscope.parsers import constants as c
from elfscope.parsers.reader import DecodeContext


class InfoLayout(enum.Enum):
    """How ``r_info`` is packed."""
    STANDARD = "standard"
    MIPS64 = "mips64"


@dataclass(frozen=True, slots=True)
class RelocationArch:
    """Relocation conventions of one machine family.

    Attributes:
        name: Short architecture label.
        machines: ``e_machine`` values this variant covers.
        prefix: Label prefix, e.g. ``"R_X86_64_"``.
        labels: Relocation type code -> suffix.
        type_bits_64: Width of the type field in ELF64 ``r_info``.
        layout: ``r_info`` packing.
    """
    name: str
    machines: tuple[int, ...]
    prefix: str = ""
    labels: Mapping[int, str] = field(default_factory=dict)
    type_bits_64: int = 32
    layout: InfoLayout = InfoLayout.STANDARD

    def split_info(self, info: int, context: DecodeContext) -> tuple[int, int]:
        """Return ``(symbol_index, type_code)`` for a raw ``r_info``."""
        if not context.is_64bit:
            return info >> 8, info & 0xFF
        if self.layout is InfoLayout.MIPS64:
            if context.little_endian:
                return info & 0xFFFFFFFF, (info >> 56) & 0xFF
            return info >> 32, info & 0xFF
        return info >> 32, info & ((1 << self.type_bits_64) - 1)

    def label(self, type_code: int) -> str | None:
        """Return e.g. ``"R_X86_64_PC32"``, or ``None`` for unknown codes."""
        suffix = self.labels.get(type_code)
        return self.prefix + suffix if suffix is not None else None


# ---------------------------------------------------------------------------
# Label tables
# ---------------------------------------------------------------------------

_X86_64: dict[int, str] = {
    0: "NONE", 1: "64", 2: "PC32", 3: "GOT32", 4: "PLT32", 5: "COPY",
    6: "GLOB_DAT", 7: "JUMP_SLOT", 8: "RELATIVE", 9: "GOTPCREL", 10: "32",
    11: "32S", 12: "16", 13: "PC16", 14: "8", 15: "PC8", 16: "DTPMOD64",
    17: "DTPOFF64", 18: "TPOFF64", 19: "TLSGD", 20: "TLSLD", 21: "DTPOFF32",
    22: "GOTTPOFF", 23: "TPOFF32", 24: "PC64", 25: "GOTOFF64", 26: "GOTPC32",
    27: "GOT64", 28: "GOTPCREL64", 29: "GOTPC64", 30: "GOTPLT64",
    31: "PLTOFF64", 32: "SIZE32", 33: "SIZE64", 34: "GOTPC32_TLSDESC",
    35: "TLSDESC_CALL", 36: "TLSDESC", 37: "IRELATIVE", 38: "RELATIVE64",
    41: "GOTPCRELX", 42: "REX_GOTPCRELX",
}

_I386: dict[int, str] = {
    0: "NONE", 1: "32", 2: "PC32", 3: "GOT32", 4: "PLT32", 5: "COPY",
    6: "GLOB_DAT", 7: "JUMP_SLOT", 8: "RELATIVE", 9: "GOTOFF", 10: "GOTPC",
    11: "32PLT", 14: "TLS_TPOFF", 15: "TLS_IE", 16: "TLS_GOTIE",
    17: "TLS_LE", 18: "TLS_GD", 19: "TLS_LDM", 20: "16", 21: "PC16",
    22: "8", 23: "PC8", 35: "TLS_DTPMOD32", 36: "TLS_DTPOFF32",
    37: "TLS_TPOFF32", 38: "SIZE32", 39: "TLS_GOTDESC",
    40: "TLS_DESC_CALL", 41: "TLS_DESC", 42: "IRELATIVE", 43: "GOT32X",
}

_ARM: dict[int, str] = {
    0: "NONE", 1: "PC24", 2: "ABS32", 3: "REL32", 4: "LDR_PC_G0",
    5: "ABS16", 6: "ABS12", 7: "THM_ABS5", 8: "ABS8", 9: "SBREL32",
    10: "THM_CALL", 11: "THM_PC8", 17: "TLS_DTPMOD32", 18: "TLS_DTPOFF32",
    19: "TLS_TPOFF32", 20: "COPY", 21: "GLOB_DAT", 22: "JUMP_SLOT",
    23: "RELATIVE", 24: "GOTOFF32", 25: "BASE_PREL", 26: "GOT_BREL",
    27: "PLT32", 28: "CALL", 29: "JUMP24", 30: "THM_JUMP24",
    38: "TARGET1", 40: "V4BX", 41: "TARGET2", 42: "PREL31",
    43: "MOVW_ABS_NC", 44: "MOVT_ABS", 45: "MOVW_PREL_NC", 46: "MOVT_PREL",
    47: "THM_MOVW_ABS_NC", 48: "THM_MOVT_ABS", 102: "THM_JUMP11",
    103: "THM_JUMP8", 160: "IRELATIVE",
}

_AARCH64: dict[int, str] = {
    0: "NONE", 257: "ABS64", 258: "ABS32", 259: "ABS16", 260: "PREL64",
    261: "PREL32", 262: "PREL16", 263: "MOVW_UABS_G0",
    264: "MOVW_UABS_G0_NC", 265: "MOVW_UABS_G1", 266: "MOVW_UABS_G1_NC",
    267: "MOVW_UABS_G2", 268: "MOVW_UABS_G2_NC", 269: "MOVW_UABS_G3",
    274: "ADR_PREL_LO21", 275: "ADR_PREL_PG_HI21",
    276: "ADR_PREL_PG_HI21_NC", 277: "ADD_ABS_LO12_NC",
    278: "LDST8_ABS_LO12_NC", 279: "TSTBR14", 280: "CONDBR19",
    282: "JUMP26", 283: "CALL26", 284: "LDST16_ABS_LO12_NC",
    285: "LDST32_ABS_LO12_NC", 286: "LDST64_ABS_LO12_NC",
    299: "LDST128_ABS_LO12_NC", 311: "ADR_GOT_PAGE",
    312: "LD64_GOT_LO12_NC", 1024: "COPY", 1025: "GLOB_DAT",
    1026: "JUMP_SLOT", 1027: "RELATIVE", 1028: "TLS_DTPMOD",
    1029: "TLS_DTPREL", 1030: "TLS_TPREL", 1031: "TLSDESC",
    1032: "IRELATIVE",
}

_RISCV: dict[int, str] = {
    0: "NONE", 1: "32", 2: "64", 3: "RELATIVE", 4: "COPY", 5: "JUMP_SLOT",
    6: "TLS_DTPMOD32", 7: "TLS_DTPMOD64", 8: "TLS_DTPREL32",
    9: "TLS_DTPREL64", 10: "TLS_TPREL32", 11: "TLS_TPREL64", 16: "BRANCH",
    17: "JAL", 18: "CALL", 19: "CALL_PLT", 20: "GOT_HI20",
    21: "TLS_GOT_HI20", 22: "TLS_GD_HI20", 23: "PCREL_HI20",
    24: "PCREL_LO12_I", 25: "PCREL_LO12_S", 26: "HI20", 27: "LO12_I",
    28: "LO12_S", 29: "TPREL_HI20", 30: "TPREL_LO12_I", 31: "TPREL_LO12_S",
    32: "TPREL_ADD", 33: "ADD8", 34: "ADD16", 35: "ADD32", 36: "ADD64",
    37: "SUB8", 38: "SUB16", 39: "SUB32", 40: "SUB64", 43: "ALIGN",
    44: "RVC_BRANCH", 45: "RVC_JUMP", 51: "RELAX", 52: "SUB6", 53: "SET6",
    54: "SET8", 55: "SET16", 56: "SET32", 57: "32_PCREL", 58: "IRELATIVE",
}

_MIPS: dict[int, str] = {
    0: "NONE", 1: "16", 2: "32", 3: "REL32", 4: "26", 5: "HI16", 6: "LO16",
    7: "GPREL16", 8: "LITERAL", 9: "GOT16", 10: "PC16", 11: "CALL16",
    12: "GPREL32", 16: "SHIFT5", 17: "SHIFT6", 18: "64", 19: "GOT_DISP",
    20: "GOT_PAGE", 21: "GOT_OFST", 22: "GOT_HI16", 23: "GOT_LO16",
    24: "SUB", 28: "HIGHER", 29: "HIGHEST", 30: "CALL_HI16",
    31: "CALL_LO16", 37: "JALR", 38: "TLS_DTPMOD32", 39: "TLS_DTPREL32",
    40: "TLS_DTPMOD64", 41: "TLS_DTPREL64", 42: "TLS_GD", 43: "TLS_LDM",
    47: "TLS_TPREL32", 48: "TLS_TPREL64", 126: "COPY", 127: "JUMP_SLOT",
}

_PPC: dict[int, str] = {
    0: "NONE", 1: "ADDR32", 2: "ADDR24", 3: "ADDR16", 4: "ADDR16_LO",
    5: "ADDR16_HI", 6: "ADDR16_HA", 10: "REL24", 11: "REL14",
    18: "PLTREL24", 19: "COPY", 20: "GLOB_DAT", 21: "JMP_SLOT",
    22: "RELATIVE", 26: "REL32", 67: "TLS", 68: "DTPMOD32",
}

_PPC64: dict[int, str] = {
    0: "NONE", 1: "ADDR32", 2: "ADDR24", 3: "ADDR16", 4: "ADDR16_LO",
    5: "ADDR16_HI", 6: "ADDR16_HA", 10: "REL24", 11: "REL14", 19: "COPY",
    20: "GLOB_DAT", 21: "JMP_SLOT", 22: "RELATIVE", 26: "REL32",
    38: "ADDR64", 44: "REL64", 51: "TOC", 67: "TLS", 68: "DTPMOD64",
    73: "TPREL64", 78: "DTPREL64", 248: "IRELATIVE",
}

_SPARC: dict[int, str] = {
    0: "NONE", 1: "8", 2: "16", 3: "32", 4: "DISP8", 5: "DISP16",
    6: "DISP32", 7: "WDISP30", 8: "WDISP22", 9: "HI22", 10: "22", 11: "13",
    12: "LO10", 13: "GOT10", 14: "GOT13", 15: "GOT22", 16: "PC10",
    17: "PC22", 18: "WPLT30", 19: "COPY", 20: "GLOB_DAT", 21: "JMP_SLOT",
    22: "RELATIVE", 23: "UA32", 32: "64", 33: "OLO10", 54: "UA64",
    55: "UA16",
}

_S390: dict[int, str] = {
    0: "NONE", 1: "8", 2: "12", 3: "16", 4: "32", 5: "PC32", 6: "GOT12",
    7: "GOT32", 8: "PLT32", 9: "COPY", 10: "GLOB_DAT", 11: "JMP_SLOT",
    12: "RELATIVE", 13: "GOTOFF32", 14: "GOTPC", 15: "GOT16", 16: "PC16",
    17: "PC16DBL", 18: "PLT16DBL", 19: "PC32DBL", 20: "PLT32DBL",
    21: "GOTPCDBL", 22: "64", 23: "PC64", 24: "GOT64", 25: "PLT64",
    26: "GOTENT",
}


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

GENERIC = RelocationArch(name="generic", machines=())

ARCHITECTURES: tuple[RelocationArch, ...] = (
    RelocationArch("x86-64", (c.EM_X86_64,), "R_X86_64_", _X86_64),
    RelocationArch("i386", (c.EM_386,), "R_386_", _I386),
    RelocationArch("arm", (c.EM_ARM,), "R_ARM_", _ARM),
    RelocationArch("aarch64", (c.EM_AARCH64,), "R_AARCH64_", _AARCH64),
    RelocationArch("riscv", (c.EM_RISCV,), "R_RISCV_", _RISCV),
    RelocationArch("mips", (c.EM_MIPS,), "R_MIPS_", _MIPS,
                   layout=InfoLayout.MIPS64),
    RelocationArch("ppc", (c.EM_PPC,), "R_PPC_", _PPC),
    RelocationArch("ppc64", (c.EM_PPC64,), "R_PPC64_", _PPC64),
    RelocationArch("sparc", (c.EM_SPARC, c.EM_SPARC32PLUS), "R_SPARC_", _SPARC),
    RelocationArch("sparcv9", (c.EM_SPARCV9,), "R_SPARC_", _SPARC,
                   type_bits_64=8),
    RelocationArch("s390", (c.EM_S390,), "R_390_", _S390),
)

_BY_MACHINE: dict[int, RelocationArch] = {
    machine: arch for arch in ARCHITECTURES for machine in arch.machines
}


def arch_for_machine(machine: int) -> RelocationArch:
    """Return the relocation conventions for *machine*, or :data:`GENERIC`."""
    return _BY_MACHINE.get(machine, GENERIC)
