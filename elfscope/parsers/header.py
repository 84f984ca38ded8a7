"""
ELF File Header Parser
=======================

Decodes the identification block and the fixed file header.  This is the
only stage allowed to fail the whole parse on content grounds: a buffer
that is not recognisably ELF raises an :class:`~elfscope.core.errors.ElfFatalError`
and no partial header is ever returned.

Layout (offsets in bytes)::

    0   e_ident[16]   magic, class, data, version, OS/ABI, ABI version, pad
    16  e_type        Half
    18  e_machine     Half
    20  e_version     Word
    24  e_entry       Addr   (4 or 8 bytes)
    ..  e_phoff       Off
    ..  e_shoff       Off
    ..  e_flags       Word
    ..  e_ehsize, e_phentsize, e_phnum, e_shentsize, e_shnum, e_shstrndx

References:
    - TIS Committee. (1995). ELF Specification v1.2, Figure 1-3.
    - System V ABI, Edition 4.1, "ELF Header".
"""

from __future__ import annotations

import struct

from elfscope.core.errors import (
    BadMagic,
    TruncatedHeader,
    UnsupportedClass,
    UnsupportedEncoding,
)
from elfscope.core.models import ElfClass, ElfHeader, ElfIdentity, Endianness
from elfscope.parsers import constants as c
from elfscope.parsers.reader import DecodeContext


_CLASSES: dict[int, ElfClass] = {
    c.ELFCLASS32: ElfClass.ELF32,
    c.ELFCLASS64: ElfClass.ELF64,
}

_ENCODINGS: dict[int, tuple[Endianness, str]] = {
    c.ELFDATA2LSB: (Endianness.LITTLE, "<"),
    c.ELFDATA2MSB: (Endianness.BIG, ">"),
}


def parse_identity(buffer: bytes) -> tuple[ElfIdentity, str]:
    """Validate ``e_ident`` and return the identity plus the struct prefix.

    Raises:
        BadMagic: The magic is missing or wrong.
        TruncatedHeader: The buffer ends inside ``e_ident``.
        UnsupportedClass: ``EI_CLASS`` is not 1 or 2.
        UnsupportedEncoding: ``EI_DATA`` is not 1 or 2.
    """
    if bytes(buffer[:4]) != c.ELF_MAGIC:
        raise BadMagic(buffer[:4])
    if len(buffer) < c.EI_NIDENT:
        raise TruncatedHeader(c.EI_NIDENT, len(buffer))

    ei_class = buffer[c.EI_CLASS]
    if ei_class not in _CLASSES:
        raise UnsupportedClass(ei_class)
    ei_data = buffer[c.EI_DATA]
    if ei_data not in _ENCODINGS:
        raise UnsupportedEncoding(ei_data)

    endianness, prefix = _ENCODINGS[ei_data]
    identity = ElfIdentity(
        elf_class=_CLASSES[ei_class],
        endianness=endianness,
        version=buffer[c.EI_VERSION],
        os_abi=buffer[c.EI_OSABI],
        abi_version=buffer[c.EI_ABIVERSION],
        raw=bytes(buffer[:c.EI_NIDENT]),
    )
    return identity, prefix


def parse_header(buffer: bytes) -> tuple[ElfHeader, DecodeContext]:
    """Decode the file header.

    Args:
        buffer: The whole file.

    Returns:
        ``(header, context)`` where *context* carries the width, byte order
        and machine every later decoder must use.

    Raises:
        ElfFatalError: See :func:`parse_identity`; additionally
            :class:`TruncatedHeader` when the fixed header is cut short.
    """
    identity, endian = parse_identity(buffer)
    is_64bit = identity.is_64bit

    required = c.EHDR_SIZE[is_64bit]
    if len(buffer) < required:
        raise TruncatedHeader(required, len(buffer))

    if is_64bit:
        # ELF64 header: offsets 16..63
        fmt = f"{endian}HHIQQQIHHHHHH"
    else:
        # ELF32 header: offsets 16..51
        fmt = f"{endian}HHIIIIIHHHHHH"
    (
        e_type, e_machine, e_version, e_entry,
        e_phoff, e_shoff, e_flags, e_ehsize,
        e_phentsize, e_phnum, e_shentsize, e_shnum,
        e_shstrndx,
    ) = struct.unpack_from(fmt, buffer, c.EI_NIDENT)

    header = ElfHeader(
        identity=identity,
        file_type=e_type,
        machine=e_machine,
        version=e_version,
        entry_point=e_entry,
        flags=e_flags,
        header_size=e_ehsize,
        program_header_offset=e_phoff,
        program_header_entry_size=e_phentsize,
        program_header_count=e_phnum,
        section_header_offset=e_shoff,
        section_header_entry_size=e_shentsize,
        section_header_count=e_shnum,
        string_table_section_index=e_shstrndx,
    )
    context = DecodeContext(is_64bit=is_64bit, endian=endian, machine=e_machine)
    return header, context
