"""
elfscope Error Hierarchy
=========================

Exceptions raised by the ELF decoding core and the inspection engine.

Two severities exist.  *Fatal* errors (subclasses of :class:`ElfFatalError`)
mean the buffer cannot be treated as an ELF object at all, or that
continuing would require unbounded work; the parse is aborted.  Everything
else is *recoverable*: the component parsers catch :class:`OutOfBounds` per
field or entry and record a :class:`~elfscope.core.models.Diagnostic`
instead of propagating it.

References:
    - System V Application Binary Interface, Edition 4.1, chapter 4.
    - Linux man page: elf(5).
"""

from __future__ import annotations


# ========================== Root ===========================================


class ElfscopeError(Exception):
    """Base class for every exception raised by elfscope."""

    pass


# ========================== Primitive reads ================================


class OutOfBounds(ElfscopeError):
    """A primitive read would run past the end of the buffer.

    Attributes:
        offset: Byte offset of the attempted read.
        width:  Number of bytes requested.
        length: Length of the buffer that was read from.
    """

    def __init__(self, offset: int, width: int, length: int) -> None:
        self.offset = offset
        self.width = width
        self.length = length
        super().__init__(
            f"read of {width} byte(s) at offset 0x{offset:x} exceeds "
            f"buffer length 0x{length:x}"
        )


# ========================== Fatal conditions ===============================


class ElfFatalError(ElfscopeError):
    """The buffer cannot be decoded as an ELF object."""

    pass


class BadMagic(ElfFatalError):
    """The first four bytes are not ``\\x7fELF``."""

    def __init__(self, found: bytes) -> None:
        self.found = bytes(found)
        super().__init__(f"not an ELF file: bad magic {self.found!r}")


class UnsupportedClass(ElfFatalError):
    """``EI_CLASS`` is neither ELFCLASS32 nor ELFCLASS64."""

    def __init__(self, value: int) -> None:
        self.value = value
        super().__init__(f"unsupported ELF class byte 0x{value:02x}")


class UnsupportedEncoding(ElfFatalError):
    """``EI_DATA`` is neither ELFDATA2LSB nor ELFDATA2MSB."""

    def __init__(self, value: int) -> None:
        self.value = value
        super().__init__(f"unsupported ELF data encoding byte 0x{value:02x}")


class TruncatedHeader(ElfFatalError):
    """The identification is valid but the fixed file header is cut short."""

    def __init__(self, required: int, length: int) -> None:
        self.required = required
        self.length = length
        super().__init__(
            f"ELF header needs {required} bytes, buffer holds {length}"
        )


class DeclaredSizeTooLarge(ElfFatalError):
    """A declared table count or size exceeds the configured parse limits.

    Attributes:
        what:     Name of the offending table.
        declared: The value found in the file.
        limit:    The configured upper bound.
    """

    def __init__(self, what: str, declared: int, limit: int) -> None:
        self.what = what
        self.declared = declared
        self.limit = limit
        super().__init__(
            f"{what} declares {declared:,}, above the limit of {limit:,}"
        )


# ========================== Input files ====================================


class FileTooLarge(ElfscopeError):
    """A file on disk is larger than ``parser.max_file_size``.

    Raised by the engine before the file is read; the decoder never sees it.

    Attributes:
        size:  Size of the file in bytes.
        limit: The configured upper bound.
    """

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"File too large: {size:,} bytes (max: {limit:,} bytes)"
        )
