"""
Primitive Reader
=================

Bounds-checked, width- and byte-order-aware extraction of fixed-size
integers and packed records from an immutable byte buffer.

Every multi-byte read takes its byte order from a :class:`DecodeContext`
built once from the ELF identification and passed to every decoder, so no
component re-derives width or endianness on its own.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from elfscope.core.errors import OutOfBounds


_UINT_CODES: dict[int, str] = {8: "B", 16: "H", 32: "I", 64: "Q"}
_SINT_CODES: dict[int, str] = {8: "b", 16: "h", 32: "i", 64: "q"}


@dataclass(frozen=True, slots=True)
class DecodeContext:
    """Width, byte order and machine of the file being decoded.

    Attributes:
        is_64bit: ``True`` for ELFCLASS64.
        endian: :mod:`struct` byte-order prefix, ``"<"`` or ``">"``.
        machine: ``e_machine`` value (selects relocation semantics).
    """
    is_64bit: bool
    endian: str
    machine: int = 0

    @property
    def word_bits(self) -> int:
        """Width in bits of addresses, offsets and xwords."""
        return 64 if self.is_64bit else 32

    @property
    def little_endian(self) -> bool:
        return self.endian == "<"


def check_bounds(buffer: bytes, offset: int, size: int) -> None:
    """Raise :class:`OutOfBounds` unless ``buffer[offset:offset+size]`` exists."""
    if offset < 0 or size < 0 or offset + size > len(buffer):
        raise OutOfBounds(offset, size, len(buffer))


def read_uint(buffer: bytes, offset: int, width: int, endian: str) -> int:
    """Read an unsigned integer of *width* bits at *offset*.

    Args:
        buffer: Source bytes.
        offset: Byte offset of the field.
        width: Field width in bits (8, 16, 32 or 64).
        endian: ``"<"`` or ``">"``.

    Raises:
        OutOfBounds: If the field extends past the buffer.
    """
    code = _UINT_CODES[width]
    check_bounds(buffer, offset, width // 8)
    return struct.unpack_from(endian + code, buffer, offset)[0]


def read_sint(buffer: bytes, offset: int, width: int, endian: str) -> int:
    """Signed counterpart of :func:`read_uint`, for fields documented signed."""
    code = _SINT_CODES[width]
    check_bounds(buffer, offset, width // 8)
    return struct.unpack_from(endian + code, buffer, offset)[0]


def read_struct(buffer: bytes, offset: int, fmt: str) -> tuple[int, ...]:
    """Unpack a whole record described by a :mod:`struct` format string.

    The format must carry its own byte-order prefix.

    Raises:
        OutOfBounds: If the record extends past the buffer.
    """
    check_bounds(buffer, offset, struct.calcsize(fmt))
    return struct.unpack_from(fmt, buffer, offset)


def slice_bytes(buffer: bytes, offset: int, size: int) -> bytes:
    """Return ``buffer[offset:offset+size]``, raising if any byte is missing."""
    check_bounds(buffer, offset, size)
    return bytes(buffer[offset:offset + size])
