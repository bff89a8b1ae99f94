"""Big-endian field codec for the fixed-layout binary message header."""

from __future__ import annotations

import uuid
from typing import Union

Buffer = Union[bytes, bytearray, memoryview]
MutableBuffer = Union[bytearray, memoryview]

_OUTSIDE = "Offset is outside the byte array."
_UINT32_MAX = 0xFFFFFFFF
_UINT64_MAX = 0xFFFFFFFFFFFFFFFF


class CodecError(ValueError):
    """Raised when a field cannot be read from or written to a buffer."""


def _check_span(size: int, offset: int, length: int, message: str = _OUTSIDE) -> None:
    if offset < 0 or offset > size - 1 or offset + length > size:
        raise CodecError(message)


def _check_range(size: int, offset_start: int, offset_end: int) -> None:
    if (
        offset_start < 0
        or offset_start > size - 1
        or offset_end > size - 1
        or offset_start > offset_end
    ):
        raise CodecError(_OUTSIDE)


def get_string(data: Buffer, offset: int, length: int) -> str:
    """Read a string field, dropping surrounding NUL bytes and whitespace."""
    _check_span(len(data), offset, length)
    raw = bytes(data[offset : offset + length]).strip(b"\x00")
    return raw.decode("utf-8", errors="replace").strip()


def bytes_to_integer(data: Buffer) -> int:
    """Decode exactly four bytes as a signed 32-bit integer."""
    if len(data) != 4:
        raise CodecError("Input array size is not equal to 4.")
    return int.from_bytes(bytes(data), "big", signed=True)


def get_integer(data: Buffer, offset: int) -> int:
    """Read a signed 32-bit integer at the offset."""
    _check_span(len(data), offset, 4, "Offset is bigger than the byte array.")
    return bytes_to_integer(data[offset : offset + 4])


def get_uinteger(data: Buffer, offset: int) -> int:
    """Read an unsigned 32-bit integer at the offset."""
    return get_integer(data, offset) & _UINT32_MAX


def bytes_to_long(data: Buffer) -> int:
    """Decode exactly eight bytes as a signed 64-bit integer."""
    if len(data) != 8:
        raise CodecError("Input array size is not equal to 8.")
    return int.from_bytes(bytes(data), "big", signed=True)


def get_long(data: Buffer, offset: int) -> int:
    """Read a signed 64-bit integer at the offset."""
    _check_span(len(data), offset, 8)
    return bytes_to_long(data[offset : offset + 8])


def get_ulong(data: Buffer, offset: int) -> int:
    """Read an unsigned 64-bit integer at the offset."""
    return get_long(data, offset) & _UINT64_MAX


def get_uuid(data: Buffer, offset: int) -> uuid.UUID:
    """Read a UUID stored as its low eight bytes followed by its high eight bytes."""
    _check_span(len(data), offset, 16)
    least_significant = bytes(data[offset : offset + 8])
    most_significant = bytes(data[offset + 8 : offset + 16])
    return uuid.UUID(bytes=most_significant + least_significant)


def long_to_bytes(value: int) -> bytes:
    """Encode a signed 64-bit integer as eight big-endian bytes."""
    try:
        return value.to_bytes(8, "big", signed=True)
    except OverflowError as exc:
        raise CodecError("Input is out of the 64-bit integer range.") from exc


def integer_to_bytes(value: int) -> bytes:
    """Encode a signed 32-bit integer as four big-endian bytes."""
    try:
        return value.to_bytes(4, "big", signed=True)
    except OverflowError as exc:
        raise CodecError("Input is out of the 32-bit integer range.") from exc


def get_bytes(data: Buffer, offset: int, length: int) -> bytes:
    """Read length bytes starting at the offset."""
    _check_span(len(data), offset, length)
    return bytes(data[offset : offset + length])


def put_integer(buffer: MutableBuffer, offset: int, value: int) -> None:
    """Write a signed 32-bit integer at the offset."""
    _check_span(len(buffer), offset, 4)
    buffer[offset : offset + 4] = integer_to_bytes(value)


def put_uinteger(buffer: MutableBuffer, offset: int, value: int) -> None:
    """Write an unsigned 32-bit integer at the offset."""
    _check_span(len(buffer), offset, 4)
    if not 0 <= value <= _UINT32_MAX:
        raise CodecError("Input is out of the unsigned 32-bit integer range.")
    buffer[offset : offset + 4] = value.to_bytes(4, "big")


def put_long(buffer: MutableBuffer, offset: int, value: int) -> None:
    """Write a signed 64-bit integer at the offset."""
    _check_span(len(buffer), offset, 8)
    buffer[offset : offset + 8] = long_to_bytes(value)


def put_ulong(buffer: MutableBuffer, offset: int, value: int) -> None:
    """Write an unsigned 64-bit integer at the offset."""
    _check_span(len(buffer), offset, 8)
    if not 0 <= value <= _UINT64_MAX:
        raise CodecError("Input is out of the unsigned 64-bit integer range.")
    buffer[offset : offset + 8] = value.to_bytes(8, "big")


def put_string(buffer: MutableBuffer, offset_start: int, offset_end: int, value: str) -> None:
    """Write a string into the inclusive range, padding the rest with spaces."""
    _check_range(len(buffer), offset_start, offset_end)
    encoded = value.encode("utf-8")
    width = offset_end - offset_start + 1
    if width < len(encoded):
        raise CodecError("Not enough space to save the string.")
    buffer[offset_start : offset_end + 1] = encoded.ljust(width, b" ")


def put_bytes(buffer: MutableBuffer, offset_start: int, offset_end: int, value: Buffer) -> None:
    """Write bytes that exactly fill the inclusive range."""
    _check_range(len(buffer), offset_start, offset_end)
    if offset_end - offset_start + 1 != len(value):
        raise CodecError("Not enough space to save the bytes.")
    buffer[offset_start : offset_end + 1] = bytes(value)


def put_uuid(buffer: MutableBuffer, offset: int, value: uuid.UUID) -> None:
    """Write a UUID as its low eight bytes followed by its high eight bytes."""
    if value.int == 0:
        raise CodecError("putUuid failed: input is null.")
    _check_span(len(buffer), offset, 16)
    raw = value.bytes
    buffer[offset : offset + 8] = raw[8:16]
    buffer[offset + 8 : offset + 16] = raw[0:8]