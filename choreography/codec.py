"""A compact, self-describing binary encoding for plain Python values."""

from __future__ import annotations

import io
import struct
from typing import Any, Callable, Dict, List

from .handler import SerializationError

_NONE = 0x00
_FALSE = 0x01
_TRUE = 0x02
_INT = 0x03
_FLOAT = 0x04
_STR = 0x05
_BYTES = 0x06
_LIST = 0x07
_TUPLE = 0x08
_DICT = 0x09

_LENGTH = struct.Struct(">I")
_DOUBLE = struct.Struct(">d")


def _length(n: int) -> bytes:
    return _LENGTH.pack(n)


def _encode_into(value: Any, parts: List[bytes]) -> None:
    if value is None:
        parts.append(bytes([_NONE]))
    elif value is True:
        parts.append(bytes([_TRUE]))
    elif value is False:
        parts.append(bytes([_FALSE]))
    elif isinstance(value, int):
        raw = value.to_bytes((value.bit_length() + 8) // 8, "big", signed=True)
        parts.extend((bytes([_INT]), _length(len(raw)), raw))
    elif isinstance(value, float):
        parts.extend((bytes([_FLOAT]), _DOUBLE.pack(value)))
    elif isinstance(value, str):
        raw = value.encode("utf-8")
        parts.extend((bytes([_STR]), _length(len(raw)), raw))
    elif isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        parts.extend((bytes([_BYTES]), _length(len(raw)), raw))
    elif isinstance(value, (list, tuple)):
        parts.extend((bytes([_TUPLE if isinstance(value, tuple) else _LIST]), _length(len(value))))
        for item in value:
            _encode_into(item, parts)
    elif isinstance(value, dict):
        parts.extend((bytes([_DICT]), _length(len(value))))
        for key, item in value.items():
            _encode_into(key, parts)
            _encode_into(item, parts)
    else:
        raise SerializationError(f"cannot encode value of type {type(value).__name__}")


def encode(value: Any) -> bytes:
    """Encode ``value`` (None, bool, int, float, str, bytes, list, tuple, dict)."""
    parts: List[bytes] = []
    _encode_into(value, parts)
    return b"".join(parts)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._stream = io.BytesIO(data)

    def read(self, n: int) -> bytes:
        chunk = self._stream.read(n)
        if len(chunk) != n:
            raise SerializationError("unexpected end of data")
        return chunk

    def length(self) -> int:
        return _LENGTH.unpack(self.read(_LENGTH.size))[0]

    def at_end(self) -> bool:
        return self._stream.read(1) == b""

    def value(self) -> Any:
        tag = self.read(1)[0]
        decoder = _DECODERS.get(tag)
        if decoder is None:
            raise SerializationError(f"unknown type tag 0x{tag:02x}")
        return decoder(self)


def _read_str(reader: _Reader) -> str:
    raw = reader.read(reader.length())
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SerializationError(f"invalid UTF-8 in string: {exc}") from exc


def _read_dict(reader: _Reader) -> dict:
    result = {}
    for _ in range(reader.length()):
        key = reader.value()
        try:
            result[key] = reader.value()
        except TypeError as exc:
            raise SerializationError(f"unhashable dictionary key: {exc}") from exc
    return result


_DECODERS: Dict[int, Callable[[_Reader], Any]] = {
    _NONE: lambda r: None,
    _FALSE: lambda r: False,
    _TRUE: lambda r: True,
    _INT: lambda r: int.from_bytes(r.read(r.length()), "big", signed=True),
    _FLOAT: lambda r: _DOUBLE.unpack(r.read(_DOUBLE.size))[0],
    _STR: _read_str,
    _BYTES: lambda r: r.read(r.length()),
    _LIST: lambda r: [r.value() for _ in range(r.length())],
    _TUPLE: lambda r: tuple(r.value() for _ in range(r.length())),
    _DICT: _read_dict,
}


def decode(data: bytes) -> Any:
    """Decode bytes produced by :func:`encode`; raise SerializationError if malformed."""
    reader = _Reader(bytes(data))
    value = reader.value()
    if not reader.at_end():
        raise SerializationError("trailing bytes after value")
    return value