"""BOF argument packer.

Serializes typed argument lists into the buffer consumed by ``bof_pack``-style
loaders on the beacon. Each argument encodes independently and the buffer is
the plain concatenation of those encodings:

- ``int`` (i):      ``[value:4 BE]``
- ``short`` (s):    ``[value:2 BE]``
- ``string`` (z):   ``[length:4 BE][utf-8 bytes][0x00]``
- ``wstring`` (Z):  ``[length:4 BE][utf-16le units][0x0000]``
- ``binary`` (b):   ``[length:4 BE][raw bytes]``

Length prefixes count payload bytes, terminator included.
"""

from __future__ import annotations

import binascii
import logging
import math
import struct
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from csbot.errors import TypeMismatchError, UnsupportedTypeError, ValidationError

logger = logging.getLogger(__name__)

_INT_MASK = 0xFFFFFFFF
_SHORT_MASK = 0xFFFF

# Accepted tags mapped to their canonical name
TYPE_ALIASES = {
    "int": "int",
    "i": "int",
    "short": "short",
    "s": "short",
    "string": "string",
    "z": "string",
    "wstring": "wstring",
    "Z": "wstring",
    "binary": "binary",
    "b": "binary",
}


@dataclass(frozen=True)
class BOFArgument:
    """A typed argument for BOF execution."""

    type: str
    value: Any = None

    @property
    def canonical_type(self) -> str | None:
        return TYPE_ALIASES.get(self.type)

    @classmethod
    def from_dict(cls, data: Mapping) -> BOFArgument:
        """Create a BOFArgument from a ``{"type": ..., "value": ...}`` mapping."""
        if not isinstance(data, Mapping):
            raise ValidationError(f"BOF argument must be a mapping, got {type(data).__name__}")
        if "type" not in data:
            raise ValidationError("BOF argument missing 'type'")
        return cls(type=str(data["type"]), value=data.get("value"))

    def to_dict(self) -> dict:
        value = self.value
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).hex()
        return {"type": self.type, "value": value}


def parse_bof_arguments(raw: Iterable) -> tuple[BOFArgument, ...]:
    """Build a tuple of BOFArguments from mappings or existing arguments."""
    args = []
    for item in raw:
        if isinstance(item, BOFArgument):
            args.append(item)
        else:
            args.append(BOFArgument.from_dict(item))
    return tuple(args)


def _coerce_integer(value: Any, arg_type: str, mask: int, index: int | None) -> int:
    """Narrow a numeric value to an unsigned integer of the masked width."""
    if isinstance(value, bool):
        raise TypeMismatchError(
            f"invalid type for {arg_type}: bool", arg_type=arg_type, index=index
        )
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise TypeMismatchError(
                f"invalid value for {arg_type}: {value}", arg_type=arg_type, index=index
            )
        number = int(value)
    elif isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text[:1] in ("-", "+") else text
        if not digits.isdecimal():
            raise TypeMismatchError(
                f"invalid decimal string for {arg_type}: {value!r}",
                arg_type=arg_type,
                index=index,
            )
        number = int(text, 10)
    else:
        raise TypeMismatchError(
            f"invalid type for {arg_type}: {type(value).__name__}",
            arg_type=arg_type,
            index=index,
        )
    # Wraps like a native fixed-width cast
    return number & mask


def pack_int(value: Any, index: int | None = None) -> bytes:
    """Pack a 32-bit integer, big-endian, no prefix."""
    return struct.pack(">I", _coerce_integer(value, "int", _INT_MASK, index))


def pack_short(value: Any, index: int | None = None) -> bytes:
    """Pack a 16-bit integer, big-endian, no prefix."""
    return struct.pack(">H", _coerce_integer(value, "short", _SHORT_MASK, index))


def pack_string(value: Any, index: int | None = None) -> bytes:
    """Pack a narrow string with length prefix and 1-byte terminator."""
    if not isinstance(value, str):
        raise TypeMismatchError(
            f"invalid type for string: {type(value).__name__}", arg_type="string", index=index
        )
    try:
        payload = value.encode("utf-8") + b"\x00"
    except UnicodeEncodeError as e:
        raise TypeMismatchError(
            f"cannot encode string as UTF-8: {e}", arg_type="string", index=index
        ) from e
    return struct.pack(">I", len(payload)) + payload


def pack_wstring(value: Any, index: int | None = None) -> bytes:
    """Pack a wide string as UTF-16LE with length prefix and 2-byte terminator."""
    if not isinstance(value, str):
        raise TypeMismatchError(
            f"invalid type for wstring: {type(value).__name__}", arg_type="wstring", index=index
        )
    try:
        payload = value.encode("utf-16-le") + b"\x00\x00"
    except UnicodeEncodeError as e:
        raise TypeMismatchError(
            f"cannot encode wstring as UTF-16: {e}", arg_type="wstring", index=index
        ) from e
    return struct.pack(">I", len(payload)) + payload


def pack_binary(value: Any, index: int | None = None) -> bytes:
    """Pack raw bytes (or a hex string) with a length prefix."""
    if isinstance(value, (bytes, bytearray)):
        data = bytes(value)
    elif isinstance(value, str):
        try:
            data = binascii.unhexlify(value)
        except (binascii.Error, ValueError) as e:
            raise TypeMismatchError(
                f"invalid hex string for binary: {e}", arg_type="binary", index=index
            ) from e
    else:
        raise TypeMismatchError(
            f"invalid type for binary: {type(value).__name__}", arg_type="binary", index=index
        )
    return struct.pack(">I", len(data)) + data


_PACKERS = {
    "int": pack_int,
    "short": pack_short,
    "string": pack_string,
    "wstring": pack_wstring,
    "binary": pack_binary,
}


def pack_single(arg: BOFArgument, index: int | None = None) -> bytes:
    """Encode one argument.

    Raises:
        UnsupportedTypeError: If the type tag is unknown
        TypeMismatchError: If the value does not fit the type
    """
    canonical = arg.canonical_type
    if canonical is None:
        raise UnsupportedTypeError(
            f"unsupported argument type: {arg.type}", arg_type=arg.type, index=index
        )
    return _PACKERS[canonical](arg.value, index)


def pack_bof_arguments(args: Iterable[BOFArgument | Mapping]) -> bytes:
    """Pack typed arguments into a single BOF argument buffer.

    Args:
        args: BOFArguments (or ``{"type", "value"}`` mappings) in call order

    Returns:
        Concatenated encodings; ``b""`` for no arguments

    Raises:
        UnsupportedTypeError: If any argument has an unknown type tag
        TypeMismatchError: If any value cannot be coerced to its type
    """
    chunks = []
    for index, arg in enumerate(parse_bof_arguments(args)):
        chunks.append(pack_single(arg, index))
    packed = b"".join(chunks)
    logger.debug("Packed %d BOF arguments into %d bytes", len(chunks), len(packed))
    return packed
