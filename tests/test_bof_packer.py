"""Tests for BOF argument packing."""

import base64
import struct

import pytest

from csbot.bof import (
    BOFArgument,
    pack_binary,
    pack_bof_arguments,
    pack_int,
    pack_short,
    pack_single,
    pack_string,
    pack_wstring,
    parse_bof_arguments,
)
from csbot.errors import TypeMismatchError, UnsupportedTypeError, ValidationError

WINDOWS = "C:\\Windows"


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class TestKnownVectors:
    """Buffers produced by the beacon-side reference packer."""

    def test_string_then_short(self):
        packed = pack_bof_arguments([BOFArgument("z", WINDOWS), BOFArgument("s", 0)])
        assert b64(packed) == "AAAAC0M6XFdpbmRvd3MAAAA="

    def test_wide_string(self):
        packed = pack_bof_arguments([BOFArgument("Z", WINDOWS)])
        assert b64(packed) == "AAAAFkMAOgBcAFcAaQBuAGQAbwB3AHMAAAAAAA=="

    def test_wide_string_then_int(self):
        packed = pack_bof_arguments([BOFArgument("Z", WINDOWS), BOFArgument("i", 12112)])
        assert b64(packed) == "AAAAFkMAOgBcAFcAaQBuAGQAbwB3AHMAAAAAAC9Q"

    def test_mixed_strings_then_int(self):
        args = [
            BOFArgument("Z", WINDOWS),
            BOFArgument("z", WINDOWS),
            BOFArgument("Z", WINDOWS),
            BOFArgument("z", WINDOWS),
            BOFArgument("i", 12112),
        ]
        assert b64(pack_bof_arguments(args)) == (
            "AAAAFkMAOgBcAFcAaQBuAGQAbwB3AHMAAAAAAAALQzpcV2luZG93cwAAAAAWQwA6AFwAVwBp"
            "AG4AZABvAHcAcwAAAAAAAAtDOlxXaW5kb3dzAAAAL1A="
        )

    def test_int_wide_string_int(self):
        args = [BOFArgument("i", 12112), BOFArgument("Z", WINDOWS), BOFArgument("i", 12112)]
        assert b64(pack_bof_arguments(args)) == "AAAvUAAAABZDADoAXABXAGkAbgBkAG8AdwBzAAAAAAAvUA=="

    def test_three_ints_wide_string_int(self):
        args = [BOFArgument("i", 12112)] * 3 + [
            BOFArgument("Z", WINDOWS),
            BOFArgument("i", 12112),
        ]
        assert b64(pack_bof_arguments(args)) == (
            "AAAvUAAAL1AAAC9QAAAAFkMAOgBcAFcAaQBuAGQAbwB3AHMAAAAAAC9Q"
        )


SAMPLES = [
    BOFArgument("i", 12112),
    BOFArgument("i", -1),
    BOFArgument("int", 2**32 + 5),
    BOFArgument("s", 0),
    BOFArgument("short", 70000),
    BOFArgument("z", WINDOWS),
    BOFArgument("z", ""),
    BOFArgument("Z", "ünïcode \U0001f600"),
    BOFArgument("Z", ""),
    BOFArgument("b", "deadbeef"),
    BOFArgument("b", b""),
]


class TestConcatenation:
    """A buffer is the plain concatenation of each argument's own encoding."""

    @pytest.mark.parametrize("first", SAMPLES, ids=repr)
    @pytest.mark.parametrize("second", SAMPLES, ids=repr)
    def test_pair_equals_joined_singles(self, first, second):
        assert pack_bof_arguments([first, second]) == (
            pack_bof_arguments([first]) + pack_bof_arguments([second])
        )

    def test_all_samples_in_order(self):
        assert pack_bof_arguments(SAMPLES) == b"".join(pack_single(arg) for arg in SAMPLES)


class TestEncodings:
    def test_int_is_big_endian_without_prefix(self):
        assert pack_int(1) == b"\x00\x00\x00\x01"

    def test_short_is_two_bytes(self):
        assert pack_short(0x1234) == b"\x12\x34"

    def test_string_length_counts_terminator(self):
        assert pack_string("") == b"\x00\x00\x00\x01\x00"
        assert pack_string("ab") == b"\x00\x00\x00\x03ab\x00"

    def test_string_is_utf8(self):
        payload = "é".encode()
        assert pack_string("é") == struct.pack(">I", len(payload) + 1) + payload + b"\x00"

    def test_empty_wstring_is_terminator_only(self):
        assert pack_wstring("") == b"\x00\x00\x00\x02\x00\x00"

    def test_wstring_surrogate_pair(self):
        # U+1F600 encodes as two UTF-16 code units
        packed = pack_wstring("\U0001f600")
        assert packed[:4] == struct.pack(">I", 6)
        assert packed[4:] == "\U0001f600".encode("utf-16-le") + b"\x00\x00"

    def test_binary_from_hex_has_no_terminator(self):
        assert pack_binary("deadbeef") == b"\x00\x00\x00\x04\xde\xad\xbe\xef"

    def test_binary_from_bytes(self):
        assert pack_binary(b"\x01\x02") == b"\x00\x00\x00\x02\x01\x02"

    def test_empty_binary(self):
        assert pack_binary("") == b"\x00\x00\x00\x00"

    def test_long_names_are_aliases(self):
        short = pack_bof_arguments([BOFArgument("i", 7), BOFArgument("z", "x")])
        long = pack_bof_arguments([BOFArgument("int", 7), BOFArgument("string", "x")])
        assert short == long


class TestNumericCoercion:
    def test_negative_int_wraps(self):
        assert pack_int(-1) == b"\xff\xff\xff\xff"

    def test_short_overflow_wraps(self):
        assert pack_short(70000) == struct.pack(">H", 70000 & 0xFFFF)

    def test_float_truncates_toward_zero(self):
        assert pack_int(3.9) == pack_int(3)
        assert pack_int(-3.9) == pack_int(-3)

    def test_decimal_string(self):
        assert pack_int("12112") == pack_int(12112)
        assert pack_short(" -2 ") == pack_short(-2)

    @pytest.mark.parametrize("value", ["0x10", "abc", "1.5", "", None, [1]])
    def test_rejects_non_decimal(self, value):
        with pytest.raises(TypeMismatchError):
            pack_int(value)

    @pytest.mark.parametrize("value", [True, float("nan"), float("inf")])
    def test_rejects_bool_nan_inf(self, value):
        with pytest.raises(TypeMismatchError):
            pack_int(value)


class TestErrors:
    def test_empty_input_gives_empty_buffer(self):
        assert pack_bof_arguments([]) == b""

    def test_unknown_type(self):
        with pytest.raises(UnsupportedTypeError) as exc_info:
            pack_bof_arguments([BOFArgument("i", 1), BOFArgument("q", 1)])
        assert exc_info.value.index == 1
        assert exc_info.value.arg_type == "q"

    def test_string_requires_str(self):
        with pytest.raises(TypeMismatchError):
            pack_string(42)

    def test_wstring_requires_str(self):
        with pytest.raises(TypeMismatchError):
            pack_wstring(b"bytes")

    def test_lone_surrogate_is_mismatch(self):
        with pytest.raises(TypeMismatchError):
            pack_wstring("\ud800")

    @pytest.mark.parametrize("value", ["abc", "zz", 12])
    def test_binary_rejects_bad_input(self, value):
        with pytest.raises(TypeMismatchError):
            pack_binary(value)

    def test_pack_single_reports_unknown_type(self):
        with pytest.raises(UnsupportedTypeError):
            pack_single(BOFArgument("x", 1))


class TestParsing:
    def test_from_mappings(self):
        args = parse_bof_arguments([{"type": "i", "value": 5}, {"type": "Z", "value": "a"}])
        assert args == (BOFArgument("i", 5), BOFArgument("Z", "a"))

    def test_pack_accepts_mappings(self):
        assert pack_bof_arguments([{"type": "s", "value": 1}]) == b"\x00\x01"

    def test_missing_type(self):
        with pytest.raises(ValidationError):
            BOFArgument.from_dict({"value": 1})

    def test_to_dict_hexes_bytes(self):
        assert BOFArgument("b", b"\xab").to_dict() == {"type": "b", "value": "ab"}
