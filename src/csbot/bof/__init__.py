"""BOF argument packing.

Usage:
    from csbot.bof import BOFArgument, pack_bof_arguments

    buffer = pack_bof_arguments(
        [BOFArgument("wstring", "C:\\Windows"), BOFArgument("int", 12112)]
    )
"""

from csbot.bof.packer import (
    TYPE_ALIASES,
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

__all__ = [
    "BOFArgument",
    "TYPE_ALIASES",
    "pack_bof_arguments",
    "pack_single",
    "pack_int",
    "pack_short",
    "pack_string",
    "pack_wstring",
    "pack_binary",
    "parse_bof_arguments",
]
