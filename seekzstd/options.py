"""Command-line options of the gzstd tool and the helpers they rely on."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass

from seekzstd.encoder import (
    SPEED_BEST_COMPRESSION,
    SPEED_BETTER_COMPRESSION,
    SPEED_DEFAULT,
    SPEED_FASTEST,
)

PROGRAM_NAME = "gzstd"
FILE_EXTENSION = ".zst"
DEFAULT_COMPRESSION_LEVEL = 6
DEFAULT_FRAME_SIZE = "512K"
VERSION = "1.0.0"

_U32_MASK = 0xFFFFFFFF
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_UINT64_MAX = (1 << 64) - 1


class OptionsError(ValueError):
    """Raised when the command line cannot be parsed."""


@dataclass
class Options:
    """Settings gathered from the command line."""

    decompress: bool = False
    decompress_to: str = ""
    list: bool = False
    stdout: bool = False
    force: bool = False
    keep: bool = True
    no_keep: bool = False
    quiet: bool = False
    verbose: bool = False
    test: bool = False
    level: int = DEFAULT_COMPRESSION_LEVEL
    frame_size: str = DEFAULT_FRAME_SIZE
    start_frame: int = 0
    end_frame: int = 0
    recursive: bool = False
    suffix: str = FILE_EXTENSION
    no_name: bool = False
    name: bool = True
    help: bool = False
    version: bool = False


_FLAGS: dict[str, tuple[str, str]] = {
    "d": ("decompress", "bool"),
    "decompress": ("decompress", "bool"),
    "do": ("decompress_to", "str"),
    "compression": ("level", "int"),
    "nk": ("no_keep", "bool"),
    "no-keep": ("no_keep", "bool"),
    "c": ("stdout", "bool"),
    "stdout": ("stdout", "bool"),
    "n": ("no_name", "bool"),
    "no-name": ("no_name", "bool"),
    "N": ("name", "bool"),
    "name": ("name", "bool"),
    "l": ("list", "bool"),
    "list": ("list", "bool"),
    "t": ("test", "bool"),
    "test": ("test", "bool"),
    "v": ("verbose", "bool"),
    "verbose": ("verbose", "bool"),
    "q": ("quiet", "bool"),
    "quiet": ("quiet", "bool"),
    "r": ("recursive", "bool"),
    "recursive": ("recursive", "bool"),
    "S": ("suffix", "str"),
    "suffix": ("suffix", "str"),
    "h": ("help", "bool"),
    "help": ("help", "bool"),
    "version": ("version", "bool"),
    "f": ("force", "bool"),
    "force": ("force", "bool"),
    "frame-size": ("frame_size", "str"),
    "start-frame": ("start_frame", "uint"),
    "end-frame": ("end_frame", "uint"),
}

_LEVEL_FLAGS = {str(level) for level in range(1, 10)}

_BOOL_VALUES = {
    "1": True, "t": True, "T": True, "TRUE": True, "true": True, "True": True,
    "0": False, "f": False, "F": False, "FALSE": False, "false": False, "False": False,
}

_INT_RE = re.compile(
    r"([+-]?)(?:0[xX]([0-9a-fA-F]+)|0[oO]([0-7]+)|0[bB]([01]+)|0([0-7]*)|([1-9][0-9]*))"
)
_INT_BASES = (16, 8, 2, 8, 10)


def _parse_bool(value: str) -> bool:
    try:
        return _BOOL_VALUES[value]
    except KeyError:
        raise ValueError("parse error") from None


def _parse_integer(value: str, unsigned: bool) -> int:
    match = _INT_RE.fullmatch(value)
    if match is None or (unsigned and match.group(1)):
        raise ValueError("parse error")
    sign, *digit_groups = match.groups()
    number = next(
        int(digits or "0", base)
        for digits, base in zip(digit_groups, _INT_BASES)
        if digits is not None
    )
    if sign == "-":
        number = -number
    low, high = (0, _UINT64_MAX) if unsigned else (_INT64_MIN, _INT64_MAX)
    if not low <= number <= high:
        raise ValueError("value out of range")
    return number


def parse_options(argv: list[str] | None = None) -> tuple[Options, list[str]]:
    """Parse command-line arguments into options and the remaining file names."""
    raw = list(sys.argv[1:] if argv is None else argv)
    options = Options()
    shortcuts: dict[str, bool] = {}

    index = 0
    while index < len(raw):
        arg = raw[index]
        if len(arg) < 2 or arg[0] != "-":
            break
        if arg == "--":
            index += 1
            break
        name = arg[2:] if arg[1] == "-" else arg[1:]
        if not name or name[0] in "-=":
            raise OptionsError(f"bad flag syntax: {arg}")
        index += 1
        name, eq, value = name.partition("=")

        if name in _LEVEL_FLAGS:
            attr, kind = None, "bool"
        elif name in _FLAGS:
            attr, kind = _FLAGS[name]
        else:
            raise OptionsError(f"flag provided but not defined: -{name}")

        if kind == "bool":
            if eq:
                try:
                    flag = _parse_bool(value)
                except ValueError as exc:
                    raise OptionsError(
                        f'invalid boolean value "{value}" for -{name}: {exc}'
                    ) from None
            else:
                flag = True
            if attr is None:
                shortcuts[name] = flag
            else:
                setattr(options, attr, flag)
            continue

        if not eq:
            if index >= len(raw):
                raise OptionsError(f"flag needs an argument: -{name}")
            value = raw[index]
            index += 1
        if kind == "str":
            setattr(options, attr, value)
        else:
            try:
                setattr(options, attr, _parse_integer(value, unsigned=kind == "uint"))
            except ValueError as exc:
                raise OptionsError(
                    f'invalid value "{value}" for flag -{name}: {exc}'
                ) from None

    files = raw[index:]

    for arg in raw:
        if arg.startswith(("-d=", "--decompress=")):
            target = arg.split("=", 1)[1]
            if target:
                options.decompress = True
                options.decompress_to = target

    for level in range(1, 10):
        if shortcuts.get(str(level)):
            options.level = level
            break

    options.start_frame &= _U32_MASK
    options.end_frame &= _U32_MASK
    options.keep = not options.no_keep

    for position, arg in enumerate(raw):
        if arg == "-c" and position + 1 < len(raw):
            following = raw[position + 1]
            if len(following) == 1 and "1" <= following <= "9":
                options.level = int(following)
                options.stdout = False
        elif arg.startswith("-c") and len(arg) == 3 and "1" <= arg[2] <= "9":
            options.level = int(arg[2])
            options.stdout = False

    if not options.no_name:
        options.name = True

    return options, files


def parse_byte_size(text: str) -> int:
    """Parse a size such as ``512K`` or ``1.5MB`` into a number of bytes."""
    text = text.strip().upper()
    prefix = re.match(r"[0-9.]*", text).group(0)
    unit = text[len(prefix):]
    if not prefix:
        raise ValueError("no numeric value found")
    number_text = re.match(r"\d*(?:\.\d*)?", prefix).group(0)
    try:
        number = float(number_text)
    except ValueError:
        raise ValueError(f"expected a number, got {prefix!r}") from None

    multipliers = {
        "": 1, "B": 1,
        "K": 1024, "KB": 1024, "KIB": 1024,
        "M": 1024 ** 2, "MB": 1024 ** 2, "MIB": 1024 ** 2,
        "G": 1024 ** 3, "GB": 1024 ** 3, "GIB": 1024 ** 3,
    }
    try:
        multiplier = multipliers[unit.strip()]
    except KeyError:
        raise ValueError(f"unknown unit: {unit}") from None
    return int(number * multiplier)


def output_file_name(input_file: str, extension: str, to_stdout: bool) -> str:
    """Name of the file an operation writes to; ``-`` means standard output."""
    if to_stdout or input_file == "-":
        return "-"
    if extension:
        return input_file + extension
    for suffix in (".zst", ".gz", ".Z"):
        if input_file.endswith(suffix):
            return input_file[: -len(suffix)]
    return input_file + ".out"


def zstd_level(level: int) -> int:
    """Map a 1-9 command-line level to a zstd compression level."""
    if level == 1:
        return SPEED_FASTEST
    if level in (4, 5, 6):
        return SPEED_BETTER_COMPRESSION
    if level in (7, 8, 9):
        return SPEED_BEST_COMPRESSION
    return SPEED_DEFAULT


def help_text() -> str:
    """The usage message printed for ``--help``."""
    p, ext, size = PROGRAM_NAME, FILE_EXTENSION, DEFAULT_FRAME_SIZE
    return f"""{p} - Seekable zstd compression utility

Basic Usage:
  {p} -nk file.txt      Compress file.txt (creates file.txt{ext} and removes original)
  {p} file.txt          Compress file.txt (creates file.txt{ext} and keeps the original)
  {p} -d file.txt.zst   Decompress file
  {p} -d file.txt.zst -do output.txt   Decompress to specific file

Compression Options:
  -1 to -9                 Compression level (1=fastest, 9=best compression, 6=default)
  --compression=LEVEL      Set compression level (1-9)
  -nk, --no-keep           Don't keep the original files (The default is to keep files)

Output Control:
  -c, --stdout             Write to standard output, keep original files
  -n, --no-name            Don't save/restore original filename and timestamp
  -N, --name               Save/restore original filename and timestamp (default)

Information and Testing:
  -l, --list               List compressed file contents
  -t, --test               Test compressed file integrity
  -v, --verbose            Display compression ratio and other info
  -q, --quiet              Suppress warnings

Other Options:
  -r, --recursive          Recursively compress files in directories
  -S, --suffix=SUF         Use suffix SUF instead of {ext}
  -h, --help               Display help message
  --version                Show version information
  -f, --force              Force overwrite of output files

Extended Options:
  --frame-size=SIZE        Set seekable frame size (default: {size})
  --start-frame=N          Start decompression at frame N
  --end-frame=N            End decompression at frame N

Examples:
  {p} file.txt              # Compress file.txt to file.txt{ext}
  {p} -d file.txt{ext}         # Decompress to file.txt
  {p} -c file.txt > out{ext}   # Compress to stdout
  {p} -l file.txt{ext}         # List archive contents
  {p} -r directory          # Recursively compress files in directory

"""