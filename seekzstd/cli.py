"""The gzstd command: compress, decompress, list and test seekable zstd archives."""

from __future__ import annotations

import contextlib
import datetime
import io
import os
import stat
import sys
from typing import BinaryIO, Iterator

import zstandard

from seekzstd.decoder import Decoder, DecoderOptions
from seekzstd.encoder import CompressedFrameSize, Encoder, EncoderOptions
from seekzstd.options import (
    PROGRAM_NAME,
    VERSION,
    Options,
    OptionsError,
    help_text,
    output_file_name,
    parse_byte_size,
    parse_options,
    zstd_level,
)
from seekzstd.seektable import (
    SeekTable,
    SeekTableError,
    parse_seek_table,
    parse_seek_table_size,
    read_seek_table_footer,
)

_CHUNK = 64 * 1024
_U32_MASK = 0xFFFFFFFF
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class CommandError(Exception):
    """A file could not be processed."""


@contextlib.contextmanager
def _open_input(path: str) -> Iterator[tuple[BinaryIO, os.stat_result | None]]:
    if path == "-":
        yield sys.stdin.buffer, None
        return
    with open(path, "rb") as stream:
        yield stream, os.fstat(stream.fileno())


@contextlib.contextmanager
def _open_output(path: str, force: bool) -> Iterator[BinaryIO]:
    """Open an output; a partially written file is removed on failure."""
    if path == "-":
        sys.stdout.flush()
        try:
            yield sys.stdout.buffer
        finally:
            sys.stdout.buffer.flush()
        return
    if not force and os.path.exists(path):
        raise FileExistsError("file exists")
    stream = open(path, "wb")
    try:
        yield stream
    except BaseException:
        stream.close()
        with contextlib.suppress(OSError):
            os.remove(path)
        raise
    stream.close()


def _seekable(stream: BinaryIO, path: str) -> BinaryIO:
    return io.BytesIO(stream.read()) if path == "-" else stream


def _preserve_times(path: str, info: os.stat_result) -> None:
    with contextlib.suppress(OSError):
        os.utime(path, ns=(info.st_mtime_ns, info.st_mtime_ns))


def _trim_suffix(text: str, suffix: str) -> str:
    return text[: -len(suffix)] if suffix and text.endswith(suffix) else text


def _percent(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return float("nan") if numerator == 0 else float("inf")
    return numerator / denominator * 100


def _walk_files(root: str) -> Iterator[str]:
    for name in sorted(os.listdir(root)):
        full = os.path.join(root, name)
        if stat.S_ISDIR(os.lstat(full).st_mode):
            yield from _walk_files(full)
        else:
            yield full


def _process_directory(root: str, options: Options) -> None:
    for path in _walk_files(root):
        if path.endswith(options.suffix) == options.decompress:
            process_file(path, options)


def process_file(path: str, options: Options) -> None:
    """Run the selected operation on one path (a directory when recursive)."""
    if options.recursive and path != "-":
        if stat.S_ISDIR(os.stat(path).st_mode):
            _process_directory(path, options)
            return
    if options.list:
        list_file(path, options)
    elif options.test:
        test_file(path, options)
    elif options.decompress:
        decompress_file(path, options)
    else:
        compress_file(path, options)


def compress_file(path: str, options: Options) -> None:
    """Compress ``path`` into a seekable archive."""
    try:
        frame_size = parse_byte_size(options.frame_size)
    except ValueError as exc:
        raise CommandError(f"invalid frame size: {exc}") from None

    with _open_input(path) as (source, info):
        out_path = output_file_name(path, options.suffix, options.stdout)
        with _open_output(out_path, options.force) as sink:
            encoder = Encoder(
                sink,
                EncoderOptions(
                    level=zstd_level(options.level),
                    frame_policy=CompressedFrameSize(frame_size & _U32_MASK),
                ),
            )
            written = sum(
                encoder.write(chunk) for chunk in iter(lambda: source.read(_CHUNK), b"")
            )
            encoder.finish()

    if options.verbose and out_path != "-":
        ratio = _percent(written, encoder.written_compressed())
        action = "compressed to" if options.keep else "replaced with"
        print(f"{path}:\t{ratio:.1f}% -- {action} {out_path}")

    if not options.keep and path != "-" and out_path != "-":
        os.remove(path)

    if options.name and info is not None and out_path != "-":
        _preserve_times(out_path, info)


def decompress_file(path: str, options: Options) -> None:
    """Decompress the archive at ``path``."""
    with _open_input(path) as (source, info):
        if path != "-" and not path.endswith(options.suffix):
            raise CommandError("unknown suffix -- ignored")
        out_path = options.decompress_to or output_file_name(path, "", options.stdout)
        if out_path == path and path != "-":
            raise CommandError("would overwrite input file")
        with _open_output(out_path, options.force) as sink:
            decoder = Decoder(
                _seekable(source, path),
                DecoderOptions(
                    lower_frame=options.start_frame,
                    upper_frame=options.end_frame,
                ),
            )
            for chunk in iter(lambda: decoder.read(_CHUNK), b""):
                sink.write(chunk)

    if options.verbose and out_path != "-":
        print(f"{path}:\t{out_path}")

    if not options.keep and path != "-" and out_path != "-":
        os.remove(path)

    if options.name and info is not None and out_path != "-":
        _preserve_times(out_path, info)


def list_file(path: str, options: Options) -> None:
    """Print sizes and ratio of the archive at ``path``."""
    if path == "-":
        raise CommandError("cannot list from stdin")
    with open(path, "rb") as stream:
        info = os.fstat(stream.fileno())
        table = read_seek_table(stream)

    frames = table.num_frames()
    total_decompressed = table.frame_end_decomp(frames - 1) if frames else 0
    total_compressed = info.st_size
    ratio = (
        total_compressed / total_decompressed * 100 if total_decompressed else 0.0
    )
    name = _trim_suffix(path, options.suffix)

    if not options.verbose:
        print(f"{total_compressed:12d} {total_decompressed:12d} {ratio:5.1f}% {name}")
        return

    stamp = datetime.datetime.fromtimestamp(info.st_mtime)
    date = f"{_MONTHS[stamp.month - 1]} {stamp.day:2d} {stamp:%H:%M}"
    print("method  crc     date  time  compressed uncompressed  ratio uncompressed_name")
    print(
        f"defla 00000000 {date} {total_compressed:12d} "
        f"{total_decompressed:12d} {ratio:5.1f}% {name}"
    )
    print(f"\nFrames: {frames}")
    for index in range(min(frames, 10)):
        print(
            f"  Frame {index}: {table.frame_size_comp(index)} -> "
            f"{table.frame_size_decomp(index)} bytes"
        )
    if frames > 10:
        print(f"  ... and {frames - 10} more frames")


def test_file(path: str, options: Options) -> None:
    """Decompress the archive at ``path`` fully, discarding the output."""
    with _open_input(path) as (source, _):
        decoder = Decoder(_seekable(source, path))
        for _chunk in iter(lambda: decoder.read(_CHUNK), b""):
            pass
    if options.verbose:
        print(f"{path}:\tOK")


def read_seek_table(source: BinaryIO) -> SeekTable:
    """Read the seek table stored at the end of a seekable archive."""
    footer = read_seek_table_footer(source)
    size = parse_seek_table_size(footer)
    end = source.seek(0, io.SEEK_END)
    if size > end:
        raise SeekTableError("seek table larger than file")
    source.seek(end - size, io.SEEK_SET)
    data = source.read(size)
    if len(data) != size:
        raise SeekTableError("unexpected EOF")
    return parse_seek_table(data)


def main(argv: list[str] | None = None) -> int:
    """Run the command; return the exit status."""
    try:
        options, files = parse_options(argv)
    except OptionsError as exc:
        print(f"{PROGRAM_NAME}: {exc}", file=sys.stderr)
        print(f"Try '{PROGRAM_NAME} --help' for more information.", file=sys.stderr)
        return 1

    if options.help:
        sys.stdout.write(help_text())
        return 0
    if options.version:
        print(f"{PROGRAM_NAME} version {VERSION}")
        return 0

    exit_code = 0
    for path in files or ["-"]:
        try:
            process_file(path, options)
        except (CommandError, OSError, ValueError, EOFError, zstandard.ZstdError) as exc:
            if not options.quiet:
                print(f"{PROGRAM_NAME}: {path}: {exc}", file=sys.stderr)
            exit_code = 1
    return exit_code


if __name__ == "__main__":
    sys.exit(main())