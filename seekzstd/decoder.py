"""Seekable zstd decompression driven by the archive's seek table."""

from __future__ import annotations

import bisect
import io
from dataclasses import dataclass
from typing import BinaryIO

import zstandard

from seekzstd.seektable import (
    SeekTable,
    SeekTableError,
    parse_seek_table,
    parse_seek_table_size,
    read_seek_table_footer,
)

_SKIP_CHUNK = 4096


@dataclass
class DecoderOptions:
    """Settings for :class:`Decoder`."""

    seek_table: SeekTable | None = None
    lower_frame: int = 0
    upper_frame: int = 0
    max_window_log: int = 27


def _load_seek_table(source: BinaryIO) -> SeekTable | None:
    try:
        footer = read_seek_table_footer(source)
        size = parse_seek_table_size(footer)
    except (SeekTableError, OSError):
        return None
    current = source.tell()
    table = None
    try:
        end = source.seek(0, io.SEEK_END)
        if size <= end:
            source.seek(end - size, io.SEEK_SET)
            data = source.read(size)
            if len(data) == size:
                table = parse_seek_table(data)
    except (SeekTableError, OSError):
        table = None
    source.seek(current, io.SEEK_SET)
    return table


class Decoder:
    """Reads decompressed data from a seekable archive, frame by frame."""

    def __init__(self, source: BinaryIO, options: DecoderOptions | None = None) -> None:
        options = options if options is not None else DecoderOptions()
        table = options.seek_table if options.seek_table is not None else _load_seek_table(source)
        if table is None:
            raise SeekTableError("no seek table found")

        if options.max_window_log >= 10:
            self._dctx = zstandard.ZstdDecompressor(
                max_window_size=1 << options.max_window_log
            )
        else:
            self._dctx = zstandard.ZstdDecompressor()

        self._source = source
        self._seek_table = table
        self._lower_frame = options.lower_frame
        self._upper_frame = options.upper_frame
        self._current_frame = options.lower_frame
        self._buffer = bytearray()
        self._total_read = 0
        self._eof = False

        if self._upper_frame == 0 or self._upper_frame >= table.num_frames():
            self._upper_frame = table.num_frames() - 1

        if self._current_frame > 0:
            source.seek(table.frame_start_comp(self._current_frame), io.SEEK_SET)
        else:
            source.seek(0, io.SEEK_SET)

    def read(self, size: int = -1) -> bytes:
        """Return up to ``size`` decompressed bytes (all remaining if negative)."""
        return self.read_with_prefix(size, None)

    def read_with_prefix(self, size: int = -1, prefix: bytes | None = None) -> bytes:
        """Like :meth:`read`; ``prefix`` is tried ahead of the lower frame's data."""
        if self._eof:
            return b""
        want = None if size is None or size < 0 else size
        out = bytearray()
        while (want is None or len(out) < want) and not self._eof:
            if self._buffer:
                n = len(self._buffer) if want is None else min(want - len(out), len(self._buffer))
                out += self._buffer[:n]
                del self._buffer[:n]
                self._total_read += n
                continue
            if not self._decompress_next_frame(prefix):
                self._eof = True
        return bytes(out)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move to a decompressed position; return the position reached."""
        table = self._seek_table
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self._total_read + offset
        elif whence == io.SEEK_END:
            target = table.frame_end_decomp(table.num_frames() - 1) + offset
        else:
            raise ValueError("invalid whence")
        if target < 0:
            raise ValueError(f"negative seek position: {target}")

        frame = self._find_frame_at_offset(target)
        frame = max(frame, self._lower_frame)
        frame = min(frame, self._upper_frame)

        start_decomp = table.frame_start_decomp(frame)
        start_comp = table.frame_start_comp(frame)
        self._source.seek(start_comp, io.SEEK_SET)

        self._current_frame = frame
        self._buffer.clear()
        self._total_read = start_decomp
        self._eof = False

        skip = target - start_decomp
        while skip > 0:
            chunk = self.read(min(skip, _SKIP_CHUNK))
            if not chunk:
                raise EOFError("seek past end of data")
            skip -= len(chunk)
        return self._total_read

    def seek_table(self) -> SeekTable:
        """The archive's seek table."""
        return self._seek_table

    def set_lower_frame(self, frame: int) -> None:
        """Set the first frame that may be decoded."""
        self._lower_frame = frame
        if self._current_frame < frame:
            self._current_frame = frame

    def set_upper_frame(self, frame: int) -> None:
        """Set the last frame that may be decoded, clamped to the table."""
        self._upper_frame = min(frame, self._seek_table.num_frames() - 1)

    def _decompress_next_frame(self, prefix: bytes | None) -> bool:
        if self._current_frame > self._upper_frame:
            return False
        size = self._seek_table.frame_size_comp(self._current_frame)
        compressed = self._source.read(size)
        if len(compressed) != size:
            raise EOFError("unexpected EOF")
        if prefix is not None and self._current_frame == self._lower_frame:
            try:
                data = self._decode_all(bytes(prefix) + compressed)
            except zstandard.ZstdError:
                data = self._decode_all(compressed)
        else:
            data = self._decode_all(compressed)
        self._buffer += data
        self._current_frame += 1
        return True

    def _decode_all(self, data: bytes) -> bytes:
        out = []
        while data:
            dobj = self._dctx.decompressobj()
            out.append(dobj.decompress(data))
            if not dobj.eof:
                raise zstandard.ZstdError("truncated zstd frame")
            data = dobj.unused_data
        return b"".join(out)

    def _find_frame_at_offset(self, offset: int) -> int:
        if offset == 0:
            return 0
        table = self._seek_table
        count = table.num_frames()
        if count == 0:
            return -1
        ends = [table.frame_end_decomp(i) for i in range(count)]
        if offset >= ends[-1]:
            return count - 1
        return bisect.bisect_right(ends, offset)