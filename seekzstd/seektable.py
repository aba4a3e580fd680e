"""Seek table bookkeeping and its on-disk encoding for seekable zstd archives."""

from __future__ import annotations

import enum
import io
import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterable

SKIPPABLE_MAGIC_NUMBER = 0x184D2A5F
SEEKABLE_MAGIC_NUMBER = 0x8F92EAB1
SKIPPABLE_HEADER_SIZE = 8
SEEK_TABLE_FOOTER_SIZE = 9
SIZE_PER_FRAME = 17
SEEKABLE_MAX_FRAMES = 0x8000000

ERR_FRAME_INDEX_TOO_LARGE = "frame index too large"
ERR_CORRUPTED = "corrupted seek table"
ERR_INVALID_MAGIC = "invalid magic number"
ERR_INVALID_INTEGRITY_SIZE = "invalid integrity size"
ERR_UNEXPECTED_EOF = "unexpected EOF"

_U32_MAX = 0xFFFFFFFF
_U32 = struct.Struct("<I")


class SeekTableError(ValueError):
    """Raised when a seek table is malformed or a frame index is out of range."""


class Format(enum.IntEnum):
    """Where the integrity field sits in a serialized seek table."""

    HEAD = 0
    FOOT = 1


@dataclass(frozen=True)
class Entry:
    """Cumulative offsets at a frame boundary."""

    compressed_offset: int
    decompressed_offset: int


@dataclass(frozen=True)
class Frame:
    """Sizes of a single frame."""

    compressed_size: int
    decompressed_size: int


class SeekTable:
    """Frame offsets of a seekable archive."""

    def __init__(self) -> None:
        self._entries: list[Entry] = [Entry(0, 0)]

    @property
    def entries(self) -> tuple[Entry, ...]:
        """Frame boundaries, starting with the zero entry."""
        return tuple(self._entries)

    def log_frame(self, compressed_size: int, decompressed_size: int) -> None:
        """Append a frame of the given sizes."""
        for value in (compressed_size, decompressed_size):
            if not 0 <= value <= _U32_MAX:
                raise ValueError(f"frame size out of range: {value}")
        if self.num_frames() >= SEEKABLE_MAX_FRAMES:
            raise SeekTableError(ERR_FRAME_INDEX_TOO_LARGE)
        last = self._entries[-1]
        self._entries.append(
            Entry(
                last.compressed_offset + compressed_size,
                last.decompressed_offset + decompressed_size,
            )
        )

    def num_frames(self) -> int:
        """Number of frames logged."""
        return len(self._entries) - 1

    def _check(self, index: int) -> None:
        if index < 0 or index >= self.num_frames():
            raise SeekTableError(ERR_FRAME_INDEX_TOO_LARGE)

    def frame_start_comp(self, index: int) -> int:
        self._check(index)
        return self._entries[index].compressed_offset

    def frame_start_decomp(self, index: int) -> int:
        self._check(index)
        return self._entries[index].decompressed_offset

    def frame_end_comp(self, index: int) -> int:
        self._check(index)
        return self._entries[index + 1].compressed_offset

    def frame_end_decomp(self, index: int) -> int:
        self._check(index)
        return self._entries[index + 1].decompressed_offset

    def frame_size_comp(self, index: int) -> int:
        self._check(index)
        return (
            self._entries[index + 1].compressed_offset
            - self._entries[index].compressed_offset
        )

    def frame_size_decomp(self, index: int) -> int:
        self._check(index)
        return (
            self._entries[index + 1].decompressed_offset
            - self._entries[index].decompressed_offset
        )

    def max_frame_size_decomp(self) -> int:
        """Largest decompressed frame size, or 0 when there are no frames."""
        return max(
            (b.decompressed_offset - a.decompressed_offset
             for a, b in zip(self._entries, self._entries[1:])),
            default=0,
        )

    def frames(self) -> list[Frame]:
        """Per-frame sizes, in order."""
        return [
            Frame(
                (b.compressed_offset - a.compressed_offset) & _U32_MAX,
                (b.decompressed_offset - a.decompressed_offset) & _U32_MAX,
            )
            for a, b in zip(self._entries, self._entries[1:])
        ]

    def serializer(self, format: Format) -> "Serializer":
        """Return a serializer producing this table in the given format."""
        return Serializer(self.frames(), format)


class Serializer:
    """Produces the encoded seek table, readable in chunks."""

    def __init__(self, frames: Iterable[Frame], format: Format) -> None:
        self._frames = list(frames)
        self._format = Format(format)
        self._data: bytes | None = None
        self._pos = 0

    def encoded_len(self) -> int:
        """Total number of bytes the encoded table occupies."""
        return (
            SKIPPABLE_HEADER_SIZE
            + SEEK_TABLE_FOOTER_SIZE
            + len(self._frames) * SIZE_PER_FRAME
        )

    def _integrity(self) -> bytes:
        return (
            _U32.pack(len(self._frames) & _U32_MAX)
            + b"\x00"
            + _U32.pack(SEEKABLE_MAGIC_NUMBER)
        )

    def to_bytes(self) -> bytes:
        """The complete encoded table."""
        if self._data is None:
            frame_bytes = SEEK_TABLE_FOOTER_SIZE + len(self._frames) * SIZE_PER_FRAME
            parts = [_U32.pack(SKIPPABLE_MAGIC_NUMBER), _U32.pack(frame_bytes & _U32_MAX)]
            if self._format is Format.HEAD:
                parts.append(self._integrity())
            pad = bytes(SIZE_PER_FRAME - 8)
            for frame in self._frames:
                parts.append(_U32.pack(frame.compressed_size))
                parts.append(_U32.pack(frame.decompressed_size))
                parts.append(pad)
            if self._format is Format.FOOT:
                parts.append(self._integrity())
            self._data = b"".join(parts)
        return self._data

    def read(self, size: int = -1) -> bytes:
        """Return up to ``size`` further bytes; empty once everything is read."""
        data = self.to_bytes()
        end = len(data) if size is None or size < 0 else min(len(data), self._pos + size)
        chunk = data[self._pos:end]
        self._pos = end
        return chunk


def parse_seek_table(data: bytes) -> SeekTable:
    """Parse an encoded seek table."""
    data = bytes(data)
    if len(data) < SEEK_TABLE_FOOTER_SIZE:
        raise SeekTableError(ERR_CORRUPTED)
    footer = data[-SEEK_TABLE_FOOTER_SIZE:]
    if _U32.unpack_from(footer, 5)[0] != SEEKABLE_MAGIC_NUMBER:
        raise SeekTableError(ERR_INVALID_MAGIC)
    num_frames = _U32.unpack_from(footer, 0)[0]
    if num_frames > SEEKABLE_MAX_FRAMES:
        raise SeekTableError(ERR_FRAME_INDEX_TOO_LARGE)
    expected = SKIPPABLE_HEADER_SIZE + SEEK_TABLE_FOOTER_SIZE + num_frames * SIZE_PER_FRAME
    if len(data) != expected:
        raise SeekTableError(ERR_CORRUPTED)
    if _U32.unpack_from(data, 0)[0] != SKIPPABLE_MAGIC_NUMBER:
        raise SeekTableError(ERR_INVALID_MAGIC)

    data_start = SKIPPABLE_HEADER_SIZE
    if len(data) > SKIPPABLE_HEADER_SIZE + SEEK_TABLE_FOOTER_SIZE:
        if _U32.unpack_from(data, SKIPPABLE_HEADER_SIZE + 5)[0] == SEEKABLE_MAGIC_NUMBER:
            data_start += SEEK_TABLE_FOOTER_SIZE

    table = SeekTable()
    for i in range(num_frames):
        offset = data_start + i * SIZE_PER_FRAME
        comp, decomp = struct.unpack_from("<II", data, offset)
        table.log_frame(comp, decomp)
    return table


def read_seek_table_footer(source: BinaryIO) -> bytes:
    """Read the trailing integrity field from a seekable binary stream."""
    end = source.seek(0, io.SEEK_END)
    if end < SEEK_TABLE_FOOTER_SIZE:
        raise SeekTableError(ERR_UNEXPECTED_EOF)
    source.seek(end - SEEK_TABLE_FOOTER_SIZE, io.SEEK_SET)
    footer = source.read(SEEK_TABLE_FOOTER_SIZE)
    if len(footer) != SEEK_TABLE_FOOTER_SIZE:
        raise SeekTableError(ERR_UNEXPECTED_EOF)
    return footer


def parse_seek_table_size(integrity: bytes) -> int:
    """Return the full encoded seek table size described by an integrity field."""
    if len(integrity) != SEEK_TABLE_FOOTER_SIZE:
        raise SeekTableError(ERR_INVALID_INTEGRITY_SIZE)
    if _U32.unpack_from(integrity, 5)[0] != SEEKABLE_MAGIC_NUMBER:
        raise SeekTableError(ERR_INVALID_MAGIC)
    num_frames = _U32.unpack_from(integrity, 0)[0]
    if num_frames > SEEKABLE_MAX_FRAMES:
        raise SeekTableError(ERR_FRAME_INDEX_TOO_LARGE)
    return SKIPPABLE_HEADER_SIZE + SEEK_TABLE_FOOTER_SIZE + num_frames * SIZE_PER_FRAME