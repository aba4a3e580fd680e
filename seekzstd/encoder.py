"""Seekable zstd compression: data is cut into independently decodable frames."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Union

import zstandard

from seekzstd.seektable import Format, SeekTable

MAX_FRAME_SIZE = 1 << 32
DEFAULT_FRAME_SIZE = 512 * 1024

SPEED_FASTEST = 1
SPEED_DEFAULT = 3
SPEED_BETTER_COMPRESSION = 7
SPEED_BEST_COMPRESSION = 11

_U32_MAX = 0xFFFFFFFF


def _check_size(size: int) -> None:
    if not 0 <= size <= _U32_MAX:
        raise ValueError(f"frame size out of range: {size}")


@dataclass(frozen=True)
class CompressedFrameSize:
    """Close a frame once its compressed bytes reach ``size``."""

    size: int

    def __post_init__(self) -> None:
        _check_size(self.size)

    def max_size(self) -> int:
        return self.size


@dataclass(frozen=True)
class UncompressedFrameSize:
    """Close a frame once its uncompressed bytes reach ``size``."""

    size: int

    def __post_init__(self) -> None:
        _check_size(self.size)

    def max_size(self) -> int:
        return self.size


FrameSizePolicy = Union[CompressedFrameSize, UncompressedFrameSize]


@dataclass
class EncoderOptions:
    """Settings for :class:`Encoder`."""

    level: int = SPEED_DEFAULT
    frame_policy: FrameSizePolicy = field(
        default_factory=lambda: CompressedFrameSize(DEFAULT_FRAME_SIZE)
    )
    checksum_flag: bool = True


class Encoder:
    """Writes a seekable zstd archive to a binary writer."""

    def __init__(self, writer: BinaryIO, options: EncoderOptions | None = None) -> None:
        self._options = options if options is not None else EncoderOptions()
        if not isinstance(
            self._options.frame_policy, (CompressedFrameSize, UncompressedFrameSize)
        ):
            raise TypeError(f"unsupported frame policy: {self._options.frame_policy!r}")
        self._writer = writer
        self._compressor = zstandard.ZstdCompressor(
            level=self._options.level,
            write_checksum=self._options.checksum_flag,
        )
        self._seek_table = SeekTable()
        self._frame_chunks: list[bytes] = []
        self._frame_csize = 0
        self._frame_dsize = 0
        self._written_total = 0

    def write(self, data: bytes) -> int:
        """Compress ``data`` into the current frame(s); return the bytes consumed."""
        return self.write_with_prefix(data, None)

    def write_with_prefix(self, data: bytes, prefix: bytes | None) -> int:
        """Like :meth:`write`, compressing ``prefix`` ahead of a frame's first chunk.

        The prefix is not counted in the frame's decompressed size.
        """
        data = bytes(data)
        pos = 0
        while pos < len(data):
            remaining = self._remaining_frame_size()
            if remaining == 0:
                self.end_frame()
                remaining = self._remaining_frame_size()
                if remaining == 0:
                    raise ValueError("frame size policy admits no data")
            chunk = data[pos:pos + remaining]
            if self._frame_dsize == 0 and prefix is not None:
                payload = bytes(prefix) + chunk
            else:
                payload = chunk
            compressed = self._compressor.compress(payload)
            self._frame_chunks.append(compressed)
            self._frame_csize += len(compressed)
            self._frame_dsize += len(chunk)
            pos += len(chunk)
            if self._is_frame_complete():
                self.end_frame()
        return len(data)

    def end_frame(self) -> None:
        """Flush the current frame, if it holds any data, and record it."""
        if self._frame_dsize == 0:
            return
        self._writer.write(b"".join(self._frame_chunks))
        self._seek_table.log_frame(
            self._frame_csize & _U32_MAX, self._frame_dsize & _U32_MAX
        )
        self._written_total += self._frame_csize
        self._frame_chunks = []
        self._frame_csize = 0
        self._frame_dsize = 0

    def finish(self) -> None:
        """Flush the last frame and append the seek table as a footer."""
        self.finish_with_format(Format.FOOT)

    def finish_with_format(self, format: Format) -> None:
        """Flush the last frame and append the seek table in ``format``."""
        self.end_frame()
        self._writer.write(self._seek_table.serializer(format).to_bytes())

    def seek_table(self) -> SeekTable:
        """The frames written so far."""
        return self._seek_table

    def written_compressed(self) -> int:
        """Compressed bytes written for completed frames, excluding the seek table."""
        return self._written_total

    def _remaining_frame_size(self) -> int:
        policy = self._options.frame_policy
        if isinstance(policy, CompressedFrameSize):
            remaining = policy.size - self._frame_csize
            if remaining < 0:
                return 0
            return min(remaining, MAX_FRAME_SIZE - self._frame_dsize)
        remaining = policy.size - self._frame_dsize
        if remaining < 0:
            return 0
        return min(remaining, MAX_FRAME_SIZE)

    def _is_frame_complete(self) -> bool:
        policy = self._options.frame_policy
        if isinstance(policy, CompressedFrameSize):
            return self._frame_csize >= policy.size or self._frame_dsize >= MAX_FRAME_SIZE
        return self._frame_dsize >= min(policy.size, MAX_FRAME_SIZE)