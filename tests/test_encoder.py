import io
import struct

import pytest
import zstandard

from seekzstd.encoder import (
    SPEED_DEFAULT,
    CompressedFrameSize,
    Encoder,
    EncoderOptions,
    UncompressedFrameSize,
)
from seekzstd.seektable import (
    SEEKABLE_MAGIC_NUMBER,
    SEEK_TABLE_FOOTER_SIZE,
    SKIPPABLE_MAGIC_NUMBER,
    Format,
    parse_seek_table,
)


def _frames(buf: bytes, encoder: Encoder) -> list[bytes]:
    table = encoder.seek_table()
    return [
        buf[table.frame_start_comp(i):table.frame_end_comp(i)]
        for i in range(table.num_frames())
    ]


def _decode(frame: bytes) -> bytes:
    out = []
    data = frame
    dctx = zstandard.ZstdDecompressor()
    while data:
        dobj = dctx.decompressobj()
        out.append(dobj.decompress(data))
        data = dobj.unused_data
    return b"".join(out)


def test_new_encoder_starts_empty():
    buf = io.BytesIO()
    encoder = Encoder(buf, None)
    assert encoder.seek_table().num_frames() == 0
    assert encoder.written_compressed() == 0
    assert buf.getvalue() == b""


def test_write():
    buf = io.BytesIO()
    encoder = Encoder(buf, None)
    data = b"Hello, World!"
    assert encoder.write(data) == len(data)
    encoder.finish()
    assert len(buf.getvalue()) > 0
    assert encoder.seek_table().num_frames() == 1
    assert _decode(_frames(buf.getvalue(), encoder)[0]) == data


def test_multiple_frames():
    buf = io.BytesIO()
    opts = EncoderOptions(
        level=SPEED_DEFAULT,
        frame_policy=UncompressedFrameSize(100),
        checksum_flag=True,
    )
    encoder = Encoder(buf, opts)
    data = bytes(i % 256 for i in range(300))
    assert encoder.write(data) == len(data)
    encoder.finish()
    table = encoder.seek_table()
    assert table.num_frames() == 3
    assert [table.frame_size_decomp(i) for i in range(3)] == [100, 100, 100]
    decoded = b"".join(_decode(f) for f in _frames(buf.getvalue(), encoder))
    assert decoded == data


def test_compressed_frame_size():
    buf = io.BytesIO()
    opts = EncoderOptions(
        level=SPEED_DEFAULT,
        frame_policy=CompressedFrameSize(1000),
        checksum_flag=True,
    )
    encoder = Encoder(buf, opts)
    data = bytes(i % 10 for i in range(10000))
    assert encoder.write(data) == len(data)
    encoder.finish()
    table = encoder.seek_table()
    assert table.num_frames() > 0
    assert table.frame_end_decomp(table.num_frames() - 1) == len(data)
    decoded = b"".join(_decode(f) for f in _frames(buf.getvalue(), encoder))
    assert decoded == data


def test_write_with_prefix():
    buf = io.BytesIO()
    encoder = Encoder(buf, None)
    data = b"Hello, World!"
    assert encoder.write_with_prefix(data, b"PREFIX") == len(data)
    encoder.finish()
    assert len(buf.getvalue()) > 0
    assert encoder.seek_table().frame_size_decomp(0) == len(data)
    assert _decode(_frames(buf.getvalue(), encoder)[0]) == b"PREFIX" + data


def test_end_frame():
    buf = io.BytesIO()
    encoder = Encoder(buf, None)
    encoder.write(b"Frame 1")
    encoder.end_frame()
    encoder.write(b"Frame 2")
    encoder.finish()
    assert encoder.seek_table().num_frames() == 2


def test_end_frame_without_data_adds_nothing():
    buf = io.BytesIO()
    encoder = Encoder(buf, None)
    encoder.end_frame()
    encoder.end_frame()
    assert encoder.seek_table().num_frames() == 0
    assert buf.getvalue() == b""


@pytest.mark.parametrize("fmt", [Format.FOOT, Format.HEAD])
def test_finish_with_format(fmt):
    buf = io.BytesIO()
    encoder = Encoder(buf, None)
    encoder.write(b"Test data")
    encoder.finish_with_format(fmt)
    out = buf.getvalue()
    assert len(out) > 0
    table_len = len(out) - encoder.written_compressed()
    table_bytes = out[-table_len:]
    assert struct.unpack_from("<I", table_bytes, 0)[0] == SKIPPABLE_MAGIC_NUMBER
    parsed = parse_seek_table(table_bytes)
    assert parsed.num_frames() == 1
    assert parsed.frame_size_decomp(0) == len(b"Test data")


def test_foot_format_ends_with_seekable_magic():
    buf = io.BytesIO()
    encoder = Encoder(buf, None)
    encoder.write(b"abc")
    encoder.finish()
    out = buf.getvalue()
    footer = out[-SEEK_TABLE_FOOTER_SIZE:]
    assert struct.unpack_from("<I", footer, 5)[0] == SEEKABLE_MAGIC_NUMBER
    assert struct.unpack_from("<I", footer, 0)[0] == 1


def test_written_compressed_matches_frame_bytes():
    buf = io.BytesIO()
    encoder = Encoder(buf, EncoderOptions(frame_policy=UncompressedFrameSize(50)))
    encoder.write(b"x" * 120)
    encoder.finish()
    table = encoder.seek_table()
    assert encoder.written_compressed() == table.frame_end_comp(table.num_frames() - 1)


def test_frame_size_policy():
    assert CompressedFrameSize(1024).max_size() == 1024
    assert UncompressedFrameSize(2048).max_size() == 2048


def test_frame_size_policy_rejects_negative():
    with pytest.raises(ValueError):
        UncompressedFrameSize(-1)


def test_zero_size_policy_rejected_on_write():
    encoder = Encoder(io.BytesIO(), EncoderOptions(frame_policy=UncompressedFrameSize(0)))
    with pytest.raises(ValueError):
        encoder.write(b"data")