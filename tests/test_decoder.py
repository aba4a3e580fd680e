import io

import pytest

from seekzstd.decoder import Decoder, DecoderOptions
from seekzstd.encoder import (
    SPEED_DEFAULT,
    Encoder,
    EncoderOptions,
    UncompressedFrameSize,
)
from seekzstd.seektable import SeekTableError


def create_test_archive(frames: list[bytes]) -> bytes:
    buf = io.BytesIO()
    encoder = Encoder(
        buf,
        EncoderOptions(
            level=SPEED_DEFAULT,
            frame_policy=UncompressedFrameSize(1000),
            checksum_flag=False,
        ),
    )
    for frame in frames:
        encoder.write(frame)
        encoder.end_frame()
    encoder.finish()
    return buf.getvalue()


ABC = create_test_archive([b"A" * 10, b"B" * 10, b"C" * 10])


def test_new_decoder():
    archive = create_test_archive([b"Frame 1", b"Frame 2", b"Frame 3"])
    decoder = Decoder(io.BytesIO(archive), None)
    assert decoder.seek_table().num_frames() == 3


def test_read():
    archive = create_test_archive([b"Hello, ", b"World!"])
    decoder = Decoder(io.BytesIO(archive), None)
    assert decoder.read() == b"Hello, World!"


def test_read_in_small_chunks():
    archive = create_test_archive([b"Hello, ", b"World!"])
    decoder = Decoder(io.BytesIO(archive), None)
    chunks = []
    while chunk := decoder.read(4):
        assert len(chunk) <= 4
        chunks.append(chunk)
    assert b"".join(chunks) == b"Hello, World!"
    assert decoder.read(4) == b""


@pytest.mark.parametrize(
    "offset, whence, expected, read_len, setup_pos, expected_pos",
    [
        (0, io.SEEK_SET, b"AAAAAAAAAA", 10, 0, 0),
        (5, io.SEEK_SET, b"AAAAA", 5, 0, 5),
        (10, io.SEEK_SET, b"BBBBBBBBBB", 10, 0, 10),
        (20, io.SEEK_SET, b"CCCCCCCCCC", 10, 0, 20),
        (5, io.SEEK_CUR, b"BBBBB", 5, 10, 15),
        (-10, io.SEEK_END, b"CCCCCCCCCC", 10, 0, 20),
    ],
)
def test_seek(offset, whence, expected, read_len, setup_pos, expected_pos):
    decoder = Decoder(io.BytesIO(ABC), None)
    if whence == io.SEEK_CUR and setup_pos > 0:
        decoder.seek(setup_pos, io.SEEK_SET)
    pos = decoder.seek(offset, whence)
    assert pos == expected_pos
    assert decoder.read(read_len) == expected


def test_seek_invalid_whence():
    decoder = Decoder(io.BytesIO(ABC), None)
    with pytest.raises(ValueError):
        decoder.seek(0, 7)


def test_seek_past_end_raises():
    decoder = Decoder(io.BytesIO(ABC), None)
    with pytest.raises(EOFError):
        decoder.seek(40, io.SEEK_SET)


def test_seek_resets_eof():
    decoder = Decoder(io.BytesIO(ABC), None)
    assert decoder.read() == b"A" * 10 + b"B" * 10 + b"C" * 10
    assert decoder.read() == b""
    assert decoder.seek(25) == 25
    assert decoder.read() == b"C" * 5


def test_frame_boundaries():
    archive = create_test_archive([b"Frame 1", b"Frame 2", b"Frame 3"])
    opts = DecoderOptions(lower_frame=1, upper_frame=2, max_window_log=27)
    decoder = Decoder(io.BytesIO(archive), opts)
    assert decoder.read() == b"Frame 2Frame 3"


def test_read_with_prefix():
    archive = create_test_archive([b"Data"])
    decoder = Decoder(io.BytesIO(archive), None)
    assert decoder.read_with_prefix(100, b"PREFIX") == b"Data"


def test_set_boundaries():
    archive = create_test_archive([b"Frame 0", b"Frame 1", b"Frame 2", b"Frame 3"])
    decoder = Decoder(io.BytesIO(archive), None)
    decoder.set_lower_frame(1)
    decoder.set_upper_frame(2)
    assert decoder.seek(0, io.SEEK_SET) == 7
    result = b""
    while chunk := decoder.read(7):
        result += chunk
    assert result == b"Frame 1Frame 2"


def test_set_upper_frame_clamps_to_table():
    archive = create_test_archive([b"x", b"y"])
    decoder = Decoder(io.BytesIO(archive), None)
    decoder.set_upper_frame(99)
    assert decoder.read() == b"xy"


def test_no_seek_table():
    with pytest.raises(SeekTableError):
        Decoder(io.BytesIO(b"Not a valid seekable archive"), None)


def test_explicit_seek_table_option():
    buf = io.BytesIO()
    encoder = Encoder(buf, EncoderOptions(frame_policy=UncompressedFrameSize(4)))
    encoder.write(b"abcdefgh")
    encoder.end_frame()
    table = encoder.seek_table()
    decoder = Decoder(io.BytesIO(buf.getvalue()), DecoderOptions(seek_table=table))
    assert decoder.seek_table().num_frames() == 2
    assert decoder.read() == b"abcdefgh"


def test_truncated_archive_raises():
    archive = create_test_archive([b"Frame 1"])
    decoder = Decoder(io.BytesIO(archive), None)
    table = decoder.seek_table()
    truncated = archive[: table.frame_end_comp(0) - 2]
    broken = Decoder(io.BytesIO(truncated), DecoderOptions(seek_table=table))
    with pytest.raises(EOFError):
        broken.read()