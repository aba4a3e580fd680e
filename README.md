# seekzstd

Seekable zstd compression for Python, with a gzip-style command-line tool.

A seekable archive is a series of zstd frames followed by a skippable frame
that holds a seek table. The seek table records the compressed and
decompressed size of each frame, so a reader can jump straight to any
offset, or decode only a range of frames, without reading the whole
archive.

## Installation

```
pip install seekzstd
```

## Command line

The `gzstd` command works much like `gzip`. Options come before the file
names; parsing stops at the first argument that is not an option.

```
gzstd file.txt                     # creates file.txt.zst, keeps file.txt
gzstd -nk file.txt                 # creates file.txt.zst, removes file.txt
gzstd -d file.txt.zst              # restores file.txt
gzstd -d -do out.txt file.txt.zst  # decompress into out.txt
gzstd -c file.txt > out.zst        # compress to standard output
gzstd -l file.txt.zst              # sizes and ratio
gzstd -l -v file.txt.zst           # plus the sizes of the first ten frames
gzstd -t file.txt.zst              # decompress fully to test integrity
gzstd -r directory                 # compress every file under a directory
```

When no file is given, standard input is read (and written to standard
output). Listing does not work on standard input.

Other options:

- `-1` … `-9`, `--compression=LEVEL`: compression level, 6 by default.
  Level 1 is fastest, 2–3 are the zstd default, 4–6 compress better and
  7–9 compress best. `-c` followed by a single digit, and `-c1` … `-c9`,
  also set the level rather than selecting standard output.
- `-f`, `--force`: overwrite existing output files.
- `-S SUF`, `--suffix=SUF`: use another suffix than `.zst`. Decompression
  refuses files without the suffix; `-r` compresses only files without it
  and, with `-d`, decompresses only files with it.
- `--frame-size=SIZE`: target compressed size of each frame, e.g. `512K`,
  `1.5M`, `1GB` (default `512K`).
- `--start-frame=N`, `--end-frame=N`: decompress only frames N through M
  (an end of 0 means the last frame).
- `-q`, `--quiet`: don't report failures on standard error.
- `-v`, `--verbose`: print the ratio after compressing, the output name
  after decompressing, `OK` after testing.
- `-h`, `--help`, `--version`.

The modification time of the input is copied to the output file. `-n`,
`--no-name`, `-N` and `--name` are accepted; only `-n` together with
`--name=false` turns the copying off.

The exit status is 1 if any file failed, 0 otherwise.

## Library

Writing an archive:

```python
import io
from seekzstd.encoder import Encoder, EncoderOptions, UncompressedFrameSize

buffer = io.BytesIO()
encoder = Encoder(buffer, EncoderOptions(frame_policy=UncompressedFrameSize(1000)))
encoder.write(b"Hello, ")
encoder.end_frame()
encoder.write(b"World!")
encoder.finish()
```

`EncoderOptions` holds the zstd `level`, the `frame_policy`
(`CompressedFrameSize` or `UncompressedFrameSize`, 512 KiB compressed by
default) and `checksum_flag`. `finish_with_format(Format.HEAD)` writes the
seek table with its integrity field in front of the frame entries instead
of behind them. `written_compressed()` gives the compressed bytes written
for the frames, without the seek table.

Reading it back, with random access:

```python
import io
from seekzstd.decoder import Decoder

decoder = Decoder(io.BytesIO(buffer.getvalue()), None)
decoder.read(-1)                 # b"Hello, World!"
decoder.seek(7, io.SEEK_SET)
decoder.read(6)                  # b"World!"
```

Only a range of frames:

```python
from seekzstd.decoder import DecoderOptions

decoder = Decoder(io.BytesIO(buffer.getvalue()), DecoderOptions(lower_frame=1, upper_frame=1))
decoder.read(-1)                 # b"World!"
```

The range can also be changed later with `set_lower_frame` and
`set_upper_frame`. `DecoderOptions.seek_table` supplies a table instead of
reading it from the end of the source.

Working with the seek table directly:

```python
from seekzstd.seektable import SeekTable, Format, parse_seek_table

table = SeekTable()
table.log_frame(1000, 2000)
table.log_frame(1500, 3000)
raw = table.serializer(Format.FOOT).to_bytes()
parsed = parse_seek_table(raw)
parsed.num_frames()              # 2
parsed.frame_start_decomp(1)     # 2000
```

Malformed seek tables, out-of-range frame indexes and sources without a
seek table raise `seekzstd.seektable.SeekTableError`.