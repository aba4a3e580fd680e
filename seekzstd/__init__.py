"""Seekable zstd archives: frame-indexed compression, random-access decompression and a gzip-style tool."""

__version__ = "1.0.0"