"""Decompression of LZ4 blocks and Zstandard frames."""

from __future__ import annotations

import io

import lz4.block
import zstandard

# The decompressed size of a block is not stored; LZ4 rarely reaches a ratio
# of 3, so four times the input leaves room to spare.
_LZ4_EXPANSION = 4

_zstd = zstandard.ZstdDecompressor()


def lz4_decompress(src: bytes) -> bytes:
    """Decompress a raw LZ4 block. Raises ValueError on bad or oversized data."""
    try:
        return lz4.block.decompress(src, uncompressed_size=len(src) * _LZ4_EXPANSION)
    except lz4.block.LZ4BlockError as exc:
        raise ValueError(f"lz4 decompression failed: {exc}") from exc


def zstd_decompress(src: bytes) -> bytes:
    """Decompress one or more concatenated Zstandard frames."""
    if not src:
        return b""
    try:
        with _zstd.stream_reader(io.BytesIO(src), read_across_frames=True) as reader:
            return reader.readall()
    except zstandard.ZstdError as exc:
        raise ValueError(f"zstd decompression failed: {exc}") from exc