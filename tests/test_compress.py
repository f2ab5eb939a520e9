import lz4.block
import pytest
import zstandard

from chatlog import compress


def test_lz4_round_trip():
    data = bytes(range(256)) * 2
    block = lz4.block.compress(data, store_size=False)
    assert compress.lz4_decompress(block) == data


def test_lz4_rejects_garbage():
    with pytest.raises(ValueError):
        compress.lz4_decompress(b"\xff\xff\xff\xff\xff\xff")


def test_lz4_ratio_above_limit_fails():
    data = b"a" * 10000
    block = lz4.block.compress(data, store_size=False)
    with pytest.raises(ValueError):
        compress.lz4_decompress(block)


def test_zstd_round_trip():
    data = b"chat log message " * 100
    frame = zstandard.ZstdCompressor().compress(data)
    assert compress.zstd_decompress(frame) == data


def test_zstd_concatenated_frames():
    compressor = zstandard.ZstdCompressor()
    first, second = b"first part", b"second part"
    joined = compressor.compress(first) + compressor.compress(second)
    assert compress.zstd_decompress(joined) == first + second


def test_zstd_empty_input():
    assert compress.zstd_decompress(b"") == b""


def test_zstd_rejects_garbage():
    with pytest.raises(ValueError):
        compress.zstd_decompress(b"not a zstd frame at all")