"""Decoding of encrypted ``.dat`` image files into plain images.

Older files are the image XOR-ed with a single byte. Version 4 files carry a
header followed by an AES-ECB encrypted head, a plain middle and an XOR-ed
tail.
"""

from __future__ import annotations

import os
import stat
import struct
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

_AES_BLOCK = 16
_V4_HEADER_LEN = 15


@dataclass(frozen=True)
class ImageFormat:
    """Leading bytes, extension and optional AES key of a file format."""

    header: bytes
    ext: str = ""
    aes_key: bytes = b""


JPG = ImageFormat(header=b"\xff\xd8\xff", ext="jpg")
PNG = ImageFormat(header=b"\x89\x50\x4e\x47", ext="png")
GIF = ImageFormat(header=b"\x47\x49\x46\x38", ext="gif")
TIFF = ImageFormat(header=b"\x49\x49\x2a\x00", ext="tiff")
BMP = ImageFormat(header=b"\x42\x4d", ext="bmp")
FORMATS = (JPG, PNG, GIF, TIFF, BMP)

V4_FORMAT1 = ImageFormat(header=b"\x07\x08\x56\x31", aes_key=b"cfcd208495d565ef")
V4_FORMAT2 = ImageFormat(header=b"\x07\x08\x56\x32", aes_key=b"0000000000000000")
V4_FORMATS = (V4_FORMAT1, V4_FORMAT2)

JPG_TAIL = b"\xff\xd9"

# XOR key applied to the tail of version 4 files; updated by scan_and_set_xor_key.
v4_xor_key = 0x37


def _xor(data: bytes, key: int) -> bytes:
    return data.translate(bytes(value ^ key for value in range(256)))


def dat_to_image(data: bytes) -> tuple[bytes, str]:
    """Decode a ``.dat`` file's bytes; return the image and its extension.

    Raises ValueError when the data is too short or of no known image type.
    """
    if len(data) < 4:
        raise ValueError(f"data length is too short: {len(data)}")

    if len(data) >= 6:
        for fmt in V4_FORMATS:
            if data[:4] == fmt.header:
                return dat_to_image_v4(data, fmt.aes_key)

    for fmt in FORMATS:
        key = data[0] ^ fmt.header[0]
        if all(byte ^ expected == key for byte, expected in zip(data, fmt.header)):
            return _xor(bytes(data), key), fmt.ext

    raise ValueError(f"unknown image type: {data[0]:x} {data[1]:x}")


def _xor_key_from_tail(data: bytes) -> Optional[int]:
    """Derive the XOR key assuming a JPEG tail; None if it is inconsistent."""
    if len(data) < 2:
        return None
    first, second = (byte ^ tail for byte, tail in zip(data[-2:], JPG_TAIL))
    return first if first == second else None


def _walk_files(path: str) -> Iterator[str]:
    info = os.lstat(path)
    if not stat.S_ISDIR(info.st_mode):
        yield path
        return
    for name in sorted(os.listdir(path)):
        yield from _walk_files(os.path.join(path, name))


def scan_and_set_xor_key(dir_path: str) -> int:
    """Find the version 4 XOR key from thumbnail files under ``dir_path``.

    The first ``*_t.dat`` file that yields a consistent key sets the module's
    key, which is returned; otherwise the current key is returned unchanged.
    Raises OSError when the directory cannot be walked.
    """
    global v4_xor_key
    try:
        for path in _walk_files(dir_path):
            if not os.path.basename(path).endswith("_t.dat"):
                continue
            try:
                with open(path, "rb") as handle:
                    data = handle.read()
            except OSError:
                continue
            if len(data) < _V4_HEADER_LEN or data[:4] not in (f.header for f in V4_FORMATS):
                continue
            (xor_len,) = struct.unpack_from("<I", data, 10)
            payload = data[_V4_HEADER_LEN:]
            if xor_len == 0 or xor_len > len(payload):
                continue
            key = _xor_key_from_tail(payload[len(payload) - xor_len:])
            if key is None:
                continue
            v4_xor_key = key
            break
    except OSError as exc:
        raise OSError(f"error scanning directory: {exc}") from exc
    return v4_xor_key


def _decrypt_aes_ecb(data: bytes, key: bytes) -> bytes:
    if not data:
        return b""
    decryptor = Cipher(algorithms.AES(key), modes.ECB()).decryptor()
    if len(data) % _AES_BLOCK:
        raise ValueError("data length is not a multiple of block size")
    plain = decryptor.update(data) + decryptor.finalize()
    padding = plain[-1]
    if 0 < padding <= _AES_BLOCK and plain[-padding:] == bytes([padding]) * padding:
        return plain[:-padding]
    return plain


def dat_to_image_v4(data: bytes, aes_key: bytes) -> tuple[bytes, str]:
    """Decode a version 4 ``.dat`` file with the given AES key.

    Raises ValueError when the data is malformed or decodes to no known image.
    """
    if len(data) < _V4_HEADER_LEN:
        raise ValueError(f"data length is too short for WeChat v4 format: {len(data)}")

    aes_len, xor_len = struct.unpack_from("<II", data, 6)
    payload = bytes(data[_V4_HEADER_LEN:])

    aes_end = min((aes_len // _AES_BLOCK * _AES_BLOCK + _AES_BLOCK) & 0xFFFFFFFF, len(payload))
    try:
        head = _decrypt_aes_ecb(payload[:aes_end], aes_key)
    except ValueError as exc:
        raise ValueError(f"AES decrypt error: {exc}") from exc

    parts = [head[:aes_len] if len(head) > aes_len else head]

    middle_end = (len(payload) - xor_len) & 0xFFFFFFFF
    if aes_end < middle_end:
        if middle_end > len(payload):
            raise ValueError("XOR length exceeds data length")
        parts.append(payload[aes_end:middle_end])

    if xor_len > 0 and middle_end < len(payload):
        parts.append(_xor(payload[middle_end:], v4_xor_key))

    result = b"".join(parts)
    for fmt in FORMATS:
        if result.startswith(fmt.header):
            return result, fmt.ext
    raise ValueError("unknown image type after decryption")