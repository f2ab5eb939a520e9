import struct

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from chatlog import dat2img

JPEG_IMAGE = b"\xff\xd8\xff\xe0" + bytes(range(60)) + b"\xff\xd9"
PNG_IMAGE = b"\x89PNG\r\n\x1a\n" + bytes(range(100, 140))


def _xor(data, key):
    return bytes(byte ^ key for byte in data)


def _encrypt(plain, key):
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plain) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def _build_v4(image, aes_len, xor_len, fmt=dat2img.V4_FORMAT1):
    encrypted = _encrypt(image[:aes_len], fmt.aes_key)
    middle = image[aes_len:len(image) - xor_len]
    tail = _xor(image[len(image) - xor_len:], dat2img.v4_xor_key)
    header = fmt.header + b"\x00\x00" + struct.pack("<II", aes_len, xor_len) + b"\x01"
    return header + encrypted + middle + tail


@pytest.mark.parametrize("key", [0x00, 0x5A, 0xFF])
def test_xor_jpeg_round_trip(key):
    assert dat2img.dat_to_image(_xor(JPEG_IMAGE, key)) == (JPEG_IMAGE, "jpg")


def test_xor_png_detected():
    assert dat2img.dat_to_image(_xor(PNG_IMAGE, 0x21)) == (PNG_IMAGE, "png")


def test_too_short():
    with pytest.raises(ValueError):
        dat2img.dat_to_image(b"\xff\xd8")


def test_unknown_type():
    with pytest.raises(ValueError):
        dat2img.dat_to_image(b"\x01\x02\x03\x04\x05\x06")


def test_v4_round_trip():
    data = _build_v4(JPEG_IMAGE, aes_len=20, xor_len=10)
    assert dat2img.dat_to_image_v4(data, dat2img.V4_FORMAT1.aes_key) == (JPEG_IMAGE, "jpg")


def test_v4_dispatched_from_dat_to_image():
    data = _build_v4(PNG_IMAGE, aes_len=16, xor_len=8, fmt=dat2img.V4_FORMAT2)
    assert dat2img.dat_to_image(data) == (PNG_IMAGE, "png")


def test_v4_too_short():
    with pytest.raises(ValueError):
        dat2img.dat_to_image(dat2img.V4_FORMAT1.header + b"\x00\x00\x00")


def test_v4_bad_key_size():
    data = _build_v4(JPEG_IMAGE, aes_len=20, xor_len=10)
    with pytest.raises(ValueError):
        dat2img.dat_to_image_v4(data, b"short")


def test_v4_wrong_key_gives_unknown_type():
    data = _build_v4(JPEG_IMAGE, aes_len=20, xor_len=10)
    with pytest.raises(ValueError):
        dat2img.dat_to_image_v4(data, dat2img.V4_FORMAT2.aes_key)


def _thumbnail(last_two):
    payload = b"\x00" * 16 + b"\x10\x20" + last_two
    header = dat2img.V4_FORMAT1.header + b"\x00\x00" + struct.pack("<II", 0, 4) + b"\x01"
    return header + payload


def test_scan_sets_key(tmp_path, monkeypatch):
    monkeypatch.setattr(dat2img, "v4_xor_key", dat2img.v4_xor_key)
    sub = tmp_path / "thumbs"
    sub.mkdir()
    (sub / "img_t.dat").write_bytes(_thumbnail(_xor(dat2img.JPG_TAIL, 0x21)))
    assert dat2img.scan_and_set_xor_key(str(tmp_path)) == 0x21
    assert dat2img.v4_xor_key == 0x21


def test_scan_skips_inconsistent_and_other_files(tmp_path, monkeypatch):
    monkeypatch.setattr(dat2img, "v4_xor_key", 0x37)
    (tmp_path / "bad_t.dat").write_bytes(_thumbnail(b"\x01\x02"))
    (tmp_path / "full.dat").write_bytes(_thumbnail(_xor(dat2img.JPG_TAIL, 0x44)))
    assert dat2img.scan_and_set_xor_key(str(tmp_path)) == 0x37
    assert dat2img.v4_xor_key == 0x37


def test_scan_missing_directory(tmp_path):
    with pytest.raises(OSError):
        dat2img.scan_and_set_xor_key(str(tmp_path / "missing"))