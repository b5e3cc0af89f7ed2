import io
import struct
import zlib

import pytest
from PIL import Image

from gradebot.errors import DecodeError
from gradebot.models import ImageAsset
from gradebot.services.preprocess import fit_within, preprocess

from conftest import make_asset, make_image_bytes


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


def test_fit_within_keeps_small_images():
    assert fit_within(800, 600, 1920, 1080) == (800, 600)


def test_fit_within_uses_smaller_ratio():
    # width ratio 0.5, height ratio 0.54 -> 0.5 wins
    assert fit_within(3840, 2000, 1920, 1080) == (1920, 1000)
    # height ratio wins for tall images
    assert fit_within(1000, 2160, 1920, 1080) == (500, 1080)


def test_large_image_is_scaled_down():
    out = preprocess(make_asset(size=(4000, 3000)))
    assert (out.width, out.height) == (1440, 1080)
    assert _open(out.data).size == (1440, 1080)


def test_small_image_keeps_size():
    out = preprocess(make_asset(size=(300, 200)))
    assert (out.width, out.height) == (300, 200)


def test_mime_type_and_name_preserved():
    asset = ImageAsset.from_bytes(make_image_bytes(fmt="JPEG"), "image/jpeg", "hw.jpg")
    out = preprocess(asset)
    assert out.mime_type == "image/jpeg"
    assert out.name == "hw.jpg"
    assert _open(out.data).format == "JPEG"
    assert out.size == len(out.data)


def test_unknown_mime_is_reencoded_as_png():
    asset = ImageAsset.from_bytes(make_image_bytes(), "image/x-whatever", "odd")
    out = preprocess(asset)
    assert out.mime_type == "image/png"
    assert _open(out.data).format == "PNG"


def test_brightness_and_contrast_applied():
    # mid-grey gets brighter: contrast keeps the mean, brightness lifts it
    asset = ImageAsset.from_bytes(make_image_bytes(color=(100, 100, 100)), "image/png", "grey.png")
    out = preprocess(asset)
    r, g, b = _open(out.data).convert("RGB").getpixel((0, 0))
    assert r == 110 and g == 110 and b == 110


def test_input_not_mutated(asset):
    before = asset.data
    preprocess(asset)
    assert asset.data == before


def test_undecodable_bytes_raise_decode_error():
    asset = ImageAsset.from_bytes(b"definitely not an image", "image/png", "junk.png")
    with pytest.raises(DecodeError):
        preprocess(asset)


def _png_header(width: int, height: int) -> bytes:
    """A PNG that declares its size but carries no pixel data worth decoding."""
    def chunk(kind: bytes, data: bytes) -> bytes:
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))

    ihdr = struct.pack(">IIBBBBB", width, height, 1, 0, 0, 0, 0)  # 1-bit greyscale
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", ihdr)
        + chunk(b"IDAT", zlib.compress(b""))
        + chunk(b"IEND", b"")
    )


def test_decompression_bomb_raises_decode_error():
    asset = ImageAsset.from_bytes(_png_header(20000, 10000), "image/png", "bomb.png")
    assert asset.size < 1024
    with pytest.raises(DecodeError):
        preprocess(asset)


def test_pixel_cap_checked_before_decoding():
    # 80M pixels: under Pillow's own bomb limit, over ours
    asset = ImageAsset.from_bytes(_png_header(10000, 8000), "image/png", "huge.png")
    with pytest.raises(DecodeError, match="pixel limit"):
        preprocess(asset)


def test_pixel_cap_is_configurable():
    with pytest.raises(DecodeError, match="pixel limit"):
        preprocess(make_asset(size=(300, 200)), max_pixels=300 * 200 - 1)
    out = preprocess(make_asset(size=(300, 200)), max_pixels=300 * 200)
    assert (out.width, out.height) == (300, 200)
