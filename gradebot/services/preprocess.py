"""
Image normalisation before OCR: bound the size, boost contrast and brightness.
"""

import io

from PIL import Image, ImageEnhance, UnidentifiedImageError

from ..config import MAX_IMAGE_HEIGHT, MAX_IMAGE_PIXELS, MAX_IMAGE_WIDTH
from ..errors import DecodeError
from ..models import ImageAsset, PreprocessedImage

CONTRAST_BOOST = 1.2
BRIGHTNESS_BOOST = 1.1
ENCODE_QUALITY = 90

# MIME type -> Pillow encoder
_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/pjpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
    "image/bmp": "BMP",
    "image/gif": "GIF",
    "image/tiff": "TIFF",
}
_LOSSY = {"JPEG", "WEBP"}


def fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Scale (width, height) down to fit the box, keeping the aspect ratio. Never upscales."""
    if width <= max_width and height <= max_height:
        return width, height
    ratio = min(max_width / width, max_height / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def _decode(asset: ImageAsset, max_pixels: int) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(asset.data))
        if img.width * img.height > max_pixels:
            raise DecodeError(
                f"Image {asset.name!r} is {img.width}x{img.height}, over the {max_pixels} pixel limit"
            )
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Cannot decode image {asset.name!r}: {e}") from e
    return img


def _encode(img: Image.Image, fmt: str) -> bytes:
    if fmt == "JPEG" and img.mode != "RGB":
        img = img.convert("RGB")
    buf = io.BytesIO()
    params = {"quality": ENCODE_QUALITY} if fmt in _LOSSY else {}
    img.save(buf, format=fmt, **params)
    return buf.getvalue()


def preprocess(
    asset: ImageAsset,
    max_width: int = MAX_IMAGE_WIDTH,
    max_height: int = MAX_IMAGE_HEIGHT,
    max_pixels: int = MAX_IMAGE_PIXELS,
) -> PreprocessedImage:
    """
    Return a resized + enhanced copy of the asset, re-encoded in its own MIME type.
    Types Pillow cannot write back are re-encoded as PNG.
    Raises DecodeError if the bytes are not a readable image, or if it has
    more than max_pixels pixels (checked from the header, before decoding).
    """
    img = _decode(asset, max_pixels)

    if img.mode not in ("RGB", "RGBA", "L"):
        img = img.convert("RGBA" if "transparency" in img.info else "RGB")

    size = fit_within(img.width, img.height, max_width, max_height)
    if size != img.size:
        img = img.resize(size, Image.Resampling.LANCZOS)

    img = ImageEnhance.Contrast(img).enhance(CONTRAST_BOOST)
    img = ImageEnhance.Brightness(img).enhance(BRIGHTNESS_BOOST)

    fmt = _FORMATS.get(asset.mime_type.lower())
    mime_type = asset.mime_type
    if fmt is None:
        fmt, mime_type = "PNG", "image/png"
    data = _encode(img, fmt)

    return PreprocessedImage(
        data=data,
        mime_type=mime_type,
        size=len(data),
        name=asset.name,
        width=img.width,
        height=img.height,
    )
