"""Decoding of encoded image files into RGBA texture descriptors."""

from __future__ import annotations

import io

from PIL import Image

from unison2d.texture import TextureDescriptor, TextureFilter, TextureFormat

__all__ = ["ImageDecodeError", "decode_image"]

_FORMATS = ("PNG", "JPEG", "GIF", "BMP", "WEBP")


class ImageDecodeError(ValueError):
    """Raised when image bytes cannot be decoded."""


def decode_image(data: bytes) -> TextureDescriptor:
    """Decode PNG, JPEG, GIF, BMP or WebP bytes into an RGBA8 texture descriptor.

    The format is detected from the contents; the result uses mipmapped linear filtering.
    """
    try:
        with Image.open(io.BytesIO(data), formats=_FORMATS) as img:
            rgba = img.convert("RGBA")
    except Exception as exc:  # Pillow raises a variety of errors for bad input
        raise ImageDecodeError(f"Image decode error: {exc}") from exc

    width, height = rgba.size
    return TextureDescriptor(
        width, height, TextureFormat.RGBA8, rgba.tobytes()
    ).with_filter(TextureFilter.LINEAR_MIPMAP)