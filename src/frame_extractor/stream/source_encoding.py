"""
Source Encodings
================

Fixed set of pixel encodings recognized on the image topic.

Encoding tags arrive as free-form strings on the wire. They are mapped
onto SourceEncoding exactly once, at the ingestion boundary, so that no
downstream stage has to match on tag strings.

Rules:
    - Any tag containing "bayer" (any case) is treated as mono8
    - Unknown tags are a conversion failure, not a crash
"""

from enum import Enum


class ConversionError(Exception):
    """Raised when a frame cannot be normalized to a savable pixel format."""
    pass


class SourceEncoding(str, Enum):
    """
    Pixel encodings that can be converted to a 3-channel BGR image.

    Attributes:
        MONO8: 8-bit single channel
        MONO16: 16-bit single channel (scaled down on conversion)
        BGR8, RGB8: 8-bit three channel
        BGRA8, RGBA8: 8-bit four channel (alpha dropped)
        BGR16, RGB16, BGRA16, RGBA16: 16-bit colour (scaled down)
        YUV422: packed UYVY, two bytes per pixel
        BAYER_*: raw sensor patterns (viewed as mono8)
        JPEG, PNG: compressed transport payloads
    """

    MONO8 = "mono8"
    MONO16 = "mono16"
    BGR8 = "bgr8"
    RGB8 = "rgb8"
    BGRA8 = "bgra8"
    RGBA8 = "rgba8"

    BGR16 = "bgr16"
    RGB16 = "rgb16"
    BGRA16 = "bgra16"
    RGBA16 = "rgba16"

    YUV422 = "yuv422"

    BAYER_RGGB8 = "bayer_rggb8"
    BAYER_BGGR8 = "bayer_bggr8"
    BAYER_GBRG8 = "bayer_gbrg8"
    BAYER_GRBG8 = "bayer_grbg8"

    JPEG = "jpeg"
    PNG = "png"

    @property
    def channels(self) -> int:
        """Number of interleaved channels per pixel (0 for compressed)."""
        return _CHANNELS[self]

    @property
    def bytes_per_channel(self) -> int:
        return 2 if self in _SIXTEEN_BIT else 1

    @property
    def is_compressed(self) -> bool:
        return self in (SourceEncoding.JPEG, SourceEncoding.PNG)


_CHANNELS = {
    SourceEncoding.MONO8: 1,
    SourceEncoding.MONO16: 1,
    SourceEncoding.BGR8: 3,
    SourceEncoding.RGB8: 3,
    SourceEncoding.BGRA8: 4,
    SourceEncoding.RGBA8: 4,
    SourceEncoding.BGR16: 3,
    SourceEncoding.RGB16: 3,
    SourceEncoding.BGRA16: 4,
    SourceEncoding.RGBA16: 4,
    SourceEncoding.YUV422: 2,
    SourceEncoding.BAYER_RGGB8: 1,
    SourceEncoding.BAYER_BGGR8: 1,
    SourceEncoding.BAYER_GBRG8: 1,
    SourceEncoding.BAYER_GRBG8: 1,
    SourceEncoding.JPEG: 0,
    SourceEncoding.PNG: 0,
}

_SIXTEEN_BIT = frozenset({
    SourceEncoding.MONO16,
    SourceEncoding.BGR16,
    SourceEncoding.RGB16,
    SourceEncoding.BGRA16,
    SourceEncoding.RGBA16,
})

# Raw sensor data is saved as-is rather than demosaiced.
DEFAULT_BAYER_ENCODING = SourceEncoding.MONO8


def normalize_encoding(tag: str) -> str:
    """
    Normalize an encoding tag at the ingestion boundary.

    Args:
        tag: Encoding string as received from the transport

    Returns:
        "mono8" for any Bayer-like tag, otherwise the tag unchanged
    """
    if "bayer" in tag.lower():
        return DEFAULT_BAYER_ENCODING.value
    return tag


def parse_encoding(tag: str) -> SourceEncoding:
    """
    Map an encoding tag onto SourceEncoding.

    Args:
        tag: Encoding string as received from the transport

    Returns:
        The recognized encoding

    Raises:
        ConversionError: If the tag is not recognized
    """
    normalized = normalize_encoding(tag).lower()
    if normalized == "jpg":
        normalized = SourceEncoding.JPEG.value
    try:
        return SourceEncoding(normalized)
    except ValueError:
        raise ConversionError(f"Unsupported encoding: {tag!r}")
