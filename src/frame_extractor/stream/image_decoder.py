"""
Image Decoder
=============

Dedicated module for converting frames into OpenCV BGR matrices.

Design Rules:
    - This is the ONLY place in the codebase that interprets pixel data
    - Validates buffer size, shape and dtype
    - Fails fast with ConversionError on anything it cannot convert
    - Always returns 3-channel BGR, the layout image encoders expect
"""

import logging

import cv2
import numpy as np

from frame_extractor.stream.source_encoding import (
    ConversionError,
    SourceEncoding,
    parse_encoding,
)
from frame_extractor.stream.frame import Frame


logger = logging.getLogger(__name__)


_TO_BGR = {
    SourceEncoding.MONO8: cv2.COLOR_GRAY2BGR,
    SourceEncoding.MONO16: cv2.COLOR_GRAY2BGR,
    SourceEncoding.RGB8: cv2.COLOR_RGB2BGR,
    SourceEncoding.BGRA8: cv2.COLOR_BGRA2BGR,
    SourceEncoding.RGBA8: cv2.COLOR_RGBA2BGR,
    SourceEncoding.RGB16: cv2.COLOR_RGB2BGR,
    SourceEncoding.BGRA16: cv2.COLOR_BGRA2BGR,
    SourceEncoding.RGBA16: cv2.COLOR_RGBA2BGR,
    SourceEncoding.YUV422: cv2.COLOR_YUV2BGR_UYVY,
}

_ALREADY_BGR = (SourceEncoding.BGR8, SourceEncoding.BGR16)


def frame_to_bgr(frame: Frame) -> np.ndarray:
    """
    Convert a frame to a BGR numpy array.

    Args:
        frame: Frame with raw or compressed pixel data

    Returns:
        BGR image as np.ndarray (H, W, 3), dtype=uint8

    Raises:
        ConversionError: If the encoding is unsupported or the buffer
            does not match the declared geometry
    """
    if frame.is_empty:
        raise ConversionError(f"Frame {frame.seq} has no data")

    encoding = parse_encoding(frame.encoding)

    if encoding.is_compressed:
        return _decode_compressed(frame)

    pixels = _unpack_raw(frame, encoding)

    if encoding.bytes_per_channel == 2:
        pixels = (pixels >> 8).astype(np.uint8)

    if encoding in _TO_BGR:
        try:
            bgr = cv2.cvtColor(pixels, _TO_BGR[encoding])
        except cv2.error as e:
            raise ConversionError(
                f"Unable to convert {frame.encoding} image to bgr8: {e}"
            ) from e
    elif encoding in _ALREADY_BGR:
        bgr = pixels
    else:
        # Bayer tags are normalized to mono8 before parse_encoding returns
        raise ConversionError(
            f"Unable to convert {frame.encoding} image to bgr8"
        )

    if bgr.ndim != 3 or bgr.shape[2] != 3:
        raise ConversionError(
            f"Invalid image shape for frame {frame.seq}: {bgr.shape}"
        )

    return bgr


def _unpack_raw(frame: Frame, encoding: SourceEncoding) -> np.ndarray:
    """View a raw buffer as an (H, W) or (H, W, C) array, honoring row padding."""
    if frame.width <= 0 or frame.height <= 0:
        raise ConversionError(
            f"Invalid dimensions for frame {frame.seq}: "
            f"{frame.width}x{frame.height}"
        )

    channels = encoding.channels
    dtype = np.dtype(np.uint16) if encoding.bytes_per_channel == 2 else np.dtype(np.uint8)
    row_bytes = frame.width * channels * dtype.itemsize
    step = frame.step or row_bytes

    if step < row_bytes:
        raise ConversionError(
            f"Row step {step} smaller than row size {row_bytes} "
            f"for frame {frame.seq}"
        )
    if len(frame.data) < step * frame.height:
        raise ConversionError(
            f"Buffer too short for frame {frame.seq}: "
            f"got {len(frame.data)} bytes, expected {step * frame.height}"
        )

    rows = np.frombuffer(frame.data, dtype=np.uint8, count=step * frame.height)
    rows = rows.reshape(frame.height, step)[:, :row_bytes]
    pixels = rows.copy().view(dtype)

    if channels == 1:
        return pixels.reshape(frame.height, frame.width)
    return pixels.reshape(frame.height, frame.width, channels)


def _decode_compressed(frame: Frame) -> np.ndarray:
    nparr = np.frombuffer(frame.data, np.uint8)
    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    if bgr is None:
        raise ConversionError(
            f"Failed to decode frame {frame.seq}: cv2.imdecode returned None"
        )

    if bgr.dtype != np.uint8:
        raise ConversionError(
            f"Invalid dtype for frame {frame.seq}: {bgr.dtype}"
        )

    return bgr
