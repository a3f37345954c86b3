"""
Frame Data Model
=================

Internal frame representation for the extraction pipeline.

This module defines the typed Frame class that is used as the interface
between the topic consumer and the admission gate / persisters.

Design Rules:
    - This is the ONLY frame format passed to downstream stages
    - Immutable: encoding normalization returns a new Frame
    - Does NOT decode pixel data
"""

from dataclasses import dataclass, replace

from frame_extractor.stream.source_encoding import normalize_encoding


@dataclass(frozen=True, slots=True)
class Frame:
    """
    Snapshot of one image received on the image topic.

    Attributes:
        data: Pixel buffer exactly as published (raw or compressed)
        encoding: Encoding tag, e.g. "mono8", "bgr8", "bayer_rggb8", "jpeg"
        width: Image width in pixels
        height: Image height in pixels
        step: Row length in bytes (0 if unknown or compressed)
        stamp: UNIX timestamp of arrival
        seq: Transport sequence number (informational only)
        topic: Topic the frame was received on
    """

    data: bytes
    encoding: str
    width: int
    height: int
    step: int = 0
    stamp: float = 0.0
    seq: int = 0
    topic: str = ""

    @property
    def is_empty(self) -> bool:
        """Whether the frame carries no pixel data."""
        return len(self.data) == 0

    def normalized(self) -> "Frame":
        """Return this frame with a decodable encoding tag."""
        encoding = normalize_encoding(self.encoding)
        if encoding == self.encoding:
            return self
        return replace(self, encoding=encoding)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixel buffer."""
        return (
            f"Frame(seq={self.seq}, "
            f"encoding={self.encoding!r}, "
            f"size={self.width}x{self.height}, "
            f"bytes={len(self.data)}, "
            f"stamp={self.stamp:.3f})"
        )
