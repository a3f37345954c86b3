"""
Stream Module
=============

Topic consumption and frame representation.

This module provides the ingestion layer for frame_extractor:
    - Frame: Typed frame data model (internal representation)
    - SourceEncoding: Recognized pixel encodings
    - frame_to_bgr: Conversion of any recognized encoding to BGR
    - ChannelConsumer: WebSocket topic client with reconnection
    - resolve_topic / topic_url: Topic naming and remapping

Example:
    from frame_extractor.stream.consumer import (
        create_image_consumer,
        create_unlock_consumer,
    )

    image = create_image_consumer(node, url=image_url, topic="/camera/image")
    unlock = create_unlock_consumer(node, url=unlock_url)

    await asyncio.gather(image.run(), unlock.run())
"""

from frame_extractor.stream.source_encoding import (
    ConversionError,
    SourceEncoding,
    normalize_encoding,
    parse_encoding,
)
from frame_extractor.stream.frame import Frame
from frame_extractor.stream.image_decoder import frame_to_bgr
from frame_extractor.stream.topics import parse_remappings, resolve_topic, topic_url


__all__ = [
    "ConversionError",
    "SourceEncoding",
    "normalize_encoding",
    "parse_encoding",
    "Frame",
    "frame_to_bgr",
    "parse_remappings",
    "resolve_topic",
    "topic_url",
]
