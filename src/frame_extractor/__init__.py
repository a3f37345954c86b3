"""
frame_extractor
===============

Rate-limited frame extraction from a live image stream.

This package subscribes to an image topic and an optional unlock topic,
decides which arriving frames to keep, and writes the kept frames to disk
under sequentially numbered filenames.

Components:
    - stream: Frame model, encoding tags, decoding and WebSocket channels
    - extractor: Admission gate, filename rendering and frame persisters
    - models: Wire schemas for image and unlock messages

Example:
    from frame_extractor.extractor import ExtractorNode, FrameGate
    from frame_extractor.extractor.persister import ImageFilePersister

    node = ExtractorNode(
        gate=FrameGate(min_interval=0.1),
        persister=ImageFilePersister("frame%04d.jpg"),
    )
    node.handle_frame(frame)
"""

__version__ = "0.1.0"
__author__ = "frame_extractor contributors"

__all__ = [
    "__version__",
]
