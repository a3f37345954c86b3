"""
Extractor Module
================

Frame admission and persistence.

    - FrameGate: Thread-safe throttle / key-lock admission decision
    - ImageFilePersister, VideoPersister: Write admitted frames
    - ExtractorNode: Handler entry points wiring gate and persister

Example:
    from frame_extractor.extractor import ExtractorNode, FrameGate, create_persister

    node = ExtractorNode(
        gate=FrameGate(min_interval=0.1),
        persister=create_persister("image", "frame%04d.jpg", 0.1),
    )
"""

from frame_extractor.extractor.gate import (
    Admission,
    AdmissionOutcome,
    FrameGate,
    GateState,
)
from frame_extractor.extractor.naming import render_filename, validate_template
from frame_extractor.extractor.persister import (
    FramePersister,
    ImageFilePersister,
    SaveFailure,
    SaveResult,
    VideoPersister,
    create_persister,
)
from frame_extractor.extractor.node import ExtractorNode, NodeMetrics, PendingWrite


__all__ = [
    "Admission",
    "AdmissionOutcome",
    "FrameGate",
    "GateState",
    "render_filename",
    "validate_template",
    "FramePersister",
    "ImageFilePersister",
    "SaveFailure",
    "SaveResult",
    "VideoPersister",
    "create_persister",
    "ExtractorNode",
    "NodeMetrics",
    "PendingWrite",
]
