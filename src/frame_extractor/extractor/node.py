"""
Extractor Node
==============

Wires the admission gate to a persister and exposes the two handler
entry points invoked by the topic consumers.

Pipeline for one frame:
    1. Normalize the encoding tag
    2. Convert outside the gate lock (ConversionError -> nothing to save)
    3. Ask the gate for admission
    4. If admitted, write after the gate lock has been released

Steps 1-3 are evaluate(), step 4 is persist(). handle_frame() runs both;
the stream consumer runs them separately so that a slow write does not
hold up the decision for the next frame.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

from frame_extractor.extractor.gate import AdmissionOutcome, FrameGate
from frame_extractor.extractor.persister import (
    FramePersister,
    Payload,
    SaveResult,
)
from frame_extractor.stream.source_encoding import ConversionError
from frame_extractor.stream.frame import Frame


logger = logging.getLogger(__name__)


class NodeMetrics:
    """Counters for ExtractorNode observability."""

    __slots__ = (
        "frames_received",
        "frames_admitted",
        "frames_rejected",
        "frames_empty",
        "frames_saved",
        "save_failures",
        "conversion_errors",
        "unlocks_received",
        "last_saved_path",
    )

    def __init__(self) -> None:
        self.frames_received: int = 0
        self.frames_admitted: int = 0
        self.frames_rejected: int = 0
        self.frames_empty: int = 0
        self.frames_saved: int = 0
        self.save_failures: int = 0
        self.conversion_errors: int = 0
        self.unlocks_received: int = 0
        self.last_saved_path: Optional[str] = None

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}


@dataclass(frozen=True, slots=True)
class PendingWrite:
    """An admitted frame waiting to be written."""

    sequence: int
    payload: Payload


class ExtractorNode:
    """
    Frame extraction handlers.

    handle_frame() and handle_unlock() may be called concurrently from
    different threads. All shared decision state lives in the gate.

    Example:
        node = ExtractorNode(
            gate=FrameGate(min_interval=0.5, lock_mode_enabled=True),
            persister=ImageFilePersister("shot%03d.png"),
        )
        node.handle_frame(frame)     # saved as shot000.png
        node.handle_frame(frame)     # rejected, locked
        node.handle_unlock()
    """

    def __init__(
        self,
        gate: FrameGate,
        persister: FramePersister,
    ) -> None:
        self.gate = gate
        self.persister = persister
        self.metrics = NodeMetrics()

        self._metrics_lock = threading.Lock()
        self._last_frame: Optional[Frame] = None

    @property
    def last_frame(self) -> Optional[Frame]:
        """Most recently received frame, for inspection only."""
        return self._last_frame

    def handle_frame(self, frame: Frame) -> Optional[SaveResult]:
        """
        Handle one frame from the image topic.

        Args:
            frame: Newly arrived frame

        Returns:
            SaveResult if the frame was admitted, None otherwise
        """
        pending = self.evaluate(frame)
        if pending is None:
            return None
        return self.persist(pending)

    def evaluate(self, frame: Frame) -> Optional[PendingWrite]:
        """
        Convert a frame and ask the gate whether to keep it.

        Returns:
            PendingWrite if admitted, None if rejected or nothing to save
        """
        self._last_frame = frame
        self._count("frames_received")

        frame = frame.normalized()

        payload: Optional[Payload] = None
        if not frame.is_empty:
            try:
                payload = self.persister.prepare(frame)
            except ConversionError as e:
                self._count("conversion_errors")
                logger.error(
                    f"Unable to convert {frame.encoding} image to bgr8: {e}"
                )

        admission = self.gate.on_frame_arrived(
            frame,
            has_payload=payload is not None,
        )

        if admission.outcome is AdmissionOutcome.REJECTED:
            self._count("frames_rejected")
            return None

        if admission.outcome is AdmissionOutcome.EMPTY:
            self._count("frames_empty")
            logger.warning("Couldn't save image, no data!")
            return None

        self._count("frames_admitted")
        return PendingWrite(sequence=admission.sequence, payload=payload)

    def persist(self, pending: PendingWrite) -> SaveResult:
        """Write an admitted frame and log the outcome."""
        result = self.persister.write(pending.payload, pending.sequence)

        if result.ok:
            with self._metrics_lock:
                self.metrics.frames_saved += 1
                self.metrics.last_saved_path = result.path
            logger.info(f"Saved image {result.path}")
        else:
            self._count("save_failures")
            logger.warning(
                f"Failed to save frame {pending.sequence} "
                f"({result.failure.value}): {result.detail}"
            )

        return result

    def record_write_error(self, sequence: int, error: BaseException) -> None:
        """Account for a write that raised instead of returning a SaveResult."""
        self._count("save_failures")
        logger.error(
            f"Failed to save frame {sequence}: {error}",
            exc_info=error,
        )

    def handle_unlock(self, message: Any = None) -> None:
        """Handle one message from the unlock topic."""
        self._count("unlocks_received")
        self.gate.on_unlock(message)
        logger.debug("Key lock released")

    def close(self) -> None:
        self.persister.close()

    def _count(self, name: str) -> None:
        with self._metrics_lock:
            setattr(self.metrics, name, getattr(self.metrics, name) + 1)
