"""
Frame Persisters
================

Write admitted frames to durable storage.

Two mutually exclusive backends share one contract:
    - ImageFilePersister: one file per frame. Filenames ending in ".raw"
      get the pixel buffer verbatim; anything else is encoded by OpenCV
      according to the extension.
    - VideoPersister: appends every admitted frame to a single video file.

Design Rules:
    - Persisters never decide WHETHER to save; that is FrameGate's job
    - Persisters never touch gate state
    - Failures are returned as SaveResult values, never raised
"""

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Union

import cv2
import numpy as np

from frame_extractor.extractor.naming import (
    is_raw_filename,
    render_filename,
    validate_template,
)
from frame_extractor.stream.source_encoding import ConversionError
from frame_extractor.stream.frame import Frame
from frame_extractor.stream.image_decoder import frame_to_bgr


logger = logging.getLogger(__name__)


Payload = Union[bytes, np.ndarray]


class SaveFailure(str, Enum):
    """
    Reasons a save can fail.

    Attributes:
        CONVERSION: Frame could not be normalized to a savable pixel format
        IO: Destination could not be opened or written
        ENCODE: The image encoder rejected the buffer
    """

    CONVERSION = "ConversionError"
    IO = "IOError"
    ENCODE = "EncodeError"


@dataclass(frozen=True, slots=True)
class SaveResult:
    """
    Outcome of persisting one frame.

    Attributes:
        path: Written path (on success)
        failure: Failure reason (on failure)
        detail: Human-readable failure detail
    """

    path: Optional[str] = None
    failure: Optional[SaveFailure] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def written(cls, path: str) -> "SaveResult":
        return cls(path=path)

    @classmethod
    def failed(cls, failure: SaveFailure, detail: str = "") -> "SaveResult":
        return cls(failure=failure, detail=detail)


class FramePersister(Protocol):
    """
    Protocol for persistence backends.

    prepare() does the CPU-side work (conversion) and may be called
    before the gate decides; write() does the I/O after admission.
    """

    def prepare(self, frame: Frame) -> Payload:
        """
        Convert a frame into whatever write() needs.

        Raises:
            ConversionError: If the frame cannot be converted
        """
        ...

    def write(self, payload: Payload, sequence: int) -> SaveResult:
        """Write a prepared payload under the given sequence number."""
        ...

    def save(self, frame: Frame, sequence: int) -> SaveResult:
        """prepare() + write() in one call."""
        ...

    def close(self) -> None:
        ...


class ImageFilePersister:
    """
    One file per admitted frame.

    Example:
        persister = ImageFilePersister("frame%04d.jpg")
        result = persister.save(frame, 0)   # frame0000.jpg
    """

    def __init__(self, filename_format: str = "frame%04d.jpg") -> None:
        """
        Initialize image file persister.

        Args:
            filename_format: Template with one integer placeholder
        """
        self.filename_format = validate_template(filename_format)
        self.raw = is_raw_filename(render_filename(filename_format, 0))

        logger.info(
            f"ImageFilePersister initialized: format={filename_format}, "
            f"mode={'raw' if self.raw else 'encoded'}"
        )

    def filename_for(self, sequence: int) -> str:
        return render_filename(self.filename_format, sequence)

    def prepare(self, frame: Frame) -> Payload:
        bgr = frame_to_bgr(frame)
        # Raw output is the published buffer, once it is known to be convertible
        if self.raw:
            return frame.data
        return bgr

    def write(self, payload: Payload, sequence: int) -> SaveResult:
        filename = self.filename_for(sequence)

        if is_raw_filename(filename):
            if not isinstance(payload, (bytes, bytearray, memoryview)):
                payload = np.ascontiguousarray(payload).tobytes()
            return self._write_bytes(filename, payload)

        if isinstance(payload, (bytes, bytearray, memoryview)):
            return SaveResult.failed(
                SaveFailure.ENCODE,
                f"Refusing to write undecoded buffer to {filename}",
            )

        extension = os.path.splitext(filename)[1]
        if not extension:
            return SaveResult.failed(
                SaveFailure.ENCODE,
                f"No image extension in {filename}",
            )

        try:
            ok, encoded = cv2.imencode(extension, payload)
        except cv2.error as e:
            return SaveResult.failed(
                SaveFailure.ENCODE,
                f"Failed to encode image {filename}: {e}",
            )
        if not ok:
            return SaveResult.failed(
                SaveFailure.ENCODE,
                f"Failed to encode image {filename}",
            )

        return self._write_bytes(filename, encoded.tobytes())

    def save(self, frame: Frame, sequence: int) -> SaveResult:
        try:
            payload = self.prepare(frame)
        except ConversionError as e:
            return SaveResult.failed(SaveFailure.CONVERSION, str(e))
        return self.write(payload, sequence)

    def close(self) -> None:
        pass

    @staticmethod
    def _write_bytes(filename: str, data: bytes) -> SaveResult:
        try:
            with open(filename, "wb") as f:
                f.write(data)
        except (OSError, ValueError) as e:
            return SaveResult.failed(
                SaveFailure.IO,
                f"Failed to open file {filename}: {e}",
            )
        return SaveResult.written(filename)


class VideoPersister:
    """
    Appends admitted frames to a single video file.

    The writer is opened lazily on the first frame, since the frame size
    is not known until then. Later frames of a different size are resized
    to match.
    """

    def __init__(
        self,
        video_path: str = "video.avi",
        fps: int = 10,
        fourcc: str = "MJPG",
    ) -> None:
        """
        Initialize video persister.

        Args:
            video_path: Output video file
            fps: Playback frame rate written into the container
            fourcc: Four-character codec code
        """
        if len(fourcc) != 4:
            raise ValueError("fourcc must be exactly 4 characters")

        self.video_path = video_path
        self.fps = max(1, int(fps))
        self.fourcc = fourcc

        # One container, so writes are serialized even though saves are not
        self._write_lock = threading.Lock()
        self._writer: Optional[cv2.VideoWriter] = None
        self._size: Optional[tuple] = None

        logger.info(
            f"VideoPersister initialized: path={video_path}, "
            f"fps={self.fps}, fourcc={fourcc}"
        )

    def prepare(self, frame: Frame) -> Payload:
        return frame_to_bgr(frame)

    def write(self, payload: Payload, sequence: int) -> SaveResult:
        if not isinstance(payload, np.ndarray):
            return SaveResult.failed(
                SaveFailure.ENCODE,
                "Video frames must be decoded images",
            )

        with self._write_lock:
            return self._append(payload, sequence)

    def _append(self, payload: np.ndarray, sequence: int) -> SaveResult:
        height, width = payload.shape[:2]

        if self._writer is None:
            writer = cv2.VideoWriter(
                self.video_path,
                cv2.VideoWriter_fourcc(*self.fourcc),
                float(self.fps),
                (width, height),
            )
            if not writer.isOpened():
                return SaveResult.failed(
                    SaveFailure.IO,
                    f"Failed to open video writer {self.video_path}",
                )
            self._writer = writer
            self._size = (width, height)

        if (width, height) != self._size:
            payload = cv2.resize(payload, self._size)

        try:
            self._writer.write(payload)
        except cv2.error as e:
            return SaveResult.failed(
                SaveFailure.ENCODE,
                f"Failed to write frame {sequence} to {self.video_path}: {e}",
            )

        return SaveResult.written(self.video_path)

    def save(self, frame: Frame, sequence: int) -> SaveResult:
        try:
            payload = self.prepare(frame)
        except ConversionError as e:
            return SaveResult.failed(SaveFailure.CONVERSION, str(e))
        return self.write(payload, sequence)

    def close(self) -> None:
        with self._write_lock:
            if self._writer is not None:
                self._writer.release()
                self._writer = None
                logger.info(f"Closed video {self.video_path}")


def create_persister(
    mode: str,
    filename_format: str,
    sec_per_frame: float,
    video_path: str = "video.avi",
    video_fourcc: str = "MJPG",
) -> FramePersister:
    """
    Create the persistence backend selected by configuration.

    Args:
        mode: "image" or "video"
        filename_format: Template used in image mode
        sec_per_frame: Admission interval; sets the video frame rate
        video_path: Output file used in video mode
        video_fourcc: Codec used in video mode
    """
    if mode == "image":
        return ImageFilePersister(filename_format)

    elif mode == "video":
        fps = int(1.0 / sec_per_frame) if sec_per_frame > 0 else 30
        return VideoPersister(video_path=video_path, fps=fps, fourcc=video_fourcc)

    else:
        raise ValueError(f"Unknown output mode: {mode}")
