"""
Frame Gate
==========

Admission control for incoming frames.

The gate decides, under a single mutex, whether an arriving frame is
kept. It enforces:
    - a minimum interval between admissions (sec_per_frame)
    - an optional key lock: after each admission, nothing more is
      admitted until an unlock signal arrives

Design Rules:
    - Performs NO I/O; the lock is released before any file is written
    - The sequence counter only increases, only under the lock, and
      only for admitted frames that carry a payload
    - Frame arrival and unlock handlers may run on different threads
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional

from frame_extractor.stream.frame import Frame


logger = logging.getLogger(__name__)


class AdmissionOutcome(str, Enum):
    """
    Result of evaluating one frame.

    Attributes:
        ADMITTED: Gate passed and a sequence number was claimed
        EMPTY: Gate passed but the frame had nothing to save
        REJECTED: Too soon after the last admission, or locked
    """

    ADMITTED = "ADMITTED"
    EMPTY = "EMPTY"
    REJECTED = "REJECTED"


@dataclass(frozen=True, slots=True)
class Admission:
    """
    Decision for one frame.

    Attributes:
        outcome: What the gate decided
        frame: The frame with its encoding tag normalized
        sequence: Claimed sequence number (only when ADMITTED)
    """

    outcome: AdmissionOutcome
    frame: Frame
    sequence: Optional[int] = None

    @property
    def admitted(self) -> bool:
        return self.outcome is AdmissionOutcome.ADMITTED


@dataclass(slots=True)
class GateState:
    """
    Mutable throttle state owned by FrameGate.

    Attributes:
        last_save_time: Timestamp of the last time the gate passed
        locked: Whether an unlock signal is required before the next admission
        sequence_counter: Next sequence number to hand out
        lock_mode_enabled: Whether admissions lock the gate (fixed at startup)
    """

    last_save_time: float
    locked: bool
    sequence_counter: int
    lock_mode_enabled: bool


class FrameGate:
    """
    Thread-safe admission gate.

    Example:
        gate = FrameGate(min_interval=0.1, lock_mode_enabled=True)

        admission = gate.on_frame_arrived(frame)
        if admission.admitted:
            persister.save(admission.frame, admission.sequence)

        # From the unlock topic handler
        gate.on_unlock()
    """

    def __init__(
        self,
        min_interval: float = 0.1,
        lock_mode_enabled: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the gate.

        Args:
            min_interval: Minimum seconds between admissions. Must be >= 0.
            lock_mode_enabled: Require an unlock signal between admissions
            clock: Time source returning seconds
        """
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")

        self._min_interval = min_interval
        self._clock = clock
        self._mutex = threading.Lock()
        self._state = GateState(
            last_save_time=clock(),
            locked=False,
            sequence_counter=0,
            lock_mode_enabled=lock_mode_enabled,
        )

        logger.info(
            f"FrameGate initialized: sec_per_frame={min_interval}, "
            f"key_lock={lock_mode_enabled}"
        )

    @property
    def min_interval(self) -> float:
        """Minimum seconds between admissions."""
        return self._min_interval

    @property
    def lock_mode_enabled(self) -> bool:
        return self._state.lock_mode_enabled

    def snapshot(self) -> GateState:
        """Consistent copy of the current state."""
        with self._mutex:
            return replace(self._state)

    def on_frame_arrived(
        self,
        frame: Frame,
        has_payload: Optional[bool] = None,
    ) -> Admission:
        """
        Decide whether a frame is admitted.

        Passing the gate always advances the clock (and locks in lock
        mode). A sequence number is only claimed when the frame also has
        something to save.

        Args:
            frame: Newly arrived frame
            has_payload: Set to False when the frame could not be
                converted; None means "non-empty buffer"

        Returns:
            Admission with the normalized frame
        """
        frame = frame.normalized()
        savable = not frame.is_empty and has_payload is not False

        with self._mutex:
            state = self._state
            now = self._clock()
            elapsed = now - state.last_save_time

            if elapsed < self._min_interval:
                return Admission(AdmissionOutcome.REJECTED, frame)
            if state.lock_mode_enabled and state.locked:
                return Admission(AdmissionOutcome.REJECTED, frame)

            if state.lock_mode_enabled:
                state.locked = True
            state.last_save_time = now

            if not savable:
                return Admission(AdmissionOutcome.EMPTY, frame)

            sequence = state.sequence_counter
            state.sequence_counter += 1

        return Admission(AdmissionOutcome.ADMITTED, frame, sequence)

    def on_unlock(self, signal: Any = None) -> None:
        """
        Clear the key lock.

        The signal payload is ignored. Harmless when lock mode is off.
        """
        with self._mutex:
            self._state.locked = False
