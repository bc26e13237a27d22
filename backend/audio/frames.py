"""
Per-session audio re-framer.

Upstream delivers sample chunks of arbitrary, provider-determined size.
Downstream expects fixed 20ms frames. FrameRingBuffer bridges the two:

- append() concatenates new samples onto the held remainder
- whole frames are sliced off the front in arrival order
- the tail (< frame_size samples) is kept for the next append

Invariants:
- After every append, len(pending) < frame_size
- Concatenating every emitted frame, in order, followed by pending,
  reproduces the concatenation of every appended chunk exactly
- A partial frame is never emitted

One instance per session. Sharing an instance across sessions would
interleave two audio streams.

Pure data structure: no IO, no timing, no logging.
"""

from __future__ import annotations

import numpy as np
import numpy.typing as npt

from audio.pcm import Samples
from spec import AUDIO_SAMPLES_PER_FRAME


class FrameRingBuffer:
    """Accumulates int16 samples and releases fixed-size frames."""

    def __init__(self, frame_size: int = AUDIO_SAMPLES_PER_FRAME) -> None:
        if frame_size <= 0:
            raise ValueError("frame_size must be > 0")

        self._frame_size = frame_size
        self._pending: Samples = np.zeros(0, dtype=np.int16)

    @property
    def frame_size(self) -> int:
        return self._frame_size

    @property
    def pending(self) -> Samples:
        """Read-only view of the undrained remainder."""
        view = self._pending.view()
        view.flags.writeable = False
        return view

    def __len__(self) -> int:
        return len(self._pending)

    def append(self, new_samples: npt.ArrayLike) -> list[Samples]:
        """
        Add samples and return every frame that is now complete.

        Returns an empty list when fewer than frame_size samples are held.
        """
        incoming = np.asarray(new_samples, dtype=np.int16).ravel()
        merged = np.concatenate((self._pending, incoming))

        whole = len(merged) // self._frame_size
        end = whole * self._frame_size

        frames = [
            merged[offset : offset + self._frame_size].copy()
            for offset in range(0, end, self._frame_size)
        ]

        self._pending = merged[end:].copy()
        return frames

    def clear(self) -> None:
        """Drop the held remainder."""
        self._pending = np.zeros(0, dtype=np.int16)
