"""PCM conversion utilities."""
from __future__ import annotations

import numpy as np
import numpy.typing as npt

Samples = npt.NDArray[np.int16]


def pcm16le_to_samples(pcm_bytes: bytes) -> Samples:
    """
    Convert PCM16 little-endian mono bytes to an int16 sample array.

    No resampling. No channel mixing.
    Raises ValueError on an odd byte count (truncated sample).
    """
    if len(pcm_bytes) % 2 != 0:
        raise ValueError(f"PCM16 payload has odd length {len(pcm_bytes)}")

    # Copy so the array owns its memory and is writable
    return np.frombuffer(pcm_bytes, dtype="<i2").astype(np.int16)


def samples_to_pcm16le(samples: npt.ArrayLike) -> bytes:
    """Serialize samples as PCM16 little-endian bytes."""
    return np.asarray(samples, dtype=np.int16).astype("<i2").tobytes()


class ByteAligner:
    """
    Carry an odd trailing byte across chunk boundaries.

    Providers may split a PCM16 stream at arbitrary byte offsets; the
    aligner returns only whole samples and keeps the dangling byte for
    the next chunk.
    """

    def __init__(self) -> None:
        self._carry = b""

    def feed(self, chunk: bytes) -> bytes:
        """Return the even-length prefix of carry + chunk."""
        data = self._carry + chunk

        if len(data) % 2 == 1:
            self._carry = data[-1:]
            return data[:-1]

        self._carry = b""
        return data
