"""
Sample buffers for frame-based spectral processing.
Single-threaded: callers serialise access, no locking is done here.
"""

from typing import Optional

import numpy as np

from ..utils.config import MIN_WINDOW_SIZE, MIN_HOP_SIZE, clamp
from ..utils.logging_utils import audio_logger


class SlidingWindow:
    """
    Window of the most recent samples, released every hop.

    Two ways to drive it (use one per instance):

    - feed(): new samples go into the hop region at the end of the buffer.
      When a hop is complete, window() holds the whole window, oldest
      sample first. The left shift that makes room for the next hop is
      done by the following feed() call, so the snapshot stays valid until
      then.
    - feed_into(): samples go into a circular buffer and every hop the
      window is copied, oldest first, into a caller-supplied array. The
      internal buffer is never exposed.
    """

    def __init__(self, win_size: int, hop_size: int, dtype=np.float32):
        """
        Initialize sliding window.

        Args:
            win_size: Number of samples in the window (clamped to >= 1)
            hop_size: Samples between releases (clamped into [1, win_size])
            dtype: NumPy data type for samples
        """
        self._dtype = dtype
        self._buffer = np.zeros(0, dtype=dtype)
        self._size_win = 0
        self._size_hop = 0
        if not self.resize(win_size, hop_size):
            raise MemoryError(f"Cannot allocate sliding window of {win_size} samples")

    @property
    def size_win(self) -> int:
        return self._size_win

    @property
    def size_hop(self) -> int:
        return self._size_hop

    def resize(self, win_size: int, hop_size: int) -> bool:
        """
        Reallocate the window and reset all counters.

        Returns:
            False if the buffer could not be allocated; the previous
            buffer is kept in that case.
        """
        buffer = self.allocate(win_size)
        if buffer is None:
            return False
        self.attach(buffer, hop_size)
        return True

    def allocate(self, win_size: int) -> Optional[np.ndarray]:
        """
        Zeroed buffer for a window of win_size samples (clamped to >= 1).

        Nothing changes until the buffer is passed to attach(), so callers
        resizing several objects can allocate everything first.

        Returns:
            The buffer, or None if it could not be allocated
        """
        size = max(int(win_size), MIN_WINDOW_SIZE)
        if size != win_size:
            audio_logger.warning(f"Window size {win_size} clamped to {size}")
        try:
            return np.zeros(size, dtype=self._dtype)
        except MemoryError:
            audio_logger.error(f"Failed to allocate sliding window of {size} samples")
            return None

    def attach(self, buffer: np.ndarray, hop_size: int):
        """Take over a buffer from allocate() and restart the hop count."""
        self._buffer = buffer
        self._size_win = len(buffer)
        self.set_size_hop(hop_size)

    def set_size_hop(self, hop_size: int):
        """Set hop size, clamped into [1, size_win]. Restarts the hop count."""
        hop = clamp(hop_size, MIN_HOP_SIZE, self._size_win)
        if hop != hop_size:
            audio_logger.warning(f"Hop size {hop_size} clamped to {hop}")
        self._size_hop = hop
        self._tap = 0
        self._slide_pending = False
        self._ring_tap = 0
        self._hop_count = 0

    def reset(self):
        """Zero the samples and counters without reallocating."""
        self._buffer.fill(0)
        self._tap = 0
        self._slide_pending = False
        self._ring_tap = 0
        self._hop_count = 0

    def window(self) -> np.ndarray:
        """Read-only view of the window filled by feed()."""
        view = self._buffer.view()
        view.flags.writeable = False
        return view

    def feed(self, sample: float) -> bool:
        """
        Write one sample.

        Returns:
            True when a hop is complete and window() is ready
        """
        if self._slide_pending:
            self._slide()

        self._buffer[self._size_win - self._size_hop + self._tap] = sample
        self._tap += 1

        if self._tap >= self._size_hop:
            self._tap = 0
            self._slide_pending = True
            return True
        return False

    def feed_into(self, dst: np.ndarray, sample: float) -> bool:
        """
        Write one sample; copy the window into dst when a hop is complete.

        Args:
            dst: Destination with room for at least size_win samples
            sample: Input sample

        Returns:
            True when dst was filled
        """
        self._buffer[self._ring_tap] = sample
        self._ring_tap += 1
        if self._ring_tap == self._size_win:
            self._ring_tap = 0

        self._hop_count += 1
        if self._hop_count >= self._size_hop:
            self._hop_count = 0
            # Oldest sample sits at the write tap
            split = self._size_win - self._ring_tap
            dst[:split] = self._buffer[self._ring_tap:]
            dst[split:self._size_win] = self._buffer[:self._ring_tap]
            return True
        return False

    def _slide(self):
        """Discard the oldest hop of samples."""
        keep = self._size_win - self._size_hop
        self._buffer[:keep] = self._buffer[self._size_hop:]
        self._slide_pending = False


class DelayLine:
    """
    Fixed-length sample delay.

    process(x) stores x and returns the sample written size calls ago
    (zero until the line has filled).
    """

    def __init__(self, size: int, dtype=np.float64):
        self._dtype = dtype
        self._buffer = np.zeros(0, dtype=dtype)
        self._idx = 0
        if not self.resize(size):
            raise MemoryError(f"Cannot allocate delay line of {size} samples")

    @property
    def size(self) -> int:
        return len(self._buffer)

    def resize(self, size: int) -> bool:
        """Reallocate to size samples (at least 1), zero-filled."""
        buffer = self.allocate(size)
        if buffer is None:
            return False
        self.attach(buffer)
        return True

    def allocate(self, size: int) -> Optional[np.ndarray]:
        """Zeroed delay buffer of size samples (at least 1), or None on failure."""
        n = max(int(size), 1)
        if n != size:
            audio_logger.warning(f"Delay size {size} clamped to {n}")
        try:
            return np.zeros(n, dtype=self._dtype)
        except MemoryError:
            audio_logger.error(f"Failed to allocate delay line of {n} samples")
            return None

    def attach(self, buffer: np.ndarray):
        self._buffer = buffer
        self._idx = 0

    def reset(self):
        """Clear the delay contents."""
        self._buffer.fill(0)
        self._idx = 0

    def process(self, sample: float) -> float:
        delayed = self._buffer[self._idx]
        self._buffer[self._idx] = sample
        self._idx += 1
        if self._idx == len(self._buffer):
            self._idx = 0
        return delayed

    __call__ = process
