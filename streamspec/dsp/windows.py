"""
Analysis and synthesis window shapes for the STFT.
"""

from enum import Enum
from typing import Optional, Union

import numpy as np
from scipy import signal


class WindowType(Enum):
    """Window shapes available to the STFT."""
    RECTANGLE = 'rectangle'
    BARTLETT = 'bartlett'
    HANN = 'hann'
    HAMMING = 'hamming'
    BLACKMAN = 'blackman'
    BLACKMAN_HARRIS = 'blackmanharris'
    WELCH = 'welch'

    @classmethod
    def parse(cls, value: Union['WindowType', str]) -> 'WindowType':
        """Accept a WindowType or its name ('hann', 'HANN', 'blackman_harris')."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace('_', '').replace('-', '')
        for member in cls:
            if key in (member.value, member.name.lower().replace('_', '')):
                return member
        raise ValueError(f"Unknown window type: {value}")


# scipy.signal names; WELCH has no scipy counterpart
_SCIPY_WINDOWS = {
    WindowType.RECTANGLE: 'boxcar',
    WindowType.BARTLETT: 'bartlett',
    WindowType.HANN: 'hann',
    WindowType.HAMMING: 'hamming',
    WindowType.BLACKMAN: 'blackman',
    WindowType.BLACKMAN_HARRIS: 'blackmanharris',
}


def make_window(window_type: Union[WindowType, str], size: int, dtype=np.float32) -> np.ndarray:
    """
    Create a DFT-even (periodic) window of the given size.

    Periodic windows overlap-add to a constant for the usual hop sizes
    (e.g. Hann at hop = size / 2 or size / 4).
    """
    window_type = WindowType.parse(window_type)
    size = max(int(size), 1)

    if window_type is WindowType.WELCH:
        n = np.arange(size)
        half = size / 2.0
        w = 1.0 - ((n - half) / half) ** 2
    else:
        w = signal.get_window(_SCIPY_WINDOWS[window_type], size, fftbins=True)

    return np.asarray(w, dtype=dtype)


def normalized_window(window_type: Union[WindowType, str], size: int, dtype=np.float32) -> np.ndarray:
    """Window scaled to unit mean, so bin magnitudes do not depend on the shape."""
    w = make_window(window_type, size, dtype=np.float64)
    mean = w.mean()
    if mean <= 0:
        # Degenerate tiny windows (e.g. Welch of size 1)
        return np.ones(len(w), dtype=dtype)
    return (w / mean).astype(dtype)


def overlap_add_gain(analysis: np.ndarray, hop_size: int,
                     synthesis: Optional[np.ndarray] = None) -> float:
    """
    Average gain of overlap-adding frames windowed by analysis (and synthesis).

    Frames of length W spaced hop apart sum to (W / hop) * mean(window
    product) per sample; dividing by this gives unity gain.
    """
    product = analysis if synthesis is None else analysis * synthesis
    return len(analysis) / float(hop_size) * float(np.mean(product, dtype=np.float64))
