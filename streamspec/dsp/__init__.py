"""
DSP package initialization.
"""

from .fft import (
    RealFFT,
    rect_to_polar,
    polar_to_rect,
    fast_atan2,
    wrap_phase,
)

from .windows import (
    WindowType,
    make_window,
    normalized_window,
    overlap_add_gain,
)

from .dft import (
    SpectralFormat,
    FrameBuffers,
    DFTBase,
    DFT,
)

from .stft import (
    STFT,
    SpectralTransform,
)

from .sliding_dft import SlidingDFT

__all__ = [
    # Kernel
    'RealFFT',
    'rect_to_polar',
    'polar_to_rect',
    'fast_atan2',
    'wrap_phase',

    # Windows
    'WindowType',
    'make_window',
    'normalized_window',
    'overlap_add_gain',

    # Transforms
    'SpectralFormat',
    'FrameBuffers',
    'DFTBase',
    'DFT',
    'STFT',
    'SpectralTransform',
    'SlidingDFT',
]
