"""
streamspec - streaming spectral analysis and resynthesis.

Sliding sample windows, a frame DFT with overlap-add resynthesis, an STFT
with phase-vocoder support and a per-sample sliding DFT.
"""

from .audio import SlidingWindow, DelayLine
from .dsp import (
    RealFFT,
    WindowType,
    SpectralFormat,
    DFTBase,
    DFT,
    STFT,
    SpectralTransform,
    SlidingDFT,
)
from .utils import (
    WindowSpec,
    STFTConfig,
    SampleRateContext,
    load_config,
    save_config,
)

__all__ = [
    'SlidingWindow',
    'DelayLine',
    'RealFFT',
    'WindowType',
    'SpectralFormat',
    'DFTBase',
    'DFT',
    'STFT',
    'SpectralTransform',
    'SlidingDFT',
    'WindowSpec',
    'STFTConfig',
    'SampleRateContext',
    'load_config',
    'save_config',
]

__version__ = '0.1.0'
