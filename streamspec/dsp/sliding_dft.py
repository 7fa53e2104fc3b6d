"""
Sliding discrete Fourier transform.

Computes the DFT with a hop of one sample over a band of bins, using one
complex resonator per bin. Cost per sample is proportional to the number of
bins kept, independent of the transform size.
"""

from typing import Optional

import numpy as np

from .dft import DFTBase
from .fft import TWO_PI, real_bins
from ..audio.ringbuffer import DelayLine
from ..utils.config import clamp
from ..utils.domain import SampleRateContext
from ..utils.logging_utils import dsp_logger


class SlidingDFT(DFTBase):
    """
    Per-sample spectrum over the bin interval [bin_lo, bin_hi).

    Each sample x(n) updates every kept bin as

        bin_k = bin_k * e^(2 pi i k / N) + (x(n) - x(n - N)) * 2 / N

    so a sinusoid of amplitude A centred on an interior bin reads A in that
    bin once N samples have passed. Rotators are evaluated once per
    interval() call, not composed per sample, so they stay unit-magnitude;
    rounding error in the recursion itself is not corrected (reset()
    clears it). Analysis only.
    """

    def __init__(
        self,
        size_dft: int,
        bin_lo: int,
        bin_hi: int,
        context: Optional[SampleRateContext] = None,
        dtype=np.float64,
    ):
        """
        Initialize sliding DFT.

        Args:
            size_dft: Transform size in samples
            bin_lo: Lower closed endpoint of the bin interval
            bin_hi: Upper open endpoint of the bin interval
            context: Sample-rate context
            dtype: NumPy data type of bins and delay line
        """
        super().__init__(context=context, dtype=dtype)
        self._delay = DelayLine(1, dtype=dtype)
        self._bin_lo = 0
        self._bin_hi = 0
        if not self.resize(size_dft, bin_lo, bin_hi):
            raise MemoryError(f"Cannot allocate sliding DFT of size {size_dft}")

    @property
    def bin_lo(self) -> int:
        return self._bin_lo

    @property
    def bin_hi(self) -> int:
        return self._bin_hi

    def resize(self, size_dft: int, bin_lo: int, bin_hi: int) -> bool:
        """
        Reallocate bins and delay line (zeroed) and set the interval.

        Returns:
            False if buffers could not be allocated; the previous size,
            interval and bin values stay in use.
        """
        size = max(int(size_dft), 1)
        if size != size_dft:
            dsp_logger.warning(f"Sliding DFT size {size_dft} clamped to {size}")

        spectrum = self._prepare_spectrum(size)
        if spectrum is None:
            return False
        delay = self._delay.allocate(size)
        if delay is None:
            return False
        try:
            rotators = self._rotators(size, bin_lo, bin_hi)
        except MemoryError:
            dsp_logger.error(f"Failed to allocate rotators for sliding DFT of size {size}")
            return False

        self._commit_spectrum(size, *spectrum)
        self._delay.attach(delay)
        self._use_rotators(*rotators)
        return True

    def interval(self, bin_lo: int, bin_hi: int) -> 'SlidingDFT':
        """
        Set the bin interval, clamped to 0 <= bin_lo < bin_hi <= num_bins.

        Bin values are kept; bins leaving the interval stop updating.
        """
        self._use_rotators(*self._rotators(self.size_dft, bin_lo, bin_hi))
        return self

    def _rotators(self, size: int, bin_lo: int, bin_hi: int):
        """Clamped interval with its rotator table and scratch arrays."""
        num_bins = size // 2 + 1
        hi = clamp(bin_hi, 1, num_bins)
        lo = clamp(bin_lo, 0, hi - 1)
        if (lo, hi) != (bin_lo, bin_hi):
            dsp_logger.warning(f"Bin interval [{bin_lo}, {bin_hi}) clamped to [{lo}, {hi})")

        theta = TWO_PI * np.arange(lo, hi) / size
        cos = np.cos(theta).astype(self._dtype)
        sin = np.sin(theta).astype(self._dtype)
        for kr in real_bins(size):
            if lo <= kr < hi:
                cos[kr - lo] = 1.0 if kr == 0 else -1.0
                sin[kr - lo] = 0.0

        tmp_re = np.zeros(hi - lo, dtype=self._dtype)
        tmp_im = np.zeros(hi - lo, dtype=self._dtype)
        return lo, hi, cos, sin, tmp_re, tmp_im

    def _use_rotators(self, lo, hi, cos, sin, tmp_re, tmp_im):
        self._bin_lo = lo
        self._bin_hi = hi
        self._cos = cos
        self._sin = sin
        self._tmp_re = tmp_re
        self._tmp_im = tmp_im
        self._norm = 2.0 / self.size_dft
        self._re = self._buf[2 * lo:2 * hi:2]
        self._im = self._buf[2 * lo + 1:2 * hi:2]

    def reset(self):
        """Zero bins and delay line without reallocating."""
        self.zero()
        self._delay.reset()

    def forward(self, sample: float):
        """Input next sample and update every bin in the interval."""
        dif = (sample - self._delay.process(sample)) * self._norm

        re, im = self._re, self._im
        t_re, t_im = self._tmp_re, self._tmp_im

        # (re + i im) * (cos + i sin) + dif
        np.multiply(re, self._cos, out=t_re)
        np.multiply(im, self._sin, out=t_im)
        t_re -= t_im
        t_re += dif
        np.multiply(re, self._sin, out=t_im)
        im *= self._cos
        im += t_im
        re[:] = t_re

    def forward_block(self, samples: np.ndarray):
        """Run forward() on each sample of a block."""
        for x in np.asarray(samples, dtype=self._dtype):
            self.forward(x)
