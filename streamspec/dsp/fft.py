"""
Real FFT kernel and spectrum format conversions.

Packed layout: a real array of length N + 2 holds N // 2 + 1 bins, bin k in
slots 2k (real) and 2k + 1 (imaginary). The imaginary slot of DC and, for
even N, of Nyquist is always 0. For odd N the last slot is unused.
"""

import numpy as np
from typing import Tuple


TWO_PI = 2.0 * np.pi


def real_bins(size_dft: int) -> Tuple[int, ...]:
    """Indices of the bins that only carry a real value (DC, Nyquist)."""
    if size_dft % 2 == 0:
        return (0, size_dft // 2)
    return (0,)


def wrap_phase(phase):
    """Wrap phase into [-pi, pi)."""
    return phase - TWO_PI * np.floor((phase + np.pi) / TWO_PI)


class RealFFT:
    """
    Real-to-packed forward and packed-to-real inverse transform of size N.

    forward() is unnormalised: a unit impulse gives every bin the value 1.
    inverse() is amplitude synthesis,

        x[n] = X[0]/2 + sum_k Re(X[k] e^(2 pi i k n / N)) + X[N/2] (-1)^n / 2

    so bins scaled by 2/N before inverse() reproduce the forward input.
    """

    def __init__(self, size: int):
        self.size = max(int(size), 1)

    @property
    def num_bins(self) -> int:
        return self.size // 2 + 1

    def forward(self, src: np.ndarray, dst: np.ndarray):
        """
        Transform size real samples from src into packed dst.

        Args:
            src: Real samples (at least size)
            dst: Packed spectrum (at least size + 2)
        """
        n = self.size
        spectrum = np.fft.rfft(src[:n])
        end = 2 * len(spectrum)

        dst[0:end:2] = spectrum.real
        dst[1:end:2] = spectrum.imag
        dst[end:n + 2] = 0
        for k in real_bins(n):
            dst[2 * k + 1] = 0

    def inverse(self, src: np.ndarray, dst: np.ndarray):
        """
        Synthesize size real samples from packed src into dst.

        The imaginary slots of DC and Nyquist are ignored.
        """
        n = self.size
        end = 2 * self.num_bins
        spectrum = src[0:end:2] + 1j * src[1:end:2]
        dst[:n] = np.fft.irfft(spectrum, n=n) * (0.5 * n)


def fast_atan2(y: np.ndarray, x: np.ndarray) -> np.ndarray:
    """
    Approximate arctan2 in single precision.

    Octant reduction plus a quadratic correction of pi/4 * z;
    absolute error stays below 0.0015 rad.
    """
    y = np.asarray(y, dtype=np.float32)
    x = np.asarray(x, dtype=np.float32)
    ax = np.abs(x)
    ay = np.abs(y)

    swap = ay > ax
    num = np.where(swap, ax, ay)
    den = np.where(swap, ay, ax)
    z = np.divide(num, den, out=np.zeros_like(num), where=den > 0)

    a = np.float32(np.pi / 4) * z - z * (z - 1) * (np.float32(0.2447) + np.float32(0.0663) * z)
    a = np.where(swap, np.float32(np.pi / 2) - a, a)
    a = np.where(x < 0, np.float32(np.pi) - a, a)
    return np.copysign(a, y)


def rect_to_polar(buf: np.ndarray, size_dft: int, precise: bool = True):
    """
    Convert a packed spectrum from (re, im) to (magnitude, phase) in place.

    DC and Nyquist keep their signed real value with phase 0.
    """
    end = 2 * (size_dft // 2 + 1)
    re = buf[0:end:2]
    im = buf[1:end:2]
    ends = [(k, re[k]) for k in real_bins(size_dft)]

    if precise:
        mag = np.hypot(re, im)
        phase = np.arctan2(im, re)
    else:
        re32 = re.astype(np.float32)
        im32 = im.astype(np.float32)
        mag = np.sqrt(re32 * re32 + im32 * im32)
        phase = fast_atan2(im32, re32)

    re[:] = mag
    im[:] = phase
    for k, value in ends:
        re[k] = value
        im[k] = 0


def polar_to_rect(buf: np.ndarray, size_dft: int):
    """Convert a packed spectrum from (magnitude, phase) to (re, im) in place."""
    end = 2 * (size_dft // 2 + 1)
    mag = buf[0:end:2]
    phase = buf[1:end:2]
    ends = [(k, mag[k]) for k in real_bins(size_dft)]

    re = mag * np.cos(phase)
    im = mag * np.sin(phase)

    mag[:] = re
    phase[:] = im
    for k, value in ends:
        mag[k] = value
        phase[k] = 0
