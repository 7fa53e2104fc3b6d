"""
Frame-based discrete Fourier transform.

DFTBase owns the packed bin storage shared by every transform in the
package; DFT adds sample buffering, the forward/inverse cycle and zero-padded
overlap-add resynthesis.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np

from .fft import RealFFT, real_bins, rect_to_polar, polar_to_rect
from ..utils.config import DEFAULT_WINDOW_SIZE, DEFAULT_PAD_SIZE, WindowSpec
from ..utils.domain import SampleRateContext
from ..utils.logging_utils import dsp_logger


class SpectralFormat(Enum):
    """How the two slots of each bin are interpreted."""
    COMPLEX = 'complex'        # real, imaginary
    MAG_PHASE = 'mag_phase'    # magnitude, phase (radians)
    MAG_FREQ = 'mag_freq'      # magnitude, frequency deviation (Hz, STFT only)

    @classmethod
    def parse(cls, value: Union['SpectralFormat', str]) -> 'SpectralFormat':
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if key == member.value:
                return member
        raise ValueError(f"Unknown spectral format: {value}")


@dataclass
class FrameBuffers:
    """Zeroed buffers for one DFT size, allocated before any state changes."""
    spec: WindowSpec
    bins: np.ndarray
    aux: np.ndarray
    samples: np.ndarray
    kernel_in: np.ndarray
    frame: np.ndarray
    scratch: np.ndarray
    out: np.ndarray
    pad_ola: np.ndarray


class DFTBase:
    """
    Packed spectrum plus auxiliary scratch buffers.

    Bin k lives in slots 2k and 2k + 1 of one real array of length
    size_dft + 2 and is reached through bin()/set_bin()/bins(), or
    slots() for whole-spectrum work.
    Auxiliary buffers are rows of one contiguous (num_aux, num_bins) array,
    so rows i and i + 1 can serve as the real and imaginary parts of a
    complex scratch buffer.
    """

    def __init__(self, context: Optional[SampleRateContext] = None, dtype=np.float32):
        """
        Initialize empty bin storage.

        Args:
            context: Sample-rate context to follow (a private one if None)
            dtype: NumPy data type of bins and aux buffers
        """
        self._dtype = dtype
        self._context = context if context is not None else SampleRateContext()
        self._subscription = self._context.subscribe(self.on_sample_rate_change)
        self._size_dft = 0
        self._buf = np.zeros(2, dtype=dtype)
        self._aux = np.zeros((0, 1), dtype=dtype)
        self._bin_freq = 0.0

    @property
    def context(self) -> SampleRateContext:
        return self._context

    @property
    def sample_rate(self) -> float:
        return self._context.sample_rate

    @property
    def size_dft(self) -> int:
        """Size of the forward transform."""
        return self._size_dft

    @property
    def num_bins(self) -> int:
        return self._size_dft // 2 + 1

    @property
    def bin_freq(self) -> float:
        """Width of a frequency bin in Hz."""
        return self._bin_freq

    @property
    def num_aux(self) -> int:
        return self._aux.shape[0]

    def on_sample_rate_change(self, sample_rate: float):
        """Recompute the bin width. Nothing else depends on the rate."""
        self._bin_freq = sample_rate / self._size_dft if self._size_dft else 0.0

    def close(self):
        """Stop following the sample-rate context."""
        self._subscription.cancel()

    def _prepare_spectrum(self, size_dft: int) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """Zeroed bins and aux rows for a new transform size, not yet in use."""
        num_bins = size_dft // 2 + 1
        try:
            buf = np.zeros(size_dft + 2, dtype=self._dtype)
            aux = np.zeros((self.num_aux, num_bins), dtype=self._dtype)
        except MemoryError:
            dsp_logger.error(f"Failed to allocate spectrum of size {size_dft}")
            return None
        return buf, aux

    def _commit_spectrum(self, size_dft: int, buf: np.ndarray, aux: np.ndarray):
        self._buf = buf
        self._aux = aux
        self._size_dft = size_dft
        self.on_sample_rate_change(self.sample_rate)

    def _check_bin(self, k: int) -> int:
        k = int(k)
        if not 0 <= k < self.num_bins:
            raise IndexError(f"Bin {k} out of range [0, {self.num_bins})")
        return k

    def slots(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Writable views of the first and second slot of every bin.

        For in-place work on whole spectra; the DC/Nyquist second slots
        must be left at 0.
        """
        end = 2 * self.num_bins
        return self._buf[0:end:2], self._buf[1:end:2]

    def bin(self, k: int) -> complex:
        """
        Value of bin k.

        In polar formats the real part is the magnitude and the imaginary
        part the phase (or frequency deviation).
        """
        k = self._check_bin(k)
        return complex(self._buf[2 * k], self._buf[2 * k + 1])

    def set_bin(self, k: int, value: complex):
        """Set bin k. DC and Nyquist only keep the real part."""
        k = self._check_bin(k)
        value = complex(value)
        self._buf[2 * k] = value.real
        self._buf[2 * k + 1] = 0.0 if k in real_bins(self._size_dft) else value.imag

    def bins(self) -> np.ndarray:
        """Copy of all bins as complex128."""
        first, second = self.slots()
        out = np.empty(self.num_bins, dtype=np.complex128)
        out.real = first
        out.imag = second
        return out

    def set_bins(self, values: np.ndarray):
        """Set every bin from an array of num_bins complex values."""
        values = np.asarray(values)
        if values.shape != (self.num_bins,):
            raise ValueError(f"Expected {self.num_bins} bins, got shape {values.shape}")
        first, second = self.slots()
        first[:] = values.real
        second[:] = values.imag if np.iscomplexobj(values) else 0
        for k in real_bins(self._size_dft):
            second[k] = 0

    def bin_frequencies(self) -> np.ndarray:
        """Centre frequency of each bin in Hz."""
        return np.arange(self.num_bins) * self._bin_freq

    def zero(self):
        """Zero all bins."""
        self._buf.fill(0)

    def zero_ends(self):
        """Zero the DC and the last (Nyquist) bin."""
        last = self.num_bins - 1
        self._buf[0:2] = 0
        self._buf[2 * last:2 * last + 2] = 0

    def set_num_aux(self, count: int) -> bool:
        """
        Allocate count auxiliary buffers of num_bins values, zeroed.

        Returns:
            False if allocation failed; the previous buffers are kept.
        """
        count = max(int(count), 0)
        try:
            aux = np.zeros((count, self.num_bins), dtype=self._dtype)
        except MemoryError:
            dsp_logger.error(f"Failed to allocate {count} aux buffers")
            return False
        self._aux = aux
        return True

    def aux(self, i: int) -> np.ndarray:
        """Writable view of auxiliary buffer i."""
        if not 0 <= i < self.num_aux:
            raise IndexError(f"Aux buffer {i} out of range [0, {self.num_aux})")
        return self._aux[i]

    def aux_pair(self, i: int) -> Tuple[np.ndarray, np.ndarray]:
        """Aux buffers i and i + 1, used as real and imaginary parts."""
        return self.aux(i), self.aux(i + 1)

    def zero_aux(self, i: Optional[int] = None):
        """Zero one auxiliary buffer, or all of them."""
        if i is None:
            self._aux.fill(0)
        else:
            self.aux(i).fill(0)


class DFT(DFTBase):
    """
    Discrete Fourier transform driven one frame at a time.

    The hop equals the window size. feed() collects samples and runs
    forward() every window; read_next() returns resynthesized samples and
    runs inverse() every window. Padding zeros are appended to each window;
    the part of the resynthesized frame that spills past the window is
    kept and added into the following blocks.
    """

    def __init__(
        self,
        win_size: int = DEFAULT_WINDOW_SIZE,
        pad_size: int = DEFAULT_PAD_SIZE,
        spectral_format: Union[SpectralFormat, str] = SpectralFormat.COMPLEX,
        num_aux: int = 0,
        precise: bool = True,
        context: Optional[SampleRateContext] = None,
    ):
        """
        Initialize DFT.

        Args:
            win_size: Number of samples in window
            pad_size: Number of zeros appended to window
            spectral_format: Format of spectrum data after forward()
            num_aux: Number of auxiliary buffers of num_bins values
            precise: Exact (True) or fast approximate polar conversion
            context: Sample-rate context
        """
        super().__init__(context=context, dtype=np.float32)
        self._format = SpectralFormat.parse(spectral_format)
        self._precise = bool(precise)
        self._size_win = 0
        self._size_pad = 0

        if not self.resize(win_size, pad_size):
            raise MemoryError(f"Cannot allocate DFT of size {win_size} + {pad_size}")
        self.set_num_aux(num_aux)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def resize(self, win_size: int, pad_size: int) -> bool:
        """
        Set window and zero-padding size, discarding all frame state.

        Window is clamped to >= 1 and padding to >= 0.

        Returns:
            False if buffers could not be allocated (previous state kept)
        """
        buffers = self.allocate(win_size, pad_size)
        if buffers is None:
            return False
        self.attach(buffers)
        return True

    def allocate(self, win_size: int, pad_size: int) -> Optional[FrameBuffers]:
        """
        Zeroed buffers for a new window and padding size.

        The transform is not changed until the buffers are passed to
        attach(), so a failed allocation leaves it usable.

        Returns:
            The buffers, or None if any allocation failed
        """
        spec = WindowSpec(win_size, win_size, pad_size)
        if spec.window_size != win_size or spec.pad_size != pad_size:
            dsp_logger.warning(
                f"DFT size ({win_size}, {pad_size}) clamped to "
                f"({spec.window_size}, {spec.pad_size})"
            )
        size_dft = spec.size_dft

        spectrum = self._prepare_spectrum(size_dft)
        if spectrum is None:
            return None
        try:
            return FrameBuffers(
                spec=spec,
                bins=spectrum[0],
                aux=spectrum[1],
                samples=np.zeros(spec.window_size, dtype=np.float32),
                kernel_in=np.zeros(size_dft, dtype=np.float32),
                frame=np.zeros(size_dft, dtype=np.float32),
                scratch=np.zeros(size_dft + 2, dtype=np.float32),
                out=np.zeros(spec.window_size, dtype=np.float32),
                pad_ola=np.zeros(spec.pad_size, dtype=np.float32),
            )
        except MemoryError:
            dsp_logger.error(f"Failed to allocate DFT buffers of size {size_dft}")
            return None

    def attach(self, buffers: FrameBuffers):
        """Switch to buffers from allocate(), discarding all frame state."""
        spec = buffers.spec
        self._commit_spectrum(spec.size_dft, buffers.bins, buffers.aux)
        self._size_win = spec.window_size
        self._size_pad = spec.pad_size
        self._in = buffers.samples
        self._kernel_in = buffers.kernel_in
        self._frame = buffers.frame
        self._scratch = buffers.scratch
        self._out = buffers.out
        self._pad_ola = buffers.pad_ola
        self._fft = RealFFT(spec.size_dft)
        self._norm = 2.0 / spec.size_dft
        self._tap_w = 0
        self._tap_r = 0

        dsp_logger.debug(f"Resized {self.describe()}")

    @property
    def spectral_format(self) -> SpectralFormat:
        return self._format

    @spectral_format.setter
    def spectral_format(self, value: Union[SpectralFormat, str]):
        self._format = SpectralFormat.parse(value)

    @property
    def precise(self) -> bool:
        return self._precise

    @precise.setter
    def precise(self, value: bool):
        self._precise = bool(value)

    @property
    def size_win(self) -> int:
        return self._size_win

    @property
    def size_pad(self) -> int:
        return self._size_pad

    @property
    def size_hop(self) -> int:
        return self._size_win

    @property
    def freq_res(self) -> float:
        """Frequency resolution of the analysis window in Hz."""
        return self.sample_rate / self._size_win

    @property
    def overlap(self) -> float:
        return self._size_win / self.size_hop

    @property
    def overlapping(self) -> bool:
        return self.size_hop < self._size_win

    @property
    def hop_duration(self) -> float:
        """Seconds between successive frames."""
        return self.size_hop / self.sample_rate

    @property
    def output(self) -> np.ndarray:
        """Read-only view of the last resynthesized block."""
        view = self._out.view()
        view.flags.writeable = False
        return view

    def describe(self) -> str:
        return (
            f"DFT(win={self._size_win}, pad={self._size_pad}, bins={self.num_bins}, "
            f"format={self._format.name}, bin_freq={self.bin_freq:.3f} Hz)"
        )

    # ------------------------------------------------------------------
    # Format conversion
    # ------------------------------------------------------------------

    def to_polar(self):
        """Convert bins from rectangular to polar form in place."""
        rect_to_polar(self._buf, self._size_dft, self._precise)

    def to_rect(self):
        """Convert bins from polar to rectangular form in place."""
        polar_to_rect(self._buf, self._size_dft)

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def forward(self, samples: np.ndarray):
        """
        Forward transform of one window of samples.

        Args:
            samples: At least size_win samples; a shorter array is
                zero-filled to the window size
        """
        samples = np.asarray(samples)
        n = min(len(samples), self._size_win)
        self._kernel_in[:n] = samples[:n]
        self._kernel_in[n:] = 0

        self._fft.forward(self._kernel_in, self._buf)
        if self._format is not SpectralFormat.COMPLEX:
            rect_to_polar(self._buf, self._size_dft, self._precise)

    def synthesize(self, phases: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Inverse transform of the current bins into the size_dft frame buffer.

        Works on a copy, so the bins keep their format. phases, if given,
        replaces the second slot of every bin before polar conversion.
        No overlap-add is done; the returned buffer is overwritten by the
        next call and may be modified by the caller until then.
        """
        work = self._scratch
        work[:] = self._buf
        if phases is not None:
            work[1:2 * self.num_bins:2] = phases
        if self._format is not SpectralFormat.COMPLEX:
            polar_to_rect(work, self._size_dft)

        work *= self._norm
        self._fft.inverse(work, self._frame)
        return self._frame

    def inverse(self, dst: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Inverse transform of the current bins.

        Args:
            dst: Optional destination for size_win samples

        Returns:
            Read-only view of the resynthesized block
        """
        frame = self.synthesize()
        win = self._size_win
        pad = self._size_pad

        self._out[:] = frame[:win]
        if pad > 0:
            ola = self._pad_ola
            n = min(pad, win)
            self._out[:n] += ola[:n]
            # Spill longer than a window moves up by one block
            rest = pad - n
            ola[:rest] = ola[win:win + rest]
            ola[rest:] = 0
            ola += frame[win:win + pad]

        if dst is not None:
            dst[:win] = self._out
        return self.output

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def feed(self, sample: float) -> bool:
        """
        Read in the next sample for a forward transform.

        Returns:
            True when a window was completed and forward() has run
        """
        self._in[self._tap_w] = sample
        self._tap_w += 1
        if self._tap_w >= self._size_win:
            self._tap_w = 0
            self.forward(self._in)
            return True
        return False

    def read_next(self) -> float:
        """Next resynthesized sample; inverse() runs every size_hop calls."""
        self._tap_r += 1
        if self._tap_r >= self.size_hop:
            self.inverse()
            self._tap_r = 0
        return float(self._out[self._tap_r])

    def inverse_on_next(self) -> bool:
        """Whether the next read_next() call will run inverse()."""
        return self._tap_r == self.size_hop - 1
