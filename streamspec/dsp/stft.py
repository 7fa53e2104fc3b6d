"""
STFT (Short-Time Fourier Transform) module for real-time processing.
Provides windowing, phase-vocoder analysis/synthesis and overlap-add
reconstruction on top of a frame DFT.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Union, runtime_checkable

import numpy as np

from .dft import DFT, SpectralFormat
from .fft import TWO_PI, wrap_phase
from .windows import WindowType, make_window, normalized_window, overlap_add_gain
from ..audio.ringbuffer import SlidingWindow
from ..utils.config import (
    DEFAULT_WINDOW_SIZE,
    DEFAULT_HOP_SIZE,
    DEFAULT_PAD_SIZE,
    MIN_HOP_SIZE,
    STFTConfig,
    WindowSpec,
    clamp,
)
from ..utils.domain import SampleRateContext
from ..utils.logging_utils import dsp_logger


@runtime_checkable
class SpectralTransform(Protocol):
    """Anything that turns a window of samples into bins and back."""

    def forward(self, samples: np.ndarray) -> None:
        ...

    def inverse(self, dst: Optional[np.ndarray] = None) -> np.ndarray:
        ...


@dataclass
class StreamState:
    """Windows, phase state and overlap-add buffers for one STFT size."""
    spec: WindowSpec
    frame_in: np.ndarray
    fwd_win: np.ndarray
    inv_win: np.ndarray
    phases: np.ndarray
    accums: np.ndarray
    ola: np.ndarray
    out: np.ndarray


class STFT:
    """
    Real-time STFT processor.

    Built from a SlidingWindow, which releases a window every hop, and a
    DFT, which holds the bins. In MAG_FREQ format each interior bin carries
    its magnitude and its frequency deviation from the bin centre in Hz;
    per-bin phase state makes the round trip through that format lossless.
    """

    def __init__(
        self,
        win_size: int = DEFAULT_WINDOW_SIZE,
        hop_size: int = DEFAULT_HOP_SIZE,
        pad_size: int = DEFAULT_PAD_SIZE,
        window_type: Union[WindowType, str] = WindowType.RECTANGLE,
        spectral_format: Union[SpectralFormat, str] = SpectralFormat.COMPLEX,
        num_aux: int = 0,
        precise: bool = True,
        rotate_forward: bool = False,
        inverse_windowing: bool = False,
        context: Optional[SampleRateContext] = None,
    ):
        """
        Initialize STFT processor.

        Args:
            win_size: Number of samples to window
            hop_size: Number of samples between successive windows
            pad_size: Number of zeros to append to window
            window_type: Shape of the analysis window
            spectral_format: Format of spectrum data
            num_aux: Number of auxiliary buffers to create
            precise: Exact (True) or fast approximate polar conversion
            rotate_forward: Rotate windowed samples by half a window
            inverse_windowing: Window resynthesized frames before overlap-add
            context: Sample-rate context
        """
        self._dft = DFT(win_size, pad_size, spectral_format, num_aux, precise, context)
        self._slide = SlidingWindow(self._dft.size_win, hop_size)
        self._window_type = WindowType.parse(window_type)
        self._inverse_window_type = WindowType.HANN
        self._window_inverse = bool(inverse_windowing)
        self._rotate_forward = bool(rotate_forward)

        # Subscribed after the DFT so bin_freq is current in our handler
        self._subscription = self._dft.context.subscribe(self.on_sample_rate_change)

        state = self._prepare_state(
            WindowSpec(self.size_win, self.size_hop, self.size_pad))
        if state is None:
            raise MemoryError(f"Cannot allocate STFT state for window {win_size}")
        self._commit_state(state)

    @classmethod
    def from_config(cls, config: STFTConfig,
                    context: Optional[SampleRateContext] = None) -> 'STFT':
        """Build an STFT from a configuration (new context at its rate if none)."""
        if context is None:
            context = SampleRateContext(config.sample_rate)
        return cls(
            win_size=config.window.window_size,
            hop_size=config.window.hop_size,
            pad_size=config.window.pad_size,
            window_type=config.window_type,
            spectral_format=config.spectral_format,
            num_aux=config.num_aux,
            precise=config.precise,
            rotate_forward=config.rotate_forward,
            inverse_windowing=config.inverse_windowing,
            context=context,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _prepare_state(self, spec: WindowSpec) -> Optional[StreamState]:
        """Zeroed windows, phase state and overlap-add buffers, not yet in use."""
        win = spec.window_size
        try:
            return StreamState(
                spec=spec,
                frame_in=np.zeros(win, dtype=np.float32),
                fwd_win=normalized_window(self._window_type, win),
                inv_win=make_window(self._inverse_window_type, win),
                phases=np.zeros(spec.num_bins, dtype=np.float32),
                accums=np.zeros(spec.num_bins, dtype=np.float64),
                ola=np.zeros(spec.size_dft, dtype=np.float32),
                out=np.zeros(spec.hop_size, dtype=np.float32),
            )
        except MemoryError:
            dsp_logger.error(f"Failed to allocate STFT state for window {win}")
            return None

    def _commit_state(self, state: StreamState):
        """Switch to prepared state; the DFT and window must already match it."""
        self._frame_in = state.frame_in
        self._fwd_win = state.fwd_win
        self._inv_win = state.inv_win
        self._phases = state.phases
        self._accums = state.accums
        self._ola = state.ola
        self._out = state.out
        self._tap_r = 0

        size_dft = state.spec.size_dft
        num_bins = state.spec.num_bins
        # Expected phase advance of each bin over one hop
        self._expected = TWO_PI * np.arange(num_bins) * state.spec.hop_size / size_dft
        last = num_bins - 1 if size_dft % 2 == 0 else num_bins
        self._interior = slice(1, max(last, 1))

        self._compute_inv_win_mul()
        self.on_sample_rate_change(self.sample_rate)

    def _compute_inv_win_mul(self):
        """Unity-gain factor for overlap-adding windowed frames."""
        if self._window_inverse and self.overlapping:
            gain = overlap_add_gain(self._fwd_win, self.size_hop, self._inv_win)
        else:
            gain = overlap_add_gain(self._fwd_win, self.size_hop)
        self._inv_win_mul = 1.0 / gain if gain > 0 else 1.0

    def on_sample_rate_change(self, sample_rate: float):
        """Recompute the phase-per-hop to Hz conversion."""
        self._dev_to_hz = sample_rate / (TWO_PI * self.size_hop)

    def reset(self):
        """Clear buffered samples, overlap-add spill and phase state."""
        self._slide.reset()
        self._ola.fill(0)
        self._out.fill(0)
        self._tap_r = 0
        self.reset_phases()

    def reset_phases(self) -> 'STFT':
        """
        Zero the analysis phases and synthesis accumulators (MAG_FREQ).

        Removes phase smearing after discontinuous edits such as pitch
        shifting.
        """
        self._phases.fill(0)
        self._accums.fill(0)
        return self

    def close(self):
        """Stop following the sample-rate context."""
        self._subscription.cancel()
        self._dft.close()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def resize(self, win_size: int, pad_size: int, hop_size: Optional[int] = None) -> bool:
        """
        Set window, padding (and optionally hop) size; discards all state.

        Hop is re-clamped into [1, win_size]. Every buffer is allocated
        before anything is switched over, so on failure the previous
        configuration stays in use.

        Returns:
            False if buffers could not be allocated
        """
        hop = self.size_hop if hop_size is None else hop_size
        frame = self._dft.allocate(win_size, pad_size)
        if frame is None:
            return False
        spec = WindowSpec(frame.spec.window_size, hop, frame.spec.pad_size)
        window = self._slide.allocate(spec.window_size)
        if window is None:
            return False
        state = self._prepare_state(spec)
        if state is None:
            return False

        self._dft.attach(frame)
        self._slide.attach(window, hop)
        self._commit_state(state)
        return True

    def set_size_hop(self, hop_size: int) -> bool:
        """
        Set hop size, clamped into [1, size_win]; discards frame state.

        Returns:
            False if buffers could not be allocated (previous hop kept)
        """
        hop = clamp(hop_size, MIN_HOP_SIZE, self.size_win)
        state = self._prepare_state(WindowSpec(self.size_win, hop, self.size_pad))
        if state is None:
            return False

        self._slide.set_size_hop(hop_size)
        self._slide.reset()
        self._commit_state(state)
        return True

    def set_window_type(self, window_type: Union[WindowType, str]) -> 'STFT':
        self._window_type = WindowType.parse(window_type)
        self._fwd_win = normalized_window(self._window_type, self.size_win)
        self._compute_inv_win_mul()
        dsp_logger.debug(f"Analysis window set to {self._window_type.name}")
        return self

    def set_inverse_windowing(self, enabled: bool,
                              window_type: Optional[Union[WindowType, str]] = None) -> 'STFT':
        """Whether to window resynthesized frames (only used when overlapping)."""
        self._window_inverse = bool(enabled)
        if window_type is not None:
            self._inverse_window_type = WindowType.parse(window_type)
            self._inv_win = make_window(self._inverse_window_type, self.size_win)
        self._compute_inv_win_mul()
        return self

    def set_rotate_forward(self, enabled: bool) -> 'STFT':
        """Whether to rotate windowed samples by half a window (zero-phase)."""
        self._rotate_forward = bool(enabled)
        return self

    @property
    def frame(self) -> DFT:
        """The DFT holding the current bins."""
        return self._dft

    @property
    def window_type(self) -> WindowType:
        return self._window_type

    @property
    def inverse_windowing(self) -> bool:
        return self._window_inverse

    @property
    def rotate_forward(self) -> bool:
        return self._rotate_forward

    @property
    def inverse_gain(self) -> float:
        """Scale applied to resynthesized frames before overlap-add."""
        return self._inv_win_mul

    @property
    def spectral_format(self) -> SpectralFormat:
        return self._dft.spectral_format

    @spectral_format.setter
    def spectral_format(self, value: Union[SpectralFormat, str]):
        self._dft.spectral_format = value
        self.reset_phases()

    @property
    def precise(self) -> bool:
        return self._dft.precise

    @precise.setter
    def precise(self, value: bool):
        self._dft.precise = value

    # ------------------------------------------------------------------
    # Sizes (delegated)
    # ------------------------------------------------------------------

    @property
    def context(self) -> SampleRateContext:
        return self._dft.context

    @property
    def sample_rate(self) -> float:
        return self._dft.sample_rate

    @property
    def size_win(self) -> int:
        return self._dft.size_win

    @property
    def size_pad(self) -> int:
        return self._dft.size_pad

    @property
    def size_hop(self) -> int:
        return self._slide.size_hop

    @property
    def size_dft(self) -> int:
        return self._dft.size_dft

    @property
    def num_bins(self) -> int:
        return self._dft.num_bins

    @property
    def bin_freq(self) -> float:
        return self._dft.bin_freq

    @property
    def freq_res(self) -> float:
        return self._dft.freq_res

    @property
    def overlap(self) -> float:
        return self.size_win / self.size_hop

    @property
    def overlapping(self) -> bool:
        return self.size_hop < self.size_win

    @property
    def hop_duration(self) -> float:
        """Seconds between successive frames."""
        return self.size_hop / self.sample_rate

    # ------------------------------------------------------------------
    # Bin access (delegated)
    # ------------------------------------------------------------------

    def bin(self, k: int) -> complex:
        return self._dft.bin(k)

    def set_bin(self, k: int, value: complex):
        self._dft.set_bin(k, value)

    def bins(self) -> np.ndarray:
        return self._dft.bins()

    def set_bins(self, values: np.ndarray):
        self._dft.set_bins(values)

    def bin_frequencies(self) -> np.ndarray:
        return self._dft.bin_frequencies()

    def zero(self):
        self._dft.zero()

    def zero_ends(self):
        self._dft.zero_ends()

    @property
    def num_aux(self) -> int:
        return self._dft.num_aux

    def set_num_aux(self, count: int) -> bool:
        return self._dft.set_num_aux(count)

    def aux(self, i: int) -> np.ndarray:
        return self._dft.aux(i)

    def aux_pair(self, i: int):
        return self._dft.aux_pair(i)

    def phases(self) -> np.ndarray:
        """Read-only view of the last analysis phases (MAG_FREQ)."""
        view = self._phases.view()
        view.flags.writeable = False
        return view

    def accum_phases(self) -> np.ndarray:
        """Read-only view of the synthesis phase accumulators (MAG_FREQ)."""
        view = self._accums.view()
        view.flags.writeable = False
        return view

    def bin_frequency(self, k: int) -> float:
        """
        Frequency of bin k in Hz.

        In MAG_FREQ format this is the bin centre plus the measured
        deviation; otherwise just the bin centre.
        """
        centre = k * self.bin_freq
        if self.spectral_format is SpectralFormat.MAG_FREQ:
            return centre + self._dft.bin(k).imag
        return centre

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def feed(self, sample: float) -> bool:
        """
        Input next time-domain sample.

        Returns:
            True when a new spectral frame is available
        """
        if self._slide.feed_into(self._frame_in, sample):
            self._analyze()
            return True
        return False

    def forward(self, samples: np.ndarray):
        """Window and transform size_win samples."""
        samples = np.asarray(samples)
        n = min(len(samples), self.size_win)
        self._frame_in[:n] = samples[:n]
        self._frame_in[n:] = 0
        self._analyze()

    def _analyze(self):
        frame = self._frame_in
        frame *= self._fwd_win
        if self._rotate_forward:
            frame[:] = np.roll(frame, -(self.size_win // 2))

        self._dft.forward(frame)
        if self.spectral_format is SpectralFormat.MAG_FREQ:
            self._phase_to_freq()

    def _phase_to_freq(self):
        """Replace interior phases by their deviation from the expected advance."""
        _, phase = self._dft.slots()
        i = self._interior

        current = phase[i].copy()
        dp = wrap_phase(current - self._phases[i] - self._expected[i])
        self._phases[i] = current
        phase[i] = dp * self._dev_to_hz

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------

    def _freq_to_phase(self) -> np.ndarray:
        """Advance the accumulators by each bin's expected advance plus deviation."""
        _, dev = self._dft.slots()
        i = self._interior

        self._accums[i] += self._expected[i] + dev[i] / self._dev_to_hz
        self._accums[i] = wrap_phase(self._accums[i])
        return self._accums

    def inverse(self, dst: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Resynthesize the current bins and overlap-add them.

        Args:
            dst: Optional destination for size_hop samples

        Returns:
            Read-only view of the next size_hop output samples
        """
        phases = None
        if self.spectral_format is SpectralFormat.MAG_FREQ:
            phases = self._freq_to_phase()

        frame = self._dft.synthesize(phases)
        win = self.size_win

        if self._rotate_forward:
            frame[:win] = np.roll(frame[:win], win // 2)
        if self._window_inverse and self.overlapping:
            frame[:win] *= self._inv_win
        frame *= self._inv_win_mul

        hop = self.size_hop
        keep = len(self._ola) - hop
        self._ola += frame
        self._out[:] = self._ola[:hop]
        self._ola[:keep] = self._ola[hop:]
        self._ola[keep:] = 0

        if dst is not None:
            dst[:hop] = self._out
        view = self._out.view()
        view.flags.writeable = False
        return view

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
