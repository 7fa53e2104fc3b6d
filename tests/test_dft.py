"""
Unit tests for DFTBase and the frame DFT.

Test Coverage:
    - Bin storage: packing, bounds, DC/Nyquist handling, aux buffers
    - DFT: impulse response, identity round trip, padded overlap-add,
      streaming latency, polar formats, sample-rate updates

Run:
    pytest tests/test_dft.py -v
"""

import logging

import numpy as np
import pytest

from streamspec.dsp import DFT, SpectralFormat
from streamspec.utils.domain import SampleRateContext


class TestBinStorage:
    """Test suite for packed bin access."""

    def test_num_bins_derived(self):
        assert DFT(8).num_bins == 5
        assert DFT(7).num_bins == 4
        assert DFT(8, pad_size=8).num_bins == 9

    def test_bin_out_of_range(self):
        d = DFT(8)
        with pytest.raises(IndexError):
            d.bin(5)
        with pytest.raises(IndexError):
            d.set_bin(-1, 1.0)

    def test_real_bins_drop_imaginary(self):
        d = DFT(8)
        d.set_bin(0, 1 + 2j)
        d.set_bin(4, 3 - 1j)
        d.set_bin(2, 0.5 + 0.25j)
        assert d.bin(0) == 1 + 0j
        assert d.bin(4) == 3 + 0j
        assert d.bin(2) == 0.5 + 0.25j

    def test_odd_size_last_bin_complex(self):
        """With odd N the last bin is an ordinary complex bin."""
        d = DFT(7)
        d.set_bin(3, 1 + 1j)
        assert d.bin(3) == 1 + 1j

    def test_set_bins(self):
        d = DFT(8)
        values = np.array([1, 1j, 2 + 2j, -1j, 4 + 4j])
        d.set_bins(values)
        np.testing.assert_array_equal(d.bins(), [1, 1j, 2 + 2j, -1j, 4])

    def test_set_bins_shape_mismatch(self):
        with pytest.raises(ValueError):
            DFT(8).set_bins(np.zeros(4))

    def test_zero_ends(self):
        d = DFT(8)
        d.set_bins(np.full(5, 1 + 1j))
        d.zero_ends()
        bins = d.bins()
        assert bins[0] == 0 and bins[4] == 0
        np.testing.assert_array_equal(bins[1:4], np.full(3, 1 + 1j))

    def test_zero(self):
        d = DFT(8)
        d.set_bins(np.ones(5))
        d.zero()
        np.testing.assert_array_equal(d.bins(), np.zeros(5))

    def test_bin_frequencies(self, context):
        d = DFT(1024, context=context)
        assert d.bin_freq == pytest.approx(44100.0 / 1024)
        np.testing.assert_allclose(d.bin_frequencies()[:3], [0, d.bin_freq, 2 * d.bin_freq])


class TestAux:
    """Test suite for auxiliary buffers."""

    def test_aux_shape_and_bounds(self):
        d = DFT(8, num_aux=2)
        assert d.num_aux == 2
        assert d.aux(0).shape == (5,)
        with pytest.raises(IndexError):
            d.aux(2)
        with pytest.raises(IndexError):
            d.aux(-1)

    def test_aux_pair_is_writable(self):
        d = DFT(8, num_aux=2)
        re, im = d.aux_pair(0)
        re[:] = 1.0
        im[:] = 2.0
        np.testing.assert_array_equal(d.aux(0), np.ones(5))
        np.testing.assert_array_equal(d.aux(1), np.full(5, 2.0))

    def test_aux_pair_needs_two_buffers(self):
        d = DFT(8, num_aux=1)
        with pytest.raises(IndexError):
            d.aux_pair(0)

    def test_resize_keeps_aux_count(self):
        """Aux buffers follow the new bin count and come back zeroed."""
        d = DFT(8, num_aux=2)
        d.aux(0)[:] = 1.0
        assert d.resize(16, 0)
        assert d.num_aux == 2
        assert d.aux(1).shape == (9,)
        np.testing.assert_array_equal(d.aux(0), np.zeros(9))

    def test_set_num_aux(self):
        d = DFT(8)
        assert d.set_num_aux(3)
        assert d.num_aux == 3
        np.testing.assert_array_equal(d.aux(2), np.zeros(5))

    def test_zero_aux(self):
        d = DFT(8, num_aux=2)
        d.aux(0)[:] = 1.0
        d.aux(1)[:] = 1.0
        d.zero_aux(0)
        np.testing.assert_array_equal(d.aux(0), np.zeros(5))
        np.testing.assert_array_equal(d.aux(1), np.ones(5))
        d.zero_aux()
        np.testing.assert_array_equal(d.aux(1), np.zeros(5))


class TestDFT:
    """Test suite for the frame DFT."""

    def test_impulse(self):
        """Impulse gives unit bins, and the inverse gives the impulse back."""
        d = DFT(8)
        x = np.zeros(8)
        x[0] = 1.0
        d.forward(x)
        bins = d.bins()
        np.testing.assert_allclose(np.abs(bins), np.ones(5), atol=1e-6)
        np.testing.assert_allclose(np.angle(bins), np.zeros(5), atol=1e-6)

        out = d.inverse()
        np.testing.assert_allclose(out, x, atol=1e-6)

    def test_impulse_mag_phase(self):
        d = DFT(8, spectral_format='mag_phase')
        x = np.zeros(8)
        x[0] = 1.0
        d.forward(x)
        bins = d.bins()
        np.testing.assert_allclose(bins.real, np.ones(5), atol=1e-6)
        np.testing.assert_allclose(bins.imag, np.zeros(5), atol=1e-6)

    @pytest.mark.parametrize("n", [1, 2, 7, 8, 64, 100])
    def test_identity_round_trip(self, rng, n):
        x = rng.standard_normal(n)
        d = DFT(n)
        d.forward(x)
        error = np.abs(d.inverse() - x).max()
        assert error < 1e-4, f"Round trip error too large for N={n}: {error}"

    @pytest.mark.parametrize("fmt", ['mag_phase', 'mag_freq'])
    def test_polar_round_trip(self, rng, fmt):
        x = rng.standard_normal(32)
        d = DFT(32, spectral_format=fmt)
        d.forward(x)
        np.testing.assert_allclose(d.inverse(), x, atol=1e-4)

    def test_inverse_keeps_bin_format(self, rng):
        d = DFT(16, spectral_format='mag_phase')
        d.forward(rng.standard_normal(16))
        before = d.bins()
        d.inverse()
        np.testing.assert_array_equal(d.bins(), before)

    def test_short_input_zero_filled(self):
        d = DFT(8)
        d.forward(np.array([1.0]))
        np.testing.assert_allclose(np.abs(d.bins()), np.ones(5), atol=1e-6)

    def test_inverse_into_destination(self, rng):
        x = rng.standard_normal(8)
        d = DFT(8)
        d.forward(x)
        dst = np.zeros(8)
        d.inverse(dst)
        np.testing.assert_allclose(dst, x, atol=1e-5)

    def test_output_read_only(self):
        d = DFT(8)
        with pytest.raises(ValueError):
            d.inverse()[0] = 1.0

    def test_to_polar_and_back(self, rng):
        d = DFT(16)
        d.forward(rng.standard_normal(16))
        before = d.bins()
        d.to_polar()
        polar = d.bins()
        np.testing.assert_allclose(polar.real[1:-1], np.abs(before[1:-1]), rtol=1e-5)
        assert polar[0].real == pytest.approx(before[0].real)
        d.to_rect()
        np.testing.assert_allclose(d.bins(), before, rtol=1e-5, atol=1e-5)

    def test_fast_polar_close_to_precise(self, rng):
        x = rng.standard_normal(64)
        precise = DFT(64, spectral_format='mag_phase', precise=True)
        fast = DFT(64, spectral_format='mag_phase', precise=False)
        precise.forward(x)
        fast.forward(x)
        p = precise.bins()
        f = fast.bins()
        phase_error = np.abs(np.angle(np.exp(1j * (f.imag - p.imag)))).max()
        assert phase_error < 2e-3, f"Fast phase error too large: {phase_error}"

    def test_forward_deterministic(self, rng):
        x = rng.standard_normal(64)
        a = DFT(64, spectral_format='mag_phase', precise=False)
        b = DFT(64, spectral_format='mag_phase', precise=False)
        a.forward(x)
        b.forward(x)
        np.testing.assert_array_equal(a.bins(), b.bins())

    def test_padded_spill_added_to_next_block(self):
        """The part of a frame past the window comes out in the next block."""
        d = DFT(8, pad_size=8)
        frame = np.zeros(16)
        frame[10] = 1.0
        d.set_bins(np.fft.rfft(frame))
        np.testing.assert_allclose(d.inverse(), np.zeros(8), atol=1e-6)

        d.zero()
        out = d.inverse()
        expected = np.zeros(8)
        expected[2] = 1.0
        np.testing.assert_allclose(out, expected, atol=1e-6)

    def test_pad_longer_than_window(self):
        d = DFT(4, pad_size=8)
        frame = np.zeros(12)
        frame[9] = 1.0
        d.set_bins(np.fft.rfft(frame))
        d.inverse()
        d.zero()
        np.testing.assert_allclose(d.inverse(), np.zeros(4), atol=1e-6)
        out = d.inverse()
        np.testing.assert_allclose(out, [0, 1, 0, 0], atol=1e-6)

    def test_streaming_impulse_latency(self, stream):
        """Output is the input delayed by win - 1 samples."""
        d = DFT(8)
        x = np.zeros(24)
        x[0] = 1.0
        y = stream(d, x)
        expected = np.zeros(24)
        expected[7] = 1.0
        np.testing.assert_allclose(y, expected, atol=1e-6)

    def test_streaming_padded_identity(self, rng, stream):
        d = DFT(16, pad_size=16)
        x = rng.standard_normal(160)
        y = stream(d, x)
        np.testing.assert_allclose(y[15:], x[:-15], atol=1e-4)

    def test_feed_reports_forward(self):
        d = DFT(4)
        ready = [d.feed(1.0) for _ in range(8)]
        assert ready == [False, False, False, True] * 2

    def test_inverse_on_next(self):
        d = DFT(4)
        flags = []
        for _ in range(8):
            flags.append(d.inverse_on_next())
            d.read_next()
        assert flags == [False, False, False, True] * 2

    def test_sizes_clamped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="streamspec.dsp"):
            d = DFT(0, -3)
        assert d.size_win == 1
        assert d.size_pad == 0
        assert "clamped" in caplog.text

    def test_derived_quantities(self, context):
        d = DFT(441, pad_size=441, context=context)
        assert d.size_hop == 441
        assert d.size_dft == 882
        assert d.freq_res == pytest.approx(100.0)
        assert d.bin_freq == pytest.approx(50.0)
        assert d.hop_duration == pytest.approx(0.01)
        assert d.overlap == 1.0
        assert not d.overlapping
        assert "win=441" in d.describe()

    def test_format_parse(self):
        assert SpectralFormat.parse('mag_freq') is SpectralFormat.MAG_FREQ
        with pytest.raises(ValueError):
            DFT(8, spectral_format='polar')


class TestSampleRate:
    """Test suite for sample-rate broadcasts to bin storage."""

    def test_rate_change_updates_bin_freq(self):
        ctx = SampleRateContext(48000)
        d = DFT(1024, context=ctx)
        assert d.bin_freq == pytest.approx(48000 / 1024)
        ctx.sample_rate = 96000
        assert d.bin_freq == pytest.approx(96000 / 1024)
        assert d.freq_res == pytest.approx(96000 / 1024)

    def test_close_unsubscribes(self):
        ctx = SampleRateContext(48000)
        d = DFT(1024, context=ctx)
        assert ctx.num_subscribers == 1
        d.close()
        assert ctx.num_subscribers == 0
        ctx.sample_rate = 96000
        assert d.bin_freq == pytest.approx(48000 / 1024)

    def test_private_context(self):
        d = DFT(100)
        assert d.sample_rate == 44100.0
        assert d.bin_freq == pytest.approx(441.0)


class TestPublicSeams:
    """Test suite for slots() and synthesize()."""

    def test_slots_are_writable_views(self):
        d = DFT(8)
        first, second = d.slots()
        assert first.shape == (5,)
        first[:] = 2.0
        second[1:4] = 1.0
        assert d.bin(3) == 2 + 1j
        assert d.bin(0) == 2 + 0j

    def test_synthesize_skips_overlap_add(self):
        """synthesize() returns the whole frame and keeps no spill."""
        d = DFT(8, pad_size=8)
        frame = np.zeros(16)
        frame[10] = 1.0
        d.set_bins(np.fft.rfft(frame))
        np.testing.assert_allclose(d.synthesize(), frame, atol=1e-6)
        np.testing.assert_allclose(d.synthesize(), frame, atol=1e-6)
        np.testing.assert_allclose(d.inverse(), np.zeros(8), atol=1e-6)

    def test_synthesize_with_phases(self):
        d = DFT(8, spectral_format='mag_phase')
        d.set_bins(np.ones(5))
        phases = np.zeros(5)
        phases[1] = np.pi
        frame = d.synthesize(phases)
        expected = np.fft.irfft(np.array([1, -1, 1, 1, 1]), n=8)
        np.testing.assert_allclose(frame, expected, atol=1e-6)
        assert d.bin(1) == 1 + 0j


class TestFailedAllocation:
    """A resize that cannot allocate leaves the DFT usable."""

    def test_resize_failure(self, rng, stream, refuse_zeros):
        d = DFT(8, num_aux=1)
        x = rng.standard_normal(64)
        y_first = stream(d, x[:20])

        with refuse_zeros(np.float32):
            assert not d.resize(16, 4)

        assert (d.size_win, d.size_pad, d.num_bins) == (8, 0, 5)
        assert d.aux(0).shape == (5,)
        y = np.concatenate([y_first, stream(d, x[20:])])
        np.testing.assert_allclose(y[7:], x[:-7], atol=1e-5)

    def test_allocate_does_not_change_transform(self):
        d = DFT(8)
        buffers = d.allocate(16, 4)
        assert buffers.spec.size_dft == 20
        assert d.size_dft == 8
        d.attach(buffers)
        assert (d.size_win, d.size_pad, d.num_bins) == (16, 4, 11)

    def test_set_num_aux_failure(self, refuse_zeros):
        d = DFT(8, num_aux=2)
        d.aux(0)[:] = 1.0
        with refuse_zeros(np.float32):
            assert not d.set_num_aux(4)
        assert d.num_aux == 2
        np.testing.assert_array_equal(d.aux(0), np.ones(5))
