"""
Unit tests for configuration, the sample-rate context and logging setup.

Run:
    pytest tests/test_config.py -v
"""

import logging

import pytest

from streamspec.utils.config import (
    STFTConfig,
    WindowSpec,
    clamp,
    load_config,
    save_config,
)
from streamspec.utils.domain import SampleRateContext
from streamspec.utils.logging_utils import dsp_logger, set_level, setup_logger


class TestWindowSpec:
    """Test suite for window size clamping."""

    def test_clamping(self):
        spec = WindowSpec(0, 5, -2)
        assert (spec.window_size, spec.hop_size, spec.pad_size) == (1, 1, 0)
        assert WindowSpec(1024, 2048).hop_size == 1024

    def test_derived(self):
        spec = WindowSpec(1024, 256, 1024)
        assert spec.size_dft == 2048
        assert spec.num_bins == 1025
        assert spec.overlap == 4.0

    def test_clamp(self):
        assert clamp(5, 0, 3) == 3
        assert clamp(-1, 0, 3) == 0
        assert clamp(2, 0, 3) == 2


class TestConfigFile:

    def test_save_load_round_trip(self, tmp_path):
        config = STFTConfig(
            window=WindowSpec(512, 128, 512),
            window_type='hann',
            spectral_format='mag_freq',
            inverse_windowing=True,
            num_aux=2,
            sample_rate=48000.0,
        )
        path = tmp_path / "stft.json"
        save_config(config, str(path))
        assert load_config(str(path)) == config

    def test_defaults(self):
        config = STFTConfig()
        assert config.window.window_size == 1024
        assert config.window.hop_size == 256
        assert config.window_type == 'rectangle'
        assert config.sample_rate == 44100.0


class TestSampleRateContext:
    """Test suite for sample-rate broadcasts."""

    def test_handlers_called_in_order(self):
        ctx = SampleRateContext(44100)
        calls = []
        ctx.subscribe(lambda sr: calls.append(('a', sr)))
        ctx.subscribe(lambda sr: calls.append(('b', sr)))
        ctx.sample_rate = 48000
        assert calls == [('a', 48000.0), ('b', 48000.0)]

    def test_unchanged_rate_not_broadcast(self):
        ctx = SampleRateContext(44100)
        calls = []
        ctx.subscribe(calls.append)
        ctx.sample_rate = 44100
        assert calls == []

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            SampleRateContext(0)
        ctx = SampleRateContext()
        with pytest.raises(ValueError):
            ctx.sample_rate = -1
        assert ctx.sample_rate == 44100.0

    def test_cancel(self):
        ctx = SampleRateContext()
        calls = []
        sub = ctx.subscribe(calls.append)
        assert sub.active
        sub.cancel()
        sub.cancel()
        assert not sub.active
        assert ctx.num_subscribers == 0
        ctx.sample_rate = 22050
        assert calls == []

    def test_unsubscribe_during_broadcast(self):
        ctx = SampleRateContext()
        calls = []
        subs = []
        subs.append(ctx.subscribe(lambda sr: subs[1].cancel()))
        subs.append(ctx.subscribe(calls.append))
        ctx.sample_rate = 48000
        assert calls == [48000.0]
        ctx.sample_rate = 96000
        assert calls == [48000.0]


class TestLogging:

    def test_setup_logger_single_handler(self):
        logger = setup_logger("streamspec.test")
        setup_logger("streamspec.test")
        assert len(logger.handlers) == 1

    def test_set_level(self):
        set_level(logging.DEBUG)
        assert dsp_logger.level == logging.DEBUG
        set_level(logging.INFO)
        assert dsp_logger.level == logging.INFO
