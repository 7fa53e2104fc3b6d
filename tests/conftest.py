"""
Shared fixtures for the streamspec test suite.
"""

import contextlib

import numpy as np
import pytest

from streamspec.utils.domain import SampleRateContext


@pytest.fixture
def context():
    return SampleRateContext(44100.0)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def stream():
    """Feed a signal sample by sample and collect read_next() output."""
    def run(transform, signal):
        out = np.zeros(len(signal))
        for n, x in enumerate(signal):
            transform.feed(x)
            out[n] = transform.read_next()
        return out
    return run


@pytest.fixture
def refuse_zeros(monkeypatch):
    """
    Context manager making numpy.zeros raise MemoryError for one dtype.

    Usage:
        with refuse_zeros(np.float64):
            assert not transform.resize(...)
    """
    zeros = np.zeros

    @contextlib.contextmanager
    def refuse(dtype):
        refused = np.dtype(dtype)

        def guarded(shape, dtype=float, order='C', **kwargs):
            if np.dtype(dtype) == refused:
                raise MemoryError(f"{refused} allocation refused")
            return zeros(shape, dtype=dtype, order=order, **kwargs)

        with monkeypatch.context() as m:
            m.setattr(np, "zeros", guarded)
            yield

    return refuse
