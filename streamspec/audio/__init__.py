"""
Audio package initialization.
"""

from .ringbuffer import SlidingWindow, DelayLine

__all__ = [
    'SlidingWindow',
    'DelayLine',
]
