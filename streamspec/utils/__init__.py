"""
Utils package initialization.
"""

from .config import (
    WindowSpec,
    STFTConfig,
    DEFAULT_SAMPLE_RATE,
    DEFAULT_WINDOW_SIZE,
    DEFAULT_HOP_SIZE,
    DEFAULT_PAD_SIZE,
    save_config,
    load_config,
)

from .domain import (
    SampleRateContext,
    Subscription,
)

from .logging_utils import (
    setup_logger,
    set_level,
    dsp_logger,
    audio_logger,
)

__all__ = [
    'WindowSpec',
    'STFTConfig',
    'DEFAULT_SAMPLE_RATE',
    'DEFAULT_WINDOW_SIZE',
    'DEFAULT_HOP_SIZE',
    'DEFAULT_PAD_SIZE',
    'save_config',
    'load_config',
    'SampleRateContext',
    'Subscription',
    'setup_logger',
    'set_level',
    'dsp_logger',
    'audio_logger',
]
