"""
Configuration constants and settings for the spectral engine.
Default transform sizes and the dataclasses used to build transforms.
"""

from dataclasses import dataclass, field, asdict
import json

# =============================================================================
# AUDIO CONFIGURATION
# =============================================================================

DEFAULT_SAMPLE_RATE = 44100.0

# =============================================================================
# TRANSFORM PARAMETERS
# =============================================================================

DEFAULT_WINDOW_SIZE = 1024   # samples per analysis window
DEFAULT_HOP_SIZE = 256       # samples between frames (75% overlap)
DEFAULT_PAD_SIZE = 0         # zeros appended to each window
WINDOW_TYPE = 'rectangle'
SPECTRAL_FORMAT = 'complex'

# Window and interval lower bounds applied when clamping
MIN_WINDOW_SIZE = 1
MIN_HOP_SIZE = 1


def clamp(value: int, lo: int, hi: int) -> int:
    """Clamp an integer into [lo, hi]."""
    return max(lo, min(int(value), hi))


@dataclass
class WindowSpec:
    """
    Window, hop and padding sizes of a frame transform.

    Values out of range are clamped, never rejected: window to at least 1,
    hop into [1, window], pad to at least 0.
    """
    window_size: int = DEFAULT_WINDOW_SIZE
    hop_size: int = DEFAULT_HOP_SIZE
    pad_size: int = DEFAULT_PAD_SIZE

    def __post_init__(self):
        self.window_size = max(int(self.window_size), MIN_WINDOW_SIZE)
        self.hop_size = clamp(self.hop_size, MIN_HOP_SIZE, self.window_size)
        self.pad_size = max(int(self.pad_size), 0)

    @property
    def size_dft(self) -> int:
        return self.window_size + self.pad_size

    @property
    def num_bins(self) -> int:
        return self.size_dft // 2 + 1

    @property
    def overlap(self) -> float:
        return self.window_size / self.hop_size


@dataclass
class STFTConfig:
    """Everything needed to build a streaming transform."""
    window: WindowSpec = field(default_factory=WindowSpec)
    window_type: str = WINDOW_TYPE
    spectral_format: str = SPECTRAL_FORMAT
    rotate_forward: bool = False
    inverse_windowing: bool = False
    precise: bool = True
    num_aux: int = 0
    sample_rate: float = DEFAULT_SAMPLE_RATE


def save_config(config: STFTConfig, path: str):
    """Save configuration to JSON file."""
    with open(path, 'w') as f:
        json.dump(asdict(config), f, indent=2)


def load_config(path: str) -> STFTConfig:
    """Load configuration from JSON file."""
    with open(path, 'r') as f:
        data = json.load(f)

    window = WindowSpec(**data.pop('window', {}))
    return STFTConfig(window=window, **data)
