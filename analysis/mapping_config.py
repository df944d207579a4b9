# analysis/mapping_config.py
from __future__ import annotations
from dataclasses import dataclass, field

# ---------------------------------------------------------
# Analysis defaults
# ---------------------------------------------------------
DEFAULT_SAMPLE_RATE = 44100

# seconds of audio per analysis frame
WINDOW_SECONDS = 0.016

NUM_FILTER_BANKS = 40

# 1-based MFCC range used as regressors
FIRST_MFCC = 2
LAST_MFCC = 25

# ---------------------------------------------------------
# Vowel space bounds
# ---------------------------------------------------------
BACKNESS_MIN = 0.0
BACKNESS_MAX = 4.0
HEIGHT_MIN = 0.0
HEIGHT_MAX = 3.0

# ---------------------------------------------------------
# Cepstral formant tracking
# ---------------------------------------------------------
CEPSTRUM_CUTOFF_HZ = 200.0
CEPSTRUM_NUM_FORMANTS = 2


@dataclass(frozen=True)
class FormantBounds:
    """Expected F1/F2 ranges (Hz) used when rescaling formants."""
    f1_min: float = 100.0
    f1_max: float = 1000.0
    f2_min: float = 500.0
    f2_max: float = 2500.0


@dataclass(frozen=True)
class MappingConfig:
    fft_size: int
    min_freq: float
    max_freq: float
    sample_rate: float = DEFAULT_SAMPLE_RATE
    filter_banks: int = NUM_FILTER_BANKS
    normalize_features: bool = False
    first_mfcc: int = FIRST_MFCC
    last_mfcc: int = LAST_MFCC
    formant_bounds: FormantBounds = field(default_factory=FormantBounds)

    @property
    def num_bins(self) -> int:
        return self.fft_size // 2

    def validate(self) -> "MappingConfig":
        if self.fft_size <= 0:
            raise ValueError(f"fft_size must be positive, got {self.fft_size}")
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.min_freq < 0 or self.min_freq >= self.max_freq:
            raise ValueError(
                f"invalid analysis band {self.min_freq}-{self.max_freq} Hz"
            )
        if self.filter_banks < 1:
            raise ValueError(f"filter_banks must be positive, got {self.filter_banks}")
        return self

    def validate_mfcc_range(self) -> "MappingConfig":
        """The regressor range must fit inside the MFCCs the banks produce."""
        if not (1 <= self.first_mfcc <= self.last_mfcc):
            raise ValueError(
                f"empty MFCC range {self.first_mfcc}..{self.last_mfcc}"
            )
        if self.filter_banks < self.last_mfcc:
            raise ValueError(
                f"{self.filter_banks} filter banks cannot supply MFCC "
                f"#{self.last_mfcc}"
            )
        return self
