# conftest.py
import numpy as np
import pytest

from analysis.mapping_config import MappingConfig
from analysis.synthetic import sine_spectrum, vowel_spectrum
from tracker.frame_source import FrameSource
from tracker.modules import ModuleRegistry


# ---------------------------------------------------------
# Configs and frames
# ---------------------------------------------------------
@pytest.fixture
def config():
    return MappingConfig(
        fft_size=1024,
        min_freq=0.0,
        max_freq=8000.0,
        sample_rate=44100,
        filter_banks=40,
        normalize_features=False,
    )


@pytest.fixture
def sine_frame():
    return sine_spectrum(440.0, fft_size=1024, sr=44100)


@pytest.fixture
def vowel_frame():
    return vowel_spectrum(700.0, 1200.0, fft_size=1024, sr=44100)


@pytest.fixture
def silent_frame():
    return np.zeros(512)


# ---------------------------------------------------------
# Fakes
# ---------------------------------------------------------
class FakeFrameSource(FrameSource):
    """Frame source driven by hand: ``push(frame)`` plays one callback."""

    def __init__(self, sample_rate=44100, fft_size=1024):
        super().__init__(sample_rate, fft_size)

    def push(self, frame):
        self._buffer[:] = frame
        with self._lock:
            listeners = list(self._listeners)
        for cb in listeners:
            cb()


class FakeExtractor:
    """Extractor returning canned values and recording the frames it saw."""

    def __init__(self, mfccs=(), formants=(), cepstrum=(), cep_formants=()):
        self.mfccs = np.asarray(mfccs, dtype=float)
        self.formants = list(formants)
        self.cep = np.asarray(cepstrum, dtype=float)
        self.cep_formants = list(cep_formants)
        self.frames = []
        self.configs = []
        self.cepstrum_calls = []

    def extract_mfcc(self, frame, config):
        self.frames.append(frame)
        self.configs.append(config)
        return self.mfccs.copy()

    def formants_from_mfcc(self, mfccs, config):
        return list(self.formants)

    def cepstrum(self, frame, config):
        self.frames.append(frame)
        return self.cep.copy()

    def formants_from_cepstrum(self, cepstrum, **kwargs):
        self.cepstrum_calls.append(kwargs)
        return list(self.cep_formants)


@pytest.fixture
def fake_source():
    return FakeFrameSource()


@pytest.fixture
def registry():
    return ModuleRegistry()
