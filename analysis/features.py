"""
Spectral features for vowel-space mapping.

Works on magnitude frames (``fft_size // 2`` bins) and provides:
  - MFCCs from a mel filter bank (librosa) and an orthonormal DCT
  - the real cepstrum of the frame
  - formant estimates from peaks of a cepstrally smoothed envelope
"""

from __future__ import annotations
from functools import lru_cache
from typing import List, Optional
import logging

import librosa
import numpy as np
from numpy.typing import NDArray
from scipy.fft import dct, idct
from scipy.signal import find_peaks

from analysis.mapping_config import (
    CEPSTRUM_CUTOFF_HZ,
    CEPSTRUM_NUM_FORMANTS,
    FormantBounds,
    MappingConfig,
)

logger = logging.getLogger(__name__)

# Number of low-order MFCCs kept when rebuilding the mel envelope
MFCC_LIFTER = 12

LOG_FLOOR = 1e-10

# Minimum peak prominence, as a fraction of the envelope range in band
PEAK_PROMINENCE = 0.05


def _empty() -> NDArray[np.float64]:
    return np.zeros(0, dtype=float)


def _as_frame(frame) -> NDArray[np.float64]:
    # always a private copy; the live buffer may change under us
    return np.array(frame, dtype=float, copy=True).ravel()


@lru_cache(maxsize=32)
def mel_filter_bank(sample_rate, fft_size, n_mels, fmin, fmax):
    """Cached, read-only mel filter matrix of shape (n_mels, fft_size // 2 + 1)."""
    fb = librosa.filters.mel(
        sr=sample_rate,
        n_fft=int(fft_size),
        n_mels=int(n_mels),
        fmin=float(fmin),
        fmax=float(fmax),
    )
    fb.setflags(write=False)
    return fb


def _band_top(config: MappingConfig) -> float:
    return float(min(config.max_freq, config.sample_rate / 2.0))


# ---------------------------------------------------------
# Peak picking on smoothed envelopes
# ---------------------------------------------------------
def _pick_formants(
    env: NDArray[np.float64],
    freqs: NDArray[np.float64],
    bounds: FormantBounds,
    limit: Optional[int] = None,
) -> List[float]:
    mask = (freqs >= bounds.f1_min) & (freqs <= bounds.f2_max)
    env_masked = env[mask]
    if env_masked.size < 3:
        return []

    span = float(np.max(env_masked) - np.min(env_masked))
    if span <= 0:
        return []

    # ignore ripple left over from liftering
    peaks, _ = find_peaks(env_masked, prominence=span * PEAK_PROMINENCE)
    formants = sorted(float(f) for f in freqs[mask][peaks])
    if limit is not None:
        formants = formants[:limit]
    return formants


class FeatureExtractor:
    """Feature-extraction collaborator used by the mapping strategies."""

    # -------------------------
    # MFCC
    # -------------------------
    def extract_mfcc(self, frame, config: MappingConfig) -> NDArray[np.float64]:
        """
        MFCCs of a magnitude frame, or an empty array when the frame carries
        nothing usable (empty, non-finite, or silent in the analysis band).
        """
        x = _as_frame(frame)
        if x.size == 0 or not np.all(np.isfinite(x)):
            return _empty()

        n_bins = config.fft_size // 2 + 1
        if x.size > n_bins:
            raise ValueError(
                f"frame has {x.size} bins but fft_size {config.fft_size} "
                f"allows at most {n_bins}"
            )

        fb = mel_filter_bank(
            config.sample_rate,
            config.fft_size,
            config.filter_banks,
            config.min_freq,
            _band_top(config),
        )[:, :x.size]

        energies = fb @ (x * x)
        if not np.any(energies > 0):
            return _empty()

        log_energies = np.log(np.maximum(energies, LOG_FLOOR))
        return dct(log_energies, type=2, norm="ortho")

    def formants_from_mfcc(self, mfccs, config: MappingConfig) -> List[float]:
        """Formant estimates from peaks of the liftered log-mel envelope."""
        c = np.asarray(mfccs, dtype=float).ravel()
        if c.size < 3 or not np.all(np.isfinite(c)):
            return []

        lifted = np.zeros_like(c)
        keep = min(MFCC_LIFTER, c.size)
        lifted[:keep] = c[:keep]
        env = idct(lifted, type=2, norm="ortho")

        # centre frequency of each mel band
        centers = librosa.mel_frequencies(
            n_mels=c.size + 2, fmin=config.min_freq, fmax=_band_top(config)
        )[1:-1]
        return _pick_formants(env, centers, config.formant_bounds)

    # -------------------------
    # Cepstrum
    # -------------------------
    def cepstrum(self, frame, config: MappingConfig) -> NDArray[np.float64]:
        """Real cepstrum (irfft of the log magnitude) of length ``fft_size``."""
        x = _as_frame(frame)
        if x.size == 0 or not np.all(np.isfinite(x)) or not np.any(x != 0):
            return _empty()

        log_mag = np.log(np.maximum(np.abs(x), LOG_FLOOR))
        return np.fft.irfft(log_mag, n=int(config.fft_size))

    def formants_from_cepstrum(
        self,
        cepstrum,
        num_formants: int = CEPSTRUM_NUM_FORMANTS,
        sample_rate: float = 44100,
        fft_size: Optional[int] = None,
        cutoff_hz: float = CEPSTRUM_CUTOFF_HZ,
        bounds: Optional[FormantBounds] = None,
    ) -> List[float]:
        """
        Lifter away quefrencies at or above ``sample_rate / cutoff_hz``
        samples, rebuild the log envelope and return the lowest
        ``num_formants`` envelope peaks inside the formant band.
        """
        c = np.asarray(cepstrum, dtype=float).ravel()
        if c.size == 0 or not np.all(np.isfinite(c)):
            return []

        n = int(fft_size or c.size)
        bounds = bounds or FormantBounds()

        lifted = c.copy()
        cut = int(sample_rate / cutoff_hz) if cutoff_hz > 0 else 0
        if 0 < cut < lifted.size // 2:
            lifted[cut:lifted.size - cut + 1] = 0.0

        env = np.fft.rfft(lifted, n=n).real
        freqs = np.fft.rfftfreq(n, 1.0 / sample_rate)
        formants = _pick_formants(env, freqs, bounds, limit=num_formants)
        logger.debug("cepstral formants: %s", formants)
        return formants
