import numpy as np

from tracker.frame_source import magnitude_frame


def synthetic_vowel(f1, f2, sr=44100, dur=0.05, f0=120.0):
    """
    Generate a simple vowel-like signal: a harmonic source at ``f0`` whose
    partials are weighted by two resonances at ``f1`` and ``f2``.

    Parameters
    ----------
    f1 : float
        First formant frequency in Hz.
    f2 : float
        Second formant frequency in Hz.
    sr : int
        Sample rate.
    dur : float
        Duration in seconds.
    f0 : float
        Fundamental frequency of the source.

    Returns
    -------
    np.ndarray
        The synthetic audio signal.
    """
    t = np.arange(int(sr * dur)) / sr
    sig = np.zeros_like(t)
    for k in range(1, int((sr / 2) // f0)):
        h = k * f0
        gain = 1.0 / (1.0 + ((h - f1) / 80.0) ** 2) + 0.5 / (1.0 + ((h - f2) / 120.0) ** 2)
        sig += gain * np.sin(2 * np.pi * h * t)
    return sig / np.max(np.abs(sig))


def sine_spectrum(freq, fft_size=1024, sr=44100, amplitude=1.0):
    """Magnitude frame (fft_size // 2 bins) of a pure sinusoid at ``freq``."""
    t = np.arange(fft_size) / sr
    return magnitude_frame(amplitude * np.sin(2 * np.pi * freq * t), fft_size)


def vowel_spectrum(f1, f2, fft_size=1024, sr=44100, f0=120.0):
    """Magnitude frame of the first ``fft_size`` samples of a synthetic vowel."""
    sig = synthetic_vowel(f1, f2, sr=sr, dur=fft_size / sr + 0.01, f0=f0)
    return magnitude_frame(sig[:fft_size], fft_size)
