# tracker/frame_source.py
"""
Frame sources deliver frequency-magnitude frames to tracking sessions.

A source owns one live buffer that is overwritten on every audio callback,
then notifies its listeners. Listeners must copy the frame they read.
"""

from __future__ import annotations
from typing import Any, Callable, List, Optional
import logging
import threading

import numpy as np

from analysis.mapping_config import DEFAULT_SAMPLE_RATE, WINDOW_SECONDS
from analysis.scale import next_pow2

logger = logging.getLogger(__name__)


def default_fft_size(sample_rate) -> int:
    return next_pow2(sample_rate * WINDOW_SECONDS)


def magnitude_frame(block, fft_size: int, out: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Blackman-windowed magnitude spectrum of ``block`` (zero-padded or
    truncated to ``fft_size``), first ``fft_size // 2`` bins.
    """
    x = np.asarray(block, dtype=float).ravel()[:fft_size]
    if x.size < fft_size:
        x = np.pad(x, (0, fft_size - x.size))
    mags = np.abs(np.fft.rfft(x * np.blackman(fft_size)))[:fft_size // 2]
    if out is None:
        return mags
    out[:] = mags
    return out


class FrameSource:
    """Live buffer + listener list shared by the concrete sources."""

    def __init__(self, sample_rate=DEFAULT_SAMPLE_RATE, fft_size=None):
        self.sample_rate = int(sample_rate)
        self.fft_size = int(fft_size or default_fft_size(self.sample_rate))
        self._buffer = np.zeros(self.fft_size // 2, dtype=float)
        self._listeners: List[Callable[[], Any]] = []
        self._lock = threading.Lock()

    def current_frame(self) -> np.ndarray:
        """The live buffer; overwritten on the next callback."""
        return self._buffer

    def add_listener(self, callback: Callable[[], Any]) -> None:
        with self._lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], Any]) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _publish(self, block) -> None:
        magnitude_frame(block, self.fft_size, out=self._buffer)
        with self._lock:
            listeners = list(self._listeners)
        for cb in listeners:
            cb()


# ---------------------------------------------------------
# Microphone
# ---------------------------------------------------------
class MicFrameSource(FrameSource):
    """Microphone input through sounddevice; one frame per audio block."""

    def __init__(self, sample_rate=DEFAULT_SAMPLE_RATE, fft_size=None, device=None):
        super().__init__(sample_rate, fft_size)
        self.device = device
        self.stream = None
        self.is_running = False

    def audio_callback(self, indata: np.ndarray, _frames: int, _time_info: Any, status: Any) -> None:
        """Sounddevice callback: refresh the live frame and notify listeners."""
        if status:
            logger.debug("input stream status: %s", status)
        try:
            self._publish(indata[:, 0])
        except Exception:  # noqa: BLE001
            # nothing may propagate into the audio thread
            logger.exception("MicFrameSource audio callback failed")

    def start(self) -> None:
        if self.stream is not None:
            return
        import sounddevice as sd

        try:
            self.stream = sd.InputStream(
                samplerate=self.sample_rate,
                blocksize=self.fft_size,
                channels=1,
                dtype="float32",
                device=self.device,
                callback=self.audio_callback,
            )
            self.stream.start()
        except Exception:
            logger.exception("Failed to start audio stream")
            self.stream = None
            raise

        self.is_running = True
        logger.info(
            "Audio stream started at %d Hz, fft size %d",
            self.sample_rate,
            self.fft_size,
        )

    def stop(self) -> None:
        if self.stream is None:
            return
        try:
            if getattr(self.stream, "active", False):
                self.stream.stop()
            self.stream.close()
            logger.info("Audio stream stopped")
        finally:
            self.stream = None
            self.is_running = False


# ---------------------------------------------------------
# Prerecorded signal
# ---------------------------------------------------------
class SignalFrameSource(FrameSource):
    """Steps through a prerecorded mono signal one block at a time."""

    def __init__(self, signal, sample_rate=DEFAULT_SAMPLE_RATE, fft_size=None):
        super().__init__(sample_rate, fft_size)
        self.signal = np.asarray(signal, dtype=float).ravel()
        self.position = 0

    @classmethod
    def from_file(cls, path, sample_rate=None, fft_size=None) -> "SignalFrameSource":
        import librosa

        y, sr = librosa.load(path, sr=sample_rate, mono=True)
        logger.info("Loaded %s (%d samples at %d Hz)", path, y.size, sr)
        return cls(y, sample_rate=sr, fft_size=fft_size)

    @property
    def remaining(self) -> int:
        return max(0, (self.signal.size - self.position + self.fft_size - 1) // self.fft_size)

    def step(self) -> bool:
        """Publish the next block; False once the signal is exhausted."""
        if self.position >= self.signal.size:
            return False
        block = self.signal[self.position:self.position + self.fft_size]
        self.position += self.fft_size
        self._publish(block)
        return True

    def run(self, max_frames: Optional[int] = None) -> int:
        count = 0
        while (max_frames is None or count < max_frames) and self.step():
            count += 1
        return count

    def rewind(self) -> None:
        self.position = 0
