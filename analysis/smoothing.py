# analysis/smoothing.py
from collections import deque
from typing import Optional
import logging

import numpy as np

from analysis.mapping import Coordinate

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 15


# ---------------------------------------------------------
# Position smoothing
# ---------------------------------------------------------
class PositionSmoother:
    """
    Bounded-window moving average over vowel-space coordinates.

    Until the history holds ``window`` entries this is the cumulative moving
    average; after that each new coordinate replaces the oldest one and the
    average moves by ``(new - oldest) / window``. Both updates are O(1).

    The cumulative branch still runs when the history holds window - 1
    entries, which is what fills it to exactly ``window``; the sliding
    branch takes over from the next coordinate.
    """

    def __init__(self, window: int = DEFAULT_WINDOW):
        self.window = self._check_window(window)
        self.history: deque = deque()
        self._smoothed: Optional[np.ndarray] = None

    @staticmethod
    def _check_window(window) -> int:
        if isinstance(window, bool) or int(window) != window or window < 1:
            raise ValueError(f"smoothing window must be an integer >= 1, got {window!r}")
        return int(window)

    def __len__(self):
        return len(self.history)

    def reset(self):
        self.history.clear()
        self._smoothed = None

    def current(self) -> Optional[Coordinate]:
        if self._smoothed is None:
            return None
        return Coordinate(float(self._smoothed[0]), float(self._smoothed[1]))

    # -------------------------
    # Window changes
    # -------------------------
    def set_window(self, window: int):
        window = self._check_window(window)
        if window == self.window:
            return
        self.window = window

        if len(self.history) > window:
            # drop the oldest and restart from the mean of what is kept
            while len(self.history) > window:
                self.history.popleft()
            self._smoothed = np.mean(np.array(self.history), axis=0)
            logger.debug(
                "smoothing window shrunk to %d, history trimmed", window
            )

    # -------------------------
    # Update
    # -------------------------
    def update(self, coordinate, window: Optional[int] = None) -> Coordinate:
        new = np.array(coordinate, dtype=float).ravel()
        if new.size != 2 or not np.all(np.isfinite(new)):
            raise ValueError(f"expected a finite (backness, height) pair, got {coordinate!r}")

        if window is not None:
            self.set_window(window)

        n = len(self.history)
        if n == 0:
            self._smoothed = new.copy()
        elif n < self.window:
            self._smoothed = (new + n * self._smoothed) / (n + 1)
        else:
            oldest = self.history.popleft()
            self._smoothed = self._smoothed + (new - oldest) / self.window

        self.history.append(new)
        return self.current()
