# tracker/session.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import logging
import threading

import numpy as np

from analysis.errors import DegenerateFeatureError, MissingWeightsError
from analysis.features import FeatureExtractor
from analysis.mapping import Coordinate, MappingStrategy, make_strategy
from analysis.mapping_config import MappingConfig
from analysis.smoothing import PositionSmoother
from analysis.weights import (
    BUILTIN_WEIGHTS,
    WeightTable,
    load_regression_weights,
    weights_path,
)
from tracker.modules import ModuleRegistry, default_registry
from tracker.settings import SessionSettings

logger = logging.getLogger(__name__)


@dataclass
class SessionStats:
    frames: int = 0
    mapped: int = 0
    skipped: int = 0
    degenerate: int = 0


class VowelTrackingSession:
    """
    Per-source tracking engine.

    Each audio callback runs one update: copy the source's frame, map it
    with the strategy named in the settings, and feed successful results to
    the position smoother. Frames that map to nothing are skipped.

    Failures:
      - degenerate normalization: warn, skip the frame
      - missing regression weights: raise once, then skip frames until
        the weights, the mapping, normalization or the session are reset

    Regression weights are kept per normalize setting, since raw and
    normalized MFCC features are trained separately. Each frame uses the
    table for the setting in force.
    """

    def __init__(
        self,
        settings: Optional[SessionSettings] = None,
        weights: Optional[WeightTable] = None,
        extractor: Optional[FeatureExtractor] = None,
        registry: Optional[ModuleRegistry] = None,
        source=None,
    ):
        self.settings = settings if settings is not None else SessionSettings()
        table = weights if weights is not None else BUILTIN_WEIGHTS
        self.weight_tables: Dict[bool, WeightTable] = {False: table, True: table}
        self.extractor = extractor if extractor is not None else FeatureExtractor()
        self.registry = registry if registry is not None else default_registry

        self.smoother = PositionSmoother(self.settings.smoothing)
        self.stats = SessionStats()
        self.modules: Dict[str, object] = {}
        self.source = None
        self.fault: Optional[MissingWeightsError] = None

        self._strategies: Dict[Tuple[str, bool], MappingStrategy] = {}
        self._fault_key: Optional[Tuple[str, bool]] = None
        self._lock = threading.RLock()
        self._destroyed = False

        self.registry.track(self)
        if source is not None:
            self.attach(source)

    # ---------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------
    def attach(self, source) -> None:
        with self._lock:
            if self._destroyed:
                raise RuntimeError("session has been destroyed")
            if self.source is source:
                return
            self.registry.claim_source(source, self)
            if self.source is not None:
                self.detach()
            self.source = source
            source.add_listener(self.update)
            logger.info(
                "Session attached to %s (%s Hz, fft %s)",
                type(source).__name__,
                getattr(source, "sample_rate", "?"),
                getattr(source, "fft_size", "?"),
            )

    def detach(self) -> None:
        with self._lock:
            source = self.source
            if source is None:
                return
            source.remove_listener(self.update)
            self.registry.release_source(source, self)
            self.source = None
            self.reset()
            logger.info("Session detached from %s", type(source).__name__)

    def destroy(self) -> None:
        with self._lock:
            if self._destroyed:
                return
            self.detach()
            self.registry.untrack(self)
            self._strategies.clear()
            self.reset()
            self._destroyed = True

    # ---------------------------------------------------------
    # Configuration
    # ---------------------------------------------------------
    def mapping_config(self, sample_rate, fft_size, normalize=None) -> MappingConfig:
        s = self.settings
        if normalize is None:
            normalize = s.normalize_features
        return MappingConfig(
            fft_size=int(fft_size),
            min_freq=float(s.min_hz),
            max_freq=float(s.max_hz),
            sample_rate=float(sample_rate),
            filter_banks=int(s.filter_banks),
            normalize_features=bool(normalize),
        ).validate()

    @property
    def weights(self) -> WeightTable:
        """Weight table for the current normalize setting."""
        return self.weight_tables[bool(self.settings.normalize_features)]

    def strategy(
        self, name: Optional[str] = None, normalize: Optional[bool] = None
    ) -> MappingStrategy:
        name = name or self.settings.mapping
        if normalize is None:
            normalize = self.settings.normalize_features
        key = (name, bool(normalize))
        if key not in self._strategies:
            self._strategies[key] = make_strategy(
                name, weights=self.weight_tables[key[1]], extractor=self.extractor
            )
        return self._strategies[key]

    def set_weights(
        self, weights: WeightTable, normalize_features: Optional[bool] = None
    ) -> None:
        """Replace the table for one normalize setting, or for both when None."""
        with self._lock:
            if normalize_features is None:
                self.weight_tables = {False: weights, True: weights}
            else:
                self.weight_tables[bool(normalize_features)] = weights
            self._strategies.clear()
            self.fault = None
            self._fault_key = None

    def load_weights(self, directory) -> WeightTable:
        """
        Load the raw and normalized weight documents from ``directory``.

        The document for the current normalize setting must exist; the other
        one is loaded when present, otherwise that setting keeps its table.
        Returns the table now in use.
        """
        current = bool(self.settings.normalize_features)
        tables = dict(self.weight_tables)
        tables[current] = load_regression_weights(
            directory, current, base=tables[current]
        )
        other = not current
        if weights_path(directory, other).exists():
            tables[other] = load_regression_weights(
                directory, other, base=tables[other]
            )
        else:
            logger.warning(
                "No %s in %s; keeping the previous table for normalize=%s",
                weights_path(directory, other).name,
                directory,
                other,
            )

        with self._lock:
            self.weight_tables = tables
            self._strategies.clear()
            self.fault = None
            self._fault_key = None
        return tables[current]

    # ---------------------------------------------------------
    # Per-frame update
    # ---------------------------------------------------------
    def update(self) -> Optional[Coordinate]:
        """Audio-callback entry point: process the source's current frame."""
        source = self.source
        if source is None:
            return None
        return self.process_frame(
            source.current_frame(), source.sample_rate, source.fft_size
        )

    def process_frame(self, frame, sample_rate, fft_size) -> Optional[Coordinate]:
        # the live buffer is rewritten on the next callback
        snapshot = np.array(frame, dtype=float, copy=True)

        with self._lock:
            self.stats.frames += 1
            key = (self.settings.mapping, bool(self.settings.normalize_features))

            if self.fault is not None:
                if key == self._fault_key:
                    self.stats.skipped += 1
                    return None
                # mapping or normalization changed, try again
                self.fault = None
                self._fault_key = None

            config = self.mapping_config(sample_rate, fft_size, normalize=key[1])

            try:
                position = self.strategy(*key).map(snapshot, config)
            except DegenerateFeatureError as e:
                self.stats.degenerate += 1
                self.stats.skipped += 1
                logger.warning("Skipping frame: %s", e)
                return None
            except MissingWeightsError as e:
                self.stats.skipped += 1
                self.fault = e
                self._fault_key = key
                logger.error("Mapping disabled until reconfigured: %s", e)
                raise

            if position is None:
                self.stats.skipped += 1
                logger.debug("No position for frame %d", self.stats.frames)
                return None

            if not np.all(np.isfinite(position)):
                self.stats.degenerate += 1
                self.stats.skipped += 1
                logger.warning("Skipping frame: non-finite position %s", position)
                return None

            self.smoother.update(position, window=self.settings.smoothing)
            self.stats.mapped += 1
            return self.smoother.current()

    # ---------------------------------------------------------
    # Position
    # ---------------------------------------------------------
    @property
    def position(self) -> Optional[Coordinate]:
        with self._lock:
            return self.smoother.current()

    def get_position(self) -> Optional[Coordinate]:
        return self.position

    def reset(self) -> None:
        with self._lock:
            self.smoother.reset()
            self.fault = None
            self._fault_key = None
