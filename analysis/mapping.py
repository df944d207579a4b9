# analysis/mapping.py
"""
Frame -> vowel-space mapping strategies.

Every strategy exposes ``map(frame, config)`` and returns a ``Coordinate``
or ``None`` when the frame yields nothing to map. ``None`` is a normal
per-frame outcome; configuration problems raise.
"""

from __future__ import annotations
from typing import NamedTuple, Optional
import logging

import numpy as np

from analysis.errors import DegenerateFeatureError
from analysis.features import FeatureExtractor
from analysis.mapping_config import (
    BACKNESS_MAX,
    BACKNESS_MIN,
    CEPSTRUM_CUTOFF_HZ,
    CEPSTRUM_NUM_FORMANTS,
    HEIGHT_MAX,
    HEIGHT_MIN,
    FormantBounds,
    MappingConfig,
)
from analysis.scale import map_to_scale, predict
from analysis.weights import BUILTIN_WEIGHTS, WeightTable

logger = logging.getLogger(__name__)


class Coordinate(NamedTuple):
    backness: float
    height: float


def formants_to_ipa(f1, f2, bounds: Optional[FormantBounds] = None) -> Coordinate:
    """
    Rescale F2 onto backness and F1 onto height. High F2 is front
    (backness 0); high F1 is open (height 0). Not clamped.
    """
    bounds = bounds or FormantBounds()
    backness = map_to_scale(
        f2, bounds.f2_max, bounds.f2_min, BACKNESS_MIN, BACKNESS_MAX
    )
    height = map_to_scale(
        f1, bounds.f1_max, bounds.f1_min, HEIGHT_MIN, HEIGHT_MAX
    )
    return Coordinate(float(backness), float(height))


def l2_normalize(features: np.ndarray) -> np.ndarray:
    """Divide by the Euclidean norm in place; zero/non-finite norm raises."""
    norm = float(np.sqrt(np.sum(features * features)))
    if norm == 0.0 or not np.isfinite(norm):
        raise DegenerateFeatureError(
            f"cannot normalize feature vector with norm {norm}"
        )
    features /= norm
    return features


class MappingStrategy:
    """Base class for frame -> Coordinate mappings."""

    name = "base"

    def __init__(self, extractor: Optional[FeatureExtractor] = None):
        self.extractor = extractor if extractor is not None else FeatureExtractor()

    def map(self, frame, config: MappingConfig) -> Optional[Coordinate]:
        raise NotImplementedError

    def __call__(self, frame, config: MappingConfig) -> Optional[Coordinate]:
        return self.map(frame, config)

    def __repr__(self):
        return f"{type(self).__name__}()"


# ---------------------------------------------------------
# Linear regression on MFCCs
# ---------------------------------------------------------
class LinearRegressionMapping(MappingStrategy):
    name = "linear_regression"

    def __init__(
        self,
        weights: Optional[WeightTable] = None,
        extractor: Optional[FeatureExtractor] = None,
    ):
        super().__init__(extractor)
        self.weights = weights if weights is not None else BUILTIN_WEIGHTS

    def features(self, mfccs, config: MappingConfig) -> np.ndarray:
        """Regressor vector: bias term followed by the selected MFCCs."""
        # slice copies, so the extractor's array is never modified
        selected = np.array(
            mfccs[config.first_mfcc - 1:config.last_mfcc], dtype=float
        )
        if config.normalize_features:
            l2_normalize(selected)
        return np.concatenate(([1.0], selected))

    def map(self, frame, config: MappingConfig) -> Optional[Coordinate]:
        config.validate_mfcc_range()
        mfccs = self.extractor.extract_mfcc(frame, config)
        if len(mfccs) == 0:
            return None

        features = self.features(mfccs, config)
        entry = self.weights.lookup(features.size)

        return Coordinate(
            predict(features, entry.backness),
            predict(features, entry.height),
        )


# ---------------------------------------------------------
# Formant-based mappings
# ---------------------------------------------------------
class MfccFormantMapping(MappingStrategy):
    name = "mfcc_formants"

    def map(self, frame, config: MappingConfig) -> Optional[Coordinate]:
        mfccs = self.extractor.extract_mfcc(frame, config)
        if len(mfccs) == 0:
            return None

        formants = self.extractor.formants_from_mfcc(mfccs, config)
        if len(formants) < 2:
            return None
        return formants_to_ipa(formants[0], formants[1], config.formant_bounds)


class CepstrumFormantMapping(MappingStrategy):
    name = "cepstrum_formants"

    def map(self, frame, config: MappingConfig) -> Optional[Coordinate]:
        cepstrum = self.extractor.cepstrum(frame, config)
        if len(cepstrum) == 0:
            return None

        formants = self.extractor.formants_from_cepstrum(
            cepstrum,
            num_formants=CEPSTRUM_NUM_FORMANTS,
            sample_rate=config.sample_rate,
            fft_size=config.fft_size,
            cutoff_hz=CEPSTRUM_CUTOFF_HZ,
            bounds=config.formant_bounds,
        )
        if len(formants) < 2:
            return None
        return formants_to_ipa(formants[0], formants[1], config.formant_bounds)


MAPPING_METHODS = {
    cls.name: cls
    for cls in (LinearRegressionMapping, MfccFormantMapping, CepstrumFormantMapping)
}

DEFAULT_MAPPING = LinearRegressionMapping.name


def make_strategy(
    name: str,
    weights: Optional[WeightTable] = None,
    extractor: Optional[FeatureExtractor] = None,
) -> MappingStrategy:
    try:
        cls = MAPPING_METHODS[name]
    except KeyError:
        raise ValueError(
            f"unknown mapping method {name!r}; "
            f"choose one of {sorted(MAPPING_METHODS)}"
        ) from None

    if cls is LinearRegressionMapping:
        return cls(weights=weights, extractor=extractor)
    return cls(extractor=extractor)
