# analysis/errors.py


class MappingError(Exception):
    """Base class for failures while mapping a frame to the vowel space."""


class MissingWeightsError(MappingError, KeyError):
    """No regression weights exist for a feature vector of this length."""

    def __init__(self, length, available=()):
        self.length = length
        self.available = tuple(sorted(available))
        super().__init__(length)

    def __str__(self):
        return (
            f"No weights found for feature vectors of length {self.length} "
            f"(available: {list(self.available)}). Check that the number of "
            f"filter banks and the MFCC range match a loaded weight table."
        )


class DegenerateFeatureError(MappingError, ValueError):
    """Feature vector cannot be normalized (zero or non-finite norm)."""


class WeightsFormatError(ValueError):
    """A weight document is missing groups or holds unusable entries."""
