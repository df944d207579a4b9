# analysis/weights.py
"""
Regression weights for the linear-regression mapping.

A ``WeightTable`` maps a feature-vector length (bias term included) to the
pair of coefficient vectors that predict backness and height. Tables are
read-only once built and can be shared between sessions.
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Optional
import json
import logging
import xml.etree.ElementTree as ET

import numpy as np

from analysis.errors import MissingWeightsError, WeightsFormatError

logger = logging.getLogger(__name__)

WEIGHTS_FILE = "weights.xml"
NORMALIZED_WEIGHTS_FILE = "weights_norm_mfcc.xml"


def _frozen(values) -> np.ndarray:
    arr = np.array(values, dtype=float).ravel()
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class RegressionWeights:
    backness: np.ndarray
    height: np.ndarray

    def __post_init__(self):
        back = _frozen(self.backness)
        height = _frozen(self.height)
        if back.size == 0 or back.size != height.size:
            raise WeightsFormatError(
                f"backness/height weight lengths differ or are empty "
                f"({back.size} vs {height.size})"
            )
        if not (np.all(np.isfinite(back)) and np.all(np.isfinite(height))):
            raise WeightsFormatError("weights must be finite numbers")
        object.__setattr__(self, "backness", back)
        object.__setattr__(self, "height", height)

    def __len__(self):
        return int(self.backness.size)


class WeightTable:
    """Read-only mapping of feature-vector length -> RegressionWeights."""

    def __init__(self, entries: Iterable[RegressionWeights] = ()):
        table: Dict[int, RegressionWeights] = {}
        for entry in entries:
            table[len(entry)] = entry
        self._entries = MappingProxyType(table)

    def lookup(self, length: int) -> RegressionWeights:
        try:
            return self._entries[length]
        except KeyError:
            raise MissingWeightsError(length, self._entries.keys()) from None

    def with_entry(self, weights: RegressionWeights) -> "WeightTable":
        """Return a new table with ``weights`` added (or replacing its length)."""
        return WeightTable([*self._entries.values(), weights])

    def lengths(self):
        return sorted(self._entries)

    def __contains__(self, length):
        return length in self._entries

    def __len__(self):
        return len(self._entries)

    def __repr__(self):
        return f"WeightTable(lengths={self.lengths()})"


# ---------------------------------------------------------
# Built-in 24 MFCC + bias weights
# ---------------------------------------------------------
BUILTIN_WEIGHTS = WeightTable([
    RegressionWeights(
        backness=[
            0.995437, 0.540693, 0.121922, -0.585859, -0.443847, 0.170546,
            0.188879, -0.306358, -0.308599, -0.212987, 0.012301, 0.574838,
            0.681862, 0.229355, -0.222245, -0.222203, -0.129962, 0.329717,
            0.142439, -0.132018, 0.103092, 0.052337, -0.034299, -0.041558,
            0.141547,
        ],
        height=[
            1.104270, 0.120389, 0.271996, 0.246571, 0.029848, -0.489273,
            -0.734283, -0.796145, -0.441830, -0.033330, 0.415667, 0.341943,
            0.380445, 0.260451, 0.092989, -0.161122, -0.173544, -0.015523,
            0.251668, 0.022534, 0.054093, 0.005430, -0.035820, -0.057551,
            0.161558,
        ],
    )
])


# ---------------------------------------------------------
# Document parsing
# ---------------------------------------------------------
def _numbers(values, group: str):
    out = []
    for i, v in enumerate(values):
        try:
            out.append(float(str(v).strip()))
        except (TypeError, ValueError):
            raise WeightsFormatError(
                f"{group} weight #{i} is not a number: {v!r}"
            ) from None
    return out


def parse_weights_xml(text) -> RegressionWeights:
    """
    Parse a document of the form::

        <weights>
          <backness><weight>0.99</weight>...</backness>
          <height><weight>1.10</weight>...</height>
        </weights>
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise WeightsFormatError(f"unparsable weight document: {e}") from e

    groups = {}
    for name in ("backness", "height"):
        node = root if root.tag == name else root.find(f".//{name}")
        if node is None:
            raise WeightsFormatError(f"missing <{name}> group")
        groups[name] = _numbers(
            [w.text for w in node.iter("weight")], name
        )

    return RegressionWeights(groups["backness"], groups["height"])


def parse_weights_json(text) -> RegressionWeights:
    """Parse ``{"backness": [...], "height": [...]}``."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise WeightsFormatError(f"unparsable weight document: {e}") from e

    if not isinstance(data, dict):
        raise WeightsFormatError("weight document must be an object")
    for name in ("backness", "height"):
        if not isinstance(data.get(name), list):
            raise WeightsFormatError(f"missing '{name}' list")

    return RegressionWeights(
        _numbers(data["backness"], "backness"),
        _numbers(data["height"], "height"),
    )


def load_weights_file(path) -> RegressionWeights:
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        weights = parse_weights_json(text)
    else:
        weights = parse_weights_xml(text)
    logger.info("Loaded %d regression weights from %s", len(weights), path)
    return weights


def weights_path(directory, normalize_features: bool) -> Path:
    """Weights document for raw or normalized MFCC features in ``directory``."""
    name = NORMALIZED_WEIGHTS_FILE if normalize_features else WEIGHTS_FILE
    return Path(directory) / name


def load_regression_weights(
    directory,
    normalize_features: bool,
    base: Optional[WeightTable] = None,
) -> WeightTable:
    """
    Load the weights matching the normalize-features setting from
    ``directory`` and return ``base`` (built-in table by default) extended
    with them.
    """
    weights = load_weights_file(weights_path(directory, normalize_features))
    return (base if base is not None else BUILTIN_WEIGHTS).with_entry(weights)
