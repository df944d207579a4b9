# analysis/scale.py
import numpy as np


def map_to_scale(value, from_start, from_end, to_start, to_end):
    """
    Linearly map ``value`` from [from_start, from_end] onto [to_start, to_end].

    ``from_start`` lands on ``to_start``; passing the source range reversed
    flips the direction. Values outside the source range are extrapolated,
    never clamped.
    """
    span = from_end - from_start
    if span == 0:
        raise ValueError("source range is empty")
    return to_start + (value - from_start) * (to_end - to_start) / span


def predict(features, weights):
    """Linear prediction: sum of elementwise products."""
    x = np.asarray(features, dtype=float)
    w = np.asarray(weights, dtype=float)
    if x.shape != w.shape:
        raise ValueError(
            f"feature length {x.size} does not match weight length {w.size}"
        )
    return float(np.dot(x, w))


def next_pow2(n):
    """Smallest power of two >= n."""
    if n <= 1:
        return 1
    return 1 << int(np.ceil(np.log2(n)))
