"""
Random source helpers.

Every generator draws randomness through a single object exposing
``random() -> float in [0, 1)``. A numpy ``Generator`` and the standard
library ``random.Random`` both satisfy it, so tests can inject a seeded
source and assert exact output.
"""

import numpy as np


def make_rng(rng=None):
    """
    Resolve the caller's random source.

    Parameters
    ----------
    rng : None, int or object with ``random()``
        None draws a fresh unseeded numpy Generator, an int seeds one.

    Returns
    -------
    object exposing ``random()``
    """
    if rng is None:
        return np.random.default_rng()
    if isinstance(rng, (int, np.integer)):
        return np.random.default_rng(int(rng))
    if not hasattr(rng, "random"):
        raise TypeError("Random source must expose a random() method")
    return rng


def rand_index(rng, n):
    """Uniform integer in [0, n)."""
    idx = int(rng.random() * n)
    # guards against sources that can return exactly 1.0
    return min(idx, n - 1)


def rand_number(rng, max_number=49):
    """Uniform lottery number in [1, max_number]."""
    return rand_index(rng, max_number) + 1


def shuffled(items, rng):
    """Return a Fisher-Yates shuffled copy of ``items``."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rand_index(rng, i + 1)
        result[i], result[j] = result[j], result[i]
    return result


def weighted_choice(values, weights, rng):
    """
    Pick one element of ``values`` with probability proportional to ``weights``.

    Falls back to a uniform pick when every weight is zero.
    """
    weights = np.asarray(weights, dtype=np.float64)
    total = weights.sum()
    if total <= 0:
        return values[rand_index(rng, len(values))]
    cumulative = np.cumsum(weights)
    target = rng.random() * total
    idx = int(np.searchsorted(cumulative, target, side="right"))
    return values[min(idx, len(values) - 1)]
