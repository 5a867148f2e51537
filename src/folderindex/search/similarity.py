"""Vector similarity helpers."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def l2_normalize(a: np.ndarray) -> np.ndarray:
    """Row-normalize a 2-D float32 array; zero rows stay zero."""
    norms = np.linalg.norm(a, axis=1, keepdims=True)
    return (a / np.where(norms == 0, 1.0, norms)).astype(np.float32)


def cosine_similarity(x: Sequence[float], y: Sequence[float]) -> float:
    """Cosine of the angle between *x* and *y*, in [-1, 1].

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        ValueError: If the vectors differ in length.
    """
    if len(x) != len(y):
        raise ValueError(f"Vectors must have the same length ({len(x)} != {len(y)})")
    a = np.asarray(x, dtype=np.float64)
    b = np.asarray(y, dtype=np.float64)
    magnitude = float(np.linalg.norm(a) * np.linalg.norm(b))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(a, b) / magnitude)
