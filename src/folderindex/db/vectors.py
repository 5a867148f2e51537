"""Vector blob codec for the embeddings table.

Vectors are stored as flat little-endian float32 bytes, ``dim * 4`` long.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

_DTYPE = np.dtype("<f4")


def vector_to_blob(vector: Sequence[float] | np.ndarray) -> bytes:
    """Encode *vector* as little-endian float32 bytes."""
    return np.asarray(vector, dtype=_DTYPE).tobytes()


def blob_to_vector(blob: bytes, dim: int) -> np.ndarray:
    """Decode the first *dim* float32 values from *blob*.

    Raises:
        ValueError: If *blob* holds fewer than ``dim * 4`` bytes.
    """
    if dim < 0:
        raise ValueError(f"dim must be >= 0, got {dim}")
    needed = dim * _DTYPE.itemsize
    if len(blob) < needed:
        raise ValueError(
            f"Embedding blob is {len(blob)} bytes, expected at least {needed} for dim={dim}"
        )
    return np.frombuffer(blob, dtype=_DTYPE, count=dim).astype(np.float32)
