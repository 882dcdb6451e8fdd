"""Embedding-space helpers.

All stored item vectors are unit length, and distance is cosine distance
(``1 - cos``), so it always lies in [0, 2] and ``similarity = 1 - distance / 2``
lies in [0, 1]. Query vectors may have any non-zero magnitude; they are
normalized before they reach the index.
"""
from typing import Sequence, Union

import numpy as np

from app.core.exceptions import VectorDimensionError

VectorLike = Union[Sequence[float], np.ndarray]


class VectorDimension:
    """The fixed dimensionality shared by every vector in one deployment"""

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError("vector dimension must be positive")
        self.size = int(size)

    def validate(self, vector: VectorLike, context: str = "vector") -> np.ndarray:
        """Return ``vector`` as a float64 array, or raise on a shape mismatch"""
        array = np.asarray(vector, dtype=np.float64)
        if array.ndim != 1 or array.shape[0] != self.size:
            actual = array.shape[-1] if array.ndim else 0
            raise VectorDimensionError(self.size, int(actual), context)
        if not np.all(np.isfinite(array)):
            raise ValueError(f"{context} contains non-finite values")
        return array

    def __eq__(self, other) -> bool:
        return isinstance(other, VectorDimension) and other.size == self.size

    def __repr__(self) -> str:
        return f"VectorDimension({self.size})"


def normalize(vector: VectorLike) -> np.ndarray:
    """Scale to unit length; the zero vector is returned unchanged"""
    array = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(array)
    if norm == 0 or not np.isfinite(norm):
        return array
    return array / norm


def cosine(a: VectorLike, b: VectorLike) -> float:
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.0
    return float(np.dot(a, b) / denom)


def cosine_distance(a: VectorLike, b: VectorLike) -> float:
    return float(min(2.0, max(0.0, 1.0 - cosine(a, b))))


def similarity_from_distance(distance: float) -> float:
    return 1.0 - float(distance) / 2.0


def to_list(vector: VectorLike) -> list:
    return [float(x) for x in np.asarray(vector, dtype=np.float64).tolist()]
