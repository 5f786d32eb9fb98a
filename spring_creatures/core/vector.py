"""
3D vector helpers.

Vectors are plain numpy float64 arrays of shape (3,). Most helpers also accept
(n, 3) batches, operating along the last axis.
"""

import numpy as np

# Magnitudes below this are treated as zero.
EPSILON = 1e-6


def vector(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> np.ndarray:
    """Create a new 3D vector."""
    return np.array([x, y, z], dtype=np.float64)


def add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a + b


def subtract(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a - b


def multiply(a: np.ndarray, scalar: float) -> np.ndarray:
    return a * scalar


def dot(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Dot product along the last axis."""
    return np.sum(a * b, axis=-1)


def length(a: np.ndarray) -> np.ndarray:
    """Euclidean length along the last axis."""
    return np.sqrt(dot(a, a))


def normalize(a: np.ndarray) -> np.ndarray:
    """
    Scale a vector to unit length.

    Zero vectors (and zero rows of a batch) are returned unchanged.
    """
    norms = length(a)
    if np.ndim(norms) == 0:
        if norms < EPSILON:
            return a.copy()
        return a / norms
    safe = np.where(norms < EPSILON, 1.0, norms)
    return a / safe[..., np.newaxis]


def iszero(value: float) -> bool:
    """Whether a scalar is within EPSILON of zero."""
    return abs(value) < EPSILON


def is_zero(a: np.ndarray) -> bool:
    """Whether every component of the vector is (nearly) zero."""
    return bool(np.all(np.abs(a) < EPSILON))


def is_nan(a: np.ndarray) -> bool:
    """Whether any component of the vector is NaN."""
    return bool(np.any(np.isnan(a)))
