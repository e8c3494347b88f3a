import numpy as np

from numpy.typing import NDArray
import numba

from abc import ABC, abstractmethod


class Configuration(ABC):
    """
    Base class for an ambient point that is embedded in a planning state.
    The numeric payload is exposed as one flat float64 buffer via state(),
    writes to that buffer are writes to the configuration.
    """

    @abstractmethod
    def state(self) -> NDArray:
        pass

    @abstractmethod
    def from_flat(self, q: NDArray) -> "Configuration":
        pass

    def dim(self) -> int:
        return len(self.state())

    def copy(self) -> "Configuration":
        return self.from_flat(self.state().copy())


# no fastmath: non-finite coordinates have to survive into the distance
@numba.jit(
    numba.float64[:](numba.float64[:, :]),
    nopython=True,
    boundscheck=False,
)
def compute_euclidean_dists(diff: NDArray) -> NDArray:
    """Euclidean norm of every row of diff."""
    num_samples, dim = diff.shape
    dists = np.empty(num_samples, dtype=np.float64)

    for j in range(num_samples):
        sum_squared = 0.0
        for k in range(dim):
            sum_squared += diff[j, k] * diff[j, k]

        dists[j] = np.sqrt(sum_squared)

    return dists


class NpConfiguration(Configuration):
    """
    Stores the ambient point in a single contiguous float64 array.
    """

    __slots__ = ("q",)

    q: NDArray

    def __init__(self, q: NDArray):
        self.q = np.array(q, dtype=np.float64).reshape(-1)

    def __repr__(self):
        return f"NpConfiguration({self.q.tolist()})"

    @classmethod
    def from_numpy(cls, arr: NDArray) -> "NpConfiguration":
        return cls(arr)

    def from_flat(self, q: NDArray) -> "NpConfiguration":
        assert q.shape == self.q.shape, "Shape mismatch"
        return NpConfiguration(q)

    def state(self) -> NDArray:
        return self.q


def as_vector(x: Configuration | NDArray) -> NDArray:
    """
    Returns the flat ambient vector behind x without copying.
    Raw arrays are passed through (converted to float64 if necessary),
    configurations expose their own buffer.
    """
    if isinstance(x, Configuration):
        return x.state()

    arr = np.asarray(x, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError(f"Expected a flat ambient vector, got shape {arr.shape}.")

    return arr


def config_dist(q_start: Configuration, q_end: Configuration) -> float:
    """
    Euclidean distance between two configurations.
    """
    diff = np.atleast_2d(q_start.state() - q_end.state())
    return float(compute_euclidean_dists(diff)[0])
