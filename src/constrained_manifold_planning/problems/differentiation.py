import numpy as np

from typing import Callable
from numpy.typing import NDArray

# step size scale, balances truncation against rounding error
SQRT_EPS = np.sqrt(np.finfo(np.float64).eps)


def finite_difference_jacobian(
    function: Callable[[NDArray], NDArray], x: NDArray, codim: int
) -> NDArray:
    """
    Approximates the Jacobian of `function` at `x` column by column.

    Every column is built from three central differences with spans 2h, 4h
    and 6h that are combined as 1.5 m1 - 0.6 m2 + 0.1 m3, which cancels the
    leading truncation terms (7-point stencil, sixth order in h).
    This costs 6 * len(x) evaluations of `function`.

    Args:
        function: residual function R^n -> R^codim
        x: point at which the Jacobian is evaluated, not modified
        codim: number of residual entries

    Returns:
        Jacobian of shape (codim, n).
    """
    x = np.asarray(x, dtype=np.float64)
    n = len(x)
    jac = np.empty((codim, n), dtype=np.float64)

    y1 = x.copy()
    y2 = x.copy()

    for j in range(n):
        h = SQRT_EPS * (x[j] if x[j] >= 1 else 1.0)

        slopes = []
        for _ in range(3):
            y1[j] += h
            y2[j] -= h
            t1 = np.asarray(function(y1), dtype=np.float64).reshape(-1)
            t2 = np.asarray(function(y2), dtype=np.float64).reshape(-1)

            # the represented span can differ from 2h by rounding
            slopes.append((t1 - t2) / (y1[j] - y2[j]))

        m1, m2, m3 = slopes
        jac[:, j] = 1.5 * m1 - 0.6 * m2 + 0.1 * m3

        y1[j] = x[j]
        y2[j] = x[j]

    return jac
