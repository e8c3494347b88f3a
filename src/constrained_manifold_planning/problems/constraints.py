import numpy as np

from abc import ABC, abstractmethod

from typing import Callable, List, Optional
from numpy.typing import NDArray

from .configuration import Configuration, as_vector
from .differentiation import finite_difference_jacobian
from .constraints_projection import project_newton


class Constraint(ABC):
    """
    Implicit definition of a constraint manifold {x in R^n | f(x) = 0}.

    n is the dimension of the ambient space and k the dimension of the
    manifold, so f maps to R^(n - k). All methods accept either a flat
    numpy array or a Configuration and never keep per-call state, so one
    instance can be shared by every state and thread of a planner.
    """

    def __init__(
        self,
        n: int,
        k: int,
        projection_tolerance: float = 1e-4,
        projection_max_iterations: int = 50,
    ):
        if not 0 <= k < n:
            raise ValueError(f"Manifold dimension must be in [0, n), got n={n}, k={k}.")
        if not projection_tolerance > 0:
            raise ValueError("Projection tolerance must be positive.")
        if projection_max_iterations < 0:
            raise ValueError("Projection iteration limit must be non-negative.")

        self.n = n
        self.k = k
        self.projection_tolerance = projection_tolerance
        self.projection_max_iterations = projection_max_iterations

    @property
    def codim(self) -> int:
        return self.n - self.k

    def __repr__(self):
        return (
            f"{type(self).__name__}(n={self.n}, k={self.k}, "
            f"tol={self.projection_tolerance}, max_iters={self.projection_max_iterations})"
        )

    def _vector(self, x: Configuration | NDArray) -> NDArray:
        vec = as_vector(x)
        if len(vec) != self.n:
            raise ValueError(f"Expected an ambient point of dimension {self.n}, got {len(vec)}.")
        return vec

    @abstractmethod
    def function(self, x: Configuration | NDArray) -> NDArray:
        """
        Residual f(x) of shape (n - k,), zero exactly on the manifold.
        """
        pass

    def jacobian(self, x: Configuration | NDArray) -> NDArray:
        """
        Jacobian of f at x, shape (n - k, n).
        Defaults to a finite-difference approximation, which costs 6 * n
        evaluations of f. Override with the analytic Jacobian when available.
        """
        vec = self._vector(x)
        return finite_difference_jacobian(self.function, vec, self.codim)

    def distance(self, x: Configuration | NDArray) -> float:
        return float(np.linalg.norm(self.function(x)))

    def is_satisfied(self, x: Configuration | NDArray) -> bool:
        """
        True if x has no non-finite coordinate and |f(x)| <= projection_tolerance.
        """
        vec = self._vector(x)
        if not np.all(np.isfinite(vec)):
            return False

        return self.distance(vec) <= self.projection_tolerance

    def project(self, x: Configuration | NDArray) -> bool:
        """
        Moves x onto the manifold in place with Newton's method.
        Returns False if the tolerance is not reached within
        projection_max_iterations, x then holds the last iterate.

        x must be a Configuration or a writable float64 array, anything
        that would have to be converted first raises a ValueError.
        """
        vec = self._vector(x)
        if not isinstance(x, Configuration) and vec is not x:
            raise ValueError(
                f"Cannot project {type(x).__name__} in place, expected a float64 array."
            )
        if not vec.flags.writeable:
            raise ValueError("Cannot project a read-only array in place.")

        return project_newton(vec, self)


class FunctionConstraint(Constraint):
    """
    Constraint given by plain callables.
    If no Jacobian is given, it is approximated numerically.
    """

    def __init__(
        self,
        n: int,
        k: int,
        function: Callable[[NDArray], NDArray],
        jacobian: Optional[Callable[[NDArray], NDArray]] = None,
        projection_tolerance: float = 1e-4,
        projection_max_iterations: int = 50,
    ):
        super().__init__(n, k, projection_tolerance, projection_max_iterations)
        self._function = function
        self._jacobian = jacobian

    def function(self, x):
        vec = self._vector(x)
        return np.asarray(self._function(vec), dtype=np.float64).reshape(self.codim)

    def jacobian(self, x):
        if self._jacobian is None:
            return super().jacobian(x)

        vec = self._vector(x)
        return np.asarray(self._jacobian(vec), dtype=np.float64).reshape(self.codim, self.n)


# constraint of the form
# A * q = b
# can be used to e.g. constrain the configuration space pose to a certain value
# or to ensure that two values in the pose are the same
class AffineConfigurationSpaceEqualityConstraint(Constraint):
    def __init__(
        self,
        projection_matrix: NDArray,
        pose: NDArray,
        projection_tolerance: float = 1e-4,
        projection_max_iterations: int = 50,
    ):
        self.mat = np.atleast_2d(np.asarray(projection_matrix, dtype=np.float64))
        self.constraint_pose = np.asarray(pose, dtype=np.float64).reshape(-1)

        assert self.mat.shape[0] == len(self.constraint_pose)

        n = self.mat.shape[1]
        super().__init__(
            n, n - self.mat.shape[0], projection_tolerance, projection_max_iterations
        )

    def function(self, x):
        """Residual F(q) = A q - b (zero when satisfied)."""
        return self.mat @ self._vector(x) - self.constraint_pose

    def jacobian(self, x):
        """Jacobian: constant A for affine constraints."""
        return self.mat.copy()


class ConstraintIntersection(Constraint):
    """
    Intersection of several constraints on the same ambient space.
    Residuals and Jacobians are stacked in the order the constraints are given.
    """

    def __init__(
        self,
        n: int,
        constraints: List[Constraint],
        projection_tolerance: float = 1e-4,
        projection_max_iterations: int = 50,
    ):
        if not constraints:
            raise ValueError("Need at least one constraint to intersect.")

        for c in constraints:
            if c.n != n:
                raise ValueError(f"Constraint {c} does not live in a {n}-dimensional space.")

        self.constraints = list(constraints)

        k = n - sum(c.codim for c in self.constraints)
        super().__init__(n, k, projection_tolerance, projection_max_iterations)

    def function(self, x):
        vec = self._vector(x)
        return np.concatenate([c.function(vec) for c in self.constraints])

    def jacobian(self, x):
        vec = self._vector(x)
        return np.vstack([c.jacobian(vec) for c in self.constraints])
