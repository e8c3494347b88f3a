from __future__ import annotations

import logging

import numpy as np
import scipy.linalg
from numpy.linalg import norm, LinAlgError
from typing import List, Protocol, Tuple
from numpy.typing import NDArray

logger = logging.getLogger(__name__)


class EqualityConstraint(Protocol):
    projection_tolerance: float
    projection_max_iterations: int

    def function(self, x: NDArray) -> NDArray: ...
    def jacobian(self, x: NDArray) -> NDArray: ...


# ============================================================
# AFFINE PROJECTORS
# ============================================================

def _orth_proj_eq_general(x: NDArray, A_list: List[NDArray], b_list: List[NDArray]) -> NDArray:
    """
    Exact orthogonal projection onto the stacked affine equalities A x = b.
    Robust to redundancy and overdetermined stacks via normal equations solve:
        x* = x - Aᵀ y,   with   (A Aᵀ) y = A x - b
    """
    if not A_list:
        return x
    A = np.vstack(A_list)
    b = np.concatenate([np.ravel(b) for b in b_list])
    Ax_minus_b = A @ x - b
    # lstsq gives the minimum-norm y for rank-deficient stacks
    y, *_ = np.linalg.lstsq(A @ A.T, Ax_minus_b, rcond=None)
    return x - A.T @ y


def project_affine_only(x: NDArray, constraints: List) -> NDArray:
    """
    One-shot orthogonal projection of x onto the intersection of affine
    equality constraints (objects exposing `mat` and `constraint_pose`).
    Returns a new vector, x is left untouched.
    """
    x = np.asarray(x, dtype=np.float64)
    return _orth_proj_eq_general(
        x, [c.mat for c in constraints], [c.constraint_pose for c in constraints]
    )


# ============================================================
# TANGENT SPACE
# ============================================================

def nullspace_basis(J: NDArray, rcond: float = 1e-12) -> Tuple[NDArray, NDArray]:
    """
    Kernel basis of J from a QR decomposition with column pivoting.

    With J P = Q [R11 R12], the basis is P [-R11^-1 R12; I], i.e. every basis
    vector is one on exactly one free (non-pivot) coordinate and zero on the
    other free coordinates.

    Returns:
        N: (n, d) kernel basis, d = n - rank(J)
        free: (d,) free coordinate of every column, N[free[i], i] == 1
    """
    J = np.atleast_2d(np.asarray(J, dtype=np.float64))
    n = J.shape[1]

    _, R, piv = scipy.linalg.qr(J, mode="economic", pivoting=True)
    diag = np.abs(np.diag(R))

    r = int(np.sum(diag > rcond * diag[0])) if diag.size and diag[0] > 0 else 0
    d = n - r

    if r == 0:
        N_perm = np.eye(n)
    else:
        R11 = R[:r, :r]
        R12 = R[:r, r:]
        N_perm = np.vstack([-scipy.linalg.solve_triangular(R11, R12), np.eye(d)])

    N = np.empty((n, d), dtype=np.float64)
    N[piv, :] = N_perm

    return N, piv[r:]


def tangent_step(J: NDArray, v: NDArray) -> NDArray:
    """
    Maps the ambient displacement v into the tangent space (kernel of J).

    The map is the oblique projector onto the kernel along the pivot
    coordinates: the components of v on the free coordinates are kept and the
    pivot components are solved for so that J @ result == 0.
    Every basis vector is paired with its own free coordinate, so the result
    does not depend on the order of the basis.
    """
    N, free = nullspace_basis(J)

    return N @ v[free]


# ============================================================
# NONLINEAR PROJECTORS
# ============================================================

def _newton_converged(x: NDArray, f: NDArray, tol: float) -> bool:
    # NaN residuals never compare as converged
    return bool(np.all(np.isfinite(x)) and norm(f) <= tol)


def project_newton(x: NDArray, constraint: EqualityConstraint) -> bool:
    """
    Projects x onto the constraint manifold in place, using Newton's method
    with the minimum-norm least-squares step x <- x - J⁺ f(x).

    Iterates until |f(x)| <= projection_tolerance, and performs at most
    projection_max_iterations corrections.

    Returns:
        True if the tolerance was reached within the iteration budget.
    """
    tol = constraint.projection_tolerance
    max_iters = constraint.projection_max_iterations

    f = np.asarray(constraint.function(x), dtype=np.float64).reshape(-1)

    iterations = 0
    while not _newton_converged(x, f, tol):
        if iterations >= max_iters:
            logger.debug("projection did not converge, residual %s", norm(f))
            return False
        iterations += 1

        J = np.asarray(constraint.jacobian(x), dtype=np.float64)
        if not (np.all(np.isfinite(J)) and np.all(np.isfinite(f))):
            logger.debug("projection hit non-finite values after %d iterations", iterations)
            return False

        try:
            dq, *_ = scipy.linalg.lstsq(J, f, lapack_driver="gelsd")
        except LinAlgError:
            return False

        x -= dq
        f = np.asarray(constraint.function(x), dtype=np.float64).reshape(-1)

    return True
