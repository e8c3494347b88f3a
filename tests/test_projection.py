import pytest

import numpy as np

from constrained_manifold_planning.problems.constraints import (
    AffineConfigurationSpaceEqualityConstraint,
    FunctionConstraint,
)
from constrained_manifold_planning.problems.constraints_projection import (
    nullspace_basis,
    project_affine_only,
    project_newton,
    tangent_step,
)


@pytest.mark.parametrize("shape", [(1, 3), (2, 5), (3, 7), (1, 2)])
def test_nullspace_basis(shape):
    rng = np.random.default_rng(1)
    J = rng.normal(size=shape)

    N, free = nullspace_basis(J)

    m, n = shape
    assert N.shape == (n, n - m)
    assert free.shape == (n - m,)
    assert np.allclose(J @ N, 0, atol=1e-10)

    # every basis vector is one on its own free coordinate, zero on the others
    assert np.allclose(N[free, :], np.eye(n - m))


def test_nullspace_basis_rank_deficient():
    J = np.array([[1.0, 1.0, 0.0], [2.0, 2.0, 0.0]])

    N, free = nullspace_basis(J)

    assert N.shape == (3, 2)
    assert np.allclose(J @ N, 0)
    assert 2 in free


def test_nullspace_basis_of_zero_jacobian():
    N, free = nullspace_basis(np.zeros((1, 3)))

    assert N.shape == (3, 3)
    assert np.allclose(N[free, :], np.eye(3))


def test_tangent_step_is_oblique_projector():
    rng = np.random.default_rng(2)
    J = rng.normal(size=(2, 5))

    for _ in range(10):
        v = rng.normal(size=5)
        Kv = tangent_step(J, v)

        # lands in the tangent space
        assert np.allclose(J @ Kv, 0, atol=1e-10)
        # idempotent
        assert np.allclose(tangent_step(J, Kv), Kv)

    # tangent vectors are left untouched
    N, _ = nullspace_basis(J)
    t = N @ rng.normal(size=N.shape[1])
    assert np.allclose(tangent_step(J, t), t)


def test_tangent_step_on_sphere():
    # at (1, 0, 0) the tangent plane is spanned by y and z
    J = np.array([[2.0, 0.0, 0.0]])
    v = np.array([-0.1, 0.2, 0.3])

    assert np.allclose(tangent_step(J, v), [0.0, 0.2, 0.3])


def test_project_newton_converges_on_circle():
    circle = FunctionConstraint(2, 1, lambda x: np.array([x @ x - 4.0]))
    x = np.array([0.5, 0.5])

    assert project_newton(x, circle)
    assert np.linalg.norm(x) == pytest.approx(2.0, abs=1e-4)
    # minimum norm steps keep the direction
    assert x[0] == pytest.approx(x[1])


def test_project_newton_reports_exhausted_budget():
    # no real root, Newton can never reach the tolerance
    impossible = FunctionConstraint(
        2, 1, lambda x: np.array([x @ x + 1.0]), projection_max_iterations=20
    )
    x = np.array([1.0, 1.0])

    assert not project_newton(x, impossible)


def test_project_affine_only():
    A = np.array([[1.0, -1.0, 0.0]])
    lockstep = AffineConfigurationSpaceEqualityConstraint(A, np.zeros(1))
    height = AffineConfigurationSpaceEqualityConstraint(np.array([[0.0, 0.0, 1.0]]), np.ones(1))

    x = np.array([1.0, 0.0, 5.0])
    x_proj = project_affine_only(x, [lockstep, height])

    assert np.allclose(x_proj, [0.5, 0.5, 1.0])
    # input untouched
    assert np.array_equal(x, [1.0, 0.0, 5.0])

    assert lockstep.is_satisfied(x_proj)
    assert height.is_satisfied(x_proj)
