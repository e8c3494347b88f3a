import numpy as np
import scipy.linalg
from numpy.linalg import LinAlgError
from typing import List, Optional

from constrained_manifold_planning.problems.configuration import as_vector
from constrained_manifold_planning.problems.constrained_space import AmbientPoint
from constrained_manifold_planning.problems.constraints_projection import tangent_step

from .retraction import ManifoldRetraction, TraversalResult, register


@register("nullspace")
class NullspaceRetraction(ManifoldRetraction):
    """
    Walks along the manifold using its local linearization at the previous point.

    A straight-line step of length delta towards the goal is split into a
    Newton pull-back onto the manifold and a tangential advance:

        candidate <- previous - J⁺ f(previous) + K (candidate - previous)

    where J and f are evaluated at `previous` and K maps the step into the
    kernel of J (the tangent space). One linearization per step is a lot
    cheaper than a full projection, and follows curved manifolds over long
    motions as long as delta is small compared to the curvature.
    """

    def correct_step(self, previous, candidate):
        p = as_vector(previous)
        c = as_vector(candidate)

        f = self.constraint.function(p)
        J = self.constraint.jacobian(p)

        if not (np.all(np.isfinite(f)) and np.all(np.isfinite(J))):
            return False

        try:
            pull_back, *_ = scipy.linalg.lstsq(J, f, lapack_driver="gelsd")
        except LinAlgError:
            return False

        c[:] = p - pull_back + tangent_step(J, c - p)

        return True

    def traverse_manifold(
        self,
        from_state: AmbientPoint,
        to_state: AmbientPoint,
        interpolate: bool = False,
        state_list: Optional[List[AmbientPoint]] = None,
    ) -> TraversalResult:
        return self.retract_step(from_state, to_state, interpolate, state_list)
