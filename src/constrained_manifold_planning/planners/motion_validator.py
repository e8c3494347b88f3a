from typing import Optional, Tuple

from constrained_manifold_planning.problems.constrained_space import (
    AmbientPoint,
    ConstrainedSpace,
    check_space,
)

from .retraction import ManifoldRetraction, make_retraction


class ConstrainedMotionValidator:
    """
    Certifies motions on the constraint manifold: a motion is valid if the
    retraction reaches the goal while every intermediate point passes the
    validity checker of the space.
    """

    def __init__(
        self, space: ConstrainedSpace, retraction: Optional[ManifoldRetraction] = None
    ):
        error = check_space(space)
        if error is not None:
            raise error

        if retraction is None:
            retraction = make_retraction(space.config.retraction, space)

        self.space = space
        self.retraction = retraction

    def check_motion(self, s1: AmbientPoint, s2: AmbientPoint) -> bool:
        return self.retraction.retract_step(s1, s2, interpolate=False).success

    def check_motion_partial(
        self, s1: AmbientPoint, s2: AmbientPoint
    ) -> Tuple[bool, AmbientPoint, float]:
        """
        Like check_motion, but also reports how far the motion validly extends.

        Returns:
            (valid, last valid point, fraction of the straight-line distance
            s1-s2 that the last valid point is away from s1)
        """
        result = self.retraction.retract_step(s1, s2, interpolate=False)
        last_valid = result.path[-1]

        if result.success:
            return True, last_valid, 1.0

        total = self.space.distance(s1, s2)
        if total == 0:
            return False, last_valid, 0.0

        fraction = min(self.space.distance(s1, last_valid) / total, 1.0)

        return False, last_valid, fraction
