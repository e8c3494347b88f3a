import logging

import numpy as np

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from constrained_manifold_planning.problems.configuration import Configuration
from constrained_manifold_planning.problems.constrained_space import (
    AmbientPoint,
    ConstrainedSpace,
    check_space,
    geodesic_interpolate,
)

logger = logging.getLogger(__name__)

FLOAT_EPS = np.finfo(np.float64).eps


@dataclass
class TraversalResult:
    """
    Outcome of walking from one point towards another on the manifold.
    path always starts with a copy of the start point, and ends with a copy
    of the goal if and only if success is True.
    """

    success: bool
    path: List[AmbientPoint] = field(default_factory=list)

    def __bool__(self):
        return self.success


class ManifoldRetraction(ABC):
    """
    Base class for the strategies that discretize a motion between two
    on-manifold points into steps of length delta and pull every step back
    onto the manifold.

    The outer loop and its abort conditions are shared:
    - the start point does not satisfy the constraint
    - a corrected step is invalid (unless only interpolating)
    - a corrected step moved further than 2 * delta from the previous point
    - a corrected step is not closer to the goal than the previous point
    Subclasses only define how a naive straight-line step is corrected.
    """

    name: str

    def __init__(self, space: ConstrainedSpace):
        error = check_space(space)
        if error is not None:
            raise error

        self.space = space
        self.constraint = space.constraint

    def __repr__(self):
        return f"{type(self).__name__}({self.space})"

    @abstractmethod
    def correct_step(self, previous: AmbientPoint, candidate: AmbientPoint) -> bool:
        """
        Moves `candidate`, the straight-line step taken from `previous`,
        back onto the manifold in place.
        Returns False if no correction could be computed.
        """
        pass

    def retract_step(
        self,
        from_state: AmbientPoint,
        to_state: AmbientPoint,
        interpolate: bool = False,
        state_list: Optional[List[AmbientPoint]] = None,
    ) -> TraversalResult:
        """
        Walks from `from_state` towards `to_state` along the manifold.

        Args:
            from_state: start, expected to satisfy the constraint
            to_state: goal
            interpolate: skip the validity checks, the walk is then only used
                to approximate the manifold geometry
            state_list: optional list that is cleared and filled with the path

        Returns:
            TraversalResult with the (possibly partial) path.
        """
        space = self.space

        path = state_list if state_list is not None else []
        path.clear()
        path.append(space.clone(from_state))

        dist = space.distance(from_state, to_state)
        if not np.isfinite(dist):
            logger.debug("%s: non-finite end points", self.name)
            return TraversalResult(False, path)

        if space.valid_segment_count(from_state, to_state) == 0:
            return TraversalResult(True, path)

        if not self.constraint.is_satisfied(from_state):
            # happens regularly for freshly sampled starts, not an error
            return TraversalResult(False, path)

        delta = space.delta

        with space.scratch_states(from_state) as (previous, candidate):
            there = dist < delta + FLOAT_EPS
            while not there:
                t = delta / dist
                space.interpolate(previous, to_state, t, out=candidate)

                if not self.correct_step(previous, candidate):
                    logger.debug("%s: correction failed after %d steps", self.name, len(path))
                    break

                valid = interpolate or space.is_valid(candidate)
                deviated = space.distance(previous, candidate) > 2.0 * delta

                if not valid or deviated:
                    logger.debug(
                        "%s: stopped after %d steps (valid=%s, deviated=%s)",
                        self.name,
                        len(path),
                        valid,
                        deviated,
                    )
                    break

                path.append(space.clone(candidate))

                # divergence: the step did not bring us closer to the goal
                new_dist = space.distance(candidate, to_state)
                if new_dist >= dist:
                    logger.debug("%s: diverged after %d steps", self.name, len(path))
                    break

                dist = new_dist
                space.copy_into(previous, candidate)

                there = dist < delta + FLOAT_EPS

        if there:
            path.append(space.clone(to_state))

        return TraversalResult(there, path)

    def interpolate(
        self, from_state: AmbientPoint, to_state: AmbientPoint, t: float
    ) -> AmbientPoint:
        """
        Point at the fraction t along the manifold geodesic between the two
        points. If the walk does not reach `to_state`, interpolates along
        the part of the geodesic that was found.
        """
        result = self.retract_step(from_state, to_state, interpolate=True)
        vec = geodesic_interpolate(result.path, t)

        if isinstance(from_state, Configuration):
            return from_state.from_flat(vec)

        return vec


class ProjectionRetraction(ManifoldRetraction):
    """
    Takes a straight-line step and projects it back with Newton's method.
    """

    name = "projection"

    def correct_step(self, previous, candidate):
        return self.constraint.project(candidate)


RETRACTIONS: Dict[str, Callable[[ConstrainedSpace], ManifoldRetraction]] = {}


def register(name: str):
    def decorator(cls):
        if name in RETRACTIONS:
            raise ValueError(f"Duplicate retraction name: {name}")
        RETRACTIONS[name] = cls
        cls.name = name
        return cls

    return decorator


register("projection")(ProjectionRetraction)


def get_all_retractions():
    return RETRACTIONS


def make_retraction(name: str, space: ConstrainedSpace) -> ManifoldRetraction:
    try:
        factory = RETRACTIONS[name]
    except KeyError:
        raise ValueError(f"Unknown retraction: {name}")

    return factory(space)
