import json
import math

import numpy as np

from contextlib import contextmanager
from dataclasses import dataclass, fields, asdict
from typing import Any, Callable, Dict, Generator, List, Optional, Union
from numpy.typing import NDArray

from .configuration import Configuration, as_vector, config_dist
from .constraints import Constraint

CONSTRAINED_CAPABILITY = "constrained"

# Either a flat vector or a configuration wrapping one
AmbientPoint = Union[Configuration, NDArray]


class ConstrainedSpaceConfigurationError(ValueError):
    """
    Raised when an object that is supposed to provide the constrained
    manifold capability does not. Detected once, when a retraction or a
    motion validator is set up, never during traversal.
    """


@dataclass
class ConstrainedSpaceConfig:
    # discretization length, maximum ambient distance of one manifold step
    delta: float = 0.05
    projection_tolerance: float = 1e-4
    projection_max_iterations: int = 50
    # which manifold retraction to traverse with, see planners.retraction
    retraction: str = "nullspace"

    def validate(self) -> None:
        if not self.delta > 0:
            raise ValueError(f"delta must be positive, got {self.delta}.")
        if not self.projection_tolerance > 0:
            raise ValueError("projection_tolerance must be positive.")
        if self.projection_max_iterations < 0:
            raise ValueError("projection_max_iterations must be non-negative.")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_space_config(filepath: str) -> ConstrainedSpaceConfig:
    with open(filepath) as f:
        data = json.load(f)

    known = {f.name for f in fields(ConstrainedSpaceConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown config keys: {sorted(unknown)}")

    config = ConstrainedSpaceConfig(**data)
    config.validate()

    return config


class ConstrainedSpace:
    """
    Ambient space together with the constraint that restricts it.

    Provides the primitives the manifold retractions need: euclidean
    distance, straight-line interpolation, the number of discretization
    steps between two points and the (external) validity predicate.
    """

    manifold_capability = CONSTRAINED_CAPABILITY

    def __init__(
        self,
        constraint: Constraint,
        config: Optional[ConstrainedSpaceConfig] = None,
        validity_checker: Optional[Callable[[AmbientPoint], bool]] = None,
        ambient_dim: Optional[int] = None,
    ):
        if config is None:
            config = ConstrainedSpaceConfig(
                projection_tolerance=constraint.projection_tolerance,
                projection_max_iterations=constraint.projection_max_iterations,
            )
        config.validate()

        self.constraint = constraint
        self.config = config
        self.validity_checker = validity_checker
        self.ambient_dim = constraint.n if ambient_dim is None else ambient_dim

    @property
    def delta(self) -> float:
        return self.config.delta

    def __repr__(self):
        return f"ConstrainedSpace({self.constraint}, delta={self.delta})"

    def is_valid(self, x: AmbientPoint) -> bool:
        if self.validity_checker is None:
            return True

        return bool(self.validity_checker(x))

    def distance(self, a: AmbientPoint, b: AmbientPoint) -> float:
        if isinstance(a, Configuration) and isinstance(b, Configuration):
            return config_dist(a, b)

        return float(np.linalg.norm(as_vector(a) - as_vector(b)))

    def clone(self, x: AmbientPoint) -> AmbientPoint:
        if isinstance(x, Configuration):
            return x.copy()

        return np.array(x, dtype=np.float64)

    def copy_into(self, dst: AmbientPoint, src: AmbientPoint) -> None:
        as_vector(dst)[:] = as_vector(src)

    def interpolate(
        self, a: AmbientPoint, b: AmbientPoint, t: float, out: Optional[AmbientPoint] = None
    ) -> AmbientPoint:
        """
        Straight line interpolation a + t * (b - a).
        Written into `out` if given, otherwise into a fresh copy of a.
        """
        if out is None:
            out = self.clone(a)

        va = as_vector(a)
        as_vector(out)[:] = va + t * (as_vector(b) - va)

        return out

    def valid_segment_count(self, a: AmbientPoint, b: AmbientPoint) -> int:
        """Number of delta-sized segments needed to cover the straight line a-b."""
        return int(math.ceil(self.distance(a, b) / self.delta))

    @contextmanager
    def scratch_states(
        self, template: AmbientPoint, count: int = 2
    ) -> Generator[List[AmbientPoint], None, None]:
        """Scratch copies of template that are dropped on every exit path."""
        states = [self.clone(template) for _ in range(count)]
        try:
            yield states
        finally:
            states.clear()


def check_space(space: Any) -> Optional[ConstrainedSpaceConfigurationError]:
    """
    Checks that `space` provides the constrained manifold capability.
    Returns the configuration error, or None if the space can be used.
    """
    if getattr(space, "manifold_capability", None) != CONSTRAINED_CAPABILITY:
        return ConstrainedSpaceConfigurationError(
            f"{type(space).__name__} does not provide the constrained manifold capability."
        )

    constraint = getattr(space, "constraint", None)
    if not isinstance(constraint, Constraint):
        return ConstrainedSpaceConfigurationError(
            f"{type(space).__name__} has no constraint attached."
        )

    if space.ambient_dim != constraint.n:
        return ConstrainedSpaceConfigurationError(
            f"Constraint expects ambient dimension {constraint.n}, "
            f"space has dimension {space.ambient_dim}."
        )

    # the constraint projects with its own settings, the config has to agree
    config = space.config
    if (
        config.projection_tolerance != constraint.projection_tolerance
        or config.projection_max_iterations != constraint.projection_max_iterations
    ):
        return ConstrainedSpaceConfigurationError(
            f"Space config (tol={config.projection_tolerance}, "
            f"max_iters={config.projection_max_iterations}) disagrees with {constraint}."
        )

    return None


def path_length(path: List[AmbientPoint]) -> float:
    return float(
        sum(
            np.linalg.norm(as_vector(path[i + 1]) - as_vector(path[i]))
            for i in range(len(path) - 1)
        )
    )


def geodesic_interpolate(path: List[AmbientPoint], t: float) -> NDArray:
    """
    Point at the fraction t of the arc length of a piecewise linear path.
    Values of t outside [0, 1] are clamped to the end points.
    """
    if not path:
        raise ValueError("Cannot interpolate along an empty path.")

    pts = [as_vector(p) for p in path]

    if len(pts) == 1 or t <= 0:
        return pts[0].copy()
    if t >= 1:
        return pts[-1].copy()

    seg_lengths = [float(np.linalg.norm(pts[i + 1] - pts[i])) for i in range(len(pts) - 1)]
    total = sum(seg_lengths)
    if total == 0:
        return pts[0].copy()

    target = t * total
    travelled = 0.0
    for i, seg in enumerate(seg_lengths):
        if travelled + seg >= target and seg > 0:
            s = (target - travelled) / seg
            return pts[i] + s * (pts[i + 1] - pts[i])
        travelled += seg

    return pts[-1].copy()
