from simple_parsing import ArgumentParser

import json
import logging

import numpy as np

from constrained_manifold_planning.problems import (
    ConstrainedSpace,
    ConstrainedSpaceConfig,
    FunctionConstraint,
    load_space_config,
)
from constrained_manifold_planning.planners import make_retraction, get_all_retractions

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def make_sphere_constraint(config: ConstrainedSpaceConfig, radius: float) -> FunctionConstraint:
    return FunctionConstraint(
        3,
        2,
        lambda x: np.array([x @ x - radius**2]),
        projection_tolerance=config.projection_tolerance,
        projection_max_iterations=config.projection_max_iterations,
    )


def main():
    parser = ArgumentParser(description="Walks between two points on a sphere.")

    parser.add_argument("--start", type=float, nargs=3, default=[1.0, 0.0, 0.0])
    parser.add_argument("--goal", type=float, nargs=3, default=[0.0, 1.0, 0.0])
    parser.add_argument("--radius", type=float, default=1.0)
    parser.add_argument(
        "--config", type=str, default=None, help="JSON file with the space config."
    )
    parser.add_argument(
        "--max_height",
        type=float,
        default=None,
        help="Points with a z coordinate above this are treated as invalid.",
    )
    parser.add_argument("--verbose", action="store_true")

    parser.add_arguments(ConstrainedSpaceConfig, dest="space_config", prefix="space.")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger("constrained_manifold_planning").setLevel(logging.DEBUG)

    config = args.space_config
    if args.config is not None:
        config = load_space_config(args.config)

    if config.retraction not in get_all_retractions():
        raise ValueError(f"Unknown retraction: {config.retraction}")

    validity_checker = None
    if args.max_height is not None:
        validity_checker = lambda x: x[2] <= args.max_height

    constraint = make_sphere_constraint(config, args.radius)
    space = ConstrainedSpace(constraint, config, validity_checker)
    retraction = make_retraction(config.retraction, space)

    start = np.array(args.start)
    goal = np.array(args.goal)

    for q in (start, goal):
        if not constraint.is_satisfied(q) and not constraint.project(q):
            raise ValueError(f"Could not project {q} onto the sphere.")

    logger.info("Config: %s", json.dumps(config.to_dict(), indent=4))

    result = retraction.retract_step(start, goal)

    logger.info("Reached goal: %s", result.success)
    logger.info("Number of points: %d", len(result.path))
    logger.info(
        "Max. constraint violation: %s",
        max(constraint.distance(q) for q in result.path),
    )


if __name__ == "__main__":
    main()
