from .configuration import Configuration, NpConfiguration, config_dist
from .constraints import (
    Constraint,
    FunctionConstraint,
    AffineConfigurationSpaceEqualityConstraint,
    ConstraintIntersection,
)
from .constrained_space import (
    ConstrainedSpace,
    ConstrainedSpaceConfig,
    ConstrainedSpaceConfigurationError,
    check_space,
    geodesic_interpolate,
    load_space_config,
)

__all__ = [
    "Configuration",
    "NpConfiguration",
    "config_dist",
    "Constraint",
    "FunctionConstraint",
    "AffineConfigurationSpaceEqualityConstraint",
    "ConstraintIntersection",
    "ConstrainedSpace",
    "ConstrainedSpaceConfig",
    "ConstrainedSpaceConfigurationError",
    "check_space",
    "geodesic_interpolate",
    "load_space_config",
]
