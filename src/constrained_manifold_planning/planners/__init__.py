from .retraction import (
    ManifoldRetraction,
    ProjectionRetraction,
    TraversalResult,
    make_retraction,
    get_all_retractions,
)
from .nullspace_retraction import NullspaceRetraction
from .motion_validator import ConstrainedMotionValidator

__all__ = [
    "ManifoldRetraction",
    "ProjectionRetraction",
    "NullspaceRetraction",
    "TraversalResult",
    "make_retraction",
    "get_all_retractions",
    "ConstrainedMotionValidator",
]
