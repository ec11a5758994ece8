"""Quiz domain services: click scoring and player statistics.

Pure(ish) domain logic imported by HTTP routes and socket handlers, keeping
transport concerns separated from grading and bookkeeping.
"""

from .errors import (
    QuizError,
    UnknownRegionError,
    PersistenceUnavailable,
    InvalidSessionState,
    InvalidResetToken,
)
from .regions import KRAJ_NAMES, RegionCatalogue, RegionRef, geometry_centroid, kraj_name
from .scoring import Attempt, grade_attempt, haversine_km, precision_coefficient, error_severity
from .statistics import StatisticsService, create_default_stats

__all__ = [
    'QuizError',
    'UnknownRegionError',
    'PersistenceUnavailable',
    'InvalidSessionState',
    'InvalidResetToken',
    'KRAJ_NAMES',
    'RegionCatalogue',
    'RegionRef',
    'geometry_centroid',
    'kraj_name',
    'Attempt',
    'grade_attempt',
    'haversine_km',
    'precision_coefficient',
    'error_severity',
    'StatisticsService',
    'create_default_stats',
]
