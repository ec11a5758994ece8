import math
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import UnknownRegionError
from .regions import RegionCatalogue

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
PRECISION_FLOOR_DISTANCE_KM = 50.0
WRONG_ANSWER_SPAN_KM = 300.0
MIN_COEFFICIENT = 0.5


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two WGS84 points in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def precision_coefficient(distance_km: float, floor_km: float = PRECISION_FLOOR_DISTANCE_KM) -> float:
    """Linear 1.0 at the centroid down to 0.5 at floor_km and beyond."""
    return max(MIN_COEFFICIENT, 1.0 - (distance_km / floor_km) * 0.5)


def error_severity(distance_km: float, span_km: float = WRONG_ANSWER_SPAN_KM) -> float:
    return min(max(distance_km, 0.0) / span_km, 1.0)


@dataclass
class Attempt:
    target_code: int
    clicked_code: int
    click: Tuple[float, float]
    correct: bool
    coefficient: Optional[float] = None
    distance_km: Optional[float] = None
    error_distance_km: Optional[float] = None
    error_severity: Optional[float] = None
    kraj: Optional[str] = None
    okres: Optional[str] = None

    def to_dict(self):
        payload = {
            'correct': self.correct,
            'target_kod': self.target_code,
            'clicked_kod': self.clicked_code,
        }
        if self.correct:
            payload['coefficient'] = self.coefficient
            payload['distance_km'] = self.distance_km
            payload['color'] = precision_color(self.distance_km)
            payload['border_color'] = darken_color(payload['color'], 30)
        else:
            payload['error_distance_km'] = self.error_distance_km
            payload['error_severity'] = self.error_severity
            payload['color'] = distance_color(self.error_distance_km)
            payload['border_color'] = darken_color(payload['color'], 20)
        return payload


def grade_correct(centroid: Tuple[float, float], click: Tuple[float, float],
                  floor_km: float = PRECISION_FLOOR_DISTANCE_KM) -> Tuple[float, float]:
    """Return (distance_km, coefficient) for a click inside the right region."""
    distance = haversine_km(click[0], click[1], centroid[0], centroid[1])
    return distance, precision_coefficient(distance, floor_km)


def grade_wrong(clicked_centroid: Tuple[float, float], target_centroid: Tuple[float, float],
                span_km: float = WRONG_ANSWER_SPAN_KM) -> Tuple[float, float]:
    """Return (distance_km, severity) between the clicked and the target region."""
    distance = haversine_km(clicked_centroid[0], clicked_centroid[1], target_centroid[0], target_centroid[1])
    return distance, error_severity(distance, span_km)


def grade_attempt(catalogue: RegionCatalogue, target_code, clicked_code, lat: float, lng: float,
                  floor_km: float = PRECISION_FLOOR_DISTANCE_KM,
                  span_km: float = WRONG_ANSWER_SPAN_KM) -> Attempt:
    """Grade one click.

    Both codes must be in the catalogue; an unknown code raises
    UnknownRegionError and nothing is substituted for it.
    """
    target = catalogue.get(target_code)
    clicked = catalogue.get(clicked_code)
    click = (float(lat), float(lng))
    attempt = Attempt(
        target_code=target.code,
        clicked_code=clicked.code,
        click=click,
        correct=target.code == clicked.code,
        kraj=target.kraj,
        okres=target.okres,
    )
    if attempt.correct:
        attempt.distance_km, attempt.coefficient = grade_correct(clicked.centroid, click, floor_km)
    else:
        attempt.error_distance_km, attempt.error_severity = grade_wrong(clicked.centroid, target.centroid, span_km)
    logger.info(f"[grade] target={target.code} clicked={clicked.code} correct={attempt.correct} "
                f"coef={attempt.coefficient} err_km={attempt.error_distance_km}")
    return attempt


# ---- Feedback colours (presentation helpers) ----

def _rgb(r, g, b) -> str:
    return f'rgb({int(round(r))}, {int(round(g))}, {int(round(b))})'


def _lerp(a, b, t):
    return a + (b - a) * t


def distance_color(distance_km: Optional[float], span_km: float = WRONG_ANSWER_SPAN_KM) -> str:
    """Green -> yellow -> red over 0..span_km."""
    t = error_severity(distance_km or 0.0, span_km)
    if t < 0.5:
        u = t * 2
        return _rgb(_lerp(46, 255, u), _lerp(204, 241, u), _lerp(113, 118, u))
    u = (t - 0.5) * 2
    return _rgb(255, _lerp(241, 107, u), _lerp(118, 60, u))


def precision_color(distance_km: Optional[float], floor_km: float = PRECISION_FLOOR_DISTANCE_KM) -> str:
    """Dark green at the centroid to light green at floor_km."""
    t = min((distance_km or 0.0) / floor_km, 1.0)
    return _rgb(_lerp(26, 144, t), _lerp(95, 238, t), _lerp(26, 144, t))


def darken_color(rgb: str, amount: int) -> str:
    parts = [p for p in rgb.replace('rgb(', '').replace(')', '').split(',') if p.strip()]
    if len(parts) != 3:
        return rgb
    try:
        r, g, b = (max(0, int(p.strip()) - amount) for p in parts)
    except ValueError:
        return rgb
    return f'rgb({r}, {g}, {b})'


__all__ = [
    'Attempt', 'UnknownRegionError', 'haversine_km', 'precision_coefficient', 'error_severity',
    'grade_correct', 'grade_wrong', 'grade_attempt', 'distance_color', 'precision_color', 'darken_color',
]
