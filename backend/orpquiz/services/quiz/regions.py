"""Region catalogue used by the scoring engine.

Regions arrive as GeoJSON features (from the database or a file). The
catalogue keeps only what grading needs: names for statistics bucketing and
the centroid of each boundary geometry.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import UnknownRegionError


# RÚIAN VÚSC codes of the 14 Czech regions (kraje)
KRAJ_NAMES: Dict[int, str] = {
    19: 'Hlavní město Praha',
    27: 'Středočeský kraj',
    35: 'Jihočeský kraj',
    43: 'Plzeňský kraj',
    51: 'Karlovarský kraj',
    60: 'Ústecký kraj',
    78: 'Liberecký kraj',
    86: 'Královéhradecký kraj',
    94: 'Pardubický kraj',
    108: 'Kraj Vysočina',
    116: 'Jihomoravský kraj',
    124: 'Olomoucký kraj',
    132: 'Zlínský kraj',
    141: 'Moravskoslezský kraj',
}


def kraj_name(kraj_kod) -> Optional[str]:
    if kraj_kod is None:
        return None
    try:
        return KRAJ_NAMES.get(int(kraj_kod))
    except (TypeError, ValueError):
        return None


def _iter_positions(coords):
    # Walks nested GeoJSON coordinate arrays down to [lng, lat] pairs
    if coords and isinstance(coords[0], (int, float)):
        yield coords
        return
    for part in coords or []:
        yield from _iter_positions(part)


def geometry_bbox(geometry: dict) -> Tuple[float, float, float, float]:
    """Return (min_lng, min_lat, max_lng, max_lat) of a Polygon/MultiPolygon."""
    if not geometry or geometry.get('type') not in ('Polygon', 'MultiPolygon'):
        raise ValueError(f"Unsupported geometry: {geometry.get('type') if geometry else None}")
    lngs = []
    lats = []
    for pos in _iter_positions(geometry.get('coordinates')):
        lngs.append(float(pos[0]))
        lats.append(float(pos[1]))
    if not lngs:
        raise ValueError('Geometry has no coordinates')
    return min(lngs), min(lats), max(lngs), max(lats)


def geometry_centroid(geometry: dict) -> Tuple[float, float]:
    """Bounding-box centre as (lat, lng)."""
    min_lng, min_lat, max_lng, max_lat = geometry_bbox(geometry)
    return (min_lat + max_lat) / 2.0, (min_lng + max_lng) / 2.0


@dataclass(frozen=True)
class RegionRef:
    code: int
    name: str
    okres: Optional[str]
    kraj: Optional[str]
    centroid: Tuple[float, float]


class RegionCatalogue:
    """Read-only lookup of regions by code, in load order."""

    def __init__(self, regions: Iterable[RegionRef] = ()):
        self._by_code: Dict[int, RegionRef] = {}
        for ref in regions:
            self._by_code[int(ref.code)] = ref

    @classmethod
    def from_features(cls, features: Iterable[dict]) -> 'RegionCatalogue':
        refs = []
        for feature in features:
            props = feature.get('properties') or {}
            refs.append(RegionRef(
                code=int(props['kod']),
                name=props.get('nazev'),
                okres=props.get('okres'),
                kraj=props.get('kraj') or kraj_name(props.get('kraj_kod')),
                centroid=geometry_centroid(feature.get('geometry')),
            ))
        return cls(refs)

    @classmethod
    def from_models(cls, regions) -> 'RegionCatalogue':
        return cls.from_features(r.to_feature() for r in regions)

    def __len__(self):
        return len(self._by_code)

    def __contains__(self, code):
        try:
            return int(code) in self._by_code
        except (TypeError, ValueError):
            return False

    def get(self, code) -> RegionRef:
        try:
            return self._by_code[int(code)]
        except (KeyError, TypeError, ValueError):
            raise UnknownRegionError(code)

    def centroid(self, code) -> Tuple[float, float]:
        return self.get(code).centroid

    def codes(self) -> List[int]:
        return list(self._by_code)
