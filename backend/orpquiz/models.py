from orpquiz import db
from orpquiz.services.quiz.regions import kraj_name
import json
import time

class Region(db.Model):
    __tablename__ = 'region'
    id = db.Column(db.Integer, primary_key=True)
    kod = db.Column(db.Integer, unique=True, nullable=False, index=True)
    nazev = db.Column(db.String(128), nullable=False)
    okres = db.Column(db.String(128), nullable=True, index=True)
    kraj_kod = db.Column(db.Integer, nullable=True, index=True)
    pocet_obyvatel = db.Column(db.Integer, nullable=True)
    geometry = db.Column(db.Text, nullable=False)  # GeoJSON geometry, WGS84

    @property
    def kraj(self):
        return kraj_name(self.kraj_kod)

    @property
    def geometry_json(self):
        return json.loads(self.geometry) if self.geometry else None

    def to_dict(self):
        return {
            'id': self.id,
            'kod': self.kod,
            'nazev': self.nazev,
            'okres': self.okres,
            'kraj_kod': self.kraj_kod,
            'kraj': self.kraj,
            'pocet_obyvatel': self.pocet_obyvatel,
        }

    def to_feature(self):
        return {
            'type': 'Feature',
            'id': self.kod,
            'properties': self.to_dict(),
            'geometry': self.geometry_json,
        }

    @classmethod
    def from_feature(cls, feature, existing=None):
        """Build (or update) a Region from a GeoJSON feature."""
        props = feature.get('properties') or {}
        region = existing or cls(kod=int(props['kod']))
        region.nazev = props.get('nazev')
        region.okres = props.get('okres')
        region.kraj_kod = int(props['kraj_kod']) if props.get('kraj_kod') is not None else None
        population = props.get('pocet_obyvatel')
        region.pocet_obyvatel = int(population) if population is not None else None
        region.geometry = json.dumps(feature.get('geometry'))
        return region


def feature_collection(regions):
    return {
        'type': 'FeatureCollection',
        'features': [r.to_feature() for r in regions],
    }


class StatsBlob(db.Model):
    __tablename__ = 'stats_blob'
    key = db.Column(db.String(64), primary_key=True)
    payload = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.Float, nullable=False, default=time.time)
