import os
import sys
import pytest

# Ensure the backend root (containing the `orpquiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from orpquiz import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    STATS_BACKEND = 'database'
    STATS_STORAGE_KEY = 'geo_quiz_statistics'
    SESSION_HISTORY_LIMIT = 50
    PRECISION_FLOOR_DISTANCE_KM = 50.0
    WRONG_ANSWER_SPAN_KM = 300.0
    RESET_TOKEN_TTL_SEC = 120


def square(lat, lng, half=0.125):
    """Axis-aligned square polygon whose bbox centre is exactly (lat, lng)."""
    ring = [
        [lng - half, lat - half],
        [lng + half, lat - half],
        [lng + half, lat + half],
        [lng - half, lat + half],
        [lng - half, lat - half],
    ]
    return {'type': 'Polygon', 'coordinates': [ring]}


SAMPLE_FEATURES = [
    {'type': 'Feature', 'properties': {'kod': 1001, 'nazev': 'Alpha', 'okres': 'Okres A', 'kraj_kod': 35,
                                       'pocet_obyvatel': 10000}, 'geometry': square(49.0, 14.5)},
    {'type': 'Feature', 'properties': {'kod': 1002, 'nazev': 'Beta', 'okres': 'Okres B', 'kraj_kod': 35,
                                       'pocet_obyvatel': 30000}, 'geometry': square(49.0, 15.5)},
    {'type': 'Feature', 'properties': {'kod': 1003, 'nazev': 'Gamma', 'okres': 'Okres C', 'kraj_kod': 141,
                                       'pocet_obyvatel': 20000}, 'geometry': square(49.75, 18.25)},
]


@pytest.fixture()
def sample_features():
    return [dict(f) for f in SAMPLE_FEATURES]


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import orpquiz.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def seeded_regions(flask_app):
    from orpquiz.models import Region
    regions = [Region.from_feature(f) for f in SAMPLE_FEATURES]
    db.session.add_all(regions)
    db.session.commit()
    return regions


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
