from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import json
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

STATS_EXTENSION = 'orpquiz.stats'
CATALOGUE_EXTENSION = 'orpquiz.catalogue'


def get_stats_service(app=None):
    """The single StatisticsService owned by the application."""
    app = app or current_app
    return app.extensions[STATS_EXTENSION]


def load_catalogue(app=None):
    """(Re)load the region catalogue from the database and cache it on the app."""
    from orpquiz.models import Region
    from orpquiz.services.quiz.regions import RegionCatalogue
    app = app or current_app
    catalogue = RegionCatalogue.from_models(Region.query.order_by(Region.kod).all())
    app.extensions[CATALOGUE_EXTENSION] = catalogue
    app.logger.info(f"[catalogue] loaded {len(catalogue)} regions")
    return catalogue


def get_catalogue(app=None):
    app = app or current_app
    catalogue = app.extensions.get(CATALOGUE_EXTENSION)
    if catalogue is None:
        catalogue = load_catalogue(app)
    return catalogue


def load_regions_from_geojson(path):
    """Upsert regions from a GeoJSON FeatureCollection file. Returns the count."""
    from orpquiz.models import Region
    with open(path, 'r', encoding='utf-8') as fh:
        collection = json.load(fh)
    count = 0
    for feature in collection.get('features', []):
        kod = int(feature['properties']['kod'])
        existing = Region.query.filter_by(kod=kod).first()
        db.session.add(Region.from_feature(feature, existing=existing))
        count += 1
    db.session.commit()
    return count


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One statistics service per process; the store is picked by STATS_BACKEND
    from orpquiz.services.quiz.statistics import StatisticsService
    from orpquiz.services.quiz.stores import build_store
    flask_app.extensions[STATS_EXTENSION] = StatisticsService(
        build_store(flask_app.config),
        history_limit=flask_app.config.get('SESSION_HISTORY_LIMIT', 50),
        reset_token_ttl=flask_app.config.get('RESET_TOKEN_TTL_SEC', 120),
    )

    # Import and register blueprints here
    from orpquiz.main import main
    flask_app.register_blueprint(main)

    from orpquiz.api.orp import orp
    flask_app.register_blueprint(orp, url_prefix='/api/orp')

    from orpquiz.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api/game')

    from orpquiz.api.stats import stats
    flask_app.register_blueprint(stats, url_prefix='/api/stats')

    from orpquiz.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    @click.argument('geojson', required=False, type=click.Path(exists=True, dir_okay=False))
    def db_reset_command(geojson):
        """Drops, recreates, and optionally seeds the database with regions."""
        import orpquiz.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            if geojson:
                count = load_regions_from_geojson(geojson)
                print(f'Database has been reset and seeded with {count} regions!')
            else:
                print('Database has been reset!')

    @click.command('regions-load')
    @click.argument('geojson', type=click.Path(exists=True, dir_okay=False))
    def regions_load_command(geojson):
        """Upserts regions from a GeoJSON FeatureCollection."""
        with flask_app.app_context():
            count = load_regions_from_geojson(geojson)
            print(f'Loaded {count} regions.')

    @click.command('stats-export')
    @click.argument('path', required=False, type=click.Path(dir_okay=False, writable=True))
    def stats_export_command(path):
        """Writes the statistics blob as a JSON document."""
        with flask_app.app_context():
            filename, payload = get_stats_service(flask_app).export_stats()
            target = path or filename
            with open(target, 'w', encoding='utf-8') as fh:
                fh.write(payload)
            print(f'Statistics exported to {target}')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(regions_load_command)
    flask_app.cli.add_command(stats_export_command)

    return flask_app
