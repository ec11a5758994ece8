from flask import Blueprint, jsonify, request
from sqlalchemy import func
from orpquiz import db
from orpquiz.models import Region, feature_collection
from orpquiz.services.quiz.regions import KRAJ_NAMES


orp = Blueprint('orp', __name__)


def _filtered_query():
    """Region query narrowed by the optional ?okres= / ?kraj= parameters."""
    query = Region.query
    okres = request.args.get('okres')
    kraj = request.args.get('kraj')
    if okres:
        query = query.filter(Region.okres == okres)
    if kraj:
        codes = [code for code, name in KRAJ_NAMES.items() if name == kraj or str(code) == kraj]
        query = query.filter(Region.kraj_kod.in_(codes))
    return query


@orp.route('', methods=['GET'])
@orp.route('/', methods=['GET'])
def list_regions():
    regions = _filtered_query().order_by(Region.kod).all()
    return jsonify(feature_collection(regions))


@orp.route('/random', methods=['GET'])
def random_region():
    region = _filtered_query().order_by(func.random()).first()
    if not region:
        return jsonify({'error': 'No ORP matches the filter'}), 404
    return jsonify(region.to_feature())


@orp.route('/stats', methods=['GET'])
def region_stats():
    count, total, average = db.session.query(
        func.count(Region.id),
        func.sum(Region.pocet_obyvatel),
        func.avg(Region.pocet_obyvatel),
    ).one()
    return jsonify({
        'pocet_orp': int(count or 0),
        'celkovy_pocet_obyvatel': int(total or 0),
        'prumerny_pocet_obyvatel': float(average or 0),
    })


@orp.route('/regions/list', methods=['GET'])
def list_okresy():
    rows = db.session.query(Region.okres).filter(Region.okres.is_not(None)).distinct().order_by(Region.okres).all()
    return jsonify({'regions': [r[0] for r in rows]})


@orp.route('/kraje/list', methods=['GET'])
def list_kraje():
    return jsonify({'kraje': [{'kod': code, 'nazev': name} for code, name in KRAJ_NAMES.items()]})


@orp.route('/<kod>', methods=['GET'])
def get_region(kod):
    try:
        kod = int(kod)
    except ValueError:
        return jsonify({'error': 'Invalid ORP code'}), 400
    region = Region.query.filter_by(kod=kod).first()
    if not region:
        return jsonify({'error': 'ORP not found'}), 404
    return jsonify(region.to_feature())
