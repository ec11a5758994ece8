import math

from flask import Blueprint, jsonify, request, current_app
from orpquiz import get_stats_service, get_catalogue, load_catalogue
from orpquiz.services.quiz.errors import InvalidSessionState, UnknownRegionError
from orpquiz.services.quiz.scoring import grade_attempt
from orpquiz.socketio_events import emit_stats_update


game = Blueprint('game', __name__)


def _session_payload(session, service):
    return {'session': session, 'persistence_warning': service.degraded}


def _begin(restart: bool):
    data = request.get_json(silent=True) or {}
    filter_type = data.get('filter_type') or None
    filter_value = data.get('filter_value') or None
    if filter_type and not filter_value:
        return jsonify({'error': 'filter_value is required with filter_type'}), 400
    service = get_stats_service()
    had_attempts = bool((service.current_session or {}).get('attempts'))
    try:
        if restart:
            session = service.restart_session(filter_type, filter_value)
        else:
            session = service.start_session(filter_type, filter_value)
    except ValueError as exc:
        return jsonify({'error': str(exc)}), 400
    # Regions are loaded once per game session
    load_catalogue()
    current_app.logger.info(f"[{'restart' if restart else 'start'}] session={session['id']} filter={filter_type}:{filter_value}")
    if had_attempts:
        emit_stats_update(service)
    return jsonify(_session_payload(session, service)), 201


@game.route('/start', methods=['POST'])
def start_game():
    return _begin(restart=False)


@game.route('/restart', methods=['POST'])
def restart_game():
    return _begin(restart=True)


@game.route('/session', methods=['GET'])
def current_session():
    service = get_stats_service()
    return jsonify(_session_payload(service.current_session, service))


@game.route('/guess', methods=['POST'])
def submit_guess():
    data = request.get_json(silent=True) or {}
    target_kod = data.get('target_kod')
    clicked_kod = data.get('clicked_kod')
    if target_kod is None or clicked_kod is None:
        return jsonify({'error': 'target_kod and clicked_kod are required'}), 400
    try:
        lat = float(data.get('lat'))
        lng = float(data.get('lng'))
    except (TypeError, ValueError):
        return jsonify({'error': 'lat and lng must be numbers'}), 400
    if not (math.isfinite(lat) and math.isfinite(lng)) or abs(lat) > 90 or abs(lng) > 180:
        return jsonify({'error': 'lat and lng must be valid coordinates'}), 400

    cfg = current_app.config
    try:
        attempt = grade_attempt(
            get_catalogue(), target_kod, clicked_kod, lat, lng,
            floor_km=float(cfg.get('PRECISION_FLOOR_DISTANCE_KM', 50)),
            span_km=float(cfg.get('WRONG_ANSWER_SPAN_KM', 300)),
        )
    except UnknownRegionError as exc:
        return jsonify({'error': str(exc)}), 404

    service = get_stats_service()
    try:
        session = service.record_attempt(attempt)
    except InvalidSessionState as exc:
        return jsonify({'error': str(exc)}), 409

    emit_stats_update(service)
    payload = attempt.to_dict()
    payload.update(_session_payload(session, service))
    return jsonify(payload)


@game.route('/end', methods=['POST'])
def end_game():
    service = get_stats_service()
    try:
        session = service.end_session()
    except InvalidSessionState as exc:
        return jsonify({'error': str(exc)}), 409
    current_app.logger.info(f"[end] session={session['id']} accuracy={session['accuracy']:.1f}")
    emit_stats_update(service)
    return jsonify(_session_payload(session, service))
