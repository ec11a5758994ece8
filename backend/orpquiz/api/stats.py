from flask import Blueprint, Response, jsonify, request, current_app
from orpquiz import get_stats_service
from orpquiz.services.quiz.errors import InvalidResetToken
from orpquiz.services.quiz.statistics import CATEGORIES
from orpquiz.socketio_events import emit_stats_update


stats = Blueprint('stats', __name__)


@stats.route('/overall', methods=['GET'])
def overall():
    service = get_stats_service()
    return jsonify({'overall': service.get_overall_stats(), 'persistence_warning': service.degraded})


@stats.route('/regions/<string:category>', methods=['GET'])
def regions(category):
    if category not in CATEGORIES:
        return jsonify({'error': f"Category must be one of {', '.join(CATEGORIES)}"}), 400
    name = request.args.get('name')
    service = get_stats_service()
    if name:
        entry = service.get_region_stats(category, name)
        if entry is None:
            return jsonify({'error': f'No statistics for {name}'}), 404
        return jsonify(dict(name=name, **entry))
    return jsonify({'category': category, 'regions': service.get_all_region_stats(category)})


@stats.route('/sessions', methods=['GET'])
def sessions():
    try:
        limit = int(request.args.get('limit', 10))
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400
    return jsonify({'sessions': get_stats_service().get_recent_sessions(limit)})


@stats.route('/achievements', methods=['GET'])
def achievements():
    return jsonify(get_stats_service().get_achievements())


@stats.route('/playtime', methods=['GET'])
def playtime():
    return jsonify(get_stats_service().get_play_time_stats())


@stats.route('/export', methods=['GET'])
def export():
    filename, payload = get_stats_service().export_stats()
    return Response(
        payload,
        mimetype='application/json',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


@stats.route('/reset/request', methods=['POST'])
def request_reset():
    token = get_stats_service().request_reset()
    return jsonify({'token': token, 'expires_in': current_app.config.get('RESET_TOKEN_TTL_SEC', 120)})


@stats.route('/reset/confirm', methods=['POST'])
def confirm_reset():
    data = request.get_json(silent=True) or {}
    service = get_stats_service()
    try:
        overall_after = service.confirm_reset(data.get('token'))
    except InvalidResetToken as exc:
        return jsonify({'error': str(exc)}), 400
    current_app.logger.warning('[reset] all statistics were wiped')
    emit_stats_update(service)
    return jsonify({'reset': True, 'overall': overall_after, 'persistence_warning': service.degraded})
