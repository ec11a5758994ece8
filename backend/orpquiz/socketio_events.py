from flask_socketio import join_room, leave_room, emit
from orpquiz import socketio, get_stats_service

STATS_ROOM = 'stats'


def _stats_payload(service):
    return {
        'overall': service.get_overall_stats(),
        'achievements': service.get_achievements(),
        'session': service.current_session,
        'persistence_warning': service.degraded,
    }


def emit_stats_update(service=None) -> None:
    """Push fresh statistics to every subscribed dashboard."""
    service = service or get_stats_service()
    socketio.emit('stats_update', _stats_payload(service), to=STATS_ROOM, namespace='/ws')


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_subscribe_stats(data=None):
    join_room(STATS_ROOM)
    emit('stats_snapshot', _stats_payload(get_stats_service()))


def handle_unsubscribe_stats(data=None):
    leave_room(STATS_ROOM)
    emit('unsubscribed', {'room': STATS_ROOM})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'subscribe_stats': handle_subscribe_stats,
        'unsubscribe_stats': handle_unsubscribe_stats,
        'ping': handle_ping,
    }
    for event, handler in handlers.items():
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace='/')
