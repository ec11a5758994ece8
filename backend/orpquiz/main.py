from flask import Blueprint, jsonify
from orpquiz import get_stats_service

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the ORP quiz server!'})

@main.route('/health')
def health():
    service = get_stats_service()
    return jsonify({'status': 'ok', 'persistence_warning': service.degraded})
