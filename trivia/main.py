from flask import Blueprint, jsonify, current_app

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the trivia contest server!'})

@main.route('/config/timing')
def timing():
    # Cadences clients poll and heartbeat at
    cfg = current_app.config
    return jsonify({
        'liveness_window_sec': int(cfg.get('LIVENESS_WINDOW_SEC', 30)),
        'heartbeat_interval_sec': int(cfg.get('HEARTBEAT_INTERVAL_SEC', 15)),
        'active_poll_sec': int(cfg.get('ACTIVE_POLL_SEC', 60)),
        'settings_poll_sec': int(cfg.get('SETTINGS_POLL_SEC', 10)),
    })
