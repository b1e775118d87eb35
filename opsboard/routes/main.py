from datetime import datetime
from flask import Blueprint, current_app, jsonify

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """Liveness check"""
    return jsonify({
        'status': 'ok',
        'version': current_app.config.get('OPSBOARD_VERSION'),
        'timestamp': datetime.utcnow().isoformat()
    })
