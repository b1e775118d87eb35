from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from opsboard import db
from opsboard.models.user import User, ROLES
from opsboard.services.notifications import get_notification_hub
from opsboard.utils.auth import role_required, SUPERVISOR_ROLES
from opsboard.utils.payload import json_body

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('/')
@login_required
def list_notifications():
    """Current user's notifications, oldest first"""
    unread_only = request.args.get('unreadOnly', '').lower() in ('1', 'true', 'yes')
    hub = get_notification_hub()
    items = hub.list_for(current_user.id, unread_only=unread_only)

    return jsonify({
        'success': True,
        'data': [n.to_dict() for n in items],
        'unread': hub.unread_count(current_user.id)
    })


@notifications_bp.route('/<notification_id>/read', methods=['POST'])
@login_required
def mark_read(notification_id):
    """Mark one of the current user's notifications read"""
    get_notification_hub().mark_read(current_user.id, notification_id)
    return jsonify({'success': True})


@notifications_bp.route('/', methods=['POST'])
@role_required(*SUPERVISOR_ROLES)
def send_notification():
    """Send a direct notification to a user"""
    data = json_body()
    user_id = data.get('userId')

    if not user_id:
        return jsonify({'message': 'userId is required'}), 400

    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        user = None
    if user is None:
        return jsonify({'message': 'User not found'}), 404

    notification = get_notification_hub().send(user.id, data)

    return jsonify({'success': True, 'data': notification.to_dict()}), 201


@notifications_bp.route('/broadcast', methods=['POST'])
@role_required(*SUPERVISOR_ROLES)
def broadcast():
    """Push a notification to every connected member of a role"""
    data = json_body()
    role = data.get('role')

    if role not in ROLES:
        return jsonify({'message': f'Role must be one of: {", ".join(ROLES)}'}), 400

    notification = get_notification_hub().broadcast(role, data)

    return jsonify({'success': True, 'data': notification.to_dict()})


@notifications_bp.route('/scan', methods=['POST'])
@role_required('admin')
def run_scan():
    """Run the alert scan now"""
    summary = get_notification_hub().run_periodic_scan()

    if summary is None:
        return jsonify({'success': False, 'message': 'Scan skipped'}), 409

    return jsonify({'success': True, 'data': summary})
