"""
WebSocket Events

Clients join ``user-<id>`` and ``role-<name>`` rooms to receive
``notification`` events from the notification hub.
"""

import time
from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from opsboard.models.user import ROLES
from opsboard.services.notifications import role_room, user_room


def _value(data, key):
    """Accept either a bare value or {key: value}"""
    if isinstance(data, dict):
        data = data.get(key)
    if data is None or data == '':
        return None
    return str(data)


def register_events(socketio):
    """Register all WebSocket event handlers."""

    @socketio.on('connect')
    def handle_connect():
        current_app.logger.info('Client connected: %s', request.sid)
        emit('connected', {'clientId': request.sid, 'timestamp': time.time()})

    @socketio.on('disconnect')
    def handle_disconnect(*args):
        current_app.logger.info('Client disconnected: %s', request.sid)

    @socketio.on('join-user')
    def handle_join_user(data):
        user_id = _value(data, 'userId')
        if user_id is None:
            emit('error', {'message': 'userId is required'})
            return
        join_room(user_room(user_id))
        current_app.logger.info('User %s joined their room', user_id)
        emit('joined', {'room': user_room(user_id)})

    @socketio.on('join-role')
    def handle_join_role(data):
        role = _value(data, 'role')
        if role not in ROLES:
            emit('error', {'message': f'role must be one of: {", ".join(ROLES)}'})
            return
        join_room(role_room(role))
        current_app.logger.info('Client %s joined role room: %s', request.sid, role)
        emit('joined', {'room': role_room(role)})

    @socketio.on('leave-role')
    def handle_leave_role(data):
        role = _value(data, 'role')
        if role:
            leave_room(role_room(role))
            emit('left', {'room': role_room(role)})
