from datetime import datetime
from flask import Blueprint, current_app, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf
from opsboard import db
from opsboard.models.user import User
from opsboard.utils.payload import json_body

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/csrf-token')
def csrf_token():
    """Token for the X-CSRFToken header on session-authenticated writes"""
    return jsonify({'csrfToken': generate_csrf()})


@auth_bp.route('/login', methods=['POST'])
def login():
    """User login"""
    data = json_body()
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    remember = bool(data.get('remember', False))

    user = User.query.filter(
        db.or_(User.username == username, User.email == username)
    ).first()

    if user is None or not user.check_password(password):
        current_app.logger.info('Failed login for %s', username)
        return jsonify({'message': 'Invalid username or password'}), 401

    if not user.is_active:
        return jsonify({'message': 'Your account has been deactivated. Contact administrator.'}), 403

    login_user(user, remember=remember)
    user.last_login = datetime.utcnow()
    db.session.commit()

    return jsonify({'success': True, 'data': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """User logout"""
    logout_user()
    return jsonify({'success': True, 'message': 'You have been logged out.'})


@auth_bp.route('/me')
@login_required
def me():
    """Current user profile"""
    return jsonify({'success': True, 'data': current_user.to_dict()})
