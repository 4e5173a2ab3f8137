"""
Authentication Routes Blueprint

Handles the office/crew session flag: login, logout and session info.
"""

from flask import Blueprint, jsonify
import logging

import auth
from app.utils import get_json_body

logger = logging.getLogger(__name__)

# Create blueprint
auth_bp = Blueprint('auth_bp', __name__)


@auth_bp.route('/api/auth/login', methods=['POST'])
def api_login():
    """
    Start a session.

    Body: {"code": "...", "crewMemberName": "..."} (name only with the crew code)
    """
    data = get_json_body()
    crew_member_name = (data.get('crewMemberName') or '').strip() or None

    role, error = auth.authenticate(data.get('code'), crew_member_name)
    if error:
        return jsonify({'success': False, 'error': error}), 401

    auth.login_user(role, crew_member_name if role == 'crew' else None)

    return jsonify({
        'success': True,
        'role': role,
        'roleName': auth.ROLES[role],
        'crewMemberName': auth.current_crew_member(),
    })


@auth_bp.route('/api/auth/logout', methods=['POST'])
def api_logout():
    auth.logout_user()
    return jsonify({'success': True})


@auth_bp.route('/api/auth/session', methods=['GET'])
def api_session():
    """Current session, if any"""
    if not auth.is_authenticated():
        return jsonify({'success': True, 'authenticated': False})
    return jsonify({
        'success': True,
        'authenticated': True,
        'role': 'admin' if auth.is_admin() else 'crew',
        'crewMemberName': auth.current_crew_member(),
    })
