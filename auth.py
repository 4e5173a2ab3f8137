"""
Session Authentication Module
Handles the office/crew session flag and route protection.
Uses CODE authentication: one shared code for the office, one for the crew.

The office (admin role) can reach every route. Crew members sign in with the
crew code and their name and only see their own schedule and notifications.
"""
import hmac
import logging
from functools import wraps
from flask import current_app, session, jsonify

logger = logging.getLogger(__name__)

ROLES = {
    'admin': 'Office',
    'crew': 'Crew Member',
}


def authenticate(code, crew_member_name=None):
    """
    Check an access code.

    Args:
        code: Access code entered at login
        crew_member_name: Required with the crew code

    Returns:
        Tuple of (role, error)
    """
    if not code:
        return None, "Access code required"

    admin_code = current_app.config.get('ADMIN_ACCESS_CODE') or ''
    crew_code = current_app.config.get('CREW_ACCESS_CODE') or ''

    if admin_code and hmac.compare_digest(code, admin_code):
        logger.info("Office session started")
        return 'admin', None

    if crew_code and hmac.compare_digest(code, crew_code):
        if not crew_member_name:
            return None, "Crew member name required"
        logger.info(f"Crew session started for {crew_member_name}")
        return 'crew', None

    logger.warning("Rejected login with an invalid access code")
    return None, "Invalid access code"


def login_user(role, crew_member_name=None):
    """Set the session flag"""
    session.clear()
    session['role'] = role
    if crew_member_name:
        session['crew_member_name'] = crew_member_name
    session.permanent = True


def logout_user():
    session.clear()


def is_authenticated():
    return session.get('role') in ROLES


def is_admin():
    return session.get('role') == 'admin'


def current_crew_member():
    return session.get('crew_member_name')


def can_view_crew_member(crew_member_name):
    """Office sees everyone; a crew member only sees their own feed"""
    return is_admin() or (is_authenticated() and current_crew_member() == crew_member_name)


# Decorators for route protection
def login_required(f):
    """Decorator to require any session for a route"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_authenticated():
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Decorator to require the office session"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_authenticated():
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        if not is_admin():
            return jsonify({'success': False, 'error': 'Office access required'}), 403
        return f(*args, **kwargs)
    return decorated_function
