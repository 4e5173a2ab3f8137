"""
Crew Routes Blueprint

Crew member records (office), plus the crew-facing notification feed and
weekly schedule. A crew session only sees its own feed and schedule.
"""

from flask import Blueprint, jsonify, request
import logging

import auth
from auth import admin_required, login_required
from app.utils import check, get_json_body, get_services, result_response
from services.crew_schedule import get_crew_schedule, parse_week_of
from validators import ValidationError, sanitize_string, validate_crew_member_request

logger = logging.getLogger(__name__)

crew_bp = Blueprint('crew_bp', __name__, url_prefix='/api/crew')

CREW_MEMBER_FIELDS = ('name', 'email', 'phone', 'role')
ARCHIVE_KIND = 'crew-member'


def _forbidden():
    return jsonify({'success': False, 'error': 'Access denied'}), 403


def _clean(data):
    return {
        key: sanitize_string(value, 200) if isinstance(value, str) else value
        for key, value in data.items() if key in CREW_MEMBER_FIELDS
    }


# ============================================================================
# CREW MEMBERS (office)
# ============================================================================

@crew_bp.route('/members', methods=['GET'])
@login_required
def list_crew_members():
    """Active crew; crew sessions need it for the name picker"""
    members = get_services().workflow.list_crew_members()
    return jsonify({'success': True, 'crewMembers': members, 'count': len(members)})


@crew_bp.route('/members', methods=['POST'])
@admin_required
def create_crew_member():
    data = get_json_body()
    check(validate_crew_member_request(data))
    return result_response(get_services().workflow.create_crew_member(_clean(data)), 201)


@crew_bp.route('/members/<member_id>', methods=['PUT'])
@admin_required
def update_crew_member(member_id):
    data = get_json_body()
    check(validate_crew_member_request(data, partial=True))
    return result_response(get_services().workflow.update_crew_member(member_id, _clean(data)))


@crew_bp.route('/members/<member_id>/archive', methods=['POST'])
@admin_required
def archive_crew_member(member_id):
    return result_response(get_services().archive.archive(ARCHIVE_KIND, member_id))


@crew_bp.route('/members/archived', methods=['GET'])
@admin_required
def list_archived_crew_members():
    members = get_services().archive.list_archived(ARCHIVE_KIND)
    return jsonify({'success': True, 'crewMembers': members, 'count': len(members)})


@crew_bp.route('/members/archived/<member_id>/restore', methods=['POST'])
@admin_required
def restore_crew_member(member_id):
    return result_response(get_services().archive.restore(ARCHIVE_KIND, member_id))


@crew_bp.route('/members/archived/<member_id>', methods=['DELETE'])
@admin_required
def delete_archived_crew_member(member_id):
    return result_response(get_services().archive.permanently_delete(ARCHIVE_KIND, member_id))


# ============================================================================
# NOTIFICATIONS
# ============================================================================

@crew_bp.route('/<crew_member_name>/notifications', methods=['GET'])
@login_required
def get_notifications(crew_member_name):
    """
    Notifications for one crew member, most recent first.

    Query params:
        unread: 'true' to only return unread notifications
        limit: maximum number to return
    """
    if not auth.can_view_crew_member(crew_member_name):
        return _forbidden()

    unread_only = request.args.get('unread', 'false').lower() == 'true'
    limit = request.args.get('limit', type=int)

    notifications = get_services().notifications.get_notifications(
        crew_member_name, unread_only=unread_only, limit=limit
    )
    return jsonify({'success': True, 'notifications': notifications, 'count': len(notifications)})


@crew_bp.route('/<crew_member_name>/notifications/current', methods=['GET'])
@login_required
def get_current_notification(crew_member_name):
    if not auth.can_view_crew_member(crew_member_name):
        return _forbidden()

    notifications = get_services().notifications
    return jsonify({
        'success': True,
        'notification': notifications.get_current(crew_member_name),
        'unreadCount': notifications.get_unread_count(crew_member_name),
    })


@crew_bp.route('/notifications/<notification_id>/read', methods=['POST'])
@login_required
def mark_notification_read(notification_id):
    notifications = get_services().notifications
    target = next(
        (n for n in notifications.get_notifications() if n['id'] == notification_id), None
    )
    if target is None:
        return jsonify({'success': False, 'error': 'Notification not found'}), 404
    if not auth.can_view_crew_member(target['crewMemberName']):
        return _forbidden()

    return result_response(notifications.mark_as_read(notification_id))


@crew_bp.route('/<crew_member_name>/notifications/read-all', methods=['POST'])
@login_required
def mark_all_notifications_read(crew_member_name):
    if not auth.can_view_crew_member(crew_member_name):
        return _forbidden()
    return result_response(get_services().notifications.mark_all_as_read(crew_member_name))


@crew_bp.route('/<crew_member_name>/feed', methods=['GET'])
@login_required
def get_feed(crew_member_name):
    """Cached unread feed; clients compare `version` to skip redraws"""
    if not auth.can_view_crew_member(crew_member_name):
        return _forbidden()

    feed = get_services().feeds.get_feed(crew_member_name)
    feed.poll()
    unread = feed.unread
    return jsonify({
        'success': True,
        'version': feed.last_version,
        'current': unread[0] if unread else None,
        'unread': unread,
        'unreadCount': len(unread),
    })


# ============================================================================
# SCHEDULE
# ============================================================================

@crew_bp.route('/<crew_member_name>/schedule', methods=['GET'])
@login_required
def get_schedule(crew_member_name):
    """Week view of open jobs and scheduled appointments (?weekOf=YYYY-MM-DD)"""
    if not auth.can_view_crew_member(crew_member_name):
        return _forbidden()

    try:
        week_of = parse_week_of(request.args.get('weekOf'))
    except ValueError:
        raise ValidationError("weekOf must be a YYYY-MM-DD date", 'weekOf')

    schedule = get_crew_schedule(get_services().store, crew_member_name, week_of)
    return jsonify({'success': True, 'schedule': schedule})
