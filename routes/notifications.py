"""
Announcement and notification routes for the Campus Portal
"""

from flask import Blueprint, request

from models.communication import (
    Announcement, ANNOUNCEMENT_TYPES, ANNOUNCEMENT_PRIORITIES, AUDIENCES, NOTIFICATION_TYPES,
)
from routes.auth import login_required, current_user
from services.activity_log_service import ActivityLogService
from services.notification_service import AnnouncementService, NotificationService
from utils.db_helpers import get_or_404, get_pagination_args
from utils.errors import ValidationError
from utils.responses import arg_bool, get_json_body, success_response
from utils.validators import PayloadValidator

notifications_bp = Blueprint('notifications', __name__, url_prefix='/api')

def _validate_announcement_payload(payload, partial=False):
    return (PayloadValidator(payload, partial=partial)
            .string('title', required=not partial, min_length=3, max_length=200)
            .string('content', required=not partial, min_length=1, max_length=5000)
            .choice('type', list(ANNOUNCEMENT_TYPES), required=False)
            .choice('priority', list(ANNOUNCEMENT_PRIORITIES), required=False)
            .choice('target_audience', list(AUDIENCES), required=False, label='Target audience')
            .boolean('is_active')
            .validate())

# Announcements

@notifications_bp.route('/admin/announcements')
@login_required('admin')
def list_announcements():
    """All announcements, most urgent first"""
    page, per_page = get_pagination_args()
    pagination = AnnouncementService.list_admin(
        is_active=arg_bool('is_active'),
        target_audience=request.args.get('target_audience'),
        page=page,
        per_page=per_page,
    )
    return success_response([item.to_dict() for item in pagination.items], pagination=pagination)

@notifications_bp.route('/admin/announcements', methods=['POST'])
@login_required('admin')
def create_announcement():
    admin = current_user()
    data = _validate_announcement_payload(get_json_body())
    announcement = AnnouncementService.create(data, admin.id)
    ActivityLogService.log('CREATE_ANNOUNCEMENT', admin.id, 'announcement', announcement.id,
                           {'target_audience': announcement.target_audience})
    return success_response(announcement.to_dict(), "Announcement created successfully", status=201)

@notifications_bp.route('/admin/announcements/<int:announcement_id>')
@login_required('admin')
def get_announcement(announcement_id):
    announcement = get_or_404(Announcement, announcement_id, "Announcement not found")
    return success_response(announcement.to_dict())

@notifications_bp.route('/admin/announcements/<int:announcement_id>', methods=['PUT'])
@login_required('admin')
def update_announcement(announcement_id):
    data = _validate_announcement_payload(get_json_body(), partial=True)
    if not data:
        raise ValidationError("No fields to update")
    announcement = AnnouncementService.update(announcement_id, data)
    ActivityLogService.log('UPDATE_ANNOUNCEMENT', current_user().id, 'announcement', announcement.id,
                           {'fields': sorted(data)})
    return success_response(announcement.to_dict(), "Announcement updated successfully")

@notifications_bp.route('/admin/announcements/<int:announcement_id>', methods=['DELETE'])
@login_required('admin')
def delete_announcement(announcement_id):
    AnnouncementService.delete(announcement_id)
    ActivityLogService.log('DELETE_ANNOUNCEMENT', current_user().id, 'announcement', announcement_id)
    return success_response(None, "Announcement deleted successfully")

@notifications_bp.route('/announcements')
@login_required()
def announcements_for_me():
    page, per_page = get_pagination_args()
    pagination = AnnouncementService.list_for_role(current_user().role, page, per_page)
    return success_response([item.to_dict() for item in pagination.items], pagination=pagination)

# Notifications

@notifications_bp.route('/notifications')
@login_required()
def list_notifications():
    page, per_page = get_pagination_args()
    pagination, unread = NotificationService.list_for_user(
        current_user().id,
        is_read=arg_bool('is_read'),
        notification_type=request.args.get('type'),
        page=page,
        per_page=per_page,
    )
    return success_response([item.to_dict() for item in pagination.items],
                            pagination=pagination, unread_count=unread)

@notifications_bp.route('/notifications', methods=['POST'])
@login_required('admin')
def create_notification():
    payload = get_json_body()
    data = (PayloadValidator(payload)
            .integer('user_id', min_value=1, label='User')
            .string('title', min_length=1, max_length=200)
            .string('content', min_length=1, max_length=5000)
            .choice('type', list(NOTIFICATION_TYPES), required=False)
            .check('data', payload.get('data') is None or isinstance(payload.get('data'), dict),
                   "Data must be a JSON object")
            .validate())
    data['data'] = payload.get('data')

    notification = NotificationService.create(data)
    ActivityLogService.log('SEND_NOTIFICATION', current_user().id, 'notification', notification.id,
                           {'user_id': notification.user_id})
    return success_response(notification.to_dict(), "Notification sent successfully", status=201)

@notifications_bp.route('/notifications/read-all', methods=['PUT'])
@login_required()
def mark_all_read():
    updated = NotificationService.mark_all_read(current_user().id)
    return success_response({'updated': updated}, "All notifications marked as read")

@notifications_bp.route('/notifications/<int:notification_id>')
@login_required()
def get_notification(notification_id):
    notification = NotificationService.get_owned(notification_id, current_user().id)
    return success_response(notification.to_dict())

@notifications_bp.route('/notifications/<int:notification_id>/read', methods=['PUT'])
@login_required()
def mark_read(notification_id):
    notification = NotificationService.mark_read(notification_id, current_user().id)
    return success_response(notification.to_dict(), "Notification marked as read")

@notifications_bp.route('/notifications/<int:notification_id>', methods=['DELETE'])
@login_required()
def delete_notification(notification_id):
    NotificationService.delete(notification_id, current_user().id)
    return success_response(None, "Notification deleted successfully")
