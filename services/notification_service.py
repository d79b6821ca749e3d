"""
Notification and announcement service for the Campus Portal
"""

import logging
from datetime import datetime

from sqlalchemy import case

from database import db
from models.communication import Announcement, Notification, ROLE_AUDIENCE
from models.user import User, ROLE_ADMIN, ROLE_LECTURER, ROLE_STUDENT
from utils.db_helpers import get_or_404, paginate_query, transaction
from utils.errors import NotFoundError

logger = logging.getLogger(__name__)

PRIORITY_RANK = {'URGENT': 0, 'HIGH': 1, 'MEDIUM': 2, 'LOW': 3}

AUDIENCE_ROLES = {
    'STUDENTS': ROLE_STUDENT,
    'LECTURERS': ROLE_LECTURER,
    'ADMIN': ROLE_ADMIN,
}

class NotificationService:
    """Per-user notifications"""

    @staticmethod
    def notify(user_id, title, content, notification_type='INFO', data=None):
        """Stage a notification in the current session; the caller commits"""
        notification = Notification(
            user_id=user_id,
            title=title,
            content=content,
            type=notification_type,
            data=data,
        )
        db.session.add(notification)
        return notification

    @staticmethod
    def list_for_user(user_id, is_read=None, notification_type=None, page=1, per_page=20):
        query = Notification.query.filter_by(user_id=user_id)
        if is_read is not None:
            query = query.filter_by(is_read=is_read)
        if notification_type:
            query = query.filter_by(type=notification_type.upper())
        pagination = paginate_query(query.order_by(Notification.created_at.desc(), Notification.id.desc()), page, per_page)
        return pagination, NotificationService.unread_count(user_id)

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    @staticmethod
    def create(data):
        """Admin-sent notification to one existing user"""
        get_or_404(User, data['user_id'], "User not found")
        with transaction():
            notification = NotificationService.notify(
                data['user_id'], data['title'], data['content'],
                data.get('type') or 'INFO', data.get('data'),
            )
        return notification

    @staticmethod
    def get_owned(notification_id, user_id):
        """Fetch a notification belonging to the caller; others' are reported as missing"""
        notification = db.session.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification not found")
        return notification

    @staticmethod
    def mark_read(notification_id, user_id):
        notification = NotificationService.get_owned(notification_id, user_id)
        notification.mark_read()
        db.session.commit()
        return notification

    @staticmethod
    def mark_all_read(user_id):
        updated = (Notification.query
                   .filter_by(user_id=user_id, is_read=False)
                   .update({'is_read': True, 'read_at': datetime.utcnow()}, synchronize_session=False))
        db.session.commit()
        return updated

    @staticmethod
    def delete(notification_id, user_id):
        notification = NotificationService.get_owned(notification_id, user_id)
        db.session.delete(notification)
        db.session.commit()


class AnnouncementService:
    """Announcements and their notification fan-out"""

    @staticmethod
    def audience_user_ids(target_audience):
        query = db.session.query(User.id).filter(User.is_active.is_(True))
        role = AUDIENCE_ROLES.get(target_audience)
        if role:
            query = query.filter(User.role == role)
        return [row.id for row in query.all()]

    @staticmethod
    def _fan_out(announcement):
        for user_id in AnnouncementService.audience_user_ids(announcement.target_audience):
            NotificationService.notify(
                user_id,
                announcement.title,
                announcement.content,
                'ANNOUNCEMENT',
                {'announcement_id': announcement.id, 'priority': announcement.priority},
            )

    @staticmethod
    def create(data, author_id):
        with transaction():
            announcement = Announcement(
                title=data['title'],
                content=data['content'],
                type=data.get('type') or 'GENERAL',
                priority=data.get('priority') or 'MEDIUM',
                target_audience=data.get('target_audience') or 'ALL',
                is_active=data.get('is_active', True) is not False,
                author_id=author_id,
            )
            db.session.add(announcement)
            db.session.flush()
            if announcement.is_active:
                AnnouncementService._fan_out(announcement)
        logger.info("Announcement %s published to %s", announcement.id, announcement.target_audience)
        return announcement

    @staticmethod
    def update(announcement_id, data):
        announcement = get_or_404(Announcement, announcement_id, "Announcement not found")
        for field in ('title', 'content', 'type', 'priority', 'target_audience', 'is_active'):
            if field in data and data[field] is not None:
                setattr(announcement, field, data[field])
        db.session.commit()
        return announcement

    @staticmethod
    def delete(announcement_id):
        announcement = get_or_404(Announcement, announcement_id, "Announcement not found")
        db.session.delete(announcement)
        db.session.commit()

    @staticmethod
    def list_admin(is_active=None, target_audience=None, page=1, per_page=20):
        query = Announcement.query
        if is_active is not None:
            query = query.filter_by(is_active=is_active)
        if target_audience:
            query = query.filter_by(target_audience=target_audience.upper())
        rank = case(PRIORITY_RANK, value=Announcement.priority, else_=len(PRIORITY_RANK))
        query = query.order_by(rank, Announcement.created_at.desc(), Announcement.id.desc())
        return paginate_query(query, page, per_page)

    @staticmethod
    def list_for_role(role, page=1, per_page=20):
        audiences = ['ALL']
        if role in ROLE_AUDIENCE:
            audiences.append(ROLE_AUDIENCE[role])
        query = (Announcement.query
                 .filter(Announcement.is_active.is_(True))
                 .filter(Announcement.target_audience.in_(audiences))
                 .order_by(Announcement.created_at.desc(), Announcement.id.desc()))
        return paginate_query(query, page, per_page)
