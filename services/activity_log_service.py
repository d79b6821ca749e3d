"""
Activity log service for the Campus Portal
"""

import logging

from flask import has_request_context, request

from database import db
from models.system import ActivityLog
from utils.db_helpers import paginate_query

logger = logging.getLogger(__name__)

class ActivityLogService:
    """Audit trail writer and reader"""

    @staticmethod
    def log(action, user_id=None, entity=None, entity_id=None, details=None):
        """Record an action. Never raises: audit failures must not break the request."""
        try:
            entry = ActivityLog(
                user_id=user_id,
                action=action,
                entity=entity,
                entity_id=entity_id,
                details=details,
            )
            if has_request_context():
                entry.ip_address = request.headers.get('X-Forwarded-For', request.remote_addr or '').split(',')[0].strip() or None
                entry.user_agent = (request.headers.get('User-Agent') or '')[:255] or None
            db.session.add(entry)
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception("Failed to write activity log entry for %s", action)

    @staticmethod
    def _filtered_query(user_id=None, action=None):
        query = ActivityLog.query
        if user_id:
            query = query.filter_by(user_id=user_id)
        if action:
            query = query.filter(ActivityLog.action == action.upper())
        return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())

    @staticmethod
    def list_logs(user_id=None, action=None, page=1, per_page=20):
        return paginate_query(ActivityLogService._filtered_query(user_id, action), page, per_page)

    @staticmethod
    def all_logs(user_id=None, action=None):
        return ActivityLogService._filtered_query(user_id, action).all()

    @staticmethod
    def recent(limit=10):
        return ActivityLog.query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
