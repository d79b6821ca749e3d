"""
System routes for the Campus Portal
Health check and global search
"""

import logging
from datetime import datetime

from flask import Blueprint, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from database import db
from routes.auth import login_required, current_user
from services.search_service import SearchService, SEARCH_TYPES
from utils.errors import ValidationError
from utils.responses import error_response, success_response

logger = logging.getLogger(__name__)

system_bp = Blueprint('system', __name__, url_prefix='/api')

@system_bp.route('/health')
def health():
    """Database connectivity check"""
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Health check failed: %s", e)
        return error_response("Database unavailable", 503)
    return success_response({'status': 'ok', 'database': 'connected', 'timestamp': datetime.utcnow().isoformat()})

@system_bp.route('/search')
@login_required()
def search():
    search_type = (request.args.get('type') or 'all').strip().lower()
    if search_type not in SEARCH_TYPES:
        raise ValidationError("Validation failed", details={'type': f"Type must be one of: {', '.join(SEARCH_TYPES)}"})
    return success_response(SearchService.search(current_user(), request.args.get('q'), search_type))
