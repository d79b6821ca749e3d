"""
Database helper utilities for the Campus Portal
"""

import logging
from contextlib import contextmanager

from flask import current_app, request
from sqlalchemy.exc import IntegrityError

from database import db
from utils.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

def commit_or_rollback(conflict_message="Record with this identifier already exists"):
    """Commit the session, rolling back and translating constraint failures"""
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", e.orig)
        raise ConflictError(conflict_message)
    except Exception:
        db.session.rollback()
        raise

@contextmanager
def transaction(conflict_message="Record with this identifier already exists"):
    """Run a block of writes as a single unit of work.

    Everything added inside the block is committed together; any exception
    rolls the whole block back before propagating. Constraint failures raised
    by a flush inside the block surface as ConflictError, as they do on commit.
    """
    try:
        yield db.session
    except IntegrityError as e:
        db.session.rollback()
        logger.warning("Integrity error on flush: %s", e.orig)
        raise ConflictError(conflict_message)
    except Exception:
        db.session.rollback()
        raise
    commit_or_rollback(conflict_message)

def get_or_404(model, object_id, message=None):
    """Fetch a row by primary key or raise NotFoundError"""
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(message or f"{model.__name__} not found")
    return obj

def get_pagination_args(default_per_page=None):
    """Read page/per_page query arguments, clamped to the configured bounds"""
    per_page_default = default_per_page or current_app.config['ITEMS_PER_PAGE']
    page = request.args.get('page', 1, type=int) or 1
    per_page = request.args.get('per_page', per_page_default, type=int) or per_page_default
    page = max(page, 1)
    per_page = max(1, min(per_page, current_app.config['MAX_ITEMS_PER_PAGE']))
    return page, per_page

def paginate_query(query, page=1, per_page=20):
    """Paginate query results"""
    return query.paginate(page=page, per_page=per_page, error_out=False)

def pagination_meta(pagination):
    """Pagination block for JSON envelopes"""
    return {
        'page': pagination.page,
        'per_page': pagination.per_page,
        'total': pagination.total,
        'total_pages': pagination.pages,
        'has_next': pagination.has_next,
        'has_prev': pagination.has_prev,
    }
