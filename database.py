"""
Database configuration and initialization for the Campus Portal
"""

import logging
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Initialize SQLAlchemy instance
db = SQLAlchemy()

@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite"""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

def init_db(app):
    """Initialize database with application context"""
    with app.app_context():
        # Import all models to ensure they are registered
        import models  # noqa: F401

        db.create_all()

        create_default_admin(app.config['DEFAULT_ADMIN_EMAIL'], app.config['DEFAULT_ADMIN_PASSWORD'])
        create_default_programmes()
        create_default_settings()

        logger.info("Database initialized")

def create_default_admin(email, password):
    """Create the bootstrap admin account if no admin exists yet"""
    from models.user import User, ROLE_ADMIN

    if User.query.filter_by(role=ROLE_ADMIN).first():
        return

    admin = User(email=email.lower(), name='System Administrator', role=ROLE_ADMIN)
    admin.set_password(password)

    try:
        db.session.add(admin)
        db.session.commit()
        logger.info("Default admin user created: %s", email)
    except Exception:
        db.session.rollback()
        logger.exception("Error creating default admin user")

def create_default_programmes():
    """Seed the programmes that have a fee structure"""
    from models.admissions import Programme
    from services.finance_service import PROGRAMME_FEES

    if Programme.query.first():
        return

    for code, name in enumerate(PROGRAMME_FEES, start=1):
        db.session.add(Programme(name=name, code=f'PRG{code:02d}', duration_years=4))

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Error seeding programmes")

def create_default_settings():
    """Insert missing system settings with their defaults"""
    from services.settings_service import SettingsService

    try:
        SettingsService.seed_defaults()
    except Exception:
        db.session.rollback()
        logger.exception("Error seeding system settings")

def reset_database(app):
    """Reset database - WARNING: This will delete all data"""
    with app.app_context():
        import models  # noqa: F401

        db.drop_all()
        db.create_all()

        create_default_admin(app.config['DEFAULT_ADMIN_EMAIL'], app.config['DEFAULT_ADMIN_PASSWORD'])
        create_default_programmes()
        create_default_settings()
        logger.warning("Database reset completed")
