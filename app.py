"""
Campus Portal
Main Flask application entry point
"""

import logging
import os

from flask import Flask, request, session
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException

from config import Config, config_by_name
from database import db, init_db
from utils.errors import APIError
from utils.responses import error_response

logger = logging.getLogger(__name__)

csrf = CSRFProtect()

# Reachable while maintenance mode is on
MAINTENANCE_EXEMPT_PREFIXES = ('/api/auth/', '/api/health', '/api/programmes')
MAINTENANCE_EXEMPT_ENDPOINTS = ('applications.submit_application', 'applications.application_status')

def configure_logging(app):
    """Single stream handler on the root logger, level from LOG_LEVEL"""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    root = logging.getLogger()
    if not any(getattr(handler, '_campus_portal', False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s [%(name)s] %(message)s'))
        handler._campus_portal = True
        root.addHandler(handler)
    root.setLevel(level)
    app.logger.setLevel(level)

def register_error_handlers(app):
    @app.errorhandler(APIError)
    def handle_api_error(error):
        return error_response(error.message, error.status_code, error.details)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return error_response(error.description or "CSRF token missing or invalid", 400)

    @app.errorhandler(404)
    def handle_not_found(error):
        return error_response("Resource not found", 404)

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return error_response("Method not allowed", 405)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return error_response(error.description or error.name, error.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return error_response("Internal server error", 500)

def register_maintenance_guard(app):
    @app.before_request
    def maintenance_guard():
        """Answer 503 to non-admins while maintenance mode is on"""
        if not request.path.startswith('/api/'):
            return None
        if request.path.startswith(MAINTENANCE_EXEMPT_PREFIXES) or request.endpoint in MAINTENANCE_EXEMPT_ENDPOINTS:
            return None

        from services.auth_service import SessionManager
        from services.settings_service import SettingsService

        if not SettingsService.get('maintenance_mode'):
            return None
        if SessionManager.get_current_role(session) == 'admin':
            return None
        return error_response("The system is under maintenance. Please try again later.", 503)

def create_app(config_class=None):
    """Application factory pattern"""
    if config_class is None:
        config_class = config_by_name.get(os.environ.get('FLASK_ENV', ''), Config)

    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    # Initialize extensions with app
    db.init_app(app)
    csrf.init_app(app)

    # Register blueprints
    from routes.auth import auth_bp
    from routes.admin import admin_bp
    from routes.courses import courses_bp
    from routes.students import students_bp
    from routes.lecturer import lecturer_bp
    from routes.registration import registration_bp
    from routes.assignments import assignments_bp
    from routes.quizzes import quizzes_bp
    from routes.finance import finance_bp
    from routes.notifications import notifications_bp
    from routes.messages import messages_bp
    from routes.library import library_bp
    from routes.self_service import self_service_bp
    from routes.applications import applications_bp
    from routes.system import system_bp
    from routes.attendance import attendance_bp
    from routes.schedule import schedule_bp

    for blueprint in (auth_bp, admin_bp, courses_bp, students_bp, lecturer_bp, registration_bp,
                      assignments_bp, quizzes_bp, finance_bp, notifications_bp, messages_bp,
                      library_bp, self_service_bp, applications_bp, system_bp, attendance_bp, schedule_bp):
        app.register_blueprint(blueprint)

    register_error_handlers(app)
    register_maintenance_guard(app)

    # Initialize database
    init_db(app)

    return app

if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=8000, debug=app.config.get('DEBUG', False), use_reloader=False)
