"""
Configuration settings for the Campus Portal
"""

import os
from datetime import timedelta

class Config:
    """Base configuration class"""

    # Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'campus-portal-secret-key-2024'

    # Database settings
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///campus_portal.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session settings
    PERMANENT_SESSION_LIFETIME = timedelta(hours=2)
    SESSION_COOKIE_SECURE = False  # Set to True in production with HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Request settings
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024  # JSON bodies only, files live in object storage

    # Application settings
    ITEMS_PER_PAGE = 20
    MAX_ITEMS_PER_PAGE = 100
    LIBRARY_MAX_BORROWINGS = 5
    LIBRARY_LOAN_DAYS = 14
    PASSING_SCORE = 45
    PASSWORD_RESET_MAX_AGE = 3600  # seconds a reset token stays valid

    # Bootstrap account created by init_db
    DEFAULT_ADMIN_EMAIL = os.environ.get('DEFAULT_ADMIN_EMAIL') or 'admin@university.edu'
    DEFAULT_ADMIN_PASSWORD = os.environ.get('DEFAULT_ADMIN_PASSWORD') or 'admin123'

    # Fernet key for issued credentials
    ENCRYPTION_KEY = os.environ.get('ENCRYPTION_KEY')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'

    # Security settings
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = None
    WTF_CSRF_HEADERS = ['X-CSRFToken', 'X-CSRF-Token']


class DevelopmentConfig(Config):
    """Local development"""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'DEBUG'


class TestingConfig(Config):
    """Unit test configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = 'WARNING'
    # Fixed key so encrypted credentials survive across app instances in a test run
    ENCRYPTION_KEY = 'RBITlQDqlZsPZhjKIVlVvH2nbTLo1jQLPCIok5Gm_XQ='


class ProductionConfig(Config):
    """Production deployment"""
    SESSION_COOKIE_SECURE = True


config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}
