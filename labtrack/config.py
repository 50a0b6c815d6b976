# Lab Room Usage Tracker Configuration

import os
import logging
import tempfile
from datetime import timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.parent.absolute()

LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'lab-usage-tracker-secret-key'

    # Database Configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'labtrack.db')

    # Persisted collection keys (one JSON document per key)
    STORAGE_KEYS = {
        'usage_entries': 'usageEntries',
        'rooms': 'labRooms',
        'teachers': 'teachers',
    }
    PREFERRED_ROLE_SESSION_KEY = 'preferredRole'

    # Session Configuration
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)
    SESSION_COOKIE_SECURE = False  # Set to True in production with HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Identity Configuration
    INSTITUTIONAL_DOMAIN = '@neu.edu.ph'
    DEMO_ADMIN_EMAIL = 'example@neu.edu.ph'
    ADMIN_EMAIL_PREFIX = 'admin'
    ACCESS_DENIED_MESSAGE = 'Access Restricted: Only @neu.edu.ph emails are allowed.'
    IDENTITY_PROVIDER_URL = os.environ.get('IDENTITY_PROVIDER_URL') or 'https://accounts.google.com/o/oauth2/v2/auth'
    IDENTITY_PROVIDER_CLIENT_ID = os.environ.get('IDENTITY_PROVIDER_CLIENT_ID') or 'labtrack'
    # Shared secret for HS256, or the provider's public key for RS256
    IDENTITY_PROVIDER_KEY = os.environ.get('IDENTITY_PROVIDER_KEY') or 'identity-provider-signing-key'
    IDENTITY_PROVIDER_ALGORITHMS = [os.environ.get('IDENTITY_PROVIDER_ALGORITHM') or 'HS256']
    IDENTITY_PROVIDER_ISSUER = os.environ.get('IDENTITY_PROVIDER_ISSUER')
    AUTH_NONCE_SESSION_KEY = 'authNonce'

    # Demo login endpoint
    DEMO_PASSWORD = 'password'
    DEMO_USERS = {
        'prof@lab.edu': {'id': '1', 'role': 'professor', 'name': 'Dr. Smith'},
        'admin@lab.edu': {'id': '2', 'role': 'admin', 'name': 'Admin User'},
    }

    # Teacher registry
    DEFAULT_DEPARTMENT = 'Unassigned'
    TEACHER_ID_PREFIX = 'T-'
    DEFAULT_TEACHERS = [
        {'id': 'T-1001', 'name': 'Dr. Smith', 'department': 'Chemistry', 'status': 'active'},
        {'id': 'T-1002', 'name': 'Prof. Johnson', 'department': 'Physics', 'status': 'active'},
        {'id': 'T-1003', 'name': 'Dr. Williams', 'department': 'Biology', 'status': 'active'},
        {'id': 'T-1004', 'name': 'Prof. Davis', 'department': 'Engineering', 'status': 'active'},
    ]

    # Codes accepted by the scanner when the badge is not in "Department,Name,ID" form
    SCAN_CODE_DIRECTORY = {
        'teacher-1': {'id': 'T-1001', 'name': 'Dr. Smith', 'department': 'Chemistry'},
        'teacher-2': {'id': 'T-1002', 'name': 'Prof. Johnson', 'department': 'Physics'},
        'teacher-3': {'id': 'T-1003', 'name': 'Dr. Williams', 'department': 'Biology'},
        'teacher-4': {'id': 'T-1004', 'name': 'Prof. Davis', 'department': 'Engineering'},
    }

    # Room registry
    DEFAULT_ROOM_CAPACITY = 20
    DEFAULT_ROOMS = [
        {'number': '101', 'name': 'Advanced Chemistry Lab', 'capacity': 30,
         'equipment': ['Fume hood', 'Analyzer']},
        {'number': '102', 'name': 'Physics Lab', 'capacity': 25,
         'equipment': ['Oscilloscope', 'Power supply']},
        {'number': '103', 'name': 'Biology Lab', 'capacity': 20,
         'equipment': ['Microscope', 'Centrifuge']},
        {'number': '104', 'name': 'Materials Lab', 'capacity': 15,
         'equipment': ['SEM', 'Thermal analyzer']},
    ]

    # Usage form
    BUILDINGS = {
        'IS': 'IS Building',
        'M': 'M Building',
        'PSB': 'PSB Building',
        'SOM': 'SOM Building',
    }
    DEFAULT_PURPOSE = 'General use'
    DEFAULT_NUM_STUDENTS = 1
    RECENT_ENTRIES_LIMIT = 3

    # QR Code Configuration
    QR_CODE_BOX_SIZE = 10
    QR_CODE_BORDER = 4

    # Report Configuration
    REPORT_FILENAME_PREFIX = 'lab-usage-report'
    REPORT_PDF_TITLE = 'Laboratory Room Usage Report'

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = BASE_DIR / 'logs' / 'labtrack.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    DEBUG = os.environ.get('DEBUG', 'False').lower() in ['true', 'on', '1']
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        if cls.DATABASE_PATH != ':memory:':
            Path(cls.DATABASE_PATH).parent.mkdir(parents=True, exist_ok=True)

        app.config.from_object(cls)


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'labtrack_dev.db')
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True
    # Must be a file: each thread opens its own connection
    DATABASE_PATH = os.environ.get('TEST_DATABASE_PATH') or str(Path(tempfile.gettempdir()) / 'labtrack_test.db')
    SECRET_KEY = 'testing'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    SESSION_COOKIE_SECURE = True  # Requires HTTPS
    LOG_LEVEL = 'WARNING'

    @classmethod
    def init_app(cls, app):
        super().init_app(app)

        # Setup file logging
        if not app.debug:
            cls.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('Lab usage tracker startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name=None):
    """Get configuration class by name, falling back to the FLASK_ENV variable"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')
    return config.get(config_name, DevelopmentConfig)


def validate_config(app):
    """Validate configuration settings"""
    errors = []

    domain = app.config.get('INSTITUTIONAL_DOMAIN', '')
    if not domain.startswith('@'):
        errors.append(f"INSTITUTIONAL_DOMAIN must start with '@': {domain!r}")

    if not app.config.get('BUILDINGS'):
        errors.append("BUILDINGS must list at least one building")

    if not app.config.get('SECRET_KEY'):
        errors.append("SECRET_KEY is required")

    if not app.config.get('IDENTITY_PROVIDER_KEY'):
        errors.append("IDENTITY_PROVIDER_KEY is required to verify sign-in credentials")

    return errors


def init_config(app, config_name=None):
    """Initialize application with configuration"""
    config_class = get_config(config_name)
    config_class.init_app(app)

    errors = validate_config(app)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    return config_class
