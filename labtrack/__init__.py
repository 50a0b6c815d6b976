# Lab Room Usage Tracker - App Package
"""
Main application package for the Lab Room Usage Tracker.

Teachers check in to and out of laboratory rooms by scanning their ID badge;
administrators manage the room and teacher registries and review usage
reports. create_app builds a configured Flask application.
"""

import logging
from functools import partial

from flask import Flask, jsonify, redirect, session, url_for

from labtrack.config import LOG_FORMAT, init_config
from labtrack.extensions import register_managers
from labtrack.modules.checkin_manager import CheckInManager
from labtrack.modules.database_manager import DatabaseManager
from labtrack.modules.identity_resolver import (
    DemoAuthenticator, IdentityResolver, ProviderTokenVerifier, default_role_policy,
)
from labtrack.modules.qr_generator import QRGenerator
from labtrack.modules.report_generator import ReportGenerator
from labtrack.modules.room_manager import RoomManager
from labtrack.modules.session_store import SessionStore
from labtrack.modules.teacher_manager import TeacherManager

__version__ = "1.0.0"
__description__ = "Flask service tracking laboratory room usage through badge check-in and check-out"


def create_app(config_name=None, config_overrides=None):
    """
    Application factory.

    Args:
        config_name (str): 'development', 'testing' or 'production'; defaults
            to the FLASK_ENV variable
        config_overrides (dict): Values applied after the configuration class

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)
    init_config(app, config_name)
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(
        level=getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO),
        format=LOG_FORMAT
    )

    keys = app.config['STORAGE_KEYS']
    db_manager = DatabaseManager(app.config['DATABASE_PATH'])
    session_store = SessionStore(db_manager, keys['usage_entries'])
    room_manager = RoomManager(
        db_manager,
        storage_key=keys['rooms'],
        default_rooms=app.config['DEFAULT_ROOMS'],
        default_capacity=app.config['DEFAULT_ROOM_CAPACITY']
    )
    teacher_manager = TeacherManager(
        db_manager,
        storage_key=keys['teachers'],
        default_teachers=app.config['DEFAULT_TEACHERS'],
        default_department=app.config['DEFAULT_DEPARTMENT'],
        id_prefix=app.config['TEACHER_ID_PREFIX']
    )
    role_policy = partial(
        default_role_policy,
        admin_prefix=app.config['ADMIN_EMAIL_PREFIX'],
        demo_admin_email=app.config['DEMO_ADMIN_EMAIL']
    )

    register_managers(app, {
        'db': db_manager,
        'session_store': session_store,
        'room_manager': room_manager,
        'teacher_manager': teacher_manager,
        'identity_resolver': IdentityResolver(
            app.config['INSTITUTIONAL_DOMAIN'],
            app.config['ACCESS_DENIED_MESSAGE'],
            teacher_manager=teacher_manager,
            role_policy=role_policy
        ),
        'token_verifier': ProviderTokenVerifier(
            app.config['IDENTITY_PROVIDER_KEY'],
            app.config['IDENTITY_PROVIDER_ALGORITHMS'],
            audience=app.config['IDENTITY_PROVIDER_CLIENT_ID'],
            issuer=app.config['IDENTITY_PROVIDER_ISSUER']
        ),
        'demo_authenticator': DemoAuthenticator(app.config['DEMO_USERS'], app.config['DEMO_PASSWORD']),
        'checkin_manager': CheckInManager(
            session_store,
            app.config['BUILDINGS'],
            default_purpose=app.config['DEFAULT_PURPOSE'],
            default_num_students=app.config['DEFAULT_NUM_STUDENTS']
        ),
        'report_generator': ReportGenerator(
            session_store,
            room_manager,
            title=app.config['REPORT_PDF_TITLE'],
            filename_prefix=app.config['REPORT_FILENAME_PREFIX']
        ),
        'qr_generator': QRGenerator(
            box_size=app.config['QR_CODE_BOX_SIZE'],
            border=app.config['QR_CODE_BORDER']
        ),
    })

    from labtrack.routes.auth import auth_bp
    from labtrack.routes.dashboard import dashboard_bp
    from labtrack.routes.api import api_bp
    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(api_bp)

    @app.route('/')
    def index():
        """Landing page: signed-in users go straight to their dashboard."""
        if 'user' in session:
            return redirect(url_for('dashboard.dashboard'))
        return jsonify({
            'success': True,
            'message': 'Sign in with your institutional account',
            'login_url': url_for('auth.login'),
            'roles': ['professor', 'admin']
        })

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'error': 'Not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Unhandled error: {str(error)}")
        return jsonify({'success': False, 'error': 'An internal error occurred'}), 500

    @app.before_request
    def before_request():
        session.permanent = True

    app.logger.info(f"Lab usage tracker initialized ({app.config['DATABASE_PATH']})")
    return app
