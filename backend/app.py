# app.py
from flask import Flask, jsonify, request, Blueprint
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate, upgrade
from flask_cors import CORS
from sqlalchemy import text
from werkzeug.exceptions import HTTPException
import importlib
import logging
from datetime import datetime, timezone
from dotenv import load_dotenv

# Load environment variables before the config module reads them
load_dotenv()

from config import Config
from errors import APIError

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()

logger = logging.getLogger(__name__)

# (module, blueprint attribute, url prefix)
BLUEPRINTS = [
    ('auth', 'auth_bp', '/api/auth'),
    ('sessions', 'sessions_bp', '/api/sessions'),
    ('profile', 'profile_bp', '/api'),
    ('students', 'students_bp', '/api/admin'),
    ('teachers', 'teachers_bp', '/api/admin'),
    ('users', 'users_bp', '/api/admin'),
    ('categories', 'categories_bp', '/api'),
    ('courses', 'courses_bp', '/api'),
    ('schedules', 'schedules_bp', '/api'),
    ('enrollments', 'enrollments_bp', '/api/enrollments'),
    ('payments', 'payments_bp', '/api/payments'),
    ('grades', 'grades_bp', '/api/teacher'),
    ('feedback', 'feedback_bp', '/api/course-feedback'),
    ('dashboard', 'dashboard_bp', '/api/dashboard'),
    ('search', 'search_bp', '/api/search'),
    ('uploads', 'uploads_bp', '/api/upload'),
    ('exports', 'exports_bp', '/api/admin'),
]


def _utcnow_iso():
    return datetime.now(timezone.utc).isoformat()


def configure_logging(app):
    """Configure root logging from LOG_LEVEL"""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logging.getLogger().setLevel(level)
    app.logger.setLevel(level)


def register_blueprints(app):
    """Register all blueprints; a blueprint that fails to import aborts startup"""
    for module_name, bp_name, url_prefix in BLUEPRINTS:
        module = importlib.import_module(f'routes.{module_name}')
        blueprint = getattr(module, bp_name)

        if not isinstance(blueprint, Blueprint):
            raise TypeError(f'routes.{module_name}.{bp_name} is not a Blueprint')

        app.register_blueprint(blueprint, url_prefix=url_prefix)
        logger.debug("[INIT] Registered blueprint '%s' at %s", blueprint.name, url_prefix)

    logger.info("[INIT] Registered %d blueprints", len(BLUEPRINTS))


def setup_database(app):
    """Setup database tables and handle migrations"""
    with app.app_context():
        # Import all models so they're registered on the metadata
        import models  # noqa: F401

        is_postgres = app.config['SQLALCHEMY_DATABASE_URI'].startswith('postgresql')

        if is_postgres:
            try:
                logger.info("[DB] Running migrations for PostgreSQL...")
                upgrade()
            except Exception as e:
                logger.warning("[DB] Migration error, falling back to create_all: %s", e)
                db.create_all()
            _create_search_indexes()
        else:
            db.create_all()

        logger.info("[DB] Database setup complete")


def _create_search_indexes():
    """GIN index backing the course full-text search"""
    db.session.execute(text(
        "CREATE INDEX IF NOT EXISTS courses_search_idx ON courses USING GIN "
        "((to_tsvector('english', title) || to_tsvector('english', COALESCE(description, ''))))"
    ))
    db.session.commit()


def register_error_handlers(app):

    @app.errorhandler(APIError)
    def handle_api_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(ValueError)
    def handle_value_error(error):
        # Raised by model validators
        db.session.rollback()
        return jsonify({
            'success': False,
            'error': str(error),
            'code': 'VALIDATION_ERROR',
            'timestamp': _utcnow_iso(),
        }), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'success': False,
            'error': 'Not Found',
            'code': 'NOT_FOUND',
            'message': f'The requested endpoint {request.path} does not exist.',
            'timestamp': _utcnow_iso(),
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({
            'success': False,
            'error': 'Method Not Allowed',
            'code': 'METHOD_NOT_ALLOWED',
            'message': f'The method {request.method} is not allowed for this endpoint.',
            'timestamp': _utcnow_iso(),
            'path': request.path,
        }), 405

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({
            'success': False,
            'error': error.name,
            'code': error.name.upper().replace(' ', '_'),
            'message': error.description,
            'timestamp': _utcnow_iso(),
        }), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        db.session.rollback()
        logger.exception("Internal Server Error: %s", error)
        return jsonify({
            'success': False,
            'error': 'Internal Server Error',
            'code': 'INTERNAL_ERROR',
            'message': 'An unexpected error occurred on the server.',
            'timestamp': _utcnow_iso(),
            'request_path': request.path,
        }), 500


def create_app(config_overrides=None, config_class=Config):
    """Create and configure the Flask application"""
    app = Flask(__name__)

    # ============ CONFIGURATION ============
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
        app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {}

    configure_logging(app)

    # ============ INITIALIZE EXTENSIONS ============
    db.init_app(app)
    migrate.init_app(app, db)
    origins = app.config['CORS_ORIGINS']
    CORS(app, resources={r"/*": {"origins": origins if origins == '*' else origins.split(',')}})

    # ============ STORAGE (fail-fast) ============
    from services.storage import get_storage_provider, reset_storage_provider
    reset_storage_provider()
    get_storage_provider(app.config)

    # ============ SETUP DATABASE ============
    setup_database(app)

    # ============ REGISTER BLUEPRINTS ============
    register_blueprints(app)
    register_error_handlers(app)

    # ============ BASIC ROUTES ============
    @app.route('/')
    def home():
        """API home page"""
        return jsonify({
            'service': 'CUBIS Academy API',
            'version': '1.0.0',
            'status': 'active',
            'timestamp': _utcnow_iso(),
            'endpoints': {
                'health': '/health',
                'auth': '/api/auth/*',
                'courses': '/api/courses',
                'search': '/api/search/*',
            }
        })

    @app.route('/health')
    def health():
        """Health check endpoint"""
        from services.cache import CacheService

        try:
            db.session.execute(text('SELECT 1'))
            db_status = 'connected'
        except Exception as e:
            logger.error("[DB] Health check failed: %s", e)
            db_status = 'error'

        return jsonify({
            'status': 'healthy' if db_status == 'connected' else 'degraded',
            'timestamp': _utcnow_iso(),
            'database': db_status,
            'cache': 'configured' if CacheService.is_configured() else 'disabled',
            'storage': app.config['STORAGE_PROVIDER'],
        })

    @app.route('/favicon.ico')
    def favicon():
        return '', 204

    return app
