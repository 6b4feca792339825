from flask import Flask, request, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from dotenv import load_dotenv
from flask_migrate import Migrate
from flask_compress import Compress

# Load environment variables early so the module-level config sees .env values
load_dotenv()

from quizlink.config import config

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
compress = Compress()


def create_app() -> Flask:
    """
    Application factory for the Flask app.
    Loads environment variables, configures the database,
    wires the identity adapter and registers the quiz blueprint.
    """
    # Re-initialize config to ensure latest .env values are loaded
    from quizlink.config import Config
    global config
    config = Config()

    # Validate configuration
    config.validate()

    app = Flask(__name__)

    # Load configuration from config module
    app.config["SECRET_KEY"] = config.SECRET_KEY
    app.config["SQLALCHEMY_DATABASE_URI"] = config.SQLALCHEMY_DATABASE_URI
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = config.SQLALCHEMY_TRACK_MODIFICATIONS
    app.config["SQLALCHEMY_ECHO"] = config.SQLALCHEMY_ECHO
    if config.USES_MYSQL:
        # Database connection pooling for performance
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "pool_size": 10,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
            "max_overflow": 20,
            "connect_args": {
                "connect_timeout": 5,
                "read_timeout": 10,
                "write_timeout": 10,
                "charset": "utf8mb4",
                "autocommit": False,
            }
        }

    # Response compression settings
    app.config["COMPRESS_MIMETYPES"] = ['application/json']
    app.config["COMPRESS_LEVEL"] = 6
    app.config["COMPRESS_MIN_SIZE"] = 500
    app.config["SESSION_COOKIE_SECURE"] = config.SESSION_COOKIE_SECURE
    app.config["SESSION_COOKIE_HTTPONLY"] = config.SESSION_COOKIE_HTTPONLY
    app.config["SESSION_COOKIE_SAMESITE"] = config.SESSION_COOKIE_SAMESITE

    # Engine settings read by the quiz services
    app.config["APP_BASE_URL"] = config.APP_BASE_URL
    app.config["QUIZ_URL_PREFIX"] = config.QUIZ_URL_PREFIX
    app.config["SHAREABLE_LINK_LENGTH"] = config.SHAREABLE_LINK_LENGTH
    app.config["SHAREABLE_LINK_MAX_DRAWS"] = config.SHAREABLE_LINK_MAX_DRAWS
    app.config["SESSION_TOKEN_MAX_AGE_SECONDS"] = config.SESSION_TOKEN_MAX_AGE_SECONDS
    app.config["TIME_LIMIT_GRACE_SECONDS"] = config.TIME_LIMIT_GRACE_SECONDS
    app.config["RATE_LIMIT_TAKER_REQUESTS"] = config.RATE_LIMIT_TAKER_REQUESTS
    app.config["RATE_LIMIT_TAKER_WINDOW_SECONDS"] = config.RATE_LIMIT_TAKER_WINDOW_SECONDS

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    compress.init_app(app)

    # Identity comes from the upstream auth service, authorization from an injected policy
    from quizlink.auth import init_identity
    init_identity(app, config)

    # Initialize security features
    from quizlink.security import init_security
    init_security(app)

    @app.errorhandler(404)
    def handle_404(e):
        """Handle 404 errors - return JSON for API routes."""
        path = request.path
        method = request.method
        app.logger.warning(f"404 error: {method} {path}")
        if '/api/' in path:
            return jsonify({
                'success': False,
                'error': f'Route not found: {method} {path}',
                'code': 'NotFound',
            }), 404
        return f"Page not found: {path}", 404

    @app.errorhandler(405)
    def handle_405(e):
        """Handle 405 Method Not Allowed - return JSON for API routes."""
        path = request.path
        method = request.method
        app.logger.warning(f"405 error: {method} {path}")
        if '/api/' in path:
            return jsonify({
                'success': False,
                'error': f'Method not allowed: {method} {path}',
                'code': 'MethodNotAllowed',
            }), 405
        return e

    # Register quiz blueprint
    from quizlink.quiz import quiz_bp
    app.register_blueprint(quiz_bp, url_prefix=config.QUIZ_URL_PREFIX)

    # Create tables if they do not exist
    with app.app_context():
        from quizlink.quiz import models  # noqa: F401
        db.create_all()

    return app
