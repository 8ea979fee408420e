"""
B-Sphere Barangay Information System - Flask API Application
Main application entry point
"""
import sys
import json
from pathlib import Path
from dotenv import load_dotenv

# Determine project root (2 levels up from this file)
API_DIR = Path(__file__).parent.resolve()
PROJECT_ROOT = API_DIR.parent.parent.resolve()

# Load environment variables from .env file at project root
env_path = PROJECT_ROOT / '.env'
if env_path.exists():
    load_dotenv(env_path)

# Add project root to path for absolute imports
sys.path.insert(0, str(PROJECT_ROOT))

from flask import Flask, jsonify, send_from_directory
from flask_cors import CORS
from flask_limiter.errors import RateLimitExceeded

from apps.bsphere.config import Config
from apps.bsphere import db, migrate, jwt, limiter, __version__

SERVICE_NAME = 'B-Sphere Barangay API'

# Uploaded media anyone may fetch; every other folder needs an admin token
PUBLIC_UPLOAD_PREFIXES = (
    'announcements/',
    'photos/',
    'officials/',
)


def _cors_origins(app):
    """Explicit origins only; credentials rule out a wildcard."""
    origins = []
    for key in ('WEB_URL', 'ADMIN_URL'):
        value = (app.config.get(key) or '').strip()
        if value:
            origins.append(value)

    extra = (app.config.get('CORS_ALLOWED_ORIGINS') or '').split(',')
    origins.extend(o.strip() for o in extra if o.strip())

    is_production = app.config.get('FLASK_ENV') == 'production' and not app.config.get('DEBUG')
    if not is_production:
        origins.extend([
            'http://localhost:3000',
            'http://localhost:3001',
            'http://localhost:5173',
            'http://127.0.0.1:3000',
            'http://127.0.0.1:5173',
        ])

    origins = list(dict.fromkeys(o for o in origins if o))
    if is_production and not origins:
        raise RuntimeError(
            "CORS configuration error: set WEB_URL/ADMIN_URL or CORS_ALLOWED_ORIGINS in production."
        )
    return origins


def create_app(config_class=Config):
    """Application factory pattern"""
    app = Flask(__name__)
    app.config.from_object(config_class)

    db_url = app.config.get('SQLALCHEMY_DATABASE_URI', '')
    if 'postgresql' in db_url:
        app.logger.info("Database: PostgreSQL")
    elif 'sqlite' in db_url:
        app.logger.info("Database: SQLite (local)")

    config_class.init_app(app)

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # Flask-Limiter reads RATELIMIT_ENABLED, RATELIMIT_DEFAULT and RATELIMIT_STORAGE_URI from the app config
    limiter.init_app(app)
    if not app.config.get('RATELIMIT_ENABLED', True):
        app.logger.warning("Rate limiting is DISABLED - not recommended for production")

    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses."""
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'
        if not app.config.get('DEBUG'):
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # Raw exception text stays out of non-debug error payloads
        if not app.config.get('DEBUG') and response.status_code >= 400 and response.is_json:
            payload = response.get_json(silent=True)
            if isinstance(payload, dict) and isinstance(payload.get('details'), str):
                payload.pop('details')
                response.set_data(json.dumps(payload))
                response.headers['Content-Type'] = 'application/json'

        return response

    CORS(app,
         origins=_cors_origins(app),
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
         allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
         supports_credentials=True,
         expose_headers=["Content-Type", "Authorization", "Content-Disposition"])

    # JWT token blacklist check
    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        from apps.bsphere.models.token_blacklist import TokenBlacklist
        return TokenBlacklist.is_token_revoked(jwt_payload['jti'])

    # Register blueprints
    from apps.bsphere.routes import (
        auth_bp,
        admins_bp,
        residents_bp,
        households_bp,
        document_requests_bp,
        announcements_bp,
        complaints_bp,
        officials_bp,
        notifications_bp,
        exports_bp,
        uploads_bp,
    )

    app.register_blueprint(auth_bp)
    app.register_blueprint(admins_bp)
    app.register_blueprint(residents_bp)
    app.register_blueprint(households_bp)
    app.register_blueprint(document_requests_bp)
    app.register_blueprint(announcements_bp)
    app.register_blueprint(complaints_bp)
    app.register_blueprint(officials_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(exports_bp)
    app.register_blueprint(uploads_bp)

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint for monitoring"""
        return jsonify({
            'status': 'ok',
            'service': SERVICE_NAME,
            'version': __version__
        }), 200

    @app.route('/health/db', methods=['GET'])
    def db_health_check():
        """Health check endpoint that tests database connectivity"""
        import time
        from sqlalchemy import text
        from sqlalchemy.exc import SQLAlchemyError

        start = time.time()
        try:
            db.session.execute(text('SELECT 1')).fetchone()
            db.session.rollback()  # Don't leave transaction open
            elapsed = time.time() - start
            return jsonify({
                'status': 'healthy',
                'database': 'connected',
                'latency_ms': round(elapsed * 1000, 2),
                'service': SERVICE_NAME
            }), 200
        except SQLAlchemyError as e:
            elapsed = time.time() - start
            app.logger.error("Database health check failed: %s", e)
            return jsonify({
                'status': 'unhealthy',
                'database': 'disconnected',
                'latency_ms': round(elapsed * 1000, 2),
                'error': str(e)[:200]
            }), 503

    @app.route('/', methods=['GET'])
    def root():
        """API root endpoint"""
        return jsonify({
            'message': SERVICE_NAME,
            'version': __version__,
            'barangay': app.config.get('BARANGAY_NAME'),
            'municipality': app.config.get('MUNICIPALITY_NAME'),
        }), 200

    @app.route('/uploads/<path:filename>')
    def serve_uploaded_file(filename):
        """Serve files saved by the local storage fallback."""
        from apps.bsphere.utils.auth import check_admin_request

        normalized = str(filename or '').replace('\\', '/').lstrip('/')
        if not normalized or '..' in normalized.split('/'):
            return jsonify({'error': 'Invalid file path'}), 400

        if not any(normalized.startswith(prefix) for prefix in PUBLIC_UPLOAD_PREFIXES):
            denied = check_admin_request()
            if denied is not None:
                return denied

        try:
            return send_from_directory(str(app.config.get('UPLOAD_FOLDER', 'uploads')), normalized)
        except FileNotFoundError:
            return jsonify({'error': 'File not found'}), 404

    # Error handlers
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Resource not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        return jsonify({'error': 'File too large'}), 413

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(401)
    def unauthorized(error):
        return jsonify({'error': 'Unauthorized'}), 401

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({'error': 'Forbidden'}), 403

    @app.errorhandler(RateLimitExceeded)
    def ratelimit_handler(error):
        payload = {'error': 'Rate limit exceeded'}
        if getattr(error, 'description', None):
            payload['limit'] = str(error.description)
        resp = jsonify(payload)
        resp.status_code = 429
        # Preserve limiter-provided headers
        for key, value in error.get_headers():
            if str(key).lower() != 'content-type':
                resp.headers[key] = value
        return resp

    return app


# Create app instance
app = create_app()

if __name__ == '__main__':
    app.run(
        host='0.0.0.0',
        port=5000,
        debug=app.config['DEBUG']
    )
