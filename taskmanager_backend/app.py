from flask import Flask, request, jsonify, g
from flask_cors import CORS
from flask_pymongo import PyMongo
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.exceptions import HTTPException
from functools import wraps
from bson import ObjectId
import jwt
import logging

from taskmanager_backend.config import environment

# Import blueprints
from taskmanager_backend.blueprints.auth import init_auth_blueprint
from taskmanager_backend.blueprints.profile import init_profile_blueprint
from taskmanager_backend.blueprints.users import init_users_blueprint
from taskmanager_backend.blueprints.locations import (
    init_countries_blueprint,
    init_states_blueprint,
    init_cities_blueprint,
)
from taskmanager_backend.blueprints.tasks import init_tasks_blueprint

# Import database models
from taskmanager_backend.models import DatabaseInitializer

from taskmanager_backend.utils.api_logging_middleware import setup_api_logging
from taskmanager_backend.utils.auth_tokens import decode_token, extract_token, is_revoked
from taskmanager_backend.utils.email_service import get_email_service
from taskmanager_backend.utils.errors import ServiceError
from taskmanager_backend.utils.serialization import serialize_doc

logger = logging.getLogger(__name__)


def create_app(config_overrides=None, mongo=None):
    """
    Application factory.

    Args:
        config_overrides: dict merged over the environment configuration
        mongo: an object exposing `.db`; defaults to Flask-PyMongo on MONGO_URI
    """
    app = Flask(__name__)

    # Configuration
    app.config.update(environment.as_flask_config())
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(level=app.config['LOG_LEVEL'])

    # Initialize extensions
    CORS(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)
    if mongo is None:
        mongo = PyMongo(app)

    limiter = Limiter(
        app=app,
        key_func=get_remote_address,
        default_limits=["5000 per day", "500 per hour"],
        storage_uri=app.config['RATELIMIT_STORAGE_URI'],
    )

    # Initialize database collections and indexes
    with app.app_context():
        db_results = DatabaseInitializer(mongo.db).initialize_collections()
        if db_results['created']:
            logger.info(f"Created {len(db_results['created'])} new collections")
        if db_results['errors']:
            logger.warning(f"{len(db_results['errors'])} errors during database initialization")

    def token_required(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            token = extract_token(request, app.config['AUTH_COOKIE_NAME'])
            if not token:
                return jsonify({'success': False, 'message': 'Token is missing'}), 401

            try:
                data = decode_token(token, app.config)
            except jwt.ExpiredSignatureError:
                return jsonify({'success': False, 'message': 'Token has expired'}), 401
            except jwt.InvalidTokenError:
                return jsonify({'success': False, 'message': 'Invalid token'}), 401

            if is_revoked(mongo.db, data['jti']):
                return jsonify({'success': False, 'message': 'Token has been revoked'}), 401

            if not ObjectId.is_valid(data['sub']):
                return jsonify({'success': False, 'message': 'Invalid token format'}), 401

            current_user = mongo.db.users.find_one({'_id': ObjectId(data['sub']), 'isDeleted': {'$ne': True}})
            if not current_user:
                return jsonify({'success': False, 'message': 'User not found'}), 401

            # Used by the API logging middleware and logout
            g.current_user_id = current_user['_id']
            g.token_payload = data

            return f(current_user, *args, **kwargs)
        return decorated

    # Admin required decorator
    def admin_required(f):
        @wraps(f)
        def decorated(current_user, *args, **kwargs):
            if current_user.get('role') != 'admin':
                return jsonify({'success': False, 'message': 'Admin access required', 'errorKind': 'forbidden'}), 403
            return f(current_user, *args, **kwargs)
        return decorated

    app.limiter = limiter

    # Initialize and register blueprints
    app.register_blueprint(init_auth_blueprint(mongo, token_required, serialize_doc, limiter, app.config))
    app.register_blueprint(init_profile_blueprint(mongo, token_required, serialize_doc))
    app.register_blueprint(init_users_blueprint(mongo, token_required, serialize_doc))
    app.register_blueprint(init_countries_blueprint(mongo, token_required, admin_required, serialize_doc))
    app.register_blueprint(init_states_blueprint(mongo, token_required, admin_required, serialize_doc))
    app.register_blueprint(init_cities_blueprint(mongo, token_required, admin_required, serialize_doc))
    app.register_blueprint(init_tasks_blueprint(mongo, token_required, serialize_doc))

    setup_api_logging(app)

    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({
            'success': False,
            'message': error.description,
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({
            'success': False,
            'message': 'Internal server error',
        }), 500

    @app.route('/health', methods=['GET'])
    def health_check():
        database = 'connected'
        try:
            mongo.db.command('ping')
        except Exception as e:
            logger.warning(f"Health check database ping failed: {str(e)}")
            database = 'unavailable'
        return jsonify({
            'success': True,
            'data': {
                'status': 'healthy',
                'database': database,
                'email': get_email_service().get_service_status()['mode'],
                'environment': app.config['ENVIRONMENT'],
            },
            'message': 'Task Manager API is running'
        })

    return app
