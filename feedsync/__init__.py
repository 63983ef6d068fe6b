# feedsync/__init__.py

# =====================================================================================
# 1. Load environment variables (before anything reads them)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. Module imports
# =====================================================================================
import os
import logging
from flask import Flask, jsonify
from marshmallow import ValidationError
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException

# - configuration
from feedsync.core.config import config_by_name
from feedsync.core.errors import FeedSyncError, Unauthenticated

# - API blueprints
from feedsync.api.posts.routes import posts_bp
from feedsync.api.comments.routes import comments_bp
from feedsync.api.users.routes import users_bp

# - services
from feedsync.api.posts.services import PostService
from feedsync.api.comments.services import CommentService
from feedsync.store import create_store


def _init_firebase(app: Flask) -> None:
    import firebase_admin
    from firebase_admin import credentials

    if firebase_admin._apps:
        return
    cred_path = app.config.get('FIREBASE_CREDENTIALS_PATH')
    if cred_path:
        if not os.path.exists(cred_path):
            raise FileNotFoundError(f"Firebase credentials file not found: {cred_path}")
        firebase_admin.initialize_app(credentials.Certificate(cred_path))
    else:
        # Application Default Credentials (GCE, Cloud Run, emulator)
        firebase_admin.initialize_app()


def create_app(config_name=None, store=None):
    """
    Flask application factory.

    :param config_name: 'development' | 'testing' | 'production' (defaults to FLASK_ENV)
    :param store: ready-made CounterStore; built from STORE_BACKEND when omitted
    """
    # =====================================================================================
    # 3. Flask app and configuration
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. Extensions and external services
    # =====================================================================================
    jwt = JWTManager(app)

    def _unauthenticated(*args):
        return jsonify(Unauthenticated().to_dict()), 401

    jwt.unauthorized_loader(_unauthenticated)
    jwt.invalid_token_loader(_unauthenticated)
    jwt.expired_token_loader(_unauthenticated)

    if store is None:
        if app.config['STORE_BACKEND'] == 'firestore':
            _init_firebase(app)
        store = create_store(app.config)

    # =====================================================================================
    # 5. Service instances in 'app.services' (dependency injection)
    # =====================================================================================
    app.services = {}
    app.services['store'] = store
    app.services['posts'] = PostService(
        store,
        page_size=app.config['FEED_PAGE_SIZE'],
        max_page_size=app.config['MAX_PAGE_SIZE'],
        aborted_retry_attempts=app.config['ABORTED_RETRY_ATTEMPTS'],
        aborted_retry_wait=app.config['ABORTED_RETRY_WAIT_SECONDS']
    )
    app.services['comments'] = CommentService(
        store,
        max_length=app.config['COMMENT_MAX_LENGTH'],
        aborted_retry_attempts=app.config['ABORTED_RETRY_ATTEMPTS'],
        aborted_retry_wait=app.config['ABORTED_RETRY_WAIT_SECONDS']
    )
    logging.info(f"Services initialized (store: {type(store).__name__})")

    # =====================================================================================
    # 6. Blueprints
    # =====================================================================================
    app.register_blueprint(posts_bp, url_prefix='/api')
    app.register_blueprint(comments_bp, url_prefix='/api')
    app.register_blueprint(users_bp, url_prefix='/api/users')

    # =====================================================================================
    # 7. Global error handlers
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(FeedSyncError)
    def handle_feedsync_error(err):
        return jsonify(err.to_dict()), err.http_status

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        if isinstance(err, HTTPException):
            return err
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "An unexpected server error occurred."}
        return jsonify(response), 500

    # =====================================================================================
    # 8. Logging
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
