# feedsync/core/config.py

import os


class Config:
    """Settings shared by every environment. Values come from the environment (.env is loaded by python-dotenv)."""
    # Signs and verifies the caller's access token (flask-jwt-extended).
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')

    # 'firestore' talks to Cloud Firestore through firebase_admin, 'memory' keeps everything in-process.
    STORE_BACKEND = os.getenv('STORE_BACKEND', 'firestore')
    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')

    # Feed paging
    FEED_PAGE_SIZE = int(os.getenv('FEED_PAGE_SIZE', 10))
    MAX_PAGE_SIZE = int(os.getenv('MAX_PAGE_SIZE', 50))

    # Transactions: attempts inside the store, then bounded re-attempts of the whole operation on Aborted.
    TRANSACTION_MAX_ATTEMPTS = int(os.getenv('TRANSACTION_MAX_ATTEMPTS', 5))
    ABORTED_RETRY_ATTEMPTS = int(os.getenv('ABORTED_RETRY_ATTEMPTS', 3))
    ABORTED_RETRY_WAIT_SECONDS = float(os.getenv('ABORTED_RETRY_WAIT_SECONDS', 0.05))

    COMMENT_MAX_LENGTH = int(os.getenv('COMMENT_MAX_LENGTH', 1000))


class DevelopmentConfig(Config):
    """Local development. Uses the real Firestore project unless STORE_BACKEND says otherwise."""
    DEBUG = True
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH', Config.FIREBASE_CREDENTIALS_PATH)


class TestingConfig(Config):
    """Test runs. Always in-process, never touches Firestore."""
    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = os.getenv('TEST_JWT_SECRET_KEY', 'feedsync-test-secret-key-with-enough-bytes')
    STORE_BACKEND = 'memory'
    ABORTED_RETRY_WAIT_SECONDS = 0.0


class ProductionConfig(Config):
    DEBUG = False


# create_app() picks the class by FLASK_ENV.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
