"""
Configuration for the EduSync school operations dashboard
"""

import os
from urllib.parse import quote_plus
import dotenv
dotenv.load_dotenv()  # Load environment variables from .env file


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration"""

    # Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'edusync-dev-secret'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')

    # Database settings (DATABASE_URL wins over the individual DB_* values)
    DATABASE_URL = os.environ.get('DATABASE_URL')
    MYSQL_HOST = os.environ.get('DB_HOST', 'localhost')
    MYSQL_PORT = int(os.environ.get('DB_PORT', 3306))
    MYSQL_USERNAME = os.environ.get('DB_USER', 'edusync')
    MYSQL_PASSWORD = os.environ.get('DB_PASS', '')
    MYSQL_DATABASE = os.environ.get('DB_NAME', 'edusync')
    MYSQL_CHARSET = 'utf8mb4'

    # SQLAlchemy settings
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 280,
        'pool_pre_ping': True,
    }

    # AI gateway
    OPENROUTER_URL = os.environ.get('OPENROUTER_URL', 'https://openrouter.ai/api/v1/chat/completions')
    AI_APP_REFERER = os.environ.get('AI_APP_REFERER', 'http://localhost:5000')
    AI_APP_TITLE = 'EduSync AI Assistant'
    AI_REQUEST_TIMEOUT = int(os.environ.get('AI_REQUEST_TIMEOUT', 30))  # seconds
    AI_TEMPERATURE = float(os.environ.get('AI_TEMPERATURE', 0.7))
    AI_MAX_TOKENS = int(os.environ.get('AI_MAX_TOKENS', 1000))
    AI_DEBOUNCE_SECONDS = float(os.environ.get('AI_DEBOUNCE_SECONDS', 0.3))

    # School operations
    DEFAULT_ANNUAL_LEAVES = int(os.environ.get('DEFAULT_ANNUAL_LEAVES', 14))
    CLASS_START_WINDOW_MINUTES = int(os.environ.get('CLASS_START_WINDOW_MINUTES', 15))
    DASHBOARD_REFRESH_SECONDS = int(os.environ.get('DASHBOARD_REFRESH_SECONDS', 60))
    CREATOR_CONTACT = os.environ.get('CREATOR_CONTACT', 'Creator - Shan')

    # Maintenance mode
    MAINTENANCE_POLL_SECONDS = int(os.environ.get('MAINTENANCE_POLL_SECONDS', 30))
    MAINTENANCE_WATCHER_ENABLED = _env_bool('MAINTENANCE_WATCHER_ENABLED')

    def _encoded_password(self) -> str:
        """Percent-encode special characters for URL usage."""
        return quote_plus(self.MYSQL_PASSWORD) if self.MYSQL_PASSWORD else ''

    def get_database_uri(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL

        user = self.MYSQL_USERNAME
        pwd = self._encoded_password()
        host = self.MYSQL_HOST
        port = self.MYSQL_PORT
        database = self.MYSQL_DATABASE

        if pwd:
            return f"mysql+pymysql://{user}:{pwd}@{host}:{port}/{database}?charset={self.MYSQL_CHARSET}"
        return f"mysql+pymysql://{user}@{host}:{port}/{database}?charset={self.MYSQL_CHARSET}"


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestingConfig(Config):
    TESTING = True
    LOG_LEVEL = 'WARNING'
    AI_DEBOUNCE_SECONDS = 0
    MAINTENANCE_POLL_SECONDS = 0
    MAINTENANCE_WATCHER_ENABLED = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Use in-memory SQLite for testing
    def get_database_uri(self) -> str:
        return 'sqlite:///:memory:'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config_class(name=None):
    """Resolve a config class from a name or the APP_ENV / FLASK_ENV variables."""
    name = name or os.environ.get('APP_ENV') or os.environ.get('FLASK_ENV') or 'default'
    return config.get(name, config['default'])
