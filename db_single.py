"""
Database management for EduSync

The Database object owns the engine and session factory. It is built once in
create_app() (or by the CLI / tests) and handed to whatever needs sessions.
"""

import logging
from flask import current_app, has_app_context
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import Config

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'edusync_db'


class Database:
    """Engine plus session factory for one database URI"""

    def __init__(self, database_uri, engine_options=None):
        options = dict(engine_options or {})

        if database_uri.startswith('sqlite'):
            # pool_recycle / pre_ping are MySQL concerns
            options.pop('pool_recycle', None)
            options.setdefault('connect_args', {'check_same_thread': False})
            if ':memory:' in database_uri or database_uri == 'sqlite://':
                options['poolclass'] = StaticPool

        self.database_uri = database_uri
        self.engine = create_engine(database_uri, **options)
        self.SessionLocal = sessionmaker(
            bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False
        )

    def __repr__(self):
        return f"<Database {self.engine.url.render_as_string(hide_password=True)}>"

    def session(self):
        """Get a new database session"""
        return self.SessionLocal()

    def create_all(self):
        """Create every table known to the model modules"""
        from models import Base
        import_model_modules()
        Base.metadata.create_all(self.engine)

    def drop_all(self):
        from models import Base
        import_model_modules()
        Base.metadata.drop_all(self.engine)

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def dispose(self):
        self.engine.dispose()


def import_model_modules():
    """Import every module that declares tables so metadata is complete"""
    import models  # noqa: F401
    import timetable_models  # noqa: F401
    import teacher_models  # noqa: F401
    import leave_models  # noqa: F401
    import announcement_models  # noqa: F401
    import chat_models  # noqa: F401


def init_database(config=None) -> Database:
    """Build a Database from a config object"""
    config = config or Config()
    if isinstance(config, type):
        config = config()

    database = Database(config.get_database_uri(), config.SQLALCHEMY_ENGINE_OPTIONS)
    logger.info(f"Database initialized: {database!r}")
    return database


def get_db() -> Database:
    """Database bound to the current Flask app"""
    if not has_app_context():
        raise RuntimeError("get_db() needs an application context; pass a Database explicitly instead")
    return current_app.extensions[EXTENSION_KEY]


def get_session():
    """Get a database session for the current app"""
    return get_db().session()
