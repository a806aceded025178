"""Flask application factory module.

Provides create_app() factory function following Flask best practices.
Creates and configures the application with database, the asset store and
the library service.
"""
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


# Initialize SQLAlchemy with custom base
db = SQLAlchemy(model_class=Base)


def ensure_directories(app):
    """Create library and instance directories if they don't exist.

    Args:
        app: Flask application instance with config loaded
    """
    app.config['LIBRARY_FOLDER'].mkdir(parents=True, exist_ok=True)

    instance_path = app.config.get('INSTANCE_DIR')
    if instance_path:
        instance_path.mkdir(parents=True, exist_ok=True)


def create_service(app):
    """Build the PhotoLibraryService for an app from its config."""
    from photodatefix.lib.metadata import get_reader
    from photodatefix.service import PhotoLibraryService
    from photodatefix.store import LibraryStore

    reader_name = app.config.get('METADATA_READER', 'pillow')
    reader_kwargs = {}
    if reader_name == 'exiftool':
        reader_kwargs['executable'] = app.config.get('EXIFTOOL_PATH')

    return PhotoLibraryService(
        LibraryStore(),
        tolerance_seconds=app.config.get('DATE_TOLERANCE_SECONDS', 2.0),
        default_tz=app.config.get('TIMEZONE'),
        reader=get_reader(reader_name, **reader_kwargs),
        progress_every=app.config.get('PROGRESS_BATCH_SIZE', 10),
        app=app,
    )


def get_service(app=None):
    """Return the PhotoLibraryService registered on app (default: current_app)."""
    if app is None:
        from flask import current_app
        app = current_app
    return app.extensions['photodatefix']


def create_app(config_name='development', overrides=None):
    """Application factory function.

    Args:
        config_name: Configuration environment ('development', 'production'
                     or 'testing')
        overrides: Optional dict applied on top of the config class
                   (before the database is initialized)

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    from config import config as config_dict, INSTANCE_DIR
    config_cls = config_dict[config_name]
    app.config.from_object(config_cls)
    app.config['INSTANCE_DIR'] = INSTANCE_DIR
    if overrides:
        app.config.update(overrides)

    # Validate timezone and tolerance configuration
    config_cls.validate(app.config)

    # Initialize database
    db.init_app(app)

    with app.app_context():
        ensure_directories(app)

        # Import models to register them with SQLAlchemy
        from photodatefix import models  # noqa: F401 - registers models

        # Enable SQLite WAL mode for better concurrency
        if 'sqlite' in app.config.get('SQLALCHEMY_DATABASE_URI', ''):
            with db.engine.connect() as conn:
                conn.execute(text('PRAGMA journal_mode=WAL'))
                conn.execute(text('PRAGMA busy_timeout=5000'))
                conn.commit()

        # Create all tables
        db.create_all()

    app.extensions['photodatefix'] = create_service(app)

    from photodatefix.routes import api_bp
    app.register_blueprint(api_bp)

    return app
