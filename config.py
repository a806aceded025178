"""Application configuration module.

Provides configuration classes for different environments with pathlib-based
paths, timezone handling and the mismatch tolerance policy.
"""
import os
from pathlib import Path
from zoneinfo import ZoneInfo


# Base directories using pathlib
BASE_DIR = Path(__file__).parent.absolute()
INSTANCE_DIR = BASE_DIR / 'instance'
STORAGE_DIR = BASE_DIR / 'storage'


class Config:
    """Base configuration with common settings."""

    # Flask secret key
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database configuration
    SQLALCHEMY_DATABASE_URI = f"sqlite:///{INSTANCE_DIR / 'photodatefix.db'}"
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {
            'check_same_thread': False,
            'timeout': 5.0
        }
    }
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Library directory (using pathlib.Path)
    LIBRARY_FOLDER = Path(os.environ['LIBRARY_DIR']) if os.environ.get('LIBRARY_DIR') else STORAGE_DIR / 'library'

    # Timezone for EXIF timestamps stored without an offset.
    # None = system local time of the running process.
    TIMEZONE = os.environ.get('TIMEZONE') or None

    # Mismatch detection
    DATE_TOLERANCE_SECONDS = float(os.environ.get('DATE_TOLERANCE_SECONDS', 2.0))
    PROGRESS_BATCH_SIZE = 10  # Progress events every N photos

    # Metadata reader: 'pillow' (in-memory) or 'exiftool' (needs executable)
    METADATA_READER = os.environ.get('METADATA_READER', 'pillow')
    EXIFTOOL_PATH = os.environ.get('EXIFTOOL_PATH', 'exiftool')

    @classmethod
    def validate_timezone(cls, tz_name=None):
        """Validate timezone configuration using zoneinfo."""
        tz_name = cls.TIMEZONE if tz_name is None else tz_name
        if tz_name is None:
            return True
        try:
            ZoneInfo(tz_name)
            return True
        except Exception as e:
            raise ValueError(f"Invalid TIMEZONE '{tz_name}': {e}")

    @classmethod
    def validate_tolerance(cls, tolerance=None):
        """Tolerance must be a non-negative number of seconds."""
        tolerance = cls.DATE_TOLERANCE_SECONDS if tolerance is None else tolerance
        if float(tolerance) < 0:
            raise ValueError(f"Invalid DATE_TOLERANCE_SECONDS {tolerance}: must be >= 0")
        return True

    @classmethod
    def validate(cls, settings=None):
        """Validate a loaded config mapping (defaults to the class values)."""
        settings = settings or {}
        cls.validate_timezone(settings.get('TIMEZONE'))
        cls.validate_tolerance(settings.get('DATE_TOLERANCE_SECONDS'))
        reader = settings.get('METADATA_READER', cls.METADATA_READER)
        if reader not in ('pillow', 'exiftool'):
            raise ValueError(f"Invalid METADATA_READER '{reader}'")
        return True


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    SQLALCHEMY_ECHO = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False


class TestingConfig(Config):
    """Testing configuration: in-process, pinned to UTC."""

    TESTING = True
    TIMEZONE = 'UTC'
    PROGRESS_BATCH_SIZE = 2


# Configuration dictionary for easy lookup
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
