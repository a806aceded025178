"""Shared pytest fixtures."""
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image
from pillow_heif import register_heif_opener

TAG_EXIF_IFD = 0x8769
TAG_DATETIME_ORIGINAL = 36867
TAG_OFFSET_TIME_ORIGINAL = 36881

register_heif_opener()


def build_image(image_format, date_text=None, offset_text=None) -> bytes:
    """Encode a tiny image, optionally carrying DateTimeOriginal/OffsetTimeOriginal."""
    img = Image.new('RGB', (8, 8), color=(200, 120, 40))
    buf = BytesIO()
    if date_text is None:
        img.save(buf, image_format)
        return buf.getvalue()

    exif_ifd = {TAG_DATETIME_ORIGINAL: date_text}
    if offset_text is not None:
        exif_ifd[TAG_OFFSET_TIME_ORIGINAL] = offset_text

    exif = Image.Exif()
    exif[TAG_EXIF_IFD] = exif_ifd
    img.save(buf, image_format, exif=exif.tobytes())
    return buf.getvalue()


def build_jpeg(date_text=None, offset_text=None) -> bytes:
    return build_image('JPEG', date_text, offset_text)


def build_heic(date_text=None, offset_text=None) -> bytes:
    return build_image('HEIF', date_text, offset_text)


@pytest.fixture
def make_jpeg():
    """Factory for JPEG payloads with EXIF capture dates."""
    return build_jpeg


@pytest.fixture
def make_heic():
    """Factory for HEIC payloads with EXIF capture dates."""
    return build_heic


@pytest.fixture
def app(tmp_path):
    """Create application on a temporary SQLite database."""
    from photodatefix import create_app, db

    app = create_app('testing', overrides={
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test.db'}",
        'LIBRARY_FOLDER': tmp_path / 'library',
    })

    with app.app_context():
        yield app
        app.extensions['photodatefix'].shutdown()
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture
def library_dir(app) -> Path:
    return app.config['LIBRARY_FOLDER']
