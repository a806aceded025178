"""Flask routes package."""
from photodatefix.routes.api import api_bp

__all__ = ['api_bp']
