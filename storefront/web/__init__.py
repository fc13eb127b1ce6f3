"""
Web — FastAPI surface over the storefront components.

    from storefront.web import create_app

    app = create_app()  # settings from STOREFRONT_* env vars
"""

from storefront.web._app import create_app
from storefront.web._errors import status_for, expect

__all__ = ("create_app", "status_for", "expect")
