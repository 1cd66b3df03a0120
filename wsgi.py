"""
WSGI / Flask CLI entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi seed-frameworks
    flask --app wsgi seed-settings
    flask --app wsgi db upgrade      # Flask-Migrate / Alembic
"""

from app import create_app

app = create_app()
