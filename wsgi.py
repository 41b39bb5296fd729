"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi seed-case-statuses
    flask --app wsgi db init      # once, creates migrations/
    flask --app wsgi db migrate
    flask --app wsgi db upgrade
"""

from app import create_app

app = create_app()
