"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi db migrate -m "description"
    gunicorn wsgi:app
"""

from testerhub import create_app

app = create_app()
