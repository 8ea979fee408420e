"""
B-Sphere Barangay Information System API Package

Flask extensions live here so models and routes can import them before the
application object exists; ``create_app`` binds them.
"""
from flask import request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

__version__ = '1.0.0'


def client_address():
    """Rate-limit key: first X-Forwarded-For hop behind the hosting proxy."""
    forwarded = request.headers.get('X-Forwarded-For', '')
    return forwarded.split(',')[0].strip() or get_remote_address()


db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()

limiter = Limiter(
    key_func=client_address,
    strategy="fixed-window",
)

__all__ = ['db', 'migrate', 'jwt', 'limiter', 'client_address', '__version__']
