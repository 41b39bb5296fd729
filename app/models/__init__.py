"""
Case Lifecycle Platform
SQLAlchemy extension instance.

Every model module imports ``db`` from here; ``create_app`` binds it to the
application via ``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
