# synthmind/extensions.py
from __future__ import annotations

from flask import Flask
from flask_sqlalchemy import SQLAlchemy

# Shared handle; models import it, create_app() binds it.
db = SQLAlchemy()


def init_extensions(app: Flask) -> None:
    db.init_app(app)
