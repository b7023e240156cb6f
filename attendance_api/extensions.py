# attendance_api/extensions.py
import os
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

_PG_PREFIXES = ("postgres://", "postgresql://", "postgresql+psycopg2://")


def normalize_db_url(url: str) -> str:
    """Point every PostgreSQL URL at the psycopg (v3) driver; leave others alone."""
    if not url:
        return url
    for prefix in _PG_PREFIXES:
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def init_db(app):
    url = os.getenv("DATABASE_URL") or app.config.get("SQLALCHEMY_DATABASE_URI", "") or ""
    app.config["SQLALCHEMY_DATABASE_URI"] = normalize_db_url(url)

    # pooling only applies to server databases; in-memory sqlite needs its static pool
    if not app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {
            "pool_pre_ping": True,
            "pool_recycle": 270,
            "pool_size": 5,
            "max_overflow": 2,
        })

    db.init_app(app)
    migrate.init_app(app, db)
