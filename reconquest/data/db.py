"""Engine construction for the SQL snapshot store."""

import os

from sqlalchemy import create_engine

from reconquest.adapters.outbound.sqlalchemy_models import Base

# Resolve DB path relative to the reconquest package directory
_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_DEFAULT_DB = os.path.join(_PACKAGE_DIR, "data", "reconquest.db")


def get_engine(url: str | None = None):
    db_url = url or os.environ.get("DATABASE_URL", f"sqlite:///{_DEFAULT_DB}")
    # Relative sqlite paths are taken from the package directory; in-memory stays in memory.
    if db_url.startswith("sqlite:///") and not db_url.startswith("sqlite:////"):
        rel_path = db_url.replace("sqlite:///", "", 1)
        if rel_path != ":memory:" and not os.path.isabs(rel_path):
            abs_path = os.path.join(_PACKAGE_DIR, rel_path)
            os.makedirs(os.path.dirname(abs_path), exist_ok=True)
            db_url = f"sqlite:///{abs_path}"
    return create_engine(db_url, echo=False)


def init_db(engine=None):
    """Create the ``snapshots`` table if it does not exist yet."""
    if engine is None:
        engine = get_engine()
    Base.metadata.create_all(engine)
    return engine
