from typing import Tuple
from urllib.parse import urlsplit, parse_qs, urlunsplit

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config import settings
from schema import Base, RefreshMarker, MARKER_ID


def normalize_database_url(url: str) -> Tuple[str, dict]:
    """Return (url, connect_args) ready for `create_engine`.

    The generic mysql:// scheme is pointed at the pymysql driver, and
    provider query params such as `ssl-mode=REQUIRED` are stripped from the
    URL and turned into DBAPI connect args.
    """
    connect_args = {}

    if url.startswith("mysql://"):
        url = url.replace("mysql://", "mysql+pymysql://", 1)

    if url.startswith("sqlite"):
        # sessions are handed across FastAPI's threadpool workers
        connect_args["check_same_thread"] = False
        return url, connect_args

    parts = urlsplit(url)
    if parts.query:
        qs = parse_qs(parts.query)
        if qs.get("ssl-mode") or qs.get("ssl_mode"):
            # an empty dict asks pymysql for TLS without a custom CA
            connect_args["ssl"] = {}
        url = urlunsplit((parts.scheme, parts.netloc, parts.path, "", parts.fragment))
    return url, connect_args


def build_engine(url: str) -> Engine:
    url, connect_args = normalize_database_url(url)
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = build_engine(settings.database_url)
SessionLocal = make_session_factory(engine)


def init_db(bind: Engine = None):
    """Create tables and the single refresh marker row if missing."""
    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    with make_session_factory(bind)() as session:
        if session.get(RefreshMarker, MARKER_ID) is None:
            session.add(RefreshMarker(id=MARKER_ID, last_refreshed_at=None))
            session.commit()
