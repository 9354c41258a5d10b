from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def make_session_factory(database_url):
    """Create the engine and tables for ``database_url`` and return a session factory."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # sync routes run in a threadpool, so the connection crosses threads
        connect_args["check_same_thread"] = False

    engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)

    # register the mapped tables before creating them
    from staff_portal import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return sessionmaker(autoflush=False, bind=engine)
