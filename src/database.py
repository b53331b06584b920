from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def create_session_factory(database_url: str) -> sessionmaker:
    """Builds the engine and the session factory for a database URL"""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Route handlers run in FastAPI's threadpool
        connect_args["check_same_thread"] = False

    engine = create_engine(database_url, connect_args=connect_args)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
