from datetime import datetime, timezone

from sqlalchemy import create_engine, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from . import config

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Database:
    """Engine and session factory, constructed explicitly and handed to the app"""

    def __init__(self, url: str = None, **engine_kwargs):
        self.url = url or config.DATABASE_URL

        if self.url.startswith("sqlite"):
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
            if ":memory:" in self.url or self.url == "sqlite://":
                engine_kwargs.setdefault("poolclass", StaticPool)

        self.engine = create_engine(self.url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self):
        # models must be imported so their tables are registered on Base
        from . import models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self):
        Base.metadata.drop_all(bind=self.engine)

    def session(self):
        return self.SessionLocal()

    def ping(self) -> bool:
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True


def insert_or_ignore(db: Session, model, values: dict, conflict_columns) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING. Returns True when a row was written.

    Does not commit; the caller owns the transaction.
    """
    dialect = db.get_bind().dialect.name

    if dialect in ("postgresql", "sqlite"):
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        statement = insert(model.__table__).values(**values)\
            .on_conflict_do_nothing(index_elements=list(conflict_columns))
        result = db.execute(statement)
        return result.rowcount > 0

    # other backends: let the unique constraint reject the duplicate inside a savepoint
    try:
        with db.begin_nested():
            db.execute(model.__table__.insert().values(**values))
    except IntegrityError:
        return False
    return True
