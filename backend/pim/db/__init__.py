import importlib

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from pim.config import settings
from pim.utils.logging import get_logger

logger = get_logger(__name__)

DATABASE_URL = settings.DATABASE_URL
engine = create_engine(DATABASE_URL, future=True, echo=False)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# model modules that must be imported before create_all (add new modules here)
MODEL_MODULES = [
    "pim.models.product",
    "pim.models.bundle_component",
    "pim.models.grouped_item",
    "pim.models.variant",
]


if engine.dialect.name == "sqlite":

    @event.listens_for(engine, "connect")
    def _sqlite_on_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN itself so SAVEPOINT / nested transactions work
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def init_db(reset: bool = False):
    """
    Initialize DB schema.

    Behavior:
      - If reset is True or RESET_DB is set, drop & recreate every table.
      - Otherwise create missing tables and leave existing ones in place.
    """
    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    if reset or settings.RESET_DB:
        logger.info("init_db.reset", url=DATABASE_URL)
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    logger.info("init_db.ready", tables=sorted(Base.metadata.tables))


def get_db():
    """Request-scoped session; whatever the request left open is committed at the end."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
