import hashlib
import logging
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from microjob.extensions import db
from microjob.utils.exceptions import StorageFailureError

logger = logging.getLogger(__name__)

_DEPTH_KEY = "microjob_atomic_depth"


@contextmanager
def atomic():
    """Run the block as one storage transaction.

    The outermost block commits or rolls back; nested blocks join it. Database
    errors surface as StorageFailureError with the driver text kept in the log.
    """
    session = db.session()
    depth = session.info.get(_DEPTH_KEY, 0)
    session.info[_DEPTH_KEY] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except SQLAlchemyError as exc:
        if depth == 0:
            session.rollback()
        logger.error("Storage failure, transaction rolled back: %s", exc)
        raise StorageFailureError() from exc
    except Exception:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info[_DEPTH_KEY] = depth


def advisory_lock(key):
    """Serialise writers on `key` until the surrounding transaction ends.

    PostgreSQL only; SQLite already serialises every writer.
    """
    session = db.session()
    if session.get_bind().dialect.name != "postgresql":
        return
    lock_id = int(hashlib.sha256(key.encode("utf-8")).hexdigest()[:15], 16)
    session.execute(text("SELECT pg_advisory_xact_lock(:lock_id)"), {"lock_id": lock_id})
