from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.orm import Session

from app.lms.db import create_db_engine, make_sessionmaker


def create_script_engine(db_url: str):
    return create_db_engine(db_url)


@contextmanager
def script_session(engine):
    s: Session = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
