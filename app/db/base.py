from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    # naive UTC, stored the same way on SQLite and Postgres
    return datetime.now(timezone.utc).replace(tzinfo=None)
