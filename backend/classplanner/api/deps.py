from collections.abc import Generator

from sqlalchemy.orm import Session

from classplanner.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def parse_id_list(value: str | None) -> list[str] | None:
    """Split a comma separated query value such as ``batchIds=a,b``."""
    if value is None:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return list(dict.fromkeys(items)) or None
